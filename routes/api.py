"""
API routes, mounted under the API prefix ("api/").
"""

from django.urls import path

from apps.core import views

urlpatterns = [
    path("test", views.api_status, name="api_test"),
]
