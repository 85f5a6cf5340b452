"""
URLconf assembled from the route modules declared in config/app.py.
"""

from __future__ import annotations

from django.urls import include, path

from apps.core.application import get_application
from apps.core.health_views import health_check, readiness_check

routing = get_application().routing

urlpatterns = []

if routing.health:
    health = routing.health.strip("/")
    urlpatterns += [
        path(health, health_check, name="health_check"),
        path(f"{health}/ready", readiness_check, name="health_ready"),
    ]

if routing.api:
    urlpatterns.append(path(f"{routing.api_prefix}/", include(routing.api)))

if routing.web:
    urlpatterns.append(path("", include(routing.web)))

handler400 = "apps.core.error_views.bad_request"
handler403 = "apps.core.error_views.permission_denied"
handler404 = "apps.core.error_views.page_not_found"
handler500 = "apps.core.error_views.server_error"
