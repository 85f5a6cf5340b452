"""
Endpoints served by the web and API route modules.
"""

import logging

import django
from django.conf import settings
from django.http import HttpRequest, JsonResponse
from rest_framework.decorators import api_view
from rest_framework.request import Request
from rest_framework.response import Response

from apps.core.application import get_application
from apps.core.responses import json_response

logger = logging.getLogger(__name__)


def welcome(request: HttpRequest) -> JsonResponse:
    """
    Landing endpoint describing the service.
    """
    routing = get_application().routing
    return json_response({
        "name": settings.APP_NAME,
        "framework": f"Django {django.get_version()}",
        "api": f"/{routing.api_prefix}",
        "health": routing.health,
    })


@api_view(["GET"])
def api_status(request: Request) -> Response:
    """
    Smoke-test endpoint for the API pipeline.
    """
    logger.info("Test endpoint called")
    return Response({"message": "API is working"})
