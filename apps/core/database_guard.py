"""
Guard rejecting API requests when the database is unusable.

Enabled by REQUIRE_DATABASE_CONNECTION. The default connection must use one
of DATABASE_ALLOWED_VENDORS (Django's connection.vendor values) and must be
reachable; otherwise the request is answered with a 500 JSON body.
"""

import logging
from typing import Callable

from django.conf import settings
from django.core.exceptions import MiddlewareNotUsed
from django.db import DatabaseError, connections
from django.http import HttpRequest, HttpResponse

from apps.core.application import get_application
from apps.core.request_utils import request_is
from apps.core.responses import json_response

logger = logging.getLogger(__name__)

CONFIGURATION_ERROR = "Database configuration error"
CONNECTION_ERROR = "Database connection failed"


class RequireDatabaseConnection:
    """
    Middleware checking the default database before API views run.

    RAISES:
      MiddlewareNotUsed: When REQUIRE_DATABASE_CONNECTION is off

    GUARANTEES:
      - Health check paths are never blocked
      - Disallowed vendors and connection failures return 500 with "error" and "message"
    """

    def __init__(self, get_response: Callable[[HttpRequest], HttpResponse]):
        if not getattr(settings, "REQUIRE_DATABASE_CONNECTION", False):
            raise MiddlewareNotUsed("REQUIRE_DATABASE_CONNECTION is disabled")

        self.get_response = get_response
        self.allowed_vendors = tuple(getattr(settings, "DATABASE_ALLOWED_VENDORS", ("mysql",)))

        health = get_application().routing.health
        self.skip_patterns = (health, f"{health}/*") if health else ()

    def __call__(self, request: HttpRequest) -> HttpResponse:
        if self.skip_patterns and request_is(request, *self.skip_patterns):
            return self.get_response(request)

        connection = connections["default"]
        context = {"vendor": connection.vendor, "request_path": request.path_info}

        if connection.vendor not in self.allowed_vendors:
            logger.error("Database vendor is not allowed", extra={"context": context})
            return json_response(
                {
                    "error": CONFIGURATION_ERROR,
                    "message": f"Only {', '.join(self.allowed_vendors)} connections are allowed.",
                },
                status=500,
            )

        try:
            connection.ensure_connection()
        except DatabaseError as exc:
            logger.error(
                "Database connection failed",
                extra={"context": {**context, "error": str(exc)}},
            )
            return json_response(
                {
                    "error": CONNECTION_ERROR,
                    "message": "Unable to connect to the database. Please check your database configuration.",
                },
                status=500,
            )

        return self.get_response(request)
