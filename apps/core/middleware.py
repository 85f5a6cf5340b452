"""
Middleware wiring the application configuration into Django's pipeline.

ApiMiddlewareGroup runs the API-only middleware declared in config/app.py;
JsonExceptionMiddleware renders view exceptions through the configured
render policy and report sink.
"""

import logging
from typing import Any, Callable, Optional

from django.core.exceptions import MiddlewareNotUsed
from django.http import HttpRequest, HttpResponse
from django.utils.module_loading import import_string

from apps.core.application import get_application
from apps.core.exceptions import is_reportable, render_exception
from apps.core.request_utils import request_is

logger = logging.getLogger(__name__)


class ApiMiddlewareGroup:
    """
    Run the configured api_prepend middleware for API paths only.

    Middleware listed in api_prepend are plain callables taking get_response
    (no process_view/process_exception hooks). The first entry is outermost.

    GUARANTEES:
      - Requests to <api_prefix> and <api_prefix>/* pass through the group
      - All other requests skip it entirely
      - Entries raising MiddlewareNotUsed are left out
    """

    def __init__(self, get_response: Callable[[HttpRequest], HttpResponse]):
        self.get_response = get_response

        application = get_application()
        self.patterns = application.routing.api_patterns
        self.api_handler = self._chain(get_response, application.middleware.api_prepend)

    @staticmethod
    def _chain(
        get_response: Callable[[HttpRequest], HttpResponse],
        dotted_paths: tuple[str, ...],
    ) -> Callable[[HttpRequest], HttpResponse]:
        handler = get_response
        for dotted_path in reversed(dotted_paths):
            middleware = import_string(dotted_path)
            try:
                handler = middleware(handler)
            except MiddlewareNotUsed as exc:
                logger.debug("API middleware %s not used: %s", dotted_path, exc)
        return handler

    def __call__(self, request: HttpRequest) -> HttpResponse:
        if request_is(request, *self.patterns):
            return self.api_handler(request)
        return self.get_response(request)


class JsonExceptionMiddleware:
    """
    Convert exceptions raised by views into JSON responses.

    Must be the last entry in MIDDLEWARE so its process_exception runs
    before any other middleware gets a chance to render HTML.
    """

    def __init__(self, get_response: Callable[[HttpRequest], HttpResponse]):
        self.get_response = get_response

    def __call__(self, request: HttpRequest) -> HttpResponse:
        return self.get_response(request)

    """
    GOAL: Render a view exception when the render policy asks for JSON.

    PARAMETERS:
      request: HttpRequest - Request whose view raised - Not None
      exception: Exception - Exception raised by the view - Not None

    RETURNS:
      Optional[HttpResponse] - JSON response, or None to let Django handle it

    RAISES:
      None

    GUARANTEES:
      - Server errors go to the report sink before rendering
      - Client errors (4xx) are rendered without being reported
    """
    def process_exception(self, request: HttpRequest, exception: Exception) -> Optional[HttpResponse]:
        exceptions = get_application().exceptions
        if not exceptions.should_render_json(request, exception):
            return None

        if is_reportable(exception):
            exceptions.report(exception)
        return render_exception(request, exception)


def describe_pipeline() -> dict[str, Any]:
    """Summarize the API pipeline for console output."""
    application = get_application()
    return {
        "api_patterns": list(application.routing.api_patterns),
        "api_middleware": list(application.middleware.api_prepend),
        "csrf_except": list(application.middleware.csrf_except),
    }
