"""
Request/response logging for API routes.
"""

import json
import logging
import time
from typing import Any, Callable

from django.conf import settings
from django.core.exceptions import RequestDataTooBig
from django.http import HttpRequest, HttpResponse
from django.http.request import RawPostDataException

from apps.core.request_utils import get_client_ip

logger = logging.getLogger(__name__)

REDACTED = "[REDACTED]"
SENSITIVE_HEADERS = frozenset({"authorization", "cookie", "x-csrftoken"})
DEFAULT_REDACTED_FIELDS = ("password", "password_confirmation", "token")


class RequestLoggingMiddleware:
    """
    Log every API request and its response as structured records.

    GUARANTEES:
      - "=== Incoming Request ===" is logged before the view runs
      - "=== Response ===" is logged with status, duration and size
      - Redacted body fields never appear in the log
      - Reading the body for logging never breaks the request
    """

    def __init__(self, get_response: Callable[[HttpRequest], HttpResponse]):
        self.get_response = get_response
        self.redacted_fields = frozenset(
            getattr(settings, "REQUEST_LOG_REDACTED_FIELDS", DEFAULT_REDACTED_FIELDS)
        )

    def __call__(self, request: HttpRequest) -> HttpResponse:
        started = time.perf_counter()

        logger.info(
            "=== Incoming Request ===",
            extra={
                "context": {
                    "method": request.method,
                    "url": request.build_absolute_uri(),
                    "path": request.path_info.strip("/") or "/",
                    "ip": get_client_ip(request),
                    "user_agent": request.headers.get("User-Agent"),
                    "headers": self._headers(request),
                    "query_params": request.GET.dict(),
                    "request_body": self._body(request),
                    "content_type": request.headers.get("Content-Type"),
                    "accept": request.headers.get("Accept"),
                }
            },
        )

        response = self.get_response(request)

        logger.info(
            "=== Response ===",
            extra={
                "context": {
                    "status_code": response.status_code,
                    "duration_ms": round((time.perf_counter() - started) * 1000, 2),
                    "response_size": 0 if response.streaming else len(response.content),
                    "headers": dict(response.items()),
                }
            },
        )
        return response

    def _headers(self, request: HttpRequest) -> dict[str, str]:
        return {
            name: REDACTED if name.lower() in SENSITIVE_HEADERS else value
            for name, value in request.headers.items()
        }

    """
    GOAL: Extract the request payload for logging with sensitive fields removed.

    PARAMETERS:
      request: HttpRequest - Incoming request - Not None

    RETURNS:
      dict[str, Any] - Form fields or JSON object without redacted keys - Empty if unreadable

    RAISES:
      None

    GUARANTEES:
      - JSON bodies are parsed; non-object JSON is logged under "_json"
      - Bodies that are too big or already consumed are skipped
    """
    def _body(self, request: HttpRequest) -> dict[str, Any]:
        try:
            if request.content_type == "application/json":
                payload = json.loads(request.body or b"{}")
                if not isinstance(payload, dict):
                    return {"_json": payload}
            else:
                payload = request.POST.dict()
        except (RawPostDataException, RequestDataTooBig, ValueError) as exc:
            logger.debug("Request body not logged: %s", exc)
            return {}

        return {key: value for key, value in payload.items() if key not in self.redacted_fields}
