"""
Exception classes and the JSON rendering/reporting callbacks.

All JSON error bodies share the {"message": ...} shape. The callbacks here are
registered on the application configuration (config/app.py) and are used by
JsonExceptionMiddleware, the JSON error views and the DRF exception handler.
"""

import logging
import traceback
from http import HTTPStatus
from typing import Any, Dict, Optional

from django.conf import settings
from django.core.exceptions import BadRequest, ObjectDoesNotExist, PermissionDenied, SuspiciousOperation
from django.core.exceptions import ValidationError as DjangoValidationError
from django.http import Http404, HttpRequest, JsonResponse
from rest_framework import exceptions as drf_exceptions
from rest_framework.views import exception_handler as drf_exception_handler
from rest_framework.views import set_rollback

from apps.core.application import get_application
from apps.core.exception_info import class_name, exception_code, format_trace, origin, previous_exception
from apps.core.monitoring import capture_exception
from apps.core.responses import json_response

logger = logging.getLogger(__name__)

SERVER_ERROR_MESSAGE = "Server Error"
INVALID_DATA_MESSAGE = "The given data was invalid."


class BaseAPIError(Exception):
    """
    Base exception class for all API errors.

    Provides common structure for error responses including error code,
    human-readable message, and optional details.
    """

    def __init__(self, message: str, details: dict | None = None):
        """
        Initialize base API error.

        PARAMETERS:
          message: str - Human-readable error message - Not empty
          details: dict | None - Additional error details - Optional

        GUARANTEES:
          - error_code is set by subclass
          - message is stored and accessible
          - details dictionary is stored if provided
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    @property
    def error_code(self) -> str:
        raise NotImplementedError("Subclasses must implement error_code")

    @property
    def http_status(self) -> int:
        raise NotImplementedError("Subclasses must implement http_status")


class ValidationError(BaseAPIError):
    """
    Exception for validation errors (invalid input data).

    details maps field names to lists of messages and is rendered as "errors".
    """

    def __init__(self, message: str = INVALID_DATA_MESSAGE, details: dict | None = None):
        super().__init__(message, details)

    @property
    def error_code(self) -> str:
        return "VALIDATION_ERROR"

    @property
    def http_status(self) -> int:
        return 422


class AuthenticationError(BaseAPIError):
    """Exception for requests without valid credentials."""

    def __init__(self, message: str = "Unauthenticated.", details: dict | None = None):
        super().__init__(message, details)

    @property
    def error_code(self) -> str:
        return "AUTHENTICATION_ERROR"

    @property
    def http_status(self) -> int:
        return 401


class PermissionError(BaseAPIError):
    """Exception for authenticated callers lacking the required rights."""

    def __init__(self, message: str = "This action is unauthorized.", details: dict | None = None):
        super().__init__(message, details)

    @property
    def error_code(self) -> str:
        return "PERMISSION_ERROR"

    @property
    def http_status(self) -> int:
        return 403


class NotFoundError(BaseAPIError):
    def __init__(self, message: str = "Not Found", details: dict | None = None):
        super().__init__(message, details)

    @property
    def error_code(self) -> str:
        return "NOT_FOUND"

    @property
    def http_status(self) -> int:
        return 404


class ServiceUnavailableError(BaseAPIError):
    """
    Exception for dependencies that cannot serve the request (database down,
    disallowed database vendor).
    """

    def __init__(self, message: str = "Service Unavailable", details: dict | None = None):
        super().__init__(message, details)

    @property
    def error_code(self) -> str:
        return "SERVICE_UNAVAILABLE"

    @property
    def http_status(self) -> int:
        return 503


"""
GOAL: Decide whether an exception is rendered as JSON.

PARAMETERS:
  request: HttpRequest - Request being handled - Not None
  exc: BaseException - Exception raised while handling it - Not None

RETURNS:
  bool - Always True

RAISES:
  None

GUARANTEES:
  - Browser and API requests alike get JSON error bodies
"""
def always_render_json(request: HttpRequest, exc: BaseException) -> bool:
    return True


def status_for(exc: BaseException) -> int:
    """Map an exception to the HTTP status of its JSON rendering."""
    if isinstance(exc, BaseAPIError):
        return exc.http_status
    if isinstance(exc, (DjangoValidationError, drf_exceptions.ValidationError)):
        return 422
    if isinstance(exc, drf_exceptions.APIException):
        return exc.status_code
    if isinstance(exc, (Http404, ObjectDoesNotExist)):
        return 404
    if isinstance(exc, PermissionDenied):
        return 403
    if isinstance(exc, (BadRequest, SuspiciousOperation)):
        return 400
    return 500


def is_reportable(exc: BaseException) -> bool:
    """Client errors are answered but not reported."""
    return status_for(exc) >= 500


"""
GOAL: Build the structured context logged for an unhandled exception.

PARAMETERS:
  exc: BaseException - Exception to describe - Not None

RETURNS:
  Dict[str, Any] - Keys exception, message, trace, file, line, code, previous

RAISES:
  None

GUARANTEES:
  - previous describes only the immediate cause (class, message, trace)
  - previous is None when the exception has no cause
"""
def exception_context(exc: BaseException) -> Dict[str, Any]:
    file, line = origin(exc)
    previous = previous_exception(exc)

    return {
        "exception": class_name(exc),
        "message": str(exc),
        "trace": format_trace(exc),
        "file": file,
        "line": line,
        "code": exception_code(exc),
        "previous": (
            {
                "class": class_name(previous),
                "message": str(previous),
                "trace": format_trace(previous),
            }
            if previous is not None
            else None
        ),
    }


"""
GOAL: Report an unhandled exception to the application log and to Sentry.

PARAMETERS:
  exc: BaseException - Exception to report - Not None

RETURNS:
  None

RAISES:
  None

GUARANTEES:
  - Exactly one error record "Unhandled exception" with exception_context(exc)
  - The exception is sent to Sentry when monitoring is enabled
"""
def report_exception(exc: BaseException) -> None:
    context = exception_context(exc)
    logger.error("Unhandled exception", extra={"context": context})
    capture_exception(
        exc,
        extra={key: value for key, value in context.items() if key != "trace"},
        tags={"exception": context["exception"]},
    )


def _debug_details(exc: BaseException) -> Dict[str, Any]:
    file, line = origin(exc)
    frames = traceback.extract_tb(exc.__traceback__) if exc.__traceback__ else []
    return {
        "exception": class_name(exc),
        "file": file,
        "line": line,
        "trace": [
            {"file": frame.filename, "line": frame.lineno, "function": frame.name}
            for frame in frames
        ],
    }


def _validation_errors(exc: DjangoValidationError) -> Any:
    if hasattr(exc, "error_dict"):
        return exc.message_dict
    return {"non_field_errors": exc.messages}


"""
GOAL: Build the JSON payload describing an exception.

PARAMETERS:
  exc: BaseException - Exception to render - Not None

RETURNS:
  tuple[int, Dict[str, Any], Dict[str, str]] - (status, payload, extra headers)

RAISES:
  None

GUARANTEES:
  - payload always has a "message" key
  - 500 payloads say "Server Error" unless DEBUG is on
  - Validation failures carry "errors"; they never carry debug details
  - With DEBUG, other payloads also carry exception, file, line and trace
"""
def exception_payload(exc: BaseException) -> tuple[int, Dict[str, Any], Dict[str, str]]:
    status = status_for(exc)
    headers: Dict[str, str] = {}

    if isinstance(exc, BaseAPIError):
        payload: Dict[str, Any] = {"message": exc.message, "code": exc.error_code}
        if exc.details:
            payload["errors" if isinstance(exc, ValidationError) else "details"] = exc.details
    elif isinstance(exc, drf_exceptions.ValidationError):
        payload = {"message": INVALID_DATA_MESSAGE, "errors": exc.detail}
    elif isinstance(exc, drf_exceptions.APIException):
        detail = exc.detail if isinstance(exc.detail, str) else exc.default_detail
        payload = {"message": str(detail)}
        wait = getattr(exc, "wait", None)
        if wait is not None:
            headers["Retry-After"] = str(int(wait))
    elif isinstance(exc, DjangoValidationError):
        payload = {"message": INVALID_DATA_MESSAGE, "errors": _validation_errors(exc)}
    elif isinstance(exc, PermissionDenied):
        payload = {"message": str(exc) or PermissionError().message}
    elif status < 500:
        payload = {"message": HTTPStatus(status).phrase}
    else:
        payload = {"message": str(exc) if settings.DEBUG else SERVER_ERROR_MESSAGE}

    if settings.DEBUG and status != 422:
        payload.update(_debug_details(exc))

    return status, payload, headers


def render_exception(request: Optional[HttpRequest], exc: BaseException) -> JsonResponse:
    """Render exc as a JSON response."""
    status, payload, headers = exception_payload(exc)
    return json_response(payload, status=status, headers=headers or None)


"""
GOAL: DRF EXCEPTION_HANDLER routing API view exceptions through the application policy.

PARAMETERS:
  exc: Exception - Exception raised inside a DRF view - Not None
  context: Dict[str, Any] - DRF exception context - Contains 'request' and 'view'

RETURNS:
  Optional[JsonResponse] - JSON error response, or DRF's default handling when
  the render policy declines

RAISES:
  None

GUARANTEES:
  - Server errors are reported through the configured report sink
  - The current transaction is marked for rollback
"""
def api_exception_handler(exc: Exception, context: Dict[str, Any]) -> Optional[JsonResponse]:
    request = context.get("request")
    exceptions = get_application().exceptions

    if not exceptions.should_render_json(request, exc):
        return drf_exception_handler(exc, context)

    if is_reportable(exc):
        exceptions.report(exc)
    set_rollback()
    return render_exception(request, exc)
