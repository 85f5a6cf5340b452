"""
JSON error views registered as handler400/403/404/500 and CSRF_FAILURE_VIEW.

Django calls these for errors raised outside views (unmatched URLs,
middleware failures) and for CSRF rejections.
"""

import logging
import sys

from django.http import HttpRequest, JsonResponse

from apps.core.application import get_application
from apps.core.exceptions import SERVER_ERROR_MESSAGE, render_exception
from apps.core.responses import json_response

logger = logging.getLogger(__name__)

CSRF_MISMATCH_MESSAGE = "CSRF token mismatch."


def bad_request(request: HttpRequest, exception: Exception) -> JsonResponse:
    return render_exception(request, exception)


def permission_denied(request: HttpRequest, exception: Exception) -> JsonResponse:
    return render_exception(request, exception)


def page_not_found(request: HttpRequest, exception: Exception) -> JsonResponse:
    return render_exception(request, exception)


"""
GOAL: Answer an exception that escaped the middleware stack.

PARAMETERS:
  request: HttpRequest - Request being handled - Not None

RETURNS:
  JsonResponse - 500 JSON response - Never None

RAISES:
  None

GUARANTEES:
  - The active exception, if any, is reported through the configured sink
  - Body is {"message": "Server Error"} outside DEBUG
"""
def server_error(request: HttpRequest) -> JsonResponse:
    exc = sys.exc_info()[1]
    if exc is None:
        return json_response({"message": SERVER_ERROR_MESSAGE}, status=500)

    get_application().exceptions.report(exc)
    response = render_exception(request, exc)
    if response.status_code != 500:
        return json_response({"message": SERVER_ERROR_MESSAGE}, status=500)
    return response


def csrf_failure(request: HttpRequest, reason: str = "") -> JsonResponse:
    """CSRF_FAILURE_VIEW: 403 with a fixed message, the reason is only logged."""
    logger.warning(
        "CSRF validation failed",
        extra={"context": {"path": request.path_info, "reason": reason}},
    )
    return json_response({"message": CSRF_MISMATCH_MESSAGE}, status=403)
