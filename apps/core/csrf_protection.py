"""
CSRF middleware with path-based exemptions.

Django's CsrfViewMiddleware is enforced everywhere except for the path
patterns declared in config/app.py (csrf_except), typically "api/*".
"""

import logging
from typing import Any, Callable, Optional

from django.http import HttpRequest, HttpResponse
from django.middleware.csrf import CsrfViewMiddleware

from apps.core.application import get_application
from apps.core.request_utils import request_is

logger = logging.getLogger(__name__)


class PathExemptCsrfViewMiddleware(CsrfViewMiddleware):
    """
    CsrfViewMiddleware that skips validation for exempt path patterns.

    GUARANTEES:
      - Requests matching csrf_except are never rejected for CSRF reasons
      - All other requests are validated exactly as CsrfViewMiddleware does
      - The CSRF cookie is still set on responses for exempt paths when used
    """

    """
    GOAL: Skip CSRF validation for exempt paths, delegate otherwise.

    PARAMETERS:
      request: HttpRequest - Incoming request - Not None
      callback: Callable - Resolved view - Not None
      callback_args: tuple - Positional view arguments - Can be empty
      callback_kwargs: dict - Keyword view arguments - Can be empty

    RETURNS:
      Optional[HttpResponse] - None to continue, or the CSRF failure response

    RAISES:
      None
    """
    def process_view(
        self,
        request: HttpRequest,
        callback: Callable[..., Any],
        callback_args: tuple,
        callback_kwargs: dict,
    ) -> Optional[HttpResponse]:
        if self.is_exempt(request):
            return None
        return super().process_view(request, callback, callback_args, callback_kwargs)

    def is_exempt(self, request: HttpRequest) -> bool:
        patterns = get_application().middleware.csrf_except
        return bool(patterns) and request_is(request, *patterns)
