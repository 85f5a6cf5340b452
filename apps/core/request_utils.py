"""
Request helpers shared by the middleware stack.
"""

from __future__ import annotations

from fnmatch import fnmatchcase
from typing import TYPE_CHECKING, Iterable

if TYPE_CHECKING:
    from django.http import HttpRequest


"""
GOAL: Normalize a URL path for pattern matching.

PARAMETERS:
  path: str - Raw request path (with or without leading slash) - Can be empty

RETURNS:
  str - Path without surrounding slashes, or "/" for the root - Never empty

RAISES:
  None

GUARANTEES:
  - "/api/records/" becomes "api/records"
  - "" and "/" both become "/"
"""
def normalize_path(path: str) -> str:
    trimmed = (path or "").strip("/")
    return trimmed or "/"


"""
GOAL: Check whether a path matches any of the given wildcard patterns.

PARAMETERS:
  path: str - Request path - Can be empty
  patterns: Iterable[str] - Patterns such as "api/*" or "up" - Can be empty

RETURNS:
  bool - True if at least one pattern matches

RAISES:
  None

GUARANTEES:
  - "*" matches any run of characters, including "/"
  - Patterns are normalized the same way as the path
  - Matching is case-sensitive
  - "api/*" does not match "api" itself
"""
def path_matches(path: str, patterns: Iterable[str]) -> bool:
    normalized = normalize_path(path)
    for pattern in patterns:
        candidate = pattern if pattern == "/" else pattern.strip("/")
        if normalized == candidate or fnmatchcase(normalized, candidate):
            return True
    return False


def request_is(request: HttpRequest, *patterns: str) -> bool:
    """
    Match the request's path_info against wildcard patterns.
    """
    return path_matches(request.path_info, patterns)


"""
GOAL: Extract client IP address from request.

PARAMETERS:
  request: HttpRequest - Incoming HTTP request - Not None

RETURNS:
  str - Client IP address - Never None

RAISES:
  None

GUARANTEES:
  - Returns IP address from X-Forwarded-For header if present
  - Falls back to X-Real-IP, then REMOTE_ADDR
  - Returns "unknown" if no IP found
"""
def get_client_ip(request: HttpRequest) -> str:
    ip = (
        request.META.get("HTTP_X_FORWARDED_FOR", "").split(",")[0].strip()
        or request.META.get("HTTP_X_REAL_IP", "").strip()
        or request.META.get("REMOTE_ADDR", "").strip()
    )
    return ip or "unknown"
