"""
JSON response helpers shared by middleware, error views and exception handlers.
"""

from __future__ import annotations

import json
from typing import Any

from django.http import JsonResponse


"""
GOAL: Create a JsonResponse that also provides a .json() helper for tests.

PARAMETERS:
  payload: dict[str, Any] - JSON-serializable response payload - Must be a dict
  status: int - HTTP status code - Must be positive
  headers: dict[str, str] | None - Extra response headers - Optional

RETURNS:
  JsonResponse - Django JsonResponse with added .json() method - Never None

RAISES:
  TypeError: If payload is not JSON serializable

GUARANTEES:
  - Returned response is a valid Django JsonResponse
  - Returned response supports response.json() in RequestFactory-based tests
"""
def json_response(
    payload: dict[str, Any],
    status: int = 200,
    headers: dict[str, str] | None = None,
) -> JsonResponse:
    """
    Build JsonResponse and attach a small json() helper for parity with Django test client responses.
    """
    response = JsonResponse(payload, status=status, headers=headers)

    def _json() -> Any:
        return json.loads(response.content.decode(response.charset))

    setattr(response, "json", _json)
    return response
