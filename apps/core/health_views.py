"""
Health check endpoints for monitoring application status.

Mounted at the health path declared in config/app.py ("/up") and its
"/ready" sub-path.
"""

import logging
from typing import Any

from django.conf import settings
from django.core.cache import cache
from django.db import DatabaseError, connections
from django.http import HttpRequest, JsonResponse
from django.utils import timezone

from apps.core.responses import json_response

logger = logging.getLogger(__name__)


"""
GOAL: Check basic application health.

PARAMETERS:
  request: HttpRequest - Incoming HTTP request - Not None

RETURNS:
  JsonResponse - JSON response with status "ok" - Never None

RAISES:
  None - Never raises exceptions

GUARANTEES:
  - Always returns 200 OK status
  - Response includes status and timestamp
  - Touches neither the database nor the cache
"""
def health_check(request: HttpRequest) -> JsonResponse:
    return json_response({
        "status": "ok",
        "timestamp": timezone.now().isoformat(),
    })


"""
GOAL: Check application readiness (database and cache).

PARAMETERS:
  request: HttpRequest - Incoming HTTP request - Not None

RETURNS:
  JsonResponse - JSON response with readiness status - Never None

RAISES:
  None - Never raises exceptions (returns 503 if not ready)

GUARANTEES:
  - Returns 200 OK if all services are ready
  - Returns 503 Service Unavailable if any service is not ready
  - Includes detailed status of each service
"""
def readiness_check(request: HttpRequest) -> JsonResponse:
    checks: dict[str, Any] = {
        "database": _check_database(),
        "cache": _check_cache(),
    }
    ready = all(check["status"] == "ok" for check in checks.values())

    return json_response(
        {
            "status": "ok" if ready else "not_ready",
            "timestamp": timezone.now().isoformat(),
            "checks": checks,
        },
        status=200 if ready else 503,
    )


"""
GOAL: Check database connection health.

PARAMETERS:
  None

RETURNS:
  dict[str, Any] - Database status with status and details - Never None

RAISES:
  None - Never raises exceptions

GUARANTEES:
  - Returns "ok" if database is accessible
  - Returns "error" if database is not accessible
  - Includes error details if applicable
"""
def _check_database() -> dict[str, Any]:
    db_conn = connections["default"]
    name = str(db_conn.settings_dict.get("NAME", "unknown"))
    try:
        with db_conn.cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()
        return {"status": "ok", "vendor": db_conn.vendor, "database": name}
    except DatabaseError as exc:
        logger.error("Database health check failed: %s", exc)
        return {"status": "error", "vendor": db_conn.vendor, "database": name, "error": str(exc)}


def _check_cache() -> dict[str, Any]:
    """
    Check cache connection by setting and getting a test key.
    """
    backend = settings.CACHES["default"]["BACKEND"]
    try:
        test_key = "health_check_test"
        cache.set(test_key, "ok", timeout=10)
        retrieved_value = cache.get(test_key)
        cache.delete(test_key)
    except Exception as exc:
        logger.error("Cache health check failed: %s", exc)
        return {"status": "error", "backend": backend, "error": str(exc)}

    if retrieved_value != "ok":
        return {"status": "error", "backend": backend, "error": "Cache value mismatch"}
    return {"status": "ok", "backend": backend}
