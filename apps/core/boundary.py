"""
Failure boundary around application bootstrap and request dispatch.

The WSGI entrypoint wraps Django in a BootstrapBoundary. Whatever escapes
building the handler or dispatching the request is written to the bootstrap
log and answered with a fixed JSON 500, so the server never emits a non-JSON
error page even when the framework failed to initialize.
"""

from __future__ import annotations

import json
import logging
import sys
import time
from typing import Any, Callable, Iterable, Optional

from apps.core.bootstrap_log import BootstrapLog
from apps.core.maintenance import MaintenanceMode

logger = logging.getLogger(__name__)

WSGIApplication = Callable[[dict[str, Any], Callable[..., Any]], Iterable[bytes]]

SERVER_ERROR_STATUS = "500 Internal Server Error"
SERVER_ERROR_HEADERS = [("Content-Type", "application/json")]
SERVER_ERROR_BODY = json.dumps({"message": "Server Error"}, separators=(",", ":")).encode()


class BootstrapBoundary:
    """
    WSGI callable that builds the real application lazily and guards every call.

    PARAMETERS:
      factory: Callable[[], WSGIApplication] - Builds the configured application (e.g. get_wsgi_application)
      log: BootstrapLog - Fallback log shared with the fatal-error hook
      maintenance: Optional[MaintenanceMode] - Checked before bootstrapping - Optional
      started_at: Optional[float] - perf_counter() value taken at process start - Optional

    GUARANTEES:
      - Any Exception from bootstrap or dispatch yields status 500,
        Content-Type application/json and body {"message":"Server Error"}
      - The failure is appended to the bootstrap log; log failures are ignored
      - The built application is reused; a failed bootstrap is retried on the next request
    """

    def __init__(
        self,
        factory: Callable[[], WSGIApplication],
        log: BootstrapLog,
        maintenance: Optional[MaintenanceMode] = None,
        started_at: Optional[float] = None,
    ):
        self.factory = factory
        self.log = log
        self.maintenance = maintenance
        self.started_at = started_at
        self._application: Optional[WSGIApplication] = None

    def __call__(self, environ: dict[str, Any], start_response: Callable[..., Any]) -> Iterable[bytes]:
        try:
            if self.maintenance is not None:
                unavailable = self.maintenance.response_for(environ.get("PATH_INFO", ""))
                if unavailable is not None:
                    status, headers, body = unavailable
                    start_response(status, headers)
                    return [body]

            return self.application(environ, start_response)
        except Exception as exc:
            self.log.write_bootstrap_failure(exc)
            # exc_info lets the server replace headers that were already started.
            start_response(SERVER_ERROR_STATUS, list(SERVER_ERROR_HEADERS), sys.exc_info())
            return [SERVER_ERROR_BODY]

    @property
    def application(self) -> WSGIApplication:
        if self._application is None:
            self._application = self.factory()
            if self.started_at is not None:
                logger.info(
                    "Application bootstrapped in %.2f ms",
                    (time.perf_counter() - self.started_at) * 1000,
                )
        return self._application
