"""
Application assembly.

Declares the route modules, the middleware prepended to API routes, the
CSRF exemptions and the exception callbacks. Read through settings.APPLICATION.
"""

from pathlib import Path

from django.conf import settings

from apps.core.application import configure
from apps.core.exceptions import always_render_json, report_exception

API_MIDDLEWARE = [
    "corsheaders.middleware.CorsMiddleware",
    # Raises MiddlewareNotUsed unless REQUIRE_DATABASE_CONNECTION is set
    "apps.core.database_guard.RequireDatabaseConnection",
    "apps.core.request_logging.RequestLoggingMiddleware",
]

application = (
    configure(base_dir=Path(settings.BASE_DIR))
    .with_routing(
        web="routes.web",
        api="routes.api",
        commands="routes.console",
        api_prefix="api",
        health="/up",
    )
    .with_middleware(
        api_prepend=API_MIDDLEWARE,
        csrf_except=["api/*"],
    )
    .with_exceptions(
        render_json_when=always_render_json,
        report=report_exception,
    )
    .create()
)
