"""
WSGI entrypoint.

Order matters: the fallback log and the fatal-error hook are set up before
Django is imported, so failures during bootstrap are still recorded.
"""

import os
import time

STARTED_AT = time.perf_counter()

from pathlib import Path  # noqa: E402

from apps.core.bootstrap_log import BootstrapLog  # noqa: E402
from apps.core.boundary import BootstrapBoundary  # noqa: E402
from apps.core.fatal_errors import install_fatal_error_logger  # noqa: E402
from apps.core.maintenance import MaintenanceMode  # noqa: E402

BASE_DIR = Path(__file__).resolve().parent.parent

bootstrap_log = BootstrapLog.for_base_dir(BASE_DIR)
fatal_errors = install_fatal_error_logger(bootstrap_log)

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")


def django_application():
    """Build the Django WSGI handler (settings, apps, middleware)."""
    from django.core.wsgi import get_wsgi_application

    return get_wsgi_application()


application = BootstrapBoundary(
    django_application,
    bootstrap_log,
    maintenance=MaintenanceMode.for_base_dir(BASE_DIR),
    started_at=STARTED_AT,
)
