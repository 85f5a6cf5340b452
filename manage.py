#!/usr/bin/env python
import os
import sys
from pathlib import Path

from apps.core.bootstrap_log import BootstrapLog
from apps.core.fatal_errors import install_fatal_error_logger

BASE_DIR = Path(__file__).resolve().parent


"""
GOAL: Execute management commands and console routes using the configured settings module.

PARAMETERS:
  None

RETURNS:
  None

RAISES:
  ImportError: If Django is not installed/available

GUARANTEES:
  - Uses DJANGO_SETTINGS_MODULE=config.settings by default
  - Fatal errors during the command are appended to the application log at exit
  - Commands registered in the console route module are available by name
"""
def main() -> None:
    """Run management commands."""
    install_fatal_error_logger(BootstrapLog.for_base_dir(BASE_DIR))

    os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")
    try:
        from apps.core.console import ConsoleUtility
    except ImportError as exc:
        raise ImportError(
            "Couldn't import Django. Are you sure it's installed and "
            "available on your PYTHONPATH environment variable? Did you "
            "forget to activate a virtual environment?"
        ) from exc
    ConsoleUtility(sys.argv).execute()


if __name__ == "__main__":
    main()
