from __future__ import annotations

from .base import *

"""
GOAL: Configure development environment settings with debug enabled and verbose logging.

PARAMETERS:
  None

RETURNS:
  None - Module-level configuration

RAISES:
  None

GUARANTEES:
  - DEBUG mode is enabled
  - Verbose logging is configured, including every SQL query
  - Local development hosts are allowed
"""

# Debug mode
DEBUG = True

# Allow local development hosts
if not ALLOWED_HOSTS:
    ALLOWED_HOSTS = ["localhost", "127.0.0.1", "0.0.0.0", "testserver"]

# SQL queries are logged through django.db.backends when DEBUG is on
LOGGING = build_logging(level="DEBUG", django_level="INFO", sql_level="DEBUG")
