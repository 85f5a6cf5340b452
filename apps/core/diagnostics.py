"""
Startup diagnostics for the database connection.
"""

import logging
from typing import Any, Optional

from django.db import DEFAULT_DB_ALIAS, connections

logger = logging.getLogger(__name__)

PASSWORD_NOT_SET = "not set"


def mask_password(password: Optional[str]) -> str:
    """Replace a password with up to eight asterisks, or "not set"."""
    if not password:
        return PASSWORD_NOT_SET
    return "*" * min(len(password), 8)


"""
GOAL: Log the configured database connections without exposing passwords.

PARAMETERS:
  alias: str - Connection alias to describe in detail - Defaults to "default"

RETURNS:
  dict[str, Any] - The context that was logged - Never None

RAISES:
  None - Never raises; failures are logged as warnings

GUARANTEES:
  - Passwords appear only masked
  - No connection is opened
"""
def log_database_connection_info(alias: str = DEFAULT_DB_ALIAS) -> dict[str, Any]:
    try:
        settings_dict = connections[alias].settings_dict
        vendor = connections[alias].vendor
        password = mask_password(settings_dict.get("PASSWORD"))

        context: dict[str, Any] = {
            "connection": alias,
            "vendor": vendor,
            "host": settings_dict.get("HOST") or "",
            "port": str(settings_dict.get("PORT") or ""),
            "database": str(settings_dict.get("NAME") or ""),
            "username": settings_dict.get("USER") or "",
            "password": password,
            "available_connections": list(connections.settings.keys()),
        }
        context["full_dsn"] = "{vendor}://{username}:{password}@{host}:{port}/{database}".format(**context)
    except Exception as exc:
        logger.warning("Could not read database config", extra={"context": {"error": str(exc)}})
        return {}

    logger.info("=== Database Connection Information ===", extra={"context": context})
    return context
