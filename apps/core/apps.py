"""
Core app configuration for Django.

This app provides the bootstrap layer: application assembly, the JSON
exception pipeline, API middleware and maintenance commands.
"""

from django.apps import AppConfig
from django.conf import settings


class CoreConfig(AppConfig):
    """
    Configuration for the core application.

    Provides:
    - Application assembly and console routes
    - JSON exception handling middleware and error views
    - Startup logging of database connection settings
    """

    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.core"
    verbose_name = "Core"

    def ready(self) -> None:
        from apps.core.diagnostics import log_database_connection_info

        if getattr(settings, "LOG_DATABASE_CONNECTION_INFO", True):
            log_database_connection_info()
