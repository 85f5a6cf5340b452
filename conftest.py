"""
Pytest configuration and fixtures for Django tests.

This module provides common fixtures used across all test modules.
"""

from pathlib import Path
from typing import Any, Callable

import pytest
from django.test import RequestFactory as DjangoRequestFactory

from apps.core.bootstrap_log import BootstrapLog
from apps.core.maintenance import MaintenanceMode


@pytest.fixture
def rf():
    """
    GOAL: Provide a Django RequestFactory for creating test requests.

    RETURNS:
      RequestFactory - Django request factory instance

    GUARANTEES:
      - Can create mock requests for testing
      - Supports all HTTP methods
    """
    return DjangoRequestFactory()


@pytest.fixture
def settings(settings, tmp_path, monkeypatch):
    """
    GOAL: Provide Django settings object for test configuration.

    RETURNS:
      Settings - Django settings object

    GUARANTEES:
      - Settings can be modified for individual tests
      - Maintenance state and SQLite paths point into tmp_path
      - The database guard and startup diagnostics are off unless a test enables them
    """
    monkeypatch.setenv("MAINTENANCE_FILE", str(tmp_path / "framework" / "down"))
    settings.SQLITE_DATABASE_PATH = tmp_path / "database.sqlite3"
    settings.REQUIRE_DATABASE_CONNECTION = False
    settings.LOG_DATABASE_CONNECTION_INFO = False
    settings.DEBUG = False
    return settings


@pytest.fixture
def client(settings):
    """
    GOAL: Provide a Django test client for making HTTP requests.

    RETURNS:
      Client - Django test client instance

    GUARANTEES:
      - Middleware is loaded with the settings of the current test
      - Exceptions are rendered as responses, not re-raised
    """
    from django.test import Client

    return Client(raise_request_exception=False)


@pytest.fixture
def bootstrap_log(tmp_path: Path) -> BootstrapLog:
    """
    GOAL: Provide a BootstrapLog writing to a fresh file under tmp_path.

    RETURNS:
      BootstrapLog - Log whose parent directory does not exist yet
    """
    return BootstrapLog(tmp_path / "logs" / "app.log")


@pytest.fixture
def maintenance(settings) -> MaintenanceMode:
    """
    GOAL: Provide the MaintenanceMode used by the down/up commands in this test.
    """
    return MaintenanceMode.for_base_dir(settings.BASE_DIR)


@pytest.fixture
def raised() -> Callable[..., BaseException]:
    """
    GOAL: Provide a helper returning an exception that was actually raised.

    RETURNS:
      Callable - raised(exc, cause=None) -> exc with a traceback (and __cause__ when given)

    GUARANTEES:
      - The returned exception has __traceback__ set
    """
    def _raised(exc: BaseException, cause: Any = None) -> BaseException:
        try:
            if cause is None:
                raise exc
            try:
                raise cause
            except BaseException as inner:
                raise exc from inner
        except BaseException as caught:
            return caught

    return _raised
