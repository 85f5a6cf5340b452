"""
Tests for the pre-framework failure handling: bootstrap log, fatal error
logger, bootstrap boundary and maintenance mode.
"""

from __future__ import annotations

import json
import sys
import threading
import warnings

import pytest

from apps.core.bootstrap_log import BootstrapLog
from apps.core.boundary import BootstrapBoundary
from apps.core.fatal_errors import ErrorKind, FatalErrorLogger, LastError, classify
from apps.core.maintenance import MaintenanceMode


class StartResponse:
    """Records the arguments of the WSGI start_response call."""

    def __init__(self):
        self.status = None
        self.headers = None
        self.exc_info = None

    def __call__(self, status, headers, exc_info=None):
        self.status = status
        self.headers = dict(headers)
        self.exc_info = exc_info


def _environ(path="/"):
    return {"REQUEST_METHOD": "GET", "PATH_INFO": path}


def _ok_application(environ, start_response):
    start_response("200 OK", [("Content-Type", "application/json")])
    return [b'{"ok":true}']


class TestBootstrapLog:
    """
    Tests for BootstrapLog.
    """

    def test_append_creates_parent_directory(self, bootstrap_log):
        """
        GOAL: Verify the first write creates the log directory.
        """
        assert bootstrap_log.append("first\n") is True
        assert bootstrap_log.append("second\n") is True

        assert bootstrap_log.path.read_text(encoding="utf-8") == "first\nsecond\n"

    def test_append_failure_returns_false(self, tmp_path):
        """
        GOAL: Verify an unwritable log path is reported as False instead of raising.
        """
        blocker = tmp_path / "not-a-directory"
        blocker.write_text("", encoding="utf-8")

        assert BootstrapLog(blocker / "app.log").append("lost\n") is False

    def test_default_path(self, tmp_path, monkeypatch):
        """
        GOAL: Verify APP_LOG_FILE overrides the default <base_dir>/logs/app.log.
        """
        monkeypatch.delenv("APP_LOG_FILE", raising=False)
        assert BootstrapLog.default_path(tmp_path) == tmp_path / "logs" / "app.log"

        monkeypatch.setenv("APP_LOG_FILE", str(tmp_path / "custom.log"))
        assert BootstrapLog.for_base_dir(tmp_path).path == tmp_path / "custom.log"

    def test_write_fatal_format(self, bootstrap_log):
        """
        GOAL: Verify fatal entries have the timestamped header and the trace.

        GUARANTEES:
          - A missing trace is written as "No trace available"
        """
        error = LastError(kind=ErrorKind.FATAL, message="Uncaught RuntimeError: boom", file="/srv/app.py", line=12)

        assert bootstrap_log.write_fatal(error) is True

        content = bootstrap_log.path.read_text(encoding="utf-8")
        assert content.startswith("[")
        assert "] Fatal Error: Uncaught RuntimeError: boom in /srv/app.py on line 12\n" in content
        assert "Stack trace:\nNo trace available\n" in content

    def test_write_bootstrap_failure_format(self, bootstrap_log, raised):
        """
        GOAL: Verify bootstrap failures record message, class, location and trace.
        """
        assert bootstrap_log.write_bootstrap_failure(raised(RuntimeError("settings missing"))) is True

        content = bootstrap_log.path.read_text(encoding="utf-8")
        assert "] Bootstrap Error: settings missing\n" in content
        assert "Exception: RuntimeError\n" in content
        assert "File: " in content and "conftest.py" in content
        assert "Line: " in content
        assert "Trace:\n" in content


class TestFatalErrorLogger:
    """
    Tests for FatalErrorLogger and classify().
    """

    @pytest.mark.parametrize(
        "exc_type,kind",
        [
            (SyntaxError, ErrorKind.PARSE),
            (IndentationError, ErrorKind.PARSE),
            (MemoryError, ErrorKind.CORE),
            (RecursionError, ErrorKind.CORE),
            (ModuleNotFoundError, ErrorKind.COMPILE),
            (RuntimeError, ErrorKind.FATAL),
        ],
    )
    def test_classify(self, exc_type, kind):
        """
        GOAL: Verify uncaught exception types map to their severity tier.
        """
        assert classify(exc_type) is kind

    def test_flush_writes_fatal_error(self, bootstrap_log, raised):
        """
        GOAL: Verify a recorded fatal error is written at exit.
        """
        fatal = FatalErrorLogger(bootstrap_log)
        fatal.record(LastError.from_exception(raised(ImportError("No module named 'config'"))))

        assert fatal.flush() is True

        content = bootstrap_log.path.read_text(encoding="utf-8")
        assert "Fatal Error: Uncaught ImportError: No module named 'config'" in content

    def test_flush_ignores_warnings(self, bootstrap_log):
        """
        GOAL: Verify a warning as the last error leaves the log untouched.
        """
        fatal = FatalErrorLogger(bootstrap_log).install(register_atexit=False)
        try:
            with warnings.catch_warnings():
                warnings.simplefilter("always")
                warnings.warn("old setting", DeprecationWarning)
        finally:
            fatal.uninstall()

        assert fatal.last_error.kind is ErrorKind.WARNING
        assert fatal.flush() is False
        assert not bootstrap_log.path.exists()

    def test_flush_without_error(self, bootstrap_log, monkeypatch):
        """
        GOAL: Verify a clean exit writes nothing.
        """
        monkeypatch.setattr(sys, "last_exc", None, raising=False)
        monkeypatch.setattr(sys, "last_value", None, raising=False)

        assert FatalErrorLogger(bootstrap_log).flush() is False
        assert not bootstrap_log.path.exists()

    def test_flush_uses_interpreter_last_error(self, bootstrap_log, raised, monkeypatch):
        """
        GOAL: Verify the interpreter's last exception is used when no hook recorded one.
        """
        monkeypatch.setattr(sys, "last_exc", None, raising=False)
        monkeypatch.setattr(sys, "last_value", raised(KeyError("DATABASES")), raising=False)

        assert FatalErrorLogger(bootstrap_log).flush() is True
        assert "Uncaught KeyError" in bootstrap_log.path.read_text(encoding="utf-8")

    def test_flush_survives_unwritable_log(self, tmp_path, raised):
        """
        GOAL: Verify write failures at exit are discarded.
        """
        blocker = tmp_path / "blocker"
        blocker.write_text("", encoding="utf-8")
        fatal = FatalErrorLogger(BootstrapLog(blocker / "app.log"))
        fatal.record(LastError.from_exception(raised(RuntimeError("boom"))))

        assert fatal.flush() is False

    def test_excepthook_records_and_delegates(self, bootstrap_log, raised, monkeypatch):
        """
        GOAL: Verify the installed sys.excepthook records the error and calls the previous hook.
        """
        delegated = []
        monkeypatch.setattr(sys, "excepthook", lambda *args: delegated.append(args))
        fatal = FatalErrorLogger(bootstrap_log).install(register_atexit=False)
        exc = raised(RuntimeError("boom"))
        try:
            sys.excepthook(type(exc), exc, exc.__traceback__)
        finally:
            fatal.uninstall()

        assert fatal.last_error.kind is ErrorKind.FATAL
        assert fatal.last_error.message == "Uncaught RuntimeError: boom"
        assert len(delegated) == 1

    def test_thread_exception_is_recoverable(self, bootstrap_log, monkeypatch):
        """
        GOAL: Verify an uncaught thread exception is recorded as RECOVERABLE and is fatal-class.
        """
        monkeypatch.setattr(threading, "excepthook", lambda args: None)
        fatal = FatalErrorLogger(bootstrap_log).install(register_atexit=False)

        def worker():
            raise ValueError("worker failed")

        try:
            thread = threading.Thread(target=worker)
            thread.start()
            thread.join()
        finally:
            fatal.uninstall()

        assert fatal.last_error.kind is ErrorKind.RECOVERABLE
        assert fatal.last_error.is_fatal is True

    def test_install_is_idempotent_and_uninstall_restores(self, bootstrap_log):
        """
        GOAL: Verify installing twice keeps the original hooks restorable.
        """
        original = sys.excepthook
        fatal = FatalErrorLogger(bootstrap_log)

        fatal.install(register_atexit=False)
        fatal.install(register_atexit=False)
        assert fatal.installed is True
        fatal.uninstall()

        assert sys.excepthook is original
        assert fatal.installed is False


class TestBootstrapBoundary:
    """
    Tests for BootstrapBoundary.
    """

    def test_factory_failure_returns_json_500(self, bootstrap_log):
        """
        GOAL: Verify an exception while building the application yields the fixed JSON 500.

        GUARANTEES:
          - Body is exactly {"message":"Server Error"}
          - The failure is written to the bootstrap log
        """
        def factory():
            raise RuntimeError("DJANGO_SETTINGS_MODULE is broken")

        start_response = StartResponse()

        body = BootstrapBoundary(factory, bootstrap_log)(_environ(), start_response)

        assert start_response.status == "500 Internal Server Error"
        assert start_response.headers == {"Content-Type": "application/json"}
        assert start_response.exc_info is not None
        assert b"".join(body) == b'{"message":"Server Error"}'
        assert "Bootstrap Error: DJANGO_SETTINGS_MODULE is broken" in bootstrap_log.path.read_text(encoding="utf-8")

    def test_dispatch_failure_returns_json_500(self, bootstrap_log):
        """
        GOAL: Verify an exception escaping the application call is contained.
        """
        def application(environ, start_response):
            raise KeyError("handler")

        start_response = StartResponse()

        body = BootstrapBoundary(lambda: application, bootstrap_log)(_environ(), start_response)

        assert start_response.status.startswith("500")
        assert json.loads(b"".join(body)) == {"message": "Server Error"}

    def test_log_failure_does_not_change_response(self, tmp_path):
        """
        GOAL: Verify the 500 is still sent when the bootstrap log cannot be written.
        """
        blocker = tmp_path / "blocker"
        blocker.write_text("", encoding="utf-8")

        def factory():
            raise RuntimeError("boom")

        start_response = StartResponse()
        body = BootstrapBoundary(factory, BootstrapLog(blocker / "app.log"))(_environ(), start_response)

        assert start_response.status.startswith("500")
        assert b"".join(body) == b'{"message":"Server Error"}'

    def test_application_is_built_once(self, bootstrap_log):
        """
        GOAL: Verify the factory runs once and the application is reused.
        """
        calls = []

        def factory():
            calls.append(1)
            return _ok_application

        boundary = BootstrapBoundary(factory, bootstrap_log, started_at=0.0)
        boundary(_environ(), StartResponse())
        start_response = StartResponse()
        body = boundary(_environ(), start_response)

        assert len(calls) == 1
        assert start_response.status == "200 OK"
        assert b"".join(body) == b'{"ok":true}'

    def test_failed_bootstrap_is_retried(self, bootstrap_log):
        """
        GOAL: Verify a request after a failed bootstrap tries to build the application again.
        """
        attempts = []

        def factory():
            attempts.append(1)
            if len(attempts) == 1:
                raise RuntimeError("database settings not loaded yet")
            return _ok_application

        boundary = BootstrapBoundary(factory, bootstrap_log)
        first = StartResponse()
        boundary(_environ(), first)
        second = StartResponse()
        boundary(_environ(), second)

        assert first.status.startswith("500")
        assert second.status == "200 OK"
        assert len(attempts) == 2

    def test_maintenance_response_skips_bootstrap(self, bootstrap_log, maintenance):
        """
        GOAL: Verify requests during maintenance get 503 without building the application.
        """
        def factory():
            raise AssertionError("factory must not run during maintenance")

        maintenance.activate(retry=60)
        start_response = StartResponse()

        body = BootstrapBoundary(factory, bootstrap_log, maintenance=maintenance)(_environ("/api/test"), start_response)

        assert start_response.status == "503 Service Unavailable"
        assert start_response.headers["Retry-After"] == "60"
        assert json.loads(b"".join(body)) == {"message": "Service Unavailable"}

    def test_maintenance_excepted_path_is_served(self, bootstrap_log, maintenance):
        """
        GOAL: Verify excepted paths reach the application during maintenance.
        """
        maintenance.activate(except_paths=["up"])
        start_response = StartResponse()

        BootstrapBoundary(lambda: _ok_application, bootstrap_log, maintenance=maintenance)(_environ("/up"), start_response)

        assert start_response.status == "200 OK"


class TestMaintenanceMode:
    """
    Tests for MaintenanceMode and its state file.
    """

    def test_activate_and_deactivate(self, maintenance):
        """
        GOAL: Verify the state file round-trips and removal ends maintenance.
        """
        assert maintenance.is_active() is False
        assert maintenance.state() is None

        maintenance.activate(retry=30, message="Upgrading", except_paths=["up", "api/status"])

        state = maintenance.state()
        assert state.retry == 30
        assert state.message == "Upgrading"
        assert state.except_paths == ["up", "api/status"]
        assert json.loads(maintenance.path.read_text(encoding="utf-8"))["except"] == ["up", "api/status"]

        assert maintenance.deactivate() is True
        assert maintenance.deactivate() is False
        assert maintenance.is_active() is False

    def test_negative_retry_is_rejected(self, maintenance):
        """
        GOAL: Verify invalid state is never written.
        """
        from pydantic import ValidationError

        with pytest.raises(ValidationError):
            maintenance.activate(retry=-1)

        assert maintenance.is_active() is False

    def test_corrupt_state_file_still_counts_as_down(self, maintenance):
        """
        GOAL: Verify an unreadable state file keeps the site down with default state.
        """
        maintenance.path.parent.mkdir(parents=True, exist_ok=True)
        maintenance.path.write_text("{not json", encoding="utf-8")

        state = maintenance.state()

        assert state is not None
        assert state.retry is None
        status, headers, _ = maintenance.response_for("/")
        assert status == "503 Service Unavailable"
        assert "Retry-After" not in dict(headers)

    @pytest.mark.parametrize(
        "path,served",
        [
            ("/up", True),
            ("/up/", True),
            ("/api/status/db", True),
            ("/api/status", False),
            ("/api/test", False),
        ],
    )
    def test_except_patterns(self, maintenance, path, served):
        """
        GOAL: Verify excepted path patterns use the shared wildcard matching.
        """
        maintenance.activate(except_paths=["up", "api/status/*"])

        assert (maintenance.response_for(path) is None) is served
