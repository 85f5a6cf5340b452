"""
Tests for application assembly and the helpers it relies on.
"""

from __future__ import annotations

import dataclasses
import logging
from pathlib import Path

import pytest
from django.core.exceptions import ImproperlyConfigured

from apps.core.application import ApplicationConfig, configure, expects_json, get_application
from apps.core.log_formatting import ContextFormatter
from apps.core.request_utils import get_client_ip, normalize_path, path_matches


class TestApplicationBuilder:
    """
    Tests for configure() / ApplicationBuilder.
    """

    def test_builds_frozen_configuration(self, tmp_path):
        """
        GOAL: Verify every with_* section ends up in the created configuration.

        GUARANTEES:
          - api_prefix and health are normalized
          - The result cannot be modified
        """
        def report(exc):
            return None

        application = (
            configure(base_dir=tmp_path)
            .with_routing(web="routes.web", api="routes.api", commands="routes.console", api_prefix="/api/", health="up/")
            .with_middleware(api_prepend=["corsheaders.middleware.CorsMiddleware"], csrf_except=["api/*"])
            .with_exceptions(render_json_when=lambda request, exc: True, report=report)
            .create()
        )

        assert isinstance(application, ApplicationConfig)
        assert application.base_dir == tmp_path
        assert application.routing.api_prefix == "api"
        assert application.routing.health == "/up"
        assert application.routing.api_patterns == ("api", "api/*")
        assert application.middleware.api_prepend == ("corsheaders.middleware.CorsMiddleware",)
        assert application.middleware.csrf_except == ("api/*",)
        assert application.exceptions.report is report

        with pytest.raises(dataclasses.FrozenInstanceError):
            application.routing = None

    def test_defaults(self, tmp_path):
        """
        GOAL: Verify an application without declarations uses safe defaults.
        """
        application = configure(tmp_path).create()

        assert application.routing.api_prefix == "api"
        assert application.routing.health is None
        assert application.middleware.api_prepend == ()
        assert application.exceptions.should_render_json is expects_json

    @pytest.mark.parametrize("prefix", ["", "/", "//"])
    def test_empty_api_prefix_is_rejected(self, tmp_path, prefix):
        with pytest.raises(ImproperlyConfigured):
            configure(tmp_path).with_routing(api_prefix=prefix)

    def test_later_call_replaces_section(self, tmp_path):
        """
        GOAL: Verify calling a with_* method twice keeps only the last declaration.
        """
        application = (
            configure(tmp_path)
            .with_middleware(csrf_except=["api/*"])
            .with_middleware(csrf_except=["webhooks/*"])
            .create()
        )

        assert application.middleware.csrf_except == ("webhooks/*",)

    def test_expects_json_default_policy(self, rf):
        """
        GOAL: Verify the default render policy follows the Accept header.
        """
        assert expects_json(rf.get("/", HTTP_ACCEPT="application/json"), RuntimeError()) is True
        assert expects_json(rf.get("/", HTTP_ACCEPT="application/problem+json"), RuntimeError()) is True
        assert expects_json(rf.get("/", HTTP_ACCEPT="text/html"), RuntimeError()) is False


class TestGetApplication:
    """
    Tests for get_application().
    """

    def test_returns_configured_application(self, settings):
        """
        GOAL: Verify config/app.py is the active application.
        """
        from apps.core.exceptions import always_render_json, report_exception

        application = get_application()

        assert application.base_dir == Path(settings.BASE_DIR)
        assert application.routing.web == "routes.web"
        assert application.routing.api == "routes.api"
        assert application.routing.commands == "routes.console"
        assert application.routing.health == "/up"
        assert application.middleware.csrf_except == ("api/*",)
        assert application.exceptions.should_render_json is always_render_json
        assert application.exceptions.report is report_exception

    def test_missing_setting(self, settings):
        settings.APPLICATION = ""

        with pytest.raises(ImproperlyConfigured):
            get_application()

    def test_unimportable_path(self, settings):
        settings.APPLICATION = "config.missing.application"

        with pytest.raises(ImproperlyConfigured, match="Cannot import"):
            get_application()

    def test_wrong_type(self, settings):
        settings.APPLICATION = "apps.core.application.configure"

        with pytest.raises(ImproperlyConfigured, match="is not an ApplicationConfig"):
            get_application()


class TestRequestUtils:
    """
    Tests for path matching and client IP helpers.
    """

    @pytest.mark.parametrize(
        "path,expected",
        [("", "/"), ("/", "/"), ("/api/records/", "api/records"), ("api", "api")],
    )
    def test_normalize_path(self, path, expected):
        assert normalize_path(path) == expected

    @pytest.mark.parametrize(
        "path,patterns,matched",
        [
            ("/api", ["api", "api/*"], True),
            ("/api/records/7/notes", ["api/*"], True),
            ("/api", ["api/*"], False),
            ("/apix", ["api", "api/*"], False),
            ("/API/records", ["api/*"], False),
            ("/", ["/"], True),
            ("/up", [], False),
        ],
    )
    def test_path_matches(self, path, patterns, matched):
        """
        GOAL: Verify wildcard matching of request paths.
        """
        assert path_matches(path, patterns) is matched

    def test_client_ip_prefers_forwarded_for(self, rf):
        request = rf.get("/", HTTP_X_FORWARDED_FOR="203.0.113.7, 10.0.0.1", REMOTE_ADDR="10.0.0.2")

        assert get_client_ip(request) == "203.0.113.7"

    def test_client_ip_falls_back(self, rf):
        assert get_client_ip(rf.get("/", HTTP_X_REAL_IP="198.51.100.4")) == "198.51.100.4"
        assert get_client_ip(rf.get("/", REMOTE_ADDR="")) == "unknown"


class TestContextFormatter:
    """
    Tests for the log formatter used by the LOGGING configuration.
    """

    def _record(self, **extra):
        record = logging.LogRecord("apps.core", logging.INFO, __file__, 1, "=== Response ===", None, None)
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_appends_context_as_json(self):
        formatter = ContextFormatter("%(levelname)s %(message)s")

        line = formatter.format(self._record(context={"status_code": 200, "path": Path("/tmp")}))

        assert line == 'INFO === Response === {"status_code": 200, "path": "/tmp"}'

    def test_record_without_context(self):
        formatter = ContextFormatter("%(levelname)s %(message)s")

        assert formatter.format(self._record()) == "INFO === Response ==="


class TestBuildLogging:
    """
    Tests for the LOGGING configuration builder.
    """

    def test_creates_log_directory(self, tmp_path):
        """
        GOAL: Verify the file handler points at the requested log file.
        """
        from config.settings.base import build_logging

        log_file = tmp_path / "logs" / "app.log"

        config = build_logging("INFO", log_file=log_file)

        assert log_file.parent.is_dir()
        assert config["handlers"]["app_file"]["filename"] == str(log_file)
        assert config["loggers"]["apps"]["handlers"] == ["console", "app_file"]

    def test_uncreatable_log_directory_falls_back_to_console(self, settings, tmp_path):
        """
        GOAL: Verify a log directory under a regular file does not break startup.

        GUARANTEES:
          - Loggers only write to the console
          - dictConfig accepts the configuration
        """
        import logging.config

        from config.settings.base import build_logging

        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")

        config = build_logging("INFO", log_file=blocker / "logs" / "app.log")

        for name in ("django", "apps", "config", "routes"):
            assert config["loggers"][name]["handlers"] == ["console"]
        try:
            logging.config.dictConfig(config)
            logging.getLogger("apps.core").info("still logging")
        finally:
            logging.config.dictConfig(settings.LOGGING)
