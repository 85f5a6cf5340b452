"""
Tests for the middleware run in front of API routes.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest
from django.core.exceptions import MiddlewareNotUsed
from django.http import HttpResponse

from apps.core.application import configure


class TagMiddleware:
    """Appends its tag to request.tags on the way in."""

    tag = "outer"

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        request.tags = getattr(request, "tags", []) + [self.tag]
        response = self.get_response(request)
        response["X-Api-Group"] = ",".join(request.tags)
        return response


class InnerTagMiddleware(TagMiddleware):
    tag = "inner"


class UnusedMiddleware:
    def __init__(self, get_response):
        raise MiddlewareNotUsed("disabled for this test")


PIPELINE_APPLICATION = (
    configure(base_dir=Path(__file__).resolve().parents[2])
    .with_routing(api_prefix="/v1/")
    .with_middleware(
        api_prepend=[
            "apps.core.tests_api_pipeline.TagMiddleware",
            "apps.core.tests_api_pipeline.UnusedMiddleware",
            "apps.core.tests_api_pipeline.InnerTagMiddleware",
        ]
    )
    .create()
)


def _ok(request):
    return HttpResponse("OK")


class TestApiMiddlewareGroup:
    """
    Tests for ApiMiddlewareGroup.
    """

    @pytest.mark.parametrize(
        "path,grouped",
        [
            ("/v1", True),
            ("/v1/", True),
            ("/v1/records/7", True),
            ("/v1x", False),
            ("/", False),
            ("/records", False),
        ],
    )
    def test_only_api_paths_pass_through_group(self, rf, settings, path, grouped):
        """
        GOAL: Verify the API middleware runs for <prefix> and <prefix>/* only.
        """
        from apps.core.middleware import ApiMiddlewareGroup

        settings.APPLICATION = "apps.core.tests_api_pipeline.PIPELINE_APPLICATION"

        response = ApiMiddlewareGroup(_ok)(rf.get(path))

        assert ("X-Api-Group" in response) is grouped

    def test_first_entry_is_outermost_and_unused_entries_are_skipped(self, rf, settings):
        """
        GOAL: Verify declared order is preserved and MiddlewareNotUsed entries are dropped.
        """
        from apps.core.middleware import ApiMiddlewareGroup

        settings.APPLICATION = "apps.core.tests_api_pipeline.PIPELINE_APPLICATION"

        response = ApiMiddlewareGroup(_ok)(rf.get("/v1/records"))

        assert response["X-Api-Group"] == "outer,inner"

    def test_describe_pipeline(self, settings):
        """
        GOAL: Verify the pipeline summary reflects the configured application.
        """
        from apps.core.middleware import describe_pipeline

        pipeline = describe_pipeline()

        assert pipeline["api_patterns"] == ["api", "api/*"]
        assert pipeline["csrf_except"] == ["api/*"]
        assert "corsheaders.middleware.CorsMiddleware" in pipeline["api_middleware"]


class TestCorsMiddleware:
    """
    Tests for the CORS settings applied by corsheaders.middleware.CorsMiddleware.
    """

    @pytest.fixture
    def cors_settings(self, settings):
        settings.CORS_URLS_REGEX = r"^/api(/.*)?$"
        settings.CORS_ALLOW_ALL_ORIGINS = False
        settings.CORS_ALLOWED_ORIGINS = ["http://localhost:5173"]
        settings.CORS_ALLOWED_ORIGIN_REGEXES = [r"^https://[a-z]+\.example\.com$"]
        settings.CORS_ALLOW_METHODS = ["GET", "POST"]
        settings.CORS_ALLOW_HEADERS = ["content-type", "authorization"]
        settings.CORS_EXPOSE_HEADERS = []
        settings.CORS_PREFLIGHT_MAX_AGE = 0
        settings.CORS_ALLOW_CREDENTIALS = False
        return settings

    def test_preflight_is_answered_directly(self, rf, cors_settings):
        """
        GOAL: Verify a preflight from an allowed origin gets an empty 200 with the allow headers.

        GUARANTEES:
          - The view is not called
          - Configured methods and headers are listed
        """
        from corsheaders.middleware import CorsMiddleware

        def view(request):
            raise AssertionError("preflight must not reach the view")

        request = rf.options(
            "/api/records",
            HTTP_ORIGIN="http://localhost:5173",
            HTTP_ACCESS_CONTROL_REQUEST_METHOD="POST",
            HTTP_ACCESS_CONTROL_REQUEST_HEADERS="content-type",
        )

        response = CorsMiddleware(view)(request)

        assert response.status_code == 200
        assert response.content == b""
        assert response["Access-Control-Allow-Origin"] == "http://localhost:5173"
        assert response["Access-Control-Allow-Methods"] == "GET, POST"
        assert response["Access-Control-Allow-Headers"] == "content-type, authorization"
        assert "origin" in response["Vary"].lower()
        assert "Access-Control-Max-Age" not in response

    def test_preflight_max_age(self, rf, cors_settings):
        from corsheaders.middleware import CorsMiddleware

        cors_settings.CORS_PREFLIGHT_MAX_AGE = 600
        request = rf.options(
            "/api/records",
            HTTP_ORIGIN="http://localhost:5173",
            HTTP_ACCESS_CONTROL_REQUEST_METHOD="DELETE",
        )

        response = CorsMiddleware(_ok)(request)

        assert response["Access-Control-Max-Age"] == "600"

    def test_preflight_from_unknown_origin_gets_no_allow_headers(self, rf, cors_settings):
        """
        GOAL: Verify a disallowed origin is answered without any Allow-* headers.
        """
        from corsheaders.middleware import CorsMiddleware

        request = rf.options(
            "/api/records",
            HTTP_ORIGIN="https://evil.test",
            HTTP_ACCESS_CONTROL_REQUEST_METHOD="POST",
        )

        response = CorsMiddleware(_ok)(request)

        assert response.status_code == 200
        assert "Access-Control-Allow-Origin" not in response
        assert "Access-Control-Allow-Methods" not in response

    def test_actual_request_from_regex_origin(self, rf, cors_settings):
        """
        GOAL: Verify origins matching a configured regex are allowed on actual requests.
        """
        from corsheaders.middleware import CorsMiddleware

        cors_settings.CORS_EXPOSE_HEADERS = ["X-Request-Id"]

        response = CorsMiddleware(_ok)(rf.get("/api/records", HTTP_ORIGIN="https://app.example.com"))

        assert response.status_code == 200
        assert response.content == b"OK"
        assert response["Access-Control-Allow-Origin"] == "https://app.example.com"
        assert response["Access-Control-Expose-Headers"] == "X-Request-Id"
        assert "Access-Control-Allow-Methods" not in response

    def test_allow_all_origins(self, rf, cors_settings):
        """
        GOAL: Verify "*" is sent literally only when credentials are not allowed.
        """
        from corsheaders.middleware import CorsMiddleware

        cors_settings.CORS_ALLOW_ALL_ORIGINS = True
        response = CorsMiddleware(_ok)(rf.get("/api/records", HTTP_ORIGIN="https://any.test"))
        assert response["Access-Control-Allow-Origin"] == "*"
        assert "Access-Control-Allow-Credentials" not in response

        cors_settings.CORS_ALLOW_CREDENTIALS = True
        response = CorsMiddleware(_ok)(rf.get("/api/records", HTTP_ORIGIN="https://any.test"))
        assert response["Access-Control-Allow-Origin"] == "https://any.test"
        assert response["Access-Control-Allow-Credentials"] == "true"

    @pytest.mark.parametrize("path", ["/records", "/apix", "/up"])
    def test_paths_outside_api_are_untouched(self, rf, cors_settings, path):
        """
        GOAL: Verify CORS handling is limited to CORS_URLS_REGEX.
        """
        from corsheaders.middleware import CorsMiddleware

        response = CorsMiddleware(_ok)(rf.get(path, HTTP_ORIGIN="http://localhost:5173"))

        assert response.content == b"OK"
        assert "Access-Control-Allow-Origin" not in response

    def test_api_root_is_covered(self, rf, cors_settings):
        from corsheaders.middleware import CorsMiddleware

        response = CorsMiddleware(_ok)(rf.get("/api", HTTP_ORIGIN="http://localhost:5173"))

        assert response["Access-Control-Allow-Origin"] == "http://localhost:5173"

    def test_request_without_origin(self, rf, cors_settings):
        """
        GOAL: Verify same-origin requests pass without CORS headers.
        """
        from corsheaders.middleware import CorsMiddleware

        response = CorsMiddleware(_ok)(rf.get("/api/records"))

        assert "Access-Control-Allow-Origin" not in response

    def test_full_stack_preflight(self, client, settings):
        """
        GOAL: Verify the configured API pipeline answers preflights for the default dev origins.
        """
        settings.CORS_ALLOWED_ORIGINS = ["http://localhost:5173"]

        response = client.options(
            "/api/test",
            HTTP_ORIGIN="http://localhost:5173",
            HTTP_ACCESS_CONTROL_REQUEST_METHOD="GET",
        )

        assert response.status_code == 200
        assert response["Access-Control-Allow-Origin"] == "http://localhost:5173"
        assert "GET" in response["Access-Control-Allow-Methods"]


class TestRequestLoggingMiddleware:
    """
    Tests for RequestLoggingMiddleware.
    """

    def test_logs_request_and_response(self, rf, settings, caplog):
        """
        GOAL: Verify one record is written before and one after the view.

        GUARANTEES:
          - Sensitive headers are redacted
          - Redacted body fields are removed
          - Response record carries status, duration and size
        """
        from apps.core.request_logging import RequestLoggingMiddleware

        settings.REQUEST_LOG_REDACTED_FIELDS = ["password", "token"]
        request = rf.post(
            "/api/login?next=home",
            data=json.dumps({"email": "user@example.com", "password": "hunter2"}),
            content_type="application/json",
            HTTP_AUTHORIZATION="Bearer abc",
            HTTP_USER_AGENT="pytest",
            HTTP_ACCEPT="application/json",
        )

        with caplog.at_level(logging.INFO, logger="apps.core.request_logging"):
            response = RequestLoggingMiddleware(lambda r: HttpResponse("created", status=201))(request)

        assert response.status_code == 201
        incoming, outgoing = caplog.records[-2:]

        assert incoming.message == "=== Incoming Request ==="
        assert incoming.context["method"] == "POST"
        assert incoming.context["path"] == "api/login"
        assert incoming.context["url"].endswith("/api/login?next=home")
        assert incoming.context["query_params"] == {"next": "home"}
        assert incoming.context["headers"]["Authorization"] == "[REDACTED]"
        assert incoming.context["user_agent"] == "pytest"
        assert incoming.context["request_body"] == {"email": "user@example.com"}
        assert incoming.context["accept"] == "application/json"
        assert "hunter2" not in json.dumps(incoming.context)

        assert outgoing.message == "=== Response ==="
        assert outgoing.context["status_code"] == 201
        assert outgoing.context["response_size"] == len(b"created")
        assert outgoing.context["duration_ms"] >= 0

    def test_form_body_is_logged(self, rf, caplog):
        """
        GOAL: Verify form-encoded bodies are logged as a flat dict.
        """
        from apps.core.request_logging import RequestLoggingMiddleware

        with caplog.at_level(logging.INFO, logger="apps.core.request_logging"):
            RequestLoggingMiddleware(_ok)(rf.post("/api/records", data={"title": "Draft", "token": "t-1"}))

        assert caplog.records[-2].context["request_body"] == {"title": "Draft"}

    def test_invalid_json_body_is_skipped(self, rf, caplog):
        """
        GOAL: Verify an unparsable body is logged as empty and the request still proceeds.
        """
        from apps.core.request_logging import RequestLoggingMiddleware

        request = rf.post("/api/records", data="{broken", content_type="application/json")

        with caplog.at_level(logging.INFO, logger="apps.core.request_logging"):
            response = RequestLoggingMiddleware(_ok)(request)

        assert response.status_code == 200
        assert caplog.records[-2].context["request_body"] == {}

    def test_non_object_json_body(self, rf, caplog):
        """
        GOAL: Verify a JSON array body is logged under "_json".
        """
        from apps.core.request_logging import RequestLoggingMiddleware

        request = rf.post("/api/records", data="[1, 2]", content_type="application/json")

        with caplog.at_level(logging.INFO, logger="apps.core.request_logging"):
            RequestLoggingMiddleware(_ok)(request)

        assert caplog.records[-2].context["request_body"] == {"_json": [1, 2]}


class TestRequireDatabaseConnection:
    """
    Tests for the database guard middleware.
    """

    def test_disabled_by_default(self, settings):
        """
        GOAL: Verify the guard removes itself when REQUIRE_DATABASE_CONNECTION is off.
        """
        from apps.core.database_guard import RequireDatabaseConnection

        with pytest.raises(MiddlewareNotUsed):
            RequireDatabaseConnection(_ok)

    def test_disallowed_vendor_is_rejected(self, rf, settings, caplog):
        """
        GOAL: Verify a connection of a disallowed vendor answers 500 without reaching the view.
        """
        from apps.core.database_guard import RequireDatabaseConnection

        settings.REQUIRE_DATABASE_CONNECTION = True
        settings.DATABASE_ALLOWED_VENDORS = ["mysql"]

        with caplog.at_level(logging.ERROR, logger="apps.core.database_guard"):
            response = RequireDatabaseConnection(_ok)(rf.get("/api/records"))

        assert response.status_code == 500
        assert response.json() == {
            "error": "Database configuration error",
            "message": "Only mysql connections are allowed.",
        }
        assert caplog.records[-1].context["vendor"] == "sqlite"

    def test_connection_failure_is_rejected(self, rf, settings, monkeypatch):
        """
        GOAL: Verify an unreachable database answers 500 with the connection error body.
        """
        from django.db import OperationalError, connections

        from apps.core.database_guard import RequireDatabaseConnection

        settings.REQUIRE_DATABASE_CONNECTION = True
        settings.DATABASE_ALLOWED_VENDORS = ["sqlite"]

        def refuse():
            raise OperationalError("connection refused")

        monkeypatch.setattr(connections["default"], "ensure_connection", refuse)

        response = RequireDatabaseConnection(_ok)(rf.get("/api/records"))

        assert response.status_code == 500
        assert response.json()["error"] == "Database connection failed"

    def test_reachable_database_passes(self, rf, settings, monkeypatch):
        """
        GOAL: Verify requests proceed when the vendor is allowed and the connection succeeds.
        """
        from django.db import connections

        from apps.core.database_guard import RequireDatabaseConnection

        settings.REQUIRE_DATABASE_CONNECTION = True
        settings.DATABASE_ALLOWED_VENDORS = ["sqlite"]
        monkeypatch.setattr(connections["default"], "ensure_connection", lambda: None)

        response = RequireDatabaseConnection(_ok)(rf.get("/api/records"))

        assert response.status_code == 200

    @pytest.mark.parametrize("path", ["/up", "/up/ready"])
    def test_health_paths_are_never_blocked(self, rf, settings, path):
        """
        GOAL: Verify health checks stay reachable while the database is unusable.
        """
        from apps.core.database_guard import RequireDatabaseConnection

        settings.REQUIRE_DATABASE_CONNECTION = True
        settings.DATABASE_ALLOWED_VENDORS = ["mysql"]

        response = RequireDatabaseConnection(_ok)(rf.get(path))

        assert response.status_code == 200
