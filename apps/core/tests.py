"""
Tests for the JSON exception pipeline, error views and core endpoints.
"""

from __future__ import annotations

import logging
from pathlib import Path

import pytest
from django.core.exceptions import ObjectDoesNotExist, SuspiciousOperation
from django.http import Http404

from apps.core.application import configure
from apps.core.exceptions import report_exception


class TestRenderPolicy:
    """
    Tests for the always_render_json policy.
    """

    def test_browser_request_gets_json(self, rf, raised):
        """
        GOAL: Verify a browser request with a generic exception is rendered as JSON.

        GUARANTEES:
          - Policy answers True without an Accept header asking for JSON
        """
        from apps.core.exceptions import always_render_json

        request = rf.get("/", HTTP_ACCEPT="text/html")

        assert always_render_json(request, raised(RuntimeError("boom"))) is True

    def test_api_validation_error_gets_json(self, rf):
        """
        GOAL: Verify an API request with a validation error is rendered as JSON.
        """
        from apps.core.exceptions import ValidationError, always_render_json

        request = rf.post("/api/records", HTTP_ACCEPT="application/json")

        assert always_render_json(request, ValidationError(details={"name": ["required"]})) is True


class TestExceptionContext:
    """
    Tests for exception_context().
    """

    def test_context_describes_exception(self, raised):
        """
        GOAL: Verify the context contains every documented key.

        GUARANTEES:
          - exception, message, trace, file, line, code, previous are present
          - file and line point at the raise site
        """
        from apps.core.exceptions import exception_context

        context = exception_context(raised(RuntimeError("boom")))

        assert set(context) == {"exception", "message", "trace", "file", "line", "code", "previous"}
        assert context["exception"] == "RuntimeError"
        assert context["message"] == "boom"
        assert context["file"].endswith("conftest.py")
        assert context["line"] > 0
        assert context["trace"]
        assert context["code"] == 0
        assert context["previous"] is None

    def test_context_includes_previous_exception(self, raised):
        """
        GOAL: Verify the immediate cause is described under "previous".

        GUARANTEES:
          - previous has class, message and trace of the cause
        """
        from apps.core.exceptions import exception_context

        exc = raised(RuntimeError("Query failed"), cause=ValueError("bad input"))

        previous = exception_context(exc)["previous"]

        assert previous["class"] == "ValueError"
        assert previous["message"] == "bad input"
        assert "trace" in previous

    def test_implicit_context_counts_as_previous(self):
        """
        GOAL: Verify an exception raised while handling another reports it as previous.
        """
        from apps.core.exceptions import exception_context

        try:
            try:
                raise KeyError("missing")
            except KeyError:
                raise RuntimeError("lookup failed")
        except RuntimeError as exc:
            context = exception_context(exc)

        assert context["previous"]["class"] == "KeyError"

    def test_oserror_code_is_errno(self, raised):
        """
        GOAL: Verify OSError contributes its errno as the code.
        """
        from apps.core.exceptions import exception_context

        context = exception_context(raised(FileNotFoundError(2, "No such file")))

        assert context["code"] == 2

    def test_class_name_is_module_qualified_for_non_builtins(self, raised):
        """
        GOAL: Verify application exceptions are named with their module.
        """
        from apps.core.exceptions import NotFoundError, exception_context

        context = exception_context(raised(NotFoundError()))

        assert context["exception"] == "apps.core.exceptions.NotFoundError"


class TestReportException:
    """
    Tests for report_exception().
    """

    def test_logs_single_error_record_with_context(self, raised, caplog, monkeypatch):
        """
        GOAL: Verify reporting writes one error record and forwards to Sentry.

        GUARANTEES:
          - Record message is "Unhandled exception" at ERROR level
          - Record context matches exception_context()
          - Sentry receives the context without the trace
        """
        from apps.core import exceptions

        sent = []
        monkeypatch.setattr(
            exceptions,
            "capture_exception",
            lambda exc, extra=None, tags=None: sent.append((exc, extra, tags)),
        )
        exc = raised(RuntimeError("boom"))

        with caplog.at_level(logging.ERROR, logger="apps.core.exceptions"):
            exceptions.report_exception(exc)

        records = [record for record in caplog.records if record.message == "Unhandled exception"]
        assert len(records) == 1
        assert records[0].levelno == logging.ERROR
        assert records[0].context["exception"] == "RuntimeError"
        assert records[0].context["message"] == "boom"

        assert len(sent) == 1
        assert sent[0][0] is exc
        assert "trace" not in sent[0][1]
        assert sent[0][2] == {"exception": "RuntimeError"}


class TestRenderException:
    """
    Tests for exception_payload() and render_exception().
    """

    def test_server_error_hides_details(self, rf, settings, raised):
        """
        GOAL: Verify a generic exception becomes a bare 500 outside DEBUG.
        """
        from apps.core.exceptions import render_exception

        response = render_exception(rf.get("/"), raised(RuntimeError("secret detail")))

        assert response.status_code == 500
        assert response["Content-Type"] == "application/json"
        assert response.json() == {"message": "Server Error"}

    def test_debug_adds_exception_details(self, rf, settings, raised):
        """
        GOAL: Verify DEBUG responses carry the message, class, location and trace.

        GUARANTEES:
          - trace is a list of {file, line, function} frames
        """
        from apps.core.exceptions import render_exception

        settings.DEBUG = True

        payload = render_exception(rf.get("/"), raised(RuntimeError("secret detail"))).json()

        assert payload["message"] == "secret detail"
        assert payload["exception"] == "RuntimeError"
        assert payload["file"].endswith("conftest.py")
        assert payload["line"] > 0
        assert set(payload["trace"][-1]) == {"file", "line", "function"}

    @pytest.mark.parametrize(
        "exc,status,message",
        [
            (Http404("gone"), 404, "Not Found"),
            (SuspiciousOperation("Invalid host"), 400, "Bad Request"),
            (ObjectDoesNotExist(), 404, "Not Found"),
        ],
    )
    def test_client_errors_use_status_phrase(self, rf, exc, status, message):
        """
        GOAL: Verify 4xx framework exceptions are rendered with their status phrase.
        """
        from apps.core.exceptions import render_exception

        response = render_exception(rf.get("/"), exc)

        assert response.status_code == status
        assert response.json() == {"message": message}

    def test_permission_denied_uses_exception_message(self, rf):
        """
        GOAL: Verify PermissionDenied is 403 with its own message or the default one.
        """
        from django.core.exceptions import PermissionDenied

        from apps.core.exceptions import render_exception

        assert render_exception(rf.get("/"), PermissionDenied("Not yours.")).json() == {"message": "Not yours."}

        response = render_exception(rf.get("/"), PermissionDenied())
        assert response.status_code == 403
        assert response.json() == {"message": "This action is unauthorized."}

    def test_django_validation_error_is_422_with_errors(self, rf, settings):
        """
        GOAL: Verify Django validation errors are 422 with field errors and no debug details.
        """
        from django.core.exceptions import ValidationError

        from apps.core.exceptions import render_exception

        settings.DEBUG = True

        response = render_exception(rf.post("/api/records"), ValidationError({"name": ["This field is required."]}))

        assert response.status_code == 422
        assert response.json() == {
            "message": "The given data was invalid.",
            "errors": {"name": ["This field is required."]},
        }

    def test_django_validation_error_without_fields(self, rf):
        """
        GOAL: Verify message-only validation errors are listed under non_field_errors.
        """
        from django.core.exceptions import ValidationError

        from apps.core.exceptions import render_exception

        payload = render_exception(rf.get("/"), ValidationError("Broken.")).json()

        assert payload["errors"] == {"non_field_errors": ["Broken."]}

    def test_api_validation_error(self, rf):
        """
        GOAL: Verify the application ValidationError carries code and errors.
        """
        from apps.core.exceptions import ValidationError, render_exception

        response = render_exception(rf.get("/"), ValidationError(details={"email": ["Already taken."]}))

        assert response.status_code == 422
        assert response.json() == {
            "message": "The given data was invalid.",
            "code": "VALIDATION_ERROR",
            "errors": {"email": ["Already taken."]},
        }

    @pytest.mark.parametrize(
        "name,status",
        [
            ("AuthenticationError", 401),
            ("PermissionError", 403),
            ("NotFoundError", 404),
            ("ServiceUnavailableError", 503),
        ],
    )
    def test_api_errors_use_their_status(self, rf, name, status):
        """
        GOAL: Verify each application error maps to its own status and code.
        """
        from apps.core import exceptions

        exc = getattr(exceptions, name)()
        response = exceptions.render_exception(rf.get("/"), exc)

        assert response.status_code == status
        assert response.json() == {"message": exc.message, "code": exc.error_code}

    def test_drf_validation_error(self, rf):
        """
        GOAL: Verify DRF validation errors follow the same 422 shape.
        """
        from rest_framework.exceptions import ValidationError

        from apps.core.exceptions import render_exception

        response = render_exception(rf.get("/"), ValidationError({"title": ["Too long."]}))

        assert response.status_code == 422
        assert response.json() == {"message": "The given data was invalid.", "errors": {"title": ["Too long."]}}

    def test_drf_throttled_sets_retry_after(self, rf):
        """
        GOAL: Verify throttled requests get 429 and a Retry-After header.
        """
        from rest_framework.exceptions import Throttled

        from apps.core.exceptions import render_exception

        response = render_exception(rf.get("/"), Throttled(wait=30))

        assert response.status_code == 429
        assert response["Retry-After"] == "30"
        assert "message" in response.json()

    def test_only_server_errors_are_reportable(self):
        """
        GOAL: Verify client errors are not reportable while server errors are.
        """
        from django.http import Http404

        from apps.core.exceptions import NotFoundError, ServiceUnavailableError, is_reportable

        assert is_reportable(RuntimeError()) is True
        assert is_reportable(ServiceUnavailableError()) is True
        assert is_reportable(Http404()) is False
        assert is_reportable(NotFoundError()) is False


class TestJsonExceptionMiddleware:
    """
    Tests for JsonExceptionMiddleware.process_exception().
    """

    def test_server_error_is_reported_and_rendered(self, rf, raised, caplog):
        """
        GOAL: Verify an unhandled view exception is logged and rendered as JSON 500.
        """
        from django.http import HttpResponse

        from apps.core.middleware import JsonExceptionMiddleware

        middleware = JsonExceptionMiddleware(lambda request: HttpResponse("OK"))

        with caplog.at_level(logging.ERROR):
            response = middleware.process_exception(rf.get("/"), raised(RuntimeError("boom")))

        assert response.status_code == 500
        assert response.json() == {"message": "Server Error"}
        assert any(record.message == "Unhandled exception" for record in caplog.records)

    def test_client_error_is_not_reported(self, rf, caplog):
        """
        GOAL: Verify 4xx exceptions are rendered without an error record.
        """
        from django.http import Http404, HttpResponse

        from apps.core.middleware import JsonExceptionMiddleware

        middleware = JsonExceptionMiddleware(lambda request: HttpResponse("OK"))

        with caplog.at_level(logging.ERROR):
            response = middleware.process_exception(rf.get("/api/records/9"), Http404("No record"))

        assert response.status_code == 404
        assert not any(record.message == "Unhandled exception" for record in caplog.records)

    def test_declined_policy_leaves_exception_to_django(self, rf, settings):
        """
        GOAL: Verify nothing is rendered when the render policy answers False.
        """
        from django.http import HttpResponse

        from apps.core.middleware import JsonExceptionMiddleware

        settings.APPLICATION = "apps.core.tests.HTML_APPLICATION"
        middleware = JsonExceptionMiddleware(lambda request: HttpResponse("OK"))

        assert middleware.process_exception(rf.get("/"), RuntimeError("boom")) is None


class TestApiExceptionHandler:
    """
    Tests for the DRF exception handler.
    """

    def test_renders_with_application_callbacks(self, rf, raised, caplog):
        """
        GOAL: Verify DRF view exceptions are reported and rendered like other exceptions.
        """
        from apps.core.exceptions import api_exception_handler

        with caplog.at_level(logging.ERROR):
            response = api_exception_handler(raised(RuntimeError("boom")), {"request": rf.get("/api/test"), "view": None})

        assert response.status_code == 500
        assert response.json() == {"message": "Server Error"}
        assert any(record.message == "Unhandled exception" for record in caplog.records)

    def test_declined_policy_falls_back_to_drf(self, rf, settings):
        """
        GOAL: Verify DRF's default handler is used when the policy declines.

        GUARANTEES:
          - DRF handles its own exceptions (Response with "detail")
          - Unknown exceptions return None so DRF re-raises them
        """
        from rest_framework.exceptions import NotFound
        from rest_framework.response import Response

        from apps.core.exceptions import api_exception_handler

        settings.APPLICATION = "apps.core.tests.HTML_APPLICATION"
        context = {"request": rf.get("/api/test"), "view": None}

        response = api_exception_handler(NotFound(), context)
        assert isinstance(response, Response)
        assert response.status_code == 404
        assert api_exception_handler(RuntimeError("boom"), context) is None


class TestErrorViews:
    """
    Tests for the JSON handlerXXX views and the CSRF failure view.
    """

    def test_unknown_url_returns_json_404(self, client):
        """
        GOAL: Verify unmatched URLs are answered by the JSON 404 handler.
        """
        response = client.get("/does-not-exist")

        assert response.status_code == 404
        assert response["Content-Type"] == "application/json"
        assert response.json() == {"message": "Not Found"}

    def test_server_error_reports_active_exception(self, rf, caplog):
        """
        GOAL: Verify handler500 reports and renders the exception being handled.
        """
        from apps.core.error_views import server_error

        with caplog.at_level(logging.ERROR):
            try:
                raise RuntimeError("middleware failed")
            except RuntimeError:
                response = server_error(rf.get("/"))

        assert response.status_code == 500
        assert response.json() == {"message": "Server Error"}
        assert any(record.message == "Unhandled exception" for record in caplog.records)

    def test_server_error_without_exception(self, rf):
        """
        GOAL: Verify handler500 still answers when no exception is active.
        """
        from apps.core.error_views import server_error

        response = server_error(rf.get("/"))

        assert response.status_code == 500
        assert response.json() == {"message": "Server Error"}

    def test_server_error_never_downgrades_status(self, rf):
        """
        GOAL: Verify handler500 answers 500 even when the active exception maps to 4xx.
        """
        from django.http import Http404

        from apps.core.error_views import server_error

        try:
            raise Http404("gone")
        except Http404:
            response = server_error(rf.get("/"))

        assert response.status_code == 500

    def test_csrf_failure_hides_reason(self, rf, caplog):
        """
        GOAL: Verify CSRF rejections are 403 with a fixed message; the reason is only logged.
        """
        from apps.core.error_views import csrf_failure

        with caplog.at_level(logging.WARNING, logger="apps.core.error_views"):
            response = csrf_failure(rf.post("/"), reason="CSRF cookie not set.")

        assert response.status_code == 403
        assert response.json() == {"message": "CSRF token mismatch."}
        assert caplog.records[-1].context["reason"] == "CSRF cookie not set."


class TestCsrfProtection:
    """
    Tests for PathExemptCsrfViewMiddleware.
    """

    @staticmethod
    def _view(request):
        from django.http import HttpResponse

        return HttpResponse("OK")

    def test_api_paths_are_exempt(self, rf):
        """
        GOAL: Verify POSTs to api/* skip CSRF validation.
        """
        from django.http import HttpResponse

        from apps.core.csrf_protection import PathExemptCsrfViewMiddleware

        middleware = PathExemptCsrfViewMiddleware(lambda request: HttpResponse("OK"))
        request = rf.post("/api/records", data={"name": "x"})

        assert middleware.is_exempt(request) is True
        assert middleware.process_view(request, self._view, (), {}) is None

    def test_api_prefix_itself_is_not_exempt(self, rf):
        """
        GOAL: Verify "api/*" does not cover the bare "/api" path.
        """
        from django.http import HttpResponse

        from apps.core.csrf_protection import PathExemptCsrfViewMiddleware

        middleware = PathExemptCsrfViewMiddleware(lambda request: HttpResponse("OK"))

        assert middleware.is_exempt(rf.post("/api")) is False

    def test_web_paths_are_validated(self, rf):
        """
        GOAL: Verify POSTs outside the exempt paths are rejected without a token.
        """
        from django.http import HttpResponse

        from apps.core.csrf_protection import PathExemptCsrfViewMiddleware

        middleware = PathExemptCsrfViewMiddleware(lambda request: HttpResponse("OK"))

        response = middleware.process_view(rf.post("/records", data={"name": "x"}), self._view, (), {})

        assert response.status_code == 403
        assert response.json() == {"message": "CSRF token mismatch."}

    def test_full_stack_rejects_web_post_without_token(self, settings):
        """
        GOAL: Verify the configured middleware stack rejects a tokenless browser POST.
        """
        from django.test import Client

        response = Client(enforce_csrf_checks=True).post("/", data={"name": "x"})

        assert response.status_code == 403
        assert response.json() == {"message": "CSRF token mismatch."}


class TestEndpoints:
    """
    Integration tests for the web, API and health routes.
    """

    def test_welcome(self, client):
        """
        GOAL: Verify the landing endpoint describes the service.
        """
        response = client.get("/")

        assert response.status_code == 200
        payload = response.json()
        assert payload["name"] == "Frontdesk"
        assert payload["framework"].startswith("Django ")
        assert payload["api"] == "/api"
        assert payload["health"] == "/up"

    def test_api_test_endpoint(self, client, caplog):
        """
        GOAL: Verify GET /api/test answers through the API pipeline.
        """
        with caplog.at_level(logging.INFO, logger="apps.core.views"):
            response = client.get("/api/test")

        assert response.status_code == 200
        assert response.json() == {"message": "API is working"}
        assert any(record.message == "Test endpoint called" for record in caplog.records)

    def test_api_method_not_allowed_is_json(self, client):
        """
        GOAL: Verify DRF errors on API routes use the shared JSON shape.
        """
        response = client.post("/api/test", data={}, content_type="application/json")

        assert response.status_code == 405
        assert response.json() == {"message": 'Method "POST" not allowed.'}

    def test_health_check(self, client):
        """
        GOAL: Verify /up returns 200 without touching the database.

        GUARANTEES:
          - Response is JSON with status "ok" and a timestamp
        """
        response = client.get("/up")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert "timestamp" in data

    @pytest.mark.django_db
    def test_readiness_check(self, client):
        """
        GOAL: Verify /up/ready checks the database and the cache.
        """
        response = client.get("/up/ready")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["checks"]["database"]["status"] == "ok"
        assert data["checks"]["database"]["vendor"] == "sqlite"
        assert data["checks"]["cache"]["status"] == "ok"

    @pytest.mark.django_db
    def test_readiness_check_reports_broken_database(self, client, monkeypatch):
        """
        GOAL: Verify /up/ready returns 503 when the database check fails.
        """
        from django.db import OperationalError, connections

        def broken_cursor():
            raise OperationalError("connection refused")

        monkeypatch.setattr(connections["default"], "cursor", broken_cursor)

        response = client.get("/up/ready")

        assert response.status_code == 503
        data = response.json()
        assert data["status"] == "not_ready"
        assert data["checks"]["database"]["status"] == "error"
        assert "connection refused" in data["checks"]["database"]["error"]


class TestSentryMonitoring:
    """
    Tests for apps.core.monitoring.
    """

    def test_empty_dsn_disables_monitoring(self, monkeypatch):
        """
        GOAL: Verify an empty DSN leaves Sentry uninitialized.
        """
        from apps.core import monitoring

        monkeypatch.setattr(monitoring, "_sentry_enabled", False)
        called = []
        monkeypatch.setattr("apps.core.monitoring.sentry_init", lambda **kwargs: called.append(kwargs))

        assert monitoring.init_sentry("") is False
        assert monitoring.is_sentry_enabled() is False
        assert called == []

    def test_init_with_dsn(self, monkeypatch):
        """
        GOAL: Verify a DSN initializes Sentry with environment and release.
        """
        from apps.core import monitoring

        monkeypatch.setattr(monitoring, "_sentry_enabled", False)
        calls = []
        monkeypatch.setattr("apps.core.monitoring.sentry_init", lambda **kwargs: calls.append(kwargs))

        assert monitoring.init_sentry("https://key@sentry.example.com/1", environment="staging", release="1.0.0") is True
        assert monitoring.is_sentry_enabled() is True
        assert calls[0]["environment"] == "staging"
        assert calls[0]["release"] == "1.0.0"

    def test_init_failure_is_not_raised(self, monkeypatch):
        """
        GOAL: Verify SDK errors during init leave monitoring disabled.
        """
        from apps.core import monitoring

        monkeypatch.setattr(monitoring, "_sentry_enabled", False)

        def failing_init(**kwargs):
            raise ValueError("bad dsn")

        monkeypatch.setattr("apps.core.monitoring.sentry_init", failing_init)

        assert monitoring.init_sentry("not-a-dsn") is False
        assert monitoring.is_sentry_enabled() is False

    def test_capture_skipped_when_disabled(self, monkeypatch):
        """
        GOAL: Verify nothing is sent while monitoring is disabled.
        """
        from apps.core import monitoring

        monkeypatch.setattr(monitoring, "_sentry_enabled", False)

        assert monitoring.capture_exception(RuntimeError("boom")) is None

    def test_capture_returns_event_id(self, monkeypatch):
        """
        GOAL: Verify the Sentry event id is returned when monitoring is enabled.
        """
        from apps.core import monitoring

        monkeypatch.setattr(monitoring, "_sentry_enabled", True)
        monkeypatch.setattr("apps.core.monitoring.sentry_capture_exception", lambda exc: "evt-1")

        assert monitoring.capture_exception(RuntimeError("boom"), extra={"line": 1}, tags={"exception": "RuntimeError"}) == "evt-1"


class TestDatabaseDiagnostics:
    """
    Tests for the startup database connection log.
    """

    def test_mask_password(self):
        """
        GOAL: Verify passwords are masked with at most eight asterisks.
        """
        from apps.core.diagnostics import mask_password

        assert mask_password("abc") == "***"
        assert mask_password("a-very-long-password") == "********"
        assert mask_password("") == "not set"
        assert mask_password(None) == "not set"

    def test_logs_connection_without_password(self, caplog):
        """
        GOAL: Verify the connection summary is logged and never contains the raw password.
        """
        from apps.core.diagnostics import log_database_connection_info

        with caplog.at_level(logging.INFO, logger="apps.core.diagnostics"):
            context = log_database_connection_info()

        assert context["connection"] == "default"
        assert context["vendor"] == "sqlite"
        assert context["password"] == "not set"
        assert "default" in context["available_connections"]
        assert context["full_dsn"].startswith("sqlite://")
        assert caplog.records[-1].message == "=== Database Connection Information ==="

    def test_unknown_alias_logs_warning(self, caplog):
        """
        GOAL: Verify an unknown alias is reported as a warning, not raised.
        """
        from apps.core.diagnostics import log_database_connection_info

        with caplog.at_level(logging.WARNING, logger="apps.core.diagnostics"):
            assert log_database_connection_info("missing") == {}

        assert caplog.records[-1].levelno == logging.WARNING


def _html_only(request, exc):
    return False


HTML_APPLICATION = (
    configure(base_dir=Path(__file__).resolve().parents[2])
    .with_routing(web="routes.web", api="routes.api", api_prefix="api", health="/up")
    .with_middleware(csrf_except=["api/*"])
    .with_exceptions(render_json_when=_html_only, report=report_exception)
    .create()
)
