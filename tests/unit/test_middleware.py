"""
Unit tests for middleware.
"""

import json
import logging
from datetime import datetime, timezone
from http import HTTPStatus

import pytest

from httpbind.binding import UnsupportedContentType
from httpbind.http.request import HTTPParseError, HTTPRequest
from httpbind.http.response import HTTPResponse, ok
from httpbind.middleware import (
    FunctionMiddleware,
    LoggingMiddleware,
    MiddlewarePipeline,
    RecoveryMiddleware,
    RequestLog,
    function_middleware,
)
from httpbind.middleware.logging import format_latency


def make_request(method: str = "POST", path: str = "/postquery") -> HTTPRequest:
    return HTTPRequest(
        method=method,
        path=path,
        headers={"user-agent": "curl/8.0.1"},
        client_address=("10.0.0.7", 51000),
    )


def hello(request: HTTPRequest) -> HTTPResponse:
    return ok("hello")


def boom(request: HTTPRequest) -> HTTPResponse:
    raise RuntimeError("database is down")


class TestMiddlewarePipeline:
    """Ordering of application-wide middleware."""

    def test_first_added_runs_outermost(self):
        calls = []

        def tracer(name):
            def mw(request, next):
                calls.append(name)
                return next(request)
            return FunctionMiddleware(mw, name=name)

        pipeline = MiddlewarePipeline().use(tracer("outer"), tracer("inner"))
        pipeline.wrap(hello)(make_request())

        assert calls == ["outer", "inner"]
        assert len(pipeline) == 2
        assert [m.name for m in pipeline] == ["outer", "inner"]

    def test_short_circuit(self):
        @function_middleware
        def deny(request, next):
            return HTTPResponse(status=HTTPStatus.FORBIDDEN)

        handler = MiddlewarePipeline().add(deny).wrap(boom)

        assert handler(make_request()).status == HTTPStatus.FORBIDDEN
        assert deny.name == "deny"


class TestAccessLog:
    """The access line format."""

    def test_format_latency(self):
        assert format_latency(0.00000042) == "420ns"
        assert format_latency(0.0005123) == "512.3µs"
        assert format_latency(0.0123) == "12.3ms"
        assert format_latency(2.5) == "2.500s"

    def test_request_log_text(self):
        entry = RequestLog(
            client_ip="127.0.0.1",
            timestamp=datetime(2018, 4, 16, 10, 55, 36, tzinfo=timezone.utc),
            method="POST",
            path="/postquery",
            proto="HTTP/1.1",
            status_code=200,
            latency=0.0005123,
            user_agent="curl/8.0.1",
            error="",
        )

        assert entry.to_text() == (
            '127.0.0.1 - [Mon, 16 Apr 2018 10:55:36 UTC] '
            '"POST /postquery HTTP/1.1 200 512.3µs "curl/8.0.1" "'
        )

    def test_request_log_dict(self):
        entry = RequestLog(
            client_ip="127.0.0.1",
            timestamp=datetime(2018, 4, 16, tzinfo=timezone.utc),
            method="GET",
            path="/",
            proto="HTTP/1.1",
            status_code=404,
            latency=0.25,
            user_agent="",
            error="not found",
        )

        data = entry.to_dict()

        assert data["status_code"] == 404
        assert data["latency_ms"] == 250.0
        assert data["error"] == "not found"


class TestLoggingMiddleware:
    """One log record per request."""

    def test_logs_text_line(self, caplog):
        handler = MiddlewarePipeline().add(LoggingMiddleware()).wrap(hello)

        with caplog.at_level(logging.INFO, logger="httpbind.access"):
            handler(make_request())

        records = [r for r in caplog.records if r.name == "httpbind.access"]
        assert len(records) == 1
        message = records[0].getMessage()
        assert message.startswith("10.0.0.7 - [")
        assert '"POST /postquery HTTP/1.1 200 ' in message
        assert '"curl/8.0.1"' in message

    def test_logs_json(self, caplog):
        handler = MiddlewarePipeline().add(LoggingMiddleware(log_format="json")).wrap(hello)

        with caplog.at_level(logging.INFO, logger="httpbind.access"):
            handler(make_request())

        data = json.loads(caplog.records[-1].getMessage())
        assert data["client_ip"] == "10.0.0.7"
        assert data["status_code"] == 200

    def test_error_column_and_level(self, caplog):
        pipeline = MiddlewarePipeline().use(LoggingMiddleware(), RecoveryMiddleware())
        handler = pipeline.wrap(boom)

        with caplog.at_level(logging.INFO, logger="httpbind"):
            response = handler(make_request())

        access = [r for r in caplog.records if r.name == "httpbind.access"]
        assert response.status == HTTPStatus.INTERNAL_SERVER_ERROR
        assert access[0].levelno == logging.ERROR
        assert "RuntimeError: database is down" in access[0].getMessage()

    def test_skip_paths(self, caplog):
        handler = MiddlewarePipeline().add(LoggingMiddleware(skip_paths=["/health"])).wrap(hello)

        with caplog.at_level(logging.INFO, logger="httpbind.access"):
            handler(make_request("GET", "/health"))

        assert not [r for r in caplog.records if r.name == "httpbind.access"]

    def test_exception_is_logged_and_reraised(self, caplog):
        handler = MiddlewarePipeline().add(LoggingMiddleware()).wrap(boom)

        with caplog.at_level(logging.INFO, logger="httpbind.access"):
            with pytest.raises(RuntimeError):
                handler(make_request())

        assert "Request failed" in caplog.records[-1].getMessage()

    def test_invalid_format(self):
        with pytest.raises(ValueError):
            LoggingMiddleware(log_format="xml")


class TestRecoveryMiddleware:
    """Exceptions become responses."""

    def test_unhandled_exception_is_500(self, caplog):
        handler = MiddlewarePipeline().add(RecoveryMiddleware()).wrap(boom)

        with caplog.at_level(logging.ERROR):
            response = handler(make_request())

        assert response.status == HTTPStatus.INTERNAL_SERVER_ERROR
        assert response.json() == {"error": "Internal Server Error"}
        assert response.error_message == "RuntimeError: database is down"
        assert any(r.exc_info for r in caplog.records)

    def test_expose_errors(self):
        handler = MiddlewarePipeline().add(RecoveryMiddleware(expose_errors=True)).wrap(boom)

        response = handler(make_request())

        assert "database is down" in response.json()["error"]

    def test_parse_error_keeps_status(self):
        def too_big(request):
            raise HTTPParseError("too large", status_code=413)

        response = MiddlewarePipeline().add(RecoveryMiddleware()).wrap(too_big)(make_request())

        assert response.status == HTTPStatus.REQUEST_ENTITY_TOO_LARGE

    def test_unsupported_content_type_is_415(self):
        def auto(request):
            raise UnsupportedContentType("application/xml")

        response = MiddlewarePipeline().add(RecoveryMiddleware()).wrap(auto)(make_request())

        assert response.status == HTTPStatus.UNSUPPORTED_MEDIA_TYPE

    def test_passes_through_success(self):
        response = MiddlewarePipeline().add(RecoveryMiddleware()).wrap(hello)(make_request())

        assert response.body == b"hello"
