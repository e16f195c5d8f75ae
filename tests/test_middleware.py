"""Tests for the WSGI error reporting middleware."""

from unittest.mock import MagicMock

import pytest

from redmine_reporter.middleware import ErrorReportingMiddleware, build_context


def success_app(environ, start_response):
    start_response("200 OK", [("Content-Type", "text/plain")])
    return [b"OK"]


def failing_app(environ, start_response):
    raise ValueError("Test error")


def streaming_app(environ, start_response):
    start_response("200 OK", [("Content-Type", "text/plain")])
    yield b"chunk"
    raise RuntimeError("Stream broke")


class TestBuildContext:
    def test_request_uri_preferred(self):
        environ = {"REQUEST_METHOD": "GET", "REQUEST_URI": "/full/uri?query=1", "PATH_INFO": "/full/uri"}
        assert build_context(environ) == {"url": "/full/uri?query=1", "method": "GET"}

    def test_path_info_with_query_string(self):
        environ = {"REQUEST_METHOD": "POST", "SCRIPT_NAME": "/api", "PATH_INFO": "/users", "QUERY_STRING": "page=2"}
        assert build_context(environ)["url"] == "/api/users?page=2"

    def test_remote_user(self):
        environ = {"PATH_INFO": "/", "REMOTE_USER": "alice@example.com"}
        assert build_context(environ)["user"] == "alice@example.com"

    def test_empty_environ(self):
        assert build_context({}) == {}


class TestMiddleware:
    def test_passes_through_success(self):
        notifier = MagicMock()
        start_response = MagicMock()
        middleware = ErrorReportingMiddleware(success_app, notifier)

        body = middleware({"REQUEST_METHOD": "GET", "PATH_INFO": "/"}, start_response)

        assert list(body) == [b"OK"]
        start_response.assert_called_once_with("200 OK", [("Content-Type", "text/plain")])
        notifier.notify.assert_not_called()

    def test_notifies_and_reraises(self):
        notifier = MagicMock()
        middleware = ErrorReportingMiddleware(failing_app, notifier)
        environ = {"REQUEST_METHOD": "GET", "PATH_INFO": "/orders", "REMOTE_USER": "bob"}

        with pytest.raises(ValueError, match="Test error"):
            middleware(environ, MagicMock())

        notifier.notify.assert_called_once()
        exc, context = notifier.notify.call_args[0]
        assert isinstance(exc, ValueError)
        assert context == {"url": "/orders", "method": "GET", "user": "bob"}

    def test_notifier_failure_does_not_mask_original(self):
        notifier = MagicMock()
        notifier.notify.side_effect = RuntimeError("Notification failed")
        middleware = ErrorReportingMiddleware(failing_app, notifier)

        with pytest.raises(ValueError, match="Test error"):
            middleware({"PATH_INFO": "/"}, MagicMock())

    def test_notifies_error_raised_while_streaming(self):
        notifier = MagicMock()
        middleware = ErrorReportingMiddleware(streaming_app, notifier)
        body = middleware({"REQUEST_METHOD": "GET", "PATH_INFO": "/export"}, MagicMock())

        notifier.notify.assert_not_called()
        with pytest.raises(RuntimeError, match="Stream broke"):
            list(body)

        notifier.notify.assert_called_once()
        exc, context = notifier.notify.call_args[0]
        assert isinstance(exc, RuntimeError)
        assert context == {"url": "/export", "method": "GET"}

    def test_close_forwarded_to_app_body(self):
        app_body = MagicMock()
        app_body.__iter__.return_value = iter([b"a", b"b"])
        middleware = ErrorReportingMiddleware(lambda environ, start_response: app_body, MagicMock())

        body = middleware({"PATH_INFO": "/"}, MagicMock())
        assert list(body) == [b"a", b"b"]
        body.close()

        app_body.close.assert_called_once()

    def test_close_without_app_close(self):
        middleware = ErrorReportingMiddleware(success_app, MagicMock())
        body = middleware({"PATH_INFO": "/"}, MagicMock())
        body.close()
