"""WSGI middleware that reports unhandled exceptions to Redmine.

The original exception is always re-raised so the framework's own error
handling still runs. Reporting is best effort: a failure inside the notifier
is logged and never replaces the application's exception.
"""

import logging

logger = logging.getLogger(__name__)


def build_context(environ: dict) -> dict:
    """Build the notifier context (url, method, user) from a WSGI environ."""
    context = {}

    url = environ.get("REQUEST_URI")
    if not url and environ.get("PATH_INFO") is not None:
        url = environ.get("SCRIPT_NAME", "") + environ["PATH_INFO"]
        if environ.get("QUERY_STRING"):
            url = f"{url}?{environ['QUERY_STRING']}"
    if url:
        context["url"] = url

    if environ.get("REQUEST_METHOD"):
        context["method"] = environ["REQUEST_METHOD"]

    if environ.get("REMOTE_USER"):
        context["user"] = environ["REMOTE_USER"]

    return context


class ErrorReportingMiddleware:
    """Wraps a WSGI app; usage: `app = ErrorReportingMiddleware(app, notifier)`."""

    def __init__(self, app, notifier):
        self.app = app
        self.notifier = notifier

    def __call__(self, environ, start_response):
        try:
            body = self.app(environ, start_response)
        except Exception as exc:
            self._notify(exc, environ)
            raise
        return ReportingBody(body, self, environ)

    def _notify(self, exc: Exception, environ: dict) -> None:
        try:
            self.notifier.notify(exc, build_context(environ))
        except Exception as e:
            logger.error(f"Middleware error while reporting {type(exc).__name__}: {e}")


class ReportingBody:
    """Response iterable that reports errors raised while streaming the body."""

    def __init__(self, body, middleware: ErrorReportingMiddleware, environ: dict):
        self._body = body
        self._middleware = middleware
        self._environ = environ

    def __iter__(self):
        try:
            for chunk in self._body:
                yield chunk
        except Exception as exc:
            self._middleware._notify(exc, self._environ)
            raise

    def close(self):
        # WSGI servers call close() on the outermost iterable only.
        close = getattr(self._body, "close", None)
        if close is None:
            return
        try:
            close()
        except Exception as exc:
            self._middleware._notify(exc, self._environ)
            raise
