"""Exception reporting into Redmine.

Repeated occurrences of the same error are collapsed into one evolving issue:
the subject carries a fingerprint and an occurrence count, and every repeat
adds a journal note instead of a new issue.
"""

from redmine_reporter.config_loader import ReporterSettings, load_config
from redmine_reporter.log_handler import RedmineLogHandler
from redmine_reporter.middleware import ErrorReportingMiddleware
from redmine_reporter.models import ExceptionDescriptor
from redmine_reporter.notifier import Notifier
from redmine_reporter.redmine_client import RedmineClient, RedmineTransportError

__all__ = [
    "ErrorReportingMiddleware",
    "ExceptionDescriptor",
    "Notifier",
    "RedmineClient",
    "RedmineLogHandler",
    "RedmineTransportError",
    "ReporterSettings",
    "load_config",
]
