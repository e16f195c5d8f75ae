"""Configures logging for applications embedding the reporter.

Reporting failures are only ever visible through logs, so hosts that have no
logging setup of their own can call `setup_logging()` once at boot.
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler


def sanitize_log_message(record_msg: str) -> str:
    """Escapes newlines in log messages to prevent log injection attacks."""
    if isinstance(record_msg, str):
        return record_msg.replace('\n', '\\n').replace('\r', '\\r')
    return record_msg


class SanitizedFormatter(logging.Formatter):
    """Formatter that escapes line breaks in the message.

    Exception messages and Redmine response bodies end up in log lines and
    can contain arbitrary newlines.
    """

    def formatMessage(self, record):
        original_message = record.message
        record.message = sanitize_log_message(record.message)
        s = super().formatMessage(record)
        record.message = original_message
        return s


def setup_logging(log_file: str = None, level: int = logging.INFO):
    """Sets up root logging with the sanitizing formatter.

    Args:
        log_file: Optional path to a log file (rotated at 10MB, 5 backups).
            If None, logs only go to stdout.
        level: Root log level.
    """
    handlers = []
    formatter = SanitizedFormatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    if log_file:
        try:
            log_dir = os.path.dirname(log_file)
            if log_dir:
                os.makedirs(log_dir, exist_ok=True)

            file_handler = RotatingFileHandler(
                log_file,
                maxBytes=10 * 1024 * 1024,
                backupCount=5,
                encoding='utf-8',
            )
            file_handler.setFormatter(formatter)
            handlers.append(file_handler)
        except (PermissionError, OSError) as e:
            sys.stderr.write(f"WARNING: Could not create log file handler at {log_file}: {e}\n")
            sys.stderr.write("Logging will continue to stdout only.\n")
            log_file = None

    # With a log file, only echo to stdout when interactive to avoid duplicate
    # lines when stdout is redirected to the same file.
    if log_file is None or sys.stdout.isatty():
        stream_handler = logging.StreamHandler(sys.stdout)
        stream_handler.setFormatter(formatter)
        handlers.append(stream_handler)

    logging.basicConfig(
        level=level,
        handlers=handlers,
        force=True
    )

    # requests/urllib3 log every connection at DEBUG/INFO
    logging.getLogger('urllib3').setLevel(logging.WARNING)
