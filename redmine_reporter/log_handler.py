"""Logging handler that forwards logged exceptions to Redmine.

Attach it to a logger and every `logger.exception(...)` (or any record logged
with `exc_info`) at or above the handler level becomes a notification:

    logging.getLogger().addHandler(RedmineLogHandler(notifier))

Records without an exception are ignored. `url` and `user` passed through
`extra=` are forwarded as context.

The handler lock is not taken around `emit`: the notifier is thread-safe and
a Redmine round trip must not hold up other threads logging at the same time.
"""

import logging


class RedmineLogHandler(logging.Handler):

    def __init__(self, notifier, level=logging.ERROR):
        super().__init__(level)
        self.notifier = notifier

    def handle(self, record: logging.LogRecord):
        rv = self.filter(record)
        if isinstance(rv, logging.LogRecord):
            record = rv
        if rv:
            self.emit(record)
        return rv

    def emit(self, record: logging.LogRecord) -> None:
        if not record.exc_info or record.exc_info[1] is None:
            return
        # The notifier logs its own failures; reporting those would recurse.
        if record.name.startswith("redmine_reporter"):
            return

        try:
            context = {}
            for key in ("url", "user"):
                value = getattr(record, key, None)
                if value:
                    context[key] = str(value)
            context["source"] = record.name
            context["severity"] = record.levelname
            self.notifier.notify(record.exc_info[1], context)
        except Exception:
            self.handleError(record)
