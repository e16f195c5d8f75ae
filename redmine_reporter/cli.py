"""Command line helpers for checking a Redmine reporter setup.

Usage:
    python -m redmine_reporter check-config
    python -m redmine_reporter create-issue --subject "Deploy failed" --description "..." --tag deploy
    python -m redmine_reporter test

Exit codes:
    0: Success
    1: Invalid configuration, or Redmine did not accept the request
"""

import argparse
import logging
import sys

from redmine_reporter.config_loader import ReporterSettings, load_config
from redmine_reporter.logging_config import setup_logging
from redmine_reporter.notifier import Notifier

logger = logging.getLogger(__name__)


class ReporterTestError(Exception):
    """Raised on purpose by the `test` command."""


def _check_config(settings: ReporterSettings) -> int:
    if settings.config_error:
        print(f"Configuration invalid: {settings.config_error}")
        return 1
    if not settings.is_valid():
        print("Configuration invalid: redmine_url and api_key are required")
        return 1
    state = "enabled" if settings.enabled else "disabled"
    print(f"Configuration OK ({state}): {settings.redmine_url} project={settings.project_id} "
          f"tracker={settings.tracker_id} cooldown={settings.cooldown:g}s")
    return 0


def _create_issue(notifier: Notifier, args) -> int:
    issue = notifier.create_issue(
        args.subject,
        args.description,
        project_id=args.project,
        tracker_id=args.tracker,
        tags=args.tag,
    )
    if issue is None:
        print("No issue was created (see log output)")
        return 1
    print(f"Created issue #{issue.get('id')}")
    return 0


def _send_test(notifier: Notifier) -> int:
    try:
        raise ReporterTestError("This is a test exception sent by redmine_reporter")
    except ReporterTestError as exc:
        result = notifier.notify(exc, {"source": "cli"})
    if result is None:
        print("Test exception was not reported (see log output)")
        return 1
    print(f"Test exception reported to issue #{result.get('id')}")
    return 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(prog="redmine_reporter", description="Redmine exception reporter tools")
    parser.add_argument("--config", type=str, default=None, help="Path to a JSON config file")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("check-config", help="Validate the effective configuration")

    create = subparsers.add_parser("create-issue", help="Create a custom issue")
    create.add_argument("--subject", required=True)
    create.add_argument("--description", default="")
    create.add_argument("--project", default=None, help="Project id (default: from config)")
    create.add_argument("--tracker", type=int, default=None, help="Tracker id (default: from config)")
    create.add_argument("--tag", action="append", default=[], help="Tag to add (repeatable)")

    subparsers.add_parser("test", help="Report a sample exception")

    args = parser.parse_args(argv)
    setup_logging(level=logging.DEBUG if args.verbose else logging.INFO)

    settings = ReporterSettings.from_config(load_config(args.config))

    if args.command == "check-config":
        return _check_config(settings)

    if not settings.is_valid() or not settings.enabled:
        _check_config(settings)
        logger.error("Reporter is not active, nothing sent")
        return 1

    notifier = Notifier(settings)
    if args.command == "create-issue":
        return _create_issue(notifier, args)
    return _send_test(notifier)


if __name__ == "__main__":
    sys.exit(main())
