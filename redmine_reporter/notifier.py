"""Notifier: turns exceptions into Redmine issues.

Each `notify` call runs through:
1) Fingerprint the exception
2) Throttle check + record (one critical section on the occurrence cache)
3) Search Redmine for an open issue carrying the fingerprint
4) Update that issue (count + journal note) or create a new one

The notifier is the boundary of the reporting subsystem: every public method
catches all failures, logs them, and returns None. A broken tracker must never
become the cause of an application crash.
"""

import logging
import threading
from typing import Iterable, Mapping, Optional, Union

from redmine_reporter.config_loader import ReporterSettings
from redmine_reporter.fingerprint import compute_fingerprint
from redmine_reporter.formatting import (
    build_description,
    build_journal_note,
    build_subject,
    extract_count,
    extract_fingerprint,
    merge_tags,
)
from redmine_reporter.models import ExceptionDescriptor
from redmine_reporter.occurrence_cache import OccurrenceCache
from redmine_reporter.redmine_client import RedmineClient, RedmineTransportError

logger = logging.getLogger(__name__)


class Notifier:
    """Reports exceptions to Redmine with deduplication and rate limiting.

    Create one instance at application boot and hand it to the adapters
    (middleware, logging handler). The occurrence cache lives as long as the
    instance.

    Usage:
        notifier = Notifier(ReporterSettings.from_config(load_config()))
        try:
            ...
        except Exception as exc:
            notifier.notify(exc, {"url": "/checkout", "user": "alice@example.com"})
    """

    def __init__(
        self,
        settings: ReporterSettings,
        client: Optional[RedmineClient] = None,
        cache: Optional[OccurrenceCache] = None,
    ):
        self.settings = settings
        self.cache = cache or OccurrenceCache()
        self._client = client
        self._client_lock = threading.Lock()

    @property
    def client(self) -> RedmineClient:
        # Built lazily so an invalid configuration never touches the network stack.
        if self._client is None:
            with self._client_lock:
                if self._client is None:
                    self._client = RedmineClient(self.settings.redmine_url, self.settings.api_key)
        return self._client

    def is_active(self) -> bool:
        if not self.settings.enabled:
            logger.debug("Redmine reporting disabled, skipping")
            return False
        if not self.settings.is_valid():
            logger.debug("Redmine reporting not configured (redmine_url/api_key missing), skipping")
            return False
        return True

    def notify(
        self,
        exception: Union[BaseException, ExceptionDescriptor],
        context: Optional[Mapping] = None,
    ) -> Optional[dict]:
        """Report an exception.

        Args:
            exception: A live exception or a prepared ExceptionDescriptor.
            context: Extra details. `url` and `user` get dedicated lines,
                `tags` adds per-call tags, anything else is listed as-is.

        Returns:
            The created issue, an update summary `{"id", "subject", "count"}`,
            or None when throttled, disabled or anything failed.
        """
        try:
            if not self.is_active():
                return None
            return self._notify(exception, dict(context or {}))
        except Exception as e:
            logger.error(f"Failed to notify Redmine: {e}", exc_info=True)
            return None

    def create_issue(
        self,
        subject: str,
        description: str,
        project_id: Optional[str] = None,
        tracker_id: Optional[int] = None,
        tags: Optional[Iterable[str]] = None,
    ) -> Optional[dict]:
        """Create an arbitrary issue, bypassing fingerprinting and rate limiting.

        Returns the created issue, or None on failure.
        """
        try:
            if not self.is_active():
                return None
            payload = self._issue_payload(
                subject,
                description,
                tags,
                project_id=project_id,
                tracker_id=tracker_id,
            )
            issue = self.client.create_issue(payload)
            if issue is not None:
                logger.info(f"Created Redmine issue #{issue.get('id')}: {subject}")
            return issue
        except RedmineTransportError:
            return None
        except Exception as e:
            logger.error(f"Failed to create Redmine issue: {e}", exc_info=True)
            return None

    def reset_cache(self) -> None:
        """Forget all recorded occurrences."""
        self.cache.reset()

    def _notify(self, exception, context: dict) -> Optional[dict]:
        if isinstance(exception, ExceptionDescriptor):
            descriptor = exception
        else:
            descriptor = ExceptionDescriptor.from_exception(exception)

        fingerprint = compute_fingerprint(descriptor)

        if self.cache.check_and_record(fingerprint, self.settings.cooldown):
            logger.debug(f"Throttled {descriptor.class_name} ({fingerprint})")
            return None

        try:
            existing = self.client.search_open_issue(self.settings.project_id, fingerprint)
        except RedmineTransportError:
            # Creating blindly here would duplicate issues whenever search is down.
            logger.warning(f"Search failed for {fingerprint}, dropping this occurrence")
            return None

        if existing is None:
            return self._create_from_exception(descriptor, context, fingerprint)
        return self._update_existing(existing, descriptor, context)

    def _create_from_exception(self, descriptor: ExceptionDescriptor, context: dict, fingerprint: str) -> Optional[dict]:
        subject = build_subject(fingerprint, 1, descriptor)
        description = build_description(descriptor, context, self.settings.app_name)
        payload = self._issue_payload(subject, description, _context_tags(context))

        try:
            issue = self.client.create_issue(payload)
        except RedmineTransportError:
            return None

        if issue is not None:
            logger.info(f"Created Redmine issue #{issue.get('id')}: {subject}")
        return issue

    def _update_existing(self, issue: dict, descriptor: ExceptionDescriptor, context: dict) -> Optional[dict]:
        issue_id = issue.get("id")
        current_subject = issue.get("subject")

        new_count = extract_count(current_subject) + 1
        fingerprint = extract_fingerprint(current_subject)

        new_subject = build_subject(fingerprint, new_count, descriptor)
        notes = build_journal_note(new_count, context, descriptor)
        payload = {"issue": {"subject": new_subject, "notes": notes}}

        try:
            self.client.update_issue(issue_id, payload)
        except RedmineTransportError:
            return None

        logger.info(f"Updated Redmine issue #{issue_id} ({new_count}x)")
        return {"id": issue_id, "subject": new_subject, "count": new_count}

    def _issue_payload(self, subject, description, tags, project_id=None, tracker_id=None) -> dict:
        issue = {
            "project_id": project_id or self.settings.project_id,
            "tracker_id": tracker_id or self.settings.tracker_id,
            "subject": subject,
            "description": description,
        }
        tag_list = merge_tags(self.settings.default_tags, tags)
        # No tag_list key at all when there are no tags.
        if tag_list:
            issue["tag_list"] = tag_list
        return {"issue": issue}


def _context_tags(context: Mapping) -> list[str]:
    tags = context.get("tags")
    if not tags:
        return []
    if isinstance(tags, str):
        return [tags]
    return [str(tag) for tag in tags]
