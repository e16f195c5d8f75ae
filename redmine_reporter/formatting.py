"""Issue text building: subjects, descriptions, journal notes and tags.

Subjects double as metadata storage: `[<fingerprint>][<count>] Class: message`.
The fingerprint and count are read back from existing subjects with fixed
patterns, so the subject layout here and the patterns below must stay in sync.
"""

import re
from datetime import datetime
from typing import Iterable, Mapping, Optional, Sequence

from redmine_reporter.models import ExceptionDescriptor

SUBJECT_MESSAGE_LENGTH = 60
DESCRIPTION_BACKTRACE_LIMIT = 20
JOURNAL_BACKTRACE_LIMIT = 10
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

_COUNT_RE = re.compile(r"\]\[(\d+)\]")
_FINGERPRINT_RE = re.compile(r"\[([a-f0-9]{8})\]")
_LINE_BREAKS_RE = re.compile(r"[\r\n]+")

# Context keys with a dedicated line (or no line at all).
_RESERVED_CONTEXT_KEYS = ("url", "user", "tags")


def _timestamp(now: Optional[datetime]) -> str:
    return (now or datetime.now()).strftime(TIMESTAMP_FORMAT)


def subject_message(message: str) -> str:
    """Single-line, length-capped version of an exception message."""
    if len(message) > SUBJECT_MESSAGE_LENGTH:
        message = f"{message[:SUBJECT_MESSAGE_LENGTH]}..."
    return _LINE_BREAKS_RE.sub(" ", message).strip()


def build_subject(fingerprint: str, count: int, descriptor: ExceptionDescriptor) -> str:
    return f"[{fingerprint}][{count}] {descriptor.class_name}: {subject_message(descriptor.message)}"


def format_backtrace(stack_frames: Optional[Sequence[str]], limit: int = DESCRIPTION_BACKTRACE_LIMIT) -> str:
    if stack_frames is None:
        return "No backtrace available"
    return "\n".join(stack_frames[:limit])


def build_description(
    descriptor: ExceptionDescriptor,
    context: Mapping,
    app_name: str,
    now: Optional[datetime] = None,
) -> str:
    """Issue description in Redmine's Textile markup."""
    lines = [
        f"**Exception:** @{descriptor.class_name}@",
        f"**Message:** {descriptor.message}",
        f"**App:** {app_name}",
        f"**First seen:** {_timestamp(now)}",
        "",
    ]

    if context.get("url"):
        lines.append(f"**URL:** {context['url']}")
    if context.get("user"):
        lines.append(f"**User:** {context['user']}")

    for key, value in context.items():
        if key in _RESERVED_CONTEXT_KEYS:
            continue
        lines.append(f"**{str(key).capitalize()}:** {value}")

    lines.extend([
        "",
        "h3. Backtrace",
        "",
        "<pre>",
        format_backtrace(descriptor.stack_frames),
        "</pre>",
    ])
    return "\n".join(lines)


def build_journal_note(
    count: int,
    context: Mapping,
    descriptor: ExceptionDescriptor,
    now: Optional[datetime] = None,
) -> str:
    """Short note appended to an existing issue on a repeat occurrence."""
    lines = [f"Occurred again (*{count}x*) at {_timestamp(now)}", ""]

    if context.get("url"):
        lines.append(f"URL: {context['url']}")
    if context.get("user"):
        lines.append(f"User: {context['user']}")

    lines.extend([
        "",
        "<pre>",
        format_backtrace(descriptor.stack_frames, limit=JOURNAL_BACKTRACE_LIMIT),
        "</pre>",
    ])
    return "\n".join(lines)


def extract_count(subject: Optional[str]) -> int:
    """Occurrence count from `...][N]...`; 0 when missing."""
    match = _COUNT_RE.search(subject or "")
    return int(match.group(1)) if match else 0


def extract_fingerprint(subject: Optional[str]) -> str:
    """Fingerprint from `[xxxxxxxx]`; empty string when missing."""
    match = _FINGERPRINT_RE.search(subject or "")
    return match.group(1) if match else ""


def merge_tags(default_tags: Optional[Iterable[str]], tags: Optional[Iterable[str]]) -> list[str]:
    """Defaults first, then per-call tags; duplicates dropped, first wins."""
    merged: list[str] = []
    for tag in list(default_tags or []) + list(tags or []):
        if tag not in merged:
            merged.append(tag)
    return merged
