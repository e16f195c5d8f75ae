"""Tests for subject, description and journal note building."""

from datetime import datetime

from redmine_reporter.formatting import (
    build_description,
    build_journal_note,
    build_subject,
    extract_count,
    extract_fingerprint,
    format_backtrace,
    merge_tags,
    subject_message,
)
from redmine_reporter.models import ExceptionDescriptor

NOW = datetime(2026, 2, 16, 10, 30, 45)
FRAMES = tuple(f"/srv/app/module{i}.py:{i}:in `f{i}'" for i in range(30))


def _descriptor(message="Test error", class_name="RuntimeError", frames=FRAMES):
    return ExceptionDescriptor(class_name=class_name, message=message, stack_frames=frames)


class TestSubject:
    def test_layout(self):
        subject = build_subject("abcd1234", 1, _descriptor("bad argument", "ValueError"))
        assert subject == "[abcd1234][1] ValueError: bad argument"

    def test_long_message_truncated(self):
        subject = build_subject("abcd1234", 1, _descriptor("a" * 100))
        assert subject.endswith("a" * 60 + "...")
        assert "a" * 61 not in subject
        assert len(subject) < 150

    def test_exactly_sixty_chars_not_truncated(self):
        assert subject_message("b" * 60) == "b" * 60

    def test_newlines_collapsed(self):
        subject = build_subject("abcd1234", 1, _descriptor("Error\nwith\r\nnewlines\n"))
        assert "\n" not in subject
        assert "\r" not in subject
        assert subject.endswith("RuntimeError: Error with newlines")

    def test_unicode_preserved(self):
        assert "émojis" in build_subject("abcd1234", 1, _descriptor("Error with émojis"))


class TestSubjectParsing:
    def test_extract_count(self):
        assert extract_count("[abcd1234][5] StandardError: Test") == 5
        assert extract_count("[abcd1234][123] X: y") == 123

    def test_extract_count_missing(self):
        assert extract_count("StandardError: Test") == 0
        assert extract_count("[abcd1234] no count") == 0
        assert extract_count(None) == 0

    def test_extract_fingerprint(self):
        assert extract_fingerprint("[abcd1234][5] StandardError: Test") == "abcd1234"

    def test_extract_fingerprint_missing(self):
        assert extract_fingerprint("[ABCD1234][5] upper case is not a fingerprint") == ""
        assert extract_fingerprint("[abc][5] too short") == ""
        assert extract_fingerprint(None) == ""


class TestBacktrace:
    def test_absent(self):
        assert format_backtrace(None) == "No backtrace available"

    def test_empty(self):
        assert format_backtrace(()) == ""

    def test_limit(self):
        assert format_backtrace(FRAMES, limit=3).splitlines() == list(FRAMES[:3])


class TestDescription:
    def test_contains_exception_details(self):
        description = build_description(_descriptor("undefined method foo", "AttributeError"), {}, "shop", now=NOW)
        assert "**Exception:** @AttributeError@" in description
        assert "**Message:** undefined method foo" in description
        assert "**App:** shop" in description
        assert "**First seen:** 2026-02-16 10:30:45" in description
        assert "h3. Backtrace" in description

    def test_backtrace_limited_to_twenty_frames(self):
        description = build_description(_descriptor(), {}, "shop", now=NOW)
        assert FRAMES[19] in description
        assert FRAMES[20] not in description

    def test_missing_backtrace(self):
        description = build_description(_descriptor(frames=None), {}, "shop", now=NOW)
        assert "<pre>\nNo backtrace available\n</pre>" in description

    def test_context_lines(self):
        context = {
            "url": "/users/123",
            "user": "test@example.com",
            "environment": "production",
            "version": "1.2.3",
            "tags": ["critical"],
        }
        description = build_description(_descriptor(), context, "shop", now=NOW)
        lines = description.splitlines()
        assert "**URL:** /users/123" in lines
        assert "**User:** test@example.com" in lines
        assert "**Environment:** production" in lines
        assert "**Version:** 1.2.3" in lines
        # Generic lines keep insertion order
        assert lines.index("**Environment:** production") < lines.index("**Version:** 1.2.3")
        assert "critical" not in description
        assert "**Url:**" not in description

    def test_empty_url_and_user_skipped(self):
        description = build_description(_descriptor(), {"url": "", "user": None}, "shop", now=NOW)
        assert "**URL:**" not in description
        assert "**User:**" not in description


class TestJournalNote:
    def test_header_and_context(self):
        note = build_journal_note(6, {"url": "/checkout", "user": "bob"}, _descriptor(), now=NOW)
        lines = note.splitlines()
        assert lines[0] == "Occurred again (*6x*) at 2026-02-16 10:30:45"
        assert "URL: /checkout" in lines
        assert "User: bob" in lines

    def test_shorter_backtrace(self):
        note = build_journal_note(2, {}, _descriptor(), now=NOW)
        assert FRAMES[9] in note
        assert FRAMES[10] not in note

    def test_missing_backtrace(self):
        note = build_journal_note(2, {}, _descriptor(frames=None), now=NOW)
        assert "No backtrace available" in note


class TestMergeTags:
    def test_defaults_first_deduplicated(self):
        assert merge_tags(["production", "errors"], ["production", "critical"]) == ["production", "errors", "critical"]

    def test_duplicates_within_defaults(self):
        assert merge_tags(["a", "a", "b"], None) == ["a", "b"]

    def test_empty(self):
        assert merge_tags([], []) == []
        assert merge_tags(None, None) == []
