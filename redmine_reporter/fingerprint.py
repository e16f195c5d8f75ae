"""Stable short identities for exceptions.

Two occurrences share a fingerprint when they have the same class, message
and first application frame. The fingerprint is the dedup key embedded in
Redmine subjects, so it must never change for a given input.
"""

import hashlib
from typing import Optional, Sequence

from redmine_reporter.models import ExceptionDescriptor

APP_FRAME_MARKER = "/app/"
FINGERPRINT_LENGTH = 8


def first_app_frame(stack_frames: Optional[Sequence[str]]) -> str:
    """Return the first application frame, falling back to the first frame."""
    if not stack_frames:
        return ""
    for frame in stack_frames:
        if APP_FRAME_MARKER in frame:
            return frame
    return stack_frames[0]


def compute_fingerprint(descriptor: ExceptionDescriptor) -> str:
    """Compute the 8-character hex fingerprint for an exception."""
    raw = f"{descriptor.class_name}:{descriptor.message}:{first_app_frame(descriptor.stack_frames)}"
    return hashlib.md5(raw.encode("utf-8")).hexdigest()[:FINGERPRINT_LENGTH]
