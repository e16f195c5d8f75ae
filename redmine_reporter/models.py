"""Data structures shared by the notifier and its adapters."""

import traceback
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class ExceptionDescriptor:
    class_name: str
    message: str
    stack_frames: Optional[tuple[str, ...]] = None  # None = no backtrace at all

    @classmethod
    def from_exception(cls, exc: BaseException) -> "ExceptionDescriptor":
        """Describe a live exception, innermost frame first.

        An exception that was constructed but never raised has no traceback,
        so its frames are reported as absent rather than empty.
        """
        frames = None
        if exc.__traceback__ is not None:
            summary = traceback.extract_tb(exc.__traceback__)
            frames = tuple(
                f"{frame.filename}:{frame.lineno}:in `{frame.name}'"
                for frame in reversed(summary)
            )
        return cls(
            class_name=type(exc).__name__,
            message=str(exc),
            stack_frames=frames,
        )
