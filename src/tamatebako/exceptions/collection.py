"""Collection exceptions: synchronization, fetching, parsing, persistence."""

from typing import Optional

from .base import TamatebakoError


class CollectionError(TamatebakoError):
    """Base class for errors that abort one source's pass for one project.

    The collector catches these per source, logs them and moves on to the
    next source or project.
    """

    def __init__(self, reason: str, project: Optional[str] = None, kind: Optional[str] = None):
        details = {"reason": reason}
        if project:
            details["project"] = project
        if kind:
            details["source"] = kind
        super().__init__(self.summary, details=details)
        self.reason = reason
        self.project = project
        self.kind = kind

    summary = "Collection failed"


class SyncError(CollectionError):
    """Raised when clone, checkout, fetch or pull of a workspace fails."""

    summary = "Workspace synchronization failed"


class GitLogError(SyncError):
    """Raised when reading the decorated log of a workspace fails."""

    summary = "Reading git log failed"


class FetchError(CollectionError):
    """Raised when the releases API cannot be fetched or decoded."""

    summary = "Release fetch failed"


class TimestampFormatError(CollectionError):
    """Raised when a timestamp does not match the format its source emits."""

    summary = "Unexpected timestamp format"

    def __init__(self, text: str, expected: str, project: Optional[str] = None, kind: Optional[str] = None):
        self.text = text
        self.expected = expected
        super().__init__(f"{text!r} does not match {expected!r}", project=project, kind=kind)


class PersistenceError(TamatebakoError):
    """Raised on storage failures other than a duplicate row. Fatal to the run."""

    def __init__(self, operation: str, reason: str):
        super().__init__(
            f"History store {operation} failed",
            details={"operation": operation, "reason": reason},
        )
        self.operation = operation
        self.reason = reason
