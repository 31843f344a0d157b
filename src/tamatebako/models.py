"""Data models for version events."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class SourceKind(str, Enum):
    """Adapter kinds a project can be collected from."""

    GIT = "git"
    GITHUB = "github"


@dataclass(frozen=True)
class RawEvent:
    """One unnormalized observation from a source.

    ``identity`` is the commit hash for git sources and the release URL for
    the releases API.
    """

    label: str
    timestamp_text: str
    identity: str


@dataclass(frozen=True)
class VersionEvent:
    project_name: str
    channel: str  # branch for git sources, "" for releases
    version: str
    occurred_at: datetime  # naive; log-reported time or UTC
    url: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.version:
            raise ValueError("VersionEvent.version must not be empty")

    @property
    def key(self) -> tuple[str, str, str]:
        """The uniqueness key enforced by the history store."""
        return (self.project_name, self.channel, self.version)


@dataclass(frozen=True)
class StoredVersion(VersionEvent):
    """A version event read back from the history store."""

    id: int = 0
