"""
tamatebako - version checker for open-source projects

Polls local git clones and the GitHub releases API for new tags and
releases, and records every discovered version in a deduplicated SQLite
history.
"""

__version__ = "0.3.0"

from .models import RawEvent, SourceKind, StoredVersion, VersionEvent
from .storage import HistoryStore
from .versioning import EventNormalizer, VersionPattern

__all__ = [
    "EventNormalizer",
    "HistoryStore",
    "RawEvent",
    "SourceKind",
    "StoredVersion",
    "VersionEvent",
    "VersionPattern",
]
