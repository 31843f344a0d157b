"""Exception hierarchy for tamatebako."""

from .base import TamatebakoError
from .collection import (
    CollectionError,
    FetchError,
    GitLogError,
    PersistenceError,
    SyncError,
    TimestampFormatError,
)
from .config import (
    ConfigFileError,
    ConfigurationError,
    InvalidConfigError,
    InvalidRemoteError,
)

__all__ = [
    "TamatebakoError",
    "CollectionError",
    "SyncError",
    "GitLogError",
    "FetchError",
    "TimestampFormatError",
    "PersistenceError",
    "ConfigurationError",
    "ConfigFileError",
    "InvalidConfigError",
    "InvalidRemoteError",
]
