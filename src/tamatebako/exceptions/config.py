"""Configuration exceptions: config files, settings, remote locations."""

from pathlib import Path
from typing import Any, Optional

from .base import TamatebakoError


class ConfigurationError(TamatebakoError):
    """Base class for configuration-related errors."""

    pass


class ConfigFileError(ConfigurationError):
    """Raised when a config file is missing or cannot be parsed."""

    def __init__(self, path: Path, reason: str):
        super().__init__(f"Invalid config file: {path}", details={"path": str(path), "reason": reason})
        self.path = path
        self.reason = reason


class InvalidConfigError(ConfigurationError):
    """Raised when configuration values are invalid."""

    def __init__(self, key: str, value: Any, reason: str):
        super().__init__(
            f"Invalid configuration for {key}: {value}",
            details={"key": key, "value": str(value), "reason": reason},
        )
        self.key = key
        self.value = value
        self.reason = reason


class InvalidRemoteError(ConfigurationError):
    """Raised when a git remote cannot be mapped to a workspace directory."""

    def __init__(self, remote: str, reason: str, project: Optional[str] = None):
        details = {"remote": remote, "reason": reason}
        if project:
            details["project"] = project
        super().__init__(f"Invalid git remote: {remote}", details=details)
        self.remote = remote
        self.reason = reason
        self.project = project
