"""Raw event sources: git workspaces and the GitHub releases API."""

from .base import RawEventSource
from .git_log import GitRunner, RepositoryLogSource, parse_log_line, workspace_path
from .releases import ReleaseApiSource

__all__ = [
    "RawEventSource",
    "GitRunner",
    "RepositoryLogSource",
    "ReleaseApiSource",
    "parse_log_line",
    "workspace_path",
]
