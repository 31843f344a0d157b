"""Collect version tags from a local clone of a git repository.

The workspace for a remote lives at a deterministic path under the
workspace root (``https://github.com/a/b.git`` -> ``<root>/github.com/a/b``).
Every git call names that path explicitly with ``git -C``; the process
working directory is never changed.

Only the most recent ``max_commits`` commits are inspected. Older tags are
not surfaced until they fall inside that window on some branch that is
checked out, which is an accepted limitation.
"""

from __future__ import annotations

import os
import re
import shlex
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, Optional, Union

from ..exceptions import GitLogError, InvalidRemoteError, SyncError
from ..logging_config import get_logger
from ..models import RawEvent, SourceKind
from ..versioning import REPOSITORY_TIMESTAMP_FORMAT
from .base import RawEventSource

logger = get_logger(__name__)

DEFAULT_BRANCH = "master"
DEFAULT_MAX_COMMITS = 300

# <decorations>\t<subject>\t<author date>\t<hash>
LOG_PRETTY_FORMAT = "%D%x09%s%x09%ad%x09%H"
LOG_DATE_FORMAT = "format:" + REPOSITORY_TIMESTAMP_FORMAT

# scheme://[user@]host[:port][/path]
_URL_REMOTE_RE = re.compile(
    r"^(?:https?|ssh|git|file)://(?:[^@/\s]+@)?(?P<host>[^/\s]*)(?P<path>(?:/\S*)?)$"
)
# scp-style user@host:path
_SCP_REMOTE_RE = re.compile(r"^[^@/:\s]+@(?P<host>[^@/:\s]+):(?P<path>\S+)$")

# %D separator; ref names never contain spaces
_DECORATION_SEPARATOR = ", "
_TAG_PREFIX = "tag: "
_HASH_RE = re.compile(r"^[0-9a-f]{7,64}$")


def workspace_path(remote: str, root: Union[str, Path]) -> Path:
    """Map a git remote to its workspace directory under ``root``.

    The host is the first directory level. A URL port stays part of it
    (``host:8080`` -> ``host_8080``) so it can never collide with a path.

    Raises:
        InvalidRemoteError: If the remote is not a string, has no
            recognizable scheme or contains empty, ``.`` or ``..`` path
            components.
    """
    if not isinstance(remote, str):
        raise InvalidRemoteError(repr(remote), "must be a string")
    remote = remote.strip()
    match = _URL_REMOTE_RE.match(remote) or _SCP_REMOTE_RE.match(remote)
    if match is None:
        raise InvalidRemoteError(remote, "expected scheme://host/path or user@host:path")

    host = match.group("host").replace(":", "_")
    path = match.group("path").rstrip("/")
    if path.endswith(".git"):
        path = path[: -len(".git")]

    parts = [p for p in [host] + path.split("/") if p]
    if not parts:
        raise InvalidRemoteError(remote, "no repository path")
    if any(p in (".", "..") for p in parts):
        raise InvalidRemoteError(remote, "relative path components are not allowed")

    return Path(root).joinpath(*parts)


@dataclass
class LogEntry:
    hash: str
    date: str
    subject: str
    tags: list[str] = field(default_factory=list)


def parse_log_line(line: str) -> Optional[LogEntry]:
    """Parse one ``LOG_PRETTY_FORMAT`` line. Return None if it is malformed.

    ``%D`` is empty for undecorated commits, so their lines start with a
    tab. Subjects may contain tabs; decorations cannot.
    """
    parts = line.rstrip("\r\n").rsplit("\t", 2)
    if len(parts) != 3:
        return None
    head, date, commit_hash = parts
    if not _HASH_RE.match(commit_hash):
        return None

    decorations, sep, subject = head.partition("\t")
    if not sep:
        return None

    tags = [
        d[len(_TAG_PREFIX):]
        for d in decorations.split(_DECORATION_SEPARATOR)
        if d.startswith(_TAG_PREFIX) and len(d) > len(_TAG_PREFIX)
    ]
    return LogEntry(hash=commit_hash, date=date, subject=subject, tags=tags)


class GitRunner:
    """Run git against an explicit workspace path.

    Sync operations have no timeout: a hung fetch blocks that project's
    collection. Any non-zero exit raises ``SyncError``.
    """

    def __init__(self, ssh_key: Optional[str] = None, git: str = "git"):
        self.ssh_key = ssh_key
        self.git = git

    def _env(self) -> dict[str, str]:
        env = dict(os.environ)
        env["GIT_TERMINAL_PROMPT"] = "0"
        if self.ssh_key:
            env["GIT_SSH_COMMAND"] = f"ssh -i {shlex.quote(self.ssh_key)} -o IdentitiesOnly=yes"
        return env

    def _command(self, args: list[str], path: Optional[Path]) -> list[str]:
        cmd = [self.git]
        if path is not None:
            cmd += ["-C", str(path)]
        return cmd + args

    def _run(self, args: list[str], path: Optional[Path] = None) -> str:
        cmd = self._command(args, path)
        logger.debug("running %s", " ".join(cmd))
        try:
            result = subprocess.run(cmd, capture_output=True, text=True, env=self._env())
        except FileNotFoundError:
            raise SyncError(f"git executable not found: {self.git}")
        if result.returncode != 0:
            raise SyncError(f"git {args[0]} failed in {path}: {result.stderr.strip()}")
        return result.stdout

    def is_repository(self, path: Path) -> bool:
        """True if ``path`` is the top level of a git work tree."""
        if not path.is_dir():
            return False
        try:
            result = subprocess.run(
                self._command(["rev-parse", "--show-toplevel"], path),
                capture_output=True,
                text=True,
                timeout=5,
                env=self._env(),
            )
        except (FileNotFoundError, subprocess.TimeoutExpired):
            return False
        if result.returncode != 0:
            return False
        return Path(result.stdout.strip()).resolve() == path.resolve()

    def clone(self, remote: str, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        logger.info("git clone %s", remote)
        self._run(["clone", remote, str(path)])

    def checkout(self, path: Path, branch: str) -> None:
        self._run(["checkout", branch], path)

    def fetch_prune(self, path: Path) -> None:
        self._run(["fetch", "--prune"], path)

    def pull(self, path: Path) -> None:
        self._run(["pull", "--ff-only"], path)

    def log_lines(self, path: Path, max_count: int) -> Iterator[str]:
        """Stream decorated log lines, newest commit first.

        Raises:
            GitLogError: If git exits non-zero. Raised after the lines read so
                far have been yielded.
        """
        cmd = self._command(
            [
                "log",
                f"-n{max_count}",
                f"--date={LOG_DATE_FORMAT}",
                f"--pretty=format:{LOG_PRETTY_FORMAT}",
            ],
            path,
        )
        try:
            proc = subprocess.Popen(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                env=self._env(),
            )
        except FileNotFoundError:
            raise GitLogError(f"git executable not found: {self.git}")

        try:
            stdout = proc.stdout
            if stdout is None:
                return
            for line in stdout:
                yield line
            proc.wait()
            if proc.returncode != 0:
                stderr = proc.stderr.read() if proc.stderr else ""
                raise GitLogError(f"git log failed in {path}: {stderr.strip()}")
        finally:
            if proc.poll() is None:
                proc.kill()
                proc.wait()
            if proc.stdout:
                proc.stdout.close()
            if proc.stderr:
                proc.stderr.close()


class RepositoryLogSource(RawEventSource):
    """Tags from the recent history of one branch of a git remote."""

    kind = SourceKind.GIT
    timestamp_format = REPOSITORY_TIMESTAMP_FORMAT

    def __init__(
        self,
        remote: str,
        root: Union[str, Path],
        branch: str = DEFAULT_BRANCH,
        project_url: Optional[str] = None,
        runner: Optional[GitRunner] = None,
        max_commits: int = DEFAULT_MAX_COMMITS,
    ):
        self.remote = remote
        self.workspace = workspace_path(remote, root)
        self.channel = branch
        self.project_url = project_url
        self.runner = runner or GitRunner()
        self.max_commits = max_commits

    @property
    def branch(self) -> str:
        return self.channel

    def prepare(self) -> None:
        """Clone if needed, then checkout, fetch --prune and pull.

        Raises:
            SyncError: If any step fails. The stale checkout is not used.
        """
        if not self.runner.is_repository(self.workspace):
            if self.workspace.exists() and any(self.workspace.iterdir()):
                raise SyncError(f"{self.workspace} exists and is not a git repository")
            self.runner.clone(self.remote, self.workspace)

        logger.debug("repo: %s, branch: %s", self.remote, self.branch)
        self.runner.checkout(self.workspace, self.branch)
        self.runner.fetch_prune(self.workspace)
        self.runner.pull(self.workspace)

    def fetch(self) -> Iterator[RawEvent]:
        for line in self.runner.log_lines(self.workspace, self.max_commits):
            if not line.strip():
                continue
            entry = parse_log_line(line)
            if entry is None:
                logger.warning("Skipping unparseable git log line in %s: %r", self.workspace, line)
                continue
            for tag in entry.tags:
                yield RawEvent(label=tag, timestamp_text=entry.date, identity=entry.hash)

    def origin_url(self, raw: RawEvent, version: str) -> Optional[str]:
        if not self.project_url:
            return None
        return f"{self.project_url.rstrip('/')}/releases/tag/{raw.label}"

    def describe(self) -> str:
        return f"git {self.remote} ({self.branch})"
