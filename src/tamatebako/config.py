"""Configuration loading for tamatebako.

Configuration sources are merged in priority order:
    1. Defaults (defined in AppConfig)
    2. Config file (explicit path, else ~/.config/tamatebako/config.toml)
    3. Environment variables (TAMATEBAKO_* prefix)
    4. Overrides passed as kwargs (typically CLI flags)

In the config file, top-level scalar keys are settings and every top-level
table is a project:

    github_access_token = "ghp_..."

    [rust]
    url = "https://github.com/rust-lang/rust"
    version_regex = "^(\\\\d+\\\\.\\\\d+\\\\.\\\\d+)$"

    [rust.source]
    git = "https://github.com/rust-lang/rust.git"
    branch = "master"
    github = "rust-lang/rust"
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, get_type_hints

from .exceptions import ConfigFileError, InvalidConfigError
from .storage import DATABASE_FILENAME

DEFAULT_CONFIG_PATH = Path.home() / ".config" / "tamatebako" / "config.toml"
DEFAULT_ROOTDIR = Path.home() / ".tamatebako"


def _check_type(key: str, value: Any, expected: tuple[type, ...], optional: bool = False) -> None:
    """Raise InvalidConfigError unless ``value`` is an instance of ``expected``.

    TOML booleans are never accepted as numbers.
    """
    if value is None and optional:
        return
    if isinstance(value, expected) and not (isinstance(value, bool) and bool not in expected):
        return
    names = " or ".join(t.__name__ for t in expected)
    raise InvalidConfigError(key, value, f"must be {names}, got {type(value).__name__}")


@dataclass(frozen=True)
class ProjectSourceConfig:
    """Where a project's versions come from. Either part may be absent."""

    git: Optional[str] = None
    branch: str = "master"
    github: Optional[str] = None  # owner/repo

    def __post_init__(self) -> None:
        _check_type("source.git", self.git, (str,), optional=True)
        _check_type("source.github", self.github, (str,), optional=True)
        _check_type("source.branch", self.branch, (str,))
        if not self.branch:
            raise InvalidConfigError("source.branch", self.branch, "must not be empty")

    @property
    def is_empty(self) -> bool:
        return not self.git and not self.github


@dataclass(frozen=True)
class ProjectConfig:
    url: Optional[str] = None  # canonical project page
    source: Optional[ProjectSourceConfig] = None
    version_regex: Optional[str] = None

    def __post_init__(self) -> None:
        _check_type("url", self.url, (str,), optional=True)
        _check_type("source", self.source, (ProjectSourceConfig,), optional=True)
        _check_type("version_regex", self.version_regex, (str,), optional=True)


@dataclass(frozen=True)
class AppConfig:
    """Process-wide settings plus the project table.

    Attributes:
        rootdir: Workspace root. Git clones and the database live here.
        projects: Project name -> ProjectConfig.
        git_ssh_key: Private key used for ssh remotes.
        github_access_token: Bearer token for the releases API.
        http_timeout: Seconds before a releases API request gives up.
        max_commits: Commits inspected per git workspace.
    """

    rootdir: Path = DEFAULT_ROOTDIR
    projects: dict[str, ProjectConfig] = field(default_factory=dict)
    git_ssh_key: Optional[str] = None
    github_access_token: Optional[str] = None
    http_timeout: float = 30.0
    max_commits: int = 300

    def __post_init__(self) -> None:
        _check_type("rootdir", self.rootdir, (str, Path))
        _check_type("projects", self.projects, (dict,))
        _check_type("git_ssh_key", self.git_ssh_key, (str,), optional=True)
        _check_type("github_access_token", self.github_access_token, (str,), optional=True)
        _check_type("http_timeout", self.http_timeout, (int, float))
        _check_type("max_commits", self.max_commits, (int,))
        if self.http_timeout <= 0:
            raise InvalidConfigError("http_timeout", self.http_timeout, "must be positive")
        if self.max_commits < 1:
            raise InvalidConfigError("max_commits", self.max_commits, "must be at least 1")

    @property
    def database_path(self) -> Path:
        return Path(self.rootdir) / DATABASE_FILENAME


# Settings readable from the environment, TAMATEBAKO_<NAME>
_ENV_FIELDS = ("rootdir", "git_ssh_key", "github_access_token", "http_timeout", "max_commits")


def load_config(config_file: Optional[Path] = None, **overrides: Any) -> AppConfig:
    """Load configuration from file, environment and overrides.

    Args:
        config_file: Explicit config file. Must exist when given.
        **overrides: Direct setting overrides.

    Raises:
        ConfigFileError: If the file is missing or not valid TOML.
        InvalidConfigError: If a value is invalid.
    """
    merged: dict[str, Any] = {}
    projects: dict[str, ProjectConfig] = {}

    if config_file is not None:
        config_file = Path(config_file).expanduser()
        if not config_file.exists():
            raise ConfigFileError(config_file, "not found")
        settings, projects = _split_document(_load_toml_file(config_file))
        merged.update(settings)
    elif DEFAULT_CONFIG_PATH.exists():
        settings, projects = _split_document(_load_toml_file(DEFAULT_CONFIG_PATH))
        merged.update(settings)

    merged.update(_load_env_vars())
    merged.update({k: v for k, v in overrides.items() if v is not None})

    unknown = set(merged) - set(_ENV_FIELDS)
    if unknown:
        name = sorted(unknown)[0]
        raise InvalidConfigError(name, merged[name], "unknown setting")

    if "rootdir" in merged:
        _check_type("rootdir", merged["rootdir"], (str, Path))
        merged["rootdir"] = Path(merged["rootdir"]).expanduser()
    if merged.get("git_ssh_key"):
        _check_type("git_ssh_key", merged["git_ssh_key"], (str,))
        merged["git_ssh_key"] = str(Path(merged["git_ssh_key"]).expanduser())

    return AppConfig(projects=projects, **merged)


def _split_document(doc: dict[str, Any]) -> tuple[dict[str, Any], dict[str, ProjectConfig]]:
    """Separate top-level settings from project tables."""
    settings: dict[str, Any] = {}
    projects: dict[str, ProjectConfig] = {}
    for key, value in doc.items():
        if isinstance(value, dict):
            projects[key] = _parse_project(key, value)
        else:
            settings[key] = value
    return settings, projects


def _parse_project(name: str, table: dict[str, Any]) -> ProjectConfig:
    source_table = table.get("source")
    source = None
    if source_table is not None:
        if not isinstance(source_table, dict):
            raise InvalidConfigError(f"{name}.source", source_table, "must be a table")
        try:
            source = ProjectSourceConfig(**source_table)
        except TypeError as e:
            raise InvalidConfigError(f"{name}.source", source_table, str(e))
        except InvalidConfigError as e:
            raise InvalidConfigError(f"{name}.{e.key}", e.value, e.reason)

    fields = {k: v for k, v in table.items() if k != "source"}
    try:
        return ProjectConfig(source=source, **fields)
    except TypeError as e:
        raise InvalidConfigError(name, fields, str(e))
    except InvalidConfigError as e:
        raise InvalidConfigError(f"{name}.{e.key}", e.value, e.reason)


def _load_env_vars() -> dict[str, Any]:
    """Load settings from TAMATEBAKO_* environment variables."""
    type_hints = get_type_hints(AppConfig)
    result: dict[str, Any] = {}

    for field_name in _ENV_FIELDS:
        env_key = f"TAMATEBAKO_{field_name.upper()}"
        env_value = os.environ.get(env_key)
        if env_value is None:
            continue

        type_hint = type_hints[field_name]
        try:
            if type_hint is int:
                result[field_name] = int(env_value)
            elif type_hint is float:
                result[field_name] = float(env_value)
            else:
                result[field_name] = env_value
        except ValueError as e:
            raise InvalidConfigError(env_key, env_value, str(e))

    return result


def _load_toml_file(path: Path) -> dict:
    """Load TOML file and return parsed dict.

    Raises:
        ConfigFileError: If TOML parsing fails
    """
    try:
        # Python 3.11+ has tomllib in stdlib
        import tomllib
    except ModuleNotFoundError:
        import tomli as tomllib  # type: ignore

    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        raise ConfigFileError(path, str(e))
