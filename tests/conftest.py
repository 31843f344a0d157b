"""Shared test fixtures for tamatebako tests."""

import os
import shutil
import subprocess
from pathlib import Path

import pytest

from tamatebako.storage import HistoryStore


def pytest_configure(config):
    """Register the git marker."""
    config.addinivalue_line("markers", "git: test runs the real git executable")


def pytest_collection_modifyitems(config, items):
    """Skip git tests when git is not installed."""
    if shutil.which("git") is not None:
        return
    skip_git = pytest.mark.skip(reason="git executable not available")
    for item in items:
        if item.get_closest_marker("git") is not None:
            item.add_marker(skip_git)


@pytest.fixture
def store(tmp_path):
    """History store backed by a file in a temp directory."""
    with HistoryStore(tmp_path / "tamatebako.sqlite") as s:
        yield s


def _git(cwd: Path, *args: str, date: str = "2024-06-01T10:00:00 +0000") -> str:
    env = dict(os.environ)
    env.update(
        {
            "GIT_AUTHOR_NAME": "Test",
            "GIT_AUTHOR_EMAIL": "test@example.com",
            "GIT_COMMITTER_NAME": "Test",
            "GIT_COMMITTER_EMAIL": "test@example.com",
            "GIT_AUTHOR_DATE": date,
            "GIT_COMMITTER_DATE": date,
            "GIT_CONFIG_NOSYSTEM": "1",
            "GIT_CONFIG_GLOBAL": os.devnull,
        }
    )
    result = subprocess.run(
        ["git", *args], cwd=str(cwd), env=env, capture_output=True, text=True, check=True
    )
    return result.stdout


@pytest.fixture
def run_git():
    """Run git in a directory with a fixed identity and commit date."""
    return _git


@pytest.fixture
def upstream_repo(tmp_path):
    """A local git repo on branch ``main`` with one commit tagged v2.0.0."""
    repo = tmp_path / "upstream" / "demo"
    repo.mkdir(parents=True)
    _git(repo, "init", "-q")
    _git(repo, "checkout", "-q", "-b", "main")
    (repo / "README").write_text("demo\n")
    _git(repo, "add", "README")
    _git(repo, "commit", "-q", "-m", "initial import")
    _git(repo, "tag", "v2.0.0")
    return repo
