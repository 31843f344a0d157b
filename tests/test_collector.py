"""Tests for the collection orchestrator."""

from datetime import datetime
from unittest.mock import MagicMock

import pytest
import requests

from tamatebako.collector import Collector
from tamatebako.config import AppConfig, ProjectConfig, ProjectSourceConfig
from tamatebako.exceptions import FetchError, PersistenceError, SyncError
from tamatebako.models import RawEvent, SourceKind
from tamatebako.sources import ReleaseApiSource, RepositoryLogSource
from tamatebako.sources.base import RawEventSource
from tamatebako.versioning import (
    RELEASE_TIMESTAMP_FORMAT,
    REPOSITORY_TIMESTAMP_FORMAT,
    EventNormalizer,
    VersionPattern,
)

HASH = "c" * 40


class StubSource(RawEventSource):
    """Source serving canned raw events, optionally failing part way."""

    def __init__(self, raws, kind=SourceKind.GIT, channel="main", fail_after=None, fail_prepare=False):
        self.kind = kind
        self.channel = channel
        self.timestamp_format = (
            REPOSITORY_TIMESTAMP_FORMAT if kind is SourceKind.GIT else RELEASE_TIMESTAMP_FORMAT
        )
        self.raws = raws
        self.fail_after = fail_after
        self.fail_prepare = fail_prepare

    def prepare(self):
        if self.fail_prepare:
            raise SyncError("git pull failed")

    def fetch(self):
        for i, raw in enumerate(self.raws):
            if self.fail_after is not None and i >= self.fail_after:
                raise FetchError("connection reset")
            yield raw

    def origin_url(self, raw, version):
        return None


def git_raw(tag, date="2024/06/01 10:00:00"):
    return RawEvent(tag, date, HASH)


def release_raw(tag, date="2024-07-01T00:00:00Z"):
    return RawEvent(tag, date, f"https://x/releases/tag/{tag}")


def make_config(tmp_path, **projects):
    return AppConfig(rootdir=tmp_path, projects=projects)


def make_collector(tmp_path, store, **projects):
    return Collector(
        make_config(tmp_path, **projects),
        store,
        runner=MagicMock(),
        session=MagicMock(spec=requests.Session),
    )


class TestBuildSources:
    def test_no_source_table(self, tmp_path, store):
        collector = make_collector(tmp_path, store)
        assert collector.build_sources("p", ProjectConfig(url="https://x")) == []

    def test_git_and_github(self, tmp_path, store):
        project = ProjectConfig(
            url="https://github.com/o/r",
            source=ProjectSourceConfig(git="https://github.com/o/r.git", branch="dev", github="o/r"),
        )
        collector = make_collector(tmp_path, store)
        sources = collector.build_sources("p", project)

        assert [type(s) for s in sources] == [RepositoryLogSource, ReleaseApiSource]
        git_source, github_source = sources
        assert git_source.workspace == tmp_path / "github.com" / "o" / "r"
        assert git_source.channel == "dev"
        assert git_source.runner is collector.runner
        assert github_source.session is collector.session

    def test_malformed_remote_drops_only_git_source(self, tmp_path, store):
        project = ProjectConfig(source=ProjectSourceConfig(git="not-a-remote", github="o/r"))
        sources = make_collector(tmp_path, store).build_sources("p", project)
        assert [s.kind for s in sources] == [SourceKind.GITHUB]

    def test_malformed_slug_drops_only_github_source(self, tmp_path, store):
        project = ProjectConfig(source=ProjectSourceConfig(git="https://h/o/r.git", github="nope"))
        sources = make_collector(tmp_path, store).build_sources("p", project)
        assert [s.kind for s in sources] == [SourceKind.GIT]

    def test_token_and_timeout_passed_to_releases(self, tmp_path, store):
        config = AppConfig(rootdir=tmp_path, github_access_token="tok", http_timeout=5)
        collector = Collector(config, store, runner=MagicMock(), session=MagicMock())
        project = ProjectConfig(source=ProjectSourceConfig(github="o/r"))
        (source,) = collector.build_sources("p", project)
        assert source.token == "tok"
        assert source.timeout == 5


class TestCollectSource:
    def test_end_to_end_git_event(self, tmp_path, store):
        collector = make_collector(tmp_path, store)
        source = StubSource([git_raw("v2.0.0")])
        normalizer = EventNormalizer("demo", VersionPattern(r"^v(.*)$"))

        assert collector.collect_source("demo", source, normalizer) == 1
        (row,) = store.all()
        assert row.version == "2.0.0"
        assert row.occurred_at == datetime(2024, 6, 1, 10, 0, 0)
        assert row.channel == "main"

    def test_rerun_inserts_nothing(self, tmp_path, store):
        collector = make_collector(tmp_path, store)
        source = StubSource([git_raw("v1"), git_raw("v2")])
        normalizer = EventNormalizer("demo")
        assert collector.collect_source("demo", source, normalizer) == 2
        assert collector.collect_source("demo", source, normalizer) == 0
        assert store.count() == 2

    def test_non_matching_labels_are_skipped(self, tmp_path, store):
        collector = make_collector(tmp_path, store)
        source = StubSource([git_raw("v1.0"), git_raw("nightly"), git_raw("v1.1")])
        normalizer = EventNormalizer("demo", VersionPattern(r"^v(\d+\.\d+)$"))
        assert collector.collect_source("demo", source, normalizer) == 2

    def test_sync_failure_contributes_zero(self, tmp_path, store):
        collector = make_collector(tmp_path, store)
        source = StubSource([git_raw("v1")], fail_prepare=True)
        assert collector.collect_source("demo", source, EventNormalizer("demo")) == 0
        assert store.count() == 0

    def test_fetch_failure_keeps_earlier_rows(self, tmp_path, store):
        collector = make_collector(tmp_path, store)
        source = StubSource([git_raw("v1"), git_raw("v2"), git_raw("v3")], fail_after=2)
        assert collector.collect_source("demo", source, EventNormalizer("demo")) == 2

    def test_bad_timestamp_aborts_pass(self, tmp_path, store):
        collector = make_collector(tmp_path, store)
        source = StubSource([git_raw("v1"), git_raw("v2", date="2024-06-01T10:00:00Z"), git_raw("v3")])
        assert collector.collect_source("demo", source, EventNormalizer("demo")) == 1
        assert [r.version for r in store.all()] == ["v1"]

    def test_store_failure_propagates(self, tmp_path):
        store = MagicMock()
        store.append.side_effect = PersistenceError("append", "disk I/O error")
        collector = make_collector(tmp_path, store)
        with pytest.raises(PersistenceError):
            collector.collect_source("demo", StubSource([git_raw("v1")]), EventNormalizer("demo"))


class TestCollect:
    def test_counts_from_both_sources_are_summed(self, tmp_path, store, monkeypatch):
        collector = make_collector(tmp_path, store)
        git_source = StubSource([git_raw("v1.0"), git_raw("v1.1")])
        github_source = StubSource([release_raw("v1.2")], kind=SourceKind.GITHUB, channel="")
        monkeypatch.setattr(collector, "build_sources", lambda name, project: [git_source, github_source])

        project = ProjectConfig(source=ProjectSourceConfig(git="https://h/o/r.git", github="o/r"))
        assert collector.collect("demo", project) == 3

    def test_failing_source_does_not_block_other(self, tmp_path, store, monkeypatch):
        collector = make_collector(tmp_path, store)
        broken = StubSource([git_raw("v1.0")], fail_prepare=True)
        github_source = StubSource([release_raw("1.2")], kind=SourceKind.GITHUB, channel="")
        monkeypatch.setattr(collector, "build_sources", lambda name, project: [broken, github_source])

        assert collector.collect("demo", ProjectConfig(source=ProjectSourceConfig(github="o/r"))) == 1

    def test_invalid_version_regex_skips_project(self, tmp_path, store, monkeypatch):
        collector = make_collector(tmp_path, store)
        monkeypatch.setattr(collector, "build_sources", lambda name, project: [StubSource([git_raw("v1")])])
        project = ProjectConfig(source=ProjectSourceConfig(github="o/r"), version_regex="v(")
        assert collector.collect("demo", project) == 0
        assert store.count() == 0

    def test_zero_new_rows_is_logged_at_info(self, tmp_path, store, monkeypatch, caplog):
        collector = make_collector(tmp_path, store)
        monkeypatch.setattr(collector, "build_sources", lambda name, project: [StubSource([])])
        with caplog.at_level("INFO", logger="tamatebako"):
            assert collector.collect("quiet", ProjectConfig(source=ProjectSourceConfig(github="o/r"))) == 0
        record = next(r for r in caplog.records if "no new version" in r.getMessage())
        assert record.levelname == "INFO"
        assert "quiet" in record.getMessage()


class TestCollectAll:
    def test_skips_projects_without_source(self, tmp_path, store, monkeypatch):
        collector = make_collector(
            tmp_path,
            store,
            bare=ProjectConfig(url="https://x"),
            empty=ProjectConfig(source=ProjectSourceConfig()),
            real=ProjectConfig(source=ProjectSourceConfig(github="o/r")),
        )
        monkeypatch.setattr(collector, "build_sources", lambda name, project: [StubSource([git_raw("v1")])])
        assert collector.collect_all() == {"real": 1}

    def test_projects_visited_in_name_order(self, tmp_path, store, monkeypatch):
        project = ProjectConfig(source=ProjectSourceConfig(github="o/r"))
        collector = make_collector(tmp_path, store, zeta=project, alpha=project, mid=project)
        seen = []

        def fake_collect(name, project):
            seen.append(name)
            return 0

        monkeypatch.setattr(collector, "collect", fake_collect)
        collector.collect_all()
        assert seen == ["alpha", "mid", "zeta"]

    def test_should_stop_between_projects(self, tmp_path, store, monkeypatch):
        project = ProjectConfig(source=ProjectSourceConfig(github="o/r"))
        collector = make_collector(tmp_path, store, a=project, b=project, c=project)
        monkeypatch.setattr(collector, "collect", lambda name, project: 1)
        calls = iter([False, True])
        assert collector.collect_all(should_stop=lambda: next(calls)) == {"a": 1}

    def test_persistence_error_aborts_run(self, tmp_path, monkeypatch):
        store = MagicMock()
        store.append.side_effect = PersistenceError("append", "database disk image is malformed")
        project = ProjectConfig(source=ProjectSourceConfig(github="o/r"))
        collector = make_collector(tmp_path, store, a=project, b=project)
        monkeypatch.setattr(collector, "build_sources", lambda name, project: [StubSource([git_raw("v1")])])
        with pytest.raises(PersistenceError):
            collector.collect_all()
        assert store.append.call_count == 1
