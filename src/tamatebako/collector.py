"""Drive collection for every configured project.

For each project with a source table, build its sources, pull raw events,
normalize them and append them to the history store. Failures of one source
are logged and do not stop the other sources or projects; only storage
failures abort the run.
"""

from __future__ import annotations

from typing import Callable, Optional

import requests

from .config import AppConfig, ProjectConfig
from .exceptions import CollectionError, ConfigurationError
from .logging_config import get_logger
from .sources import GitRunner, RawEventSource, ReleaseApiSource, RepositoryLogSource
from .storage import HistoryStore
from .versioning import EventNormalizer, VersionPattern

logger = get_logger(__name__)


class Collector:
    """Collect version events for the projects in an AppConfig."""

    def __init__(
        self,
        config: AppConfig,
        store: HistoryStore,
        runner: Optional[GitRunner] = None,
        session: Optional[requests.Session] = None,
    ):
        self.config = config
        self.store = store
        self.runner = runner or GitRunner(ssh_key=config.git_ssh_key)
        self.session = session or requests.Session()

    def build_sources(self, name: str, project: ProjectConfig) -> list[RawEventSource]:
        """Construct the sources configured for ``project``.

        A malformed git remote or GitHub slug drops only that source.
        """
        source = project.source
        if source is None:
            return []

        sources: list[RawEventSource] = []
        if source.git:
            try:
                sources.append(
                    RepositoryLogSource(
                        source.git,
                        self.config.rootdir,
                        branch=source.branch,
                        project_url=project.url,
                        runner=self.runner,
                        max_commits=self.config.max_commits,
                    )
                )
            except ConfigurationError as e:
                logger.error("%s: skipping git source: %s", name, e)

        if source.github:
            try:
                sources.append(
                    ReleaseApiSource.from_slug(
                        source.github,
                        token=self.config.github_access_token,
                        session=self.session,
                        timeout=self.config.http_timeout,
                    )
                )
            except ConfigurationError as e:
                logger.error("%s: skipping github source: %s", name, e)

        return sources

    def collect_source(self, name: str, source: RawEventSource, normalizer: EventNormalizer) -> int:
        """Run one source and return the number of new rows.

        A ``CollectionError`` (sync, fetch or timestamp format) ends this
        source's pass; it is logged and the rows appended before it count.

        Raises:
            PersistenceError: If the store fails.
        """
        inserted = 0
        try:
            source.prepare()
            for raw in source.fetch():
                event = normalizer.normalize(raw, source)
                if event is None:
                    continue
                if self.store.append(event):
                    inserted += 1
        except CollectionError as e:
            logger.error("%s: %s source failed: %s", name, source.kind.value, e)
        else:
            logger.debug("%s: %d new row(s) from %s", name, inserted, source.describe())
        return inserted

    def collect(self, name: str, project: ProjectConfig) -> int:
        """Collect one project across all its sources. Returns new rows summed.

        Raises:
            PersistenceError: If the store fails.
        """
        sources = self.build_sources(name, project)
        if not sources:
            return 0

        try:
            pattern = VersionPattern(project.version_regex)
        except ConfigurationError as e:
            logger.error("%s: skipping project: %s", name, e)
            return 0
        normalizer = EventNormalizer(name, pattern)

        total = sum(self.collect_source(name, source, normalizer) for source in sources)
        if total == 0:
            logger.info("no new version(s): %s", name)
        return total

    def collect_all(self, should_stop: Optional[Callable[[], bool]] = None) -> dict[str, int]:
        """Collect every project with a source, in name order.

        Args:
            should_stop: Checked between projects; returning True ends the run
                early. There is no finer-grained cancellation.

        Returns:
            Project name -> new row count for each project visited.
        """
        results: dict[str, int] = {}
        for name in sorted(self.config.projects):
            if should_stop is not None and should_stop():
                logger.info("Collection stopped before %s", name)
                break
            project = self.config.projects[name]
            if project.source is None or project.source.is_empty:
                logger.debug("%s: no source configured, skipping", name)
                continue
            results[name] = self.collect(name, project)
        return results
