"""Collect releases from the GitHub releases API.

One request per run: only the first page of releases is read, so projects
with more than ``RELEASES_PAGE_SIZE`` releases between runs lose the oldest
ones.
"""

from __future__ import annotations

from typing import Any, Iterator, Optional

import requests

from .. import __version__
from ..exceptions import FetchError, InvalidConfigError
from ..logging_config import get_logger
from ..models import RawEvent, SourceKind
from ..versioning import RELEASE_TIMESTAMP_FORMAT
from .base import RawEventSource

logger = get_logger(__name__)

GITHUB_API = "https://api.github.com"
RELEASES_PAGE_SIZE = 30
USER_AGENT = f"tamatebako/{__version__}"
DEFAULT_TIMEOUT = 30


class ReleaseApiSource(RawEventSource):
    """Releases of one ``owner/repo`` on GitHub."""

    kind = SourceKind.GITHUB
    channel = ""
    timestamp_format = RELEASE_TIMESTAMP_FORMAT

    def __init__(
        self,
        owner: str,
        repo: str,
        token: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout: float = DEFAULT_TIMEOUT,
        api_url: str = GITHUB_API,
    ):
        self.owner = owner
        self.repo = repo
        self.token = token
        self.session = session or requests.Session()
        self.timeout = timeout
        self.api_url = api_url.rstrip("/")

    @classmethod
    def from_slug(cls, slug: str, **kwargs: Any) -> "ReleaseApiSource":
        """Build from ``owner/repo``.

        Raises:
            InvalidConfigError: If the slug is not exactly two non-empty parts.
        """
        parts = slug.strip().split("/")
        if len(parts) != 2 or not all(parts):
            raise InvalidConfigError("source.github", slug, "expected owner/repo")
        return cls(parts[0], parts[1], **kwargs)

    @property
    def releases_url(self) -> str:
        return f"{self.api_url}/repos/{self.owner}/{self.repo}/releases"

    def _headers(self) -> dict[str, str]:
        headers = {
            "User-Agent": USER_AGENT,
            "Accept": "application/vnd.github+json",
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _get_releases(self) -> list[Any]:
        try:
            response = self.session.get(
                self.releases_url,
                headers=self._headers(),
                params={"per_page": RELEASES_PAGE_SIZE},
                timeout=self.timeout,
            )
            response.raise_for_status()
            payload = response.json()
        except requests.RequestException as e:
            raise FetchError(f"GET {self.releases_url}: {e}")
        except ValueError as e:
            raise FetchError(f"GET {self.releases_url}: invalid JSON: {e}")

        if not isinstance(payload, list):
            raise FetchError(f"GET {self.releases_url}: expected a JSON array, got {type(payload).__name__}")
        return payload

    def fetch(self) -> Iterator[RawEvent]:
        """Yield one RawEvent per release on the first page.

        Raises:
            FetchError: On network, HTTP, JSON or schema failure.
        """
        releases = self._get_releases()
        logger.debug("%s/%s: %d release(s) returned", self.owner, self.repo, len(releases))

        for release in releases:
            try:
                tag_name = release["tag_name"]
                created_at = release["created_at"]
                html_url = release["html_url"]
            except (KeyError, TypeError) as e:
                raise FetchError(f"malformed release object from {self.releases_url}: missing {e}")
            if not all(isinstance(v, str) for v in (tag_name, created_at, html_url)):
                raise FetchError(f"malformed release object from {self.releases_url}: {release!r}")
            yield RawEvent(label=tag_name, timestamp_text=created_at, identity=html_url)

    def origin_url(self, raw: RawEvent, version: str) -> Optional[str]:
        return raw.identity

    def describe(self) -> str:
        return f"github {self.owner}/{self.repo}"
