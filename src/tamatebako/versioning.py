"""Version extraction and event normalization.

A raw label (tag name or release tag) becomes a version string through an
optional user-supplied capture expression. Labels that do not match are not
version bumps and are discarded. Timestamps are parsed strictly under the
format their source emits; a mismatch means the source format drifted and is
raised rather than skipped.
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import TYPE_CHECKING, Optional

from .exceptions import InvalidConfigError, TimestampFormatError
from .logging_config import get_logger
from .models import RawEvent, VersionEvent

if TYPE_CHECKING:
    from .sources.base import RawEventSource

logger = get_logger(__name__)

# git log --date=format:... output, in the commit's recorded timezone
REPOSITORY_TIMESTAMP_FORMAT = "%Y/%m/%d %H:%M:%S"

# GitHub API created_at, always UTC
RELEASE_TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


class VersionPattern:
    """Compiled version capture expression.

    Built once per project and shared read-only by every normalization call
    for that project.

    >>> VersionPattern(r"^v(\\d+\\.\\d+\\.\\d+)$").extract("v1.2.3")
    '1.2.3'
    >>> VersionPattern(None).extract(" 1.2.3 ")
    '1.2.3'
    """

    __slots__ = ("_regex",)

    def __init__(self, expression: Optional[str] = None):
        if expression is None or expression == "":
            self._regex = None
            return
        try:
            self._regex = re.compile(expression)
        except re.error as e:
            raise InvalidConfigError("version_regex", expression, str(e))

    @property
    def expression(self) -> Optional[str]:
        return self._regex.pattern if self._regex is not None else None

    def extract(self, label: str) -> Optional[str]:
        """Return the normalized version for ``label`` or None when it is not one."""
        if self._regex is None:
            return label.strip() or None

        match = self._regex.search(label)
        if match is None:
            return None

        version = match.group(1) if self._regex.groups else match.group(0)
        if version is None:
            return None
        return version.strip() or None

    def __repr__(self) -> str:
        return f"VersionPattern({self.expression!r})"


def parse_timestamp(
    text: str,
    fmt: str,
    project: Optional[str] = None,
    kind: Optional[str] = None,
) -> datetime:
    """Parse ``text`` strictly under ``fmt``.

    Raises:
        TimestampFormatError: If the text does not match the format.
    """
    try:
        return datetime.strptime(text.strip(), fmt)
    except ValueError:
        raise TimestampFormatError(text, fmt, project=project, kind=kind) from None


class EventNormalizer:
    """Turn raw events into VersionEvents for one project."""

    def __init__(self, project_name: str, pattern: Optional[VersionPattern] = None):
        self.project_name = project_name
        self.pattern = pattern or VersionPattern(None)

    def normalize(self, raw: RawEvent, source: RawEventSource) -> Optional[VersionEvent]:
        """Return the event, or None when the label is not a version bump.

        Raises:
            TimestampFormatError: If the timestamp does not match the
                source's format.
        """
        version = self.pattern.extract(raw.label)
        if version is None:
            logger.debug("%s: %r is not a version, skipping", self.project_name, raw.label)
            return None

        occurred_at = parse_timestamp(
            raw.timestamp_text,
            source.timestamp_format,
            project=self.project_name,
            kind=source.kind.value,
        )

        return VersionEvent(
            project_name=self.project_name,
            channel=source.channel,
            version=version,
            occurred_at=occurred_at,
            url=source.origin_url(raw, version),
        )
