"""Base class for raw event sources.

Every source exposes one capability, ``fetch()``, so the collector stays
source-agnostic. ``prepare()`` is the hook for sources that need to
synchronize local state before fetching.
"""

from abc import ABC, abstractmethod
from typing import Iterator, Optional

from ..models import RawEvent, SourceKind


class RawEventSource(ABC):
    """Produce a lazy, finite stream of RawEvents from one external system."""

    kind: SourceKind
    channel: str = ""
    timestamp_format: str

    def prepare(self) -> None:
        """Bring local state up to date before ``fetch()``. No-op by default."""

    @abstractmethod
    def fetch(self) -> Iterator[RawEvent]:
        """Yield raw events. May be called repeatedly."""

    @abstractmethod
    def origin_url(self, raw: RawEvent, version: str) -> Optional[str]:
        """URL recorded alongside the normalized version, if any."""

    def describe(self) -> str:
        return self.kind.value
