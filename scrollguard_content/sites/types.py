"""Static per-site rules."""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable, Optional, Pattern, Tuple

if TYPE_CHECKING:  # pragma: no cover
    from scrollguard_content.capabilities import Element, PageHost

ContainerFinder = Callable[["PageHost"], Optional["Element"]]


@dataclass(frozen=True)
class OptionalFeedPattern:
    """Feed pattern that is off by default and toggled per key in settings."""

    key: str
    label: str
    patterns: Tuple[Pattern[str], ...]


@dataclass(frozen=True)
class SiteDescriptor:
    name: str
    label: str
    host_pattern: Pattern[str]
    feed_url_patterns: Tuple[Pattern[str], ...]
    scroll_container_selector: str
    scroll_container_finder: Optional[ContainerFinder] = None
    optional_feed_patterns: Tuple[OptionalFeedPattern, ...] = field(default_factory=tuple)

    def matches_host(self, hostname: str) -> bool:
        return bool(self.host_pattern.search(hostname or ""))

    def optional_feed_keys(self) -> Tuple[str, ...]:
        return tuple(entry.key for entry in self.optional_feed_patterns)


def compile_patterns(*sources: str) -> Tuple[Pattern[str], ...]:
    return tuple(re.compile(source) for source in sources)
