"""X (Twitter) descriptor.

The timeline mostly scrolls the whole document, but some layouts put an
``overflow-y: auto`` wrapper around the primary column. The finder walks up
from the primary column and returns the first ancestor that actually scrolls,
falling back to the document scrolling root.
"""
from __future__ import annotations

import re
from typing import Optional

from scrollguard_content.capabilities import Element, PageHost
from scrollguard_content.sites.types import OptionalFeedPattern, SiteDescriptor, compile_patterns

PRIMARY_COLUMN_SELECTOR = '[data-testid="primaryColumn"]'
_SCROLLABLE_OVERFLOW = {"auto", "scroll"}


def find_scroll_container(page: PageHost) -> Optional[Element]:
    primary_column = page.query_selector(PRIMARY_COLUMN_SELECTOR)
    if primary_column is None:
        return page.scrolling_root()

    current: Optional[Element] = primary_column
    while current is not None:
        if page.overflow_y(current) in _SCROLLABLE_OVERFLOW:
            scroll_height, client_height = page.scroll_extent(current)
            if scroll_height > client_height:
                return current
        current = page.parent_of(current)
    return page.scrolling_root()


X_DESCRIPTOR = SiteDescriptor(
    name="x",
    label="X",
    host_pattern=re.compile(r"^(www\.)?(x\.com|twitter\.com)$"),
    feed_url_patterns=compile_patterns(r"^/home/?$", r"^/$", r"^/explore/?$"),
    scroll_container_selector=PRIMARY_COLUMN_SELECTOR,
    scroll_container_finder=find_scroll_container,
    optional_feed_patterns=(
        OptionalFeedPattern(key="search", label="Search", patterns=compile_patterns(r"^/search")),
        OptionalFeedPattern(
            key="profile",
            label="Profile",
            patterns=compile_patterns(
                r"^/(?!home$|explore$|search|settings|messages|notifications|i/|compose|tos$|privacy$"
                r"|login$|logout$|hashtag/)[a-zA-Z0-9_]{1,15}(/(?:with_replies|media|likes|highlights))?/?$"
            ),
        ),
    ),
)
