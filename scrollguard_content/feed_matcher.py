from __future__ import annotations

from typing import TYPE_CHECKING, Optional
from urllib.parse import urlsplit

from scrollguard_content.sites.types import SiteDescriptor

if TYPE_CHECKING:  # pragma: no cover
    from scrollguard_shared.settings_store import SiteSettings


def url_path(url: str) -> str:
    """Return the path component, or the raw value when it is not a full URL."""
    try:
        parts = urlsplit(url)
    except ValueError:
        return url
    if not parts.scheme or not parts.netloc:
        return url
    return parts.path or "/"


def is_feed_url(url: str, descriptor: SiteDescriptor, site_settings: Optional["SiteSettings"] = None) -> bool:
    path = url_path(url)
    if any(pattern.search(path) for pattern in descriptor.feed_url_patterns):
        return True
    if site_settings is None or not descriptor.optional_feed_patterns:
        return False
    enabled = site_settings.optional_feeds
    for optional in descriptor.optional_feed_patterns:
        if enabled.get(optional.key) and any(pattern.search(path) for pattern in optional.patterns):
            return True
    return False
