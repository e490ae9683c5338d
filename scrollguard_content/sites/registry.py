"""Registry of supported sites; adding a site means adding a descriptor here."""
from __future__ import annotations

from typing import Iterable, Optional, Tuple

from scrollguard_content.sites.types import SiteDescriptor
from scrollguard_content.sites.x import X_DESCRIPTOR


class SiteRegistry:
    def __init__(self, descriptors: Iterable[SiteDescriptor]) -> None:
        self._descriptors: Tuple[SiteDescriptor, ...] = tuple(descriptors)

    def get_descriptor(self, hostname: str) -> Optional[SiteDescriptor]:
        for descriptor in self._descriptors:
            if descriptor.matches_host(hostname):
                return descriptor
        return None

    def get_descriptor_by_name(self, name: str) -> Optional[SiteDescriptor]:
        for descriptor in self._descriptors:
            if descriptor.name == name:
                return descriptor
        return None

    def all(self) -> Tuple[SiteDescriptor, ...]:
        return self._descriptors

    def site_ids(self) -> Tuple[str, ...]:
        return tuple(descriptor.name for descriptor in self._descriptors)


_DEFAULT_REGISTRY = SiteRegistry([X_DESCRIPTOR])


def default_registry() -> SiteRegistry:
    return _DEFAULT_REGISTRY
