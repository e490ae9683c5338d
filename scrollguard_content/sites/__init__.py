from .registry import SiteRegistry, default_registry
from .types import OptionalFeedPattern, SiteDescriptor
from .x import X_DESCRIPTOR

__all__ = ["OptionalFeedPattern", "SiteDescriptor", "SiteRegistry", "X_DESCRIPTOR", "default_registry"]
