"""Site-agnostic infinite-scroll blocking: navigation, container lookup, scroll accounting, blocking."""
