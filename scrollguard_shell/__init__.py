"""PyQt6 WebEngine host for the scroll blocker."""
