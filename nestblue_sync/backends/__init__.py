"""Backend implementations."""

from nestblue_sync.backends.http import HttpBackend

__all__ = ["HttpBackend"]
