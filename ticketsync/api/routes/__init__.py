"""Route modules for the ticket sync API."""

from . import passes, ping

__all__ = ["passes", "ping"]
