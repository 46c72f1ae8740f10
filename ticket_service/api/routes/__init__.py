"""Route modules exposed by the API package."""

from . import health, tickets

__all__ = ["health", "tickets"]
