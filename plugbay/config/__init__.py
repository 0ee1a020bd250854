"""plugbay configuration -- environment-driven settings."""

from .settings import Settings

__all__ = [
    "Settings",
]
