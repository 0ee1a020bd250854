"""plugbay -- a registry for plugins distributed as single-file images."""

__version__ = "0.1.0"
