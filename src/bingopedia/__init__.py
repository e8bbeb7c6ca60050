"""Navigation and matching engine for Wikipedia bingo."""

from .version import __version__

__all__ = ["__version__"]
