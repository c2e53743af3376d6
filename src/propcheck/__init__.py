"""propcheck: prop-firm challenge rule evaluation and trade simulation."""

from propcheck.version import __version__

__all__ = ["__version__"]
