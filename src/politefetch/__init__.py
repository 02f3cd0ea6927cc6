"""politefetch: polite fetching of web pages, RSS feeds and news search results."""

from __future__ import annotations

import warnings
from importlib.metadata import PackageNotFoundError, version

__all__ = ["__version__"]

try:
    __version__ = version("politefetch")
except PackageNotFoundError:
    # Running from a source checkout that was never pip-installed
    warnings.warn(
        "Package metadata for 'politefetch' not found; using fallback version '0.0.0+unknown'.",
        RuntimeWarning,
        stacklevel=2,
    )
    __version__ = "0.0.0+unknown"
