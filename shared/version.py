"""Project version metadata."""

from __future__ import annotations

VERSION = "0.3.0"

__version__ = VERSION

__all__ = ["VERSION", "__version__"]
