"""Disk-backed caches for market-data payloads."""

from .quote_cache import QuoteCache
from .rava_cache import RavaCedearsCache

__all__ = ["QuoteCache", "RavaCedearsCache"]
