"""Market data providers: quota ledger, symbol catalog and HTTP clients."""

from .eodhd_client import EodhdClient
from .provider_metrics import CANONICAL_PROVIDERS, ProviderMetrics
from .symbols import QuoteSymbolsAggregator, SymbolCatalog
from .twelvedata_client import TwelveDataClient

__all__ = [
    "CANONICAL_PROVIDERS",
    "EodhdClient",
    "ProviderMetrics",
    "QuoteSymbolsAggregator",
    "SymbolCatalog",
    "TwelveDataClient",
]
