"""Wire the market-data layer from a :class:`Settings` instance."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Optional

from infrastructure.cache.quote_cache import QuoteCache
from infrastructure.cache.rava_cache import RavaCedearsCache
from infrastructure.market.eodhd_client import EodhdClient
from infrastructure.market.ports import QuoteProvider
from infrastructure.market.provider_metrics import ProviderMetrics
from infrastructure.market.symbols import QuoteSymbolsAggregator
from infrastructure.market.twelvedata_client import TwelveDataClient
from infrastructure.rava.historicos_client import RavaHistoricosClient
from infrastructure.rava.views_client import RavaViewsClient
from services.provider_usage import ProviderUsageService
from services.quote_router import QuoteRouter
from services.rava_historicos import RavaHistoricosService
from services.rava_snapshot import RavaSnapshotService
from shared.config import Settings
from shared.config import settings as default_settings

logger = logging.getLogger(__name__)


@dataclass
class MarketDataLayer:
    metrics: ProviderMetrics
    quote_cache: QuoteCache
    rava_cache: RavaCedearsCache
    symbols: QuoteSymbolsAggregator
    quotes: QuoteRouter
    usage: ProviderUsageService
    cedears: RavaSnapshotService
    historicos: RavaHistoricosService


def build_market_data_layer(
    settings: Optional[Settings] = None,
    *,
    clock: Callable[[], float] = time.time,
) -> MarketDataLayer:
    """Build one instance of every stateful object for ``MARKET_DATA_DIR``.

    Quote providers without an API key are left out of the router so they
    never count against the ledger.
    """

    cfg = settings or default_settings
    base_dir = Path(cfg.MARKET_DATA_DIR)

    metrics = ProviderMetrics(
        base_dir,
        daily_limits=cfg.daily_limits,
        file_name=cfg.PROVIDER_METRICS_FILE,
        no_data_ttl=cfg.NO_DATA_TTL,
        clock=clock,
    )
    quote_cache = QuoteCache(base_dir / "quotes", cfg.QUOTE_CACHE_TTL, clock=clock)
    rava_cache = RavaCedearsCache(base_dir, cfg.RAVA_CACHE_FILE)

    eodhd = EodhdClient(
        cfg.EODHD_API_KEY or "",
        base_url=cfg.EODHD_BASE_URL,
        timeout=cfg.EODHD_TIMEOUT_SECONDS,
    )
    twelve = TwelveDataClient(
        cfg.TWELVEDATA_API_KEY or "",
        base_url=cfg.TWELVEDATA_BASE_URL,
        timeout=cfg.TWELVEDATA_TIMEOUT_SECONDS,
    )

    providers: Dict[str, QuoteProvider] = {}
    if cfg.TWELVEDATA_API_KEY:
        providers["twelvedata"] = twelve
    if cfg.EODHD_API_KEY:
        providers["eodhd"] = eodhd
    logger.info(
        "Capa de datos de mercado inicializada",
        extra={"market_data_dir": str(base_dir), "quote_providers": sorted(providers)},
    )

    views = RavaViewsClient(
        base_url=cfg.RAVA_BASE_URL,
        timeout=cfg.RAVA_TIMEOUT_SECONDS,
        user_agent=cfg.RAVA_USER_AGENT,
    )
    historicos_client = RavaHistoricosClient(
        base_url=cfg.RAVA_BASE_URL,
        historicos_base_url=cfg.RAVA_HISTORICOS_BASE_URL,
        timeout=cfg.RAVA_TIMEOUT_SECONDS,
        user_agent=cfg.RAVA_USER_AGENT,
        clock=clock,
    )

    return MarketDataLayer(
        metrics=metrics,
        quote_cache=quote_cache,
        rava_cache=rava_cache,
        symbols=QuoteSymbolsAggregator(
            eodhd, twelve if cfg.TWELVEDATA_API_KEY else None, quote_cache
        ),
        quotes=QuoteRouter(
            providers,
            metrics,
            cache=quote_cache,
            provider_order=cfg.QUOTE_PROVIDER_ORDER,
            quote_ttl=cfg.QUOTE_CACHE_TTL,
            clock=clock,
        ),
        usage=ProviderUsageService(metrics),
        cedears=RavaSnapshotService(views.fetch_cedears, rava_cache, clock=clock),
        historicos=RavaHistoricosService(historicos_client),
    )


__all__ = ["MarketDataLayer", "build_market_data_layer"]
