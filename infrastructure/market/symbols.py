"""Unified symbol catalog built from EODHD and Twelve Data."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from infrastructure.cache.quote_cache import QuoteCache

from .ports import ExchangeSymbolsSource, StockListSource

logger = logging.getLogger(__name__)

CATALOG_TTL_SECONDS = 86400
DEGRADED_TTL_SECONDS = 900

STATUS_OK = "ok"
STATUS_DEGRADED = "degraded"
STATUS_UNAVAILABLE = "unavailable"

_DESCRIPTIVE_FIELDS = ("name", "currency", "type", "mic_code")


@dataclass
class SymbolCatalog:
    """Merged symbol list plus a status telling empty apart from failed.

    ``status`` is ``ok`` when every configured provider answered,
    ``degraded`` when some provider failed but at least one answered, and
    ``unavailable`` when none answered. An ``ok`` catalog with no symbols means
    the exchange really lists nothing.
    """

    exchange: str
    symbols: List[Dict[str, Any]]
    status: str = STATUS_OK
    failed_providers: List[str] = field(default_factory=list)
    cached: bool = False

    @property
    def is_degraded(self) -> bool:
        return self.status != STATUS_OK


class QuoteSymbolsAggregator:
    """Merge per-exchange symbol lists, degrading when a provider is down."""

    def __init__(
        self,
        eodhd: ExchangeSymbolsSource,
        twelve: Optional[StockListSource],
        cache: QuoteCache,
        *,
        ttl: int = CATALOG_TTL_SECONDS,
        degraded_ttl: int = DEGRADED_TTL_SECONDS,
    ) -> None:
        self._eodhd = eodhd
        self._twelve = twelve
        self._cache = cache
        self._ttl = ttl
        self._degraded_ttl = degraded_ttl

    def list_symbols(self, exchange: str) -> List[Dict[str, Any]]:
        """Return the unified list; ``[]`` when both providers failed."""

        return self.fetch_catalog(exchange).symbols

    def fetch_catalog(self, exchange: str) -> SymbolCatalog:
        code = str(exchange or "").strip().upper()
        if not code:
            raise ValueError("Exchange requerido")

        cache_key = f"symbols|{code}"
        cached = self._cache.get(cache_key)
        if isinstance(cached, Mapping) and isinstance(cached.get("symbols"), list):
            return SymbolCatalog(
                exchange=code,
                symbols=list(cached["symbols"]),
                status=str(cached.get("status") or STATUS_OK),
                failed_providers=list(cached.get("failed_providers") or []),
                cached=True,
            )

        failed: List[str] = []
        answered = 0

        eod_symbols: List[Mapping[str, Any]] = []
        try:
            eod_symbols = list(self._eodhd.fetch_exchange_symbols(code) or [])
            answered += 1
        except Exception as exc:
            failed.append("eodhd")
            logger.warning(
                "EODHD no devolvió símbolos para %s: %s", code, exc, extra={"provider": "eodhd"}
            )

        tw_symbols: List[Mapping[str, Any]] = []
        if self._twelve is not None:
            try:
                tw_symbols = list(self._twelve.list_stocks(code) or [])
                answered += 1
            except Exception as exc:
                failed.append("twelvedata")
                logger.warning(
                    "Twelve Data no devolvió símbolos para %s: %s",
                    code,
                    exc,
                    extra={"provider": "twelvedata"},
                )

        symbols = merge_symbol_lists(eod_symbols, tw_symbols, code)

        if not failed:
            status = STATUS_OK
        elif answered:
            status = STATUS_DEGRADED
        else:
            status = STATUS_UNAVAILABLE

        catalog = SymbolCatalog(exchange=code, symbols=symbols, status=status, failed_providers=failed)
        if status != STATUS_UNAVAILABLE:
            ttl = self._ttl if status == STATUS_OK else self._degraded_ttl
            self._cache.set(
                cache_key,
                {"symbols": symbols, "status": status, "failed_providers": failed},
                ttl,
            )
        return catalog


def merge_symbol_lists(
    eod_symbols: List[Mapping[str, Any]],
    tw_symbols: List[Mapping[str, Any]],
    exchange: str,
) -> List[Dict[str, Any]]:
    """Merge both lists by upper-cased symbol keeping EODHD values first."""

    merged: Dict[str, Dict[str, Any]] = {}

    for item in eod_symbols:
        symbol = str(_pick(item, "Code", "code") or "").strip().upper()
        if not symbol:
            continue
        merged[symbol] = {
            "symbol": symbol,
            "name": _pick(item, "Name", "name"),
            "exchange": _pick(item, "Exchange", "exchange") or exchange,
            "currency": _pick(item, "Currency", "currency"),
            "type": _pick(item, "Type", "type"),
            "mic_code": _pick(item, "OperatingMIC", "mic_code"),
            "in_eodhd": True,
            "in_twelvedata": False,
        }

    for item in tw_symbols:
        symbol = str(item.get("symbol") or "").strip().upper()
        if not symbol:
            continue
        existing = merged.get(symbol)
        if existing is None:
            merged[symbol] = {
                "symbol": symbol,
                "name": item.get("name"),
                "exchange": item.get("exchange") or exchange,
                "currency": item.get("currency"),
                "type": item.get("type"),
                "mic_code": item.get("mic_code"),
                "in_eodhd": False,
                "in_twelvedata": True,
            }
            continue
        existing["in_twelvedata"] = True
        for key in _DESCRIPTIVE_FIELDS:
            if existing.get(key) is None:
                existing[key] = item.get(key)

    return list(merged.values())


def _pick(item: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        value = item.get(key)
        if value is not None:
            return value
    return None


__all__ = [
    "QuoteSymbolsAggregator",
    "SymbolCatalog",
    "merge_symbol_lists",
    "STATUS_OK",
    "STATUS_DEGRADED",
    "STATUS_UNAVAILABLE",
]
