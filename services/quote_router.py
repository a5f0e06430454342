"""Sequential quote lookup across rate-limited providers.

The router walks the configured providers in order, skipping the ones the
daily ledger reports as disabled, exhausted or known to lack the symbol. Each
answer or failure is recorded in :class:`ProviderMetrics`; quota signals open
the provider's circuit until the next Buenos Aires midnight and "no data"
signals populate the negative cache for the same window.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence

from infrastructure.cache.quote_cache import QuoteCache
from infrastructure.market.ports import QuoteProvider
from infrastructure.market.provider_metrics import CANONICAL_PROVIDERS, ProviderMetrics
from shared.errors import ExternalAPIError, NoProvidersAvailableError, RateLimitError
from shared.time_provider import TimeProvider

logger = logging.getLogger(__name__)

DEFAULT_PROVIDER_ORDER: tuple[str, ...] = ("twelvedata", "eodhd", "alphavantage")
DEFAULT_QUOTE_TTL = 86400

QUOTA_MARKERS: tuple[str, ...] = (
    "402",
    "403",
    "quota",
    "payment required",
    "out of api credits",
    "rate limit",
)
NO_DATA_MARKERS: tuple[str, ...] = (
    "not found",
    "no data",
    "unknown symbol",
    "invalid api call",
    "404",
)
QUOTA_STATUS_CODES: tuple[int, ...] = (402, 403)
NO_DATA_STATUS_CODES: tuple[int, ...] = (404,)


def is_quota_error(exc: BaseException) -> bool:
    if isinstance(exc, RateLimitError):
        return True
    if getattr(exc, "status_code", None) in QUOTA_STATUS_CODES:
        return True
    message = str(exc).lower()
    return any(marker in message for marker in QUOTA_MARKERS)


def is_no_data_error(exc: BaseException) -> bool:
    if getattr(exc, "status_code", None) in NO_DATA_STATUS_CODES:
        return True
    message = str(exc).lower()
    return any(marker in message for marker in NO_DATA_MARKERS)


def _normalize_symbols(symbols: Iterable[str]) -> List[str]:
    codes: List[str] = []
    for symbol in symbols or ():
        code = str(symbol or "").strip().upper()
        if code and code not in codes:
            codes.append(code)
    if not codes:
        raise ValueError("Símbolos requeridos")
    return codes


def sanitize_provider_order(order: Optional[Iterable[str] | str]) -> List[str]:
    """Lower-case, de-duplicate and restrict ``order`` to canonical providers."""

    if isinstance(order, str):
        items: Iterable[str] = order.split(",")
    else:
        items = order or ()
    normalized: List[str] = []
    for item in items:
        name = str(item or "").strip().lower()
        if name in CANONICAL_PROVIDERS and name not in normalized:
            normalized.append(name)
    return normalized or list(DEFAULT_PROVIDER_ORDER)


class QuoteRouter:
    """Resolve quotes with provider fallback, ledger bookkeeping and caching."""

    def __init__(
        self,
        quote_providers: Mapping[str, QuoteProvider],
        metrics: ProviderMetrics,
        *,
        cache: Optional[QuoteCache] = None,
        provider_order: Optional[Sequence[str] | str] = None,
        quote_ttl: int = DEFAULT_QUOTE_TTL,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._providers: Dict[str, QuoteProvider] = {
            str(name).strip().lower(): provider
            for name, provider in quote_providers.items()
            if provider is not None
        }
        self._metrics = metrics
        self._cache = cache
        self._order = sanitize_provider_order(provider_order)
        self._quote_ttl = quote_ttl
        self._clock = clock

    @property
    def provider_order(self) -> List[str]:
        return list(self._order)

    def resolve_provider_order(self, preferred: Optional[str] = None) -> List[str]:
        candidates = list(self._order)
        wanted = str(preferred or "").strip().lower()
        if wanted:
            candidates.insert(0, wanted)
        ordered: List[str] = []
        for name in candidates:
            if name in ordered or name not in self._providers:
                continue
            if name not in CANONICAL_PROVIDERS:
                continue
            if self._metrics.is_disabled(name):
                continue
            ordered.append(name)
        if not ordered:
            raise NoProvidersAvailableError("No hay proveedores configurados")
        return ordered

    def should_skip(self, provider: str, symbol: str, exchange: Optional[str] = None) -> bool:
        return not self._metrics.can_call(provider, symbol, exchange)

    def search_quote(
        self,
        symbol: str,
        exchange: Optional[str] = None,
        preferred: Optional[str] = None,
        force_refresh: bool = False,
    ) -> Dict[str, Any]:
        """Return the first provider quote plus every other provider's answer.

        The combined payload carries ``source`` (provider of the main quote),
        ``sources`` (every provider that answered), ``providers`` (per-attempt
        outcome) and ``cached``.
        """

        code = str(symbol or "").strip().upper()
        if not code:
            raise ValueError("Símbolo requerido")
        market = str(exchange or "").strip().upper() or None

        cache_key = f"{code}|{market or ''}"
        if self._cache is not None:
            if force_refresh:
                self._cache.delete(cache_key)
            else:
                cached = self._cache.get(cache_key)
                if isinstance(cached, Mapping):
                    hit = dict(cached)
                    hit["cached"] = True
                    return hit

        result: Optional[Dict[str, Any]] = None
        sources: List[str] = []
        attempts: List[Dict[str, Any]] = []
        errors: List[str] = []

        for name in self.resolve_provider_order(preferred):
            if self.should_skip(name, code, market):
                logger.debug("Proveedor %s omitido para %s", name, code, extra={"provider": name})
                continue
            try:
                quote = dict(self._providers[name].quote(code, market))
            except Exception as exc:
                self._handle_failure(name, exc, code, market)
                attempts.append({"provider": name, "ok": False, "error": str(exc)})
                errors.append(str(exc))
                continue
            self._metrics.record(name, True)
            sources.append(name)
            attempts.append({"provider": name, "ok": True, "quote": quote})
            if result is None:
                result = quote

        if result is None:
            message = errors[0] if errors else "No se pudo obtener el precio"
            raise ExternalAPIError(message, status_code=502)

        final = dict(result)
        final["symbol"] = code
        final["source"] = result.get("provider") or sources[0]
        final["sources"] = sources
        final["providers"] = attempts
        final["cached"] = False
        if self._cache is not None:
            self._cache.set(cache_key, final, self._quote_ttl)
        return final

    def fetch_snapshot(self, symbol: str) -> Dict[str, Any]:
        """Quote from the first provider that answers, without caching."""

        code = str(symbol or "").strip().upper()
        if not code:
            raise ValueError("Símbolo requerido")
        for name in self.resolve_provider_order():
            if self.should_skip(name, code):
                continue
            try:
                quote = dict(self._providers[name].quote(code, None))
            except Exception as exc:
                self._handle_failure(name, exc, code, None)
                continue
            self._metrics.record(name, True)
            return quote
        raise ExternalAPIError(
            "No se pudo obtener el precio desde los proveedores configurados", status_code=502
        )

    def fetch_snapshots_bulk(
        self,
        symbols: Iterable[str],
        exchange: Optional[str] = None,
        preferred: Optional[str] = None,
    ) -> Dict[str, Dict[str, Any]]:
        """Quotes for several symbols keyed by upper-cased symbol.

        Providers are walked once for the whole batch: a provider disabled by a
        quota error halfway through is skipped for the remaining symbols.
        Symbols nobody answered are left out; if none answered the first error
        is raised.
        """

        quotes, errors = self._fetch_bulk(_normalize_symbols(symbols), exchange, preferred)
        if not quotes and errors:
            raise ExternalAPIError(next(iter(errors.values())), status_code=502)
        return quotes

    def search_quotes(
        self,
        symbols: Iterable[str],
        exchange: Optional[str] = None,
        preferred: Optional[str] = None,
        force_refresh: bool = False,
    ) -> Dict[str, Dict[str, Any]]:
        """Cached batch lookup; failed symbols carry ``{"error": {"message"}}``."""

        codes = _normalize_symbols(symbols)
        market = str(exchange or "").strip().upper() or None

        results: Dict[str, Dict[str, Any]] = {}
        pending: List[str] = []
        for code in codes:
            cache_key = f"{code}|{market or ''}"
            if self._cache is not None and not force_refresh:
                cached = self._cache.get(cache_key)
                if isinstance(cached, Mapping):
                    hit = dict(cached)
                    hit["cached"] = True
                    results[code] = hit
                    continue
            pending.append(code)

        if not pending:
            return results

        quotes, errors = self._fetch_bulk(pending, market, preferred)
        for code in pending:
            quote = quotes.get(code)
            if quote is None:
                message = errors.get(code) or "Sin cotización disponible"
                results[code] = {"symbol": code, "error": {"message": message}}
                continue
            source = quote.get("provider")
            final = dict(quote)
            final["symbol"] = code
            final["source"] = source
            final["sources"] = [source] if source else []
            final["cached"] = False
            if self._cache is not None:
                self._cache.set(f"{code}|{market or ''}", final, self._quote_ttl)
            results[code] = final

        if not quotes and len(results) == len(pending):
            message = next(iter(errors.values()), "No se pudieron obtener los precios solicitados")
            raise ExternalAPIError(message, status_code=502)
        return results

    # Internal helpers ----------------------------------------------------
    def _fetch_bulk(
        self,
        codes: Sequence[str],
        exchange: Optional[str],
        preferred: Optional[str],
    ) -> tuple[Dict[str, Dict[str, Any]], Dict[str, str]]:
        market = str(exchange or "").strip().upper() or None
        quotes: Dict[str, Dict[str, Any]] = {}
        errors: Dict[str, str] = {}
        pending = list(codes)
        for name in self.resolve_provider_order(preferred):
            if not pending:
                break
            for code in list(pending):
                if self.should_skip(name, code, market):
                    continue
                try:
                    quote = dict(self._providers[name].quote(code, market))
                except Exception as exc:
                    self._handle_failure(name, exc, code, market)
                    errors.setdefault(code, str(exc))
                    continue
                self._metrics.record(name, True)
                quotes[code] = quote
                pending.remove(code)
        if pending:
            logger.info(
                "Sin cotización para %d símbolos",
                len(pending),
                extra={"symbols": pending, "exchange": market},
            )
        return quotes, errors

    def _handle_failure(
        self, provider: str, exc: BaseException, symbol: str, exchange: Optional[str]
    ) -> None:
        self._metrics.record(provider, False)
        window = TimeProvider.seconds_until_tomorrow(self._clock())
        if is_quota_error(exc):
            self._metrics.disable(provider, window, "quota_error")
        if is_no_data_error(exc):
            self._metrics.mark_no_data(provider, symbol, exchange, window)
        logger.warning(
            "Proveedor %s falló para %s: %s",
            provider,
            symbol,
            exc,
            extra={"provider": provider, "symbol": symbol, "exchange": exchange},
        )


__all__ = [
    "QuoteRouter",
    "DEFAULT_PROVIDER_ORDER",
    "is_quota_error",
    "is_no_data_error",
    "sanitize_provider_order",
]
