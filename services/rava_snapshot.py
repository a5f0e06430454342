"""Stale-while-revalidate access to scraped RAVA datasets.

A snapshot is served from :class:`RavaCedearsCache` while it is younger than
the market-aware TTL. Once stale, the service refetches unless a previous
failure opened a backoff window; a failed refresh keeps serving the last good
snapshot and pushes the backoff forward instead of raising.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from infrastructure.cache.rava_cache import RavaCedearsCache
from infrastructure.market.quotes import to_float
from shared.errors import ExternalAPIError
from shared.time_provider import TimeProvider

logger = logging.getLogger(__name__)

MARKET_OPEN_MINUTES = 11 * 60
MARKET_CLOSE_MINUTES = 18 * 60

TTL_OPEN_SECONDS = 90
TTL_CLOSED_SECONDS = 1800
BACKOFF_OPEN_SECONDS = 60
BACKOFF_CLOSED_SECONDS = 300

RowNormalizer = Callable[[Mapping[str, Any]], Optional[Dict[str, Any]]]


def is_market_open(ts: float) -> bool:
    """BYMA session: weekdays between 11:00 and 18:00 Buenos Aires time."""

    local = TimeProvider.moment(ts)
    if local.isoweekday() >= 6:
        return False
    minutes = local.hour * 60 + local.minute
    return MARKET_OPEN_MINUTES <= minutes <= MARKET_CLOSE_MINUTES


def resolve_ttl_seconds(ts: float) -> int:
    return TTL_OPEN_SECONDS if is_market_open(ts) else TTL_CLOSED_SECONDS


def resolve_backoff_seconds(ts: float) -> int:
    return BACKOFF_OPEN_SECONDS if is_market_open(ts) else BACKOFF_CLOSED_SECONDS


def normalize_cedear_row(row: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
    symbol = str(row.get("simbolo") or row.get("symbol") or "").strip().upper()
    if not symbol:
        return None
    return {
        "symbol": symbol,
        "especie": _text(row.get("especie")),
        "nombre": _text(row.get("nombre")),
        "ultimo": to_float(row.get("ultimo")),
        "variacion": to_float(row.get("variacion")),
        "anterior": to_float(row.get("anterior")),
        "apertura": to_float(row.get("apertura")),
        "minimo": to_float(row.get("minimo")),
        "maximo": to_float(row.get("maximo")),
        "volumen_nominal": to_float(row.get("volnominal")),
        "ratio": _text(row.get("ratio")),
        "fecha": _text(row.get("fecha")),
        "hora": _text(row.get("hora")),
        "provider": "rava",
        "mic": "XBUE",
    }


class RavaSnapshotService:
    """Serve one scraped dataset with market-aware TTL and failure backoff."""

    def __init__(
        self,
        fetcher: Callable[[], Any],
        cache: RavaCedearsCache,
        *,
        normalizer: RowNormalizer = normalize_cedear_row,
        label: str = "cedears",
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._fetcher = fetcher
        self._cache = cache
        self._normalizer = normalizer
        self._label = label
        self._clock = clock

    def get(self) -> Dict[str, Any]:
        now = int(self._clock())
        ttl = resolve_ttl_seconds(now)
        record = self._cache.read()

        if record is not None and RavaCedearsCache.is_fresh(record, now, ttl):
            return self._response(record.get("data"), record, ttl, cached=True, stale=False)
        if record is not None and RavaCedearsCache.in_backoff(record, now):
            return self._response(record.get("data"), record, ttl, cached=True, stale=True, error="backoff")

        try:
            items = self._normalize(self._fetcher())
        except Exception as exc:
            logger.info(
                "Falló la actualización de %s desde RAVA: %s",
                self._label,
                exc,
                extra={"dataset": self._label},
            )
            if record is None or "data" not in record:
                raise ExternalAPIError(
                    f"No se pudo obtener {self._label} desde RAVA", status_code=502, provider="rava"
                ) from exc
            backoff_until = now + resolve_backoff_seconds(now)
            self._cache.touch_backoff(backoff_until)
            stale = dict(record)
            stale["backoff_until"] = backoff_until
            return self._response(stale.get("data"), stale, ttl, cached=True, stale=True, error=str(exc))

        self._cache.write(items, now, ttl)
        fresh = {"data": items, "fetched_at": now, "ttl": ttl}
        return self._response(items, fresh, ttl, cached=False, stale=False)

    # Internal helpers ----------------------------------------------------
    def _normalize(self, raw: Any) -> List[Dict[str, Any]]:
        rows: Iterable[Any]
        if isinstance(raw, Mapping):
            body = raw.get("body")
            if not isinstance(body, list):
                raise ExternalAPIError(
                    f"Estructura inesperada en {self._label} RAVA", status_code=502, provider="rava"
                )
            rows = body
        elif isinstance(raw, list):
            rows = raw
        else:
            raise ExternalAPIError(
                f"Estructura inesperada en {self._label} RAVA", status_code=502, provider="rava"
            )
        items: List[Dict[str, Any]] = []
        for row in rows:
            if not isinstance(row, Mapping):
                continue
            normalized = self._normalizer(row)
            if normalized is not None:
                items.append(normalized)
        return items

    def _response(
        self,
        data: Any,
        record: Mapping[str, Any],
        ttl: int,
        *,
        cached: bool,
        stale: bool,
        error: Optional[str] = None,
    ) -> Dict[str, Any]:
        items = list(data) if isinstance(data, list) else []
        meta: Dict[str, Any] = {
            "count": len(items),
            "cached": cached,
            "stale": stale,
            "ttl_seconds": ttl,
            "fetched_at": TimeProvider.isoformat(record.get("fetched_at")),
            "backoff_until": TimeProvider.isoformat(record.get("backoff_until")),
            "source": "rava",
        }
        if error is not None:
            meta["error"] = error
        return {"items": items, "meta": meta}


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


__all__ = [
    "RavaSnapshotService",
    "is_market_open",
    "normalize_cedear_row",
    "resolve_backoff_seconds",
    "resolve_ttl_seconds",
]
