"""Daily provider ledger: quota counters, circuit breaker and negative cache.

The ledger lives in a single JSON document::

    {
        "date": "2024-05-02",
        "providers": {"eodhd": {"allowed": 20, "used": 3, ...}},
        "no_data": {"eodhd|AAPL|US": {"provider": ..., "expires_at": ...}},
        "snapshot": {"date": "2024-05-02", "providers": {...}},
    }

Every public operation starts with :meth:`ProviderMetrics.reconcile`, which
rolls the ledger over on a new calendar day, clears expired disable windows
and drops expired negative-cache entries, and ends by persisting the result.
Reads are therefore writes too; there is no background sweep.

There is no locking: concurrent writers sharing the same file race and the
last write wins.
"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, MutableMapping, Optional

from shared.json_store import read_json_document, write_json_document
from shared.time_provider import TimeProvider

logger = logging.getLogger(__name__)

CANONICAL_PROVIDERS: tuple[str, ...] = ("twelvedata", "eodhd", "alphavantage")
DEFAULT_DAILY_LIMITS: Dict[str, int] = {"twelvedata": 800, "eodhd": 20, "alphavantage": 25}
DEFAULT_NO_DATA_TTL = 86400

Ledger = Dict[str, Any]


class ProviderMetrics:
    """Answer "can provider P be used right now" and track daily consumption."""

    def __init__(
        self,
        base_dir: Path | str,
        *,
        daily_limits: Optional[Mapping[str, int]] = None,
        default_limit: Optional[int] = None,
        file_name: str = "provider_metrics.json",
        no_data_ttl: int = DEFAULT_NO_DATA_TTL,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._path = Path(base_dir) / file_name
        limits = dict(DEFAULT_DAILY_LIMITS)
        for name, value in (daily_limits or {}).items():
            limits[_provider_key(name)] = int(value)
        self._limits = limits
        self._default_limit = int(default_limit) if default_limit is not None else limits["twelvedata"]
        self._no_data_ttl = int(no_data_ttl) if no_data_ttl and no_data_ttl > 0 else DEFAULT_NO_DATA_TTL
        self._clock = clock

    @property
    def path(self) -> Path:
        return self._path

    # Public API -----------------------------------------------------------
    def record(self, provider: str, success: bool) -> None:
        """Count one attempt against ``provider``'s daily quota."""

        ledger = self.reconcile()
        counter = self._counter(ledger, provider)
        counter["used"] += 1
        if success:
            counter["success"] += 1
        else:
            counter["failed"] += 1
        self._save(ledger)

    def get_all(self) -> Ledger:
        """Return the reconciled ledger with ``remaining`` computed per provider."""

        ledger = self.reconcile()
        for name in CANONICAL_PROVIDERS:
            self._counter(ledger, name)
        for counter in ledger["providers"].values():
            counter["remaining"] = max(0, int(counter.get("allowed", 0)) - int(counter.get("used", 0)))
        self._save(ledger)
        return ledger

    def remaining(self, provider: str) -> int:
        ledger = self.reconcile()
        counter = self._counter(ledger, provider)
        self._save(ledger)
        return max(0, counter["allowed"] - counter["used"])

    def disable(self, provider: str, seconds: int, reason: Optional[str] = None) -> None:
        """Trip the circuit breaker for ``provider`` during ``seconds``."""

        ledger = self.reconcile()
        counter = self._counter(ledger, provider)
        until = self._now() + max(0, int(seconds))
        counter["disabled_until"] = until
        counter["disabled_reason"] = reason
        self._save(ledger)
        logger.warning(
            "Proveedor %s deshabilitado por %ss (%s)",
            _provider_key(provider),
            seconds,
            reason or "sin motivo",
            extra={"provider": _provider_key(provider), "disabled_until": until},
        )

    def is_disabled(self, provider: str) -> bool:
        return bool(self.disabled_info(provider)["disabled"])

    def disabled_info(self, provider: str) -> Dict[str, Any]:
        ledger = self.reconcile()
        counter = self._counter(ledger, provider)
        self._save(ledger)
        until = counter.get("disabled_until")
        return {
            "provider": _provider_key(provider),
            "disabled": until is not None and self._now() < int(until),
            "until": until,
            "reason": counter.get("disabled_reason"),
        }

    def mark_no_data(
        self,
        provider: str,
        symbol: str,
        exchange: Optional[str] = None,
        ttl_seconds: Optional[int] = None,
    ) -> None:
        """Remember that ``provider`` has nothing for ``symbol`` on ``exchange``."""

        ttl = int(ttl_seconds) if ttl_seconds is not None and ttl_seconds > 0 else self._no_data_ttl
        ledger = self.reconcile()
        key = self.no_data_key(provider, symbol, exchange)
        ledger["no_data"][key] = {
            "provider": _provider_key(provider),
            "symbol": _upper(symbol),
            "exchange": _upper(exchange),
            "expires_at": self._now() + ttl,
        }
        self._save(ledger)
        logger.info("Sin datos en %s para %s", _provider_key(provider), key, extra={"ttl": ttl})

    def is_no_data(self, provider: str, symbol: str, exchange: Optional[str] = None) -> bool:
        ledger = self.reconcile()
        self._save(ledger)
        return self.no_data_key(provider, symbol, exchange) in ledger["no_data"]

    def can_call(self, provider: str, symbol: Optional[str] = None, exchange: Optional[str] = None) -> bool:
        """Return whether ``provider`` is enabled, has quota left and may know ``symbol``."""

        ledger = self.reconcile()
        counter = self._counter(ledger, provider)
        self._save(ledger)
        if counter.get("disabled_until") is not None:
            return False
        if counter["used"] >= counter["allowed"]:
            return False
        if symbol is not None and self.no_data_key(provider, symbol, exchange) in ledger["no_data"]:
            return False
        return True

    def store_snapshot(self, providers: Mapping[str, Any]) -> None:
        """Persist an informational usage summary next to the counters."""

        ledger = self.reconcile()
        ledger["snapshot"] = {"date": ledger["date"], "providers": dict(providers)}
        self._save(ledger)

    def reconcile(self, ledger: Optional[Ledger] = None) -> Ledger:
        """Bring ``ledger`` (or the persisted one) up to date with the clock.

        * a ledger from another day is replaced by a fresh one;
        * expired disable windows are cleared back to ``None``;
        * expired negative-cache entries are dropped.
        """

        now = self._now()
        today = TimeProvider.day(now)
        if ledger is None:
            ledger = self._parse(read_json_document(self._path))
        if ledger is None:
            ledger = self._fresh(today)
        elif ledger.get("date") != today:
            logger.info(
                "Reinicio diario de métricas de proveedores",
                extra={"previous_date": ledger.get("date"), "date": today},
            )
            ledger = self._fresh(today)

        for counter in ledger["providers"].values():
            until = counter.get("disabled_until")
            if until is not None and int(until) <= now:
                counter["disabled_until"] = None
                counter["disabled_reason"] = None

        expired = [
            key
            for key, entry in ledger["no_data"].items()
            if _as_int(entry.get("expires_at")) <= now
        ]
        for key in expired:
            ledger["no_data"].pop(key, None)
        return ledger

    @staticmethod
    def no_data_key(provider: str, symbol: str, exchange: Optional[str] = None) -> str:
        return f"{_provider_key(provider)}|{_upper(symbol)}|{_upper(exchange)}"

    # Internal helpers ----------------------------------------------------
    def _now(self) -> int:
        return int(self._clock())

    def _allowed_for(self, provider: str) -> int:
        return self._limits.get(_provider_key(provider), self._default_limit)

    def _defaults(self, provider: str) -> Dict[str, Any]:
        return {
            "allowed": self._allowed_for(provider),
            "used": 0,
            "success": 0,
            "failed": 0,
            "last_reset": TimeProvider.isoformat(self._now()),
            "disabled_until": None,
            "disabled_reason": None,
        }

    def _fresh(self, date: str) -> Ledger:
        return {
            "date": date,
            "providers": {},
            "no_data": {},
            "snapshot": {"date": date, "providers": {}},
        }

    def _counter(self, ledger: Ledger, provider: str) -> Dict[str, Any]:
        name = _provider_key(provider)
        providers: MutableMapping[str, Dict[str, Any]] = ledger["providers"]
        counter = providers.get(name)
        if counter is None:
            counter = self._defaults(name)
            providers[name] = counter
        return counter

    def _parse(self, decoded: Any) -> Optional[Ledger]:
        """Validate a decoded document; anything unusable yields ``None``."""

        if not isinstance(decoded, dict):
            return None
        date = decoded.get("date")
        providers = decoded.get("providers")
        if not isinstance(date, str) or not isinstance(providers, dict):
            return None

        parsed_providers: Dict[str, Dict[str, Any]] = {}
        for name, raw in providers.items():
            if not isinstance(raw, dict):
                continue
            success = _as_int(raw.get("success"))
            failed = _as_int(raw.get("failed"))
            until = raw.get("disabled_until")
            parsed_providers[_provider_key(name)] = {
                "allowed": _as_int(raw.get("allowed"), self._allowed_for(name)),
                "used": success + failed,
                "success": success,
                "failed": failed,
                "last_reset": raw.get("last_reset"),
                "disabled_until": _as_int(until) if until is not None else None,
                "disabled_reason": raw.get("disabled_reason") if until is not None else None,
            }

        no_data: Dict[str, Dict[str, Any]] = {}
        raw_no_data = decoded.get("no_data")
        if isinstance(raw_no_data, dict):
            for key, entry in raw_no_data.items():
                if isinstance(entry, dict) and "expires_at" in entry:
                    no_data[str(key)] = dict(entry)

        snapshot = decoded.get("snapshot")
        if not isinstance(snapshot, dict):
            snapshot = {"date": date, "providers": {}}

        return {
            "date": date,
            "providers": parsed_providers,
            "no_data": no_data,
            "snapshot": snapshot,
        }

    def _save(self, ledger: Ledger) -> None:
        write_json_document(self._path, ledger, indent=2)


def _provider_key(provider: Any) -> str:
    return str(provider or "").strip().lower()


def _upper(value: Optional[str]) -> str:
    return str(value or "").strip().upper()


def _as_int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


__all__ = [
    "ProviderMetrics",
    "CANONICAL_PROVIDERS",
    "DEFAULT_DAILY_LIMITS",
    "DEFAULT_NO_DATA_TTL",
]
