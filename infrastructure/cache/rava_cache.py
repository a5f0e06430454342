"""Snapshot cache for scraped RAVA datasets with stale serving and backoff."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from shared.json_store import read_json_document, write_json_document

logger = logging.getLogger(__name__)


class RavaCedearsCache:
    """Single-file cache for one logical dataset (CEDEARs, bonos, ...).

    Unlike :class:`QuoteCache` this cache never evicts: :meth:`read` returns the
    last stored record even after ``fetched_at + ttl`` has passed. Callers
    inspect ``fetched_at``/``ttl``/``backoff_until`` to decide whether to trust
    it or refresh it.
    """

    def __init__(self, base_dir: Path | str, file_name: str = "cedears.json") -> None:
        self._base_dir = Path(base_dir)
        self._file = self._base_dir / str(file_name).lstrip("/")

    @property
    def path(self) -> Path:
        return self._file

    def read(self) -> Optional[Dict[str, Any]]:
        decoded = read_json_document(self._file)
        return decoded if isinstance(decoded, dict) else None

    def write(
        self,
        data: Any,
        fetched_at: int,
        ttl_seconds: int,
        backoff_until: Optional[int] = None,
    ) -> None:
        payload: Dict[str, Any] = {
            "data": data,
            "fetched_at": int(fetched_at),
            "ttl": int(ttl_seconds),
        }
        if backoff_until is not None:
            payload["backoff_until"] = int(backoff_until)
        write_json_document(self._file, payload)

    def touch_backoff(self, backoff_until: int) -> None:
        """Keep the stored snapshot but suppress refreshes until ``backoff_until``."""

        existing = self.read()
        if existing is None:
            logger.debug("Sin snapshot previo; se omite backoff", extra={"cache_file": self._file.name})
            return
        self.write(
            existing["data"] if "data" in existing else {},
            _as_int(existing.get("fetched_at")),
            _as_int(existing.get("ttl")),
            backoff_until,
        )

    @staticmethod
    def is_fresh(record: Mapping[str, Any], now: float, ttl: Optional[int] = None) -> bool:
        fetched_at = _as_int(record.get("fetched_at"))
        if fetched_at <= 0:
            return False
        window = _as_int(record.get("ttl")) if ttl is None else int(ttl)
        return (now - fetched_at) <= window

    @staticmethod
    def in_backoff(record: Mapping[str, Any], now: float) -> bool:
        backoff_until = record.get("backoff_until")
        if backoff_until is None:
            return False
        return _as_int(backoff_until) > now


def _as_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


__all__ = ["RavaCedearsCache"]
