from __future__ import annotations

import hashlib
import logging
import time
from pathlib import Path
from typing import Any, Callable

from shared.json_store import read_json_document, remove_document, write_json_document

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 86400


class QuoteCache:
    """Caché en disco con TTL duro para respuestas de proveedores externos.

    Cada clave se guarda en ``<sha1(clave)>.json`` con la forma
    ``{"_expires_at": int, "data": ...}``. Un archivo ausente, ilegible o
    vencido cuenta como miss; los vencidos y corruptos se eliminan al leerlos.
    """

    def __init__(
        self,
        base_dir: Path | str,
        default_ttl: int = DEFAULT_TTL_SECONDS,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._base_dir = Path(base_dir)
        self._default_ttl = int(default_ttl) if default_ttl and default_ttl > 0 else DEFAULT_TTL_SECONDS
        self._clock = clock

    @property
    def base_dir(self) -> Path:
        return self._base_dir

    def path_for(self, key: str) -> Path:
        digest = hashlib.sha1(str(key).encode("utf-8")).hexdigest()
        return self._base_dir / f"{digest}.json"

    def get(self, key: str) -> Any | None:
        path = self.path_for(key)
        if not path.is_file():
            return None
        payload = read_json_document(path)
        if not isinstance(payload, dict):
            remove_document(path)
            return None
        try:
            expires_at = int(payload.get("_expires_at") or 0)
        except (TypeError, ValueError):
            expires_at = 0
        if expires_at > 0 and int(self._clock()) > expires_at:
            logger.debug("Cache vencido para %s", key, extra={"cache_file": path.name})
            remove_document(path)
            return None
        return payload.get("data")

    def set(self, key: str, data: Any, ttl_seconds: int | None = None) -> None:
        ttl = int(ttl_seconds) if ttl_seconds is not None and ttl_seconds > 0 else self._default_ttl
        payload = {
            "_expires_at": int(self._clock()) + ttl,
            "data": data,
        }
        write_json_document(self.path_for(key), payload)

    def delete(self, key: str) -> None:
        remove_document(self.path_for(key))


__all__ = ["QuoteCache", "DEFAULT_TTL_SECONDS"]
