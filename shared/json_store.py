"""Helpers to persist small JSON documents on the local filesystem."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


def read_json_document(path: Path) -> Any | None:
    """Return the decoded document stored at ``path``.

    Missing, unreadable or malformed files yield ``None``: callers treat them
    as absent and regenerate the document on the next write.
    """

    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    except OSError as exc:
        logger.warning("No se pudo leer %s: %s", path, exc)
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        logger.warning("JSON inválido en %s: %s", path, exc)
        return None


def write_json_document(path: Path, data: Any, *, indent: int | None = None) -> None:
    """Persist ``data`` at ``path`` replacing any previous content atomically."""

    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(json.dumps(data, ensure_ascii=False, indent=indent), encoding="utf-8")
    tmp.replace(path)


def remove_document(path: Path) -> None:
    """Delete ``path`` if present."""

    try:
        path.unlink()
    except FileNotFoundError:
        return
    except OSError as exc:
        logger.debug("No se pudo eliminar %s: %s", path, exc)


__all__ = ["read_json_document", "write_json_document", "remove_document"]
