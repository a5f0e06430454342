"""Normalised quote payloads shared by the provider clients."""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional


def to_float(value: Any) -> Optional[float]:
    """Convert ``value`` to float accepting comma decimals; ``None`` if not numeric."""

    if value is None or value == "" or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    text = str(value).strip().replace(",", ".")
    try:
        return float(text)
    except ValueError:
        return None


def normalize_quote(raw: Mapping[str, Any], symbol: str, provider: str) -> Dict[str, Any]:
    close = _first(raw, "close", "price", "last")
    as_of = _first(raw, "datetime", "timestamp", "last_update")
    return {
        "symbol": symbol,
        "name": raw.get("name"),
        "currency": raw.get("currency"),
        "open": to_float(raw.get("open")),
        "high": to_float(raw.get("high")),
        "low": to_float(raw.get("low")),
        "close": to_float(close),
        "previous_close": to_float(_first(raw, "previous_close", "previousClose")),
        "as_of": str(as_of) if as_of not in (None, "") else None,
        "provider": provider,
    }


def _first(raw: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        value = raw.get(key)
        if value not in (None, ""):
            return value
    return None


__all__ = ["normalize_quote", "to_float"]
