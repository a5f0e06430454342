"""Daily price history for one RAVA especie, normalised for consumers."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from infrastructure.market.quotes import to_float
from infrastructure.rava.historicos_client import RavaHistoricosClient
from shared.errors import ExternalAPIError
from shared.time_provider import TimeProvider

logger = logging.getLogger(__name__)


class RavaHistoricosService:
    def __init__(self, client: RavaHistoricosClient) -> None:
        self._client = client

    def historicos(
        self,
        especie: str,
        fecha_inicio: Optional[str] = None,
        fecha_fin: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Return ``{"items": [...], "meta": {...}}`` with bars newest first.

        Any client failure is logged and surfaced as :class:`ExternalAPIError`
        (HTTP 502 semantics); a blank ``especie`` raises ``ValueError``.
        """

        symbol = str(especie or "").strip()
        if not symbol:
            raise ValueError("Parámetro especie requerido")

        try:
            raw = self._client.fetch_historicos(symbol, fecha_inicio, fecha_fin)
        except ExternalAPIError as exc:
            logger.info(
                "Falló la descarga de histórico RAVA para %s: %s",
                symbol,
                exc,
                extra={"especie": symbol},
            )
            raise ExternalAPIError(
                "No se pudo obtener histórico desde RAVA", status_code=502, provider="rava"
            ) from exc

        items = normalize_rows(raw.get("body") or [], symbol)
        dates = sorted(item["fecha"] for item in items if item.get("fecha"))
        return {
            "items": items,
            "meta": {
                "count": len(items),
                "symbol": symbol,
                "from": dates[0] if dates else None,
                "to": dates[-1] if dates else None,
                "as_of": dates[-1] if dates else None,
                "source": "rava",
            },
        }


def normalize_rows(rows: List[Any], symbol: str) -> List[Dict[str, Any]]:
    items = [normalize_row(row, symbol) for row in rows if isinstance(row, Mapping)]
    items.sort(key=lambda item: item.get("fecha") or "", reverse=True)
    return items


def normalize_row(row: Mapping[str, Any], symbol: str) -> Dict[str, Any]:
    fecha = _text(row.get("fecha"))
    volumen = row.get("volumen")
    if volumen is None:
        volumen = row.get("volumen_nominal")
    return {
        "symbol": symbol,
        "especie": _text(row.get("especie")) or symbol,
        "fecha": fecha,
        "apertura": to_float(row.get("apertura")),
        "maximo": to_float(row.get("maximo")),
        "minimo": to_float(row.get("minimo")),
        "cierre": to_float(row.get("cierre")),
        "volumen": to_float(volumen),
        "variacion": to_float(row.get("variacion")),
        "ajuste": to_float(row.get("ajuste")),
        "as_of": _local_midnight(fecha),
        "source": "rava",
    }


def _local_midnight(fecha: Optional[str]) -> Optional[str]:
    if not fecha:
        return None
    try:
        day = datetime.strptime(fecha[:10], "%Y-%m-%d")
    except ValueError:
        logger.debug("Fecha RAVA no parseable: %s", fecha)
        return None
    return day.replace(tzinfo=TimeProvider.timezone()).isoformat(timespec="seconds")


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


__all__ = ["RavaHistoricosService", "normalize_row", "normalize_rows"]
