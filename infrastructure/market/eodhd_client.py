"""Minimal EODHD client limited to the free endpoints used by the catalog."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import quote

import requests

from infrastructure.http.session import build_session
from shared import settings as shared_settings
from infrastructure.market.quotes import normalize_quote
from shared.errors import (
    ExternalAPIError,
    NetworkError,
    ProviderNotConfiguredError,
    RateLimitError,
    TimeoutError,
)

logger = logging.getLogger(__name__)

PROVIDER = "eodhd"


class EodhdClient:
    """HTTP client for EODHD exchange symbol lists and delayed quotes."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        *,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._api_key = (api_key if api_key is not None else shared_settings.eodhd_api_key) or ""
        self._base_url = (base_url or shared_settings.eodhd_base_url).rstrip("/")
        self._timeout = timeout or shared_settings.eodhd_timeout
        self._session = session or build_session(
            shared_settings.settings.USER_AGENT, timeout=self._timeout
        )

    # Public API -----------------------------------------------------------
    def fetch_exchange_symbols(self, exchange: str) -> List[Mapping[str, Any]]:
        """Return the raw symbol list for ``exchange`` (e.g. ``US``, ``BA``)."""

        payload = self._request_json(f"api/exchange-symbol-list/{quote(exchange)}")
        if not isinstance(payload, list):
            raise ExternalAPIError("Respuesta inesperada de EODHD (symbols)", provider=PROVIDER)
        return [item for item in payload if isinstance(item, Mapping)]

    def quote(self, symbol: str, exchange: Optional[str] = None) -> Dict[str, Any]:
        """Delayed quote from ``real-time/<SYMBOL>.<EXCHANGE>`` (``US`` by default)."""

        requested = str(symbol or "").strip().upper()
        if not requested:
            raise ValueError("Símbolo requerido")
        ticker = format_ticker(requested, exchange)
        payload = self._request_json(f"api/real-time/{quote(ticker)}")
        if isinstance(payload, list) and payload and isinstance(payload[0], Mapping):
            payload = payload[0]
        if not isinstance(payload, Mapping):
            raise ExternalAPIError("Respuesta inesperada de EODHD (quote)", provider=PROVIDER)
        normalized = normalize_quote(payload, requested, PROVIDER)
        if normalized["close"] is None:
            raise ExternalAPIError(f"EODHD no data para {ticker}", status_code=404, provider=PROVIDER)
        return normalized

    # Internal helpers ----------------------------------------------------
    def _request_json(self, endpoint: str, params: Optional[Mapping[str, Any]] = None) -> Any:
        if not self._api_key:
            raise ProviderNotConfiguredError("EODHD API key requerida")
        url = f"{self._base_url}/{endpoint.lstrip('/')}"
        query: Dict[str, Any] = dict(params or {})
        query.update({"api_token": self._api_key, "fmt": "json"})
        logger.debug("EODHD GET %s", endpoint, extra={"provider": PROVIDER})
        try:
            response = self._session.get(url, params=query, timeout=self._timeout)
        except requests.Timeout as exc:
            raise TimeoutError("EODHD no respondió a tiempo") from exc
        except requests.RequestException as exc:
            raise NetworkError(f"Error de red consultando EODHD: {exc}") from exc

        status = response.status_code
        try:
            data = response.json()
        except (ValueError, json.JSONDecodeError) as exc:
            raise ExternalAPIError(
                f"Respuesta inválida de EODHD (HTTP {status})", status_code=status, provider=PROVIDER
            ) from exc
        if status == 429:
            raise RateLimitError("EODHD rate limit (HTTP 429)", status_code=status, provider=PROVIDER)
        if status < 200 or status >= 300:
            message = None
            if isinstance(data, Mapping):
                message = data.get("message") or data.get("error")
            raise ExternalAPIError(
                str(message or f"HTTP {status}"), status_code=status, provider=PROVIDER
            )
        return data


def format_ticker(symbol: str, exchange: Optional[str] = None) -> str:
    """Return ``SYMBOL.EXCHANGE`` unless ``symbol`` already carries a suffix."""

    code = str(symbol or "").strip().upper()
    if "." in code:
        return code
    suffix = str(exchange or "").strip().upper() or "US"
    return f"{code}.{suffix}"


__all__ = ["EodhdClient", "format_ticker"]
