"""Twelve Data client for the stock catalog and quote endpoints."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Mapping, Optional

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

PROVIDER = "twelvedata"

# Twelve Data identifies exchanges by MIC; the catalog uses EODHD-style codes.
_EXCHANGE_TO_MIC: Dict[str, str] = {"BA": "XBUE", "XBUE": "XBUE", "BCBA": "XBUE"}


class TwelveDataClient:
    """HTTP client for Twelve Data ``/stocks`` and ``/quote``."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        *,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._api_key = (api_key if api_key is not None else shared_settings.twelvedata_api_key) or ""
        self._base_url = (base_url or shared_settings.twelvedata_base_url).rstrip("/")
        self._timeout = timeout or shared_settings.twelvedata_timeout
        self._session = session or build_session(
            shared_settings.settings.USER_AGENT, timeout=self._timeout
        )

    def list_stocks(self, exchange: str) -> List[Mapping[str, Any]]:
        """Return the stocks listed on ``exchange``."""

        code = str(exchange or "").strip().upper()
        params: Dict[str, Any] = {}
        mic = _EXCHANGE_TO_MIC.get(code)
        if mic:
            params["mic_code"] = mic
        elif code:
            params["exchange"] = code
        response = self._request_json("stocks", params)
        data = response.get("data", response) if isinstance(response, Mapping) else response
        if not isinstance(data, list):
            raise ExternalAPIError("Respuesta inválida desde Twelve Data (stocks)", provider=PROVIDER)
        return [item for item in data if isinstance(item, Mapping)]

    def quote(self, symbol: str, exchange: Optional[str] = None) -> Dict[str, Any]:
        """Latest quote for ``symbol``; an ``AAPL.US`` style suffix is dropped."""

        requested = str(symbol or "").strip().upper()
        if not requested:
            raise ValueError("Símbolo requerido")
        params: Dict[str, Any] = {"symbol": requested.split(".", 1)[0]}
        mic = _EXCHANGE_TO_MIC.get(str(exchange or "").strip().upper())
        if mic:
            params["mic_code"] = mic
        payload = self._request_json("quote", params)
        if not isinstance(payload, Mapping):
            raise ExternalAPIError("Respuesta inválida desde Twelve Data (quote)", provider=PROVIDER)
        return normalize_quote(payload, requested, PROVIDER)

    def _request_json(self, endpoint: str, params: Mapping[str, Any]) -> Any:
        if not self._api_key:
            raise ProviderNotConfiguredError("Twelve Data API key requerida")
        url = f"{self._base_url}/{endpoint.lstrip('/')}"
        query = dict(params)
        query["apikey"] = self._api_key
        logger.debug("Twelve Data GET %s", endpoint, extra={"provider": PROVIDER})
        try:
            response = self._session.get(url, params=query, timeout=self._timeout)
        except requests.Timeout as exc:
            raise TimeoutError("Twelve Data no respondió a tiempo") from exc
        except requests.RequestException as exc:
            raise NetworkError(f"No se pudo conectar a Twelve Data: {exc}") from exc

        status = response.status_code
        if status == 429:
            raise RateLimitError("Twelve Data rate limit (HTTP 429)", status_code=status, provider=PROVIDER)
        if status >= 400:
            raise ExternalAPIError(
                f"Twelve Data devolvió código HTTP {status}", status_code=status, provider=PROVIDER
            )
        try:
            decoded = response.json()
        except (ValueError, json.JSONDecodeError) as exc:
            raise ExternalAPIError("Respuesta inválida desde Twelve Data", provider=PROVIDER) from exc

        if isinstance(decoded, Mapping) and decoded.get("status") == "error":
            code = _as_status(decoded.get("code"))
            message = str(decoded.get("message") or "Error desde Twelve Data")
            if code == 429:
                raise RateLimitError(message, status_code=code, provider=PROVIDER)
            raise ExternalAPIError(message, status_code=code, provider=PROVIDER)
        return decoded


def _as_status(value: Any) -> int:
    try:
        status = int(value)
    except (TypeError, ValueError):
        return 502
    return status if 400 <= status < 600 else 502


__all__ = ["TwelveDataClient"]
