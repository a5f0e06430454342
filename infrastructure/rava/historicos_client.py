# infrastructure/rava/historicos_client.py
"""Cliente HTTP para el histórico diario de una especie en RAVA.

El endpoint de históricos exige un ``access_token`` de sesión que RAVA embebe
en el HTML del perfil de cada especie. Cada consulta scrapea un token nuevo y,
si el endpoint lo rechaza, scrapea uno más y reintenta una única vez.
"""

from __future__ import annotations

import json
import logging
import re
import time
from typing import Any, Callable, Dict, Mapping, Optional
from urllib.parse import quote

import requests

from infrastructure.http.session import build_session
from shared import settings as shared_settings
from shared.errors import RavaHistoricosError, RavaTokenError
from shared.time_provider import TimeProvider

logger = logging.getLogger(__name__)

HISTORICOS_PATH = "/lib/restapi/v3/publico/cotizaciones/historicos"
DEFAULT_FROM = "0000-00-00"

_NAVBAR_TOKEN_RE = re.compile(r'<navbar-c\b[^>]*:access_token="(?P<token>[^"]+)"', re.IGNORECASE)
_INLINE_TOKEN_RE = re.compile(r'access_token\s*[:=]\s*"(?P<token>[^"]+)"', re.IGNORECASE)
_TOKEN_STRIP = " \t\n\r\0\x0b'\""


class RavaHistoricosClient:
    """Scrapes a session token and fetches daily bars for one especie."""

    def __init__(
        self,
        *,
        base_url: Optional[str] = None,
        historicos_base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        user_agent: Optional[str] = None,
        session: Optional[requests.Session] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._base_url = (base_url or shared_settings.rava_base_url).rstrip("/")
        self._historicos_base_url = (
            historicos_base_url or shared_settings.rava_historicos_base_url
        ).rstrip("/")
        self._timeout = timeout or shared_settings.rava_timeout
        self._session = session or build_session(
            user_agent or shared_settings.rava_user_agent,
            retries=0,
            timeout=self._timeout,
            headers={"Accept-Language": "es-AR,es;q=0.9,en;q=0.8"},
        )
        self._clock = clock

    # Public API -----------------------------------------------------------
    def fetch_historicos(
        self,
        especie: str,
        fecha_inicio: Optional[str] = None,
        fecha_fin: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Devuelve ``{"body": [...]}`` con el histórico de ``especie``.

        Reintenta una sola vez cuando RAVA rechaza el token y el nuevo token
        scrapeado es distinto del anterior.
        """

        symbol = str(especie or "").strip()
        if not symbol:
            raise ValueError("especie requerida")
        start = (fecha_inicio or "").strip() or DEFAULT_FROM
        end = (fecha_fin or "").strip() or TimeProvider.day(self._clock())

        token = self.fetch_access_token(symbol)
        try:
            return self._perform_request(symbol, start, end, token)
        except RavaHistoricosError as exc:
            if "token" not in str(exc).lower():
                raise
            logger.info(
                "Token RAVA rechazado; se scrapea uno nuevo",
                extra={"especie": symbol, "error": str(exc)},
            )
            fresh_token = self.fetch_access_token(symbol)
            if not fresh_token or fresh_token == token:
                logger.warning(
                    "RAVA devolvió el mismo token; no se reintenta",
                    extra={"especie": symbol},
                )
                raise
            return self._perform_request(symbol, start, end, fresh_token)

    def fetch_access_token(self, especie: str) -> str:
        url = f"{self._base_url}/perfil/{quote(especie, safe='')}"
        html = self._fetch_html(url)
        token = self.extract_access_token(html)
        if token is None:
            raise RavaTokenError("No se pudo extraer access_token de RAVA", status_code=502, provider="rava")
        return token

    @staticmethod
    def extract_access_token(html: str) -> Optional[str]:
        for pattern in (_NAVBAR_TOKEN_RE, _INLINE_TOKEN_RE):
            match = pattern.search(html or "")
            if match:
                token = match.group("token").strip(_TOKEN_STRIP)
                return token or None
        return None

    # Internal helpers ----------------------------------------------------
    def _fetch_html(self, url: str) -> str:
        headers = {
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Referer": "https://www.rava.com/",
        }
        try:
            response = self._session.get(url, headers=headers, timeout=self._timeout)
        except requests.RequestException as exc:
            raise RavaTokenError(
                f"Error al consultar perfil RAVA: {exc}", status_code=502, provider="rava"
            ) from exc
        status = response.status_code
        if status >= 400:
            raise RavaTokenError(f"RAVA perfil devolvió HTTP {status}", status_code=status, provider="rava")
        return response.text or ""

    def _perform_request(self, especie: str, fecha_inicio: str, fecha_fin: str, token: str) -> Dict[str, Any]:
        url = f"{self._historicos_base_url}{HISTORICOS_PATH}"
        payload = {
            "access_token": token,
            "especie": especie,
            "fecha_inicio": fecha_inicio,
            "fecha_fin": fecha_fin,
        }
        headers = {
            "Content-Type": "application/x-www-form-urlencoded",
            "Accept": "application/json, text/plain, */*",
            "Origin": "https://www.rava.com",
            "Referer": "https://www.rava.com/",
        }
        start = time.perf_counter()
        try:
            response = self._session.post(url, data=payload, headers=headers, timeout=self._timeout)
        except requests.RequestException as exc:
            raise RavaHistoricosError(
                f"Error al consultar histórico RAVA: {exc}", status_code=502, provider="rava"
            ) from exc

        status = response.status_code
        if status >= 500:
            raise RavaHistoricosError(
                f"RAVA histórico devolvió HTTP {status}", status_code=status, provider="rava"
            )
        try:
            decoded = response.json()
        except (ValueError, json.JSONDecodeError) as exc:
            raise RavaHistoricosError(
                "JSON inválido en histórico RAVA", status_code=502, provider="rava"
            ) from exc
        if not isinstance(decoded, Mapping):
            raise RavaHistoricosError("JSON inválido en histórico RAVA", status_code=502, provider="rava")
        if "error" in decoded:
            raise RavaHistoricosError(
                _describe_error(decoded.get("error")),
                status_code=status or 401,
                provider="rava",
            )
        body = decoded.get("body")
        if not isinstance(body, list):
            raise RavaHistoricosError(
                "Estructura inesperada en histórico RAVA", status_code=502, provider="rava"
            )
        logger.debug(
            "RAVA histórico ok",
            extra={
                "especie": especie,
                "rows": len(body),
                "elapsed_ms": int((time.perf_counter() - start) * 1000),
            },
        )
        return dict(decoded)


def _describe_error(error: Any) -> str:
    if isinstance(error, (dict, list)):
        text = json.dumps(error, ensure_ascii=False)
    else:
        text = str(error or "").strip()
    return text or "Error de token en histórico RAVA"


__all__ = ["RavaHistoricosClient", "HISTORICOS_PATH"]
