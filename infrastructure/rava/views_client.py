"""Scraper for the public RAVA quote views.

Each view page embeds its dataset as HTML-escaped JSON inside the ``:datos``
attribute of a Vue component (``<cedears-p :datos="...">``).
"""

from __future__ import annotations

import html
import json
import logging
import re
from typing import Any, Dict, Optional

import requests

from infrastructure.http.session import build_session
from shared import settings as shared_settings
from shared.errors import ExternalAPIError

logger = logging.getLogger(__name__)

CEDEARS_VIEW = ("/cotizaciones/cedears", "cedears-p")


class RavaViewsClient:
    def __init__(
        self,
        *,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        user_agent: Optional[str] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._base_url = (base_url or shared_settings.rava_base_url).rstrip("/")
        self._timeout = timeout or shared_settings.rava_timeout
        self._session = session or build_session(
            user_agent or shared_settings.rava_user_agent,
            retries=0,
            timeout=self._timeout,
            headers={"Accept-Language": "es-AR,es;q=0.9,en;q=0.8"},
        )

    def fetch_cedears(self) -> Dict[str, Any]:
        path, tag = CEDEARS_VIEW
        return self.fetch_view(path, tag)

    def fetch_view(self, path: str, component_tag: str) -> Dict[str, Any]:
        """Download ``path`` and decode the ``:datos`` payload of ``component_tag``."""

        page = self._fetch_html(f"{self._base_url}{path}")
        encoded = extract_datos_attribute(page, component_tag)
        try:
            decoded = json.loads(html.unescape(encoded))
        except json.JSONDecodeError as exc:
            raise ExternalAPIError(
                f"JSON inválido en respuesta de RAVA ({component_tag})", status_code=502, provider="rava"
            ) from exc
        if not isinstance(decoded, dict):
            raise ExternalAPIError(
                f"JSON inválido en respuesta de RAVA ({component_tag})", status_code=502, provider="rava"
            )
        return decoded

    def _fetch_html(self, url: str) -> str:
        headers = {
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Referer": "https://www.rava.com/",
        }
        try:
            response = self._session.get(url, headers=headers, timeout=self._timeout)
        except requests.RequestException as exc:
            raise ExternalAPIError(f"Error al consultar RAVA: {exc}", status_code=502, provider="rava") from exc
        if response.status_code >= 400:
            raise ExternalAPIError(
                f"RAVA devolvió HTTP {response.status_code}",
                status_code=response.status_code,
                provider="rava",
            )
        logger.debug("RAVA vista descargada", extra={"url": url})
        return response.text or ""


def extract_datos_attribute(page: str, component_tag: str) -> str:
    pattern = re.compile(
        rf'<{re.escape(component_tag)}\b[^>]*:datos="(?P<data>[^"]*)"',
        re.IGNORECASE | re.DOTALL,
    )
    match = pattern.search(page or "")
    if not match:
        raise ExternalAPIError(
            f"No se encontró bloque :datos en RAVA ({component_tag})", status_code=502, provider="rava"
        )
    data = match.group("data")
    if not data:
        raise ExternalAPIError(
            f"Atributo :datos vacío en RAVA ({component_tag})", status_code=502, provider="rava"
        )
    return data


__all__ = ["RavaViewsClient", "extract_datos_attribute"]
