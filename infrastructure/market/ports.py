# infrastructure/market/ports.py
from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Protocol, runtime_checkable


@runtime_checkable
class ExchangeSymbolsSource(Protocol):
    """Puerto para proveedores que listan símbolos por exchange (EODHD)."""

    def fetch_exchange_symbols(self, exchange: str) -> List[Mapping[str, Any]]: ...


@runtime_checkable
class StockListSource(Protocol):
    """Puerto para proveedores con catálogo de acciones (Twelve Data)."""

    def list_stocks(self, exchange: str) -> List[Mapping[str, Any]]: ...


@runtime_checkable
class QuoteProvider(Protocol):
    """Puerto de cotizaciones puntuales usado por el ruteo de proveedores."""

    def quote(self, symbol: str, exchange: Optional[str] = None) -> Dict[str, Any]: ...
