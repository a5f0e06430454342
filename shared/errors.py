"""Jerarquía de errores compartida por la capa de datos de mercado."""

from __future__ import annotations


class AppError(Exception):
    """Excepción base para errores específicos de la aplicación."""


class NetworkError(AppError):
    """Representa fallas relacionadas con la red."""


class TimeoutError(NetworkError):
    """Se genera cuando se agota el tiempo de espera de una operación de red."""


class ProviderNotConfiguredError(AppError):
    """Falta configuración (API key, token) para usar un proveedor."""


class NoProvidersAvailableError(AppError):
    """Todos los proveedores están deshabilitados o no configurados."""


class ExternalAPIError(AppError):
    """Se genera cuando una API externa devuelve un error."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        provider: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.provider = provider


class RateLimitError(ExternalAPIError):
    """El proveedor indicó que se superó la cuota o el límite de frecuencia."""


class RavaHistoricosError(ExternalAPIError):
    """Falla al consultar el histórico de RAVA."""


class RavaTokenError(RavaHistoricosError):
    """No se pudo obtener el access_token desde el perfil de RAVA."""


__all__ = [
    "AppError",
    "NetworkError",
    "TimeoutError",
    "ProviderNotConfiguredError",
    "NoProvidersAvailableError",
    "ExternalAPIError",
    "RateLimitError",
    "RavaHistoricosError",
    "RavaTokenError",
]
