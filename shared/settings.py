"""Market-data settings exposed for cross-module use.

This module centralizes access to the configuration values used across
services and infrastructure layers. Values are sourced from environment
variables or ``config.json`` via ``shared.config``.
"""
from __future__ import annotations

from typing import Dict

from shared.config import settings as _config_settings

# Re-export the shared Settings instance so existing imports keep working.
settings = _config_settings

# Storage configuration
market_data_dir: str = settings.MARKET_DATA_DIR
provider_metrics_file: str = settings.PROVIDER_METRICS_FILE
rava_cache_file: str = settings.RAVA_CACHE_FILE
quote_cache_ttl: int = settings.QUOTE_CACHE_TTL
no_data_ttl: int = settings.NO_DATA_TTL

# Daily quotas
daily_limits: Dict[str, int] = settings.daily_limits

# Provider endpoints
eodhd_api_key: str | None = settings.EODHD_API_KEY
eodhd_base_url: str = settings.EODHD_BASE_URL
eodhd_timeout: float = settings.EODHD_TIMEOUT_SECONDS
twelvedata_api_key: str | None = settings.TWELVEDATA_API_KEY
twelvedata_base_url: str = settings.TWELVEDATA_BASE_URL
twelvedata_timeout: float = settings.TWELVEDATA_TIMEOUT_SECONDS
rava_base_url: str = settings.RAVA_BASE_URL
rava_historicos_base_url: str = settings.RAVA_HISTORICOS_BASE_URL
rava_timeout: float = settings.RAVA_TIMEOUT_SECONDS
rava_user_agent: str = settings.RAVA_USER_AGENT

__all__ = [
    "settings",
    "market_data_dir",
    "provider_metrics_file",
    "rava_cache_file",
    "quote_cache_ttl",
    "no_data_ttl",
    "daily_limits",
    "eodhd_api_key",
    "eodhd_base_url",
    "eodhd_timeout",
    "twelvedata_api_key",
    "twelvedata_base_url",
    "twelvedata_timeout",
    "rava_base_url",
    "rava_historicos_base_url",
    "rava_timeout",
    "rava_user_agent",
]
