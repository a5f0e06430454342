# shared/config.py
from __future__ import annotations

import json
import logging
import os
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Mapping

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Raíz del proyecto (donde están .env y config.json)
BASE_DIR = Path(__file__).resolve().parents[1]

# Cargar variables del .env en la raíz (y fallback al cwd por si acaso)
load_dotenv(BASE_DIR / ".env")
load_dotenv()

DEFAULT_LOG_RETENTION_DAYS = 7
DEFAULT_RAVA_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120 Safari/537.36"
)


def _load_cfg() -> Dict[str, Any]:
    """
    Carga (opcional) config.json desde la raíz del proyecto (o cwd). Si no existe, {}.
    """
    candidates = [BASE_DIR / "config.json", Path.cwd() / "config.json"]
    for p in candidates:
        try:
            if p.exists():
                data = json.loads(p.read_text(encoding="utf-8"))
                return data if isinstance(data, dict) else {}
        except (OSError, json.JSONDecodeError) as e:
            logger.exception("No se pudo cargar configuración %s: %s", p, e)
    return {}


class Settings:
    def __init__(self, cfg: Mapping[str, Any] | None = None) -> None:
        cfg = dict(_load_cfg() if cfg is None else cfg)

        # --- Identidad / headers ---
        self.USER_AGENT: str = self.env_or_cfg(cfg, "USER_AGENT", "FinHub-MarketData/1.0")

        # --- Almacenamiento local ---
        self.MARKET_DATA_DIR: str = self.env_or_cfg(
            cfg, "MARKET_DATA_DIR", str(Path(".cache") / "market_data")
        )
        self.PROVIDER_METRICS_FILE: str = self.env_or_cfg(
            cfg, "PROVIDER_METRICS_FILE", "provider_metrics.json"
        )
        self.RAVA_CACHE_FILE: str = self.env_or_cfg(cfg, "RAVA_CACHE_FILE", "cedears.json")
        self.QUOTE_CACHE_TTL: int = self._coerce_positive_int(
            self.env_or_cfg(cfg, "QUOTE_CACHE_TTL", 86400), 86400
        )
        self.NO_DATA_TTL: int = self._coerce_positive_int(
            self.env_or_cfg(cfg, "NO_DATA_TTL", 86400), 86400
        )
        self.QUOTE_PROVIDER_ORDER: str = str(
            self.env_or_cfg(cfg, "QUOTE_PROVIDER_ORDER", "twelvedata,eodhd,alphavantage")
        )

        # --- Cupos diarios por proveedor ---
        self.TWELVEDATA_DAILY_LIMIT: int = self._coerce_positive_int(
            self.env_or_cfg(cfg, "TWELVEDATA_DAILY_LIMIT", 800), 800
        )
        self.EODHD_DAILY_LIMIT: int = self._coerce_positive_int(
            self.env_or_cfg(cfg, "EODHD_DAILY_LIMIT", 20), 20
        )
        self.ALPHAVANTAGE_DAILY_LIMIT: int = self._coerce_positive_int(
            self.env_or_cfg(cfg, "ALPHAVANTAGE_DAILY_LIMIT", 25), 25
        )

        # --- EODHD ---
        self.EODHD_API_KEY: str | None = self.env_or_cfg(cfg, "EODHD_API_KEY")
        self.EODHD_BASE_URL: str = self.env_or_cfg(cfg, "EODHD_BASE_URL", "https://eodhd.com")
        self.EODHD_TIMEOUT_SECONDS: float = float(self.env_or_cfg(cfg, "EODHD_TIMEOUT_SECONDS", 5.0))

        # --- Twelve Data ---
        self.TWELVEDATA_API_KEY: str | None = self.env_or_cfg(cfg, "TWELVEDATA_API_KEY")
        self.TWELVEDATA_BASE_URL: str = self.env_or_cfg(
            cfg, "TWELVEDATA_BASE_URL", "https://api.twelvedata.com"
        )
        self.TWELVEDATA_TIMEOUT_SECONDS: float = float(
            self.env_or_cfg(cfg, "TWELVEDATA_TIMEOUT_SECONDS", 5.0)
        )

        # --- RAVA ---
        self.RAVA_BASE_URL: str = self.env_or_cfg(cfg, "RAVA_BASE_URL", "https://www.rava.com")
        self.RAVA_HISTORICOS_BASE_URL: str = self.env_or_cfg(
            cfg, "RAVA_HISTORICOS_BASE_URL", "https://clasico.rava.com"
        )
        self.RAVA_TIMEOUT_SECONDS: float = float(self.env_or_cfg(cfg, "RAVA_TIMEOUT_SECONDS", 8.0))
        self.RAVA_USER_AGENT: str = self.env_or_cfg(cfg, "RAVA_USER_AGENT", DEFAULT_RAVA_USER_AGENT)

        # --- Logging ---
        self.LOG_LEVEL: str = str(self.env_or_cfg(cfg, "LOG_LEVEL", "INFO"))
        self.LOG_FORMAT: str = str(self.env_or_cfg(cfg, "LOG_FORMAT", "plain"))
        self.LOG_DIR: str | None = self.env_or_cfg(cfg, "LOG_DIR")
        self.LOG_RETENTION_DAYS: int = self._coerce_positive_int(
            self.env_or_cfg(cfg, "LOG_RETENTION_DAYS", DEFAULT_LOG_RETENTION_DAYS),
            DEFAULT_LOG_RETENTION_DAYS,
        )

    @staticmethod
    def env_or_cfg(cfg: Mapping[str, Any], key: str, default: Any | None = None) -> Any | None:
        value = os.getenv(key)
        if value is not None and value.strip() != "":
            return value
        return cfg.get(key, default)

    @property
    def daily_limits(self) -> Dict[str, int]:
        return {
            "twelvedata": self.TWELVEDATA_DAILY_LIMIT,
            "eodhd": self.EODHD_DAILY_LIMIT,
            "alphavantage": self.ALPHAVANTAGE_DAILY_LIMIT,
        }

    @staticmethod
    def _coerce_positive_int(candidate: Any, fallback: int) -> int:
        try:
            value = int(candidate)
        except (TypeError, ValueError):
            return fallback
        return value if value > 0 else fallback


settings = Settings()


class JsonFormatter(logging.Formatter):
    """Formato JSON simple para registros de log."""

    _RESERVED = set(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}

    def format(self, record: logging.LogRecord) -> str:
        log_record: Dict[str, Any] = {
            "time": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key in self._RESERVED or key.startswith("_"):
                continue
            log_record[key] = value
        if record.exc_info:
            log_record["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(log_record, ensure_ascii=False, default=str)


def configure_logging(level: str | None = None, json_format: bool | None = None) -> None:
    """Configura el logging global.

    Por defecto usa nivel ``INFO`` y formato ``"plain"``. Si ``LOG_DIR`` está
    configurado se agrega un archivo diario con rotación a medianoche.
    """

    level_name = (level or settings.LOG_LEVEL or "INFO").upper()
    level_value = getattr(logging, level_name, None)
    if not isinstance(level_value, int):
        level_value = logging.INFO

    if json_format is None:
        fmt = str(settings.LOG_FORMAT or "plain").lower()
        json_format = fmt == "json"

    if json_format:
        formatter: logging.Formatter = JsonFormatter(datefmt="%Y-%m-%d %H:%M:%S")
    else:
        formatter = logging.Formatter(
            fmt="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    root = logging.getLogger()
    root.setLevel(level_value)
    root.handlers = []

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)
    root.addHandler(stream_handler)

    if settings.LOG_DIR:
        log_directory = Path(settings.LOG_DIR)
        log_directory.mkdir(parents=True, exist_ok=True)
        file_handler = TimedRotatingFileHandler(
            filename=str(log_directory / "market_data.log"),
            when="midnight",
            backupCount=settings.LOG_RETENTION_DAYS,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    logging.getLogger("urllib3.connectionpool").setLevel(logging.WARNING)


__all__ = ["BASE_DIR", "Settings", "settings", "JsonFormatter", "configure_logging"]
