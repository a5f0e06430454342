"""Daily provider usage summary for dashboards."""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping

from infrastructure.market.provider_metrics import ProviderMetrics

logger = logging.getLogger(__name__)

_SUMMARY_FIELDS = (
    "allowed",
    "used",
    "remaining",
    "success",
    "failed",
    "disabled_until",
    "disabled_reason",
)


class ProviderUsageService:
    def __init__(self, metrics: ProviderMetrics) -> None:
        self._metrics = metrics

    def get_usage(self) -> Dict[str, Any]:
        """Summarise today's counters and keep the summary as the ledger snapshot."""

        ledger = self._metrics.get_all()
        providers = {
            name: summarize_counter(counter)
            for name, counter in sorted(ledger.get("providers", {}).items())
        }
        self._metrics.store_snapshot(providers)
        logger.debug("Uso de proveedores calculado", extra={"providers": len(providers)})
        return {"date": ledger.get("date"), "providers": providers}


def summarize_counter(counter: Mapping[str, Any]) -> Dict[str, Any]:
    summary = {key: counter.get(key) for key in _SUMMARY_FIELDS}
    summary["disabled"] = counter.get("disabled_until") is not None
    return summary


__all__ = ["ProviderUsageService", "summarize_counter"]
