import pytest

from infrastructure.cache.quote_cache import QuoteCache
from infrastructure.market.provider_metrics import ProviderMetrics
from services.quote_router import (
    QuoteRouter,
    is_no_data_error,
    is_quota_error,
    sanitize_provider_order,
)
from shared.errors import ExternalAPIError, NoProvidersAvailableError, RateLimitError

# 2024-05-02 09:00 in Buenos Aires; 15h until local midnight
MORNING = 1714651200.0
UNTIL_MIDNIGHT = 15 * 3600


class _Provider:
    def __init__(self, name, *outcomes):
        self.name = name
        self.outcomes = list(outcomes)
        self.calls = []

    def quote(self, symbol, exchange=None):
        self.calls.append((symbol, exchange))
        outcome = self.outcomes.pop(0) if self.outcomes else {"close": 1.0}
        if isinstance(outcome, Exception):
            raise outcome
        return {"symbol": symbol, "provider": self.name, **outcome}


@pytest.fixture
def clock(fake_time):
    fake_time.set(MORNING)
    return fake_time


@pytest.fixture
def metrics(tmp_path, clock):
    return ProviderMetrics(tmp_path, clock=clock)


@pytest.fixture
def cache(tmp_path, clock):
    return QuoteCache(tmp_path / "quotes", clock=clock)


def _router(providers, metrics, cache=None, **kwargs):
    return QuoteRouter(
        {provider.name: provider for provider in providers},
        metrics,
        cache=cache,
        clock=metrics._clock,
        **kwargs,
    )


def test_search_quote_collects_sources_and_caches(metrics, cache):
    twelve = _Provider("twelvedata", {"close": 10.0})
    eodhd = _Provider("eodhd", {"close": 10.5})
    router = _router([twelve, eodhd], metrics, cache)

    result = router.search_quote("ggal", "ba")

    assert result["close"] == 10.0
    assert result["source"] == "twelvedata"
    assert result["sources"] == ["twelvedata", "eodhd"]
    assert result["cached"] is False
    assert [attempt["ok"] for attempt in result["providers"]] == [True, True]
    assert twelve.calls == [("GGAL", "BA")]

    again = router.search_quote("GGAL", "BA")
    assert again["cached"] is True
    assert again["close"] == 10.0
    assert len(twelve.calls) == 1

    usage = metrics.get_all()["providers"]
    assert usage["twelvedata"]["success"] == 1
    assert usage["eodhd"]["success"] == 1


def test_force_refresh_skips_cache(metrics, cache):
    twelve = _Provider("twelvedata", {"close": 1.0}, {"close": 2.0})
    router = _router([twelve], metrics, cache)

    router.search_quote("AAPL")
    refreshed = router.search_quote("AAPL", force_refresh=True)

    assert refreshed["close"] == 2.0
    assert refreshed["cached"] is False


def test_quota_error_disables_provider_until_midnight(metrics):
    twelve = _Provider("twelvedata", RateLimitError("You have run out of API credits"))
    eodhd = _Provider("eodhd", {"close": 3.0})
    router = _router([twelve, eodhd], metrics)

    result = router.search_quote("AAPL", "US")

    assert result["source"] == "eodhd"
    assert result["providers"][0] == {
        "provider": "twelvedata",
        "ok": False,
        "error": "You have run out of API credits",
    }
    info = metrics.disabled_info("twelvedata")
    assert info["disabled"] is True
    assert info["reason"] == "quota_error"
    assert info["until"] == int(MORNING) + UNTIL_MIDNIGHT
    assert router.resolve_provider_order() == ["eodhd"]
    assert metrics.get_all()["providers"]["twelvedata"]["failed"] == 1


def test_no_data_error_populates_negative_cache(metrics):
    eodhd = _Provider("eodhd", ExternalAPIError("Ticker Not Found"))
    twelve = _Provider("twelvedata", {"close": 5.0}, {"close": 6.0})
    router = _router([eodhd, twelve], metrics, provider_order="eodhd,twelvedata")

    router.search_quote("XYZ", "US")
    assert metrics.is_no_data("eodhd", "XYZ", "US")
    assert router.should_skip("eodhd", "xyz", "us")
    assert not metrics.is_disabled("eodhd")

    router.search_quote("XYZ", "US")
    assert len(eodhd.calls) == 1
    assert len(twelve.calls) == 2


def test_all_providers_failing_raises_first_error(metrics):
    router = _router(
        [
            _Provider("twelvedata", ExternalAPIError("HTTP 500 upstream")),
            _Provider("eodhd", ExternalAPIError("HTTP 502")),
        ],
        metrics,
    )

    with pytest.raises(ExternalAPIError, match="HTTP 500 upstream"):
        router.search_quote("AAPL")


def test_preferred_provider_goes_first(metrics):
    router = _router([_Provider("twelvedata"), _Provider("eodhd")], metrics)
    assert router.resolve_provider_order("EODHD") == ["eodhd", "twelvedata"]
    assert router.resolve_provider_order("finnhub") == ["twelvedata", "eodhd"]


def test_no_configured_provider_raises(metrics):
    router = _router([], metrics)
    with pytest.raises(NoProvidersAvailableError):
        router.resolve_provider_order()

    router = _router([_Provider("eodhd")], metrics)
    metrics.disable("eodhd", 60)
    with pytest.raises(NoProvidersAvailableError):
        router.search_quote("AAPL")


def test_blank_symbol_is_rejected(metrics):
    with pytest.raises(ValueError):
        _router([_Provider("eodhd")], metrics).search_quote("  ")


def test_fetch_snapshot_returns_first_answer(metrics):
    twelve = _Provider("twelvedata", ExternalAPIError("HTTP 500"))
    eodhd = _Provider("eodhd", {"close": 7.0})
    router = _router([twelve, eodhd], metrics)

    snapshot = router.fetch_snapshot("msft")

    assert snapshot["close"] == 7.0
    assert snapshot["provider"] == "eodhd"
    assert eodhd.calls == [("MSFT", None)]


def test_fetch_snapshot_all_failing(metrics):
    router = _router([_Provider("eodhd", ExternalAPIError("HTTP 500"))], metrics)
    with pytest.raises(ExternalAPIError):
        router.fetch_snapshot("MSFT")


def test_error_classification_markers():
    assert is_quota_error(RateLimitError("anything"))
    assert is_quota_error(ExternalAPIError("HTTP 402 Payment Required"))
    assert is_quota_error(ExternalAPIError("daily QUOTA exceeded"))
    assert not is_quota_error(ExternalAPIError("HTTP 500"))
    assert is_no_data_error(ExternalAPIError("Unknown symbol"))
    assert is_no_data_error(ExternalAPIError("HTTP 404"))
    assert not is_no_data_error(ExternalAPIError("timeout"))


def test_status_codes_classify_errors_without_message_markers(metrics):
    assert is_quota_error(ExternalAPIError("Acceso denegado", status_code=403, provider="eodhd"))
    assert is_quota_error(ExternalAPIError("Sin saldo", status_code=402))
    assert is_no_data_error(ExternalAPIError("Ticker inexistente", status_code=404))
    assert not is_quota_error(ExternalAPIError("Error interno", status_code=500))

    eodhd = _Provider("eodhd", ExternalAPIError("Acceso denegado", status_code=403, provider="eodhd"))
    router = _router([eodhd], metrics)
    with pytest.raises(ExternalAPIError):
        router.search_quote("AAPL")
    assert metrics.is_disabled("eodhd")


def test_sanitize_provider_order():
    assert sanitize_provider_order(" EODHD, finnhub ,eodhd,twelvedata") == ["eodhd", "twelvedata"]
    assert sanitize_provider_order(None) == ["twelvedata", "eodhd", "alphavantage"]
    assert sanitize_provider_order(["bogus"]) == ["twelvedata", "eodhd", "alphavantage"]


def test_bulk_snapshots_stop_calling_provider_after_quota_error(metrics):
    twelve = _Provider("twelvedata", RateLimitError("limit"))
    eodhd = _Provider("eodhd", {"close": 1.0}, {"close": 2.0}, {"close": 3.0})
    router = _router([twelve, eodhd], metrics)

    quotes = router.fetch_snapshots_bulk(["aapl", "MSFT", "aapl", " ko "])

    assert sorted(quotes) == ["AAPL", "KO", "MSFT"]
    assert twelve.calls == [("AAPL", None)]
    assert [call[0] for call in eodhd.calls] == ["AAPL", "MSFT", "KO"]
    assert metrics.is_disabled("twelvedata")
    usage = metrics.get_all()["providers"]
    assert usage["twelvedata"]["failed"] == 1
    assert usage["eodhd"]["success"] == 3


def test_bulk_snapshots_skip_negative_cached_symbols(metrics):
    metrics.mark_no_data("twelvedata", "YPF", None, 3600)
    twelve = _Provider("twelvedata", {"close": 5.0})
    eodhd = _Provider("eodhd", {"close": 7.0})
    router = _router([twelve, eodhd], metrics)

    quotes = router.fetch_snapshots_bulk(["GGAL", "YPF"])

    assert quotes["GGAL"]["provider"] == "twelvedata"
    assert quotes["YPF"]["provider"] == "eodhd"
    assert twelve.calls == [("GGAL", None)]


def test_bulk_snapshots_all_failing_raises_first_error(metrics):
    twelve = _Provider("twelvedata", ExternalAPIError("HTTP 500"), ExternalAPIError("HTTP 502"))
    router = _router([twelve], metrics)

    with pytest.raises(ExternalAPIError, match="HTTP 500"):
        router.fetch_snapshots_bulk(["AAPL", "MSFT"])


def test_bulk_snapshots_require_symbols(metrics):
    router = _router([_Provider("twelvedata")], metrics)
    with pytest.raises(ValueError):
        router.fetch_snapshots_bulk([" ", ""])


def test_search_quotes_mixes_cache_hits_fresh_quotes_and_errors(metrics, cache):
    twelve = _Provider(
        "twelvedata",
        {"close": 10.0},
        {"close": 20.0},
        ExternalAPIError("Unknown symbol"),
    )
    router = _router([twelve], metrics, cache)
    router.search_quote("GGAL", "BA")

    results = router.search_quotes(["ggal", "ypf", "zzz"], "ba")

    assert results["GGAL"]["cached"] is True
    assert results["GGAL"]["close"] == 10.0
    assert results["YPF"]["close"] == 20.0
    assert results["YPF"]["source"] == "twelvedata"
    assert results["YPF"]["cached"] is False
    assert results["ZZZ"] == {"symbol": "ZZZ", "error": {"message": "Unknown symbol"}}
    assert cache.get("YPF|BA")["close"] == 20.0
    assert metrics.is_no_data("twelvedata", "ZZZ", "BA")


def test_search_quotes_raises_when_nothing_resolves(metrics, cache):
    twelve = _Provider("twelvedata", ExternalAPIError("HTTP 500"))
    router = _router([twelve], metrics, cache)

    with pytest.raises(ExternalAPIError, match="HTTP 500"):
        router.search_quotes(["AAPL"])
