import pytest

from infrastructure.cache.rava_cache import RavaCedearsCache
from services.rava_snapshot import (
    RavaSnapshotService,
    is_market_open,
    normalize_cedear_row,
    resolve_backoff_seconds,
    resolve_ttl_seconds,
)
from shared.errors import ExternalAPIError

# Thursday 2024-05-02 in Buenos Aires
THURSDAY_0900 = 1714651200.0
THURSDAY_1200 = 1714662000.0
SATURDAY_1200 = 1714834800.0


class _Fetcher:
    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls = 0

    def __call__(self):
        self.calls += 1
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


BODY = {"body": [{"simbolo": "aapl", "ultimo": "15000,5", "variacion": 1.2}, {"simbolo": ""}]}


@pytest.fixture
def cache(tmp_path):
    return RavaCedearsCache(tmp_path)


def test_market_hours_drive_ttl_and_backoff():
    assert not is_market_open(THURSDAY_0900)
    assert is_market_open(THURSDAY_1200)
    assert not is_market_open(SATURDAY_1200)
    assert resolve_ttl_seconds(THURSDAY_1200) == 90
    assert resolve_ttl_seconds(THURSDAY_0900) == 1800
    assert resolve_backoff_seconds(THURSDAY_1200) == 60
    assert resolve_backoff_seconds(SATURDAY_1200) == 300


def test_fresh_snapshot_is_served_from_cache(cache, fake_time):
    fake_time.set(THURSDAY_1200)
    fetcher = _Fetcher(BODY)
    service = RavaSnapshotService(fetcher, cache, clock=fake_time)

    first = service.get()
    assert first["meta"]["cached"] is False
    assert first["meta"]["count"] == 1
    assert first["meta"]["ttl_seconds"] == 90
    assert first["meta"]["source"] == "rava"
    assert first["items"][0]["symbol"] == "AAPL"

    fake_time.sleep(90)
    second = service.get()
    assert second["meta"]["cached"] is True
    assert second["meta"]["stale"] is False
    assert second["items"] == first["items"]
    assert fetcher.calls == 1


def test_failed_refresh_serves_stale_and_opens_backoff(cache, fake_time):
    fake_time.set(THURSDAY_1200)
    fetcher = _Fetcher(BODY, ExternalAPIError("RAVA devolvió HTTP 503"))
    service = RavaSnapshotService(fetcher, cache, clock=fake_time)
    service.get()

    fake_time.sleep(91)
    stale = service.get()
    assert stale["meta"]["stale"] is True
    assert stale["meta"]["error"] == "RAVA devolvió HTTP 503"
    assert stale["meta"]["backoff_until"] is not None
    assert stale["items"][0]["symbol"] == "AAPL"
    assert cache.read()["backoff_until"] == int(THURSDAY_1200) + 91 + 60

    fake_time.sleep(30)
    during_backoff = service.get()
    assert during_backoff["meta"]["stale"] is True
    assert during_backoff["meta"]["error"] == "backoff"
    assert fetcher.calls == 2


def test_refresh_after_backoff_replaces_snapshot(cache, fake_time):
    fake_time.set(THURSDAY_1200)
    fetcher = _Fetcher(
        BODY,
        ExternalAPIError("boom"),
        [{"simbolo": "KO", "ultimo": 20}],
    )
    service = RavaSnapshotService(fetcher, cache, clock=fake_time)
    service.get()
    fake_time.sleep(91)
    service.get()

    fake_time.sleep(61)
    refreshed = service.get()
    assert refreshed["meta"]["cached"] is False
    assert [item["symbol"] for item in refreshed["items"]] == ["KO"]
    assert "backoff_until" not in cache.read()


def test_failure_without_snapshot_raises(cache, fake_time):
    service = RavaSnapshotService(_Fetcher(ExternalAPIError("down")), cache, clock=fake_time)
    with pytest.raises(ExternalAPIError):
        service.get()
    assert cache.read() is None


def test_unexpected_structure_counts_as_failure(cache, fake_time):
    service = RavaSnapshotService(_Fetcher({"rows": []}), cache, clock=fake_time)
    with pytest.raises(ExternalAPIError):
        service.get()


def test_normalize_cedear_row_parses_comma_decimals():
    row = normalize_cedear_row({"simbolo": "aapl", "ultimo": "15000,5", "ratio": "10:1", "hora": " "})
    assert row["symbol"] == "AAPL"
    assert row["ultimo"] == 15000.5
    assert row["ratio"] == "10:1"
    assert row["hora"] is None
    assert normalize_cedear_row({"nombre": "sin simbolo"}) is None


def test_empty_snapshot_stays_a_list_after_failed_refresh(cache, fake_time):
    fake_time.set(THURSDAY_1200)
    fetcher = _Fetcher({"body": []}, ExternalAPIError("RAVA caído"))
    service = RavaSnapshotService(fetcher, cache, clock=fake_time)

    assert service.get()["items"] == []

    fake_time.sleep(91)
    stale = service.get()
    assert stale["meta"]["stale"] is True
    assert stale["items"] == []
    assert cache.read()["data"] == []
