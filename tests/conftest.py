from __future__ import annotations

import pytest

from tests.fixtures.http import DummySession
from tests.fixtures.time import FakeTime


@pytest.fixture
def fake_time() -> FakeTime:
    """Provide a deterministic fake clock for time-sensitive tests."""

    return FakeTime()


@pytest.fixture
def dummy_session() -> DummySession:
    """Session double that records requests and replays queued responses."""

    return DummySession()
