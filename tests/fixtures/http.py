"""Doubles for ``requests`` sessions used by the provider clients."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple


class DummyResponse:
    def __init__(
        self,
        status_code: int = 200,
        payload: Any = None,
        text: str = "",
    ) -> None:
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self) -> Any:
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


class DummySession:
    """Replays queued responses per HTTP method and records every call."""

    def __init__(self) -> None:
        self.calls: List[Tuple[str, str, Dict[str, Any]]] = []
        self._queues: Dict[str, List[Any]] = {"GET": [], "POST": []}

    def queue(self, method: str, *responses: Any) -> "DummySession":
        self._queues[method.upper()].extend(responses)
        return self

    def get(self, url: str, **kwargs: Any) -> DummyResponse:
        return self._dispatch("GET", url, kwargs)

    def post(self, url: str, **kwargs: Any) -> DummyResponse:
        return self._dispatch("POST", url, kwargs)

    def calls_for(self, method: str) -> List[Tuple[str, str, Dict[str, Any]]]:
        return [call for call in self.calls if call[0] == method.upper()]

    def _dispatch(self, method: str, url: str, kwargs: Dict[str, Any]) -> DummyResponse:
        self.calls.append((method, url, kwargs))
        queue = self._queues[method]
        if not queue:
            raise AssertionError(f"unexpected {method} {url}")
        response: Optional[Any] = queue.pop(0)
        if isinstance(response, Exception):
            raise response
        return response
