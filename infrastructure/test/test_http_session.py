from unittest.mock import MagicMock, patch

from infrastructure.http.session import build_session


def test_build_session_user_agent_and_timeout():
    mock_request = MagicMock()
    with patch("requests.Session.request", mock_request):
        session = build_session("UA-Test", retries=1, backoff=0, timeout=5)
        assert session.headers["User-Agent"] == "UA-Test"

        session.request("GET", "http://example.com")
        assert mock_request.call_args.kwargs["timeout"] == 5

        mock_request.reset_mock()
        session.request("GET", "http://example.com", timeout=1)
        assert mock_request.call_args.kwargs["timeout"] == 1


def test_build_session_extra_headers_are_merged():
    session = build_session("UA-Test", headers={"Accept-Language": "es-AR"})
    assert session.headers["Accept-Language"] == "es-AR"
    assert session.headers["User-Agent"] == "UA-Test"


def test_build_session_retries_exclude_rate_limit_status():
    session = build_session("UA-Test", retries=2)
    retry = session.get_adapter("https://example.com").max_retries
    assert retry.total == 2
    assert 429 not in retry.status_forcelist
    assert 503 in retry.status_forcelist


def test_build_session_without_retries():
    session = build_session("UA-Test", retries=0)
    retry = session.get_adapter("https://example.com").max_retries
    assert retry.total == 0
