# infrastructure/http/session.py
from __future__ import annotations

from typing import Mapping, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry


def _wrap_with_timeout(request_func, default_timeout: float):
    def wrapped(method, url, **kwargs):
        if kwargs.get("timeout") is None:
            kwargs["timeout"] = default_timeout
        return request_func(method, url, **kwargs)

    return wrapped


def build_session(
    user_agent: str,
    *,
    retries: int = 2,
    backoff: float = 0.3,
    timeout: float = 15.0,
    headers: Optional[Mapping[str, str]] = None,
) -> requests.Session:
    """Return a ``requests.Session`` with UA, default timeout and transport retries.

    ``retries=0`` disables urllib3 retries entirely; clients that implement
    their own bounded retry use it to keep the attempt count exact.
    """

    s = requests.Session()
    s.headers.update({"User-Agent": user_agent})
    if headers:
        s.headers.update(dict(headers))

    if retries > 0:
        retry = Retry(
            total=retries,
            backoff_factor=backoff,
            status_forcelist=[500, 502, 503, 504],
            allowed_methods=["HEAD", "GET", "OPTIONS"],
            raise_on_status=False,
        )
    else:
        retry = Retry(total=0, raise_on_status=False)
    adapter = HTTPAdapter(max_retries=retry)
    s.mount("https://", adapter)
    s.mount("http://", adapter)

    # envolver para tener timeout por defecto
    s.request = _wrap_with_timeout(s.request, timeout)
    return s
