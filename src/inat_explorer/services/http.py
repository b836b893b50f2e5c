"""
Shared HTTP session factory and URL helpers.

Provides a pre-configured ``requests.Session`` with a default timeout, a
project User-Agent, and an optional urllib3 retry adapter. Retries default to
zero: a failed request surfaces as ``TransportFailure`` and the caller
decides what to do with it.

Usage::

    from inat_explorer.services.http import create_session

    s = create_session(timeout=10)
    resp = s.get("https://api.inaturalist.org/v1/taxa/47224")
"""

from __future__ import annotations

from typing import Any

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

DEFAULT_TIMEOUT = 30  # seconds
USER_AGENT = "inat-explorer/0.1"


def build_retry(total: int = 0) -> Retry:
    """Retry strategy for idempotent requests; ``total=0`` disables retries."""
    return Retry(
        total=total,
        backoff_factor=2,  # 0s, 2s, 4s, ... between retries
        status_forcelist=[429, 502, 503, 504],
        allowed_methods=["GET", "HEAD", "OPTIONS"],
        raise_on_status=False,  # let resp.raise_for_status() handle it
    )


#: Default retry strategy: none.
DEFAULT_RETRY = build_retry(0)


def create_session(
    retry: Retry | None = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> requests.Session:
    """
    Build a ``requests.Session`` with retry adapter mounted.

    Args:
        retry: Custom retry strategy (defaults to ``DEFAULT_RETRY``).
        timeout: Default timeout applied to every request.
    """
    s = requests.Session()
    adapter = HTTPAdapter(max_retries=retry or DEFAULT_RETRY)
    s.mount("https://", adapter)
    s.mount("http://", adapter)
    s.headers["User-Agent"] = USER_AGENT

    # Wrap send to inject a default timeout so callers don't need to
    # remember to pass ``timeout=`` every time.
    _original_send = s.send

    def _send_with_timeout(
        prepared: requests.PreparedRequest, **kwargs: object
    ) -> requests.Response:
        kwargs.setdefault("timeout", timeout)
        return _original_send(prepared, **kwargs)  # type: ignore[arg-type]

    s.send = _send_with_timeout  # type: ignore[method-assign]
    return s


def encode_params(params: dict[str, Any] | None) -> dict[str, str]:
    """Flatten query params the way the iNaturalist API expects them.

    Booleans become ``true``/``false``, sequences become comma-separated,
    ``None`` values are dropped. Insertion order is kept.
    """
    encoded: dict[str, str] = {}
    for name, value in (params or {}).items():
        if value is None:
            continue
        if isinstance(value, bool):
            encoded[name] = "true" if value else "false"
        elif isinstance(value, (list, tuple, set)):
            encoded[name] = ",".join(str(v) for v in value)
        else:
            encoded[name] = str(value)
    return encoded


def canonical_url(url: str, params: dict[str, Any] | None = None) -> str:
    """Return the full URL ``requests`` would send for ``url`` + ``params``."""
    prepared = requests.Request("GET", url, params=encode_params(params)).prepare()
    return str(prepared.url)
