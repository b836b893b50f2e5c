"""Shared fakes: a controllable clock and a recording HTTP session."""

from __future__ import annotations

import math
from collections.abc import Callable
from datetime import timedelta
from pathlib import Path
from typing import Any
from unittest.mock import Mock

import pytest

from inat_explorer.datasources.inaturalist.client import INatClient
from inat_explorer.datasources.inaturalist.retriever import PagedRetriever
from inat_explorer.store import RequestCache

Handler = Callable[[str, dict[str, str]], Any]


class FakeClock:
    """Monotonic clock whose sleep() just advances time."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeSession:
    """Stands in for ``requests.Session``; records every GET."""

    def __init__(self, handler: Handler, clock: FakeClock | None = None) -> None:
        self.handler = handler
        self.clock = clock
        self.calls: list[dict[str, Any]] = []

    def get(
        self,
        url: str,
        params: dict[str, str] | None = None,
        headers: dict[str, str] | None = None,
    ) -> Mock:
        params = dict(params or {})
        self.calls.append(
            {
                "url": url,
                "params": params,
                "headers": headers or {},
                "at": self.clock() if self.clock else None,
            }
        )
        resp = Mock()
        resp.status_code = 200
        resp.raise_for_status = Mock()
        resp.json.return_value = self.handler(url, params)
        return resp

    def pages_requested(self) -> list[int]:
        return [int(c["params"]["page"]) for c in self.calls if "page" in c["params"]]


def taxon_row(taxon_id: int, ancestor_ids: list[int] | None = None, count: int = 1) -> dict[str, Any]:
    """A species_counts row."""
    return {
        "count": count,
        "taxon": {
            "id": taxon_id,
            "name": f"Taxon {taxon_id}",
            "rank": "species",
            "rank_level": 10,
            "ancestor_ids": ancestor_ids or [],
        },
    }


def paged_handler(total_results: int, per_page: int) -> Handler:
    """Serve ``total_results`` numbered rows, ``per_page`` at a time."""

    def handler(_url: str, params: dict[str, str]) -> dict[str, Any]:
        page = int(params.get("page", 1))
        start = (page - 1) * per_page
        stop = min(start + per_page, total_results)
        return {
            "total_results": total_results,
            "page": page,
            "per_page": per_page,
            "results": [taxon_row(i) for i in range(start, max(start, stop))],
        }

    handler.num_pages = math.ceil(total_results / per_page) if per_page else 0  # type: ignore[attr-defined]
    return handler


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(tmp_path: Path) -> RequestCache:
    return RequestCache(tmp_path / "cache", ttl=timedelta(hours=1))


@pytest.fixture
def make_client(cache: RequestCache, clock: FakeClock) -> Callable[..., tuple[INatClient, FakeSession]]:
    """Build a client wired to a FakeSession serving ``handler``."""

    def _make(handler: Handler, **kwargs: Any) -> tuple[INatClient, FakeSession]:
        session = FakeSession(handler, clock)
        client = INatClient(cache, session=session, clock=clock, sleep=clock.sleep, **kwargs)  # type: ignore[arg-type]
        return client, session

    return _make


@pytest.fixture
def progress() -> Mock:
    return Mock()


@pytest.fixture
def make_retriever(
    make_client: Callable[..., tuple[INatClient, FakeSession]],
    cache: RequestCache,
    progress: Mock,
) -> Callable[..., tuple[PagedRetriever, FakeSession]]:
    def _make(handler: Handler, **kwargs: Any) -> tuple[PagedRetriever, FakeSession]:
        client, session = make_client(handler)
        return PagedRetriever(client, cache, progress, **kwargs), session

    return _make
