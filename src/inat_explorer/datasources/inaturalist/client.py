"""
iNaturalist API client.

Low-level HTTP client for the iNaturalist API v1. Serialises requests to one
per ``interval`` seconds, supports cooperative cancellation, and resolves
entity-by-ID lookups through the request cache.

API docs: https://api.inaturalist.org/v1/docs/
Rate limits: ~1 req/sec, 10k/day
Recommended practices: https://www.inaturalist.org/pages/api+recommended+practices
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

import requests
from pydantic import ValidationError

from inat_explorer.errors import EntityNotFound, QueryCancelled, StorageFailure, TransportFailure
from inat_explorer.schemas import EntityEnvelope, Taxon
from inat_explorer.services.http import create_session, encode_params

if TYPE_CHECKING:
    from inat_explorer.store import RequestCache

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# API configuration
# ---------------------------------------------------------------------------
API_BASE = "https://api.inaturalist.org/v1"
MIN_REQUEST_INTERVAL: float = 1.0  # seconds between request starts

# ---------------------------------------------------------------------------
# Entity types (path segment under API_BASE)
# ---------------------------------------------------------------------------
TAXA = "taxa"
PLACES = "places"
PROJECTS = "projects"
USERS = "users"


def _taxon_label(result: dict[str, Any]) -> str:
    return Taxon.model_validate(result).form_name()


#: How each autocomplete endpoint's results are labelled.
AUTOCOMPLETE_LABELS: dict[str, Callable[[dict[str, Any]], str]] = {
    TAXA: _taxon_label,
    PLACES: lambda r: r["display_name"],
    PROJECTS: lambda r: r["title"],
    USERS: lambda r: r["login_exact"],
}


class INatClient:
    """Rate-limited, cancellable client for one API consumer.

    All requests made through one instance start at least ``interval``
    seconds apart, however many threads share it.
    """

    def __init__(
        self,
        cache: RequestCache,
        *,
        token: str | None = None,
        api_base: str = API_BASE,
        interval: float = MIN_REQUEST_INTERVAL,
        session: requests.Session | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.cache = cache
        self.token = token
        self.api_base = api_base.rstrip("/")
        self.interval = interval
        self.session = session or create_session()
        self._clock = clock
        self._sleep = sleep
        self._last_call: float | None = None
        self._throttle_lock = threading.Lock()
        # Re-entrant: cancel() may run from a signal handler on the same thread.
        self._cancel_lock = threading.RLock()
        self._cancel_requested = False

    # -----------------------------------------------------------------------
    # Cancellation
    # -----------------------------------------------------------------------

    def cancel(self, flag: bool = True) -> None:
        """Request (or withdraw a request) that the next pending call abort."""
        with self._cancel_lock:
            self._cancel_requested = flag is True

    @property
    def cancel_requested(self) -> bool:
        with self._cancel_lock:
            return self._cancel_requested

    def check_cancelled(self) -> None:
        """Raise ``QueryCancelled`` if cancellation was requested, clearing the request."""
        with self._cancel_lock:
            requested = self._cancel_requested
            self._cancel_requested = False
        if requested:
            raise QueryCancelled

    # -----------------------------------------------------------------------
    # Rate limiting
    # -----------------------------------------------------------------------

    def throttle(self) -> None:
        """Block until ``interval`` has passed since the previous call started."""
        self.check_cancelled()
        with self._throttle_lock:
            if self._last_call is not None:
                wait = self.interval - (self._clock() - self._last_call)
                if wait > 0:
                    logger.debug("Rate limit: sleeping %.3fs", wait)
                    self._sleep(wait)
            self._last_call = self._clock()

    # -----------------------------------------------------------------------
    # Requests
    # -----------------------------------------------------------------------

    def fetch_json(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        token: str | None = None,
    ) -> Any:
        """Make a rate-limited GET request and return the decoded JSON body."""
        self.throttle()
        # A cancel requested while we slept must stop us before the request goes out.
        self.check_cancelled()

        token = token or self.token
        headers: dict[str, str] = {}
        if token:
            headers = {
                "Content-Type": "application/json",
                "Accept": "application/json",
                "Authorization": token,
            }

        query = encode_params(params) if params is not None else None
        logger.debug("GET %s %s", url, query or "")
        try:
            resp = self.session.get(url, params=query, headers=headers)
        except requests.RequestException as exc:
            raise TransportFailure(url, str(exc)) from exc

        try:
            resp.raise_for_status()
        except requests.HTTPError as exc:
            raise TransportFailure(url, str(exc), status_code=resp.status_code) from exc

        try:
            return resp.json()
        except ValueError as exc:
            raise TransportFailure(
                url, "response body is not JSON", status_code=resp.status_code
            ) from exc

    def entity_url(self, entity_type: str, entity_id: str | int) -> str:
        return f"{self.api_base}/{entity_type}/{entity_id}"

    def fetch_entity_by_id(self, entity_type: str, entity_id: str | int) -> dict[str, Any]:
        """Return one entity, from the cache when possible.

        Each ``(entity_type, entity_id)`` pair hits the network at most once
        for the lifetime of the cache.
        """
        key = self.entity_url(entity_type, entity_id)
        cached = self.cache.get(key)
        if cached is not None:
            return cached  # type: ignore[no-any-return]

        data = self.fetch_json(key)
        try:
            envelope = EntityEnvelope.model_validate(data)
        except ValidationError as exc:
            raise TransportFailure(key, f"unexpected response shape: {exc}") from exc
        if not envelope.results:
            raise EntityNotFound(entity_type, entity_id)

        entity: dict[str, Any] = envelope.results[0]
        try:
            self.cache.put(key, entity)
        except StorageFailure:
            logger.exception("Could not cache %s", key)
        return entity

    def get_taxon(self, taxon_id: str | int) -> dict[str, Any]:
        return self.fetch_entity_by_id(TAXA, taxon_id)

    def get_place(self, place_id: str | int) -> dict[str, Any]:
        return self.fetch_entity_by_id(PLACES, place_id)

    def get_project(self, project_id: str | int) -> dict[str, Any]:
        return self.fetch_entity_by_id(PROJECTS, project_id)

    def get_user(self, user_id: str | int) -> dict[str, Any]:
        return self.fetch_entity_by_id(USERS, user_id)

    def autocomplete(self, kind: str, query: str) -> dict[str, int]:
        """GET /{kind}/autocomplete: map display label to entity id."""
        try:
            label = AUTOCOMPLETE_LABELS[kind]
        except KeyError:
            msg = f"No autocomplete for {kind!r}; expected one of {sorted(AUTOCOMPLETE_LABELS)}"
            raise ValueError(msg) from None

        data = self.fetch_json(f"{self.api_base}/{kind}/autocomplete", {"q": query})
        results: list[dict[str, Any]] = data.get("results", [])
        return {label(r): r["id"] for r in results}
