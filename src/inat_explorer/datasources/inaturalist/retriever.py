"""
Bounded multi-page retrieval.

``PagedRetriever`` pulls every page behind one query, refusing queries that
would exceed ``max_results`` or ``max_pages``, and caches the assembled list
under the query's canonical URL (``page`` excluded). A cached query is served
without touching the network.

Pages are fetched one after another through the shared ``INatClient``, so
the client's rate limit paces the whole loop.
"""

from __future__ import annotations

import logging
import math
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from inat_explorer.datasources.inaturalist import queries
from inat_explorer.datasources.inaturalist.exclusions import remove_exclusions
from inat_explorer.errors import (
    PageLimitExceeded,
    QueryCancelled,
    ResultLimitExceeded,
    StorageFailure,
    TransportFailure,
)
from inat_explorer.progress import SilentProgress
from inat_explorer.schemas import AbortReason, PagedEnvelope, RetrievalOutcome, RetrievalRequest

if TYPE_CHECKING:
    from inat_explorer.datasources.inaturalist.client import INatClient
    from inat_explorer.progress import ProgressReporter
    from inat_explorer.store import RequestCache

logger = logging.getLogger(__name__)

MAX_RESULTS = 10_000  # API hard ceiling per query
MAX_PAGES = 50


@dataclass
class _KeyLock:
    lock: threading.Lock = field(default_factory=threading.Lock)
    users: int = 0


class PagedRetriever:
    """Fetches, caps, and caches paged API collections."""

    def __init__(
        self,
        client: INatClient,
        cache: RequestCache,
        progress: ProgressReporter | None = None,
        *,
        max_results: int = MAX_RESULTS,
        max_pages: int = MAX_PAGES,
    ) -> None:
        self.client = client
        self.cache = cache
        self.progress: ProgressReporter = progress if progress is not None else SilentProgress()
        self.max_results = max_results
        self.max_pages = max_pages
        self._locks_guard = threading.Lock()
        self._key_locks: dict[str, _KeyLock] = {}

    @contextmanager
    def _single_flight(self, key: str) -> Iterator[None]:
        """Hold the lock for ``key``; the entry is dropped once nobody holds or waits on it."""
        with self._locks_guard:
            key_lock = self._key_locks.get(key)
            if key_lock is None:
                key_lock = self._key_locks[key] = _KeyLock()
            key_lock.users += 1
        try:
            with key_lock.lock:
                yield
        finally:
            with self._locks_guard:
                key_lock.users -= 1
                if key_lock.users == 0:
                    del self._key_locks[key]

    # -----------------------------------------------------------------------
    # Core protocol
    # -----------------------------------------------------------------------

    def retrieve(self, request: RetrievalRequest) -> RetrievalOutcome:
        """Return every result behind ``request``, from cache or the API.

        Concurrent calls for the same query wait for the first one and are
        then served from the cache.
        """
        key = request.cache_key
        with self._single_flight(key):
            cached = self.cache.get(key)
            if cached is not None:
                logger.debug("Cache hit: %s", key)
                return RetrievalOutcome.completed(cached, from_cache=True)
            return self._retrieve_pages(request, key)

    def _fetch_page(self, request: RetrievalRequest, page: int) -> PagedEnvelope:
        data = self.client.fetch_json(request.url, request.page_params(page))
        try:
            return PagedEnvelope.model_validate(data)
        except ValidationError as exc:
            raise TransportFailure(request.cache_key, f"unexpected page shape: {exc}") from exc

    def _retrieve_pages(self, request: RetrievalRequest, key: str) -> RetrievalOutcome:
        progress = self.progress
        progress.set_label(request.label)
        progress.set_num_pages(0)
        progress.set_page(1)

        total_results: int | None = None
        try:
            progress.show()

            first = self._fetch_page(request, 1)
            total_results = first.total_results
            if total_results > self.max_results:
                raise ResultLimitExceeded(total_results, self.max_results)

            if total_results == 0:
                num_pages = 0
            elif first.per_page == 0:
                raise TransportFailure(key, f"per_page is 0 with {total_results} results")
            else:
                num_pages = math.ceil(total_results / first.per_page)
            if num_pages > self.max_pages:
                raise PageLimitExceeded(num_pages, self.max_pages)

            results: list[Any] = list(first.results)
            progress.set_num_pages(num_pages)
            for page in range(2, num_pages + 1):
                progress.set_page(page)
                results.extend(self._fetch_page(request, page).results)

            self._store(key, results)
            logger.info("Retrieved %d %s in %d pages", len(results), request.label, num_pages)
            return RetrievalOutcome.completed(
                results, total_results=total_results, num_pages=num_pages
            )
        except QueryCancelled:
            logger.info("Retrieval of %s cancelled", request.label or key)
            return RetrievalOutcome.aborted(AbortReason.USER_CANCELLED, total_results=total_results)
        except ResultLimitExceeded as exc:
            progress.modal_alert(str(exc))
            return RetrievalOutcome.aborted(
                AbortReason.RESULT_LIMIT_EXCEEDED, total_results=exc.found
            )
        except PageLimitExceeded as exc:
            progress.modal_alert(str(exc))
            return RetrievalOutcome.aborted(
                AbortReason.PAGE_LIMIT_EXCEEDED, total_results=total_results, num_pages=exc.found
            )
        finally:
            progress.hide()
            self.client.cancel(False)

    def _store(self, key: str, results: list[Any]) -> None:
        try:
            self.cache.put(key, results)
        except StorageFailure:
            # The data is already in hand; the caller still gets it.
            logger.exception("Could not cache results for %s", key)

    # -----------------------------------------------------------------------
    # Queries
    # -----------------------------------------------------------------------

    def get_species_data(
        self,
        include_params: dict[str, Any],
        exclude_params: dict[str, Any] | None = None,
        *,
        exclude_ancestors: bool = False,
    ) -> list[dict[str, Any]] | None:
        """
        Species counts for a filter, minus the taxa found by an optional second filter.

        Args:
            include_params: Filter for the species to list.
            exclude_params: Filter whose species are removed from the list.
            exclude_ancestors: See ``remove_exclusions``.

        Returns:
            species_counts rows, or None if either retrieval was aborted.
        """
        api_base = self.client.api_base
        include = self.retrieve(queries.species_counts_request(include_params, "species", api_base))
        if not include.ok:
            return None
        include_rows: list[dict[str, Any]] = include.results or []
        if exclude_params is None:
            return include_rows

        exclude = self.retrieve(
            queries.species_counts_request(exclude_params, "exclusions", api_base)
        )
        if not exclude.ok:
            return None
        return remove_exclusions(
            include_rows, exclude.results or [], exclude_ancestors=exclude_ancestors
        )

    def get_observation_data(
        self,
        params: dict[str, Any],
        where: Callable[[dict[str, Any]], bool] | None = None,
    ) -> list[dict[str, Any]] | None:
        """Observations matching ``params``, optionally narrowed by ``where``.

        ``where`` receives each raw observation; use it for boundary tests
        the API can't express. The cache always holds the unfiltered list.
        """
        outcome = self.retrieve(
            queries.observations_request(params, api_base=self.client.api_base)
        )
        if not outcome.ok:
            return None
        rows: list[dict[str, Any]] = outcome.results or []
        if where is None:
            return rows
        return [row for row in rows if where(row)]

    def get_project_members(self, project_id: str | int) -> list[dict[str, Any]] | None:
        outcome = self.retrieve(
            queries.project_members_request(project_id, api_base=self.client.api_base)
        )
        return outcome.results if outcome.ok else None
