"""Application wiring.

Build one ``AppContext`` at startup and pass it to whatever needs the cache,
client, or retriever. Nothing here is a module-level singleton.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

from inat_explorer.config import Settings, get_settings
from inat_explorer.datasources.inaturalist.client import INatClient
from inat_explorer.datasources.inaturalist.retriever import PagedRetriever
from inat_explorer.progress import ProgressReporter
from inat_explorer.services.http import build_retry, create_session
from inat_explorer.store import RequestCache


@dataclass
class AppContext:
    settings: Settings
    cache: RequestCache
    client: INatClient
    retriever: PagedRetriever


def build_context(
    settings: Settings | None = None,
    progress: ProgressReporter | None = None,
) -> AppContext:
    """Construct the cache, client and retriever described by ``settings``."""
    settings = settings or get_settings()
    ttl = (
        timedelta(hours=settings.cache_ttl_hours) if settings.cache_ttl_hours is not None else None
    )
    cache = RequestCache(settings.cache_dir, ttl=ttl)
    client = INatClient(
        cache,
        token=settings.api_token,
        api_base=settings.api_base,
        interval=settings.request_interval,
        session=create_session(
            retry=build_retry(settings.http_retries), timeout=settings.http_timeout
        ),
    )
    retriever = PagedRetriever(
        client,
        cache,
        progress,
        max_results=settings.max_results,
        max_pages=settings.max_pages,
    )
    return AppContext(settings=settings, cache=cache, client=client, retriever=retriever)
