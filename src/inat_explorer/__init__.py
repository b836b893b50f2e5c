"""inat-explorer - query iNaturalist and summarise taxa and observations.

Architecture::

    datasources/   iNaturalist API: rate-limited client, paged retriever, exclusions
    store.py       Persistent request cache (one JSON envelope per request URL)
    schemas.py     Pydantic models for API payloads and retrieval outcomes
    progress.py    Progress reporting for long retrievals
    context.py     Wiring: settings -> cache -> client -> retriever
    flows/         Prefect batch reports
    services/      Shared utilities (HTTP session, URL canonicalisation)

Data flow: query params -> retriever -> cache (hit) or client (miss) -> cache -> caller
"""

__version__ = "0.1.0"

from inat_explorer.config import Settings
from inat_explorer.context import AppContext, build_context

__all__ = ["AppContext", "Settings", "__version__", "build_context"]
