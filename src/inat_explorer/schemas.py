"""
Domain models for inat-explorer.

Pydantic models for iNaturalist API payloads and for the retrieval pipeline.
Upstream JSON is validated at the boundary (``PagedEnvelope``,
``EntityEnvelope``); results handed back to callers stay as the raw dicts the
API returned so they can be cached verbatim, and can be lifted into
``TaxonResult`` / ``Observation`` when typed access is wanted.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from enum import StrEnum
from typing import Any
from urllib.parse import parse_qsl, urlsplit, urlunsplit

from pydantic import BaseModel, ConfigDict, Field, model_validator

from inat_explorer.services.http import canonical_url

logger = logging.getLogger(__name__)

PAGE_PARAM = "page"

# =============================================================================
# Cache
# =============================================================================


class CacheEntry(BaseModel):
    """One stored value plus its bookkeeping."""

    key: str
    stored_at: datetime
    expires_at: datetime | None = None
    value: Any = None


# =============================================================================
# Taxonomy
# =============================================================================

INFRASPECIFIC_MARKERS = {"subspecies": "subsp.", "variety": "var."}


class Taxon(BaseModel):
    """A node in the iNaturalist taxonomy."""

    model_config = ConfigDict(extra="allow")

    id: int
    parent_id: int | None = None
    name: str = ""
    preferred_common_name: str | None = None
    rank: str = ""
    rank_level: float = 0
    ancestor_ids: list[int] = Field(default_factory=list)

    @property
    def display_name(self) -> str:
        """Scientific name, with ``subsp.``/``var.`` inserted for infraspecific ranks."""
        marker = INFRASPECIFIC_MARKERS.get(self.rank)
        if marker is None:
            return self.name
        parts = self.name.split(" ")
        parts.insert(2, marker)
        return " ".join(parts)

    def form_name(self, add_common_name: bool = True) -> str:
        """Name as shown in search forms, e.g. ``Genus Bromus (Brome Grasses)``."""
        common = ""
        if add_common_name and self.preferred_common_name:
            common = f" ({self.preferred_common_name})"
        if self.rank_level > 10:
            rank = self.rank[:1].upper() + self.rank[1:]
            return f"{rank} {self.name}{common}"
        return self.display_name + common


class TaxonResult(BaseModel):
    """One row of ``/observations/species_counts``."""

    model_config = ConfigDict(extra="allow")

    count: int = 0
    taxon: Taxon


# =============================================================================
# Observations
# =============================================================================

OBSCURED_GEOPRIVACY = {"obscured", "private"}
OPEN_GEOPRIVACY = {None, "open"}


class ObservationUser(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: int
    login: str = ""
    name: str | None = None


class Observation(BaseModel):
    """A single iNaturalist observation."""

    model_config = ConfigDict(extra="allow")

    id: int
    taxon: Taxon | None = None
    quality_grade: str = "casual"
    geoprivacy: str | None = None
    taxon_geoprivacy: str | None = None
    location: str | None = None
    private_location: str | None = None
    place_guess: str | None = None
    private_place_guess: str | None = None
    user: ObservationUser
    observed_on: date | None = None

    def _observation_obscured(self) -> bool:
        if self.geoprivacy in OPEN_GEOPRIVACY:
            return False
        if self.geoprivacy in OBSCURED_GEOPRIVACY:
            return True
        logger.warning("Observation %s has unknown geoprivacy %r", self.id, self.geoprivacy)
        return False

    def _taxon_obscured(self) -> bool:
        if self.taxon_geoprivacy in OPEN_GEOPRIVACY:
            return False
        if self.taxon_geoprivacy == "obscured":
            return True
        logger.warning(
            "Observation %s has unknown taxon_geoprivacy %r", self.id, self.taxon_geoprivacy
        )
        return False

    @property
    def coords_are_public(self) -> bool:
        return not self._observation_obscured() and not self._taxon_obscured()

    @property
    def is_obscured(self) -> bool:
        """True if coordinates are obscured and we can't see the private location."""
        if self.coords_are_public:
            return False
        return not self.private_location

    @property
    def coord_type(self) -> str:
        if self.coords_are_public:
            return "public"
        return "obscured" if self.is_obscured else "trusted"

    @property
    def coordinates(self) -> tuple[float, float] | None:
        """(lat, lon), preferring the private location when visible."""
        raw = self.private_location or self.location
        if not raw:
            return None
        parts = raw.split(",")
        if len(parts) != 2:
            return None
        try:
            return float(parts[0]), float(parts[1])
        except ValueError:
            return None

    @property
    def place(self) -> str | None:
        return self.private_place_guess or self.place_guess

    @property
    def url(self) -> str:
        return f"https://www.inaturalist.org/observations/{self.id}"

    @property
    def user_display_name(self) -> str:
        return self.user.name or self.user.login


# =============================================================================
# API envelopes
# =============================================================================


class PagedEnvelope(BaseModel):
    """Response shape of paged endpoints."""

    total_results: int = Field(..., ge=0)
    page: int = 1
    per_page: int = Field(..., ge=0)
    results: list[Any] = Field(default_factory=list)


class EntityEnvelope(BaseModel):
    """Response shape of ``/{type}/{id}`` lookups."""

    results: list[Any] = Field(default_factory=list)


# =============================================================================
# Retrieval
# =============================================================================


class RetrievalRequest(BaseModel):
    """A paged query: endpoint URL, filter params, and a progress label.

    Any query string on ``url`` is folded into ``params``. ``page`` is owned
    by the retriever and is dropped from both.
    """

    url: str
    params: dict[str, Any] = Field(default_factory=dict)
    label: str = ""

    @model_validator(mode="before")
    @classmethod
    def _split_query(cls, data: Any) -> Any:
        if not isinstance(data, dict) or "url" not in data:
            return data
        parts = urlsplit(str(data["url"]))
        params: dict[str, Any] = dict(parse_qsl(parts.query, keep_blank_values=True))
        params.update(data.get("params") or {})
        params.pop(PAGE_PARAM, None)
        return {
            **data,
            "url": urlunsplit((parts.scheme, parts.netloc, parts.path, "", "")),
            "params": params,
        }

    @property
    def cache_key(self) -> str:
        """Full query URL without ``page``; one cache entry per query."""
        return canonical_url(self.url, self.params)

    def page_params(self, page: int) -> dict[str, Any]:
        return {**self.params, PAGE_PARAM: page}


class OutcomeStatus(StrEnum):
    COMPLETED = "completed"
    ABORTED = "aborted"


class AbortReason(StrEnum):
    USER_CANCELLED = "user-cancelled"
    RESULT_LIMIT_EXCEEDED = "result-limit-exceeded"
    PAGE_LIMIT_EXCEEDED = "page-limit-exceeded"


class RetrievalOutcome(BaseModel):
    """What a paged retrieval produced."""

    status: OutcomeStatus
    results: list[Any] | None = None
    reason: AbortReason | None = None
    total_results: int | None = None
    num_pages: int | None = None
    from_cache: bool = False

    @classmethod
    def completed(cls, results: list[Any], **kwargs: Any) -> RetrievalOutcome:
        return cls(status=OutcomeStatus.COMPLETED, results=results, **kwargs)

    @classmethod
    def aborted(cls, reason: AbortReason, **kwargs: Any) -> RetrievalOutcome:
        return cls(status=OutcomeStatus.ABORTED, reason=reason, **kwargs)

    @property
    def ok(self) -> bool:
        return self.status == OutcomeStatus.COMPLETED
