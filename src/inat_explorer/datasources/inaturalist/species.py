"""Species records and summaries built from species_counts rows."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from inat_explorer.schemas import TaxonResult

# =============================================================================
# Data Model
# =============================================================================


@dataclass
class SpeciesRecord:
    """A taxon with its observation count for a query."""

    taxon_id: int
    scientific_name: str
    common_name: str | None
    rank: str
    observation_count: int
    taxon_url: str = ""

    @property
    def display_name(self) -> str:
        """Human-friendly name: common name if available, else scientific."""
        if self.common_name:
            return f"{self.common_name} ({self.scientific_name})"
        return self.scientific_name


# =============================================================================
# Parsing
# =============================================================================


def parse_species_record(row: dict[str, Any] | TaxonResult) -> SpeciesRecord:
    """Parse a single species_counts row into a SpeciesRecord."""
    result = row if isinstance(row, TaxonResult) else TaxonResult.model_validate(row)
    taxon = result.taxon
    return SpeciesRecord(
        taxon_id=taxon.id,
        scientific_name=taxon.display_name or "Unknown",
        common_name=taxon.preferred_common_name or None,
        rank=taxon.rank or "species",
        observation_count=result.count,
        taxon_url=f"https://www.inaturalist.org/taxa/{taxon.id}",
    )


def parse_species_records(rows: list[dict[str, Any]]) -> list[SpeciesRecord]:
    return [parse_species_record(r) for r in rows]


# =============================================================================
# Summary
# =============================================================================


def summarize_species(species: list[SpeciesRecord], top_n: int = 10) -> dict[str, Any]:
    """
    Create a summary of species data for reporting.

    Returns dict with total counts, the top species, and a rank breakdown.
    """
    if not species:
        return {"total_species": 0, "total_observations": 0, "top_species": [], "by_rank": {}}

    by_rank: dict[str, int] = {}
    for s in species:
        by_rank[s.rank] = by_rank.get(s.rank, 0) + 1

    top = sorted(species, key=lambda s: s.observation_count, reverse=True)[:top_n]

    return {
        "total_species": len(species),
        "total_observations": sum(s.observation_count for s in species),
        "top_species": [
            {
                "name": s.display_name,
                "count": s.observation_count,
                "taxon_id": s.taxon_id,
            }
            for s in top
        ],
        "by_rank": by_rank,
    }
