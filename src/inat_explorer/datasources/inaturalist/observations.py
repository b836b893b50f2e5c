"""Observation parsing and summaries.

``summarize_observations`` gives whole-set counts. ``summarize_taxa`` gives
one row per observed taxon, plus a "branch" row for every parent taxon with
at least two observed members (itself included), totalling the whole
subtree beneath it.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field, replace
from functools import cmp_to_key
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from inat_explorer.schemas import Observation, Taxon

if TYPE_CHECKING:
    from inat_explorer.datasources.inaturalist.client import INatClient

logger = logging.getLogger(__name__)


def parse_observations(rows: list[dict[str, Any]]) -> list[Observation]:
    """Validate raw observation dicts; rows that don't parse are skipped and logged."""
    observations: list[Observation] = []
    for row in rows:
        try:
            observations.append(Observation.model_validate(row))
        except ValidationError as exc:
            logger.warning("Skipping observation %s: %s", row.get("id"), exc)
    return observations


def summarize_observations(observations: list[Observation]) -> dict[str, Any]:
    """
    Count observations by quality grade, coordinate visibility, and observer.

    ``coord_types`` uses the same categories as ``Observation.coord_type``:
    public, obscured (location hidden from us), trusted (hidden, but we can
    see the private location).
    """
    quality = Counter(o.quality_grade for o in observations)
    coord_types = Counter(o.coord_type for o in observations)
    observers = Counter(o.user_display_name for o in observations)
    taxa = {o.taxon.id for o in observations if o.taxon is not None}
    dates = sorted(o.observed_on for o in observations if o.observed_on is not None)

    return {
        "total_observations": len(observations),
        "total_taxa": len(taxa),
        "total_observers": len(observers),
        "quality_grades": dict(quality),
        "coord_types": dict(coord_types),
        "top_observers": observers.most_common(10),
        "first_observed": dates[0].isoformat() if dates else None,
        "last_observed": dates[-1].isoformat() if dates else None,
    }


# =============================================================================
# Per-taxon summary
# =============================================================================


@dataclass
class TaxonSummary:
    """Observation counts for one taxon, or (``is_branch``) for a taxon and everything below it."""

    taxon_id: int
    parent_id: int | None
    name: str
    display_name: str
    rank: str
    ancestor_ids: list[int] = field(default_factory=list)
    is_branch: bool = False
    count: int = 0
    count_research_grade: int = 0
    count_obscured: int = 0
    count_public: int = 0

    @classmethod
    def for_taxon(cls, taxon: Taxon, is_branch: bool = False) -> TaxonSummary:
        return cls(
            taxon_id=taxon.id,
            parent_id=_parent_id(taxon),
            name=taxon.display_name,
            display_name=taxon.form_name(add_common_name=False),
            rank=taxon.rank,
            ancestor_ids=list(taxon.ancestor_ids),
            is_branch=is_branch,
        )

    def add_observation(self, obs: Observation) -> None:
        self.count += 1
        if obs.quality_grade == "research":
            self.count_research_grade += 1
        if obs.is_obscured:
            self.count_obscured += 1
        if obs.coords_are_public:
            self.count_public += 1

    def add_counts(self, other: TaxonSummary) -> None:
        self.count += other.count
        self.count_research_grade += other.count_research_grade
        self.count_obscured += other.count_obscured
        self.count_public += other.count_public


def _parent_id(taxon: Taxon) -> int | None:
    if taxon.parent_id is not None:
        return taxon.parent_id
    # Fall back to the ancestor chain, which may or may not end with the taxon itself.
    ancestors = [a for a in taxon.ancestor_ids if a != taxon.id]
    return ancestors[-1] if ancestors else None


def _add_subtree(
    branch: TaxonSummary,
    children: list[TaxonSummary],
    children_of: dict[int, list[TaxonSummary]],
) -> None:
    for child in children:
        branch.add_counts(child)
        _add_subtree(branch, children_of.get(child.taxon_id, []), children_of)


def _compare_names(a: str, b: str) -> int:
    return (a > b) - (a < b)


def _child_toward(summary: TaxonSummary, ancestor_id: int) -> int:
    """The taxon directly below ``ancestor_id`` on the path down to ``summary``."""
    index = summary.ancestor_ids.index(ancestor_id) + 1
    if index < len(summary.ancestor_ids):
        return summary.ancestor_ids[index]
    return summary.taxon_id


def _tree_order(a: TaxonSummary, b: TaxonSummary) -> int:
    """Parents before descendants, branch rows before their taxon, siblings by name."""
    if a.taxon_id == b.taxon_id:
        if a.is_branch == b.is_branch:
            return 0
        return -1 if a.is_branch else 1
    if a.parent_id == b.parent_id:
        return _compare_names(a.name, b.name)
    if a.taxon_id in b.ancestor_ids:
        return -1
    if b.taxon_id in a.ancestor_ids:
        return 1

    common = next((t for t in reversed(a.ancestor_ids) if t in b.ancestor_ids), None)
    if common is None:
        return _compare_names(a.name, b.name)
    return _child_toward(a, common) - _child_toward(b, common)


def summarize_taxa(observations: list[Observation], client: INatClient) -> list[TaxonSummary]:
    """
    Summarise observations per taxon, adding branch totals.

    Every parent with at least two observed members (counting the parent
    itself) gets a branch row named "<parent> branch" totalling its whole
    subtree. Parents that weren't observed are looked up with
    ``client.get_taxon``. Observations without a taxon are ignored.

    Returns:
        Summaries in tree order: ancestors first, a branch row just before
        its own taxon's row, siblings alphabetically.
    """
    summaries: dict[int, TaxonSummary] = {}
    for obs in observations:
        if obs.taxon is None:
            continue
        summary = summaries.get(obs.taxon.id)
        if summary is None:
            summary = summaries[obs.taxon.id] = TaxonSummary.for_taxon(obs.taxon)
        summary.add_observation(obs)

    children_of: dict[int, list[TaxonSummary]] = {}
    for summary in summaries.values():
        if summary.parent_id:
            children_of.setdefault(summary.parent_id, []).append(summary)

    rows = list(summaries.values())
    for parent_id, children in children_of.items():
        parent = summaries.get(parent_id)
        if len(children) + (1 if parent is not None else 0) < 2:
            continue
        if parent is None:
            taxon = Taxon.model_validate(client.get_taxon(parent_id))
            branch = TaxonSummary.for_taxon(taxon, is_branch=True)
        else:
            branch = replace(parent, is_branch=True, ancestor_ids=list(parent.ancestor_ids))
        branch.display_name += " branch"
        _add_subtree(branch, children, children_of)
        rows.append(branch)

    return sorted(rows, key=cmp_to_key(_tree_order))
