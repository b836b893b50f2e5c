"""Remove excluded taxa from a species result set.

Given an "include" and an "exclude" species_counts result, drop every
include row whose taxon is excluded, or lies beneath an excluded taxon.

With ``exclude_ancestors=True`` the rule is turned around: the ancestors of
each excluded taxon are excluded too (but not its descendants). This answers
"which taxa here are not yet represented there": if a species was seen in
the exclude set, its genus and family rows in the include set are dropped.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, TypeVar

from inat_explorer.schemas import TaxonResult

ResultT = TypeVar("ResultT", TaxonResult, dict[str, Any])


def _taxon_ids(entry: TaxonResult | dict[str, Any]) -> tuple[int, list[int]]:
    """Return (taxon id, ancestor ids root→nearest) for a result row."""
    if isinstance(entry, TaxonResult):
        return entry.taxon.id, entry.taxon.ancestor_ids
    taxon = entry["taxon"]
    ancestors = taxon.get("ancestor_ids") or []
    return int(taxon["id"]), [int(a) for a in ancestors]


def excluded_taxon_ids(
    exclude: Sequence[TaxonResult | dict[str, Any]],
    *,
    exclude_ancestors: bool = False,
) -> set[int]:
    """Collect the taxon ids an exclude result set rules out."""
    excluded: set[int] = set()
    # Ids whose whole ancestor chain is already in ``excluded``.
    walked: set[int] = set()
    for entry in exclude:
        taxon_id, ancestors = _taxon_ids(entry)
        excluded.add(taxon_id)
        if not exclude_ancestors:
            continue
        # Nearest first. Stop at an ancestor a previous walk passed through;
        # an id that was only excluded as an entry itself doesn't count.
        for ancestor_id in reversed(ancestors):
            if ancestor_id in walked:
                break
            excluded.add(ancestor_id)
            walked.add(ancestor_id)
    return excluded


def _under_excluded(taxon_id: int, ancestors: list[int], excluded: set[int]) -> bool:
    if taxon_id in excluded:
        return True
    return any(ancestor_id in excluded for ancestor_id in reversed(ancestors))


def remove_exclusions(
    include: Sequence[ResultT],
    exclude: Sequence[TaxonResult | dict[str, Any]],
    *,
    exclude_ancestors: bool = False,
) -> list[ResultT]:
    """
    Filter ``include`` against ``exclude``.

    Args:
        include: species_counts rows (raw dicts or ``TaxonResult``).
        exclude: rows whose taxa should be removed.
        exclude_ancestors: Remove the excluded taxa's ancestors instead of
            their descendants.

    Returns:
        The surviving ``include`` rows, in their original order.
    """
    if not exclude:
        return list(include)

    excluded = excluded_taxon_ids(exclude, exclude_ancestors=exclude_ancestors)
    results: list[ResultT] = []
    for entry in include:
        taxon_id, ancestors = _taxon_ids(entry)
        if exclude_ancestors:
            dropped = taxon_id in excluded
        else:
            dropped = _under_excluded(taxon_id, ancestors, excluded)
        if not dropped:
            results.append(entry)
    return results
