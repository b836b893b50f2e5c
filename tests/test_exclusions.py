"""Tests for removing excluded taxa from species results."""

from __future__ import annotations

from typing import Any

import pytest
from conftest import taxon_row

from inat_explorer.datasources.inaturalist.exclusions import excluded_taxon_ids, remove_exclusions
from inat_explorer.schemas import TaxonResult

# Real iNaturalist rows: ancestor_ids for species_counts include the taxon itself.
BROMUS_ANCESTORS = [48460, 47126, 211194, 47125, 47163, 47162, 47434, 514989, 602023]

RES_BROMUS: dict[str, Any] = {
    "count": 0,
    "taxon": {
        "name": "Bromus",
        "id": 52701,
        "rank": "genus",
        "rank_level": 20,
        "ancestor_ids": [*BROMUS_ANCESTORS, 52701],
    },
}

RES_BROMUS_DIANDRUS: dict[str, Any] = {
    "count": 0,
    "taxon": {
        "name": "Bromus diandrus",
        "id": "52702",  # ids sometimes arrive as strings
        "rank": "species",
        "rank_level": 10,
        "ancestor_ids": [*BROMUS_ANCESTORS, 52701, 1089683, 52702],
    },
}

RES_POA: dict[str, Any] = {
    "count": 0,
    "taxon": {
        "name": "Poa",
        "id": 51432,
        "rank": "genus",
        "rank_level": 20,
        "ancestor_ids": [*BROMUS_ANCESTORS[:-1], 51432],
    },
}


def ids(rows: list[Any]) -> list[int]:
    return [int(r["taxon"]["id"]) if isinstance(r, dict) else r.taxon.id for r in rows]


class TestRemoveExclusions:
    """Default mode: drop excluded taxa and everything beneath them."""

    def test_empty_exclude_is_identity(self) -> None:
        include = [taxon_row(1), taxon_row(2, [1]), taxon_row(3)]
        assert remove_exclusions(include, []) == include

    def test_empty_include(self) -> None:
        assert remove_exclusions([], [taxon_row(1)]) == []

    def test_same_taxon_removed(self) -> None:
        assert remove_exclusions([RES_BROMUS_DIANDRUS], [RES_BROMUS_DIANDRUS]) == []

    def test_descendant_removed(self) -> None:
        assert remove_exclusions([RES_BROMUS_DIANDRUS], [RES_BROMUS]) == []

    def test_ancestor_kept(self) -> None:
        assert remove_exclusions([RES_BROMUS], [RES_BROMUS_DIANDRUS]) == [RES_BROMUS]

    def test_sibling_kept(self) -> None:
        assert remove_exclusions([RES_POA, RES_BROMUS], [RES_BROMUS]) == [RES_POA]

    def test_deep_descendant_removed(self) -> None:
        include = [taxon_row(5, [1, 2, 3, 4])]
        assert remove_exclusions(include, [taxon_row(2, [1])]) == []

    def test_parent_child_scenario(self) -> None:
        include = [taxon_row(1, []), taxon_row(2, [1])]
        exclude = [taxon_row(2, [1])]
        assert ids(remove_exclusions(include, exclude)) == [1]

    def test_leaf_exclude_without_include_counterpart(self) -> None:
        """Excluding a taxon that isn't in the include set removes nothing else."""
        include = [taxon_row(1, []), taxon_row(3, [1])]
        exclude = [taxon_row(2, [1])]
        assert ids(remove_exclusions(include, exclude)) == [1, 3]

    def test_order_preserved(self) -> None:
        include = [taxon_row(i, [100]) for i in (9, 3, 7, 1, 5)]
        exclude = [taxon_row(3, [100]), taxon_row(1, [100])]
        assert ids(remove_exclusions(include, exclude)) == [9, 7, 5]

    def test_duplicates_not_collapsed(self) -> None:
        include = [taxon_row(4), taxon_row(4)]
        assert ids(remove_exclusions(include, [taxon_row(5)])) == [4, 4]

    def test_returns_same_objects(self) -> None:
        row = taxon_row(1)
        assert remove_exclusions([row], [taxon_row(2)])[0] is row

    def test_accepts_models(self) -> None:
        include = [TaxonResult.model_validate(r) for r in (RES_POA, RES_BROMUS_DIANDRUS)]
        exclude = [TaxonResult.model_validate(RES_BROMUS)]
        result = remove_exclusions(include, exclude)
        assert [r.taxon.id for r in result] == [51432]

    def test_missing_ancestor_ids(self) -> None:
        include = [{"taxon": {"id": 1}}, {"taxon": {"id": 2, "ancestor_ids": None}}]
        assert ids(remove_exclusions(include, [{"taxon": {"id": 2}}])) == [1]


class TestExcludeAncestors:
    """Ancestor mode: drop excluded taxa and their ancestors."""

    def test_same_taxon_removed(self) -> None:
        result = remove_exclusions(
            [RES_BROMUS_DIANDRUS], [RES_BROMUS_DIANDRUS], exclude_ancestors=True
        )
        assert result == []

    def test_genus_removed_by_species(self) -> None:
        result = remove_exclusions([RES_BROMUS], [RES_BROMUS_DIANDRUS], exclude_ancestors=True)
        assert result == []

    def test_descendant_kept(self) -> None:
        result = remove_exclusions([RES_BROMUS_DIANDRUS], [RES_BROMUS], exclude_ancestors=True)
        assert result == [RES_BROMUS_DIANDRUS]

    def test_parent_child_scenario(self) -> None:
        include = [taxon_row(1, []), taxon_row(2, [1])]
        result = remove_exclusions(include, [taxon_row(2, [1])], exclude_ancestors=True)
        assert result == []

    def test_sibling_kept(self) -> None:
        result = remove_exclusions([RES_POA], [RES_BROMUS_DIANDRUS], exclude_ancestors=True)
        assert result == [RES_POA]


class TestExcludedTaxonIds:
    def test_own_ids_only_by_default(self) -> None:
        assert excluded_taxon_ids([RES_BROMUS_DIANDRUS]) == {52702}

    def test_ancestor_walk(self) -> None:
        assert excluded_taxon_ids([RES_BROMUS_DIANDRUS], exclude_ancestors=True) == {
            *BROMUS_ANCESTORS,
            52701,
            1089683,
            52702,
        }

    @pytest.mark.parametrize("order", [(0, 1), (1, 0)])
    def test_walk_order_independent(self, order: tuple[int, int]) -> None:
        entries = [RES_BROMUS, RES_BROMUS_DIANDRUS]
        forward = excluded_taxon_ids([entries[i] for i in order], exclude_ancestors=True)
        assert forward == excluded_taxon_ids(entries, exclude_ancestors=True)

    def test_walk_stops_at_known_ancestor(self) -> None:
        """Once an excluded ancestor is reached, nothing above it is re-added."""

        class CountingList(list):  # type: ignore[type-arg]
            reads = 0

            def __reversed__(self):  # type: ignore[no-untyped-def]
                for item in super().__reversed__():
                    CountingList.reads += 1
                    yield item

        first = {"taxon": {"id": 3, "ancestor_ids": [1, 2]}}
        second = TaxonResult.model_validate({"taxon": {"id": 4, "ancestor_ids": [1, 2]}})
        second.taxon.ancestor_ids = CountingList([1, 2])
        excluded = excluded_taxon_ids([first, second], exclude_ancestors=True)

        assert excluded == {1, 2, 3, 4}
        assert CountingList.reads == 1

    def test_entry_id_does_not_stop_walk(self) -> None:
        """An id excluded only as an entry may still have unexcluded ancestors."""
        exclude = [taxon_row(2, []), taxon_row(3, [1, 2])]
        assert excluded_taxon_ids(exclude, exclude_ancestors=True) == {1, 2, 3}
        assert remove_exclusions([taxon_row(1)], exclude, exclude_ancestors=True) == []

    def test_entry_order_does_not_matter(self) -> None:
        exclude = [taxon_row(3, [1, 2]), taxon_row(2, [])]
        assert excluded_taxon_ids(exclude, exclude_ancestors=True) == {1, 2, 3}
