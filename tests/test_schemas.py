"""Tests for domain models."""

from __future__ import annotations

import logging
from typing import Any

import pytest
from pydantic import ValidationError

from inat_explorer.schemas import (
    AbortReason,
    Observation,
    OutcomeStatus,
    PagedEnvelope,
    RetrievalOutcome,
    RetrievalRequest,
    Taxon,
)

BASE = "https://api.inaturalist.org/v1"


def make_observation(**overrides: Any) -> Observation:
    data: dict[str, Any] = {
        "id": 123,
        "user": {"id": 1, "login": "mothwatcher"},
        "location": "45.5,-122.6",
        "place_guess": "Portland, OR",
    }
    data.update(overrides)
    return Observation.model_validate(data)


class TestTaxonNames:
    def test_species_name_unchanged(self) -> None:
        taxon = Taxon(id=1, name="Vanessa cardui", rank="species", rank_level=10)
        assert taxon.display_name == "Vanessa cardui"

    def test_subspecies_marker(self) -> None:
        taxon = Taxon(id=1, name="Papilio machaon oregonius", rank="subspecies", rank_level=5)
        assert taxon.display_name == "Papilio machaon subsp. oregonius"

    def test_variety_marker(self) -> None:
        taxon = Taxon(id=1, name="Bromus carinatus marginatus", rank="variety", rank_level=5)
        assert taxon.display_name == "Bromus carinatus var. marginatus"

    def test_form_name_higher_rank(self) -> None:
        taxon = Taxon(
            id=52701,
            name="Bromus",
            rank="genus",
            rank_level=20,
            preferred_common_name="Brome Grasses",
        )
        assert taxon.form_name() == "Genus Bromus (Brome Grasses)"
        assert taxon.form_name(add_common_name=False) == "Genus Bromus"

    def test_form_name_species(self) -> None:
        taxon = Taxon(
            id=48662,
            name="Danaus plexippus",
            rank="species",
            rank_level=10,
            preferred_common_name="Monarch",
        )
        assert taxon.form_name() == "Danaus plexippus (Monarch)"

    def test_extra_fields_kept(self) -> None:
        taxon = Taxon.model_validate({"id": 1, "iconic_taxon_name": "Insecta"})
        assert taxon.model_dump()["iconic_taxon_name"] == "Insecta"

    def test_string_ids_coerced(self) -> None:
        taxon = Taxon.model_validate({"id": "7", "ancestor_ids": ["1", "2"]})
        assert taxon.id == 7
        assert taxon.ancestor_ids == [1, 2]


class TestObservationGeoprivacy:
    def test_open_is_public(self) -> None:
        obs = make_observation()
        assert obs.coords_are_public
        assert not obs.is_obscured
        assert obs.coord_type == "public"

    def test_obscured_without_private_location(self) -> None:
        obs = make_observation(geoprivacy="obscured")
        assert obs.is_obscured
        assert obs.coord_type == "obscured"

    def test_obscured_taxon(self) -> None:
        obs = make_observation(taxon_geoprivacy="obscured")
        assert not obs.coords_are_public
        assert obs.coord_type == "obscured"

    def test_trusted_when_private_location_visible(self) -> None:
        obs = make_observation(geoprivacy="private", private_location="45.51,-122.61")
        assert not obs.is_obscured
        assert obs.coord_type == "trusted"
        assert obs.coordinates == (45.51, -122.61)

    def test_unknown_geoprivacy_warns(self, caplog: pytest.LogCaptureFixture) -> None:
        obs = make_observation(geoprivacy="mystery")
        with caplog.at_level(logging.WARNING, logger="inat_explorer.schemas"):
            assert obs.coords_are_public
        assert "mystery" in caplog.text


class TestObservationFields:
    def test_coordinates(self) -> None:
        assert make_observation().coordinates == (45.5, -122.6)

    @pytest.mark.parametrize("location", [None, "", "45.5", "north,west"])
    def test_bad_coordinates(self, location: str | None) -> None:
        assert make_observation(location=location).coordinates is None

    def test_place_prefers_private(self) -> None:
        obs = make_observation(private_place_guess="123 Elm St, Portland")
        assert obs.place == "123 Elm St, Portland"
        assert make_observation().place == "Portland, OR"

    def test_url(self) -> None:
        assert make_observation().url == "https://www.inaturalist.org/observations/123"

    def test_user_display_name(self) -> None:
        assert make_observation().user_display_name == "mothwatcher"
        obs = make_observation(user={"id": 1, "login": "mw", "name": "Moth Watcher"})
        assert obs.user_display_name == "Moth Watcher"

    def test_user_required(self) -> None:
        with pytest.raises(ValidationError):
            Observation.model_validate({"id": 1})


class TestPagedEnvelope:
    def test_valid(self) -> None:
        env = PagedEnvelope.model_validate(
            {"total_results": 2, "page": 1, "per_page": 500, "results": [{}, {}]}
        )
        assert env.total_results == 2
        assert len(env.results) == 2

    def test_missing_total(self) -> None:
        with pytest.raises(ValidationError):
            PagedEnvelope.model_validate({"per_page": 500, "results": []})

    def test_negative_total(self) -> None:
        with pytest.raises(ValidationError):
            PagedEnvelope.model_validate({"total_results": -1, "per_page": 500})


class TestRetrievalRequest:
    def test_query_string_folded_into_params(self) -> None:
        req = RetrievalRequest(url=f"{BASE}/observations?taxon_id=47224&page=3")
        assert req.url == f"{BASE}/observations"
        assert req.params == {"taxon_id": "47224"}

    def test_explicit_params_override_query(self) -> None:
        req = RetrievalRequest(url=f"{BASE}/observations?taxon_id=1", params={"taxon_id": 2})
        assert req.params == {"taxon_id": 2}

    def test_page_param_dropped(self) -> None:
        req = RetrievalRequest(url=f"{BASE}/observations", params={"page": 4, "per_page": 500})
        assert req.params == {"per_page": 500}
        assert req.cache_key == f"{BASE}/observations?per_page=500"

    def test_page_params(self) -> None:
        req = RetrievalRequest(url=f"{BASE}/observations", params={"per_page": 500})
        assert req.page_params(2) == {"per_page": 500, "page": 2}
        assert req.params == {"per_page": 500}


class TestRetrievalOutcome:
    def test_completed(self) -> None:
        outcome = RetrievalOutcome.completed([1, 2], total_results=2, num_pages=1)
        assert outcome.ok
        assert outcome.status is OutcomeStatus.COMPLETED
        assert outcome.reason is None

    def test_aborted(self) -> None:
        outcome = RetrievalOutcome.aborted(AbortReason.USER_CANCELLED)
        assert not outcome.ok
        assert outcome.results is None
        assert outcome.reason == "user-cancelled"
