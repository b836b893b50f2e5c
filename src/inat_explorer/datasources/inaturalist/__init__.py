"""iNaturalist data source.

Public API:
  - client: INatClient (rate-limited, cancellable, cached entity lookups)
  - retriever: PagedRetriever (bounded, cached multi-page retrieval)
  - exclusions: remove_exclusions
  - queries: request builders for species_counts / observations / project members,
    describe_filter
  - species, observations: parsing and summaries, per-taxon branch summaries
"""

from inat_explorer.datasources.inaturalist.client import API_BASE, INatClient
from inat_explorer.datasources.inaturalist.exclusions import excluded_taxon_ids, remove_exclusions
from inat_explorer.datasources.inaturalist.observations import (
    TaxonSummary,
    parse_observations,
    summarize_observations,
    summarize_taxa,
)
from inat_explorer.datasources.inaturalist.queries import (
    describe_filter,
    observations_request,
    parse_filter_args,
    project_members_request,
    species_counts_request,
)
from inat_explorer.datasources.inaturalist.retriever import MAX_PAGES, MAX_RESULTS, PagedRetriever
from inat_explorer.datasources.inaturalist.species import (
    SpeciesRecord,
    parse_species_records,
    summarize_species,
)

__all__ = [
    "API_BASE",
    "MAX_PAGES",
    "MAX_RESULTS",
    "INatClient",
    "PagedRetriever",
    "SpeciesRecord",
    "TaxonSummary",
    "describe_filter",
    "excluded_taxon_ids",
    "observations_request",
    "parse_filter_args",
    "parse_observations",
    "parse_species_records",
    "project_members_request",
    "remove_exclusions",
    "species_counts_request",
    "summarize_observations",
    "summarize_species",
    "summarize_taxa",
]
