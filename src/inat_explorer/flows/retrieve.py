"""
Prefect flows for batch species / observation reports.

Each flow retrieves through the request cache (so re-runs of the same query
are free), summarises the result, and writes a JSON report.

Run locally:
    python -m inat_explorer.flows.retrieve taxon_id=47224 place_id=10

Run with Prefect dashboard:
    prefect server start &
    python -m inat_explorer.flows.retrieve taxon_id=47224 place_id=10
"""

from __future__ import annotations

import json
import sys
from datetime import UTC, datetime
from dataclasses import asdict
from pathlib import Path
from typing import Any

from prefect import flow, task

from inat_explorer.context import build_context
from inat_explorer.datasources.inaturalist import (
    describe_filter,
    observations_request,
    parse_filter_args,
    parse_observations,
    parse_species_records,
    remove_exclusions,
    species_counts_request,
    summarize_observations,
    summarize_species,
    summarize_taxa,
)
from inat_explorer.progress import SilentProgress

SPECIES_REPORT_PATH = Path("data/reports/species.json")
OBSERVATIONS_REPORT_PATH = Path("data/reports/observations.json")


@task(name="apply-exclusions")
def apply_exclusions(
    include_rows: list[dict[str, Any]],
    exclude_rows: list[dict[str, Any]],
    exclude_ancestors: bool = False,
) -> list[dict[str, Any]]:
    """Drop excluded taxa from the include rows."""
    return remove_exclusions(include_rows, exclude_rows, exclude_ancestors=exclude_ancestors)


@task(name="summarize-species")
def summarize_species_rows(rows: list[dict[str, Any]], top_n: int = 10) -> dict[str, Any]:
    """Parse species_counts rows and summarise them."""
    return summarize_species(parse_species_records(rows), top_n=top_n)


@task(name="summarize-observations")
def summarize_observation_rows(rows: list[dict[str, Any]]) -> dict[str, Any]:
    """Parse observation rows and summarise them."""
    return summarize_observations(parse_observations(rows))


@task(name="save-report")
def save_report(report: dict[str, Any], path: Path) -> Path:
    """Write a report as JSON with a small metadata header."""
    path.parent.mkdir(parents=True, exist_ok=True)
    envelope = {
        "meta": {"generated_at": datetime.now(UTC).isoformat(), "source": "inaturalist.org"},
        "data": report,
    }
    with path.open("w") as f:
        json.dump(envelope, f, indent=2)
    return path


@flow(name="species-report", log_prints=True)
def species_report(
    include: dict[str, str],
    exclude: dict[str, str] | None = None,
    exclude_ancestors: bool = False,
    output: Path = SPECIES_REPORT_PATH,
) -> dict[str, Any]:
    """
    Summarise the species matching ``include``, minus those matching ``exclude``.

    Returns the report dict; ``status`` is ``aborted`` (with ``reason``) if
    either retrieval hit a ceiling or was cancelled.
    """
    ctx = build_context(progress=SilentProgress())
    api_base = ctx.client.api_base

    print(f"Retrieving species for {include}...")
    included = ctx.retriever.retrieve(species_counts_request(include, "species", api_base))
    if not included.ok:
        print(f"Species retrieval aborted: {included.reason}")
        return {"status": "aborted", "reason": str(included.reason)}
    rows: list[dict[str, Any]] = included.results or []

    if exclude:
        print(f"Retrieving exclusions for {exclude}...")
        excluded = ctx.retriever.retrieve(species_counts_request(exclude, "exclusions", api_base))
        if not excluded.ok:
            print(f"Exclusion retrieval aborted: {excluded.reason}")
            return {"status": "aborted", "reason": str(excluded.reason)}
        rows = apply_exclusions(rows, excluded.results or [], exclude_ancestors)

    description = describe_filter(ctx.client, include, exclude)
    print(description)
    report = {
        "status": "completed",
        "description": description,
        "include": include,
        "exclude": exclude,
        "summary": summarize_species_rows(rows),
    }
    report_path = save_report(report, output)
    print(f"Saved report for {len(rows)} taxa to {report_path}")
    return report


@flow(name="observations-report", log_prints=True)
def observations_report(
    params: dict[str, str],
    output: Path = OBSERVATIONS_REPORT_PATH,
) -> dict[str, Any]:
    """Summarise the observations matching ``params``."""
    ctx = build_context(progress=SilentProgress())

    print(f"Retrieving observations for {params}...")
    outcome = ctx.retriever.retrieve(observations_request(params, api_base=ctx.client.api_base))
    if not outcome.ok:
        print(f"Observation retrieval aborted: {outcome.reason}")
        return {"status": "aborted", "reason": str(outcome.reason)}

    rows: list[dict[str, Any]] = outcome.results or []
    report = {
        "status": "completed",
        "params": params,
        "summary": summarize_observation_rows(rows),
        "taxa": [asdict(s) for s in summarize_taxa(parse_observations(rows), ctx.client)],
    }
    report_path = save_report(report, output)
    print(f"Saved report for {len(rows)} observations to {report_path}")
    return report


if __name__ == "__main__":
    result = species_report(parse_filter_args(sys.argv[1:]))
    print(f"Flow complete: {result.get('status')}")
