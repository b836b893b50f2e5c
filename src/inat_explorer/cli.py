"""
Command-line interface for the application.

This module provides the main entry point for the CLI.
"""

from __future__ import annotations

import argparse
import json
import logging
import signal
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Any

from inat_explorer import __version__
from inat_explorer.config import configure_logging, get_settings
from inat_explorer.context import AppContext, build_context
from inat_explorer.datasources.inaturalist import (
    describe_filter,
    parse_filter_args,
    parse_observations,
    parse_species_records,
    summarize_observations,
    summarize_species,
    summarize_taxa,
)
from inat_explorer.datasources.inaturalist.client import AUTOCOMPLETE_LABELS
from inat_explorer.errors import InatExplorerError
from inat_explorer.progress import ConsoleProgress
from inat_explorer.schemas import Taxon

if TYPE_CHECKING:
    from types import FrameType

    from inat_explorer.datasources.inaturalist.client import INatClient

logger = logging.getLogger(__name__)


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="inat-explorer",
        description="Query iNaturalist observations and summarise taxa",
    )
    parser.add_argument(
        "-v",
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("info", help="Show application info")

    species_parser = subparsers.add_parser("species", help="List species matching a filter")
    species_parser.add_argument(
        "filters", nargs="*", metavar="NAME=VALUE", help="API filter, e.g. taxon_id=47224"
    )
    species_parser.add_argument(
        "-x",
        "--exclude",
        action="append",
        default=None,
        metavar="NAME=VALUE",
        help="Filter for species to remove from the result (repeatable)",
    )
    species_parser.add_argument(
        "--exclude-ancestors",
        action="store_true",
        help="Remove ancestors of excluded taxa instead of their descendants",
    )
    species_parser.add_argument("--top", type=int, default=10, help="Species to show (default: 10)")
    species_parser.add_argument("--json", action="store_true", help="Print raw rows as JSON")

    obs_parser = subparsers.add_parser("observations", help="Summarise observations")
    obs_parser.add_argument("filters", nargs="*", metavar="NAME=VALUE", help="API filter")
    obs_parser.add_argument("--json", action="store_true", help="Print raw rows as JSON")

    members_parser = subparsers.add_parser("members", help="List a project's members")
    members_parser.add_argument("project_id", help="Project id or slug")

    taxon_parser = subparsers.add_parser("taxon", help="Show one taxon")
    taxon_parser.add_argument("taxon_id", help="Taxon id")

    auto_parser = subparsers.add_parser("autocomplete", help="Look up ids by name")
    auto_parser.add_argument("kind", choices=sorted(AUTOCOMPLETE_LABELS))
    auto_parser.add_argument("query")

    report_parser = subparsers.add_parser("report", help="Run the species-report flow")
    report_parser.add_argument("filters", nargs="*", metavar="NAME=VALUE", help="API filter")
    report_parser.add_argument("-x", "--exclude", action="append", default=None, metavar="NAME=VALUE")
    report_parser.add_argument("--output", type=Path, default=None, help="Report path")

    cache_parser = subparsers.add_parser("cache", help="Inspect or clear the request cache")
    cache_sub = cache_parser.add_subparsers(dest="cache_command")
    cache_sub.add_parser("list", help="List cached keys")
    delete_parser = cache_sub.add_parser("delete", help="Delete one cached key")
    delete_parser.add_argument("key")
    cache_sub.add_parser("clear", help="Delete every cached entry")
    cache_sub.add_parser("clear-expired", help="Delete expired entries")

    return parser


@contextmanager
def cancel_on_interrupt(client: INatClient) -> Iterator[None]:
    """First Ctrl-C cancels the query cooperatively; a second one interrupts."""

    def _handler(_signum: int, _frame: FrameType | None) -> None:
        if client.cancel_requested:
            raise KeyboardInterrupt
        print("\nCancelling after the current request (Ctrl-C again to abort)...", file=sys.stderr)
        client.cancel(True)

    previous = signal.signal(signal.SIGINT, _handler)
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)


def _context() -> AppContext:
    return build_context(progress=ConsoleProgress())


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, default=str))


def cmd_info(_args: argparse.Namespace) -> int:
    """Handle the 'info' command."""
    settings = get_settings()
    print(f"Application: {settings.app_name}")
    print(f"Version: {__version__}")
    print(f"Environment: {settings.app_env}")
    print(f"API: {settings.api_base}")
    print(f"Cache: {settings.cache_dir}")
    print(f"Authenticated: {'yes' if settings.api_token else 'no'}")
    return 0


def cmd_species(args: argparse.Namespace) -> int:
    """Handle the 'species' command."""
    include = parse_filter_args(args.filters)
    exclude = parse_filter_args(args.exclude) if args.exclude else None
    ctx = _context()
    with cancel_on_interrupt(ctx.client):
        rows = ctx.retriever.get_species_data(
            include, exclude, exclude_ancestors=args.exclude_ancestors
        )
    if rows is None:
        print("No data retrieved.", file=sys.stderr)
        return 1

    if args.json:
        _print_json(rows)
        return 0

    with cancel_on_interrupt(ctx.client):
        description = describe_filter(ctx.client, include, exclude)
    print(description)
    summary = summarize_species(parse_species_records(rows), top_n=args.top)
    print(f"Species: {summary['total_species']}")
    print(f"Observations: {summary['total_observations']}")
    for entry in summary["top_species"]:
        print(f"  {entry['count']:>7}  {entry['name']}")
    return 0


def cmd_observations(args: argparse.Namespace) -> int:
    """Handle the 'observations' command."""
    ctx = _context()
    with cancel_on_interrupt(ctx.client):
        rows = ctx.retriever.get_observation_data(parse_filter_args(args.filters))
    if rows is None:
        print("No data retrieved.", file=sys.stderr)
        return 1

    if args.json:
        _print_json(rows)
        return 0

    observations = parse_observations(rows)
    summary = summarize_observations(observations)
    print(f"Observations: {summary['total_observations']}")
    print(f"Taxa: {summary['total_taxa']}")
    print(f"Observers: {summary['total_observers']}")
    print(f"Quality grades: {summary['quality_grades']}")
    print(f"Coordinates: {summary['coord_types']}")
    if summary["first_observed"]:
        print(f"Observed: {summary['first_observed']} to {summary['last_observed']}")

    with cancel_on_interrupt(ctx.client):
        taxa = summarize_taxa(observations, ctx.client)
    print("  count  research  obscured  public  taxon")
    for row in taxa:
        print(
            f"{row.count:>7}  {row.count_research_grade:>8}  {row.count_obscured:>8}  "
            f"{row.count_public:>6}  {row.display_name}"
        )
    return 0


def cmd_members(args: argparse.Namespace) -> int:
    """Handle the 'members' command."""
    ctx = _context()
    with cancel_on_interrupt(ctx.client):
        members = ctx.retriever.get_project_members(args.project_id)
    if members is None:
        print("No data retrieved.", file=sys.stderr)
        return 1
    for member in members:
        user = member.get("user", {})
        print(f"{user.get('login', '?')}\t{member.get('role') or 'member'}")
    return 0


def cmd_taxon(args: argparse.Namespace) -> int:
    """Handle the 'taxon' command."""
    ctx = _context()
    with cancel_on_interrupt(ctx.client):
        taxon = Taxon.model_validate(ctx.client.get_taxon(args.taxon_id))
    print(taxon.form_name())
    print(f"Id: {taxon.id}")
    print(f"Rank: {taxon.rank}")
    print(f"Ancestors: {', '.join(str(a) for a in taxon.ancestor_ids)}")
    return 0


def cmd_autocomplete(args: argparse.Namespace) -> int:
    """Handle the 'autocomplete' command."""
    ctx = _context()
    with cancel_on_interrupt(ctx.client):
        matches = ctx.client.autocomplete(args.kind, args.query)
    for label, entity_id in matches.items():
        print(f"{entity_id}\t{label}")
    return 0


def cmd_report(args: argparse.Namespace) -> int:
    """Handle the 'report' command: run the species-report flow."""
    from inat_explorer.flows.retrieve import SPECIES_REPORT_PATH, species_report

    include = parse_filter_args(args.filters)
    exclude = parse_filter_args(args.exclude) if args.exclude else None
    report = species_report(include, exclude, output=args.output or SPECIES_REPORT_PATH)
    return 0 if report.get("status") == "completed" else 1


def cmd_cache(args: argparse.Namespace) -> int:
    """Handle the 'cache' command."""
    cache = build_context().cache
    if args.cache_command == "list":
        for key in cache.list_keys():
            entry = cache.get_entry(key)
            stored = entry.stored_at.isoformat(timespec="seconds") if entry else "?"
            print(f"{stored}\t{key}")
    elif args.cache_command == "delete":
        cache.delete(args.key)
    elif args.cache_command == "clear":
        cache.clear()
        print("Cache cleared.")
    elif args.cache_command == "clear-expired":
        removed = cache.clear_expired()
        print(f"Removed {removed} expired entries.")
    else:
        print("Usage: inat-explorer cache {list,delete,clear,clear-expired}", file=sys.stderr)
        return 1
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    settings = get_settings()
    configure_logging(logging.DEBUG if args.debug or settings.debug else settings.log_level)

    if args.command is None:
        parser.print_help()
        return 0

    commands = {
        "info": cmd_info,
        "species": cmd_species,
        "observations": cmd_observations,
        "members": cmd_members,
        "taxon": cmd_taxon,
        "autocomplete": cmd_autocomplete,
        "report": cmd_report,
        "cache": cmd_cache,
    }

    handler = commands.get(args.command)
    if handler is None:
        parser.print_help()
        return 1

    try:
        return handler(args)
    except (InatExplorerError, ValueError) as exc:
        logger.debug("Command %s failed", args.command, exc_info=True)
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
