from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from .config import SourceConfig
from .models import TAGS
from .pipeline import ReconciliationError, TrackingLoader, run_reconciliation
from .query import (
    ALL_COLUMNS,
    ASCENDING,
    DESCENDING,
    ITEM_SEARCH_COLUMNS,
    PAGE_ORDER_HISTORY,
    PAGE_TRACKING,
    SORT_COLUMNS,
    ViewState,
)


def _add_source_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--primary", help="Path or URL of the primary order export.")
    parser.add_argument("--supplemental", help="Path or URL of the optional order detail export.")
    parser.add_argument("--items", help="Path or URL of the optional PO line item export.")
    parser.add_argument(
        "--page",
        choices=[PAGE_TRACKING, PAGE_ORDER_HISTORY, "all"],
        default="all",
        help="Open shipments, delivered shipments or everything.",
    )
    parser.add_argument("--search", default="", help="Case-insensitive text to look for.")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Shipment tracking reconciliation across order exports")
    subparsers = parser.add_subparsers(dest="command", required=True)

    load_parser = subparsers.add_parser(
        "load", help="Reconcile the exports and write the tracking table")
    _add_source_arguments(load_parser)
    load_parser.add_argument(
        "--status",
        action="append",
        choices=TAGS,
        default=[],
        help="Only keep records with this status. May be repeated.",
    )
    load_parser.add_argument("--sort", choices=sorted(SORT_COLUMNS), help="Column to sort by.")
    load_parser.add_argument(
        "--direction",
        choices=[ASCENDING, DESCENDING],
        default=ASCENDING,
        help="Sort direction when --sort is given.",
    )
    load_parser.add_argument(
        "--out-dir",
        type=Path,
        default=Path("out"),
        help="Directory that will receive the tracking artefacts.",
    )

    items_parser = subparsers.add_parser("items", help="Search PO line items")
    _add_source_arguments(items_parser)
    items_parser.add_argument(
        "--column",
        choices=[ALL_COLUMNS, *ITEM_SEARCH_COLUMNS],
        default=ALL_COLUMNS,
        help="Restrict the search to one item column.",
    )

    return parser


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _print_items(args: argparse.Namespace, config: SourceConfig) -> None:
    loader = TrackingLoader(config)
    state = (
        ViewState(records=tuple(loader.load_trackings()), items=loader.load_po_items())
        .with_page(args.page)
        .with_search(args.search)
        .with_item_search_column(args.column)
    )
    for item in state.visible_items():
        print("\t".join(str(value) for value in item.as_dict().values()))


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)

    config = SourceConfig.from_env().override(
        primary=args.primary,
        supplemental=args.supplemental,
        items=args.items,
    )

    try:
        if args.command == "load":
            run_reconciliation(
                config=config,
                out_dir=args.out_dir,
                statuses=args.status,
                search=args.search,
                sort_column=args.sort,
                direction=args.direction if args.sort else None,
                page=args.page,
            )
            return 0
        if args.command == "items":
            _print_items(args, config)
            return 0
    except ReconciliationError as exc:
        print(str(exc), file=sys.stderr)
        return 1

    parser.error("Unknown command")
    return 1


if __name__ == "__main__":  # pragma: no cover - exercised via CLI entry point
    raise SystemExit(main())
