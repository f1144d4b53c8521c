"""High-level orchestration for loading and reconciling the exports."""
from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Collection, List, Optional, Tuple

from .config import SourceConfig
from .items import group_items
from .matching import reconcile
from .models import ItemGroupMap, TrackingRecord
from .normalization import SourceError, load_table
from .query import SortState, ViewState
from .report import generate_markdown_summary, write_csv, write_json, write_markdown

LOGGER = logging.getLogger(__name__)


class ReconciliationError(RuntimeError):
    """Raised when the tracking record set cannot be produced."""


class TrackingLoader:
    """Fetches the exports and turns them into immutable snapshots."""

    def __init__(self, config: SourceConfig, *, today: date | None = None) -> None:
        self.config = config
        self.today = today

    def load_trackings(self) -> List[TrackingRecord]:
        """Fetch primary and supplemental exports together, then reconcile."""

        try:
            with ThreadPoolExecutor(max_workers=2) as pool:
                primary = pool.submit(load_table, self.config.primary, timeout=self.config.timeout)
                supplemental = pool.submit(
                    load_table,
                    self.config.supplemental,
                    optional=True,
                    timeout=self.config.timeout,
                )
                primary_rows = primary.result()
                supplemental_rows = supplemental.result()
        except SourceError as exc:
            raise ReconciliationError(f"Failed to load CSV file: {exc}") from exc

        return reconcile(primary_rows, supplemental_rows, today=self.today)

    def load_po_items(self) -> ItemGroupMap:
        try:
            rows = load_table(self.config.items, optional=True, timeout=self.config.timeout)
        except SourceError as exc:
            LOGGER.warning("Failed to load PO items CSV: %s", exc)
            return {}
        groups = group_items(rows)
        LOGGER.info("Grouped %d item rows into %d purchase orders", len(rows), len(groups))
        return groups


@dataclass
class TrackingStore:
    """Holds the current snapshot and replaces it whole on each refresh.

    A failed refresh keeps whatever was loaded before and remembers the
    error message for display. Callers on other threads (a refresh timer
    next to a manual refresh) share the store; only one load runs at a time
    and overlapping calls return False straight away.
    """

    loader: TrackingLoader
    records: Tuple[TrackingRecord, ...] = ()
    items: ItemGroupMap = field(default_factory=dict)
    error: Optional[str] = None
    loading: bool = field(default=False, init=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False, compare=False)

    def refresh(self) -> bool:
        if not self._lock.acquire(blocking=False):
            LOGGER.warning("Refresh requested while a load is in progress; ignoring.")
            return False

        self.loading = True
        self.error = None
        try:
            records = self.loader.load_trackings()
        except ReconciliationError as exc:
            LOGGER.error("Error loading trackings: %s", exc)
            self.error = str(exc)
            return False
        else:
            self.records = tuple(records)
            self.items = self.loader.load_po_items()
            return True
        finally:
            self.loading = False
            self._lock.release()

    def view(self, state: ViewState | None = None) -> ViewState:
        state = state or ViewState()
        return state.with_records(self.records).with_items(self.items)


def run_reconciliation(
    *,
    config: SourceConfig,
    out_dir: Path,
    statuses: Collection[str] = (),
    search: str = "",
    sort_column: Optional[str] = None,
    direction: Optional[str] = None,
    page: str = "all",
    today: date | None = None,
) -> List[TrackingRecord]:
    loader = TrackingLoader(config, today=today)
    records = loader.load_trackings()
    items = loader.load_po_items()

    state = ViewState(
        records=tuple(records),
        items=items,
        page=page,
        statuses=tuple(statuses),
        search=search,
        sort=SortState(sort_column, direction),
    )
    visible = state.visible_records()

    out_dir.mkdir(parents=True, exist_ok=True)
    write_csv(out_dir / "trackings.csv", visible)
    write_json(out_dir / "trackings.json", visible, items)
    markdown = generate_markdown_summary(visible, total=len(records), items=items)
    write_markdown(out_dir / "trackings.md", markdown)
    return visible
