"""Filtering, searching and sorting over reconciled records and PO items."""
from __future__ import annotations

import locale
from dataclasses import dataclass, field, replace
from typing import Callable, Collection, Dict, Iterable, List, Optional, Sequence, Tuple

from .derivation import format_date, parse_timestamp
from .items import flatten
from .models import DELIVERED, NAMED_FIELDS, ItemGroupMap, POItem, TrackingRecord

ASCENDING = "asc"
DESCENDING = "desc"

PAGE_TRACKING = "tracking"
PAGE_ORDER_HISTORY = "order-history"

VIEW_ORDERS = "orders"
VIEW_ITEMS = "items"

SEARCH_FIELDS = (
    "tracking_number",
    "order_id",
    "po_number",
    "from_company",
    "recipient_name",
    "destination_city",
    "destination_state",
    "slug",
    "tag",
    "title",
    "checkpoint_message",
    "checkpoint_location",
)

DATE_SEARCH_FIELDS = ("last_updated_at", "estimated_delivery", "checkpoint_date")

EXCLUDED_SEARCH_KEYS = frozenset({"id"})

# sort column -> (record field, compared as date)
SORT_COLUMNS: Dict[str, Tuple[str, bool]] = {
    "tracking_number": ("tracking_number", False),
    "order_id": ("order_id", False),
    "po_number": ("po_number", False),
    "from_company": ("from_company", False),
    "recipient_name": ("recipient_name", False),
    "carrier": ("slug", False),
    "status": ("tag", False),
    "ship_date": ("last_updated_at", True),
    "estimated_delivery": ("estimated_delivery", True),
}

ITEM_SEARCH_COLUMNS = ("item_name", "part_number", "description", "color", "quantity", "po_number")
ALL_COLUMNS = "all"


def _text(value: object) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def searchable_values(record: TrackingRecord) -> List[str]:
    """Every non-empty value a free-text search looks at."""

    values = [_text(record.get(name)) for name in SEARCH_FIELDS]
    for name in DATE_SEARCH_FIELDS:
        raw = _text(record.get(name))
        values.append(format_date(raw))
        values.append(raw)

    for key, value in record.extra.items():
        if key in EXCLUDED_SEARCH_KEYS or key in NAMED_FIELDS:
            continue
        values.append(_text(value))
    return [value for value in values if value]


def matches_search(record: TrackingRecord, search: str) -> bool:
    needle = search.strip().lower()
    if not needle:
        return True
    return any(needle in value.lower() for value in searchable_values(record))


def filter_records(
    records: Iterable[TrackingRecord],
    statuses: Collection[str] = (),
    search: str = "",
) -> List[TrackingRecord]:
    filtered = list(records)
    if statuses:
        filtered = [record for record in filtered if record.tag in statuses]
    if search and search.strip():
        filtered = [record for record in filtered if matches_search(record, search)]
    return filtered


def _string_key(value: str) -> Tuple[str, str]:
    return locale.strxfrm(value.casefold()), locale.strxfrm(value)


def sort_key(column: str) -> Optional[Callable[[TrackingRecord], object]]:
    mapping = SORT_COLUMNS.get(column)
    if mapping is None:
        return None
    name, is_date = mapping
    if is_date:
        return lambda record: parse_timestamp(_text(record.get(name)))
    return lambda record: _string_key(_text(record.get(name)))


def sort_records(
    records: Sequence[TrackingRecord],
    column: Optional[str],
    direction: Optional[str],
) -> List[TrackingRecord]:
    """Stable sort; no column, no direction or an unknown column keeps input order."""

    if not column or not direction:
        return list(records)
    key = sort_key(column)
    if key is None:
        return list(records)
    return sorted(records, key=key, reverse=direction == DESCENDING)


@dataclass(frozen=True)
class SortState:
    """Tri-state column sort: unsorted, ascending, descending."""

    column: Optional[str] = None
    direction: Optional[str] = None

    def toggle(self, column: str) -> "SortState":
        if column != self.column:
            return SortState(column, ASCENDING)
        if self.direction == ASCENDING:
            return SortState(column, DESCENDING)
        if self.direction == DESCENDING:
            return SortState()
        return SortState(column, ASCENDING)

    def apply(self, records: Sequence[TrackingRecord]) -> List[TrackingRecord]:
        return sort_records(records, self.column, self.direction)


def _item_field(item: POItem, column: str) -> str:
    if column == "quantity":
        return _text(item.quantity or "")
    if column not in ITEM_SEARCH_COLUMNS:
        return ""
    return _text(getattr(item, column))


def filter_items(items: Iterable[POItem], search: str, column: str = ALL_COLUMNS) -> List[POItem]:
    items = list(items)
    needle = (search or "").strip().lower()
    if not needle:
        return items

    def _matches(item: POItem) -> bool:
        if column == ALL_COLUMNS:
            values = [
                item.item_name,
                item.part_number,
                item.description,
                item.color,
                _text(item.quantity),
                item.po_number,
            ]
            return any(needle in _text(value).lower() for value in values if value)
        return needle in _item_field(item, column).lower()

    return [item for item in items if _matches(item)]


def page_records(records: Iterable[TrackingRecord], page: str) -> List[TrackingRecord]:
    """Open shipments on the tracking page, delivered ones in order history."""

    if page == PAGE_TRACKING:
        return [record for record in records if record.tag.lower() != DELIVERED]
    if page == PAGE_ORDER_HISTORY:
        return [record for record in records if record.tag.lower() == DELIVERED]
    return list(records)


def items_for_page(records: Iterable[TrackingRecord], groups: ItemGroupMap, page: str) -> List[POItem]:
    if page not in (PAGE_TRACKING, PAGE_ORDER_HISTORY):
        return flatten(groups)
    delivered = page == PAGE_ORDER_HISTORY
    po_numbers = {
        record.po_number.lower()
        for record in records
        if record.po_number and (record.tag.lower() == DELIVERED) == delivered
    }
    return flatten(groups, po_numbers)


def find_by_po_number(records: Iterable[TrackingRecord], po_number: str) -> Optional[TrackingRecord]:
    wanted = po_number.lower()
    return next((record for record in records if record.po_number.lower() == wanted), None)


def additional_columns(records: Sequence[TrackingRecord], limit: int = 3) -> List[str]:
    """Extension columns worth showing, taken from the first record."""

    if not records:
        return []
    first = records[0]
    return [key for key, value in first.extra.items() if value][:limit]


@dataclass(frozen=True)
class ViewState:
    """Everything needed to derive the visible table from a loaded snapshot."""

    records: Tuple[TrackingRecord, ...] = ()
    items: ItemGroupMap = field(default_factory=dict)
    page: str = PAGE_TRACKING
    view_mode: str = VIEW_ORDERS
    statuses: Tuple[str, ...] = ()
    search: str = ""
    sort: SortState = SortState()
    item_search_column: str = ALL_COLUMNS

    def with_records(self, records: Iterable[TrackingRecord]) -> "ViewState":
        return replace(self, records=tuple(records))

    def with_items(self, items: ItemGroupMap) -> "ViewState":
        return replace(self, items=items)

    def with_page(self, page: str) -> "ViewState":
        statuses = () if page == PAGE_ORDER_HISTORY else self.statuses
        return replace(self, page=page, statuses=statuses)

    def with_view_mode(self, view_mode: str) -> "ViewState":
        statuses = () if view_mode == VIEW_ITEMS else self.statuses
        return replace(self, view_mode=view_mode, statuses=statuses)

    def with_search(self, search: str) -> "ViewState":
        return replace(self, search=search)

    def toggle_status(self, status: str) -> "ViewState":
        if status in self.statuses:
            return replace(self, statuses=tuple(s for s in self.statuses if s != status))
        return replace(self, statuses=(*self.statuses, status))

    def clear_statuses(self) -> "ViewState":
        return replace(self, statuses=())

    def toggle_sort(self, column: str) -> "ViewState":
        return replace(self, sort=self.sort.toggle(column))

    def with_item_search_column(self, column: str) -> "ViewState":
        return replace(self, item_search_column=column)

    def page_records(self) -> List[TrackingRecord]:
        return page_records(self.records, self.page)

    def visible_records(self) -> List[TrackingRecord]:
        filtered = filter_records(self.page_records(), self.statuses, self.search)
        return self.sort.apply(filtered)

    def visible_items(self) -> List[POItem]:
        items = items_for_page(self.records, self.items, self.page)
        return filter_items(items, self.search, self.item_search_column)
