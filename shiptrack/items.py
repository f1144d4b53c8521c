"""Grouping of purchase-order line items."""
from __future__ import annotations

from typing import Collection, Iterable, List, Optional

from .models import ItemGroupMap, POItem, RawRow


def build_item(row: RawRow) -> Optional[POItem]:
    po_number = row.get("po_number") or ""
    if not po_number:
        return None
    return POItem(
        po_number=po_number,
        item_name=row.get("item_name") or "",
        part_number=row.get("part_number") or "",
        description=row.get("description") or "",
        color=row.get("color") or "",
        quantity=row.get("quantity") or 0,
    )


def group_items(rows: Iterable[RawRow]) -> ItemGroupMap:
    """Group item rows by lower-cased PO number, keeping source order."""

    groups: ItemGroupMap = {}
    for row in rows:
        item = build_item(row)
        if item is None:
            continue
        groups.setdefault(item.po_number.lower(), []).append(item)
    return groups


def flatten(groups: ItemGroupMap, po_numbers: Collection[str] | None = None) -> List[POItem]:
    """All items in group order, optionally limited to some lower-cased PO numbers."""

    items: List[POItem] = []
    for po_number, group in groups.items():
        if po_numbers is not None and po_number.lower() not in po_numbers:
            continue
        items.extend(group)
    return items
