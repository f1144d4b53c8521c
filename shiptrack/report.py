"""Rendering utilities for machine-readable and human-readable outputs."""
from __future__ import annotations

from collections import Counter
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, List, Sequence

from .derivation import format_date, status_label
from .models import NAMED_FIELDS, TAGS, ItemGroupMap, TrackingRecord
from .query import additional_columns


def _fieldnames(records: Sequence[TrackingRecord]) -> List[str]:
    names = list(NAMED_FIELDS)
    for record in records:
        for key in record.extra:
            if key not in names:
                names.append(key)
    return names


def write_csv(path: Path, records: Iterable[TrackingRecord]) -> None:
    import csv

    records = list(records)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", newline="", encoding="utf-8") as handle:
        writer = csv.DictWriter(handle, fieldnames=_fieldnames(records), restval="")
        writer.writeheader()
        for record in records:
            writer.writerow(record.as_dict())


def write_json(path: Path, records: Iterable[TrackingRecord], items: ItemGroupMap | None = None) -> None:
    import json

    path.parent.mkdir(parents=True, exist_ok=True)
    items = items or {}
    payload = []
    for record in records:
        entry: dict[str, object] = record.as_dict()
        entry["items"] = [item.as_dict() for item in items.get(record.po_number.lower(), [])]
        payload.append(entry)
    with path.open("w", encoding="utf-8") as handle:
        json.dump(payload, handle, indent=2)


def _cell(value: str) -> str:
    return value.replace("|", "\\|").replace("\n", " ")


def generate_markdown_summary(
    records: Sequence[TrackingRecord],
    *,
    total: int,
    items: ItemGroupMap | None = None,
) -> str:
    items = items or {}
    tags = Counter(record.tag for record in records)
    carriers = Counter(record.slug or "unknown" for record in records)
    extra_columns = additional_columns(records)

    lines = ["# Shipment Tracking Report", ""]
    lines.append(f"Generated: {datetime.now(timezone.utc).isoformat()}")
    lines.append("")
    lines.append("## Overview")
    lines.append("")
    if len(records) == total:
        lines.append(f"- Orders: **{total}**")
    else:
        lines.append(f"- Orders: **{len(records)}** (of {total} total)")
    lines.append(f"- Purchase orders with items: **{len(items)}**")
    lines.append(f"- Line items: **{sum(len(group) for group in items.values())}**")
    lines.append("")

    if tags:
        lines.append("## Orders by status")
        lines.append("")
        for tag in TAGS:
            if tags.get(tag):
                lines.append(f"- {status_label(tag)}: {tags[tag]}")
        lines.append("")

    if carriers:
        lines.append("## Orders by carrier")
        lines.append("")
        for carrier, count in sorted(carriers.items()):
            lines.append(f"- {carrier}: {count}")
        lines.append("")

    if records:
        headers = ["Tracking #", "Order #", "PO #", "Company", "Carrier", "Status", "Ship date", "Est. delivery"]
        headers.extend(key.replace("_", " ").title() for key in extra_columns)
        lines.append("## Orders")
        lines.append("")
        lines.append("| " + " | ".join(headers) + " |")
        lines.append("| " + " | ".join("---" for _ in headers) + " |")
        for record in records:
            cells = [
                record.tracking_number,
                record.order_id,
                record.po_number,
                record.from_company,
                record.slug.upper(),
                status_label(record.tag),
                format_date(record.last_updated_at),
                format_date(record.estimated_delivery),
            ]
            cells.extend(record.get(key) for key in extra_columns)
            lines.append("| " + " | ".join(_cell(cell) for cell in cells) + " |")
        lines.append("")
    else:
        lines.append("No orders match the current filters.")

    return "\n".join(lines)


def write_markdown(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as handle:
        handle.write(content)
