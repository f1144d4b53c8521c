"""Record matching between the primary and supplemental order exports."""
from __future__ import annotations

import logging
from collections import Counter
from datetime import date
from typing import Dict, Iterable, List, Sequence, Tuple

from .derivation import determine_status, parse_destination
from .models import NAMED_FIELDS, RawRow, TrackingRecord

LOGGER = logging.getLogger(__name__)

SUPPLEMENTAL_KEY_COLUMNS = ("order_number", "order_id", "tracking_number", "po_number")

MATCH_ORDER_NUMBER = "order_number"
MATCH_TRACKING_NUMBER = "tracking_number"
MATCH_PO_NUMBER = "po_number"
MATCH_POSITION = "position"
MATCH_NONE = "none"


def _value(row: RawRow, column: str) -> str:
    value = row.get(column)
    return value if isinstance(value, str) else ""


def supplemental_key(row: RawRow) -> str:
    """First non-empty identifier of a supplemental row, lower-cased."""

    for column in SUPPLEMENTAL_KEY_COLUMNS:
        value = _value(row, column)
        if value:
            return value.lower()
    return ""


class SupplementalIndex:
    """Keyed and positional access to the supplemental rows."""

    def __init__(self, rows: Sequence[RawRow]) -> None:
        self.rows: List[RawRow] = list(rows)
        self.by_key: Dict[str, RawRow] = {}
        for row in self.rows:
            key = supplemental_key(row)
            if key:
                self.by_key[key] = row

    def __len__(self) -> int:
        return len(self.rows)

    def _lookup(self, identifier: str) -> RawRow | None:
        if not identifier:
            return None
        return self.by_key.get(identifier.lower())

    def resolve(self, row: RawRow, index: int) -> Tuple[RawRow, str]:
        """Return the supplemental match for a primary row and the rule that hit.

        Order number, tracking number and PO number are tried in that order.
        When none of them is known the row at the same position is used,
        which only holds for exports generated in lockstep.
        """

        for column, rule in (
            ("order_number", MATCH_ORDER_NUMBER),
            ("tracking_number", MATCH_TRACKING_NUMBER),
            ("po_number", MATCH_PO_NUMBER),
        ):
            match = self._lookup(_value(row, column))
            if match is not None:
                return match, rule

        if index < len(self.rows):
            return self.rows[index], MATCH_POSITION
        return {}, MATCH_NONE


def build_record(row: RawRow, index: int, *, today: date | None = None) -> TrackingRecord:
    order_number = _value(row, "order_number")
    po_number = _value(row, "po_number")
    estimated_delivery = _value(row, "estimated_delivery")
    last_updated_at = _value(row, "ship_date") or _value(row, "email_date")
    recipient = _value(row, "recipient_site_name") or _value(row, "recipient")
    from_company = _value(row, "from_company")
    destination = parse_destination(recipient)

    return TrackingRecord(
        id=order_number or po_number or f"tracking-{index}",
        tracking_number=_value(row, "tracking_number"),
        slug=_value(row, "carrier").lower(),
        tag=determine_status(estimated_delivery, today=today),
        order_id=order_number,
        po_number=po_number,
        title=_value(row, "subject") or f"{from_company} Order {order_number}".strip(),
        from_company=from_company,
        recipient_name=recipient,
        destination_city=destination.city or "",
        destination_state=destination.state or "",
        last_updated_at=last_updated_at,
        estimated_delivery=estimated_delivery,
        checkpoint_date=estimated_delivery or last_updated_at,
        checkpoint_message=_value(row, "body_preview") or _value(row, "subject"),
        checkpoint_location=recipient,
    )


def merge_supplemental(record: TrackingRecord, match: RawRow) -> TrackingRecord:
    """Copy supplemental columns that the record does not already define."""

    for key, value in match.items():
        if key in NAMED_FIELDS or key in record.extra:
            continue
        if value is None or value == "":
            continue
        record.extra[key] = value
    return record


def reconcile(
    primary_rows: Iterable[RawRow],
    supplemental_rows: Sequence[RawRow],
    *,
    today: date | None = None,
) -> list[TrackingRecord]:
    """Join both exports into one record per primary row with a tracking number."""

    index = SupplementalIndex(supplemental_rows)
    rules: Counter[str] = Counter()
    records: list[TrackingRecord] = []
    dropped = 0

    for position, row in enumerate(primary_rows):
        match, rule = index.resolve(row, position)
        rules[rule] += 1
        record = merge_supplemental(build_record(row, position, today=today), match)
        if not record.tracking_number.strip():
            dropped += 1
            continue
        records.append(record)

    LOGGER.info(
        "Reconciled %d records (%d dropped without tracking number); matches by rule: %s",
        len(records),
        dropped,
        dict(rules),
    )
    return records
