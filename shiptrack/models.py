"""Data models used by the tracking reconciliation workflow."""
from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Dict, Iterator, List, NamedTuple, Optional, Union

DELIVERED = "delivered"
IN_TRANSIT = "in_transit"
OUT_FOR_DELIVERY = "out_for_delivery"
PENDING = "pending"
EXCEPTION = "exception"

TAGS = (DELIVERED, IN_TRANSIT, OUT_FOR_DELIVERY, PENDING, EXCEPTION)

RawRow = Dict[str, str]


class Destination(NamedTuple):
    city: Optional[str] = None
    state: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return self.city is None and self.state is None


@dataclass(slots=True)
class TrackingRecord:
    """One reconciled shipment.

    Named fields come from the primary export. ``extra`` holds the columns
    contributed by the supplemental export that do not collide with a named
    field, keyed by their normalised column name.
    """

    id: str
    tracking_number: str
    slug: str = ""
    tag: str = IN_TRANSIT
    order_id: str = ""
    po_number: str = ""
    title: str = ""
    from_company: str = ""
    recipient_name: str = ""
    destination_city: str = ""
    destination_state: str = ""
    last_updated_at: str = ""
    estimated_delivery: str = ""
    checkpoint_date: str = ""
    checkpoint_message: str = ""
    checkpoint_location: str = ""
    extra: Dict[str, str] = field(default_factory=dict)

    def get(self, key: str, default: str = "") -> str:
        if key in NAMED_FIELDS:
            return getattr(self, key)
        return self.extra.get(key, default)

    def keys(self) -> List[str]:
        return [*NAMED_FIELDS, *self.extra]

    def items(self) -> Iterator[tuple[str, str]]:
        for key in self.keys():
            yield key, self.get(key)

    def as_dict(self) -> dict[str, str]:
        return dict(self.items())


NAMED_FIELDS: tuple[str, ...] = tuple(
    f.name for f in fields(TrackingRecord) if f.name != "extra"
)


@dataclass(slots=True)
class POItem:
    po_number: str
    item_name: str = ""
    part_number: str = ""
    description: str = ""
    color: str = ""
    quantity: Union[str, int] = 0

    def as_dict(self) -> dict[str, object]:
        return {
            "po_number": self.po_number,
            "item_name": self.item_name,
            "part_number": self.part_number,
            "description": self.description,
            "color": self.color,
            "quantity": self.quantity,
        }


ItemGroupMap = Dict[str, List[POItem]]
