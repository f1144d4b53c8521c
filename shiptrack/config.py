"""Runtime configuration for locating the source exports."""
from __future__ import annotations

import os
from dataclasses import dataclass, replace

from .normalization import DEFAULT_TIMEOUT

DEFAULT_PRIMARY = "TestCSVFile.csv"
DEFAULT_SUPPLEMENTAL = "AdditionalOrderInfo.csv"
DEFAULT_ITEMS = "mock_po_items_100.csv"


def _join(base: str, location: str) -> str:
    if not base or location.startswith(("http://", "https://", "/")):
        return location
    return f"{base.rstrip('/')}/{location}"


@dataclass(frozen=True)
class SourceConfig:
    """Where the three exports live and how long to wait for them."""

    primary: str = DEFAULT_PRIMARY
    supplemental: str = DEFAULT_SUPPLEMENTAL
    items: str = DEFAULT_ITEMS
    timeout: float = DEFAULT_TIMEOUT

    @classmethod
    def from_env(cls) -> "SourceConfig":
        base = os.getenv("SHIPTRACK_BASE_URL", "")
        primary = os.getenv("SHIPTRACK_PRIMARY_CSV", DEFAULT_PRIMARY)
        supplemental = os.getenv("SHIPTRACK_SUPPLEMENTAL_CSV", DEFAULT_SUPPLEMENTAL)
        items = os.getenv("SHIPTRACK_ITEMS_CSV", DEFAULT_ITEMS)
        timeout = float(os.getenv("SHIPTRACK_TIMEOUT", str(DEFAULT_TIMEOUT)))
        return cls(
            primary=_join(base, primary),
            supplemental=_join(base, supplemental),
            items=_join(base, items),
            timeout=timeout,
        )

    def override(self, **changes: str | None) -> "SourceConfig":
        """Return a copy with every non-empty value in ``changes`` applied."""

        return replace(self, **{key: value for key, value in changes.items() if value})
