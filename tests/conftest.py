import sys
from datetime import date
from pathlib import Path
from types import SimpleNamespace

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest

from shiptrack import normalization
from shiptrack.config import SourceConfig
from shiptrack.matching import reconcile

TODAY = date(2025, 11, 13)

PRIMARY_CSV = """\
Order Number,Tracking Number,Carrier,Estimated Delivery,Ship Date,Email Date,Subject,Body Preview,From Company,Recipient (Site Name),PO Number
1001,1Z001,UPS,2025-11-10,2025-11-05,,Acme order 1001 shipped,Departed facility,Acme Corp,"Acme Site - Chicago, IL",PO-1

1002,7940002,FedEx,2025-11-13,2025-11-10,,,,Globex,"Springfield, OR",PO-2
,9400003,USPS,2025-12-01,,2025-11-11,,,Initech,Warehouse 7,PO-3
1004,,UPS,2025-11-01,2025-10-28,,Missing tracking,,Acme Corp,,PO-4
1005,   ,UPS,2025-11-01,2025-10-28,,Blank tracking,,Acme Corp,,PO-5
"""

SUPPLEMENTAL_CSV = """\
Order Number,PO Number,Buyer,Project,Title
1001,,Jane Doe,Alpha,Supplemental title
,,Bob,Beta,
,PO-3,Carol,Gamma,
"""

ITEMS_CSV = """\
PO Number,Item Name,Part Number,Description,Color,Quantity
PO-1,Widget,W-1,Steel widget,Red,4
po-1,Gadget,G-2,Small gadget,Blue,
PO-3,Sprocket,S-9,Drive sprocket,,10
,Orphan,O-1,No purchase order,,1
"""


class StubSession:
    """Stands in for ``requests.Session`` so tests never touch the network."""

    def __init__(self) -> None:
        self.responses: dict[str, tuple[int, str, str]] = {}
        self.calls: list[dict[str, object]] = []

    def add(self, url: str, body: str, *, status: int = 200, reason: str = "OK") -> None:
        self.responses[url] = (status, reason, body)

    def get(self, url, *, params=None, headers=None, timeout=None):
        self.calls.append({"url": url, "params": params, "headers": headers, "timeout": timeout})
        status, reason, body = self.responses.get(url, (404, "Not Found", ""))
        return SimpleNamespace(
            ok=200 <= status < 400,
            status_code=status,
            reason=reason,
            content=body.encode("utf-8"),
        )


@pytest.fixture(autouse=True)
def stub_session():
    session = StubSession()
    normalization.set_session_for_testing(session)
    yield session
    normalization.set_session_for_testing(None)


@pytest.fixture
def today() -> date:
    return TODAY


@pytest.fixture
def source_dir(tmp_path: Path) -> Path:
    (tmp_path / "primary.csv").write_text(PRIMARY_CSV, encoding="utf-8")
    (tmp_path / "supplemental.csv").write_text(SUPPLEMENTAL_CSV, encoding="utf-8")
    (tmp_path / "items.csv").write_text(ITEMS_CSV, encoding="utf-8")
    return tmp_path


@pytest.fixture
def sources(source_dir: Path) -> SourceConfig:
    return SourceConfig(
        primary=str(source_dir / "primary.csv"),
        supplemental=str(source_dir / "supplemental.csv"),
        items=str(source_dir / "items.csv"),
    )


@pytest.fixture
def primary_rows():
    return normalization.parse_table(PRIMARY_CSV)


@pytest.fixture
def supplemental_rows():
    return normalization.parse_table(SUPPLEMENTAL_CSV)


@pytest.fixture
def item_rows():
    return normalization.parse_table(ITEMS_CSV)


@pytest.fixture
def records(primary_rows, supplemental_rows, today):
    return reconcile(primary_rows, supplemental_rows, today=today)


@pytest.fixture
def export_texts() -> dict[str, str]:
    return {"primary": PRIMARY_CSV, "supplemental": SUPPLEMENTAL_CSV, "items": ITEMS_CSV}
