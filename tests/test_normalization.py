from pathlib import Path
from types import SimpleNamespace

import pytest

from shiptrack import normalization
from shiptrack.normalization import LoadError, ParseError


@pytest.mark.parametrize(
    "header, expected",
    [
        ("Order Number", "order_number"),
        ("  Recipient (Site Name) ", "recipient_site_name"),
        ("Ship\t  Date", "ship_date"),
        ("PO_Number", "po_number"),
        ("(Notes)", "notes"),
        ("", ""),
    ],
)
def test_normalize_header(header, expected):
    assert normalization.normalize_header(header) == expected


@pytest.mark.parametrize(
    "header",
    ["Order Number", " Est. Delivery (Local) ", "A  B\tC", "((x))", "already_normal"],
)
def test_normalize_header_is_idempotent(header):
    once = normalization.normalize_header(header)
    assert normalization.normalize_header(once) == once


def test_parse_table_skips_blank_lines_and_keeps_order():
    text = "\n\nOrder Number,Tracking Number\n\nA1,T1\n,\nA2,T2\n\n"
    rows = normalization.parse_table(text)
    assert rows == [
        {"order_number": "A1", "tracking_number": "T1"},
        {"order_number": "A2", "tracking_number": "T2"},
    ]


def test_parse_table_pads_short_rows_and_drops_surplus_cells():
    rows = normalization.parse_table("a,b,c\n1\n1,2,3,4\n")
    assert rows == [
        {"a": "1", "b": "", "c": ""},
        {"a": "1", "b": "2", "c": "3"},
    ]


def test_parse_table_handles_quoted_fields_and_semicolons():
    text = 'Site;Carrier\n"Acme; Chicago, IL";UPS\n'
    rows = normalization.parse_table(text)
    assert rows == [{"site": "Acme; Chicago, IL", "carrier": "UPS"}]


def test_parse_table_strips_byte_order_mark():
    rows = normalization.parse_table("\ufeffOrder Number\nA1\n")
    assert rows == [{"order_number": "A1"}]


def test_parse_table_rejects_malformed_text():
    with pytest.raises(ParseError):
        normalization.parse_table('a,b\n1,"x"y\n')


def test_load_table_reads_local_file(tmp_path: Path):
    path = tmp_path / "orders.csv"
    path.write_text("Order Number,Carrier\n1001,UPS\n", encoding="utf-8")

    assert normalization.load_table(str(path)) == [{"order_number": "1001", "carrier": "UPS"}]


def test_load_table_observes_current_file_content(tmp_path: Path):
    path = tmp_path / "orders.csv"
    path.write_text("Order Number\n1001\n", encoding="utf-8")
    assert len(normalization.load_table(str(path))) == 1

    path.write_text("Order Number\n1001\n1002\n", encoding="utf-8")
    assert len(normalization.load_table(str(path))) == 2


def test_load_table_missing_required_source_raises(tmp_path: Path):
    with pytest.raises(LoadError) as excinfo:
        normalization.load_table(str(tmp_path / "missing.csv"))
    assert excinfo.value.status == "Not Found"
    assert "Failed to load CSV" in str(excinfo.value)


def test_load_table_missing_optional_source_is_empty(tmp_path: Path):
    assert normalization.load_table(str(tmp_path / "missing.csv"), optional=True) == []


def test_load_table_optional_source_still_reports_parse_errors(tmp_path: Path):
    path = tmp_path / "broken.csv"
    path.write_text('a,b\n1,"x"y\n', encoding="utf-8")
    with pytest.raises(ParseError):
        normalization.load_table(str(path), optional=True)


def test_fetch_remote_source_bypasses_cache(stub_session):
    url = "https://example.test/TestCSVFile.csv"
    stub_session.add(url, "Order Number\n1001\n")

    rows = normalization.load_table(url, timeout=5)

    assert rows == [{"order_number": "1001"}]
    call = stub_session.calls[0]
    assert call["url"] == url
    assert "t" in call["params"]
    assert "no-cache" in call["headers"]["Cache-Control"]
    assert call["headers"]["Pragma"] == "no-cache"
    assert call["timeout"] == 5


def test_fetch_remote_source_uses_fresh_timestamp_each_call(stub_session, monkeypatch):
    url = "https://example.test/orders.csv"
    stub_session.add(url, "Order Number\n1001\n")
    ticks = iter([1.0, 2.0])
    monkeypatch.setattr(normalization, "time", SimpleNamespace(time=lambda: next(ticks)))

    normalization.load_table(url)
    normalization.load_table(url)

    assert [call["params"]["t"] for call in stub_session.calls] == [1000, 2000]


def test_remote_failure_carries_status_text(stub_session):
    url = "https://example.test/orders.csv"
    stub_session.add(url, "", status=503, reason="Service Unavailable")

    with pytest.raises(LoadError) as excinfo:
        normalization.load_table(url)
    assert excinfo.value.status == "Service Unavailable"
    assert excinfo.value.location == url


def test_remote_optional_failure_is_empty(stub_session):
    assert normalization.load_table("https://example.test/AdditionalOrderInfo.csv", optional=True) == []


def test_fetch_text_replaces_invalid_utf8_in_local_files(tmp_path: Path):
    path = tmp_path / "latin1.csv"
    path.write_bytes(b"\xef\xbb\xbfItem Name\nCaf\xe9\n")
    assert normalization.fetch_text(str(path)) == "Item Name\nCaf\ufffd\n"
