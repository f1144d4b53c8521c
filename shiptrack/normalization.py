"""Utilities for fetching and normalising delimited source files."""
from __future__ import annotations

import csv
import io
import logging
import re
import time
from pathlib import Path
from typing import Any, List

import requests

from .models import RawRow

LOGGER = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0

NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store",
    "Pragma": "no-cache",
}

_WHITESPACE = re.compile(r"\s+")
_PARENS = re.compile(r"[()]")

_session: Any | None = None


class SourceError(RuntimeError):
    """Base class for failures while reading a source."""


class LoadError(SourceError):
    """Raised when a source cannot be fetched."""

    def __init__(self, location: str, status: str) -> None:
        super().__init__(f"Failed to load CSV: {status}")
        self.location = location
        self.status = status


class ParseError(SourceError):
    """Raised when a source is not valid delimited text."""


def normalize_header(header: str) -> str:
    """Return the canonical column name used for every key lookup."""

    cleaned = _WHITESPACE.sub("_", header.strip().lower())
    return _PARENS.sub("", cleaned)


def _sniff_delimiter(sample: str) -> str:
    """Detect a CSV delimiter, defaulting to comma when uncertain."""

    try:
        dialect = csv.Sniffer().sniff(sample, delimiters=",;\t")
        return dialect.delimiter
    except csv.Error:
        return ";" if sample.count(";") > sample.count(",") else ","


def _is_blank(cells: List[str]) -> bool:
    return not any(cell.strip() for cell in cells)


def parse_table(text: str) -> list[RawRow]:
    """Parse delimited text into rows keyed by normalised header names.

    The first non-empty line is the header. Blank lines are skipped, short
    rows are padded with empty strings and surplus cells are dropped.
    """

    if text.startswith("\ufeff"):
        text = text[1:]
    first_line = next((line for line in text.splitlines() if line.strip()), "")
    delimiter = _sniff_delimiter(first_line)
    reader = csv.reader(io.StringIO(text, newline=""), delimiter=delimiter, strict=True)

    headers: list[str] | None = None
    rows: list[RawRow] = []
    try:
        for cells in reader:
            if _is_blank(cells):
                continue
            if headers is None:
                headers = [normalize_header(cell) for cell in cells]
                continue
            rows.append(
                {
                    name: cells[position] if position < len(cells) else ""
                    for position, name in enumerate(headers)
                }
            )
    except csv.Error as exc:
        raise ParseError(f"Malformed delimited text on line {reader.line_num}: {exc}") from exc
    return rows


def set_session_for_testing(session: Any | None) -> None:
    """Replace the HTTP session used for remote sources."""

    global _session
    _session = session


def _get_session() -> Any:
    global _session
    if _session is None:
        _session = requests.Session()
    return _session


def is_remote(location: str) -> bool:
    return location.startswith(("http://", "https://"))


def fetch_text(location: str, *, timeout: float = DEFAULT_TIMEOUT) -> str:
    """Return the current content of ``location`` bypassing any cache."""

    if not is_remote(location):
        path = Path(location)
        if not path.is_file():
            raise LoadError(location, "Not Found")
        try:
            data = path.read_bytes()
        except OSError as exc:
            raise LoadError(location, exc.strerror or str(exc)) from exc
        return data.decode("utf-8-sig", errors="replace")

    params = {"t": int(time.time() * 1000)}
    LOGGER.debug("Fetching %s", location)
    try:
        response = _get_session().get(
            location, params=params, headers=NO_CACHE_HEADERS, timeout=timeout
        )
    except requests.RequestException as exc:
        raise LoadError(location, str(exc)) from exc

    if not response.ok:
        raise LoadError(location, response.reason or str(response.status_code))
    return response.content.decode("utf-8-sig", errors="replace")


def load_table(
    location: str,
    *,
    optional: bool = False,
    timeout: float = DEFAULT_TIMEOUT,
) -> list[RawRow]:
    """Fetch and parse ``location``.

    An optional source that cannot be fetched yields no rows. Parse errors
    are never suppressed.
    """

    try:
        text = fetch_text(location, timeout=timeout)
    except LoadError as exc:
        if not optional:
            raise
        LOGGER.warning("Optional source %s unavailable (%s); continuing without it.", location, exc.status)
        return []

    rows = parse_table(text)
    LOGGER.info("Loaded %d rows from %s", len(rows), location)
    return rows
