"""Derived fields: delivery status, destination and date rendering."""
from __future__ import annotations

import logging
import re
from datetime import date, datetime
from typing import Optional

from dateutil.parser import ParserError, parse

from .models import DELIVERED, IN_TRANSIT, OUT_FOR_DELIVERY, Destination

LOGGER = logging.getLogger(__name__)

_BARE_DATE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
_STATE_TOKEN = re.compile(r"\b([A-Z]{2})\b")
_STATE_ONLY = re.compile(r"^[A-Z]{2}$")
_PART_SEPARATORS = re.compile(r"[-,]")

NOT_AVAILABLE = "N/A"


def _parse_bare_date(text: str) -> Optional[date]:
    match = _BARE_DATE.match(text)
    if not match:
        return None
    year, month, day = (int(group) for group in match.groups())
    return date(year, month, day)


def _parse_datetime(text: str) -> datetime:
    parsed = parse(text)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone()
    return parsed


def parse_calendar_date(text: str | None) -> Optional[date]:
    """Return the local calendar day named by ``text`` or ``None``.

    Bare ``YYYY-MM-DD`` values are built from their components so that no
    timezone offset can move them across midnight.
    """

    if not text or not text.strip():
        return None
    trimmed = text.strip()
    try:
        if _BARE_DATE.match(trimmed):
            return _parse_bare_date(trimmed)
        return _parse_datetime(trimmed).date()
    except (ParserError, ValueError, OverflowError):
        return None


def determine_status(estimated_delivery: str | None, *, today: date | None = None) -> str:
    """Infer a shipment tag from its estimated delivery day."""

    today = today or date.today()
    try:
        delivery_day = parse_calendar_date(estimated_delivery)
    except Exception:  # pragma: no cover - dateutil raises a wide range of errors
        LOGGER.debug("Could not parse estimated delivery %r", estimated_delivery)
        return IN_TRANSIT

    if delivery_day is None:
        return IN_TRANSIT
    if delivery_day < today:
        return DELIVERED
    if delivery_day == today:
        return OUT_FOR_DELIVERY
    return IN_TRANSIT


def parse_destination(text: str | None) -> Destination:
    """Best-effort city/state extraction from a free-form site string.

    Recognised shapes are ``"Site - City, ST"`` and ``"City, ST"``. When no
    two-letter state code is present, or the text has a single part, no
    guess is made.
    """

    if not text:
        return Destination()

    parts = [part.strip() for part in _PART_SEPARATORS.split(text)]
    state_match = _STATE_TOKEN.search(text)
    if not state_match or len(parts) < 2:
        return Destination()

    state = state_match.group(1)
    state_token = re.compile(rf"\b{state}\b")
    state_index = next(
        (position for position, part in enumerate(parts) if state_token.search(part)),
        len(parts),
    )

    def _is_city(part: str) -> bool:
        return bool(part) and not _STATE_ONLY.match(part)

    preceding = [part for part in parts[:state_index] if _is_city(part)]
    if preceding:
        return Destination(city=preceding[-1], state=state)
    city = next((part for part in parts if _is_city(part)), "")
    return Destination(city=city, state=state)


def format_date(text: str | None) -> str:
    """Render a date the way the tracking table displays it."""

    if not text or not text.strip():
        return NOT_AVAILABLE
    trimmed = text.strip()

    if _BARE_DATE.match(trimmed):
        try:
            day = _parse_bare_date(trimmed)
        except ValueError:
            return text
        return f"{day:%b} {day.day}, {day.year}"

    try:
        moment = _parse_datetime(trimmed)
    except (ParserError, ValueError, OverflowError):
        return text
    return f"{moment:%b} {moment.day}, {moment.year}, {moment:%I:%M %p}"


def parse_timestamp(text: str | None) -> float:
    """Epoch seconds used when sorting by a date column.

    Unknown values map to negative infinity so they sort before any real
    date, including ones before 1970.
    """
    if not text or not text.strip():
        return float("-inf")
    trimmed = text.strip()
    try:
        if _BARE_DATE.match(trimmed):
            day = _parse_bare_date(trimmed)
            return datetime(day.year, day.month, day.day).timestamp()
        return _parse_datetime(trimmed).timestamp()
    except (ParserError, ValueError, OverflowError, OSError):
        return float("-inf")


def status_label(tag: str | None) -> str:
    if not tag:
        return "Unknown"
    return " ".join(word.capitalize() for word in tag.split("_"))
