"""Shared request-parsing helpers for the comment and annotation blueprints.

json_body:        request JSON as a dict, {} for anything else
parse_date:       ISO date → date, None on bad input
parse_datetime:   ISO date / datetime → timezone-aware UTC datetime, None on bad input
parse_id_list:    validated list of string ids from a JSON body
parse_int:        optional integer query parameter
"""
from datetime import date, datetime, time, timezone

from flask import request


def json_body() -> dict:
    """Request JSON if it is an object; lists, scalars and bad JSON give {}."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def parse_date(value):
    """Parse an ISO date string to a date object.

    Returns None for empty/invalid input. Supports:
    - YYYY-MM-DD
    - YYYY-MM-DDTHH:MM:SS (datetime ISO → .date())
    """
    if not value:
        return None
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except (ValueError, TypeError):
        pass
    try:
        return datetime.fromisoformat(str(value)).date()
    except (ValueError, TypeError):
        return None


def parse_datetime(value, *, end_of_day=False):
    """Parse an ISO datetime (or bare date) into an aware UTC datetime.

    A bare date maps to 00:00 UTC, or to 23:59:59.999999 with
    ``end_of_day=True`` so that date ranges are inclusive.
    Naive datetimes are taken as UTC.  Returns None for empty/invalid input.
    """
    if not value:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if len(text) == 10:
            day = parse_date(text)
            if day is None:
                return None
            parsed = datetime.combine(day, time.max if end_of_day else time.min)
        else:
            try:
                parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
            except ValueError:
                return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def parse_id_list(payload: dict, key: str = "comment_ids"):
    """Extract a non-empty list of string ids from a JSON body.

    Returns (ids, None) on success, (None, message) on failure so callers
    can answer with a 400.
    """
    raw = (payload or {}).get(key)
    if not isinstance(raw, list) or not raw:
        return None, f"{key} must be a non-empty list"
    if not all(isinstance(item, str) and item.strip() for item in raw):
        return None, f"{key} must contain only non-empty strings"
    return [item.strip() for item in raw], None


def parse_int(value, default=None):
    """Parse an optional integer parameter; None/empty gives ``default``.

    Raises ValueError on non-numeric input so the caller can answer 400.
    """
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        raise ValueError("boolean is not an integer")
    return int(value)
