"""
Request-parsing helper tests.
"""

from datetime import date, datetime, timezone

import pytest

from app.models.comment import iso_utc
from app.utils.helpers import json_body, parse_date, parse_datetime, parse_int


class TestParseDate:

    def test_iso_forms(self):
        assert parse_date("2026-03-01") == date(2026, 3, 1)
        assert parse_date("2026-03-01T10:30:00") == date(2026, 3, 1)

    @pytest.mark.parametrize("value", ["01.03.2026", "March 1", "", None])
    def test_non_iso_rejected(self, value):
        assert parse_date(value) is None


class TestParseDatetime:

    def test_bare_date_bounds(self):
        assert parse_datetime("2026-03-01") == datetime(2026, 3, 1, tzinfo=timezone.utc)
        end = parse_datetime("2026-03-01", end_of_day=True)
        assert (end.hour, end.minute, end.second) == (23, 59, 59)

    def test_zulu_and_naive_are_utc(self):
        assert parse_datetime("2026-03-01T12:00:00Z").tzinfo == timezone.utc
        assert parse_datetime("2026-03-01T12:00:00").tzinfo == timezone.utc

    def test_european_date_rejected(self):
        assert parse_datetime("01.03.2026") is None


class TestParseInt:

    def test_default_and_value(self):
        assert parse_int(None, 30) == 30
        assert parse_int("7") == 7

    def test_boolean_rejected(self):
        with pytest.raises(ValueError):
            parse_int(True)


class TestJsonBody:

    @pytest.mark.parametrize("payload,expected", [
        ({"days": 3}, {"days": 3}),
        ([1, 2], {}),
        ("text", {}),
    ])
    def test_only_objects_pass(self, app, payload, expected):
        with app.test_request_context("/api/v1/comments/stats", method="POST", json=payload):
            assert json_body() == expected


def test_iso_utc_treats_naive_as_utc():
    assert iso_utc(datetime(2026, 3, 1, 9, 30)) == "2026-03-01T09:30:00+00:00"
    assert iso_utc(None) is None
