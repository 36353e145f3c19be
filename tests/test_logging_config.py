"""
Logging formatter tests.
"""

import json
import logging
import sys

from flask import g

from app.auth import Actor
from app.middleware.logging_config import (
    JSONFormatter,
    ReadableFormatter,
    RequestContextFilter,
    _pick_formatter,
)


def _record(msg="Comment created", **extra):
    record = logging.LogRecord(
        name="app.services.comment_service",
        level=logging.INFO,
        pathname=__file__,
        lineno=10,
        msg=msg,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:

    def test_includes_comment_context(self):
        out = json.loads(JSONFormatter().format(
            _record(document_id="doc-1", comment_id="c-1", actor_id="u-1"),
        ))
        assert out["message"] == "Comment created"
        assert out["level"] == "INFO"
        assert out["document_id"] == "doc-1"
        assert out["comment_id"] == "c-1"
        assert out["actor_id"] == "u-1"
        assert "event_type" not in out

    def test_exception_is_serialised(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = _record()
            record.exc_info = sys.exc_info()
        out = json.loads(JSONFormatter().format(record))
        assert "RuntimeError: boom" in out["exception"]


class TestReadableFormatter:

    def test_context_suffix(self):
        line = ReadableFormatter().format(_record(document_id="doc-1", comment_id="c-1"))
        assert "Comment created (document_id=doc-1 comment_id=c-1)" in line

    def test_duration(self):
        line = ReadableFormatter().format(_record("GET /x", duration_ms=12.4))
        assert line.endswith("[12ms]")

    def test_no_context(self):
        line = ReadableFormatter().format(_record())
        assert "(" not in line.split(": ", 1)[1]


class TestRequestContextFilter:

    def test_stamps_request_and_actor(self, app):
        with app.test_request_context("/api/v1/comments/x"):
            g.request_id = "req-42"
            g.current_actor = Actor(id="u-9")
            record = _record()
            assert RequestContextFilter().filter(record) is True
            g.pop("current_actor")
        assert record.request_id == "req-42"
        assert record.actor_id == "u-9"

    def test_explicit_extra_wins(self, app):
        with app.test_request_context("/api/v1/comments/x"):
            g.request_id = "req-42"
            record = _record(actor_id="explicit", request_id="mine")
            RequestContextFilter().filter(record)
        assert record.actor_id == "explicit"
        assert record.request_id == "mine"

    def test_outside_request(self):
        record = _record()
        assert RequestContextFilter().filter(record) is True
        assert getattr(record, "request_id", None) is None


class TestPickFormatter:

    def test_override(self, monkeypatch):
        monkeypatch.setenv("LOG_FORMAT", "json")
        assert isinstance(_pick_formatter(is_prod=False), JSONFormatter)
        monkeypatch.setenv("LOG_FORMAT", "readable")
        assert isinstance(_pick_formatter(is_prod=True), ReadableFormatter)

    def test_default_by_environment(self, monkeypatch):
        monkeypatch.delenv("LOG_FORMAT", raising=False)
        assert isinstance(_pick_formatter(is_prod=True), JSONFormatter)
        assert isinstance(_pick_formatter(is_prod=False), ReadableFormatter)
