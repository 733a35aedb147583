from __future__ import annotations

import logging

from passport.observability.logging import ContextFilter, bind_client_id, bind_request_id


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord("passport", logging.INFO, __file__, 1, "hello", None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_filter_injects_bound_context():
    rid = bind_request_id("req-9")
    bind_client_id("acme")
    try:
        record = _record()
        assert ContextFilter().filter(record) is True
        assert record.request_id == rid == "req-9"
        assert record.client_id == "acme"
    finally:
        bind_client_id(None)


def test_explicit_client_id_is_kept():
    bind_client_id("acme")
    try:
        record = _record(client_id="globex")
        ContextFilter().filter(record)
        assert record.client_id == "globex"
    finally:
        bind_client_id(None)


def test_missing_context_formats_as_empty_strings():
    bind_client_id(None)
    record = _record()

    ContextFilter().filter(record)

    assert record.client_id == ""


def test_bind_request_id_generates_one_when_missing():
    assert bind_request_id(None)
