"""Tests for identifier helpers."""

import re

from app.core.session_key import (
    ensure_message_id,
    format_timestamp,
    generate_message_id,
    generate_session_code,
    generate_student_id,
    normalize_username,
    utc_timestamp,
)


def test_generate_session_code_is_five_digits():
    for _ in range(50):
        code = generate_session_code()
        assert code.isdigit()
        assert 10000 <= int(code) <= 99999


def test_generate_student_id_shape():
    student_id = generate_student_id("  Alice ", "12345")
    assert re.fullmatch(r"12345_alice_[0-9a-f]{8}", student_id)


def test_generate_student_id_is_random():
    assert generate_student_id("bob", "12345") != generate_student_id("bob", "12345")


def test_normalize_username():
    assert normalize_username("  MiXeD Case ") == "mixed case"


def test_generate_message_id_shape():
    assert re.fullmatch(r"\d{13}_[0-9a-f]{8}", generate_message_id())


def test_ensure_message_id_keeps_well_formed_ids():
    assert ensure_message_id("1700000000000_abcdef12") == "1700000000000_abcdef12"


def test_ensure_message_id_replaces_malformed_ids():
    for bad in (None, "", "nounderscore"):
        replaced = ensure_message_id(bad)
        assert replaced != bad
        assert "_" in replaced


def test_utc_timestamp_is_iso_utc():
    ts = utc_timestamp()
    assert ts.endswith("Z")
    assert re.fullmatch(r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{6}Z", ts)


def test_format_timestamp_normalizes_to_utc():
    from datetime import datetime, timedelta, timezone

    plus_two = timezone(timedelta(hours=2))
    assert (
        format_timestamp(datetime(2026, 1, 1, 12, 0, tzinfo=plus_two))
        == "2026-01-01T10:00:00.000000Z"
    )
    assert format_timestamp(datetime(2026, 1, 1, 10, 0)) == "2026-01-01T10:00:00.000000Z"
