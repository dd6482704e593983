"""Tests for zcapld.utils module."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta, timezone

import pytest

from zcapld.exceptions import CapabilityFormatError
from zcapld.utils import as_string_tuple, compact, format_timestamp, parse_timestamp


class TestParseTimestamp:
    def test_none_passes_through(self):
        assert parse_timestamp(None, "expires") is None

    def test_zulu_string(self):
        assert parse_timestamp("2026-06-01T12:00:00Z", "expires") == datetime(2026, 6, 1, 12, tzinfo=UTC)

    def test_naive_is_utc(self):
        parsed = parse_timestamp("2026-06-01T12:00:00", "expires")
        assert parsed.tzinfo is UTC

    def test_datetime_accepted(self):
        value = datetime(2026, 6, 1, 14, tzinfo=timezone(timedelta(hours=2)))
        assert parse_timestamp(value, "expires") == datetime(2026, 6, 1, 12, tzinfo=UTC)

    def test_invalid_string(self):
        with pytest.raises(CapabilityFormatError) as exc_info:
            parse_timestamp("next tuesday", "expires")
        assert exc_info.value.field == "expires"

    def test_wrong_type(self):
        with pytest.raises(CapabilityFormatError):
            parse_timestamp(1234, "expires")


class TestFormatTimestamp:
    def test_uses_z_suffix(self):
        assert format_timestamp(datetime(2026, 6, 1, 12, tzinfo=UTC)) == "2026-06-01T12:00:00Z"

    def test_converts_to_utc(self):
        value = datetime(2026, 6, 1, 14, tzinfo=timezone(timedelta(hours=2)))
        assert format_timestamp(value) == "2026-06-01T12:00:00Z"


class TestStringTuples:
    def test_normalization(self):
        assert as_string_tuple(None, "invoker") == ()
        assert as_string_tuple("did:ex:a", "invoker") == ("did:ex:a",)
        assert as_string_tuple(["did:ex:a", "did:ex:b"], "invoker") == ("did:ex:a", "did:ex:b")

    def test_rejects_non_strings(self):
        with pytest.raises(CapabilityFormatError):
            as_string_tuple(["did:ex:a", 3], "invoker")
        with pytest.raises(CapabilityFormatError):
            as_string_tuple({"id": "did:ex:a"}, "invoker")

    def test_compact(self):
        assert compact(()) is None
        assert compact(("a",)) == "a"
        assert compact(("a", "b")) == ["a", "b"]
