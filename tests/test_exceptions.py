"""Tests for zcapld.exceptions module."""

from __future__ import annotations

import pytest

from zcapld.exceptions import (
    ActionNotAllowedError,
    CapabilityFormatError,
    CapabilityVerificationError,
    ConfigException,
    ResolutionError,
    RootMismatchError,
    ZcapException,
)


class TestZcapException:
    """Tests for base ZcapException."""

    def test_create_with_message(self):
        exc = ZcapException("Something went wrong")
        assert str(exc) == "Something went wrong"
        assert exc.message == "Something went wrong"
        assert exc.details == {}

    def test_to_dict_uses_class_name(self):
        exc = RootMismatchError("mismatch", details={"expected": "a", "actual": "b"})
        assert exc.to_dict() == {
            "error": "RootMismatchError",
            "message": "mismatch",
            "details": {"expected": "a", "actual": "b"},
        }

    def test_verification_errors_share_base(self):
        assert issubclass(ActionNotAllowedError, CapabilityVerificationError)
        assert issubclass(ResolutionError, CapabilityVerificationError)
        assert not issubclass(CapabilityFormatError, CapabilityVerificationError)


class TestWrap:
    """Tests for CapabilityVerificationError.wrap."""

    def test_wrap_keeps_kind_and_details(self):
        exc = ActionNotAllowedError("not allowed", details={"action": "write"})
        wrapped = exc.wrap("invalid capability chain")

        assert type(wrapped) is ActionNotAllowedError
        assert wrapped.message == "invalid capability chain: not allowed"
        assert str(wrapped) == "invalid capability chain: not allowed"
        assert wrapped.details == {"action": "write"}

    def test_wrap_does_not_mutate_original(self):
        exc = ActionNotAllowedError("not allowed", details={"action": "write"})
        wrapped = exc.wrap("outer")
        wrapped.details["extra"] = 1

        assert exc.message == "not allowed"
        assert "extra" not in exc.details

    def test_wrap_preserves_subclass_attributes(self):
        exc = ResolutionError("gone", uri="urn:cap:x")
        wrapped = exc.wrap("invalid capability chain")

        assert isinstance(wrapped, ResolutionError)
        assert wrapped.uri == "urn:cap:x"
        assert wrapped.details["uri"] == "urn:cap:x"

    def test_wrap_keeps_cause(self):
        try:
            try:
                raise OSError("store offline")
            except OSError as e:
                raise ResolutionError("gone", uri="urn:cap:x") from e
        except ResolutionError as e:
            wrapped = e.wrap("invalid capability chain")

        assert isinstance(wrapped.__cause__, OSError)
        assert wrapped.__suppress_context__ is True

    def test_raised_wrap_chains_to_cause(self):
        cause = OSError("store offline")
        with pytest.raises(ResolutionError) as exc_info:
            try:
                raise ResolutionError("gone") from cause
            except ResolutionError as e:
                raise e.wrap("invalid capability chain")

        assert exc_info.value.__cause__ is cause
        assert str(exc_info.value) == "invalid capability chain: gone"


class TestCapabilityFormatError:
    def test_field_and_value_in_details(self):
        exc = CapabilityFormatError("bad", field="invoker", value=42)
        assert exc.details == {"field": "invoker", "value": "42"}
        assert exc.field == "invoker"
        assert exc.value == 42

    def test_can_be_raised_and_caught_as_base(self):
        with pytest.raises(ZcapException):
            raise CapabilityFormatError("bad")


class TestConfigException:
    def test_setting_in_details(self):
        exc = ConfigException("bad level", setting="log_level")
        assert exc.details == {"setting": "log_level"}
