"""Tests for zcapld.caveats module."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, ClassVar

import pytest

from zcapld.caveats import (
    _CAVEAT_TYPES,
    AllowedActionCaveat,
    Caveat,
    ExpirationCaveat,
    InvocationContext,
    InvocationTargetCaveat,
    check_caveats,
    parse_caveat,
    register_caveat,
)
from zcapld.exceptions import CapabilityFormatError, CaveatViolationError
from zcapld.models import Capability

from .conftest import NOW, ROOT_ID, invocation_for, root_document


def _context(capability: Capability, action: str = "read", now=NOW, **invocation_kwargs: Any) -> InvocationContext:
    return InvocationContext(
        capability=capability,
        root=capability,
        action=action,
        invocation=invocation_for(action=action, **invocation_kwargs),
        now=now,
    )


# ============================================================================
# Parsing
# ============================================================================


class TestParseCaveat:
    def test_expiration(self):
        caveat = parse_caveat({"type": "ExpirationCaveat", "expires": "2026-06-01T13:00:00Z"})
        assert isinstance(caveat, ExpirationCaveat)
        assert caveat.expires == NOW + timedelta(hours=1)

    def test_allowed_action(self):
        caveat = parse_caveat({"type": "AllowedActionCaveat", "allowedAction": "read"})
        assert caveat == AllowedActionCaveat(allowed_action=("read",))

    def test_invocation_target(self):
        caveat = parse_caveat({"type": "InvocationTargetCaveat", "invocationTarget": ROOT_ID})
        assert caveat == InvocationTargetCaveat(invocation_target=ROOT_ID)

    def test_unknown_type_rejected(self):
        with pytest.raises(CapabilityFormatError, match="Unknown caveat type"):
            parse_caveat({"type": "MoonPhaseCaveat"})

    def test_non_object_rejected(self):
        with pytest.raises(CapabilityFormatError):
            parse_caveat("ExpirationCaveat")

    def test_missing_fields_rejected(self):
        with pytest.raises(CapabilityFormatError):
            parse_caveat({"type": "ExpirationCaveat"})
        with pytest.raises(CapabilityFormatError):
            parse_caveat({"type": "AllowedActionCaveat", "allowedAction": []})
        with pytest.raises(CapabilityFormatError):
            parse_caveat({"type": "InvocationTargetCaveat"})

    def test_to_dict(self):
        doc = {"type": "ExpirationCaveat", "expires": "2026-06-01T13:00:00Z"}
        assert parse_caveat(doc).to_dict() == doc


class TestRegisterCaveat:
    def test_custom_caveat(self):
        @register_caveat
        @dataclass(frozen=True)
        class DenyAllCaveat(Caveat):
            type: ClassVar[str] = "DenyAllCaveat"

            def validate(self, context: InvocationContext) -> None:
                raise CaveatViolationError("denied by caveat")

            def to_dict(self) -> dict[str, Any]:
                return {"type": self.type}

            @classmethod
            def from_dict(cls, data: Mapping[str, Any]) -> DenyAllCaveat:
                return cls()

        try:
            capability = Capability.from_dict(root_document(caveat=[{"type": "DenyAllCaveat"}]))
            with pytest.raises(CaveatViolationError, match="denied by caveat"):
                check_caveats(capability, _context(capability))
        finally:
            _CAVEAT_TYPES.pop("DenyAllCaveat", None)


# ============================================================================
# Evaluation
# ============================================================================


class TestExpirationCaveat:
    def test_before_expiry_passes(self):
        caveat = ExpirationCaveat(expires=NOW + timedelta(seconds=1))
        capability = Capability.from_dict(root_document())
        caveat.validate(_context(capability))

    def test_at_expiry_fails(self):
        caveat = ExpirationCaveat(expires=NOW)
        capability = Capability.from_dict(root_document())
        with pytest.raises(CaveatViolationError, match="expiration caveat passed"):
            caveat.validate(_context(capability))


class TestAllowedActionCaveat:
    def test_restricts_action(self):
        caveat = AllowedActionCaveat(allowed_action=("read",))
        capability = Capability.from_dict(root_document(allowedAction=["read", "write"]))

        caveat.validate(_context(capability, action="read"))
        with pytest.raises(CaveatViolationError) as exc_info:
            caveat.validate(_context(capability, action="write"))
        assert exc_info.value.details["action"] == "write"


class TestInvocationTargetCaveat:
    def test_uses_root_target_by_default(self):
        capability = Capability.from_dict(root_document())
        InvocationTargetCaveat(invocation_target=ROOT_ID).validate(_context(capability))
        with pytest.raises(CaveatViolationError):
            InvocationTargetCaveat(invocation_target="urn:cap:other").validate(_context(capability))

    def test_prefers_expected_target(self):
        capability = Capability.from_dict(root_document())
        caveat = InvocationTargetCaveat(invocation_target="urn:doc:7")
        caveat.validate(_context(capability, expected_target="urn:doc:7"))


class TestCheckCaveats:
    def test_all_must_hold(self):
        capability = Capability.from_dict(root_document(caveat=[
            {"type": "AllowedActionCaveat", "allowedAction": ["read"]},
            {"type": "ExpirationCaveat", "expires": "2026-06-01T11:00:00Z"},
        ]))
        with pytest.raises(CaveatViolationError, match="expiration"):
            check_caveats(capability, _context(capability))

    def test_no_caveats(self):
        capability = Capability.from_dict(root_document())
        check_caveats(capability, _context(capability))
