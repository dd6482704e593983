# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Caveats: conditional restrictions attached to a capability.

A caveat is a predicate evaluated against the invocation being verified.
Capability documents carry them under ``caveat``::

    "caveat": [
        {"type": "ExpirationCaveat", "expires": "2026-12-01T00:00:00Z"},
        {"type": "AllowedActionCaveat", "allowedAction": ["read"]}
    ]

Unknown caveat types are rejected when the document is parsed, so a
capability never verifies with a restriction nobody evaluated.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any, ClassVar

from .exceptions import CapabilityFormatError, CaveatViolationError
from .utils import as_string_tuple, format_timestamp, parse_timestamp

if TYPE_CHECKING:
    from .models import Capability, CapabilityInvocation


@dataclass(frozen=True)
class InvocationContext:
    """What a caveat is evaluated against.

    Attributes:
        capability: The capability being invoked
        root: The dereferenced root of its delegation chain
        action: The action being exercised
        invocation: The invocation request
        now: Verification time (timezone-aware)
    """

    capability: Capability
    root: Capability
    action: str
    invocation: CapabilityInvocation
    now: datetime


class Caveat(ABC):
    """Base class for caveat predicates."""

    type: ClassVar[str]

    @abstractmethod
    def validate(self, context: InvocationContext) -> None:
        """Raise CaveatViolationError if the caveat does not hold."""

    @abstractmethod
    def to_dict(self) -> dict[str, Any]:
        """Serialize to the document form."""

    @classmethod
    @abstractmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Caveat:
        """Parse from the document form."""


@dataclass(frozen=True)
class ExpirationCaveat(Caveat):
    """The capability may not be invoked at or after ``expires``."""

    type: ClassVar[str] = "ExpirationCaveat"

    expires: datetime

    def validate(self, context: InvocationContext) -> None:
        if context.now >= self.expires:
            raise CaveatViolationError(
                f"expiration caveat passed at {format_timestamp(self.expires)}",
                details={"caveat": self.type, "expires": format_timestamp(self.expires)},
            )

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "expires": format_timestamp(self.expires)}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ExpirationCaveat:
        expires = parse_timestamp(data.get("expires"), "caveat.expires")
        if expires is None:
            raise CapabilityFormatError("ExpirationCaveat requires 'expires'", field="caveat.expires")
        return cls(expires=expires)


@dataclass(frozen=True)
class AllowedActionCaveat(Caveat):
    """Narrows the actions the capability may be invoked for."""

    type: ClassVar[str] = "AllowedActionCaveat"

    allowed_action: tuple[str, ...]

    def validate(self, context: InvocationContext) -> None:
        if context.action not in self.allowed_action:
            raise CaveatViolationError(
                f'action "{context.action}" is restricted by caveat; allowed actions are: '
                f"{list(self.allowed_action)}",
                details={"caveat": self.type, "action": context.action, "allowed": list(self.allowed_action)},
            )

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "allowedAction": list(self.allowed_action)}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> AllowedActionCaveat:
        actions = as_string_tuple(data.get("allowedAction"), "caveat.allowedAction")
        if not actions:
            raise CapabilityFormatError(
                "AllowedActionCaveat requires 'allowedAction'", field="caveat.allowedAction"
            )
        return cls(allowed_action=actions)


@dataclass(frozen=True)
class InvocationTargetCaveat(Caveat):
    """Pins the invocation to one target.

    The invocation's expected target is compared when given, otherwise the
    root capability's target.
    """

    type: ClassVar[str] = "InvocationTargetCaveat"

    invocation_target: str

    def validate(self, context: InvocationContext) -> None:
        target = context.invocation.expected_target or context.root.invocation_target.id
        if target != self.invocation_target:
            raise CaveatViolationError(
                f'invocation target "{target}" is restricted by caveat to "{self.invocation_target}"',
                details={"caveat": self.type, "expected": self.invocation_target, "actual": target},
            )

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "invocationTarget": self.invocation_target}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> InvocationTargetCaveat:
        target = data.get("invocationTarget")
        if not isinstance(target, str) or not target:
            raise CapabilityFormatError(
                "InvocationTargetCaveat requires 'invocationTarget'",
                field="caveat.invocationTarget",
                value=target,
            )
        return cls(invocation_target=target)


# =============================================================================
# REGISTRY
# =============================================================================

_CAVEAT_TYPES: dict[str, type[Caveat]] = {}


def register_caveat(cls: type[Caveat]) -> type[Caveat]:
    """Register a caveat class under its ``type`` name. Usable as a decorator."""
    _CAVEAT_TYPES[cls.type] = cls
    return cls


for _cls in (ExpirationCaveat, AllowedActionCaveat, InvocationTargetCaveat):
    register_caveat(_cls)


def parse_caveat(data: Any) -> Caveat:
    """Parse one caveat document.

    Raises:
        CapabilityFormatError: If the document is not an object or its type is unknown.
    """
    if not isinstance(data, Mapping):
        raise CapabilityFormatError("caveat must be an object", field="caveat", value=data)
    caveat_type = data.get("type")
    cls = _CAVEAT_TYPES.get(caveat_type) if isinstance(caveat_type, str) else None
    if cls is None:
        raise CapabilityFormatError(f"Unknown caveat type: {caveat_type!r}", field="caveat.type", value=caveat_type)
    return cls.from_dict(data)


def check_caveats(capability: Capability, context: InvocationContext) -> None:
    """Evaluate every caveat on ``capability``; the first violation propagates."""
    for caveat in capability.caveats:
        caveat.validate(context)
