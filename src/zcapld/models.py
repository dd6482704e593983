# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Capability data model.

A capability document (security v2 context) looks like::

    {
        "@context": "https://w3id.org/security/v2",
        "id": "urn:zcap:delegated",
        "parentCapability": "urn:zcap:root",
        "invocationTarget": {"id": "urn:zcap:root", "type": "urn:edv:document"},
        "invoker": "did:example:alice",
        "allowedAction": ["read"],
        "proof": [{
            "type": "Ed25519Signature2018",
            "proofPurpose": "capabilityDelegation",
            "capabilityChain": ["urn:zcap:root"],
            ...
        }]
    }

Signatures are verified before documents reach this module; parsing only
checks shape. All model objects are immutable.
"""

from __future__ import annotations

import copy
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Union

from .caveats import Caveat, parse_caveat
from .exceptions import CapabilityFormatError, ChainStructureError
from .utils import as_string_tuple, compact, format_timestamp, parse_timestamp

SECURITY_V2_CONTEXT = "https://w3id.org/security/v2"

CAPABILITY_DELEGATION = "capabilityDelegation"
CAPABILITY_INVOCATION = "capabilityInvocation"


@dataclass(frozen=True)
class InvocationTarget:
    """The resource a capability authorizes action on."""

    id: str
    type: str = ""

    @classmethod
    def from_value(cls, value: Any) -> InvocationTarget:
        """Parse either a bare URI or an ``{"id", "type"}`` object."""
        if isinstance(value, str) and value:
            return cls(id=value)
        if isinstance(value, Mapping):
            target_id = value.get("id")
            target_type = value.get("type", "")
            if isinstance(target_id, str) and target_id and isinstance(target_type, str):
                return cls(id=target_id, type=target_type)
        raise CapabilityFormatError("Invalid invocationTarget", field="invocationTarget", value=value)

    def to_value(self) -> str | dict[str, str]:
        if not self.type:
            return self.id
        return {"id": self.id, "type": self.type}


@dataclass(frozen=True)
class RootReference:
    """First entry of a delegation chain: the root capability's URI."""

    uri: str


@dataclass(frozen=True)
class EmbeddedCapability:
    """A later delegation chain entry: a full capability document."""

    capability: Capability

    @property
    def id(self) -> str:
        return self.capability.id


ChainEntry = Union[RootReference, EmbeddedCapability]


@dataclass(frozen=True)
class Capability:
    """A grant of authority over an invocation target.

    Attributes:
        id: Unique capability URI
        invocation_target: What the capability authorizes action on
        allowed_action: Permitted actions (empty means unrestricted)
        controller: Principals controlling the capability
        invoker: Principals allowed to invoke it
        delegator: Principals allowed to delegate it
        parent_capability: URI of the capability this one was delegated from
        expires: Expiry time, if any
        caveats: Additional restrictions evaluated at invocation time
        delegation_chain: Raw ``capabilityChain`` of the delegation proof
        proof: Raw proof objects, kept for serialization
    """

    id: str
    invocation_target: InvocationTarget
    allowed_action: tuple[str, ...] = ()
    controller: tuple[str, ...] = ()
    invoker: tuple[str, ...] = ()
    delegator: tuple[str, ...] = ()
    parent_capability: str | None = None
    expires: datetime | None = None
    caveats: tuple[Caveat, ...] = ()
    delegation_chain: tuple[Any, ...] = ()
    proof: tuple[dict[str, Any], ...] = field(default=(), compare=False)

    @property
    def is_root(self) -> bool:
        """A capability without a delegation chain is its own root."""
        return not self.delegation_chain

    def is_expired(self, now: datetime) -> bool:
        """Check whether ``now`` is at or past the expiry time."""
        return self.expires is not None and now >= self.expires

    # -------------------------------------------------------------------------
    # Delegation chain
    # -------------------------------------------------------------------------

    def capability_chain(self) -> tuple[ChainEntry, ...]:
        """Return the delegation chain as tagged entries.

        Strings become RootReference, objects become EmbeddedCapability.

        Raises:
            ChainStructureError: If an entry is neither, or an embedded
                document cannot be parsed.
        """
        entries: list[ChainEntry] = []
        for index, entry in enumerate(self.delegation_chain):
            if isinstance(entry, str):
                entries.append(RootReference(uri=entry))
            elif isinstance(entry, Mapping):
                try:
                    entries.append(EmbeddedCapability(capability=Capability.from_dict(entry)))
                except CapabilityFormatError as e:
                    raise ChainStructureError(
                        f"capabilityChain entry {index} is not a valid capability: {e.message}",
                        details={"index": index, **e.details},
                    ) from e
            else:
                raise ChainStructureError(
                    f"capabilityChain entry {index} must be a URI or a capability document: {entry!r}",
                    details={"index": index},
                )
        return tuple(entries)

    def validate_capability_chain(self) -> None:
        """Check that the delegation chain has a supported shape.

        Either empty, or a root URI followed only by full capability
        documents. When ``parent_capability`` is set it must name the last
        chain entry.

        Raises:
            ChainStructureError: On any other shape.
        """
        chain = self.capability_chain()
        if not chain:
            return

        first = chain[0]
        if isinstance(first, RootReference) and not first.uri:
            raise ChainStructureError("capabilityChain root URI must not be empty")

        for index, entry in enumerate(chain[1:], start=1):
            if not isinstance(entry, EmbeddedCapability):
                raise ChainStructureError(
                    f"capabilityChain entry {index} must be a full capability document, got URI {entry.uri!r}",
                    details={"index": index},
                )

        if self.parent_capability is not None:
            last = chain[-1]
            last_id = last.uri if isinstance(last, RootReference) else last.id
            if last_id != self.parent_capability:
                raise ChainStructureError(
                    f"last capabilityChain entry {last_id!r} does not match "
                    f"parentCapability {self.parent_capability!r}",
                    details={"expected": self.parent_capability, "actual": last_id},
                )

    # -------------------------------------------------------------------------
    # Invokers
    # -------------------------------------------------------------------------

    def invokers(self) -> tuple[str, ...]:
        """Principals authorized to invoke this capability.

        The ``invoker`` values if any, otherwise the ``controller`` values,
        otherwise nothing.

        Raises:
            CapabilityFormatError: If an entry is not a non-empty string.
        """
        candidates = self.invoker or self.controller
        for candidate in candidates:
            if not isinstance(candidate, str) or not candidate:
                raise CapabilityFormatError(
                    f"Invalid invoker in capability {self.id}", field="invoker", value=candidate
                )
        return tuple(candidates)

    # -------------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------------

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Capability:
        """Parse a capability document.

        Raises:
            CapabilityFormatError: If a field is missing or has the wrong type.
            ChainStructureError: If the delegation chain has an unsupported shape.
        """
        if not isinstance(data, Mapping):
            raise CapabilityFormatError("Capability document must be an object", value=data)

        capability_id = data.get("id")
        if not isinstance(capability_id, str) or not capability_id:
            raise CapabilityFormatError("Capability requires an 'id'", field="id", value=capability_id)

        # A capability without an explicit target targets itself
        raw_target = data.get("invocationTarget", capability_id)

        parent = data.get("parentCapability")
        if parent is not None and not isinstance(parent, str):
            raise CapabilityFormatError("'parentCapability' must be a URI", field="parentCapability", value=parent)

        raw_caveats = data.get("caveat", [])
        if isinstance(raw_caveats, Mapping):
            raw_caveats = [raw_caveats]
        if not isinstance(raw_caveats, list):
            raise CapabilityFormatError("'caveat' must be a list", field="caveat", value=raw_caveats)

        proofs = _proof_list(data.get("proof"))

        capability = cls(
            id=capability_id,
            invocation_target=InvocationTarget.from_value(raw_target),
            allowed_action=as_string_tuple(data.get("allowedAction"), "allowedAction"),
            controller=as_string_tuple(data.get("controller"), "controller"),
            invoker=as_string_tuple(data.get("invoker"), "invoker"),
            delegator=as_string_tuple(data.get("delegator"), "delegator"),
            parent_capability=parent,
            expires=parse_timestamp(data.get("expires"), "expires"),
            caveats=tuple(parse_caveat(c) for c in raw_caveats),
            delegation_chain=_delegation_chain(proofs),
            proof=proofs,
        )
        capability.validate_capability_chain()
        return capability

    def to_dict(self) -> dict[str, Any]:
        """Convert to a capability document."""
        doc: dict[str, Any] = {
            "@context": SECURITY_V2_CONTEXT,
            "id": self.id,
            "invocationTarget": self.invocation_target.to_value(),
        }
        if self.parent_capability:
            doc["parentCapability"] = self.parent_capability
        for key, values in (
            ("controller", self.controller),
            ("invoker", self.invoker),
            ("delegator", self.delegator),
        ):
            value = compact(values)
            if value is not None:
                doc[key] = value
        if self.allowed_action:
            doc["allowedAction"] = list(self.allowed_action)
        if self.expires:
            doc["expires"] = format_timestamp(self.expires)
        if self.caveats:
            doc["caveat"] = [c.to_dict() for c in self.caveats]
        if self.proof:
            doc["proof"] = [copy.deepcopy(p) for p in self.proof]
        elif self.delegation_chain:
            doc["proof"] = [{
                "proofPurpose": CAPABILITY_DELEGATION,
                "capabilityChain": copy.deepcopy(list(self.delegation_chain)),
            }]
        return doc


def _proof_list(raw: Any) -> tuple[dict[str, Any], ...]:
    if raw is None:
        return ()
    if isinstance(raw, Mapping):
        raw = [raw]
    if not isinstance(raw, list) or not all(isinstance(p, Mapping) for p in raw):
        raise CapabilityFormatError("'proof' must be an object or a list of objects", field="proof")
    return tuple(copy.deepcopy(dict(p)) for p in raw)


def _delegation_chain(proofs: tuple[dict[str, Any], ...]) -> tuple[Any, ...]:
    """Pull ``capabilityChain`` out of the first capabilityDelegation proof."""
    for proof in proofs:
        if proof.get("proofPurpose") != CAPABILITY_DELEGATION:
            continue
        chain = proof.get("capabilityChain")
        if not isinstance(chain, list) or not chain:
            raise ChainStructureError(
                "capabilityDelegation proof must carry a non-empty 'capabilityChain' list",
                details={"capabilityChain": repr(chain)},
            )
        return tuple(chain)
    return ()


# =============================================================================
# INVOCATION
# =============================================================================


@dataclass(frozen=True)
class VerificationMethod:
    """A key or identity that signed an invocation."""

    id: str
    controller: str = ""
    type: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> VerificationMethod:
        method_id = data.get("id")
        if not isinstance(method_id, str) or not method_id:
            raise CapabilityFormatError("Verification method requires an 'id'", field="id", value=method_id)
        controller = data.get("controller", "")
        if not isinstance(controller, str):
            raise CapabilityFormatError("'controller' must be a string", field="controller", value=controller)
        return cls(id=method_id, controller=controller, type=str(data.get("type", "")))

    def to_dict(self) -> dict[str, Any]:
        doc: dict[str, Any] = {"id": self.id}
        if self.type:
            doc["type"] = self.type
        if self.controller:
            doc["controller"] = self.controller
        return doc


@dataclass(frozen=True)
class CapabilityInvocation:
    """What the verifying service expects of an invocation.

    Attributes:
        expected_action: Action the invoker claims to perform
        verification_method: Key or identity that signed the invocation
        expected_target: Required invocation target ('' = unchecked)
        expected_root_capability: Required root capability ('' = unchecked)
    """

    expected_action: str
    verification_method: VerificationMethod
    expected_target: str = ""
    expected_root_capability: str = ""


@dataclass(frozen=True)
class Proof:
    """The capabilityInvocation proof being verified.

    Attributes:
        capability: The invoked capability, already dereferenced
        capability_action: Action the proof is for
        verification_method: Id of the method that produced the signature
        created: The proof's ``created`` timestamp, if present
    """

    capability: Capability | None
    capability_action: str = ""
    verification_method: str = ""
    created: datetime | None = None
