# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Proof-purpose checks for capabilityInvocation proofs.

Two checks apply to invocation proofs beyond the delegation chain itself:
whether the proof's ``created`` time is acceptable, and whether the signing
verification method is authorized by its controller for the
``capabilityInvocation`` purpose. Neither has a universal policy. Some
deployments never set ``created``; some controllers are not resolvable
from the verifying service. So the Verifier runs none by default, and
callers opt in by passing validators:

    verifier = Verifier(
        resolver,
        proof_purposes=[
            ProofCreatedValidator(max_clock_skew_seconds=120),
            ControllerAuthorizationValidator(did_documents),
        ],
    )
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any, Protocol, runtime_checkable

from .exceptions import CapabilityFormatError, ProofPurposeError, ResolutionError
from .models import CAPABILITY_INVOCATION, CapabilityInvocation, Proof, VerificationMethod
from .utils import format_timestamp, utc_now


@runtime_checkable
class ProofPurposeValidator(Protocol):
    """A policy check on the invocation proof, run after the invoker check."""

    def validate(self, proof: Proof, invocation: CapabilityInvocation) -> None:
        """Raise ProofPurposeError if the proof does not satisfy the policy."""
        ...


class ProofCreatedValidator:
    """Requires the proof's ``created`` time to be close to an expected time."""

    def __init__(
        self,
        expected: datetime | None = None,
        max_clock_skew_seconds: float | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """
        Args:
            expected: Time the proof should have been created at (default: now)
            max_clock_skew_seconds: Allowed distance (defaults to ZCAPLD_PROOF_MAX_CLOCK_SKEW)
            clock: Source of the current time
        """
        if max_clock_skew_seconds is None:
            from .config import get_config

            max_clock_skew_seconds = get_config().proof_max_clock_skew_seconds
        self.expected = expected
        self.max_clock_skew = timedelta(seconds=max_clock_skew_seconds)
        self.clock = clock

    def validate(self, proof: Proof, invocation: CapabilityInvocation) -> None:
        if proof.created is None:
            raise ProofPurposeError("the invocation proof has no 'created' timestamp")
        # Naive timestamps are UTC, as in parsed documents
        created = proof.created if proof.created.tzinfo else proof.created.replace(tzinfo=UTC)
        expected = self.expected or self.clock()
        if expected.tzinfo is None:
            expected = expected.replace(tzinfo=UTC)
        if abs(created - expected) > self.max_clock_skew:
            raise ProofPurposeError(
                f"proof created at {format_timestamp(created)} is outside the allowed window "
                f"around {format_timestamp(expected)}",
                details={
                    "created": format_timestamp(created),
                    "expected": format_timestamp(expected),
                    "max_clock_skew_seconds": self.max_clock_skew.total_seconds(),
                },
            )


# =============================================================================
# CONTROLLER DOCUMENTS
# =============================================================================


@dataclass(frozen=True)
class ControllerDocument:
    """The parts of a DID document relevant to capability invocation."""

    id: str
    verification_methods: tuple[VerificationMethod, ...] = ()
    capability_invocation: tuple[str, ...] = ()

    def authorizes_invocation(self, method_id: str) -> bool:
        return method_id in self.capability_invocation

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ControllerDocument:
        """Parse a DID-document-shaped dict.

        ``verificationMethod`` and ``capabilityInvocation`` may each be a
        single value or a list. Relationship entries may be method ids or
        embedded method objects.

        Raises:
            CapabilityFormatError: If a field has the wrong shape.
        """
        doc_id = data.get("id")
        if not isinstance(doc_id, str) or not doc_id:
            raise CapabilityFormatError("Controller document requires an 'id'", field="id", value=doc_id)

        methods = []
        for vm in _as_list(data.get("verificationMethod"), "verificationMethod"):
            if not isinstance(vm, Mapping):
                raise CapabilityFormatError(
                    "'verificationMethod' entries must be objects", field="verificationMethod", value=vm
                )
            methods.append(VerificationMethod.from_dict(vm))

        invocation_ids = []
        for entry in _as_list(data.get(CAPABILITY_INVOCATION), CAPABILITY_INVOCATION):
            if isinstance(entry, str) and entry:
                invocation_ids.append(entry)
            elif isinstance(entry, Mapping):
                embedded = VerificationMethod.from_dict(entry)
                methods.append(embedded)
                invocation_ids.append(embedded.id)
            else:
                raise CapabilityFormatError(
                    f"Invalid '{CAPABILITY_INVOCATION}' entry", field=CAPABILITY_INVOCATION, value=entry
                )

        return cls(
            id=doc_id,
            capability_invocation=tuple(invocation_ids),
            verification_methods=tuple(methods),
        )


def _as_list(value: Any, field: str) -> list[Any]:
    """Normalize a DID document value that may be absent, single, or a list."""
    if value is None:
        return []
    if isinstance(value, (str, Mapping)):
        return [value]
    if isinstance(value, list):
        return value
    raise CapabilityFormatError(f"'{field}' must be a value or a list", field=field, value=value)


@runtime_checkable
class ControllerResolver(Protocol):
    """Looks up controller (DID) documents."""

    def resolve(self, controller_id: str) -> ControllerDocument:
        """Raises ResolutionError if the controller is unknown."""
        ...


class InMemoryControllerResolver:
    """Resolver over a fixed set of controller documents."""

    def __init__(self, documents: Iterable[ControllerDocument] | None = None) -> None:
        self._documents: dict[str, ControllerDocument] = {}
        self._lock = threading.Lock()
        for document in documents or ():
            self.add(document)

    def add(self, document: ControllerDocument) -> None:
        with self._lock:
            self._documents[document.id] = document

    def resolve(self, controller_id: str) -> ControllerDocument:
        with self._lock:
            document = self._documents.get(controller_id)
        if document is None:
            raise ResolutionError(f"controller not found: {controller_id}", uri=controller_id)
        return document


class ControllerAuthorizationValidator:
    """Requires the controller to list the signing method under capabilityInvocation.

    The controller is the verification method's ``controller``, or the DID
    part of the method id (everything before ``#``) when none is given.
    """

    def __init__(self, resolver: ControllerResolver) -> None:
        self.resolver = resolver

    def validate(self, proof: Proof, invocation: CapabilityInvocation) -> None:
        method = invocation.verification_method
        if proof.verification_method and proof.verification_method != method.id:
            raise ProofPurposeError(
                f"proof verification method {proof.verification_method} does not match "
                f"invocation verification method {method.id}",
                details={"expected": method.id, "actual": proof.verification_method},
            )

        controller_id = method.controller or method.id.split("#", 1)[0]
        try:
            document = self.resolver.resolve(controller_id)
        except ResolutionError as e:
            raise ProofPurposeError(
                f"cannot resolve controller {controller_id}: {e.message}",
                details={"controller": controller_id},
            ) from e

        if document.id != controller_id:
            raise ProofPurposeError(
                f"resolved controller document {document.id} does not match {controller_id}",
                details={"expected": controller_id, "actual": document.id},
            )

        if not document.authorizes_invocation(method.id):
            raise ProofPurposeError(
                f"verification method {method.id} is not authorized by controller "
                f"{controller_id} for {CAPABILITY_INVOCATION}",
                details={"controller": controller_id, "verification_method": method.id},
            )
