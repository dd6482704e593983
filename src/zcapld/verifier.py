# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Capability invocation verification.

Decides whether an already-authenticated capabilityInvocation proof is
authorized:

1. The delegation chain of the invoked capability is valid and rooted in a
   root capability that is dereferenced through the resolver, never taken
   from the invocation itself.
2. The invoker (the verification method, or its controller) is one of the
   capability's invokers.
3. Any configured proof-purpose validators accept the proof.

Only one delegation hop is supported. Deeper chains are rejected with
UnsupportedChainDepthError rather than partially checked.

Example:
    verifier = Verifier(InMemoryCapabilityResolver([root]))
    verifier.verify(
        Proof(capability=root, capability_action="read"),
        CapabilityInvocation(
            expected_action="read",
            verification_method=VerificationMethod(id="did:example:alice"),
        ),
    )
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime

from .caveats import InvocationContext, check_caveats
from .exceptions import (
    ActionMismatchError,
    ActionNotAllowedError,
    CapabilityExpiredError,
    CapabilityFormatError,
    CapabilityVerificationError,
    ChainStructureError,
    InvokerUnauthorizedError,
    MissingCapabilityError,
    ResolutionError,
    RootIntegrityError,
    RootMismatchError,
    TargetMismatchError,
    UnsupportedChainDepthError,
    ZcapException,
)
from .models import Capability, CapabilityInvocation, Proof, RootReference, VerificationMethod
from .purposes import ProofPurposeValidator
from .resolver import CapabilityResolver
from .utils import format_timestamp, utc_now

logger = logging.getLogger(__name__)


class Verifier:
    """Verifies capability invocations against their delegation chain.

    Holds no mutable state; one instance can serve concurrent verifications
    as long as the resolver is thread-safe.
    """

    def __init__(
        self,
        resolver: CapabilityResolver,
        *,
        proof_purposes: Iterable[ProofPurposeValidator] = (),
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """
        Args:
            resolver: Dereferences root capabilities by URI
            proof_purposes: Validators run on the proof after the invoker check
            clock: Source of the current (timezone-aware) time for expiry and caveats
        """
        self.resolver = resolver
        self.proof_purposes = tuple(proof_purposes)
        self.clock = clock

    def verify(self, proof: Proof, invocation: CapabilityInvocation) -> None:
        """Verify the proof against the invocation.

        Every denial, including a malformed invoker list, is logged at INFO.

        Raises:
            CapabilityVerificationError: A subclass naming why the invocation
                is not authorized.
            CapabilityFormatError: If the capability's invoker list is malformed.
        """
        try:
            self._verify(proof, invocation)
        except ZcapException as e:
            capability_id = proof.capability.id if proof.capability is not None else None
            logger.info(
                f"Capability invocation denied: {e.message}",
                extra={"extra_data": {"capability": capability_id, **e.to_dict()}},
            )
            raise

    def _verify(self, proof: Proof, invocation: CapabilityInvocation) -> None:
        capability = proof.capability
        if capability is None:
            raise MissingCapabilityError('"capability" was not found in the capability invocation proof')

        # The capability has already been dereferenced and parsed by the caller
        try:
            self._verify_capability_chain(capability, proof.capability_action, invocation)
        except CapabilityVerificationError as e:
            raise e.wrap("invalid capability chain")

        # The authorized invoker must match the verification method itself
        # or the controller of the verification method
        try:
            authorized = is_invoker(capability, invocation.verification_method)
        except CapabilityFormatError as e:
            raise CapabilityFormatError(
                f"isInvoker: failed to fetch invokers: {e.message}", field=e.field, value=e.value
            ) from e

        if not authorized:
            raise InvokerUnauthorizedError(
                "the authorized invoker does not match the verification method or its controller",
                details={
                    "verification_method": invocation.verification_method.id,
                    "controller": invocation.verification_method.controller,
                    "invokers": list(capability.invokers()),
                },
            )

        for validator in self.proof_purposes:
            validator.validate(proof, invocation)

        logger.debug(f"Capability invocation verified: {capability.id} action={proof.capability_action!r}")

    def _verify_capability_chain(
        self,
        capability: Capability,
        intended_action: str,
        invocation: CapabilityInvocation,
    ) -> None:
        # Ensure the intended action, if given, is allowed; if the capability
        # restricts actions via allowedAction then it must be in the set.
        if capability.allowed_action and intended_action and intended_action not in capability.allowed_action:
            raise ActionNotAllowedError(
                f'capability action "{intended_action}" is not allowed by the capability; '
                f"allowed actions are: {list(capability.allowed_action)}",
                details={"action": intended_action, "allowed": list(capability.allowed_action)},
            )

        if invocation.expected_action != intended_action:
            raise ActionMismatchError(
                f'capability action "{intended_action}" does not match the expected '
                f'capability action of "{invocation.expected_action}"',
                details={"expected": invocation.expected_action, "actual": intended_action},
            )

        try:
            capability.validate_capability_chain()
        except ChainStructureError as e:
            raise e.wrap("invalid capability chain")

        chain = list(capability.capability_chain())

        # The root capability must *always* be dereferenced: it carries no
        # delegation proof vouching for it, so a root submitted inline is
        # never trusted as-is.
        is_root = not chain
        if is_root:
            root_uri = capability.id
        else:
            first = chain.pop(0)
            if not isinstance(first, RootReference):
                raise ChainStructureError(
                    f"invalid rootURI format: {first!r}",
                    details={"capability": capability.id},
                )
            root_uri = first.uri

        try:
            root = self.resolver.resolve(root_uri)
        except ResolutionError as e:
            raise ResolutionError(
                f"failed to resolve root capability URI {root_uri}: {e.message}",
                uri=root_uri,
                details=e.details,
            ) from e
        except Exception as e:
            raise ResolutionError(
                f"failed to resolve root capability URI {root_uri}: {e}", uri=root_uri
            ) from e

        # Delegation cannot widen the actions the root allows
        if root.allowed_action and intended_action and intended_action not in root.allowed_action:
            raise ActionNotAllowedError(
                f'capability action "{intended_action}" is not allowed by the root capability; '
                f"allowed actions are: {list(root.allowed_action)}",
                details={"action": intended_action, "allowed": list(root.allowed_action), "root": root.id},
            )

        if invocation.expected_target and invocation.expected_target != root.invocation_target.id:
            raise TargetMismatchError(
                "expected target does not match root capability target: "
                f'expected="{invocation.expected_target}" target="{root.invocation_target.id}"',
                details={"expected": invocation.expected_target, "actual": root.invocation_target.id},
            )

        now = self.clock()
        context = InvocationContext(
            capability=capability,
            root=root,
            action=intended_action,
            invocation=invocation,
            now=now,
        )
        _check_restrictions(root, context)

        if invocation.expected_root_capability and invocation.expected_root_capability != root.id:
            raise RootMismatchError(
                "expected root capability does not match actual root capability: "
                f"expected=({invocation.expected_root_capability}) actual=({root.id})",
                details={"expected": invocation.expected_root_capability, "actual": root.id},
            )

        if not invocation.expected_root_capability and root.invocation_target.id != root.id:
            raise RootIntegrityError(
                "the root capability must not specify a different invocation target",
                details={"root": root.id, "target": root.invocation_target.id},
            )

        if is_root:
            return

        if chain:
            raise UnsupportedChainDepthError(
                "multiple capability chains not supported yet",
                details={"capability": capability.id, "depth": len(chain) + 1},
            )

        # One-hop delegation: the delegated capability's own restrictions
        _check_restrictions(capability, context)

    def check(self, proof: Proof, invocation: CapabilityInvocation) -> VerificationResult:
        """Verify and return the outcome instead of raising.

        Only zcapld errors are captured; anything else propagates.
        """
        error: ZcapException | None = None
        try:
            self.verify(proof, invocation)
        except ZcapException as e:
            error = e
        return VerificationResult(
            is_valid=error is None,
            error=error,
            capability_id=proof.capability.id if proof.capability is not None else None,
            action=proof.capability_action,
            checked_at=self.clock(),
        )


def _check_restrictions(capability: Capability, context: InvocationContext) -> None:
    """Evaluate caveats and expiry of one capability in the chain."""
    check_caveats(capability, context)
    if capability.is_expired(context.now):
        raise CapabilityExpiredError(
            f"capability {capability.id} expired at {format_timestamp(capability.expires)}",
            details={"capability": capability.id, "expires": format_timestamp(capability.expires)},
        )


def is_invoker(capability: Capability, verification_method: VerificationMethod) -> bool:
    """Check whether the method, or its controller, is an invoker of the capability.

    An empty invoker list authorizes nobody.

    Raises:
        CapabilityFormatError: If the invoker list is malformed.
    """
    invokers = capability.invokers()
    if not invokers:
        return False
    controller = verification_method.controller
    return verification_method.id in invokers or (bool(controller) and controller in invokers)


@dataclass
class VerificationResult:
    """Outcome of ``Verifier.check``.

    Example:
        result = verifier.check(proof, invocation)
        if not result:
            return deny(result.error.to_dict())
    """

    is_valid: bool
    error: ZcapException | None = None
    capability_id: str | None = None
    action: str = ""
    checked_at: datetime = field(default_factory=utc_now)

    def __bool__(self) -> bool:
        return self.is_valid

    def raise_if_invalid(self) -> None:
        if self.error is not None:
            raise self.error

    def to_dict(self) -> dict:
        return {
            "valid": self.is_valid,
            "capability": self.capability_id,
            "action": self.action,
            "checked_at": format_timestamp(self.checked_at),
            "error": self.error.to_dict() if self.error else None,
        }
