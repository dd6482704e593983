# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""zcapld - Authorization capability (ZCAP-LD) invocation verification.

Given an already-authenticated capabilityInvocation proof, decides whether
the invocation is authorized: the invoked capability's delegation chain
must lead to a root capability that is independently dereferenced, the
requested action must be allowed and expected, and the signer (or its
controller) must be an invoker of the capability.

Architecture:
  models     Capability documents, invocations, proofs (immutable)
  resolver   CapabilityResolver protocol + in-memory / caching / HTTP resolvers
  verifier   Verifier.verify(proof, invocation)
  caveats    Restrictions evaluated at invocation time
  purposes   Opt-in proof-purpose validators

Signature verification, JSON-LD canonicalization and DID resolution happen
before objects reach this package.
"""

__version__ = "0.1.0"

from .caveats import (
    AllowedActionCaveat,
    Caveat,
    ExpirationCaveat,
    InvocationContext,
    InvocationTargetCaveat,
    register_caveat,
)
from .exceptions import (
    ActionMismatchError,
    ActionNotAllowedError,
    CapabilityExpiredError,
    CapabilityFormatError,
    CapabilityVerificationError,
    CaveatViolationError,
    ChainStructureError,
    ConfigException,
    InvokerUnauthorizedError,
    MissingCapabilityError,
    ProofPurposeError,
    ResolutionError,
    RootIntegrityError,
    RootMismatchError,
    TargetMismatchError,
    UnsupportedChainDepthError,
    ZcapException,
)
from .models import (
    Capability,
    CapabilityInvocation,
    EmbeddedCapability,
    InvocationTarget,
    Proof,
    RootReference,
    VerificationMethod,
)
from .purposes import (
    ControllerAuthorizationValidator,
    ControllerDocument,
    InMemoryControllerResolver,
    ProofCreatedValidator,
    ProofPurposeValidator,
)
from .resolver import (
    CachingCapabilityResolver,
    CapabilityResolver,
    HttpCapabilityResolver,
    InMemoryCapabilityResolver,
)
from .verifier import VerificationResult, Verifier, is_invoker

__all__ = [
    "ActionMismatchError",
    "ActionNotAllowedError",
    "AllowedActionCaveat",
    "CachingCapabilityResolver",
    "Capability",
    "CapabilityExpiredError",
    "CapabilityFormatError",
    "CapabilityInvocation",
    "CapabilityResolver",
    "CapabilityVerificationError",
    "Caveat",
    "CaveatViolationError",
    "ChainStructureError",
    "ConfigException",
    "ControllerAuthorizationValidator",
    "ControllerDocument",
    "EmbeddedCapability",
    "ExpirationCaveat",
    "HttpCapabilityResolver",
    "InMemoryCapabilityResolver",
    "InMemoryControllerResolver",
    "InvocationContext",
    "InvocationTarget",
    "InvocationTargetCaveat",
    "InvokerUnauthorizedError",
    "MissingCapabilityError",
    "Proof",
    "ProofCreatedValidator",
    "ProofPurposeError",
    "ProofPurposeValidator",
    "RootIntegrityError",
    "RootMismatchError",
    "RootReference",
    "ResolutionError",
    "TargetMismatchError",
    "UnsupportedChainDepthError",
    "VerificationMethod",
    "VerificationResult",
    "Verifier",
    "ZcapException",
    "is_invoker",
]
