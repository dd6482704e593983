"""Global test fixtures for the zcapld test suite."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

import pytest

from zcapld.config import clear_config_cache
from zcapld.models import Capability, CapabilityInvocation, Proof, VerificationMethod
from zcapld.resolver import InMemoryCapabilityResolver
from zcapld.verifier import Verifier

NOW = datetime(2026, 6, 1, 12, 0, 0, tzinfo=UTC)

ROOT_ID = "urn:cap:1"
ALICE = "did:ex:alice"
BOB = "did:ex:bob"


@pytest.fixture(autouse=True)
def _clean_config(monkeypatch):
    """Keep ZCAPLD_* settings from the environment out of tests."""
    for name in (
        "ZCAPLD_LOG_LEVEL",
        "ZCAPLD_LOG_FORMAT",
        "ZCAPLD_LOG_FILE",
        "ZCAPLD_MODULE_LOG_LEVELS",
        "ZCAPLD_CACHE_MAX_SIZE",
        "ZCAPLD_RESOLVER_CACHE_TTL",
        "ZCAPLD_RESOLVER_TIMEOUT",
        "ZCAPLD_RESOLVER_BASE_URL",
        "ZCAPLD_PROOF_MAX_CLOCK_SKEW",
    ):
        monkeypatch.delenv(name, raising=False)
    clear_config_cache()
    yield
    clear_config_cache()


def root_document(**overrides: Any) -> dict[str, Any]:
    """Root capability document: its own invocation target, invoked by alice."""
    doc: dict[str, Any] = {
        "@context": "https://w3id.org/security/v2",
        "id": ROOT_ID,
        "invocationTarget": {"id": ROOT_ID, "type": "urn:edv:document"},
        "allowedAction": ["read"],
        "invoker": ALICE,
    }
    doc.update(overrides)
    return doc


def delegated_document(chain: list[Any] | None = None, **overrides: Any) -> dict[str, Any]:
    """Capability delegated one hop from the root to bob."""
    doc: dict[str, Any] = {
        "@context": "https://w3id.org/security/v2",
        "id": "urn:cap:delegated",
        "parentCapability": ROOT_ID,
        "invocationTarget": {"id": ROOT_ID, "type": "urn:edv:document"},
        "allowedAction": ["read"],
        "invoker": BOB,
        "proof": [{
            "type": "Ed25519Signature2018",
            "proofPurpose": "capabilityDelegation",
            "capabilityChain": chain if chain is not None else [ROOT_ID],
            "verificationMethod": f"{ALICE}#key-1",
        }],
    }
    doc.update(overrides)
    return doc


def invocation_for(
    method_id: str = ALICE,
    action: str = "read",
    controller: str = "",
    **kwargs: Any,
) -> CapabilityInvocation:
    return CapabilityInvocation(
        expected_action=action,
        verification_method=VerificationMethod(id=method_id, controller=controller),
        **kwargs,
    )


@pytest.fixture
def root_capability() -> Capability:
    return Capability.from_dict(root_document())


@pytest.fixture
def delegated_capability() -> Capability:
    return Capability.from_dict(delegated_document())


@pytest.fixture
def resolver(root_capability) -> InMemoryCapabilityResolver:
    return InMemoryCapabilityResolver([root_capability])


@pytest.fixture
def verifier(resolver) -> Verifier:
    return Verifier(resolver, clock=lambda: NOW)


@pytest.fixture
def root_proof(root_capability) -> Proof:
    return Proof(capability=root_capability, capability_action="read", verification_method=ALICE)
