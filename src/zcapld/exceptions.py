# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Exception hierarchy for zcapld.

Two families live here:

- Format and configuration errors: the input itself is unusable
  (a capability document with a malformed invoker list, a bad setting).
- Verification errors: ordinary negative authorization results. The caller
  denies the request; nothing about the process is broken.

Every exception carries a ``details`` dict with the offending URIs and the
expected vs. actual values so the caller can write an audit record.
"""

from __future__ import annotations

import copy
from typing import Any


class ZcapException(Exception):  # noqa: N818
    """Base exception for all zcapld errors."""

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


class CapabilityFormatError(ZcapException):
    """A capability document or one of its fields is malformed.

    Raised when:
    - A required field (``id``, ``invocationTarget``) is missing
    - A field has the wrong JSON type
    - An invoker or controller entry is not a non-empty string
    - A caveat has an unknown type
    """

    def __init__(self, message: str, field: str | None = None, value: Any = None):
        details = {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)
        super().__init__(message, details)
        self.field = field
        self.value = value


class ConfigException(ZcapException):
    """Exception for configuration errors."""

    def __init__(self, message: str, setting: str | None = None):
        details = {}
        if setting:
            details["setting"] = setting
        super().__init__(message, details)
        self.setting = setting


# =============================================================================
# VERIFICATION RESULTS
# =============================================================================


class CapabilityVerificationError(ZcapException):
    """Base class for a failed capability invocation check."""

    def wrap(self, prefix: str) -> CapabilityVerificationError:
        """Return an error of the same kind with ``prefix`` prepended to the message.

        The wrapped error keeps the original cause, so raising it without
        ``from`` still chains to the collaborator failure.
        """
        wrapped = copy.copy(self)
        wrapped.message = f"{prefix}: {self.message}"
        wrapped.details = dict(self.details)
        wrapped.args = (wrapped.message,)
        wrapped.__cause__ = self.__cause__
        wrapped.__suppress_context__ = True
        return wrapped


class MissingCapabilityError(CapabilityVerificationError):
    """The invocation proof carries no capability."""


class ChainStructureError(CapabilityVerificationError):
    """The delegation chain has an unsupported shape or a non-string root URI."""


class ActionNotAllowedError(CapabilityVerificationError):
    """The intended action is outside the capability's allowed actions."""


class ActionMismatchError(CapabilityVerificationError):
    """The invocation expects a different action than the one being proven."""


class ResolutionError(CapabilityVerificationError):
    """A capability could not be dereferenced by the resolver."""

    def __init__(self, message: str, uri: str | None = None, details: dict | None = None):
        details = dict(details or {})
        if uri:
            details["uri"] = uri
        super().__init__(message, details)
        self.uri = uri


class TargetMismatchError(CapabilityVerificationError):
    """The expected invocation target differs from the root capability's target."""


class RootMismatchError(CapabilityVerificationError):
    """The expected root capability differs from the resolved root."""


class RootIntegrityError(CapabilityVerificationError):
    """The root capability's invocation target is not the root itself."""


class UnsupportedChainDepthError(CapabilityVerificationError):
    """The delegation chain is deeper than one hop."""


class InvokerUnauthorizedError(CapabilityVerificationError):
    """Neither the verification method nor its controller is an invoker."""


class CapabilityExpiredError(CapabilityVerificationError):
    """A capability in the chain is past its expiry time."""


class CaveatViolationError(CapabilityVerificationError):
    """A caveat attached to a capability does not hold for this invocation."""


class ProofPurposeError(CapabilityVerificationError):
    """The invocation proof fails a configured proof-purpose check."""
