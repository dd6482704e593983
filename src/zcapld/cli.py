# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""
zcapld CLI - verify capability invocations against documents on disk.

Commands:
  zcapld verify     Check an invocation of a capability
  zcapld inspect    Show a capability's target, invokers and delegation chain

Exit codes: 0 authorized, 1 denied, 2 unreadable input.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

from .exceptions import ZcapException
from .logging import configure_logging, correlation_context
from .models import Capability, CapabilityInvocation, EmbeddedCapability, Proof, RootReference, VerificationMethod
from .resolver import InMemoryCapabilityResolver
from .verifier import Verifier

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_DENIED = 1
EXIT_INPUT_ERROR = 2


def _load_json(path: Path) -> Any:
    with open(path) as f:
        return json.load(f)


def load_documents(paths: list[str]) -> list[dict[str, Any]]:
    """Load capability documents from files or directories of ``*.json`` files.

    A file may hold a single document or a list of documents.
    """
    documents: list[dict[str, Any]] = []
    for raw in paths:
        path = Path(raw)
        files = sorted(path.glob("*.json")) if path.is_dir() else [path]
        for file in files:
            data = _load_json(file)
            documents.extend(data if isinstance(data, list) else [data])
    return documents


def cmd_verify(args: argparse.Namespace) -> int:
    """Verify an invocation of a capability."""
    try:
        capability = Capability.from_dict(_load_json(Path(args.capability)))
        resolver = InMemoryCapabilityResolver([capability])
        for document in load_documents(args.store or []):
            resolver.add_document(document)
        logger.debug(f"Loaded {len(resolver)} capabilities")
    except (OSError, json.JSONDecodeError) as e:
        print(f"Cannot read capability documents: {e}", file=sys.stderr)
        return EXIT_INPUT_ERROR
    except ZcapException as e:
        print(f"Invalid capability document: {e.message}", file=sys.stderr)
        return EXIT_INPUT_ERROR

    proof = Proof(
        capability=capability,
        capability_action=args.action,
        verification_method=args.verification_method,
    )
    invocation = CapabilityInvocation(
        expected_action=args.expected_action if args.expected_action is not None else args.action,
        verification_method=VerificationMethod(id=args.verification_method, controller=args.controller or ""),
        expected_target=args.expected_target or "",
        expected_root_capability=args.expected_root or "",
    )

    with correlation_context() as cid:
        result = Verifier(resolver).check(proof, invocation)

    if args.json:
        print(json.dumps({**result.to_dict(), "correlation_id": cid}, indent=2))
    elif result:
        print(f"OK: {capability.id} authorizes {args.action!r} for {args.verification_method}")
    else:
        print(f"DENIED: {result.error.message}")
    return EXIT_OK if result else EXIT_DENIED


def cmd_inspect(args: argparse.Namespace) -> int:
    """Print the parts of a capability that verification looks at."""
    try:
        capability = Capability.from_dict(_load_json(Path(args.capability)))
    except (OSError, json.JSONDecodeError) as e:
        print(f"Cannot read capability document: {e}", file=sys.stderr)
        return EXIT_INPUT_ERROR
    except ZcapException as e:
        print(f"Invalid capability document: {e.message}", file=sys.stderr)
        return EXIT_INPUT_ERROR

    try:
        invokers = list(capability.invokers())
    except ZcapException as e:
        print(f"Invalid capability document: {e.message}", file=sys.stderr)
        return EXIT_INPUT_ERROR

    chain = []
    for entry in capability.capability_chain():
        if isinstance(entry, RootReference):
            chain.append({"root": entry.uri})
        elif isinstance(entry, EmbeddedCapability):
            chain.append({"capability": entry.id})

    summary = {
        "id": capability.id,
        "invocationTarget": capability.invocation_target.to_value(),
        "allowedAction": list(capability.allowed_action),
        "invokers": invokers,
        "parentCapability": capability.parent_capability,
        "root": capability.is_root,
        "capabilityChain": chain,
        "caveats": [c.to_dict() for c in capability.caveats],
    }
    print(json.dumps(summary, indent=2))
    return EXIT_OK


def app() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="zcapld",
        description="Verify authorization capability (ZCAP-LD) invocations",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  zcapld verify --capability cap.json --action read --verification-method did:ex:alice
  zcapld verify --capability delegated.json --store roots/ --action write \\
                --verification-method did:ex:bob#key-1 --controller did:ex:bob
  zcapld inspect delegated.json
        """,
    )
    parser.add_argument("--log-level", default=None, help="Log level (default: ZCAPLD_LOG_LEVEL)")

    subparsers = parser.add_subparsers(dest="command", required=True)

    verify_parser = subparsers.add_parser("verify", help="Verify a capability invocation")
    verify_parser.add_argument("--capability", "-c", required=True, help="Invoked capability document (JSON)")
    verify_parser.add_argument(
        "--store", "-s", action="append", help="File or directory of capability documents (repeatable)"
    )
    verify_parser.add_argument("--action", "-a", required=True, help="Action being invoked")
    verify_parser.add_argument("--expected-action", help="Action the service expects (default: --action)")
    verify_parser.add_argument("--verification-method", "-m", required=True, help="Signing verification method id")
    verify_parser.add_argument("--controller", help="Controller of the verification method")
    verify_parser.add_argument("--expected-target", help="Required invocation target")
    verify_parser.add_argument("--expected-root", help="Required root capability")
    verify_parser.add_argument("--json", action="store_true", help="Print the result as JSON")

    inspect_parser = subparsers.add_parser("inspect", help="Show a capability's delegation structure")
    inspect_parser.add_argument("capability", help="Capability document (JSON)")

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = app()
    args = parser.parse_args(argv)

    configure_logging(level=args.log_level, json_format=False)

    commands = {
        "verify": cmd_verify,
        "inspect": cmd_inspect,
    }

    handler = commands.get(args.command)
    if handler:
        return handler(args)

    parser.print_help()
    return EXIT_INPUT_ERROR


if __name__ == "__main__":
    sys.exit(main())
