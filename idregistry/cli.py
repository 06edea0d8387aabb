#!/usr/bin/env python3
"""
Identity Registry Command Line Interface

Usage:
    idregistry init --admin <addr>
    idregistry register --caller <addr> --name <name>
    idregistry attest --caller <addr> --target <addr>
    idregistry lookup --target <addr>
    idregistry history --target <addr>
    idregistry verify-journal
    idregistry keygen [--output <file>]
    idregistry serve [--host <host>] [--port <port>]
"""

import argparse
import json
import os
import sys
from typing import List, Optional

from .errors import RegistryError
from .journal import verify_chain
from .registry import IdentityRegistry
from .sqlite_store import SQLiteRegistryStore


def print_json(data) -> None:
    print(json.dumps(data, indent=2, sort_keys=True))


def save_json(data: dict, path: str):
    """Save JSON to file."""
    with open(path, 'w') as f:
        json.dump(data, f, indent=2)


def open_registry(args) -> IdentityRegistry:
    return IdentityRegistry(SQLiteRegistryStore(args.db))


def cmd_init(args):
    """Bootstrap a new registry database."""
    registry = IdentityRegistry.bootstrap(SQLiteRegistryStore(args.db), args.admin)
    print_json(registry.info().to_dict())
    return 0


def cmd_register(args):
    record = open_registry(args).register(args.caller, args.name)
    print_json(record.to_dict())
    return 0


def cmd_attest(args):
    record = open_registry(args).attest(args.caller, args.target)
    print_json(record.to_dict())
    return 0


def cmd_lookup(args):
    record = open_registry(args).lookup(args.target)
    print_json(record.to_view() if args.view else record.to_dict())
    return 0


def cmd_history(args):
    entries = open_registry(args).history(args.target)
    print_json([e.to_dict() for e in entries])
    return 0


def cmd_verify_journal(args):
    """Recompute the attestation journal hash chain."""
    entries = open_registry(args).journal()
    bad = verify_chain(entries)
    if bad is not None:
        print(f"FAIL: chain mismatch at seq {bad}", file=sys.stderr)
        return 1
    head = entries[-1].entry_hash if entries else None
    print_json({"entries": len(entries), "head_entry_hash": head, "valid": True})
    return 0


def cmd_keygen(args):
    """Generate an Ed25519 account key pair."""
    from .signing import generate_key_pair

    key_pair = generate_key_pair()
    if args.output:
        save_json(key_pair.to_dict(), args.output)
        print(f"Key saved to: {args.output}", file=sys.stderr)
        print_json({"principal": key_pair.principal, "public_key": key_pair.verify_key.hex()})
    else:
        print_json(key_pair.to_dict())
    return 0


def cmd_serve(args):
    """Run the HTTP service."""
    import uvicorn

    os.environ["REGISTRY_STORE"] = "sqlite"
    os.environ["REGISTRY_DB_PATH"] = args.db
    uvicorn.run(
        "idregistry_service.main:create_app",
        factory=True,
        host=args.host,
        port=args.port,
        reload=args.reload,
    )
    return 0


COMMANDS = {
    "init": cmd_init,
    "register": cmd_register,
    "attest": cmd_attest,
    "lookup": cmd_lookup,
    "history": cmd_history,
    "verify-journal": cmd_verify_journal,
    "keygen": cmd_keygen,
    "serve": cmd_serve,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="idregistry",
        description="Identity attestation registry CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  idregistry init --admin 0x1
  idregistry register --caller 0xa11ce --name "John Doe"
  idregistry attest --caller 0xb0b --target 0xa11ce
  idregistry lookup --target 0xa11ce
  idregistry keygen -o alice.json
        """
    )
    parser.add_argument(
        "--db",
        default=os.getenv("REGISTRY_DB_PATH", "data/registry.db"),
        help="SQLite registry file (default: $REGISTRY_DB_PATH or data/registry.db)"
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    init_parser = subparsers.add_parser("init", help="Bootstrap the registry")
    init_parser.add_argument("--admin", required=True, help="Administrator address")

    register_parser = subparsers.add_parser("register", help="Register the caller's identity")
    register_parser.add_argument("--caller", required=True, help="Caller address")
    register_parser.add_argument("--name", required=True, help="Identity name (may be empty)")

    attest_parser = subparsers.add_parser("attest", help="Attest a registered identity")
    attest_parser.add_argument("--caller", required=True, help="Attester address")
    attest_parser.add_argument("--target", required=True, help="Address of the identity to attest")

    lookup_parser = subparsers.add_parser("lookup", help="Show an identity record")
    lookup_parser.add_argument("--target", required=True, help="Address to look up")
    lookup_parser.add_argument("--view", action="store_true", help="Print the [name, verified, timestamp, verifier] tuple")

    history_parser = subparsers.add_parser("history", help="Show attestation journal for an identity")
    history_parser.add_argument("--target", required=True, help="Address to look up")

    subparsers.add_parser("verify-journal", help="Verify the attestation journal hash chain")

    keygen_parser = subparsers.add_parser("keygen", help="Generate an account key pair")
    keygen_parser.add_argument("-o", "--output", help="Output file for the key pair")

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP service")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Host to bind (default: 127.0.0.1)")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port to bind (default: 8000)")
    serve_parser.add_argument("--reload", action="store_true", help="Enable auto-reload for development")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    handler = COMMANDS.get(args.command)
    if handler is None:
        parser.print_help()
        return 2

    try:
        return handler(args)
    except RegistryError as e:
        print(f"{e.code}: {e.message}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
