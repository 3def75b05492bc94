#!/usr/bin/env python3
"""
tokengate -- Private website behind GitHub sign-in and signed-token sessions.

Usage:
  python main.py serve
  python main.py serve --host 0.0.0.0 --port 8080
  python main.py keygen
  python main.py inspect <TOKEN>

Environment variables (see core/config.py for the full list):
  STATE_KEY, SESSION_KEY   Signing keys. Random when unset -- sessions then
                           do not survive a restart. Generate with `keygen`.
  ALLOWED_USERS            Comma-separated GitHub logins allowed in.
  GITHUB_CLIENT_ID         GitHub OAuth app credentials.
  GITHUB_CLIENT_SECRET
"""

import argparse
import sys
from datetime import datetime, timezone

from auth.codec import decode
from auth.errors import MalformedToken
from core.config import generate_key


def _keygen(args: argparse.Namespace) -> int:
    print(generate_key())
    return 0


def _inspect(args: argparse.Namespace) -> int:
    """Print what a token claims, WITHOUT verifying it.

    Useful for telling an expired cookie from a garbled one. The tag is not
    checked because this command has no key.
    """
    try:
        issued_at_ns, payload, _tag = decode(args.token.strip())
    except MalformedToken as e:
        print(f"  [!] Malformed token: {e}")
        return 1
    try:
        issued = datetime.fromtimestamp(issued_at_ns / 1e9, tz=timezone.utc).isoformat()
    except (OverflowError, OSError, ValueError):
        issued = f"out of range ({issued_at_ns} ns)"
    kind = "session" if payload else "state"
    print(f"  kind (by shape): {kind}")
    print(f"  issued at:       {issued}")
    print(f"  payload bytes:   {len(payload)}")
    print("  signature:       NOT VERIFIED")
    return 0


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("asgi:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="tokengate",
        description="Private website behind GitHub sign-in and signed-token sessions.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py keygen
  STATE_KEY=$(python main.py keygen) SESSION_KEY=$(python main.py keygen) python main.py serve
  python main.py inspect "$SESSION_COOKIE"
        """,
    )
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the web server under uvicorn")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)
    serve.add_argument("--reload", action="store_true", help="Reload on code changes (development)")
    serve.set_defaults(func=_serve)

    keygen = sub.add_parser("keygen", help="Print a random signing key for STATE_KEY / SESSION_KEY")
    keygen.set_defaults(func=_keygen)

    inspect = sub.add_parser("inspect", help="Decode a token without verifying it")
    inspect.add_argument("token", metavar="TOKEN")
    inspect.set_defaults(func=_inspect)

    args = parser.parse_args(argv)
    return args.func(args)


def cli() -> None:
    sys.exit(main())


if __name__ == "__main__":
    cli()
