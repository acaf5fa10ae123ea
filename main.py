#!/usr/bin/env python3
"""
TokenGate -- bearer-token authentication service.

Usage:
  python main.py serve
  python main.py serve --host 127.0.0.1 --port 8080 --reload
  python main.py create-user alice secret1
  python main.py create-user root s3cret-pass --role admin

Environment variables (see core/config.py for the full list):
  SECRET_KEY     Token signing key, >= 32 chars. Required unless DEBUG=true.
  DEBUG          true = auto-generated key and demo seed accounts.
  TOKEN_TTL      Token lifetime, e.g. 1h, 30m, 3600s. Default 1h.
  DATABASE_URL   SQLAlchemy URL of the account database.
  HOST / PORT    Bind address for `serve`. Default 0.0.0.0:3000.
"""

import argparse
import sys

from auth.errors import AuthError
from auth.passwords import PasswordHasher
from auth.service import AccountService
from auth.store import AccountStore
from auth.tokens import TokenService
from core.config import get_settings


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "asgi:app",
        host=args.host or settings.host,
        port=args.port or settings.port,
        reload=args.reload,
        log_level=settings.log_level.lower(),
    )
    return 0


def _create_user(args: argparse.Namespace) -> int:
    """Create an account directly in the store. The only way to make an admin besides seeding."""
    settings = get_settings()
    store = AccountStore(settings.database_url)
    try:
        service = AccountService(
            store,
            PasswordHasher(rounds=settings.bcrypt_rounds),
            TokenService(secret_key=settings.secret_key, ttl_seconds=settings.token_ttl_seconds),
        )
        try:
            account = service.register(args.username, args.password, role=args.role)
        except AuthError as exc:
            print(f"  [!] {exc.message}", file=sys.stderr)
            return 1
        print(f"Created user '{account.username}' (id={account.id}) with role '{account.role}'.")
        return 0
    finally:
        store.close()


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="tokengate",
        description="TokenGate -- bearer-token authentication service.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP API with uvicorn")
    serve.add_argument("--host", default=None, help="Bind address (default: HOST or 0.0.0.0)")
    serve.add_argument("--port", type=int, default=None, help="Port (default: PORT or 3000)")
    serve.add_argument("--reload", action="store_true", help="Auto-reload on code changes (development)")
    serve.set_defaults(func=_serve)

    create = sub.add_parser("create-user", help="Create an account without going through HTTP")
    create.add_argument("username", help="Username (at least 3 characters)")
    create.add_argument("password", help="Password (at least 6 characters)")
    create.add_argument("--role", default="user", choices=["user", "admin"])
    create.set_defaults(func=_create_user)

    args = parser.parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
