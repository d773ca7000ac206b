#!/usr/bin/env python3
"""
Auth Starter -- administrative command line.

Usage:
  python main.py create-user --email ada@example.com --name "Ada Lovelace"
  python main.py list-users
  python main.py deactivate <user-id>
  python main.py activate <user-id>
  python main.py hard-delete <user-id>
  python main.py serve --host 0.0.0.0 --port 8000

Every command except serve works directly against DATABASE_URL through the
same engine factory and user store the API uses. hard-delete is only
available here; the HTTP API never removes a user row.

Environment variables:
  DATABASE_URL   SQLAlchemy URL (default: sqlite:///./authstarter.db)
  SECRET_KEY     Required unless DEBUG=true
"""

import argparse
import sys
from typing import Optional

from core.config import get_settings
from core.database import create_store_engine, init_schema
from core.errors import AppError
from users.store import UserStore


def _open_store(database_url: Optional[str] = None) -> UserStore:
    engine = create_store_engine(database_url or get_settings().database_url)
    init_schema(engine)
    return UserStore(engine)


def _print_user(user) -> None:
    status = "active" if user.is_active else "inactive"
    verified = "verified" if user.email_verified else "unverified"
    print(f"  {user.id}  {user.email:<32} {user.name or '':<24} {status:<8} {verified}")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="auth-starter",
        description="Administer users of the auth starter and run its server.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py create-user --email ada@example.com --name "Ada Lovelace"
  python main.py list-users
  python main.py deactivate 6f1c...
  DATABASE_URL=sqlite:///./prod.db python main.py list-users
        """,
    )
    parser.add_argument(
        "--database-url",
        metavar="URL",
        default=None,
        help="Override DATABASE_URL for this invocation",
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    create = sub.add_parser("create-user", help="Create a user record without credentials")
    create.add_argument("--email", required=True, help="Email address (must be unique)")
    create.add_argument("--name", default=None, help="Display name")
    create.add_argument("--verified", action="store_true", help="Mark the email as verified after creating the user")

    sub.add_parser("list-users", help="List active users, newest first")

    for name, text in (
        ("deactivate", "Soft delete: mark a user inactive"),
        ("activate", "Re-activate a previously deactivated user"),
        ("hard-delete", "Permanently remove a user with their sessions and accounts"),
    ):
        cmd = sub.add_parser(name, help=text)
        cmd.add_argument("user_id", metavar="USER-ID")

    serve = sub.add_parser("serve", help="Run the API and web UI with uvicorn")
    serve.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    serve.add_argument("--port", type=int, default=8000, help="Bind port (default: 8000)")
    serve.add_argument("--reload", action="store_true", help="Reload on code changes (development only)")
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    if args.command == "serve":
        import uvicorn

        uvicorn.run("asgi:app", host=args.host, port=args.port, reload=args.reload)
        return 0

    store = _open_store(args.database_url)
    try:
        if args.command == "create-user":
            user = store.create(email=args.email, name=args.name)
            if args.verified:
                user = store.update(user.id, email_verified=True)
            print("  Created:")
            _print_user(user)

        elif args.command == "list-users":
            found = store.find_all()
            for user in found:
                _print_user(user)
            print(f"\n  {len(found)} active user(s).")

        elif args.command == "deactivate":
            store.remove(args.user_id)
            print(f"  Deactivated {args.user_id}.")

        elif args.command == "activate":
            store.set_active(args.user_id, True)
            print(f"  Activated {args.user_id}.")

        elif args.command == "hard-delete":
            store.hard_delete(args.user_id)
            print(f"  Deleted {args.user_id} and everything it owned.")

    except AppError as e:
        print(f"  [!] {e.message}", file=sys.stderr)
        return 1
    finally:
        store.engine.dispose()
    return 0


if __name__ == "__main__":
    sys.exit(main())
