#!/usr/bin/env python3
"""
Storefront -- operator commands for the e-commerce backend.

Usage:
  python main.py seed
  python main.py create-admin admin admin@example.com
  python main.py create-admin admin admin@example.com --password 's3cret-pass'
  python main.py flush-cache
  python main.py flush-cache products

The API itself is served with:  uvicorn api.main:app

Environment variables (or .env):
  DATABASE_URL  SQLAlchemy URL of the shop database (default: storefront.db)
  CACHE_URL     redis://... for Redis; empty to cache in the shop database
  SECRET_KEY    JWT signing key (set DEBUG=true to auto-generate for local use)
"""

import argparse
import getpass
import sys

from sqlalchemy.exc import IntegrityError

from auth.models import AppRole, User
from auth.store import UserStore
from auth.tokens import hash_password
from cache.regions import ALL_REGIONS
from cache.service import CacheService
from cache.store import open_cache_store
from core.config import get_settings
from core.errors import ShopError
from shop.seed import SEED_PASSWORD, seed
from shop.store import ShopStore


def _cmd_seed(args: argparse.Namespace) -> int:
    user_store = UserStore()
    shop = ShopStore()
    try:
        created = seed(user_store, shop)
    finally:
        shop.close()
        user_store.close()
    for entity, count in created.items():
        print(f"  {entity:<12} {count} created")
    print(f"\n  Sample accounts use the password '{SEED_PASSWORD}'.")
    return 0


def _cmd_create_admin(args: argparse.Namespace) -> int:
    password = args.password or getpass.getpass("Password: ")
    if len(password) < 6:
        print("  [!] Password must be at least 6 characters.")
        return 1
    user_store = UserStore()
    try:
        user_id = user_store.create_user(
            User(
                username=args.username,
                email=args.email,
                hashed_password=hash_password(password),
                roles={AppRole.ADMIN.value, AppRole.USER.value},
            )
        )
    except IntegrityError:
        print(f"  [!] Username '{args.username}' or email '{args.email}' is already taken.")
        return 1
    finally:
        user_store.close()
    print(f"  Admin '{args.username}' created (id {user_id}).")
    return 0


def _cmd_flush_cache(args: argparse.Namespace) -> int:
    settings = get_settings()
    cache = CacheService(open_cache_store(settings.cache_url, settings.database_url))
    try:
        if args.region:
            cache.evict(args.region)
            print(f"  Cache region '{args.region}' cleared.")
        else:
            cache.evict_all()
            print(f"  All cache regions cleared ({', '.join(ALL_REGIONS)}).")
    except ShopError as exc:
        print(f"  [!] {exc.message}")
        return 1
    finally:
        cache.close()
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="storefront",
        description="Operator commands for the storefront backend.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py seed
  python main.py create-admin ops ops@example.com
  python main.py flush-cache productsByKeyword
  DATABASE_URL=postgresql://... python main.py seed
        """,
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    p_seed = sub.add_parser("seed", help="Load sample users, categories, products, addresses and carts")
    p_seed.set_defaults(func=_cmd_seed)

    p_admin = sub.add_parser("create-admin", help="Create an administrator account")
    p_admin.add_argument("username")
    p_admin.add_argument("email")
    p_admin.add_argument(
        "--password",
        metavar="PASSWORD",
        help="Password for the new account (prompted for when omitted)",
    )
    p_admin.set_defaults(func=_cmd_create_admin)

    p_flush = sub.add_parser("flush-cache", help="Evict one cache region, or all of them")
    p_flush.add_argument(
        "region",
        nargs="?",
        metavar="REGION",
        help=f"Region to clear: {', '.join(ALL_REGIONS)} (default: all)",
    )
    p_flush.set_defaults(func=_cmd_flush_cache)

    args = parser.parse_args()
    if not getattr(args, "func", None):
        parser.print_help()
        return
    sys.exit(args.func(args))


if __name__ == "__main__":
    main()
