"""
Marketplace Session Broker — Admin Credential Script

Creates or replaces the credential row for a key. Any cached token for the
key is cleared, so the next login runs the full browser flow.

Usage:
    python scripts/add_credential.py --key bsc-main --username seller@example.com
    python scripts/add_credential.py --key sportlots-main --username seller@example.com --password-env SL_PASSWORD
"""

from __future__ import annotations

import argparse
import asyncio
import getpass
import os
import sys

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

# Resolve project root so this script can be run from any working directory
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from src.config import settings
from src.credentials import Credential
from src.credentials.store import SqlCredentialStore
from src.models.base import Base


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Create or replace a marketplace credential in the credential store.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/add_credential.py --key bsc-main --username seller@example.com
  python scripts/add_credential.py --key sportlots-main --username seller@example.com --password-env SL_PASSWORD
""",
    )
    parser.add_argument(
        "--key",
        type=str,
        required=True,
        help="Credential key the adapters will be called with (e.g. bsc-main).",
    )
    parser.add_argument(
        "--username",
        type=str,
        required=True,
        help="Marketplace login (email address for BSC and SportLots).",
    )
    parser.add_argument(
        "--password-env",
        type=str,
        default=None,
        help="Read the password from this environment variable instead of prompting.",
    )
    return parser.parse_args()


async def add_credential(key: str, username: str, password: str) -> None:
    engine = create_async_engine(settings.DATABASE_URL, echo=False)
    session_factory = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    try:
        store = SqlCredentialStore(session_factory)
        await store.upsert(key, Credential(username=username, password=password))
    finally:
        await engine.dispose()


async def main() -> None:
    args = parse_args()

    if args.password_env:
        password = os.environ.get(args.password_env, "")
    else:
        password = getpass.getpass(f"Password for {args.username}: ")

    if not password:
        print("Password must not be empty.", file=sys.stderr)
        sys.exit(1)

    try:
        await add_credential(args.key, args.username, password)
    except Exception as e:
        print(f"Failed to store credential: {e}", file=sys.stderr)
        sys.exit(1)

    print("Credential stored successfully.")
    print(f"  key      = {args.key}")
    print(f"  username = {args.username}")


if __name__ == "__main__":
    asyncio.run(main())
