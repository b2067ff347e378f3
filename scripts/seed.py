#!/usr/bin/env python3
"""
Bookshelf - Account Seeding Script

Commands:
- demo: create (or fix up) the demo admin account
- promote <email>: give an existing account the admin role
"""

import argparse
import asyncio
import os
import sys

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from dotenv import load_dotenv
from loguru import logger

from bookshelf.api.dependencies import Settings
from bookshelf.seed import DEMO_EMAIL, ensure_demo_admin, promote_to_admin
from bookshelf.storage.database import Database


async def run(args: argparse.Namespace) -> int:
    settings = Settings.from_env()
    database = Database(settings.database_url, echo=settings.database_echo)

    try:
        await database.create_tables()

        if args.command == "demo":
            await ensure_demo_admin(database, bcrypt_rounds=settings.bcrypt_rounds)
            print(f"Demo admin ready: {DEMO_EMAIL}")
            return 0

        user = await promote_to_admin(database, args.email)
        if user is None:
            logger.error(f"No account with email {args.email}")
            return 1
        print(f"{user.email} is now an admin")
        return 0
    finally:
        await database.dispose()


def main() -> int:
    load_dotenv()

    parser = argparse.ArgumentParser(description="Seed Bookshelf accounts")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("demo", help="Ensure the demo admin account exists")

    promote = subparsers.add_parser("promote", help="Make an existing account an admin")
    promote.add_argument("email", help="Email of the account to promote")

    return asyncio.run(run(parser.parse_args()))


if __name__ == "__main__":
    sys.exit(main())
