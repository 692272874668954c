#!/usr/bin/env python3
"""Create a user (default group plus optional extra groups) directly in the database.

Usage:
  python scripts/create_user.py --username alice --password '...' --group admin
"""

import argparse
import asyncio

from gatekeeper.config import settings
from gatekeeper.core.security import BcryptHasher
from gatekeeper.db.session import async_session_maker, init_db
from gatekeeper.services.credentials import CredentialStore


async def main(username: str, password: str, groups: list[str]) -> None:
    await init_db()
    hasher = BcryptHasher(settings.bcrypt_rounds)
    async with async_session_maker() as session:
        store = CredentialStore(session, settings)
        user, _ = await store.create_user(username, hasher.hash(password))
        for name in groups:
            await store.add_user_to_group(user.id, name)
        await session.commit()
        names = [g.name for g in await store.list_groups(user.id)]
    print(f"Created user {user.username} (external_id={user.external_id}) groups={names}")


if __name__ == "__main__":
    ap = argparse.ArgumentParser()
    ap.add_argument("--username", required=True)
    ap.add_argument("--password", required=True)
    ap.add_argument("--group", action="append", default=[], help="extra group, repeatable")
    args = ap.parse_args()
    asyncio.run(main(args.username, args.password, args.group))
