#!/usr/bin/env python3
"""
Seed the first family member so someone can sign in and invite the rest.

Usage:
    python scripts/bootstrap_member.py you@example.com --name "Your Name"

If the email has signed in before, the member is active immediately.
Otherwise it is invited and becomes active on its first sign-in.
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from family_photos.config import get_settings
from family_photos.database import async_session_maker, engine
from family_photos.exceptions import ServiceError
from family_photos.services.family_service import FamilyService


async def bootstrap(email: str, full_name: str | None) -> int:
    settings = get_settings()

    try:
        async with async_session_maker() as db:
            member = await FamilyService(db).bootstrap(email, full_name)
            await db.commit()
    except ServiceError as e:
        print(f"Error: {e.message}")
        return 1
    finally:
        await engine.dispose()

    print(f"{member.email} is now {member.status.value}")
    if member.status.value == "invited":
        print(f"Sign in at {settings.app_url.rstrip('/')}/login to activate.")
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed the first family member")
    parser.add_argument("email")
    parser.add_argument("--name", dest="full_name", default=None)
    args = parser.parse_args()

    sys.exit(asyncio.run(bootstrap(args.email, args.full_name)))
