"""
Promote a registered user to admin (or superadmin).

Usage (from the repository root)::

    python -m scripts.create_admin someone@vitstudent.ac.in
    python -m scripts.create_admin someone@vitstudent.ac.in --superadmin

The user must have registered first.  Connection settings come from
``DATABASE_URL`` / ``.env``.
"""

from __future__ import annotations

import argparse
import asyncio
import sys

from dotenv import load_dotenv

load_dotenv()

from src.api.deps import async_session_factory, engine  # noqa: E402
from src.models.user import UserRole  # noqa: E402
from src.services.auth_service import get_user_by_email  # noqa: E402


async def promote(email: str, role: UserRole) -> int:
    async with async_session_factory() as db:
        user = await get_user_by_email(db, email)
        if user is None:
            print(f"User with email {email} not found")
            print("Please register this email first, then run this script again.")
            return 1

        if user.role == role:
            print(f"{email} is already {role.value}")
            return 0

        user.role = role
        user.is_verified = True
        await db.commit()
        print(f"{email} is now {role.value}")
    await engine.dispose()
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("email")
    parser.add_argument("--superadmin", action="store_true", help="grant superadmin instead")
    args = parser.parse_args()
    role = UserRole.SUPERADMIN if args.superadmin else UserRole.ADMIN
    return asyncio.run(promote(args.email, role))


if __name__ == "__main__":
    sys.exit(main())
