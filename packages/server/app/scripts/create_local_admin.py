"""
Script to create (or promote) a system ADMIN account for local testing.

Project creation is reserved for ADMINs, so a fresh database needs one.
"""

import asyncio
import argparse

from sqlmodel import select

from app.core.auth import hash_password
from app.core.database import get_session_context, init_db
from app.models.user import User
from tracker_shared.schemas.common import SystemRole


async def create_admin(email: str, password: str, name: str):
    await init_db()

    async with get_session_context() as session:
        result = await session.execute(select(User).where(User.email == email.lower()))
        user = result.scalar_one_or_none()

        if not user:
            user = User(
                email=email.lower(),
                name=name,
                password_hash=hash_password(password),
                system_role=SystemRole.ADMIN.value,
            )
            session.add(user)
            print(f"Created admin: {email}")
        elif user.system_role != SystemRole.ADMIN.value:
            user.system_role = SystemRole.ADMIN.value
            session.add(user)
            print(f"Promoted {email} to ADMIN.")
        else:
            print(f"User {email} is already an admin.")

    print("Done.")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create a local admin user.")
    parser.add_argument("--email", required=True, help="Email address for the user")
    parser.add_argument("--password", required=True, help="Password for the user")
    parser.add_argument("--name", default="Administrator", help="Display name")

    args = parser.parse_args()

    asyncio.run(create_admin(args.email, args.password, args.name))
