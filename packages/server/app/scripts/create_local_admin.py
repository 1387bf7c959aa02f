"""
Script to create an ADMIN user with a password for local testing.
"""

import asyncio
import argparse
import sys

import os
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "../..")))

from sqlmodel import select

from app.core.auth import hash_password
from app.core.database import get_session_context
from app.models.role import Role
from app.models.user import User

DEFAULT_ROLES = ("ADMIN", "DIRECTOR", "DOCENTE", "ESTUDIANTE")


async def ensure_roles(session) -> dict[str, Role]:
    roles = {}
    for name in DEFAULT_ROLES:
        result = await session.execute(select(Role).where(Role.name == name))
        role = result.scalar_one_or_none()
        if not role:
            role = Role(name=name)
            session.add(role)
            print(f"Created role {name}.")
        roles[name] = role
    await session.flush()
    return roles


async def create_admin(email: str, password: str, first_name: str):
    email = email.strip().lower()
    async with get_session_context() as session:
        roles = await ensure_roles(session)

        result = await session.execute(select(User).where(User.email == email))
        user = result.scalar_one_or_none()

        if not user:
            user = User(
                email=email,
                first_name=first_name,
                password_hash=hash_password(password),
                role_id=roles["ADMIN"].id,
            )
            session.add(user)
            print(f"Created admin: {email}")
        else:
            user.password_hash = hash_password(password)
            user.role_id = roles["ADMIN"].id
            print(f"User {email} already exists; password and role reset.")

    print("Done.")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create a local admin user.")
    parser.add_argument("--email", required=True, help="Institutional email address")
    parser.add_argument("--password", required=True, help="Password for the user")
    parser.add_argument("--first-name", default="Admin")

    args = parser.parse_args()

    asyncio.run(create_admin(args.email, args.password, args.first_name))
