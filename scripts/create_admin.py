#!/usr/bin/env python3
"""Promote a user to ADMIN (creating the user row if needed) and print an access token.
Usage: DATABASE_URL=... python scripts/create_admin.py admin@example.com [Name]"""
import asyncio
import sys

from sqlalchemy import select

from marketadmin.core.auth import create_access_token
from marketadmin.db.session import async_session_maker, close_db, init_db
from marketadmin.models.user import Role, User


async def main(email: str, name: str | None) -> None:
    await init_db()
    async with async_session_maker() as session:
        r = await session.execute(select(User).where(User.email == email))
        user = r.scalar_one_or_none()
        if user is None:
            user = User(email=email, name=name, role=Role.ADMIN)
            session.add(user)
            print(f"Created admin {email}")
        else:
            user.role = Role.ADMIN
            print(f"Promoted {email} to admin")
        await session.commit()
        await session.refresh(user)
        print(f"Access token: {create_access_token(user.id, user.email)}")
    await close_db()


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print("Usage: python scripts/create_admin.py EMAIL [NAME]")
        sys.exit(1)
    asyncio.run(main(sys.argv[1].strip(), sys.argv[2] if len(sys.argv) > 2 else None))
