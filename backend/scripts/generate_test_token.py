#!/usr/bin/env python3
"""
Generate an access token for an existing user, for local debugging.

Usage: python scripts/generate_test_token.py [email]
Without an email the first admin user is used.
"""

import asyncio
import sys
from pathlib import Path

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root / "src"))

from sqlalchemy import select  # noqa: E402

from cas.auth.jwt_manager import JWTManager  # noqa: E402
from cas.auth.models import User, UserRole  # noqa: E402
from cas.core.config import get_settings_instance  # noqa: E402
from cas.core.database import Database  # noqa: E402


async def generate_test_token(email: str | None) -> int:
    settings = get_settings_instance()
    database = Database(settings)
    await database.connect()
    try:
        async with database.get_session() as session:
            stmt = select(User).where(User.email == email) if email else select(User).where(
                User.role == UserRole.ADMIN.value
            )
            user = (await session.execute(stmt.limit(1))).scalar_one_or_none()
    finally:
        await database.dispose()

    if user is None:
        print(f"No user found for {email or 'role admin'}")
        return 1

    token = JWTManager(settings).create_access_token({"user_id": user.id, "email": user.email, "role": user.role})
    print(f"User: {user.name} ({user.email}, {user.role})")
    print(f"Token: {token}")
    print("\nTest it with:")
    print(f"curl -H 'Authorization: Bearer {token}' http://{settings.api_host}:{settings.api_port}{settings.api_v1_prefix}/plugins")
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(generate_test_token(sys.argv[1] if len(sys.argv) > 1 else None)))
