"""
Seed Admin User

Creates the initial ADMIN account for Visualizar, both in the identity
provider and in the local database. Safe to re-run: an existing ADMIN with the
same email is left as it is, and any other account using the email or DNI
makes the script exit with status 1.

Usage:
    cd apps/api
    python scripts/seed_admin.py admin@example.com 00000000 "Admin Name"

Arguments default to the ADMIN_EMAIL, ADMIN_DNI and ADMIN_NAME environment
variables.
"""

import asyncio
import os
import sys
from pathlib import Path

from sqlalchemy.ext.asyncio import AsyncSession

# Add the src directory to the path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from visualizar.core.config import settings
from visualizar.core.database import async_session_maker, close_db, transaction
from visualizar.core.identity import (
    IdentityProviderConfig,
    IdentityProviderError,
    SupabaseIdentityProvider,
)
from visualizar.modules.books import models as books_models  # noqa: F401
from visualizar.modules.users.models import UserRole
from visualizar.modules.users.repository import UserRepository


def _read_args() -> tuple[str, str, str | None]:
    args = sys.argv[1:]
    email = args[0] if len(args) > 0 else os.environ.get("ADMIN_EMAIL")
    dni = args[1] if len(args) > 1 else os.environ.get("ADMIN_DNI")
    name = args[2] if len(args) > 2 else os.environ.get("ADMIN_NAME")

    if not email or not dni:
        print("Usage: python scripts/seed_admin.py <email> <dni> [name]")
        sys.exit(1)
    return email.strip().lower(), dni.strip(), name


async def _ensure_admin(
    db: AsyncSession,
    provider: SupabaseIdentityProvider,
    email: str,
    dni: str,
    name: str | None,
) -> int:
    existing_user = await UserRepository.get_by_email(db, email)
    if existing_user:
        if existing_user.role != UserRole.ADMIN:
            print(f"[FAIL] {email} belongs to a {existing_user.role.value} account, not an ADMIN")
            return 1
        print(f"Admin already exists: {email}")
        print(f"  ID: {existing_user.id}")
        return 0

    if await UserRepository.email_taken(db, email) or await UserRepository.dni_taken(db, dni):
        print(f"[FAIL] Email {email} or DNI {dni} is already used by another or deleted account")
        return 1

    try:
        external = await provider.find_user_by_email(email)
        if external is None:
            external = await provider.create_external_user(email, name)
    except IdentityProviderError as e:
        print(f"[FAIL] Identity provider error: {e}")
        return 1

    async with transaction(db):
        admin_user = await UserRepository.create(
            db,
            email=email,
            dni=dni,
            role=UserRole.ADMIN,
            name=name,
            supabase_user_id=external.id,
        )

    print("Admin created successfully!")
    print(f"  Email: {email}")
    print(f"  ID: {admin_user.id}")
    print(f"  Identity: {external.id}")
    return 0


async def seed_admin(
    email: str,
    dni: str,
    name: str | None,
    provider: SupabaseIdentityProvider | None = None,
) -> int:
    """
    Create the admin account if it doesn't exist.

    Returns:
        Process exit code: 0 when an ADMIN with this email exists afterwards
    """
    provider = provider or SupabaseIdentityProvider(IdentityProviderConfig.from_settings(settings))
    try:
        async with async_session_maker() as db:
            return await _ensure_admin(db, provider, email, dni, name)
    finally:
        await close_db()


def main() -> None:
    email, dni, name = _read_args()
    sys.exit(asyncio.run(seed_admin(email, dni, name)))


if __name__ == "__main__":
    main()
