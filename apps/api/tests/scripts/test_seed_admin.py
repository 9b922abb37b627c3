"""
Tests for the admin seed script.
"""

import importlib.util
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from visualizar.core.identity import ExternalUser, IdentityProviderError
from visualizar.modules.users.models import User, UserRole

SCRIPT_PATH = Path(__file__).parents[2] / "scripts" / "seed_admin.py"


@pytest.fixture(scope="module")
def seed_script():
    spec = importlib.util.spec_from_file_location("seed_admin", SCRIPT_PATH)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.fixture
def script_env(seed_script, mock_db):
    """Run the script against a mock session and repository."""
    session = MagicMock()
    session.__aenter__ = AsyncMock(return_value=mock_db)
    session.__aexit__ = AsyncMock(return_value=False)

    with (
        patch.object(seed_script, "async_session_maker", MagicMock(return_value=session)),
        patch.object(seed_script, "close_db", AsyncMock()) as close_db,
        patch.object(seed_script, "UserRepository") as repo,
    ):
        repo.get_by_email = AsyncMock(return_value=None)
        repo.email_taken = AsyncMock(return_value=False)
        repo.dni_taken = AsyncMock(return_value=False)
        repo.create = AsyncMock()
        yield close_db, repo


@pytest.fixture
def provider():
    provider = AsyncMock()
    provider.find_user_by_email = AsyncMock(return_value=None)
    provider.create_external_user = AsyncMock(
        return_value=ExternalUser(id="ext-admin", email="admin@visualizar.app")
    )
    return provider


def _existing(role: UserRole) -> User:
    user = MagicMock(spec=User)
    user.id = "11111111-1111-1111-1111-111111111111"
    user.role = role
    return user


@pytest.mark.asyncio
async def test_existing_admin_is_left_alone(seed_script, script_env, provider):
    close_db, repo = script_env
    repo.get_by_email.return_value = _existing(UserRole.ADMIN)

    code = await seed_script.seed_admin("admin@visualizar.app", "1", None, provider)

    assert code == 0
    provider.create_external_user.assert_not_awaited()
    close_db.assert_awaited_once()


@pytest.mark.asyncio
async def test_existing_non_admin_fails(seed_script, script_env, provider, capsys):
    close_db, repo = script_env
    repo.get_by_email.return_value = _existing(UserRole.TEACHER)

    code = await seed_script.seed_admin("docente@visualizar.app", "1", None, provider)

    out = capsys.readouterr().out
    assert code == 1
    assert "TEACHER account, not an ADMIN" in out
    assert "already exists" not in out
    repo.create.assert_not_awaited()
    close_db.assert_awaited_once()


@pytest.mark.asyncio
async def test_provider_failure_still_closes_engine(seed_script, script_env, provider):
    close_db, repo = script_env
    provider.find_user_by_email.side_effect = IdentityProviderError("service unavailable")

    code = await seed_script.seed_admin("admin@visualizar.app", "1", None, provider)

    assert code == 1
    repo.create.assert_not_awaited()
    close_db.assert_awaited_once()


@pytest.mark.asyncio
async def test_creates_admin(seed_script, script_env, provider, mock_db):
    close_db, repo = script_env

    code = await seed_script.seed_admin("admin@visualizar.app", "1", "Admin", provider)

    assert code == 0
    repo.create.assert_awaited_once_with(
        mock_db,
        email="admin@visualizar.app",
        dni="1",
        role=UserRole.ADMIN,
        name="Admin",
        supabase_user_id="ext-admin",
    )
    mock_db.commit.assert_awaited_once()
    close_db.assert_awaited_once()
