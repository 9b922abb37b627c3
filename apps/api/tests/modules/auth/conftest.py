"""
Fixtures for authentication tests.
"""

from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from visualizar.modules.users.models import User, UserRole


@pytest.fixture
def fixed_now():
    """A frozen 'now' for lockout arithmetic."""
    return datetime(2026, 3, 1, 12, 0, 0, tzinfo=UTC)


@pytest.fixture
def frozen_clock(fixed_now):
    with patch("visualizar.modules.auth.service._utcnow", return_value=fixed_now):
        yield fixed_now


@pytest.fixture
def mock_provider():
    """Create a mock identity provider."""
    provider = AsyncMock()
    provider.send_code = AsyncMock()
    provider.verify_code = AsyncMock()
    provider.resolve_user_from_token = AsyncMock()
    provider.create_external_user = AsyncMock()
    return provider


@pytest.fixture
def account():
    """An open STUDENT account with no failed attempts."""
    user = MagicMock(spec=User)
    user.id = "11111111-1111-1111-1111-111111111111"
    user.email = "alumno@visualizar.app"
    user.name = "Alumno Uno"
    user.dni = "12345678"
    user.role = UserRole.STUDENT
    user.supabase_user_id = None
    user.failed_otp_attempts = 0
    user.otp_locked_until = None
    return user


@pytest.fixture
def user_repo(account):
    """Patch UserRepository in the auth service with awaitable methods."""
    with patch("visualizar.modules.auth.service.UserRepository") as repo:
        repo.get_by_email = AsyncMock(return_value=account)
        repo.get_by_dni = AsyncMock(return_value=None)
        repo.email_taken = AsyncMock(return_value=False)
        repo.dni_taken = AsyncMock(return_value=False)
        repo.get_by_supabase_id = AsyncMock(return_value=account)
        repo.increment_failed_otp_attempts = AsyncMock(return_value=1)
        repo.set_otp_lock = AsyncMock()
        repo.reset_otp_state = AsyncMock()
        repo.link_external_identity = AsyncMock()
        repo.get_teacher_by_user_id = AsyncMock(return_value=None)
        repo.get_student_by_user_id = AsyncMock(return_value=None)
        repo.create = AsyncMock()
        repo.create_profile = AsyncMock()
        yield repo
