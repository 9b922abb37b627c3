"""
Tests for the authentication service.

Covers:
- Lockout: failed verifications count up, the third locks the account,
  and a locked account never reaches the identity provider
- Lazy lock expiry
- Successful verification and the role-aware user summary
- Token validation cross-checks
- Administrator provisioning
"""

from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from visualizar.core.errors import BadRequestError, UnauthorizedError, to_http_exception
from visualizar.core.identity import (
    ExternalSession,
    ExternalUser,
    IdentityProviderError,
    VerifyResult,
)
from visualizar.modules.auth.schemas import CreateUserRequest
from visualizar.modules.auth.service import (
    AccountLockedError,
    OtpVerificationError,
    create_user,
    request_code,
    validate_external_token,
    verify_code,
)
from visualizar.modules.users.models import Student, Teacher, User, UserRole


def _successful_result(user_metadata=None):
    return VerifyResult(
        session=ExternalSession(access_token="access-token", refresh_token="refresh-token"),
        user=ExternalUser(
            id="ext-user-1",
            email="alumno@visualizar.app",
            user_metadata=user_metadata or {},
        ),
    )


# ============================================
# request_code
# ============================================


@pytest.mark.asyncio
async def test_request_code_unknown_account(mock_db, mock_provider, user_repo, frozen_clock):
    """Unknown email is rejected before the provider is contacted."""
    user_repo.get_by_email.return_value = None

    with pytest.raises(UnauthorizedError) as exc_info:
        await request_code(mock_db, mock_provider, "nadie@visualizar.app")

    assert exc_info.value.error_code == "USER_NOT_FOUND"
    mock_provider.send_code.assert_not_awaited()


@pytest.mark.asyncio
async def test_request_code_normalizes_email(mock_db, mock_provider, user_repo, frozen_clock):
    response = await request_code(mock_db, mock_provider, "  Alumno@Visualizar.APP ")

    assert response.message == "OTP sent successfully"
    user_repo.get_by_email.assert_awaited_once_with(mock_db, "alumno@visualizar.app")
    mock_provider.send_code.assert_awaited_once_with("alumno@visualizar.app")


@pytest.mark.asyncio
async def test_request_code_provider_failure(mock_db, mock_provider, user_repo, frozen_clock):
    mock_provider.send_code.side_effect = IdentityProviderError("smtp unavailable")

    with pytest.raises(BadRequestError) as exc_info:
        await request_code(mock_db, mock_provider, "alumno@visualizar.app")

    assert exc_info.value.message == "Failed to send OTP: smtp unavailable"


@pytest.mark.asyncio
async def test_request_code_locked_account(
    mock_db, mock_provider, user_repo, account, frozen_clock
):
    account.failed_otp_attempts = 3
    account.otp_locked_until = frozen_clock + timedelta(minutes=3)

    with pytest.raises(AccountLockedError) as exc_info:
        await request_code(mock_db, mock_provider, account.email)

    assert exc_info.value.retry_at == account.otp_locked_until
    assert exc_info.value.extra["attempts"] == 0
    mock_provider.send_code.assert_not_awaited()


@pytest.mark.asyncio
async def test_request_code_expired_lock_resets_counter(
    mock_db, mock_provider, user_repo, account, frozen_clock
):
    """An expired lock is cleared lazily on the next request."""
    account.failed_otp_attempts = 3
    account.otp_locked_until = frozen_clock - timedelta(seconds=1)

    await request_code(mock_db, mock_provider, account.email)

    user_repo.reset_otp_state.assert_awaited_once_with(mock_db, account.id)
    mock_db.commit.assert_awaited_once()
    assert account.failed_otp_attempts == 0
    assert account.otp_locked_until is None
    mock_provider.send_code.assert_awaited_once()


# ============================================
# verify_code - failures and lockout
# ============================================


@pytest.mark.asyncio
async def test_verify_code_first_failure(mock_db, mock_provider, user_repo, frozen_clock):
    mock_provider.verify_code.side_effect = IdentityProviderError("Token has expired or is invalid")
    user_repo.increment_failed_otp_attempts.return_value = 1

    with pytest.raises(OtpVerificationError) as exc_info:
        await verify_code(mock_db, mock_provider, "alumno@visualizar.app", "000000")

    assert exc_info.value.attempts == 2
    assert exc_info.value.retry_at is None
    assert exc_info.value.status_code == 401
    user_repo.set_otp_lock.assert_not_awaited()
    mock_db.commit.assert_awaited_once()


@pytest.mark.asyncio
async def test_verify_code_third_failure_locks(
    mock_db, mock_provider, user_repo, account, frozen_clock
):
    mock_provider.verify_code.side_effect = IdentityProviderError("invalid")
    user_repo.increment_failed_otp_attempts.return_value = 3

    with pytest.raises(AccountLockedError) as exc_info:
        await verify_code(mock_db, mock_provider, account.email, "000000")

    expected_deadline = frozen_clock + timedelta(minutes=5)
    assert exc_info.value.attempts == 0
    assert exc_info.value.retry_at == expected_deadline
    assert exc_info.value.extra["retry_at"] == expected_deadline.isoformat()
    user_repo.set_otp_lock.assert_awaited_once_with(mock_db, account.id, expected_deadline)


@pytest.mark.asyncio
async def test_verify_code_missing_session_counts_as_failure(
    mock_db, mock_provider, user_repo, frozen_clock
):
    mock_provider.verify_code.return_value = VerifyResult(session=None, user=None)
    user_repo.increment_failed_otp_attempts.return_value = 2

    with pytest.raises(OtpVerificationError) as exc_info:
        await verify_code(mock_db, mock_provider, "alumno@visualizar.app", "123456")

    assert exc_info.value.attempts == 1
    user_repo.reset_otp_state.assert_not_awaited()


@pytest.mark.asyncio
async def test_verify_code_locked_account_skips_provider(
    mock_db, mock_provider, user_repo, account, frozen_clock
):
    """A fourth attempt inside the lock window never reaches the provider."""
    account.failed_otp_attempts = 3
    account.otp_locked_until = frozen_clock + timedelta(minutes=4)

    with pytest.raises(AccountLockedError):
        await verify_code(mock_db, mock_provider, account.email, "123456")

    mock_provider.verify_code.assert_not_awaited()
    user_repo.increment_failed_otp_attempts.assert_not_awaited()


@pytest.mark.asyncio
async def test_verify_code_after_lock_repeats_locking_response(
    mock_db, mock_provider, user_repo, account, frozen_clock
):
    """The call after the locking failure gets the very same 401 body."""
    mock_provider.verify_code.side_effect = IdentityProviderError("invalid")
    user_repo.increment_failed_otp_attempts.return_value = 3

    with pytest.raises(UnauthorizedError) as third:
        await verify_code(mock_db, mock_provider, account.email, "000000")

    account.failed_otp_attempts = 3
    account.otp_locked_until = third.value.retry_at
    mock_provider.verify_code.reset_mock()

    with pytest.raises(UnauthorizedError) as fourth:
        await verify_code(mock_db, mock_provider, account.email, "000000")

    third_response = to_http_exception(third.value)
    fourth_response = to_http_exception(fourth.value)
    assert fourth_response.status_code == third_response.status_code == 401
    assert fourth_response.detail == third_response.detail
    assert fourth_response.detail["attempts"] == 0
    assert fourth_response.detail["retry_at"] == (frozen_clock + timedelta(minutes=5)).isoformat()
    mock_provider.verify_code.assert_not_awaited()


# ============================================
# verify_code - success
# ============================================


@pytest.mark.asyncio
async def test_verify_code_success_student(
    mock_db, mock_provider, user_repo, account, frozen_clock
):
    account.failed_otp_attempts = 2
    mock_provider.verify_code.return_value = _successful_result(
        {"avatar_url": "https://cdn.visualizar.app/a.png"}
    )
    student = MagicMock(spec=Student)
    student.id = "student-1"
    user_repo.get_student_by_user_id.return_value = student

    response = await verify_code(mock_db, mock_provider, account.email, "123456")

    assert response.access_token == "access-token"
    assert response.refresh_token == "refresh-token"
    assert response.attempts == 3
    assert response.retry_at is None
    assert response.user.role == UserRole.STUDENT
    assert response.user.student_id == "student-1"
    assert response.user.teacher_id is None
    assert response.user.avatar == "https://cdn.visualizar.app/a.png"
    assert response.user.supabase_user_id == "ext-user-1"

    user_repo.reset_otp_state.assert_awaited_once_with(mock_db, account.id)
    user_repo.link_external_identity.assert_awaited_once_with(mock_db, account.id, "ext-user-1")
    assert account.failed_otp_attempts == 0


@pytest.mark.asyncio
async def test_verify_code_success_teacher(
    mock_db, mock_provider, user_repo, account, frozen_clock
):
    account.role = UserRole.TEACHER
    mock_provider.verify_code.return_value = _successful_result()
    teacher = MagicMock(spec=Teacher)
    teacher.id = "teacher-1"
    user_repo.get_teacher_by_user_id.return_value = teacher

    response = await verify_code(mock_db, mock_provider, account.email, "123456")

    assert response.user.teacher_id == "teacher-1"
    assert response.user.student_id is None
    assert response.user.avatar is None


@pytest.mark.asyncio
async def test_verify_code_teacher_without_profile(
    mock_db, mock_provider, user_repo, account, frozen_clock
):
    account.role = UserRole.TEACHER
    mock_provider.verify_code.return_value = _successful_result()

    with pytest.raises(UnauthorizedError) as exc_info:
        await verify_code(mock_db, mock_provider, account.email, "123456")

    assert exc_info.value.message == "Teacher not found"


@pytest.mark.asyncio
async def test_verify_code_admin_has_no_profile(
    mock_db, mock_provider, user_repo, account, frozen_clock
):
    account.role = UserRole.ADMIN
    mock_provider.verify_code.return_value = _successful_result()

    response = await verify_code(mock_db, mock_provider, account.email, "123456")

    assert response.user.role == UserRole.ADMIN
    user_repo.get_teacher_by_user_id.assert_not_awaited()
    user_repo.get_student_by_user_id.assert_not_awaited()


# ============================================
# validate_external_token
# ============================================


@pytest.mark.asyncio
async def test_validate_token_success(mock_db, mock_provider, user_repo, account):
    account.supabase_user_id = "ext-user-1"
    mock_provider.resolve_user_from_token.return_value = ExternalUser(
        id="ext-user-1", email=account.email
    )

    user = await validate_external_token(mock_db, mock_provider, "token")

    assert user.id == account.id
    assert user.role == UserRole.STUDENT
    user_repo.get_by_supabase_id.assert_awaited_once_with(mock_db, "ext-user-1")


@pytest.mark.asyncio
async def test_validate_token_email_mismatch(mock_db, mock_provider, user_repo, account):
    mock_provider.resolve_user_from_token.return_value = ExternalUser(
        id="ext-user-1", email="otro@visualizar.app"
    )

    with pytest.raises(UnauthorizedError) as exc_info:
        await validate_external_token(mock_db, mock_provider, "token")

    assert exc_info.value.error_code == "IDENTITY_MISMATCH"


@pytest.mark.asyncio
async def test_validate_token_unknown_external_user(mock_db, mock_provider, user_repo):
    mock_provider.resolve_user_from_token.return_value = ExternalUser(
        id="ext-unknown", email="x@visualizar.app"
    )
    user_repo.get_by_supabase_id.return_value = None

    with pytest.raises(UnauthorizedError) as exc_info:
        await validate_external_token(mock_db, mock_provider, "token")

    assert exc_info.value.message == "User not found"


@pytest.mark.asyncio
async def test_validate_token_provider_error(mock_db, mock_provider, user_repo):
    mock_provider.resolve_user_from_token.side_effect = IdentityProviderError("jwt expired")

    with pytest.raises(UnauthorizedError) as exc_info:
        await validate_external_token(mock_db, mock_provider, "token")

    assert exc_info.value.message == "Token validation failed: jwt expired"
    user_repo.get_by_supabase_id.assert_not_awaited()


# ============================================
# create_user
# ============================================


@pytest.mark.asyncio
async def test_create_user_duplicate_email(mock_db, mock_provider, user_repo):
    user_repo.email_taken.return_value = True
    data = CreateUserRequest(email="alumno@visualizar.app", dni="1", role=UserRole.STUDENT)

    with pytest.raises(BadRequestError) as exc_info:
        await create_user(mock_db, mock_provider, data)

    assert exc_info.value.error_code == "EMAIL_EXISTS"
    mock_provider.create_external_user.assert_not_awaited()


@pytest.mark.asyncio
async def test_create_user_duplicate_dni(mock_db, mock_provider, user_repo):
    user_repo.dni_taken.return_value = True
    data = CreateUserRequest(email="nuevo@visualizar.app", dni="12345678", role=UserRole.TEACHER)

    with pytest.raises(BadRequestError) as exc_info:
        await create_user(mock_db, mock_provider, data)

    assert exc_info.value.error_code == "DNI_EXISTS"


@pytest.mark.asyncio
async def test_create_user_success(mock_db, mock_provider, user_repo):
    mock_provider.create_external_user.return_value = ExternalUser(
        id="ext-new", email="nuevo@visualizar.app"
    )
    created = MagicMock(spec=User)
    created.id = "22222222-2222-2222-2222-222222222222"
    created.email = "nuevo@visualizar.app"
    created.name = "Nuevo Docente"
    created.dni = "87654321"
    created.role = UserRole.TEACHER
    created.supabase_user_id = "ext-new"
    user_repo.create.return_value = created

    data = CreateUserRequest(
        email="Nuevo@Visualizar.app",
        dni="87654321",
        role=UserRole.TEACHER,
        name="Nuevo Docente",
    )
    response = await create_user(mock_db, mock_provider, data)

    assert response.message == "User created successfully"
    assert response.user.supabase_user_id == "ext-new"
    mock_provider.create_external_user.assert_awaited_once_with(
        "nuevo@visualizar.app", "Nuevo Docente"
    )
    user_repo.create_profile.assert_awaited_once_with(mock_db, created)
    mock_db.commit.assert_awaited_once()


@pytest.mark.asyncio
async def test_create_user_database_failure_rolls_back(mock_db, mock_provider, user_repo):
    mock_provider.create_external_user.return_value = ExternalUser(
        id="ext-new", email="nuevo@visualizar.app"
    )
    user_repo.create.side_effect = RuntimeError("connection reset")
    data = CreateUserRequest(email="nuevo@visualizar.app", dni="1", role=UserRole.STUDENT)

    with pytest.raises(BadRequestError) as exc_info:
        await create_user(mock_db, mock_provider, data)

    assert exc_info.value.message == "Failed to create database user: connection reset"
    mock_db.rollback.assert_awaited_once()
    mock_db.commit.assert_not_awaited()


@pytest.mark.asyncio
async def test_create_user_email_of_deleted_account(mock_db, mock_provider, user_repo):
    """A soft-deleted account still owns its email, so no external identity is created."""
    user_repo.get_by_email.return_value = None
    user_repo.email_taken.return_value = True
    data = CreateUserRequest(email="antiguo@visualizar.app", dni="55", role=UserRole.STUDENT)

    with pytest.raises(BadRequestError) as exc_info:
        await create_user(mock_db, mock_provider, data)

    assert exc_info.value.error_code == "EMAIL_EXISTS"
    user_repo.email_taken.assert_awaited_once_with(mock_db, "antiguo@visualizar.app")
    mock_provider.create_external_user.assert_not_awaited()
    user_repo.create.assert_not_awaited()
