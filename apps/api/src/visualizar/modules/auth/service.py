"""
Authentication Service Layer

OTP login, token validation and administrator-driven account provisioning.

Login flow:
1. request_code - the identity provider emails a one-time code to an
   existing account. Accounts are never created here; an administrator
   provisions them with create_user.
2. verify_code - the code is checked by the identity provider. Failures
   count towards the lockout policy in `lockout.py`; success returns the
   provider session plus a role-aware user summary.

Security considerations:
- Codes and tokens are never logged or returned by request_code
- A locked account is rejected before the identity provider is contacted
- Failed attempts are counted with a single atomic UPDATE
- Token validation cross-checks the provider email against the local
  account so a reassigned external identity cannot take over an account
"""

import logging
from datetime import UTC, datetime
from typing import NoReturn

from sqlalchemy.ext.asyncio import AsyncSession

from visualizar.core.auth import AuthenticatedUser
from visualizar.core.database import transaction
from visualizar.core.errors import BadRequestError, UnauthorizedError
from visualizar.core.identity import IdentityProviderError, SupabaseIdentityProvider
from visualizar.modules.auth import lockout
from visualizar.modules.auth.schemas import (
    CreatedUser,
    CreateUserRequest,
    CreateUserResponse,
    SendOtpResponse,
    SessionUser,
    VerifyOtpResponse,
)
from visualizar.modules.users.models import User, UserRole
from visualizar.modules.users.repository import UserRepository

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class AccountLockedError(UnauthorizedError):
    """Raised while an account's OTP lock is active."""

    def __init__(self, retry_at: datetime, attempts: int = 0):
        self.retry_at = retry_at
        self.attempts = attempts
        super().__init__(
            message="Too many failed attempts. Please try again later.",
            error_code="ACCOUNT_LOCKED",
            attempts=attempts,
            retry_at=retry_at.isoformat(),
        )


class OtpVerificationError(UnauthorizedError):
    """Raised when a code is rejected. Carries the remaining attempts."""

    def __init__(self, attempts: int, retry_at: datetime | None = None):
        self.retry_at = retry_at
        self.attempts = attempts
        super().__init__(
            message="Invalid or expired OTP code.",
            error_code="INVALID_OTP",
            attempts=attempts,
            retry_at=retry_at.isoformat() if retry_at else None,
        )


def _normalize_email(email: str) -> str:
    return email.strip().lower()


async def _get_unlocked_account(db: AsyncSession, email: str) -> User:
    """
    Load the active account for `email` and apply the lockout policy.

    An expired lock is cleared and persisted before returning.

    Raises:
        UnauthorizedError: If no active account exists
        AccountLockedError: If the account is currently locked
    """
    user = await UserRepository.get_by_email(db, email)
    if not user:
        logger.warning("OTP requested for unknown or deleted account")
        raise UnauthorizedError(
            message="User not found. Please contact an administrator to create your account.",
            error_code="USER_NOT_FOUND",
        )

    now = _utcnow()

    if lockout.is_locked(user.otp_locked_until, now):
        logger.warning(f"OTP attempt on locked account {user.id}")
        raise AccountLockedError(
            retry_at=user.otp_locked_until,
            attempts=lockout.remaining_attempts(user.failed_otp_attempts),
        )

    if lockout.lock_expired(user.otp_locked_until, now):
        async with transaction(db):
            await UserRepository.reset_otp_state(db, user.id)
        user.failed_otp_attempts = 0
        user.otp_locked_until = None
        logger.info(f"OTP lock expired for account {user.id}, counter reset")

    return user


async def _record_failed_attempt(db: AsyncSession, user: User) -> NoReturn:
    """
    Count a failed verification, then raise.

    The failure that locks the account raises the same AccountLockedError a
    later call sees while the lock is active, so both responses match.
    """
    now = _utcnow()
    retry_at: datetime | None = None

    async with transaction(db):
        failed = await UserRepository.increment_failed_otp_attempts(db, user.id)
        if lockout.should_lock(failed):
            retry_at = lockout.lockout_deadline(now)
            await UserRepository.set_otp_lock(db, user.id, retry_at)

    if retry_at:
        logger.warning(f"Account {user.id} locked until {retry_at.isoformat()}")
        raise AccountLockedError(retry_at=retry_at, attempts=lockout.remaining_attempts(failed))

    logger.info(f"Failed OTP verification for account {user.id} ({failed} attempts)")
    raise OtpVerificationError(attempts=lockout.remaining_attempts(failed))


async def request_code(
    db: AsyncSession,
    provider: SupabaseIdentityProvider,
    email: str,
) -> SendOtpResponse:
    """
    Send a one-time login code to an existing account.

    Raises:
        UnauthorizedError: If the account does not exist
        AccountLockedError: If the account is locked
        BadRequestError: If the identity provider fails to send the code
    """
    email = _normalize_email(email)
    user = await _get_unlocked_account(db, email)

    try:
        await provider.send_code(email)
    except IdentityProviderError as e:
        raise BadRequestError(f"Failed to send OTP: {e}", "OTP_SEND_FAILED") from e

    logger.info(f"OTP sent for account {user.id}")
    return SendOtpResponse(message="OTP sent successfully", email=email)


async def verify_code(
    db: AsyncSession,
    provider: SupabaseIdentityProvider,
    email: str,
    code: str,
) -> VerifyOtpResponse:
    """
    Verify a one-time code and open a session.

    Args:
        db: Database session
        provider: Identity provider adapter
        email: Account email
        code: The code the user received

    Returns:
        VerifyOtpResponse with provider tokens and a role-aware user summary

    Raises:
        UnauthorizedError: Unknown account, or role profile missing
        AccountLockedError: Account locked, or this failure locked it. While
            locked the provider is not contacted
        OtpVerificationError: Code rejected; carries remaining attempts
    """
    email = _normalize_email(email)
    user = await _get_unlocked_account(db, email)

    try:
        result = await provider.verify_code(email, code)
    except IdentityProviderError as e:
        logger.info(f"Identity provider rejected code for account {user.id}: {e}")
        result = None

    if result is None or result.session is None or result.user is None:
        await _record_failed_attempt(db, user)

    external_user = result.user
    async with transaction(db):
        await UserRepository.reset_otp_state(db, user.id)
        await UserRepository.link_external_identity(db, user.id, external_user.id)
    user.failed_otp_attempts = 0
    user.otp_locked_until = None
    user.supabase_user_id = external_user.id

    summary = SessionUser(
        id=user.id,
        email=user.email,
        name=user.name,
        role=user.role,
        supabase_user_id=external_user.id,
    )

    if user.role == UserRole.TEACHER:
        teacher = await UserRepository.get_teacher_by_user_id(db, user.id)
        if not teacher:
            logger.error(f"TEACHER account {user.id} has no teacher profile")
            raise UnauthorizedError("Teacher not found", "PROFILE_NOT_FOUND")
        summary.teacher_id = teacher.id
    elif user.role == UserRole.STUDENT:
        student = await UserRepository.get_student_by_user_id(db, user.id)
        if not student:
            logger.error(f"STUDENT account {user.id} has no student profile")
            raise UnauthorizedError("Student not found", "PROFILE_NOT_FOUND")
        summary.student_id = student.id
        summary.avatar = external_user.user_metadata.get("avatar_url")

    logger.info(f"Account {user.id} logged in ({user.role.value})")
    return VerifyOtpResponse(
        access_token=result.session.access_token,
        refresh_token=result.session.refresh_token,
        user=summary,
        attempts=lockout.MAX_OTP_ATTEMPTS,
        retry_at=None,
    )


async def validate_external_token(
    db: AsyncSession,
    provider: SupabaseIdentityProvider,
    token: str,
) -> AuthenticatedUser:
    """
    Resolve an identity provider access token to a local account.

    Raises:
        UnauthorizedError: If the token is invalid, the account is missing
            or deleted, or the emails disagree
    """
    try:
        external_user = await provider.resolve_user_from_token(token)
    except IdentityProviderError as e:
        raise UnauthorizedError(f"Token validation failed: {e}", "INVALID_TOKEN") from e

    if external_user is None or not external_user.email:
        raise UnauthorizedError("Invalid or expired authentication token.", "INVALID_TOKEN")

    user = await UserRepository.get_by_supabase_id(db, external_user.id)
    if not user:
        logger.warning(f"No active account linked to external user {external_user.id}")
        raise UnauthorizedError("User not found", "USER_NOT_FOUND")

    if user.email != external_user.email:
        logger.warning(f"Email mismatch between account {user.id} and its external identity")
        raise UnauthorizedError("Token does not match the account.", "IDENTITY_MISMATCH")

    return AuthenticatedUser(
        id=user.id,
        email=user.email,
        role=user.role,
        name=user.name,
        supabase_user_id=user.supabase_user_id,
    )


async def create_user(
    db: AsyncSession,
    provider: SupabaseIdentityProvider,
    data: CreateUserRequest,
) -> CreateUserResponse:
    """
    Provision a new account.

    The external identity is created first so the local row can store its
    id. Teacher and student accounts get their role profile in the same
    transaction as the account.

    Raises:
        BadRequestError: Duplicate email or DNI, or either create step failed
    """
    email = _normalize_email(data.email)

    # Checked across deleted accounts too, before the external identity exists
    if await UserRepository.email_taken(db, email):
        raise BadRequestError("User with this email already exists", "EMAIL_EXISTS")
    if await UserRepository.dni_taken(db, data.dni):
        raise BadRequestError("User with this DNI already exists", "DNI_EXISTS")

    try:
        external_user = await provider.create_external_user(email, data.name)
    except IdentityProviderError as e:
        raise BadRequestError(
            f"Failed to create Supabase user: {e}", "IDENTITY_PROVIDER_ERROR"
        ) from e

    try:
        async with transaction(db):
            user = await UserRepository.create(
                db,
                email=email,
                dni=data.dni,
                role=data.role,
                name=data.name,
                supabase_user_id=external_user.id,
            )
            await UserRepository.create_profile(db, user)
    except Exception as e:
        logger.error(
            f"Failed to create account for external user {external_user.id}: {e}",
            exc_info=True,
        )
        raise BadRequestError(
            f"Failed to create database user: {e}", "USER_CREATE_FAILED"
        ) from e

    return CreateUserResponse(
        message="User created successfully",
        user=CreatedUser.model_validate(user),
    )
