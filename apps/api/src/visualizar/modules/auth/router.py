"""
Authentication Router

Endpoints:
- POST /auth/send-otp - Email a one-time login code
- POST /auth/verify-otp - Exchange a code for a session
- GET /auth/profile - Current user
- GET /auth/validate - Token check for clients
- POST /auth/create-user - Provision an account (admin only)

OTP endpoints are rate limited per email address on top of the
per-account lockout.
"""

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from visualizar.core.auth import AuthenticatedUser, authorize
from visualizar.core.database import get_db
from visualizar.core.errors import ServiceError, internal_error, to_http_exception
from visualizar.core.identity import SupabaseIdentityProvider, get_identity_provider
from visualizar.core.rate_limit import enforce_rate_limit
from visualizar.modules.auth import service
from visualizar.modules.auth.schemas import (
    CreateUserRequest,
    CreateUserResponse,
    SendOtpRequest,
    SendOtpResponse,
    UserProfile,
    ValidateResponse,
    VerifyOtpRequest,
    VerifyOtpResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()

# (limit, window_seconds) per email address
RATE_LIMIT_SEND_OTP = (5, 600)
RATE_LIMIT_VERIFY_OTP = (10, 600)


@router.post("/send-otp", response_model=SendOtpResponse)
async def send_otp(
    body: SendOtpRequest,
    db: AsyncSession = Depends(get_db),
    provider: SupabaseIdentityProvider = Depends(get_identity_provider),
) -> SendOtpResponse:
    """
    Send a one-time login code to the account's email.

    Raises:
        HTTPException 401: Unknown account, or account locked
        HTTPException 400: Identity provider failed to send the code
        HTTPException 429: Too many requests for this email
    """
    await enforce_rate_limit(f"otp:send:{body.email.lower()}", *RATE_LIMIT_SEND_OTP)

    try:
        return await service.request_code(db, provider, body.email)
    except ServiceError as e:
        raise to_http_exception(e) from e
    except Exception as e:
        logger.exception(f"Error sending OTP: {e}")
        raise internal_error() from e


@router.post("/verify-otp", response_model=VerifyOtpResponse)
async def verify_otp(
    body: VerifyOtpRequest,
    db: AsyncSession = Depends(get_db),
    provider: SupabaseIdentityProvider = Depends(get_identity_provider),
) -> VerifyOtpResponse:
    """
    Verify a one-time code.

    Failed verifications return 401 with `attempts` (remaining) and
    `retry_at` (set once the account is locked).
    """
    await enforce_rate_limit(f"otp:verify:{body.email.lower()}", *RATE_LIMIT_VERIFY_OTP)

    try:
        return await service.verify_code(db, provider, body.email, body.token)
    except ServiceError as e:
        raise to_http_exception(e) from e
    except Exception as e:
        logger.exception(f"Error verifying OTP: {e}")
        raise internal_error() from e


@router.get("/profile", response_model=UserProfile)
async def get_profile(
    user: AuthenticatedUser = Depends(authorize("auth.profile")),
) -> UserProfile:
    """Return the authenticated user."""
    return UserProfile.model_validate(user)


@router.get("/validate", response_model=ValidateResponse)
async def validate_token(
    user: AuthenticatedUser = Depends(authorize("auth.validate")),
) -> ValidateResponse:
    return ValidateResponse(valid=True, user=UserProfile.model_validate(user))


@router.post(
    "/create-user",
    response_model=CreateUserResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_user(
    body: CreateUserRequest,
    db: AsyncSession = Depends(get_db),
    provider: SupabaseIdentityProvider = Depends(get_identity_provider),
    admin: AuthenticatedUser = Depends(authorize("auth.create_user")),
) -> CreateUserResponse:
    """
    Provision a new account with its external identity.

    Raises:
        HTTPException 400: Duplicate email/DNI or provisioning failure
        HTTPException 403: Caller is not an admin
    """
    try:
        result = await service.create_user(db, provider, body)
        logger.info(f"Admin {admin.id} created user {result.user.id} ({result.user.role.value})")
        return result
    except ServiceError as e:
        raise to_http_exception(e) from e
    except Exception as e:
        logger.exception(f"Error creating user: {e}")
        raise internal_error() from e
