"""
Authentication and Authorization Module

Provides the access guard used by every protected endpoint.

A request is admitted in two steps:
1. The bearer token is resolved to a local account through the identity
   provider (see `visualizar.modules.auth.service.validate_external_token`).
2. The account's role is checked against ROLE_POLICY for the endpoint.

Handlers receive the caller as an explicit `AuthenticatedUser` argument:

    @router.get("/books")
    async def list_books(user: AuthenticatedUser = Depends(authorize("books.list"))):
        ...
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from visualizar.core.database import get_db
from visualizar.core.errors import ForbiddenError, ServiceError, to_http_exception
from visualizar.core.identity import SupabaseIdentityProvider, get_identity_provider
from visualizar.modules.users.models import UserRole

logger = logging.getLogger(__name__)

# Security scheme for OpenAPI documentation
security = HTTPBearer(
    auto_error=False,
    description="Identity provider access token",
)


@dataclass(frozen=True)
class AuthenticatedUser:
    """
    The caller of a protected endpoint.

    Attributes:
        id: Local account id
        email: Account email (lowercase)
        role: Account role
        name: Display name (optional)
        supabase_user_id: External identity id the token resolved to
    """

    id: str
    email: str
    role: UserRole
    name: str | None = None
    supabase_user_id: str | None = None

    def __str__(self) -> str:
        return f"AuthenticatedUser(id={self.id}, email={self.email}, role={self.role.value})"


ANY_ROLE = frozenset(UserRole)
ADMIN_ONLY = frozenset({UserRole.ADMIN})
TEACHER_ONLY = frozenset({UserRole.TEACHER})
STAFF = frozenset({UserRole.ADMIN, UserRole.TEACHER})
READERS = frozenset({UserRole.ADMIN, UserRole.TEACHER, UserRole.STUDENT})

# Endpoint key -> roles allowed to call it
ROLE_POLICY: dict[str, frozenset[UserRole]] = {
    # Auth
    "auth.profile": ANY_ROLE,
    "auth.validate": ANY_ROLE,
    "auth.create_user": ADMIN_ONLY,
    # Books
    "books.list": READERS,
    "books.get": READERS,
    "books.by_course": READERS,
    "books.create": STAFF,
    "books.update": STAFF,
    "books.delete": STAFF,
    # Book requests
    "books.create_request": TEACHER_ONLY,
    "books.my_requests": TEACHER_ONLY,
    "books.all_requests": ADMIN_ONLY,
    "books.get_request": ADMIN_ONLY,
    "books.update_request_status": ADMIN_ONLY,
    # Courses
    "courses.list": READERS,
    # Users, assignments and enrollments
    "users.delete": ADMIN_ONLY,
    "teachers.assign_course": ADMIN_ONLY,
    "teachers.unassign_course": ADMIN_ONLY,
    "students.assign_course": ADMIN_ONLY,
    "students.courses": READERS,
    "students.unassign_course": ADMIN_ONLY,
}


def check_role(user: AuthenticatedUser, policy_key: str) -> None:
    """
    Raise ForbiddenError unless the user's role is allowed for `policy_key`.

    Raises:
        KeyError: If `policy_key` is not in ROLE_POLICY
        ForbiddenError: If the role is not permitted
    """
    allowed = ROLE_POLICY[policy_key]
    if user.role not in allowed:
        logger.warning(
            f"Access denied: User {user.id} ({user.email}) has role '{user.role.value}', "
            f"not allowed for '{policy_key}'"
        )
        raise ForbiddenError(
            message="You do not have permission to access this resource.",
            error_code="INSUFFICIENT_ROLE",
        )


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    db: AsyncSession = Depends(get_db),
    provider: SupabaseIdentityProvider = Depends(get_identity_provider),
) -> AuthenticatedUser:
    """
    FastAPI dependency that resolves the bearer token to an account.

    Raises:
        HTTPException 401: If the token is missing, invalid or unresolvable
    """
    from visualizar.modules.auth.service import validate_external_token

    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={
                "error": "MISSING_TOKEN",
                "message": "Authentication token is required.",
            },
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        return await validate_external_token(db, provider, credentials.credentials)
    except ServiceError as e:
        raise to_http_exception(e) from e


def authorize(policy_key: str) -> Callable[..., Awaitable[AuthenticatedUser]]:
    """
    Build a dependency enforcing ROLE_POLICY[policy_key].

    Raises:
        KeyError: At import time if `policy_key` is unknown
    """
    if policy_key not in ROLE_POLICY:
        raise KeyError(f"No role policy for '{policy_key}'")

    async def dependency(
        user: AuthenticatedUser = Depends(get_current_user),
    ) -> AuthenticatedUser:
        try:
            check_role(user, policy_key)
        except ServiceError as e:
            raise to_http_exception(e) from e
        logger.debug(f"Authorized {user} for {policy_key}")
        return user

    return dependency


__all__ = [
    "AuthenticatedUser",
    "ROLE_POLICY",
    "authorize",
    "check_role",
    "get_current_user",
]
