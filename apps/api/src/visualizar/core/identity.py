"""
Identity Provider Adapter

Wraps the Supabase auth API behind a small async interface used by the
OTP authentication flow and the access guard.

The Supabase Python client is synchronous, so every call runs in a worker
thread. OTP calls use a short-lived client per call so that a session
established for one user is never held by the shared client.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

from fastapi import Request
from supabase import Client, create_client
from supabase.lib.client_options import ClientOptions

from visualizar.core.config import Settings

logger = logging.getLogger(__name__)


class IdentityProviderError(Exception):
    """Raised when the identity provider rejects or fails a call."""


@dataclass(frozen=True)
class IdentityProviderConfig:
    """Configuration for the identity provider client."""

    url: str
    anon_key: str
    service_role_key: str

    @classmethod
    def from_settings(cls, settings: Settings) -> "IdentityProviderConfig":
        return cls(
            url=settings.supabase_url,
            anon_key=settings.supabase_anon_key,
            service_role_key=settings.supabase_service_role_key,
        )


@dataclass
class ExternalUser:
    """A user record as seen by the identity provider."""

    id: str
    email: str | None
    user_metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class ExternalSession:
    access_token: str
    refresh_token: str


@dataclass
class VerifyResult:
    """Outcome of a code verification. Either part may be missing."""

    session: ExternalSession | None = None
    user: ExternalUser | None = None


def _to_external_user(user: Any) -> ExternalUser | None:
    if user is None:
        return None
    return ExternalUser(
        id=str(user.id),
        email=getattr(user, "email", None),
        user_metadata=dict(getattr(user, "user_metadata", None) or {}),
    )


class SupabaseIdentityProvider:
    """Identity provider backed by Supabase Auth."""

    def __init__(self, config: IdentityProviderConfig):
        self.config = config
        self._admin_client: Client | None = None

    def _otp_client(self) -> Client:
        return create_client(
            self.config.url,
            self.config.anon_key,
            options=ClientOptions(auto_refresh_token=False, persist_session=False),
        )

    @property
    def admin_client(self) -> Client:
        """Service-role client used for token resolution and user management."""
        if self._admin_client is None:
            self._admin_client = create_client(
                self.config.url,
                self.config.service_role_key,
                options=ClientOptions(auto_refresh_token=False, persist_session=False),
            )
        return self._admin_client

    async def send_code(self, email: str) -> None:
        """Ask the provider to email a one-time code. Never creates users."""

        def _send() -> None:
            self._otp_client().auth.sign_in_with_otp(
                {"email": email, "options": {"should_create_user": False}}
            )

        try:
            await asyncio.to_thread(_send)
        except Exception as e:
            logger.warning(f"Identity provider failed to send code: {e}")
            raise IdentityProviderError(str(e)) from e

    async def verify_code(self, email: str, code: str) -> VerifyResult:
        def _verify():
            return self._otp_client().auth.verify_otp(
                {"email": email, "token": code, "type": "email"}
            )

        try:
            response = await asyncio.to_thread(_verify)
        except Exception as e:
            raise IdentityProviderError(str(e)) from e

        session = None
        if response is not None and response.session is not None:
            session = ExternalSession(
                access_token=response.session.access_token,
                refresh_token=response.session.refresh_token,
            )
        user = _to_external_user(response.user) if response is not None else None
        return VerifyResult(session=session, user=user)

    async def resolve_user_from_token(self, access_token: str) -> ExternalUser | None:
        def _get_user():
            return self.admin_client.auth.get_user(access_token)

        try:
            response = await asyncio.to_thread(_get_user)
        except Exception as e:
            raise IdentityProviderError(str(e)) from e

        if response is None:
            return None
        return _to_external_user(response.user)

    async def create_external_user(self, email: str, name: str | None = None) -> ExternalUser:
        """Create a confirmed user so the first OTP login works immediately."""

        def _create():
            return self.admin_client.auth.admin.create_user(
                {
                    "email": email,
                    "email_confirm": True,
                    "user_metadata": {"name": name} if name else {},
                }
            )

        try:
            response = await asyncio.to_thread(_create)
        except Exception as e:
            raise IdentityProviderError(str(e)) from e

        user = _to_external_user(response.user if response is not None else None)
        if user is None:
            raise IdentityProviderError("Identity provider returned no user")
        logger.info(f"Created external user {user.id}")
        return user

    async def find_user_by_email(self, email: str) -> ExternalUser | None:
        """Linear scan of the provider's user list. May lag behind recent writes."""

        def _list():
            return self.admin_client.auth.admin.list_users()

        try:
            users = await asyncio.to_thread(_list)
        except Exception as e:
            raise IdentityProviderError(str(e)) from e

        target = email.lower()
        for user in users or []:
            if (getattr(user, "email", None) or "").lower() == target:
                return _to_external_user(user)
        return None


def get_identity_provider(request: Request) -> SupabaseIdentityProvider:
    """FastAPI dependency returning the application's identity provider."""
    return request.app.state.identity_provider
