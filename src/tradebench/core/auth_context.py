"""Session-lifetime auth state.

AuthContext owns the current user. It is the only writer of that state:
its own operations and its auth-change listener update it, everyone else
reads through properties. Operations return AuthResult instead of raising,
so callers branch on ``success``.

Usage:
    async with AuthContext(client.auth) as auth:
        result = await auth.sign_in(email, password)
        if result.success:
            print(auth.user.full_name)
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping

import structlog

from tradebench.api.auth_events import AuthEvent, Subscription
from tradebench.api.base import AuthProvider
from tradebench.errors import TradeBenchError
from tradebench.models import AuthSession, AuthUser, Profile

logger = structlog.get_logger(__name__)


class AuthStatus(str, Enum):
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    AUTHENTICATED = "authenticated"
    ANONYMOUS = "anonymous"


@dataclass(frozen=True)
class CurrentUser:
    """Identity merged with its profile row."""

    id: str
    email: str
    full_name: str
    first_name: str | None = None
    last_name: str | None = None
    selected_year: int = 1
    security_question: str | None = None
    role: str = "user"

    @classmethod
    def from_identity(cls, user: AuthUser, profile: Profile | None) -> CurrentUser:
        """Profile values win, then identity metadata, then the email."""
        meta = user.user_metadata
        profile = profile or Profile(id=user.id, email=user.email, selected_year=0)
        return cls(
            id=user.id,
            email=user.email,
            full_name=profile.full_name or meta.get("full_name") or user.email,
            first_name=profile.first_name or meta.get("first_name"),
            last_name=profile.last_name or meta.get("last_name"),
            selected_year=profile.selected_year or meta.get("selected_year") or 1,
            security_question=profile.security_question or meta.get("security_question"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "email": self.email,
            "full_name": self.full_name,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "selected_year": self.selected_year,
            "security_question": self.security_question,
            "role": self.role,
        }


@dataclass(frozen=True)
class AuthErrorInfo:
    """Error overlay from the last failed operation."""

    type: str
    message: str


@dataclass
class AuthResult:
    """Outcome of an AuthContext operation."""

    success: bool
    user: CurrentUser | None = None
    error: str | None = None
    needs_verification: bool = False
    message: str | None = None


class AuthContext:
    """Single-writer holder of the current user."""

    def __init__(self, auth: AuthProvider):
        self._auth = auth
        self._status = AuthStatus.UNINITIALIZED
        self._user: CurrentUser | None = None
        self._error: AuthErrorInfo | None = None
        self._subscription: Subscription | None = None

    # -------------------------------------------------------------------------
    # Read-only state
    # -------------------------------------------------------------------------

    @property
    def status(self) -> AuthStatus:
        return self._status

    @property
    def user(self) -> CurrentUser | None:
        return self._user

    @property
    def error(self) -> AuthErrorInfo | None:
        return self._error

    @property
    def is_authenticated(self) -> bool:
        return self._status == AuthStatus.AUTHENTICATED

    @property
    def is_loading(self) -> bool:
        return self._status in (AuthStatus.UNINITIALIZED, AuthStatus.LOADING)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def start(self) -> AuthStatus:
        """Resolve the current user once and subscribe to auth changes."""
        if self._subscription is None:
            self._subscription = self._auth.on_auth_state_change(self._on_auth_change)
        await self._load_user()
        logger.info("auth_context.started", status=self._status.value)
        return self._status

    async def close(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    async def __aenter__(self) -> AuthContext:
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def _load_user(self) -> CurrentUser | None:
        self._status = AuthStatus.LOADING
        try:
            identity = await self._auth.get_current_user()
            if identity is None:
                self._set_anonymous()
                return None
            profile = await self._auth.ensure_profile(identity)
        except TradeBenchError as e:
            logger.warning("auth_context.load_failed", error=e.message)
            self._set_anonymous()
            self._error = AuthErrorInfo(type="unknown", message=e.message)
            return None

        self._user = CurrentUser.from_identity(identity, profile)
        self._status = AuthStatus.AUTHENTICATED
        self._error = None
        return self._user

    def _set_anonymous(self) -> None:
        self._user = None
        self._status = AuthStatus.ANONYMOUS

    async def _on_auth_change(self, event: AuthEvent, session: AuthSession | None) -> None:
        logger.debug("auth_context.event", auth_event=event.value)
        if event in (AuthEvent.SIGNED_IN, AuthEvent.TOKEN_REFRESHED, AuthEvent.USER_UPDATED):
            await self._load_user()
        elif event == AuthEvent.SIGNED_OUT:
            self._set_anonymous()
            self._error = None

    def _fail(self, error_type: str, e: TradeBenchError) -> AuthResult:
        self._error = AuthErrorInfo(type=error_type, message=e.message)
        logger.info("auth_context.failed", operation=error_type, error=e.message)
        return AuthResult(success=False, error=e.message, message=e.message)

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    async def sign_in(self, email: str, password: str) -> AuthResult:
        self._error = None
        try:
            await self._auth.sign_in(email, password)
        except TradeBenchError as e:
            return self._fail("signin", e)

        # The SIGNED_IN listener has normally loaded the user already
        if self._user is None or self._subscription is None:
            await self._load_user()
        if self._user is None:
            message = self._error.message if self._error else "Sign in failed"
            return AuthResult(success=False, error=message, message=message)
        return AuthResult(success=True, user=self._user)

    async def sign_up(
        self,
        email: str,
        password: str,
        profile_fields: Mapping[str, Any] | None = None,
    ) -> AuthResult:
        self._error = None
        try:
            result = await self._auth.sign_up(email, password, profile_fields)
        except TradeBenchError as e:
            return self._fail("signup", e)

        if result.needs_verification:
            return AuthResult(
                success=True,
                needs_verification=True,
                message="Check your email to confirm your account.",
            )

        if self._user is None or self._subscription is None:
            await self._load_user()
        return AuthResult(success=True, user=self._user, message="Account created!")

    async def sign_out(self) -> AuthResult:
        try:
            await self._auth.sign_out()
        except TradeBenchError as e:
            # Local state is cleared regardless
            self._set_anonymous()
            return self._fail("signout", e)
        self._set_anonymous()
        self._error = None
        return AuthResult(success=True)

    async def update_profile(self, fields: Mapping[str, Any]) -> AuthResult:
        self._error = None
        try:
            await self._auth.update_profile(fields)
        except TradeBenchError as e:
            return self._fail("update_profile", e)

        if self._subscription is None:
            await self._load_user()
        return AuthResult(success=True, user=self._user)

    async def reset_password(self, email: str, answer: str, new_password: str) -> AuthResult:
        self._error = None
        try:
            await self._auth.reset_password(email, answer, new_password)
        except TradeBenchError as e:
            return self._fail("reset_password", e)
        return AuthResult(success=True, message="Password updated. You can now sign in.")

    async def refresh_user(self) -> CurrentUser | None:
        """Re-read identity and profile."""
        return await self._load_user()
