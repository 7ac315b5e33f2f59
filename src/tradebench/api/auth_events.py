"""Auth state-change notifications.

Both identity adapters own an AuthChangeNotifier and emit through it on
sign-in, sign-out, token refresh and profile update. Listeners may be plain
callables or coroutine functions.
"""

from __future__ import annotations

import inspect
from enum import Enum
from typing import Any, Awaitable, Callable, Union

import structlog

from tradebench.models import AuthSession

logger = structlog.get_logger(__name__)


class AuthEvent(str, Enum):
    """Events delivered to auth-change listeners."""

    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    TOKEN_REFRESHED = "TOKEN_REFRESHED"
    USER_UPDATED = "USER_UPDATED"


AuthListener = Callable[[AuthEvent, Union[AuthSession, None]], Union[Awaitable[Any], Any]]


class Subscription:
    """Handle returned by on_auth_state_change. unsubscribe() is idempotent."""

    def __init__(self, notifier: AuthChangeNotifier, listener: AuthListener):
        self._notifier = notifier
        self._listener = listener
        self.active = True

    def unsubscribe(self) -> None:
        if self.active:
            self._notifier._remove(self._listener)
            self.active = False


class AuthChangeNotifier:
    """Fan-out of auth events to registered listeners."""

    def __init__(self):
        self._listeners: list[AuthListener] = []

    def subscribe(self, listener: AuthListener) -> Subscription:
        self._listeners.append(listener)
        return Subscription(self, listener)

    def _remove(self, listener: AuthListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    async def emit(self, event: AuthEvent, session: AuthSession | None) -> None:
        """Deliver event to every listener, in registration order.

        Listener exceptions propagate to the operation that emitted.
        """
        logger.debug("auth.event", auth_event=event.value, listeners=len(self._listeners))
        # Copy: a listener may unsubscribe while we iterate
        for listener in list(self._listeners):
            result = listener(event, session)
            if inspect.isawaitable(result):
                await result
