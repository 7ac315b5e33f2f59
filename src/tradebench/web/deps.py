"""Request dependencies and error mapping for the Web API."""

from fastapi import Request, status

from tradebench.api.base import ApiClient
from tradebench.core.auth_context import AuthContext
from tradebench.errors import (
    AuthError,
    BackendError,
    ConflictError,
    NotFoundError,
    TradeBenchError,
    ValidationError,
)

ERROR_STATUS: dict[type[TradeBenchError], int] = {
    ValidationError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    AuthError: status.HTTP_401_UNAUTHORIZED,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ConflictError: status.HTTP_409_CONFLICT,
    BackendError: status.HTTP_502_BAD_GATEWAY,
}


def status_for(error: TradeBenchError) -> int:
    """HTTP status for an error kind (502 for anything unmapped)."""
    for kind, code in ERROR_STATUS.items():
        if isinstance(error, kind):
            return code
    return status.HTTP_502_BAD_GATEWAY


def get_client(request: Request) -> ApiClient:
    """The app-scoped ApiClient."""
    return request.app.state.client


def get_auth_context(request: Request) -> AuthContext:
    """The app-scoped AuthContext."""
    return request.app.state.auth
