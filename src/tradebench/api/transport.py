"""Async HTTP transport for the remote backend.

Talks to a PostgREST-style table interface (/rest/v1/<table>), its RPC
endpoints (/rest/v1/rpc/<fn>) and the auth service (/auth/v1/...). Every
failure is mapped onto the tradebench error kinds:

    network fault, non-JSON body, 5xx, other 4xx -> BackendError
    401, 403                                     -> AuthError
    404                                          -> NotFoundError
    409 or code 23505                            -> ConflictError
    code 23503 (missing referenced row)          -> NotFoundError

Auth endpoints additionally report bad credentials as 400/422, which map
to AuthError when ``auth_errors=True``.
"""

from __future__ import annotations

from typing import Any, Mapping

import httpx
import structlog

from tradebench.config.app_config import BackendConfig
from tradebench.errors import (
    AuthError,
    BackendError,
    ConflictError,
    NotFoundError,
    TradeBenchError,
)

logger = structlog.get_logger(__name__)

REST_PREFIX = "/rest/v1"
AUTH_PREFIX = "/auth/v1"

# Postgres error codes
UNIQUE_VIOLATION = "23505"
FOREIGN_KEY_VIOLATION = "23503"


def eq(value: Any) -> str:
    """PostgREST equality filter."""
    return f"eq.{value}"


def _error_message(payload: Any, fallback: str) -> str:
    """Pull a human message out of a PostgREST or auth-service error body."""
    if isinstance(payload, dict):
        for key in ("message", "msg", "error_description", "error"):
            value = payload.get(key)
            if isinstance(value, str) and value:
                return value
    return fallback


def map_error(
    response: httpx.Response,
    auth_errors: bool = False,
) -> TradeBenchError:
    """Build the error for a failed response."""
    try:
        payload = response.json()
    except ValueError:
        payload = None

    status = response.status_code
    code = payload.get("code") if isinstance(payload, dict) else None
    code = str(code) if code is not None else None
    message = _error_message(payload, f"HTTP {status}")

    if code == FOREIGN_KEY_VIOLATION:
        return NotFoundError(message, status_code=status, code=code)
    if status == 409 or code == UNIQUE_VIOLATION:
        return ConflictError(message, status_code=status, code=code)
    if status in (401, 403) or (auth_errors and status in (400, 422)):
        return AuthError(message, status_code=status, code=code)
    if status == 404:
        return NotFoundError(message, status_code=status, code=code)
    return BackendError(message, status_code=status, code=code)


class RestTransport:
    """Owns the httpx client and the current bearer token."""

    def __init__(
        self,
        config: BackendConfig,
        http_client: httpx.AsyncClient | None = None,
    ):
        if not config.is_remote:
            raise ValueError("RestTransport needs a backend url and key")
        self.config = config
        self.access_token: str | None = None
        self._client = http_client or httpx.AsyncClient(
            base_url=config.url,
            timeout=config.timeout,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    def _headers(self, service_role: bool = False, prefer: str | None = None) -> dict[str, str]:
        if service_role:
            if not self.config.service_role_key:
                raise AuthError("Administrative credentials are not configured")
            key = self.config.service_role_key
            token = key
        else:
            key = self.config.anon_key
            token = self.access_token or key
        headers = {
            "apikey": key,
            "Authorization": f"Bearer {token}",
        }
        if prefer:
            headers["Prefer"] = prefer
        return headers

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
        json: Any = None,
        prefer: str | None = None,
        service_role: bool = False,
        auth_errors: bool = False,
    ) -> Any:
        """Send a request and return the decoded JSON body (None if empty).

        Raises:
            TradeBenchError subclass per the mapping in the module docstring.
        """
        headers = self._headers(service_role=service_role, prefer=prefer)

        try:
            response = await self._client.request(
                method, path, params=params, json=json, headers=headers
            )
        except httpx.HTTPError as e:
            logger.warning("transport.network_error", method=method, path=path, error=str(e))
            raise BackendError(f"Request to {path} failed: {e}") from e

        if response.is_error:
            error = map_error(response, auth_errors=auth_errors)
            logger.debug(
                "transport.error_response",
                method=method,
                path=path,
                status=response.status_code,
                error_type=type(error).__name__,
            )
            raise error

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise BackendError(f"Malformed response from {path}: {e}") from e

    # -------------------------------------------------------------------------
    # Table helpers
    # -------------------------------------------------------------------------

    async def select(self, table: str, params: Mapping[str, Any]) -> list[dict[str, Any]]:
        rows = await self.request("GET", f"{REST_PREFIX}/{table}", params=params)
        if not isinstance(rows, list):
            raise BackendError(f"Expected a list of rows from {table}")
        return rows

    async def insert(
        self,
        table: str,
        row: Mapping[str, Any],
        *,
        on_conflict: str | None = None,
    ) -> dict[str, Any]:
        prefer = "return=representation"
        params = None
        if on_conflict:
            prefer = f"resolution=merge-duplicates,{prefer}"
            params = {"on_conflict": on_conflict}
        rows = await self.request(
            "POST", f"{REST_PREFIX}/{table}", params=params, json=dict(row), prefer=prefer
        )
        return _single(rows, table)

    async def patch(
        self,
        table: str,
        filters: Mapping[str, Any],
        values: Mapping[str, Any],
    ) -> list[dict[str, Any]]:
        rows = await self.request(
            "PATCH",
            f"{REST_PREFIX}/{table}",
            params=filters,
            json=dict(values),
            prefer="return=representation",
        )
        return rows or []

    async def delete(self, table: str, filters: Mapping[str, Any]) -> None:
        await self.request("DELETE", f"{REST_PREFIX}/{table}", params=filters)

    async def rpc(self, function: str, args: Mapping[str, Any]) -> Any:
        return await self.request("POST", f"{REST_PREFIX}/rpc/{function}", json=dict(args))


def _single(rows: Any, table: str) -> dict[str, Any]:
    if isinstance(rows, list) and rows:
        return rows[0]
    if isinstance(rows, dict):
        return rows
    raise BackendError(f"No row returned from {table}")
