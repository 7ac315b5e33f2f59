"""Tests for HTTP error mapping."""

import httpx
import pytest

from tradebench.api.transport import map_error
from tradebench.errors import (
    AuthError,
    BackendError,
    ConflictError,
    NotFoundError,
)


def _response(status, body=None, text=None):
    request = httpx.Request("GET", "https://backend.test/rest/v1/x")
    if text is not None:
        return httpx.Response(status, text=text, request=request)
    return httpx.Response(status, json=body or {}, request=request)


class TestMapError:
    """Status and error-code mapping."""

    @pytest.mark.parametrize(
        "status, body, expected",
        [
            (401, {"message": "JWT expired"}, AuthError),
            (403, {"code": "42501"}, AuthError),
            (404, {}, NotFoundError),
            (409, {"code": "23505"}, ConflictError),
            (400, {"code": "23505"}, ConflictError),
            (409, {"code": "23503"}, NotFoundError),
            (500, {}, BackendError),
            (503, {}, BackendError),
            (400, {}, BackendError),
        ],
    )
    def test_status_mapping(self, status, body, expected):
        assert isinstance(map_error(_response(status, body)), expected)

    def test_auth_endpoint_bad_request_is_auth_error(self):
        """400/422 from auth endpoints means bad credentials."""
        error = map_error(
            _response(400, {"error_description": "Invalid login credentials"}),
            auth_errors=True,
        )
        assert isinstance(error, AuthError)
        assert error.message == "Invalid login credentials"

    def test_error_carries_status_and_code(self):
        error = map_error(_response(409, {"code": "23505", "message": "duplicate key"}))
        assert error.status_code == 409
        assert error.code == "23505"
        assert error.message == "duplicate key"

    def test_non_json_body(self):
        error = map_error(_response(502, text="<html>Bad gateway</html>"))
        assert isinstance(error, BackendError)
        assert error.message == "HTTP 502"
