"""Data access client: remote and offline backends behind one interface."""

from tradebench.api.auth_events import AuthEvent, Subscription
from tradebench.api.base import ApiClient, reference_read
from tradebench.api.factory import create_api_client
from tradebench.api.local import create_local_client
from tradebench.api.remote import create_remote_client

__all__ = [
    "ApiClient",
    "AuthEvent",
    "Subscription",
    "create_api_client",
    "create_local_client",
    "create_remote_client",
    "reference_read",
]
