"""Backend selection.

The remote or offline client is chosen once, here, from configuration.
Nothing downstream branches on the mode.
"""

from __future__ import annotations

import httpx
import structlog

from tradebench.api.base import ApiClient
from tradebench.api.local import create_local_client
from tradebench.api.remote import create_remote_client
from tradebench.config.app_config import AppConfig, load_app_config

logger = structlog.get_logger(__name__)


def create_api_client(
    config: AppConfig | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> ApiClient:
    """Create the ApiClient for the configured backend.

    Args:
        config: Application config. Defaults to load_app_config().
        http_client: Optional pre-built httpx client (remote mode only).

    Returns:
        Remote client when a backend url and key are configured, else the
        offline client.
    """
    config = config or load_app_config()

    if config.backend.is_remote:
        logger.info("api_client.created", mode="remote", url=config.backend.url)
        return create_remote_client(config.backend, http_client=http_client)

    logger.info(
        "api_client.created",
        mode="offline",
        db_path=str(config.storage.local_db_path),
    )
    return create_local_client(config.storage.local_db_path)
