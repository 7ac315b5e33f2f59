"""Shared fixtures.

Offline clients run against a SQLite file under tmp_path; remote clients
run against FakeBackend through httpx.MockTransport. Fixtures parametrized
over both backends exercise the same contract on each.
"""

import pytest

from fake_backend import ANON_KEY, FAKE_URL, SERVICE_KEY, FakeBackend
from tradebench.api import create_local_client, create_remote_client
from tradebench.config.app_config import (
    ENV_BACKEND_KEY,
    ENV_BACKEND_URL,
    ENV_LOCAL_DB,
    ENV_SERVICE_ROLE_KEY,
    BackendConfig,
    clear_config_cache,
)
from tradebench.config.years import clear_years_cache


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch):
    """No TRADEBENCH_* variables leak in, and no cached config leaks out."""
    for name in (ENV_BACKEND_URL, ENV_BACKEND_KEY, ENV_SERVICE_ROLE_KEY, ENV_LOCAL_DB):
        monkeypatch.delenv(name, raising=False)
    clear_config_cache()
    clear_years_cache()
    yield
    clear_config_cache()
    clear_years_cache()


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "state" / "tradebench.db"


@pytest.fixture
def local_client(db_path):
    """Offline client over a fresh SQLite file."""
    return create_local_client(db_path)


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def remote_client(backend):
    """Remote client wired to the in-memory backend."""
    config = BackendConfig(url=FAKE_URL, anon_key=ANON_KEY, service_role_key=SERVICE_KEY)
    return create_remote_client(config, http_client=backend.http_client())


@pytest.fixture(params=["offline", "remote"])
def api_client(request):
    """Each backend in turn."""
    if request.param == "offline":
        return request.getfixturevalue("local_client")
    return request.getfixturevalue("remote_client")

