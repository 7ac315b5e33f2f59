"""Tests for the remote client (against FakeBackend)."""

import httpx
import pytest

from fake_backend import ANON_KEY, FAKE_URL, FakeBackend
from helpers import PASSWORD, sign_up
from tradebench.api import create_remote_client
from tradebench.config.app_config import BackendConfig
from tradebench.errors import AuthError, BackendError


@pytest.fixture
def anon_only_client(backend):
    """Remote client without administrative credentials."""
    config = BackendConfig(url=FAKE_URL, anon_key=ANON_KEY)
    return create_remote_client(config, http_client=backend.http_client())


class TestSignUp:
    """Sign-up paths."""

    @pytest.mark.asyncio
    async def test_verification_required_returns_no_session(self):
        backend = FakeBackend(confirm_email=True)
        config = BackendConfig(url=FAKE_URL, anon_key=ANON_KEY)
        client = create_remote_client(config, http_client=backend.http_client())

        result = await client.auth.sign_up("new@example.com", PASSWORD, {"full_name": "New"})

        assert result.needs_verification is True
        assert result.session is None
        assert backend.tables["profiles"] == []

    @pytest.mark.asyncio
    async def test_security_answer_kept_out_of_identity_metadata(self, remote_client, backend):
        await sign_up(remote_client)
        metadata = backend.users["apprentice@example.com"]["user_metadata"]
        assert metadata["full_name"] == "Sam Fitter"
        assert "security_answer" not in metadata
        assert backend.tables["profiles"][0]["security_answer"] == "Blue"

    @pytest.mark.asyncio
    async def test_profile_created_from_metadata_on_first_load(self):
        """ensure_profile fills a missing profile from identity metadata."""
        backend = FakeBackend(confirm_email=True)
        config = BackendConfig(url=FAKE_URL, anon_key=ANON_KEY)
        client = create_remote_client(config, http_client=backend.http_client())
        await client.auth.sign_up(
            "new@example.com", PASSWORD, {"full_name": "New Hire", "selected_year": 2}
        )

        await client.auth.sign_in("new@example.com", PASSWORD)
        user = await client.auth.get_current_user()
        profile = await client.auth.ensure_profile(user)

        assert profile.full_name == "New Hire"
        assert profile.selected_year == 2
        assert len(backend.tables["profiles"]) == 1

    @pytest.mark.asyncio
    async def test_ensure_profile_keeps_existing(self, remote_client, backend):
        await sign_up(remote_client, full_name="Original")
        user = await remote_client.auth.get_current_user()
        profile = await remote_client.auth.ensure_profile(user)
        assert profile.full_name == "Original"
        assert len(backend.tables["profiles"]) == 1


class TestWire:
    """Requests the client sends."""

    @pytest.mark.asyncio
    async def test_progress_update_is_single_upsert(self, remote_client, backend):
        user_id = await sign_up(remote_client)
        backend.requests.clear()

        await remote_client.user_progress.update(user_id, 1, {"statistics": {"a": 1}})
        await remote_client.user_progress.update(user_id, 1, {"statistics": {"a": 2}})

        assert backend.requests == [
            ("POST", "/rest/v1/user_progress"),
            ("POST", "/rest/v1/user_progress"),
        ]
        assert len(backend.tables["user_progress"]) == 1
        assert backend.tables["user_progress"][0]["statistics"] == {"a": 2}

    @pytest.mark.asyncio
    async def test_private_rows_invisible_to_other_users(self, remote_client):
        first = await sign_up(remote_client, email="one@example.com")
        await remote_client.user_progress.update(first, 1, {"progress_data": {"a": 1}})
        await remote_client.auth.sign_out()

        await sign_up(remote_client, email="two@example.com")
        progress = await remote_client.user_progress.get(first, 1)
        assert progress.progress_data == {}

    @pytest.mark.asyncio
    async def test_write_for_another_user_rejected(self, remote_client):
        await sign_up(remote_client)
        with pytest.raises(AuthError):
            await remote_client.user_progress.update("someone-else", 1, {})

    @pytest.mark.asyncio
    async def test_aclose_closes_http_client(self, backend):
        http_client = backend.http_client()
        config = BackendConfig(url=FAKE_URL, anon_key=ANON_KEY)
        async with create_remote_client(config, http_client=http_client):
            pass
        assert http_client.is_closed


class TestFailures:
    """Backend failures map onto error kinds."""

    @pytest.mark.asyncio
    async def test_malformed_rows_fall_back_to_defaults(self):
        """Rows that cannot be decoded count as backend failures."""

        def malformed(request):
            return httpx.Response(200, json=[{"id": "q1", "year": None}])

        http_client = httpx.AsyncClient(transport=httpx.MockTransport(malformed), base_url=FAKE_URL)
        client = create_remote_client(BackendConfig(url=FAKE_URL, anon_key=ANON_KEY), http_client)

        assert await client.questions.get_all(year=1) == []
        assert await client.questions.get_by_id("q1") is None
        assert await client.study_guides.get_all() == []
        assert await client.study_guides.get_by_id("q1") is None
        assert await client.bookmarks.get_all("u1", 1) == []
        assert await client.quiz_sessions.get_history("u1", 1) == []

    @pytest.mark.asyncio
    async def test_failed_logout_still_signs_out(self, remote_client, backend):
        await sign_up(remote_client)
        events = []
        remote_client.auth.on_auth_state_change(lambda event, session: events.append(event.value))
        backend.failing.add("/auth/v1/logout")

        with pytest.raises(BackendError):
            await remote_client.auth.sign_out()

        assert remote_client.auth.session is None
        assert events == ["SIGNED_OUT"]

    @pytest.mark.asyncio
    async def test_reference_reads_swallow_server_errors(self, remote_client, backend):
        backend.failing.add("/rest/v1/questions")
        assert await remote_client.questions.get_all(year=1) == []
        assert await remote_client.questions.get_by_id("y1-safety-001") is None

    @pytest.mark.asyncio
    async def test_progress_get_propagates_server_errors(self, remote_client, backend):
        user_id = await sign_up(remote_client)
        backend.failing.add("/rest/v1/user_progress")
        with pytest.raises(BackendError):
            await remote_client.user_progress.get(user_id, 1)

    @pytest.mark.asyncio
    async def test_listings_empty_on_server_errors(self, remote_client, backend):
        user_id = await sign_up(remote_client)
        backend.failing.update({"/rest/v1/bookmarks", "/rest/v1/quiz_sessions"})
        assert await remote_client.bookmarks.get_all(user_id, 1) == []
        assert await remote_client.quiz_sessions.get_history(user_id, 1) == []

    @pytest.mark.asyncio
    async def test_network_failure_is_backend_error(self):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        http_client = httpx.AsyncClient(transport=httpx.MockTransport(refuse), base_url=FAKE_URL)
        client = create_remote_client(BackendConfig(url=FAKE_URL, anon_key=ANON_KEY), http_client)
        with pytest.raises(BackendError):
            await client.quiz_sessions.create("u1", 1, "practice", [])

    @pytest.mark.asyncio
    async def test_reset_password_needs_admin_key(self, anon_only_client):
        await sign_up(anon_only_client, email="a@b.com")
        with pytest.raises(AuthError):
            await anon_only_client.auth.reset_password("a@b.com", "blue", "newpass")

    @pytest.mark.asyncio
    async def test_expired_session_reads_as_signed_out(self, remote_client, backend):
        await sign_up(remote_client)
        backend.access_tokens.clear()
        assert await remote_client.auth.get_current_user() is None
