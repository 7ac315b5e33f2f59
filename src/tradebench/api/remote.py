"""Remote backend: auth service plus REST tables with row-level security.

The database enforces per-user isolation; this client only forwards the
caller's bearer token. Row shapes match tradebench/data/schema.sql.
"""

from __future__ import annotations

from typing import Any, Mapping

import httpx
import structlog

from tradebench.api.auth_events import (
    AuthChangeNotifier,
    AuthEvent,
    AuthListener,
    Subscription,
)
from tradebench.api.base import (
    ApiClient,
    AuthProvider,
    BookmarksResource,
    QuestionsResource,
    QuizSessionsResource,
    StudyGuidesResource,
    UserProgressResource,
    normalize_progress_document,
    reference_read,
    require_credentials,
    validate_profile_fields,
)
from tradebench.api.transport import AUTH_PREFIX, RestTransport, eq
from tradebench.config.app_config import BackendConfig
from tradebench.errors import AuthError, BackendError, NotFoundError
from tradebench.models import (
    PROFILE_EDITABLE_FIELDS,
    AuthSession,
    AuthUser,
    Bookmark,
    Profile,
    Question,
    QuizSession,
    SignUpResult,
    StudyGuide,
    UserProgress,
    decode_rows,
    utc_now,
)

logger = structlog.get_logger(__name__)

BOOKMARK_SELECT = "*,questions(id,year,section,question_text,options,correct_answer,difficulty)"


# =============================================================================
# AUTH
# =============================================================================


def _user_metadata(profile_fields: Mapping[str, Any]) -> dict[str, Any]:
    """Profile fields safe to store on the identity; the answer stays in profiles."""
    return {k: v for k, v in profile_fields.items() if k != "security_answer"}


class RemoteAuth(AuthProvider):
    """Identity adapter over the external auth service."""

    def __init__(self, transport: RestTransport):
        self._transport = transport
        self._session: AuthSession | None = None
        self._notifier = AuthChangeNotifier()

    @property
    def session(self) -> AuthSession | None:
        return self._session

    def _set_session(self, session: AuthSession | None) -> None:
        self._session = session
        self._transport.access_token = session.access_token if session else None

    async def sign_up(
        self,
        email: str,
        password: str,
        profile_fields: Mapping[str, Any] | None = None,
    ) -> SignUpResult:
        require_credentials(email, password)
        profile_fields = validate_profile_fields(profile_fields or {})
        email = email.strip().lower()

        payload = await self._transport.request(
            "POST",
            f"{AUTH_PREFIX}/signup",
            json={"email": email, "password": password, "data": _user_metadata(profile_fields)},
            auth_errors=True,
        )

        if isinstance(payload, dict) and payload.get("access_token"):
            session = AuthSession.from_row(payload)
            self._set_session(session)
            await self._upsert_profile(session.user, profile_fields)
            logger.info("auth.signed_up", user_id=session.user.id, verified=True)
            await self._notifier.emit(AuthEvent.SIGNED_IN, session)
            return SignUpResult(user=session.user, session=session, needs_verification=False)

        # No session: the service wants the address confirmed first
        user_row = payload.get("user") if isinstance(payload, dict) and "user" in payload else payload
        if not isinstance(user_row, dict) or "id" not in user_row:
            raise BackendError("Malformed sign-up response")
        user = AuthUser.from_row(user_row)
        logger.info("auth.signed_up", user_id=user.id, verified=False)
        return SignUpResult(user=user, session=None, needs_verification=True)

    async def sign_in(self, email: str, password: str) -> AuthSession:
        require_credentials(email, password)

        payload = await self._transport.request(
            "POST",
            f"{AUTH_PREFIX}/token",
            params={"grant_type": "password"},
            json={"email": email.strip().lower(), "password": password},
            auth_errors=True,
        )
        if not isinstance(payload, dict) or not payload.get("access_token"):
            raise AuthError("Sign in failed")

        session = AuthSession.from_row(payload)
        self._set_session(session)
        logger.info("auth.signed_in", user_id=session.user.id)
        await self._notifier.emit(AuthEvent.SIGNED_IN, session)
        return session

    async def sign_out(self) -> None:
        if self._session is None:
            return
        user_id = self._session.user.id
        try:
            await self._transport.request("POST", f"{AUTH_PREFIX}/logout")
        finally:
            # The local session is dropped even when the service rejects the call
            self._set_session(None)
            logger.info("auth.signed_out", user_id=user_id)
            await self._notifier.emit(AuthEvent.SIGNED_OUT, None)

    async def get_current_user(self) -> AuthUser | None:
        if self._session is None:
            return None
        try:
            payload = await self._transport.request("GET", f"{AUTH_PREFIX}/user")
        except AuthError as e:
            logger.info("auth.session_rejected", error=e.message)
            return None
        return AuthUser.from_row(payload)

    async def get_profile(self, user_id: str) -> Profile | None:
        rows = await self._transport.select("profiles", {"id": eq(user_id), "select": "*"})
        return Profile.from_row(rows[0]) if rows else None

    async def ensure_profile(self, user: AuthUser) -> Profile:
        profile = await self.get_profile(user.id)
        if profile is not None:
            return profile
        fields = {
            k: v for k, v in user.user_metadata.items() if k in PROFILE_EDITABLE_FIELDS
        }
        return await self._upsert_profile(user, fields)

    async def _upsert_profile(self, user: AuthUser, fields: Mapping[str, Any]) -> Profile:
        row = {"id": user.id, "email": user.email, **fields}
        saved = await self._transport.insert("profiles", row, on_conflict="id")
        logger.debug("profiles.upserted", user_id=user.id)
        return Profile.from_row(saved)

    async def update_profile(self, fields: Mapping[str, Any]) -> Profile:
        if self._session is None:
            raise AuthError("User not authenticated")
        fields = validate_profile_fields(fields)

        rows = await self._transport.patch(
            "profiles",
            {"id": eq(self._session.user.id)},
            {**fields, "updated_at": utc_now()},
        )
        if not rows:
            raise NotFoundError("Profile not found")

        profile = Profile.from_row(rows[0])
        logger.info("profiles.updated", user_id=profile.id, fields=sorted(fields))
        await self._notifier.emit(AuthEvent.USER_UPDATED, self._session)
        return profile

    async def reset_password(self, email: str, answer: str, new_password: str) -> None:
        require_credentials(email, new_password)
        if not answer:
            raise AuthError("Invalid security answer")

        user_id = await self._transport.rpc(
            "find_profile_id_by_email", {"p_email": email.strip().lower()}
        )
        if not user_id:
            raise NotFoundError("User not found")

        valid = await self._transport.rpc(
            "verify_security_answer",
            {"p_user_id": user_id, "p_answer": answer.strip().lower()},
        )
        if not valid:
            logger.info("auth.reset_rejected", user_id=user_id)
            raise AuthError("Invalid security answer")

        await self._transport.request(
            "PUT",
            f"{AUTH_PREFIX}/admin/users/{user_id}",
            json={"password": new_password},
            service_role=True,
        )
        logger.info("auth.password_reset", user_id=user_id)

    async def refresh_session(self) -> AuthSession:
        if self._session is None:
            raise AuthError("User not authenticated")

        payload = await self._transport.request(
            "POST",
            f"{AUTH_PREFIX}/token",
            params={"grant_type": "refresh_token"},
            json={"refresh_token": self._session.refresh_token},
            auth_errors=True,
        )
        session = AuthSession.from_row(payload)
        self._set_session(session)
        logger.debug("auth.token_refreshed", user_id=session.user.id)
        await self._notifier.emit(AuthEvent.TOKEN_REFRESHED, session)
        return session

    async def delete_account(self) -> None:
        if self._session is None:
            raise AuthError("User not authenticated")
        user_id = self._session.user.id

        # Profile, progress, sessions and bookmarks cascade in the database
        await self._transport.request(
            "DELETE", f"{AUTH_PREFIX}/admin/users/{user_id}", service_role=True
        )
        self._set_session(None)
        logger.info("auth.account_deleted", user_id=user_id)
        await self._notifier.emit(AuthEvent.SIGNED_OUT, None)

    def on_auth_state_change(self, callback: AuthListener) -> Subscription:
        return self._notifier.subscribe(callback)


# =============================================================================
# REFERENCE DATA
# =============================================================================


def _filters(**values: Any) -> dict[str, str]:
    return {name: eq(value) for name, value in values.items() if value is not None}


class RemoteQuestions(QuestionsResource):
    def __init__(self, transport: RestTransport):
        self._transport = transport

    @reference_read(default=list)
    async def get_all(
        self,
        year: int | None = None,
        section: str | None = None,
        difficulty: str | None = None,
    ) -> list[Question]:
        params = {
            "select": "*",
            "order": "year,section",
            **_filters(year=year, section=section, difficulty=difficulty),
        }
        rows = await self._transport.select("questions", params)
        return decode_rows(Question.from_row, rows)

    @reference_read(default=lambda: None)
    async def get_by_id(self, question_id: str) -> Question | None:
        rows = await self._transport.select("questions", {"select": "*", "id": eq(question_id)})
        return decode_rows(Question.from_row, rows[:1])[0] if rows else None


class RemoteStudyGuides(StudyGuidesResource):
    def __init__(self, transport: RestTransport):
        self._transport = transport

    @reference_read(default=list)
    async def get_all(
        self,
        year: int | None = None,
        section: str | None = None,
    ) -> list[StudyGuide]:
        params = {"select": "*", "order": "year,section", **_filters(year=year, section=section)}
        rows = await self._transport.select("study_guides", params)
        return decode_rows(StudyGuide.from_row, rows)

    @reference_read(default=lambda: None)
    async def get_by_id(self, guide_id: str) -> StudyGuide | None:
        rows = await self._transport.select("study_guides", {"select": "*", "id": eq(guide_id)})
        return decode_rows(StudyGuide.from_row, rows[:1])[0] if rows else None


# =============================================================================
# PER-USER DATA
# =============================================================================


class RemoteUserProgress(UserProgressResource):
    def __init__(self, transport: RestTransport):
        self._transport = transport

    async def get(self, user_id: str, year: int) -> UserProgress:
        try:
            rows = await self._transport.select(
                "user_progress",
                {"select": "*", "user_id": eq(user_id), "year": eq(year)},
            )
        except NotFoundError:
            rows = []
        if not rows:
            return UserProgress.default(user_id, year)
        return UserProgress.from_row(rows[0])

    async def update(
        self, user_id: str, year: int, document: Mapping[str, Any]
    ) -> UserProgress:
        fields = normalize_progress_document(document)
        row = await self._transport.insert(
            "user_progress",
            {"user_id": user_id, "year": year, **fields, "updated_at": utc_now()},
            on_conflict="user_id,year",
        )
        logger.info("progress.updated", user_id=user_id, year=year)
        return UserProgress.from_row(row)

    async def reset(self, user_id: str, year: int) -> UserProgress:
        rows = await self._transport.patch(
            "user_progress",
            {"user_id": eq(user_id), "year": eq(year)},
            {**normalize_progress_document({}), "updated_at": utc_now()},
        )
        logger.info("progress.reset", user_id=user_id, year=year, existed=bool(rows))
        if not rows:
            return UserProgress.default(user_id, year)
        return UserProgress.from_row(rows[0])


class RemoteBookmarks(BookmarksResource):
    def __init__(self, transport: RestTransport):
        self._transport = transport

    async def add(self, user_id: str, question_id: str, year: int) -> Bookmark:
        row = await self._transport.insert(
            "bookmarks",
            {"user_id": user_id, "question_id": question_id, "year": year},
        )
        logger.info("bookmarks.added", user_id=user_id, question_id=question_id)
        return Bookmark.from_row(row)

    async def remove(self, user_id: str, question_id: str) -> bool:
        await self._transport.delete(
            "bookmarks", {"user_id": eq(user_id), "question_id": eq(question_id)}
        )
        logger.info("bookmarks.removed", user_id=user_id, question_id=question_id)
        return True

    async def get_all(self, user_id: str, year: int) -> list[Bookmark]:
        try:
            rows = await self._transport.select(
                "bookmarks",
                {"select": BOOKMARK_SELECT, "user_id": eq(user_id), "year": eq(year)},
            )
            return decode_rows(Bookmark.from_row, rows)
        except (AuthError, BackendError, NotFoundError) as e:
            logger.warning("bookmarks.list_failed", user_id=user_id, error=e.message)
            return []


class RemoteQuizSessions(QuizSessionsResource):
    def __init__(self, transport: RestTransport):
        self._transport = transport

    async def create(
        self, user_id: str, year: int, quiz_mode: str, questions: list[Any]
    ) -> QuizSession:
        row = await self._transport.insert(
            "quiz_sessions",
            {
                "user_id": user_id,
                "year": year,
                "quiz_mode": quiz_mode,
                "questions": list(questions),
                "total_questions": len(questions),
            },
        )
        session = QuizSession.from_row(row)
        logger.info("quiz_sessions.created", session_id=session.id, total=session.total_questions)
        return session

    async def update(
        self,
        session_id: str,
        answers: Mapping[str, Any],
        score: int,
        time_taken: int,
    ) -> QuizSession:
        rows = await self._transport.patch(
            "quiz_sessions",
            {"id": eq(session_id)},
            {
                "answers": dict(answers),
                "score": score,
                "time_taken": time_taken,
                "completed_at": utc_now(),
            },
        )
        if not rows:
            raise NotFoundError(f"Quiz session not found: {session_id}")
        logger.info("quiz_sessions.completed", session_id=session_id, score=score)
        return QuizSession.from_row(rows[0])

    async def get_history(self, user_id: str, year: int, limit: int = 10) -> list[QuizSession]:
        limit = max(limit, 0)
        if limit == 0:
            return []
        try:
            rows = await self._transport.select(
                "quiz_sessions",
                {
                    "select": "*",
                    "user_id": eq(user_id),
                    "year": eq(year),
                    "completed_at": "not.is.null",
                    "order": "completed_at.desc",
                    "limit": limit,
                },
            )
            sessions = decode_rows(QuizSession.from_row, rows)
        except (AuthError, BackendError, NotFoundError) as e:
            logger.warning("quiz_sessions.history_failed", user_id=user_id, error=e.message)
            return []
        return [s for s in sessions if s.is_completed][:limit]


def create_remote_client(
    config: BackendConfig,
    http_client: httpx.AsyncClient | None = None,
) -> ApiClient:
    """Build the remote ApiClient sharing one transport."""
    transport = RestTransport(config, http_client=http_client)
    return ApiClient(
        mode="remote",
        auth=RemoteAuth(transport),
        questions=RemoteQuestions(transport),
        study_guides=RemoteStudyGuides(transport),
        user_progress=RemoteUserProgress(transport),
        bookmarks=RemoteBookmarks(transport),
        quiz_sessions=RemoteQuizSessions(transport),
        _closer=transport.aclose,
    )
