"""Offline backend: local key/value storage plus the bundled catalog.

Same interface and semantics as the remote backend, without network
calls. Auth events are emitted synthetically on local sign-in/out.
"""

from __future__ import annotations

import secrets
import time
import uuid
from pathlib import Path
from typing import Any, Mapping

import structlog
from passlib.hash import pbkdf2_sha256

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
    sort_reference_rows,
    validate_profile_fields,
)
from tradebench.api.catalog import Catalog, matches
from tradebench.db.local_storage import (
    KEYS,
    LocalStorage,
    bookmarks_key,
    progress_key,
    quiz_sessions_key,
    user_key_prefixes,
)
from tradebench.errors import (
    AuthError,
    ConflictError,
    NotFoundError,
    TradeBenchError,
)
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

SESSION_TTL_SECONDS = 3600
QUIZ_SESSIONS_PREFIX = "tradebench_quiz_sessions_"


def _new_id() -> str:
    return str(uuid.uuid4())


# =============================================================================
# AUTH
# =============================================================================


class LocalAuth(AuthProvider):
    """Identity adapter backed by local storage."""

    def __init__(self, storage: LocalStorage):
        self._storage = storage
        self._notifier = AuthChangeNotifier()

    def _users(self) -> dict[str, dict[str, Any]]:
        return self._storage.get_item(KEYS["users"], {})

    def _new_session(self, user: AuthUser) -> AuthSession:
        session = AuthSession(
            access_token=secrets.token_urlsafe(24),
            refresh_token=secrets.token_urlsafe(24),
            user=user,
            expires_at=int(time.time()) + SESSION_TTL_SECONDS,
        )
        self._storage.set_item(KEYS["session"], session.to_dict())
        return session

    def _current_session(self) -> AuthSession | None:
        data = self._storage.get_item(KEYS["session"])
        return AuthSession.from_row(data) if data else None

    def _require_session(self) -> AuthSession:
        session = self._current_session()
        if session is None:
            raise AuthError("User not authenticated")
        return session

    async def sign_up(
        self,
        email: str,
        password: str,
        profile_fields: Mapping[str, Any] | None = None,
    ) -> SignUpResult:
        require_credentials(email, password)
        profile_fields = validate_profile_fields(profile_fields or {})
        email = email.strip().lower()

        record = {
            "id": _new_id(),
            "email": email,
            "password_hash": pbkdf2_sha256.hash(password),
            "user_metadata": {k: v for k, v in profile_fields.items() if k != "security_answer"},
            "created_at": utc_now(),
        }

        def add_user(users: dict[str, Any]) -> dict[str, Any]:
            if email in users:
                raise AuthError("User already registered")
            users[email] = record
            return users

        self._storage.update_item(KEYS["users"], add_user, default={})

        user = AuthUser(id=record["id"], email=email, user_metadata=record["user_metadata"])
        self._write_profile(Profile(id=user.id, email=email, created_at=record["created_at"]), profile_fields)
        session = self._new_session(user)

        logger.info("auth.signed_up", user_id=user.id, verified=True, mode="offline")
        await self._notifier.emit(AuthEvent.SIGNED_IN, session)
        return SignUpResult(user=user, session=session, needs_verification=False)

    async def sign_in(self, email: str, password: str) -> AuthSession:
        require_credentials(email, password)
        record = self._users().get(email.strip().lower())
        if record is None or not pbkdf2_sha256.verify(password, record["password_hash"]):
            raise AuthError("Invalid login credentials")

        session = self._new_session(AuthUser.from_row(record))
        logger.info("auth.signed_in", user_id=session.user.id, mode="offline")
        await self._notifier.emit(AuthEvent.SIGNED_IN, session)
        return session

    async def sign_out(self) -> None:
        session = self._current_session()
        if session is None:
            return
        self._storage.remove_item(KEYS["session"])
        logger.info("auth.signed_out", user_id=session.user.id, mode="offline")
        await self._notifier.emit(AuthEvent.SIGNED_OUT, None)

    async def get_current_user(self) -> AuthUser | None:
        session = self._current_session()
        if session is None:
            return None
        record = self._users().get(session.user.email)
        if record is None or record["id"] != session.user.id:
            # Account was removed underneath the session
            self._storage.remove_item(KEYS["session"])
            return None
        return AuthUser.from_row(record)

    async def get_profile(self, user_id: str) -> Profile | None:
        row = self._storage.get_item(KEYS["profiles"], {}).get(user_id)
        return Profile.from_row(row) if row else None

    async def ensure_profile(self, user: AuthUser) -> Profile:
        profile = await self.get_profile(user.id)
        if profile is not None:
            return profile
        fields = {k: v for k, v in user.user_metadata.items() if k in PROFILE_EDITABLE_FIELDS}
        return self._write_profile(Profile(id=user.id, email=user.email, created_at=utc_now()), fields)

    def _write_profile(self, profile: Profile, fields: Mapping[str, Any]) -> Profile:
        row = profile.to_dict()
        row.update(fields)
        row["updated_at"] = utc_now()

        def put(profiles: dict[str, Any]) -> dict[str, Any]:
            profiles[profile.id] = row
            return profiles

        self._storage.update_item(KEYS["profiles"], put, default={})
        return Profile.from_row(row)

    async def update_profile(self, fields: Mapping[str, Any]) -> Profile:
        session = self._require_session()
        fields = validate_profile_fields(fields)
        profile = await self.get_profile(session.user.id)
        if profile is None:
            raise NotFoundError("Profile not found")

        profile = self._write_profile(profile, fields)
        if "selected_year" in fields:
            self._storage.set_item(KEYS["selected_year"], fields["selected_year"])
        logger.info("profiles.updated", user_id=profile.id, fields=sorted(fields), mode="offline")
        await self._notifier.emit(AuthEvent.USER_UPDATED, session)
        return profile

    async def reset_password(self, email: str, answer: str, new_password: str) -> None:
        require_credentials(email, new_password)
        email = email.strip().lower()

        profiles = self._storage.get_item(KEYS["profiles"], {})
        row = next((p for p in profiles.values() if (p.get("email") or "").lower() == email), None)
        if row is None:
            raise NotFoundError("User not found")

        stored = (row.get("security_answer") or "").strip().casefold()
        if not answer or not stored or answer.strip().casefold() != stored:
            logger.info("auth.reset_rejected", user_id=row["id"], mode="offline")
            raise AuthError("Invalid security answer")

        def set_password(users: dict[str, Any]) -> dict[str, Any]:
            if email not in users:
                raise NotFoundError("User not found")
            users[email]["password_hash"] = pbkdf2_sha256.hash(new_password)
            return users

        self._storage.update_item(KEYS["users"], set_password, default={})
        logger.info("auth.password_reset", user_id=row["id"], mode="offline")

    async def refresh_session(self) -> AuthSession:
        session = self._new_session(self._require_session().user)
        logger.debug("auth.token_refreshed", user_id=session.user.id, mode="offline")
        await self._notifier.emit(AuthEvent.TOKEN_REFRESHED, session)
        return session

    async def delete_account(self) -> None:
        session = self._require_session()
        user = session.user

        def drop_user(users: dict[str, Any]) -> dict[str, Any]:
            users.pop(user.email, None)
            return users

        def drop_profile(profiles: dict[str, Any]) -> dict[str, Any]:
            profiles.pop(user.id, None)
            return profiles

        self._storage.update_item(KEYS["users"], drop_user, default={})
        self._storage.update_item(KEYS["profiles"], drop_profile, default={})
        removed = sum(self._storage.remove_prefix(p) for p in user_key_prefixes(user.id))
        self._storage.remove_item(KEYS["session"])

        logger.info("auth.account_deleted", user_id=user.id, keys_removed=removed, mode="offline")
        await self._notifier.emit(AuthEvent.SIGNED_OUT, None)

    def on_auth_state_change(self, callback: AuthListener) -> Subscription:
        return self._notifier.subscribe(callback)


# =============================================================================
# REFERENCE DATA
# =============================================================================


class LocalQuestions(QuestionsResource):
    def __init__(self, catalog: Catalog):
        self._catalog = catalog

    @reference_read(default=list)
    async def get_all(
        self,
        year: int | None = None,
        section: str | None = None,
        difficulty: str | None = None,
    ) -> list[Question]:
        rows = [
            q
            for q in self._catalog.questions
            if matches(q, year=year, section=section, difficulty=difficulty)
        ]
        return sort_reference_rows(rows)

    @reference_read(default=lambda: None)
    async def get_by_id(self, question_id: str) -> Question | None:
        return self._catalog.question(question_id)


class LocalStudyGuides(StudyGuidesResource):
    def __init__(self, catalog: Catalog):
        self._catalog = catalog

    @reference_read(default=list)
    async def get_all(
        self,
        year: int | None = None,
        section: str | None = None,
    ) -> list[StudyGuide]:
        rows = [g for g in self._catalog.study_guides if matches(g, year=year, section=section)]
        return sort_reference_rows(rows)

    @reference_read(default=lambda: None)
    async def get_by_id(self, guide_id: str) -> StudyGuide | None:
        return next((g for g in self._catalog.study_guides if g.id == guide_id), None)


# =============================================================================
# PER-USER DATA
# =============================================================================


class LocalUserProgress(UserProgressResource):
    def __init__(self, storage: LocalStorage):
        self._storage = storage

    async def get(self, user_id: str, year: int) -> UserProgress:
        row = self._storage.get_item(progress_key(user_id, year))
        if row is None:
            return UserProgress.default(user_id, year)
        return UserProgress.from_row(row)

    async def update(
        self, user_id: str, year: int, document: Mapping[str, Any]
    ) -> UserProgress:
        fields = normalize_progress_document(document)
        now = utc_now()

        def upsert(existing: dict[str, Any] | None) -> dict[str, Any]:
            existing = existing or {}
            return {
                "id": existing.get("id") or _new_id(),
                "user_id": user_id,
                "year": year,
                **fields,
                "created_at": existing.get("created_at") or now,
                "updated_at": now,
            }

        row = self._storage.update_item(progress_key(user_id, year), upsert)
        logger.info("progress.updated", user_id=user_id, year=year, mode="offline")
        return UserProgress.from_row(row)

    async def reset(self, user_id: str, year: int) -> UserProgress:
        key = progress_key(user_id, year)
        if self._storage.get_item(key) is None:
            logger.info("progress.reset", user_id=user_id, year=year, existed=False)
            return UserProgress.default(user_id, year)

        empty = normalize_progress_document({})

        def clear(existing: dict[str, Any]) -> dict[str, Any]:
            return {**existing, **empty, "updated_at": utc_now()}

        row = self._storage.update_item(key, clear)
        logger.info("progress.reset", user_id=user_id, year=year, existed=True)
        return UserProgress.from_row(row)


class LocalBookmarks(BookmarksResource):
    def __init__(self, storage: LocalStorage, catalog: Catalog):
        self._storage = storage
        self._catalog = catalog

    async def add(self, user_id: str, question_id: str, year: int) -> Bookmark:
        if self._catalog.question(question_id) is None:
            raise NotFoundError(f"Question not found: {question_id}")

        row = {
            "id": _new_id(),
            "user_id": user_id,
            "question_id": question_id,
            "year": year,
            "created_at": utc_now(),
        }

        def append(bookmarks: list[dict[str, Any]]) -> list[dict[str, Any]]:
            if any(b["question_id"] == question_id for b in bookmarks):
                raise ConflictError(f"Question already bookmarked: {question_id}")
            return [*bookmarks, row]

        try:
            self._storage.update_item(bookmarks_key(user_id), append, default=[])
        except ConflictError:
            logger.info("bookmarks.conflict", user_id=user_id, question_id=question_id)
            raise

        logger.info("bookmarks.added", user_id=user_id, question_id=question_id, mode="offline")
        return Bookmark.from_row(row)

    async def remove(self, user_id: str, question_id: str) -> bool:
        def drop(bookmarks: list[dict[str, Any]]) -> list[dict[str, Any]]:
            return [b for b in bookmarks if b["question_id"] != question_id]

        self._storage.update_item(bookmarks_key(user_id), drop, default=[])
        logger.info("bookmarks.removed", user_id=user_id, question_id=question_id, mode="offline")
        return True

    async def get_all(self, user_id: str, year: int) -> list[Bookmark]:
        try:
            rows = self._storage.get_item(bookmarks_key(user_id), [])
            bookmarks = decode_rows(Bookmark.from_row, rows)
            questions = {q.id: q for q in self._catalog.questions}
        except TradeBenchError as e:
            logger.warning("bookmarks.list_failed", user_id=user_id, error=e.message)
            return []

        result = []
        for bookmark in bookmarks:
            if bookmark.year != year:
                continue
            question = questions.get(bookmark.question_id)
            bookmark.question = question.display_fields() if question else None
            result.append(bookmark)
        return result


class LocalQuizSessions(QuizSessionsResource):
    def __init__(self, storage: LocalStorage):
        self._storage = storage

    async def create(
        self, user_id: str, year: int, quiz_mode: str, questions: list[Any]
    ) -> QuizSession:
        row = {
            "id": _new_id(),
            "user_id": user_id,
            "year": year,
            "quiz_mode": quiz_mode,
            "questions": list(questions),
            "answers": {},
            "score": 0,
            "total_questions": len(questions),
            "time_taken": 0,
            "completed_at": None,
            "created_at": utc_now(),
        }
        self._storage.update_item(
            quiz_sessions_key(user_id), lambda sessions: [*sessions, row], default=[]
        )
        logger.info("quiz_sessions.created", session_id=row["id"], total=len(questions), mode="offline")
        return QuizSession.from_row(row)

    async def update(
        self,
        session_id: str,
        answers: Mapping[str, Any],
        score: int,
        time_taken: int,
    ) -> QuizSession:
        completed_at = utc_now()

        for key in self._storage.keys(QUIZ_SESSIONS_PREFIX):
            sessions = self._storage.get_item(key, [])
            if not any(s["id"] == session_id for s in sessions):
                continue

            def complete(rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
                for s in rows:
                    if s["id"] == session_id:
                        s.update(
                            answers=dict(answers),
                            score=score,
                            time_taken=time_taken,
                            completed_at=completed_at,
                        )
                return rows

            rows = self._storage.update_item(key, complete, default=[])
            logger.info("quiz_sessions.completed", session_id=session_id, score=score, mode="offline")
            return QuizSession.from_row(next(s for s in rows if s["id"] == session_id))

        raise NotFoundError(f"Quiz session not found: {session_id}")

    async def get_history(self, user_id: str, year: int, limit: int = 10) -> list[QuizSession]:
        limit = max(limit, 0)
        try:
            rows = self._storage.get_item(quiz_sessions_key(user_id), [])
            sessions = decode_rows(QuizSession.from_row, rows)
        except TradeBenchError as e:
            logger.warning("quiz_sessions.history_failed", user_id=user_id, error=e.message)
            return []

        completed = [s for s in sessions if s.year == year and s.completed_at]
        completed.sort(key=lambda s: s.completed_at, reverse=True)
        return completed[:limit]


def create_local_client(
    db_path: Path | None = None,
    catalog: Catalog | None = None,
) -> ApiClient:
    """Build the offline ApiClient over one storage file and catalog."""
    storage = LocalStorage(db_path)
    catalog = catalog or Catalog()
    return ApiClient(
        mode="offline",
        auth=LocalAuth(storage),
        questions=LocalQuestions(catalog),
        study_guides=LocalStudyGuides(catalog),
        user_progress=LocalUserProgress(storage),
        bookmarks=LocalBookmarks(storage, catalog),
        quiz_sessions=LocalQuizSessions(storage),
    )
