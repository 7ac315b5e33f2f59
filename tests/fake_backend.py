"""In-memory stand-in for the remote REST tables and auth service.

Served through httpx.MockTransport. Implements the subset the remote
client uses: eq/not.is.null filters, order, limit, upsert with
on_conflict, the bookmark->questions embed, unique and foreign-key
violations, per-owner row visibility, the two RPCs, and the auth
endpoints (signup, token, logout, user, admin users).
"""

import json
import uuid
from datetime import datetime, timezone
from typing import Any

import httpx

from tradebench.api.catalog import QUESTIONS_FILE, STUDY_GUIDES_FILE

FAKE_URL = "https://backend.test"
ANON_KEY = "anon-key"
SERVICE_KEY = "service-key"

# Column holding the owning user id, per private table
OWNER_COLUMN = {
    "profiles": "id",
    "user_progress": "user_id",
    "bookmarks": "user_id",
    "quiz_sessions": "user_id",
}

UNIQUE_KEYS = {
    "profiles": ("id",),
    "user_progress": ("user_id", "year"),
    "bookmarks": ("user_id", "question_id"),
}

ROW_DEFAULTS = {
    "profiles": {"selected_year": 1},
    "user_progress": {
        "progress_data": {},
        "exam_readiness": {},
        "statistics": {},
        "bookmarks": [],
        "weak_areas": [],
        "streak_data": {},
    },
    "quiz_sessions": {"answers": {}, "score": 0, "time_taken": 0, "completed_at": None},
}


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _json(status: int, body: Any = None) -> httpx.Response:
    if body is None:
        return httpx.Response(status)
    return httpx.Response(status, json=body)


def _sort_value(value: Any) -> tuple:
    # None sorts first, like NULLS FIRST
    return (value is not None, value if value is not None else "")


class FakeBackend:
    """Tables, users and tokens for one test."""

    def __init__(self, confirm_email: bool = False):
        self.confirm_email = confirm_email
        self.tables: dict[str, list[dict[str, Any]]] = {
            "questions": json.loads(QUESTIONS_FILE.read_text(encoding="utf-8"))["questions"],
            "study_guides": json.loads(STUDY_GUIDES_FILE.read_text(encoding="utf-8"))[
                "study_guides"
            ],
            "profiles": [],
            "user_progress": [],
            "bookmarks": [],
            "quiz_sessions": [],
        }
        self.users: dict[str, dict[str, Any]] = {}
        self.access_tokens: dict[str, str] = {}
        self.refresh_tokens: dict[str, str] = {}
        self.failing: set[str] = set()
        self.requests: list[tuple[str, str]] = []

    def http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handle), base_url=FAKE_URL)

    # -------------------------------------------------------------------------
    # Dispatch
    # -------------------------------------------------------------------------

    def handle(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.requests.append((request.method, path))

        if request.headers.get("apikey") not in (ANON_KEY, SERVICE_KEY):
            return _json(401, {"message": "Invalid API key"})

        for prefix in self.failing:
            if path.startswith(prefix):
                return _json(500, {"message": "Internal server error"})

        body = json.loads(request.content) if request.content else None

        if path.startswith("/auth/v1/"):
            return self._auth(request, path[len("/auth/v1/"):], body)
        if path.startswith("/rest/v1/rpc/"):
            return self._rpc(path[len("/rest/v1/rpc/"):], body)
        if path.startswith("/rest/v1/"):
            return self._rest(request, path[len("/rest/v1/"):], body)
        return _json(404, {"message": "Not found"})

    def _bearer(self, request: httpx.Request) -> str:
        return request.headers.get("authorization", "").removeprefix("Bearer ")

    def _caller(self, request: httpx.Request) -> str | None:
        return self.access_tokens.get(self._bearer(request))

    # -------------------------------------------------------------------------
    # Auth service
    # -------------------------------------------------------------------------

    def _public_user(self, record: dict[str, Any]) -> dict[str, Any]:
        return {
            "id": record["id"],
            "email": record["email"],
            "user_metadata": record["user_metadata"],
        }

    def _session(self, record: dict[str, Any]) -> dict[str, Any]:
        access = f"access-{uuid.uuid4().hex}"
        refresh = f"refresh-{uuid.uuid4().hex}"
        self.access_tokens[access] = record["id"]
        self.refresh_tokens[refresh] = record["id"]
        return {
            "access_token": access,
            "refresh_token": refresh,
            "token_type": "bearer",
            "expires_in": 3600,
            "expires_at": 4102444800,
            "user": self._public_user(record),
        }

    def _user_by_id(self, user_id: str) -> dict[str, Any] | None:
        return next((u for u in self.users.values() if u["id"] == user_id), None)

    def _auth(self, request: httpx.Request, route: str, body: Any) -> httpx.Response:
        if route == "signup":
            email = body["email"]
            if email in self.users:
                return _json(422, {"msg": "User already registered"})
            record = {
                "id": str(uuid.uuid4()),
                "email": email,
                "password": body["password"],
                "user_metadata": body.get("data") or {},
            }
            self.users[email] = record
            if self.confirm_email:
                return _json(200, self._public_user(record))
            return _json(200, self._session(record))

        if route == "token":
            grant = request.url.params.get("grant_type")
            if grant == "password":
                record = self.users.get(body["email"])
                if record is None or record["password"] != body["password"]:
                    return _json(
                        400,
                        {"error": "invalid_grant", "error_description": "Invalid login credentials"},
                    )
                return _json(200, self._session(record))
            user_id = self.refresh_tokens.pop(body.get("refresh_token"), None)
            record = self._user_by_id(user_id) if user_id else None
            if record is None:
                return _json(400, {"error_description": "Invalid Refresh Token"})
            return _json(200, self._session(record))

        if route == "logout":
            self.access_tokens.pop(self._bearer(request), None)
            return _json(204)

        if route == "user":
            user_id = self._caller(request)
            record = self._user_by_id(user_id) if user_id else None
            if record is None:
                return _json(401, {"msg": "Invalid JWT"})
            return _json(200, self._public_user(record))

        if route.startswith("admin/users/"):
            if self._bearer(request) != SERVICE_KEY:
                return _json(403, {"msg": "User not allowed"})
            record = self._user_by_id(route.rsplit("/", 1)[1])
            if record is None:
                return _json(404, {"msg": "User not found"})
            if request.method == "PUT":
                record["password"] = body["password"]
                return _json(200, self._public_user(record))
            if request.method == "DELETE":
                del self.users[record["email"]]
                for table, column in OWNER_COLUMN.items():
                    self.tables[table] = [
                        r for r in self.tables[table] if r.get(column) != record["id"]
                    ]
                return _json(200, {})

        return _json(404, {"msg": "Not found"})

    # -------------------------------------------------------------------------
    # RPC
    # -------------------------------------------------------------------------

    def _rpc(self, function: str, args: dict[str, Any]) -> httpx.Response:
        profiles = self.tables["profiles"]
        if function == "find_profile_id_by_email":
            row = next(
                (p for p in profiles if (p.get("email") or "").lower() == args["p_email"].lower()),
                None,
            )
            return _json(200, row["id"] if row else None)
        if function == "verify_security_answer":
            row = next((p for p in profiles if p["id"] == args["p_user_id"]), None)
            stored = (row or {}).get("security_answer") or ""
            stored = stored.strip().lower()
            return _json(200, bool(stored) and stored == args["p_answer"].strip().lower())
        return _json(404, {"message": f"Could not find the function {function}"})

    # -------------------------------------------------------------------------
    # Tables
    # -------------------------------------------------------------------------

    def _visible(self, table: str, caller: str | None) -> list[dict[str, Any]]:
        rows = self.tables[table]
        column = OWNER_COLUMN.get(table)
        if column is None:
            return rows
        return [r for r in rows if caller is not None and r.get(column) == caller]

    def _matches(self, row: dict[str, Any], params: httpx.QueryParams) -> bool:
        for name, condition in params.multi_items():
            if name in ("select", "order", "limit", "on_conflict"):
                continue
            value = row.get(name)
            if condition == "not.is.null":
                if value is None:
                    return False
            elif condition.startswith("eq."):
                if value is None or str(value) != condition[3:]:
                    return False
        return True

    def _rest(self, request: httpx.Request, table: str, body: Any) -> httpx.Response:
        if table not in self.tables:
            return _json(404, {"code": "42P01", "message": f"relation {table} does not exist"})

        caller = self._caller(request)
        params = request.url.params

        if request.method == "GET":
            rows = [dict(r) for r in self._visible(table, caller) if self._matches(r, params)]
            for spec in reversed((params.get("order") or "").split(",")):
                if not spec:
                    continue
                column, _, direction = spec.partition(".")
                rows.sort(key=lambda r: _sort_value(r.get(column)), reverse=direction == "desc")
            if params.get("limit"):
                rows = rows[: int(params["limit"])]
            if "questions(" in (params.get("select") or ""):
                questions = {q["id"]: q for q in self.tables["questions"]}
                for row in rows:
                    row["questions"] = questions.get(row["question_id"])
            return _json(200, rows)

        if request.method == "POST":
            return self._insert(request, table, body, caller)

        if request.method == "PATCH":
            updated = []
            for row in self._visible(table, caller):
                if self._matches(row, params):
                    row.update(body)
                    updated.append(dict(row))
            return _json(200, updated)

        if request.method == "DELETE":
            keep = [
                r
                for r in self.tables[table]
                if not (r in self._visible(table, caller) and self._matches(r, params))
            ]
            self.tables[table] = keep
            return _json(204)

        return _json(405, {"message": "Method not allowed"})

    def _insert(
        self, request: httpx.Request, table: str, body: dict[str, Any], caller: str | None
    ) -> httpx.Response:
        column = OWNER_COLUMN.get(table)
        if column is None or body.get(column) != caller:
            return _json(
                403,
                {"code": "42501", "message": f'new row violates row-level security policy for table "{table}"'},
            )

        if table == "bookmarks":
            if not any(q["id"] == body["question_id"] for q in self.tables["questions"]):
                return _json(
                    409,
                    {"code": "23503", "message": "insert or update on table \"bookmarks\" violates foreign key constraint"},
                )

        unique = UNIQUE_KEYS.get(table)
        existing = None
        if unique:
            existing = next(
                (r for r in self.tables[table] if all(r.get(k) == body.get(k) for k in unique)),
                None,
            )

        if existing is not None:
            merge = "merge-duplicates" in request.headers.get("prefer", "")
            if not merge:
                return _json(
                    409,
                    {"code": "23505", "message": "duplicate key value violates unique constraint"},
                )
            existing.update(body)
            return _json(201, [dict(existing)])

        row = {
            "id": str(uuid.uuid4()),
            **ROW_DEFAULTS.get(table, {}),
            "created_at": _now(),
            **body,
        }
        self.tables[table].append(row)
        return _json(201, [dict(row)])
