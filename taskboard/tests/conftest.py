"""Shared fixtures: an in-memory stand-in for the hosted backend."""

import json
from datetime import datetime, timedelta, timezone

import httpx
import pytest
from fastapi.testclient import TestClient

from taskboard.backend import BackendClient
from taskboard.main import app
from taskboard.session import get_backend

BASE_URL = "http://backend.test"
ANON_KEY = "anon-key"
EPOCH = datetime(2026, 1, 1, tzinfo=timezone.utc)


class FakeBackend:
    """Answers table, procedure and identity requests from dicts.

    Every request is recorded in ``calls`` so tests can assert on exactly
    what went over the wire. ``failures`` holds ``(method, path)`` pairs
    that answer with a server error.
    """

    def __init__(self) -> None:
        self.users: dict[str, dict] = {}
        self.tasks: dict[str, dict] = {}
        self.tokens: dict[str, str] = {}
        self.passwords: dict[str, str] = {}
        self.oauth_codes: dict[str, str] = {}
        self.calls: list[dict] = []
        self.failures: set[tuple[str, str]] = set()
        self.missing_rpcs: set[str] = set()
        self.password_updates: list[tuple[str, str]] = []
        self.recover_requests: list[dict] = []
        self.signed_out: list[str] = []
        self._seq = 0

    # -- seeding --------------------------------------------------------------

    def _tick(self) -> str:
        self._seq += 1
        return (EPOCH + timedelta(seconds=self._seq)).isoformat()

    def add_user(self, user_id, username, email, role="user", token=None, password="secret123"):
        self.users[user_id] = {"id": user_id, "username": username, "email": email, "role": role}
        if token:
            self.tokens[token] = user_id
        self.passwords[email] = password
        return self.users[user_id]

    def add_task(self, **fields) -> dict:
        task_id = fields.pop("id", None) or f"task-{len(self.tasks) + 1}"
        stamp = self._tick()
        row = {
            "id": task_id,
            "title": "Task",
            "description": None,
            "priority": "medium",
            "status": "pending",
            "due_date": None,
            "assigned_to": None,
            "assigned_by": None,
            "created_at": stamp,
            "updated_at": stamp,
        }
        row.update(fields)
        self.tasks[task_id] = row
        return row

    # -- inspection -----------------------------------------------------------

    def calls_to(self, method: str, path: str) -> list[dict]:
        return [c for c in self.calls if c["method"] == method and c["path"] == path]

    # -- transport ------------------------------------------------------------

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        params = list(request.url.params.multi_items())
        body = json.loads(request.content) if request.content else None
        self.calls.append({
            "method": request.method,
            "path": path,
            "params": params,
            "json": body,
            "headers": dict(request.headers),
        })

        if (request.method, path) in self.failures:
            return httpx.Response(500, json={"message": "internal failure", "code": "XX000"})

        auth = request.headers.get("Authorization", "")
        token = auth[7:] if auth.startswith("Bearer ") else None
        caller = self.tokens.get(token)

        if path.startswith("/auth/v1/"):
            return self._auth(request, path, params, body, token, caller)
        if path.startswith("/rest/v1/rpc/"):
            return self._rpc(path.rsplit("/", 1)[-1], caller)
        if path.startswith("/rest/v1/"):
            return self._table(request, path.rsplit("/", 1)[-1], params, body)
        return httpx.Response(404, json={"message": "not found"})

    def _auth(self, request, path, params, body, token, caller):
        query = dict(params)
        if path == "/auth/v1/token":
            grant = query.get("grant_type")
            user_id = None
            if grant == "password":
                email = body.get("email")
                if self.passwords.get(email) == body.get("password"):
                    user_id = next(
                        (uid for uid, u in self.users.items() if u["email"] == email), None
                    )
            elif grant == "pkce":
                user_id = self.oauth_codes.get(body.get("auth_code"))
            if user_id is None:
                return httpx.Response(
                    400,
                    json={"error": "invalid_grant", "error_description": "Invalid login credentials"},
                )
            issued = next((t for t, uid in self.tokens.items() if uid == user_id), None)
            if issued is None:
                issued = f"token-{user_id}"
                self.tokens[issued] = user_id
            user = self.users[user_id]
            return httpx.Response(200, json={
                "access_token": issued,
                "refresh_token": f"refresh-{issued}",
                "expires_in": 3600,
                "user": {"id": user_id, "email": user["email"]},
            })
        if path == "/auth/v1/user":
            if caller is None:
                return httpx.Response(401, json={"code": 401, "error_code": "bad_jwt", "msg": "invalid JWT"})
            if request.method == "PUT":
                self.password_updates.append((caller, body.get("password")))
            user = self.users[caller]
            return httpx.Response(200, json={"id": caller, "email": user["email"]})
        if path == "/auth/v1/logout":
            self.signed_out.append(token)
            return httpx.Response(204)
        if path == "/auth/v1/recover":
            self.recover_requests.append({"email": body.get("email"), **query})
            return httpx.Response(200, json={})
        return httpx.Response(404, json={"msg": "not found"})

    def _rpc(self, name, caller):
        if name in self.missing_rpcs:
            return httpx.Response(
                404,
                json={"code": "PGRST202", "message": f"Could not find the function public.{name}"},
            )
        if caller is None:
            return httpx.Response(200, json=None)
        return httpx.Response(200, json=self.users[caller]["role"])

    def _table(self, request, table, params, body):
        store = self.tasks if table == "tasks" else self.users
        columns = "*"
        order = None
        rows = list(store.values())
        for key, value in params:
            if key == "select":
                columns = value
            elif key == "order":
                order = value
            elif key == "redirect_to":
                continue
            else:
                op, _, operand = value.partition(".")
                if op == "eq":
                    rows = [r for r in rows if str(r.get(key)) == operand]
                elif op == "in":
                    wanted = set(operand.strip("()").split(","))
                    rows = [r for r in rows if str(r.get(key)) in wanted]

        if request.method == "POST":
            stamp = self._tick()
            row = {
                "id": f"task-{len(store) + 1}",
                "created_at": stamp,
                "updated_at": stamp,
                **body,
            }
            store[row["id"]] = row
            return httpx.Response(201, json=[dict(row)])

        if request.method == "PATCH":
            for row in rows:
                row.update(body)
            return httpx.Response(200, json=[dict(r) for r in rows])

        if order:
            column, _, direction = order.partition(".")
            present = [r for r in rows if r.get(column) is not None]
            missing = [r for r in rows if r.get(column) is None]
            present.sort(key=lambda r: r[column], reverse=direction == "desc")
            rows = present + missing

        if columns != "*":
            wanted_columns = [c.strip() for c in columns.split(",")]
            rows = [{c: r.get(c) for c in wanted_columns} for r in rows]
        else:
            rows = [dict(r) for r in rows]

        if request.headers.get("Accept") == "application/vnd.pgrst.object+json":
            if len(rows) != 1:
                return httpx.Response(
                    406,
                    json={"code": "PGRST116", "message": "JSON object requested, multiple (or no) rows returned"},
                )
            return httpx.Response(200, json=rows[0])
        return httpx.Response(200, json=rows)


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(name="fake")
def fake_fixture():
    """A backend seeded with one admin and two regular users."""
    fake = FakeBackend()
    fake.add_user("u-admin", "alice", "alice@example.com", role="admin", token="admin-token")
    fake.add_user("u-bob", "bob", "bob@example.com", token="bob-token")
    fake.add_user("u-carol", "carol", "carol@example.com", token="carol-token")
    return fake


@pytest.fixture(name="backend")
def backend_fixture(fake: FakeBackend):
    """Unbound client talking to the fake backend."""
    http = httpx.AsyncClient(base_url=BASE_URL, transport=httpx.MockTransport(fake.handler))
    return BackendClient(http, ANON_KEY)


@pytest.fixture(name="client")
def client_fixture(backend: BackendClient):
    """Test client whose backend dependency points at the fake."""
    app.dependency_overrides[get_backend] = lambda: backend
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


def auth_headers(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers():
    return auth_headers("admin-token")


@pytest.fixture
def bob_headers():
    return auth_headers("bob-token")
