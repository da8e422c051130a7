"""Tests for request building and error mapping in the backend client."""

import httpx
import pytest

from taskboard.backend import BackendClient, _format_in
from taskboard.errors import BackendError


def _client(handler) -> BackendClient:
    http = httpx.AsyncClient(base_url="http://backend.test", transport=httpx.MockTransport(handler))
    return BackendClient(http, "anon-key")


class TestFormatIn:
    def test_plain_values(self):
        assert _format_in(["a", "b", 3]) == "in.(a,b,3)"

    def test_reserved_characters_are_quoted(self):
        assert _format_in(["x,y"]) == 'in.("x,y")'


class TestHeaders:
    @pytest.mark.anyio()
    async def test_anon_key_used_without_session(self):
        seen = {}

        def handler(request):
            seen.update(request.headers)
            return httpx.Response(200, json=[])

        await _client(handler).select("tasks")

        assert seen["apikey"] == "anon-key"
        assert seen["authorization"] == "Bearer anon-key"

    @pytest.mark.anyio()
    async def test_with_token_binds_session_and_leaves_original(self):
        seen = []

        def handler(request):
            seen.append(request.headers["authorization"])
            return httpx.Response(200, json=[])

        base = _client(handler)
        bound = base.with_token("user-token")
        await bound.select("tasks")
        await base.select("tasks")

        assert seen == ["Bearer user-token", "Bearer anon-key"]
        assert base.access_token is None
        assert bound.access_token == "user-token"


class TestQueries:
    @pytest.mark.anyio()
    async def test_select_builds_postgrest_query(self):
        captured = {}

        def handler(request):
            captured["path"] = request.url.path
            captured["params"] = list(request.url.params.multi_items())
            return httpx.Response(200, json=[{"id": "1"}])

        rows = await _client(handler).select(
            "tasks", "*", eq={"assigned_to": "u1"}, order=("created_at", False)
        )

        assert rows == [{"id": "1"}]
        assert captured["path"] == "/rest/v1/tasks"
        assert captured["params"] == [
            ("select", "*"),
            ("assigned_to", "eq.u1"),
            ("order", "created_at.desc"),
        ]

    @pytest.mark.anyio()
    async def test_single_row_requests_object(self):
        captured = {}

        def handler(request):
            captured["accept"] = request.headers["accept"]
            return httpx.Response(200, json={"id": "u1"})

        row = await _client(handler).select("users", eq={"id": "u1"}, single=True)

        assert row == {"id": "u1"}
        assert captured["accept"] == "application/vnd.pgrst.object+json"

    @pytest.mark.anyio()
    async def test_update_asks_for_representation(self):
        captured = {}

        def handler(request):
            captured["method"] = request.method
            captured["prefer"] = request.headers["prefer"]
            captured["params"] = list(request.url.params.multi_items())
            return httpx.Response(200, json=[{"id": "t1", "status": "completed"}])

        rows = await _client(handler).update("tasks", {"status": "completed"}, eq={"id": "t1"})

        assert captured == {
            "method": "PATCH",
            "prefer": "return=representation",
            "params": [("id", "eq.t1")],
        }
        assert rows[0]["status"] == "completed"

    @pytest.mark.anyio()
    async def test_rpc_returns_scalar(self):
        def handler(request):
            assert request.url.path == "/rest/v1/rpc/get_user_role"
            return httpx.Response(200, json="admin")

        assert await _client(handler).rpc("get_user_role") == "admin"

    @pytest.mark.anyio()
    async def test_refresh_session_grant(self):
        captured = {}

        def handler(request):
            captured["params"] = list(request.url.params.multi_items())
            captured["body"] = request.content
            return httpx.Response(200, json={"access_token": "fresh", "expires_in": 3600})

        grant = await _client(handler).refresh_session("refresh-1")

        assert grant["access_token"] == "fresh"
        assert captured["params"] == [("grant_type", "refresh_token")]
        assert b'"refresh_token"' in captured["body"]

    @pytest.mark.anyio()
    async def test_empty_body_is_none(self):
        def handler(request):
            return httpx.Response(204)

        assert await _client(handler).with_token("t").sign_out() is None


class TestErrors:
    @pytest.mark.anyio()
    async def test_postgrest_error_body(self):
        def handler(request):
            return httpx.Response(
                403, json={"message": "permission denied for table tasks", "code": "42501"}
            )

        with pytest.raises(BackendError) as exc_info:
            await _client(handler).insert("tasks", {"title": "x"})

        assert exc_info.value.status_code == 403
        assert exc_info.value.code == "42501"
        assert "permission denied" in exc_info.value.message

    @pytest.mark.anyio()
    async def test_identity_error_body(self):
        def handler(request):
            return httpx.Response(
                400, json={"error": "invalid_grant", "error_description": "Invalid login credentials"}
            )

        with pytest.raises(BackendError, match="Invalid login credentials"):
            await _client(handler).sign_in_with_password("a@b.co", "nope")

    @pytest.mark.anyio()
    async def test_non_json_error(self):
        def handler(request):
            return httpx.Response(503, text="upstream down")

        with pytest.raises(BackendError, match="upstream down"):
            await _client(handler).select("users")

    @pytest.mark.anyio()
    async def test_transport_failure(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(BackendError, match="unreachable"):
            await _client(handler).select("users")

    @pytest.mark.anyio()
    async def test_identity_calls_need_a_token(self):
        def handler(request):
            raise AssertionError("no request expected")

        with pytest.raises(BackendError):
            await _client(handler).get_user()
