# taskboard/backend.py
"""Async client for the hosted backend: tables, remote procedures and identity.

Tables and procedures follow the PostgREST conventions served under
``/rest/v1``; the identity service lives under ``/auth/v1``. Every request
carries the project key and, when a session is bound, the caller's access
token so the backend's row-level policy sees the real principal.
"""

import logging
from typing import Any, Iterable, Optional

import httpx

from taskboard.errors import BackendError

logger = logging.getLogger(__name__)

SINGLE_OBJECT = "application/vnd.pgrst.object+json"


def _format_in(values: Iterable[Any]) -> str:
    """Render values for a PostgREST ``in.(...)`` filter."""
    quoted = []
    for value in values:
        text = str(value)
        if any(ch in text for ch in ',()"'):
            text = '"' + text.replace('"', '\\"') + '"'
        quoted.append(text)
    return f"in.({','.join(quoted)})"


def _error_message(response: httpx.Response) -> tuple[str, Optional[str]]:
    """Pull a readable message and error code out of a failed response."""
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}", None
    if not isinstance(body, dict):
        return str(body), None
    message = (
        body.get("message")
        or body.get("msg")
        or body.get("error_description")
        or body.get("error")
        or f"HTTP {response.status_code}"
    )
    code = body.get("code") or body.get("error_code")
    return str(message), str(code) if code is not None else None


class BackendClient:
    """Thin wrapper over one shared ``httpx.AsyncClient``.

    Parameters
    ----------
    http : httpx.AsyncClient
        Client whose ``base_url`` points at the backend project.
    api_key : str
        Public project key, sent as ``apikey`` on every request.
    access_token : str, optional
        Session token; when absent the project key is used as bearer.
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        api_key: str,
        access_token: Optional[str] = None,
    ) -> None:
        self._http = http
        self._api_key = api_key
        self._access_token = access_token

    @property
    def access_token(self) -> Optional[str]:
        return self._access_token

    def with_token(self, access_token: Optional[str]) -> "BackendClient":
        """Return a client bound to *access_token* sharing the same pool."""
        return BackendClient(self._http, self._api_key, access_token)

    # -- transport ------------------------------------------------------------

    def _headers(self, extra: Optional[dict] = None) -> dict:
        headers = {
            "apikey": self._api_key,
            "Authorization": f"Bearer {self._access_token or self._api_key}",
        }
        if extra:
            headers.update(extra)
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[list[tuple[str, str]]] = None,
        json: Any = None,
        headers: Optional[dict] = None,
    ) -> Any:
        try:
            response = await self._http.request(
                method,
                path,
                params=params,
                json=json,
                headers=self._headers(headers),
            )
        except httpx.HTTPError as exc:
            logger.warning("Backend %s %s failed: %s", method, path, exc)
            raise BackendError(f"Backend unreachable: {exc}") from exc

        if response.status_code >= 400:
            message, code = _error_message(response)
            logger.warning(
                "Backend %s %s -> %s %s", method, path, response.status_code, message
            )
            raise BackendError(message, status_code=response.status_code, code=code)

        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise BackendError(
                "Backend returned a non-JSON response", status_code=response.status_code
            ) from exc

    # -- tables ---------------------------------------------------------------

    async def select(
        self,
        table: str,
        columns: str = "*",
        *,
        eq: Optional[dict[str, Any]] = None,
        in_: Optional[tuple[str, Iterable[Any]]] = None,
        order: Optional[tuple[str, bool]] = None,
        single: bool = False,
    ) -> Any:
        """Read rows from *table*.

        ``order`` is ``(column, ascending)``. With ``single=True`` exactly
        one row is expected and returned as a dict.
        """
        params: list[tuple[str, str]] = [("select", columns)]
        for column, value in (eq or {}).items():
            params.append((column, f"eq.{value}"))
        if in_ is not None:
            column, values = in_
            params.append((column, _format_in(values)))
        if order is not None:
            column, ascending = order
            params.append(("order", f"{column}.{'asc' if ascending else 'desc'}"))

        headers = {"Accept": SINGLE_OBJECT} if single else None
        data = await self._request("GET", f"/rest/v1/{table}", params=params, headers=headers)
        if single:
            return data
        return data or []

    async def insert(self, table: str, values: dict[str, Any]) -> list[dict]:
        """Insert one row and return the stored representation."""
        data = await self._request(
            "POST",
            f"/rest/v1/{table}",
            json=values,
            headers={"Prefer": "return=representation"},
        )
        return data or []

    async def update(
        self, table: str, values: dict[str, Any], *, eq: dict[str, Any]
    ) -> list[dict]:
        """Update rows of *table* matched by ``eq`` and return them."""
        params = [(column, f"eq.{value}") for column, value in eq.items()]
        data = await self._request(
            "PATCH",
            f"/rest/v1/{table}",
            params=params,
            json=values,
            headers={"Prefer": "return=representation"},
        )
        return data or []

    async def rpc(self, name: str, params: Optional[dict[str, Any]] = None) -> Any:
        """Call a remote procedure and return its JSON result."""
        return await self._request("POST", f"/rest/v1/rpc/{name}", json=params or {})

    # -- identity -------------------------------------------------------------

    async def sign_in_with_password(self, email: str, password: str) -> dict:
        return await self._request(
            "POST",
            "/auth/v1/token",
            params=[("grant_type", "password")],
            json={"email": email, "password": password},
        )

    async def refresh_session(self, refresh_token: str) -> dict:
        return await self._request(
            "POST",
            "/auth/v1/token",
            params=[("grant_type", "refresh_token")],
            json={"refresh_token": refresh_token},
        )

    async def exchange_code_for_session(self, auth_code: str, code_verifier: str) -> dict:
        """Complete a PKCE OAuth flow."""
        return await self._request(
            "POST",
            "/auth/v1/token",
            params=[("grant_type", "pkce")],
            json={"auth_code": auth_code, "code_verifier": code_verifier},
        )

    async def get_user(self) -> dict:
        """Return the identity record behind the bound access token."""
        if not self._access_token:
            raise BackendError("No access token bound", status_code=401)
        return await self._request("GET", "/auth/v1/user")

    async def update_user(self, *, password: str) -> dict:
        if not self._access_token:
            raise BackendError("No access token bound", status_code=401)
        return await self._request("PUT", "/auth/v1/user", json={"password": password})

    async def sign_out(self) -> None:
        if not self._access_token:
            return
        await self._request("POST", "/auth/v1/logout")

    async def reset_password_for_email(self, email: str, redirect_to: str) -> None:
        await self._request(
            "POST",
            "/auth/v1/recover",
            params=[("redirect_to", redirect_to)],
            json={"email": email},
        )
