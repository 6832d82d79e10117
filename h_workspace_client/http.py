"""HTTP client for the h-workspace control plane."""

from __future__ import annotations

from typing import Any

import aiohttp

from .errors import (
    ConnectionTimeoutError,
    InvalidOptionError,
    ResponseError,
    UnauthorizedError,
    WorkspaceConnectionError,
)
from .protocol import normalize_server_uri


class WorkspaceHttpClient:
    """HTTP client wrapper for workspace control-plane endpoints.

    Every call is bearer-authenticated and resolves to the ``data`` field of
    the response body.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession,
        server_uri: str,
        *,
        token: str | None = None,
    ) -> None:
        self._session = session
        self._server_uri = normalize_server_uri(server_uri)
        self._token = token

    @property
    def server_uri(self) -> str:
        return self._server_uri

    def _url(self, path: str) -> str:
        return f"{self._server_uri}{path}"

    def _auth_headers(self) -> dict[str, str]:
        if not self._token:
            raise UnauthorizedError("A bearer token is required")
        return {"Authorization": f"Bearer {self._token}"}

    def _validate(self, **required: Any) -> None:
        """Check the bearer token, then each required argument."""
        self._auth_headers()
        for option, value in required.items():
            if not value:
                raise InvalidOptionError(option, "required", f"{option} is required")

    async def get_workspace(
        self,
        identifier: str,
        *,
        by_project_id: bool = False,
        by_project_code: bool = False,
    ) -> Any:
        """Fetch a workspace by project id, project code or workspace id."""
        self._validate(identifier=identifier)
        return await self._request(
            "GET",
            f"/project/{identifier}/workspace",
            description="Workspace",
            params=_lookup_query(by_project_id, by_project_code),
        )

    async def ensure_ready(
        self, identifier: str, workspace_data: dict[str, Any] | None = None
    ) -> Any:
        """Ensure the workspace of a project is ready for use."""
        self._validate(identifier=identifier)
        return await self._request(
            "POST",
            f"/project/{identifier}/workspace/ensure-ready",
            description="Ensure ready",
            json=workspace_data or {},
            timeout=30,
        )

    async def load_latest_version(
        self,
        identifier: str,
        *,
        by_project_id: bool = False,
        by_project_code: bool = False,
    ) -> Any:
        """Load the latest project version into the workspace."""
        self._validate(identifier=identifier)
        return await self._request(
            "POST",
            f"/project/{identifier}/workspace/load-latest-version",
            description="Load latest version",
            params=_lookup_query(by_project_id, by_project_code),
            timeout=30,
        )

    async def create_project_version(
        self,
        identifier: str,
        *,
        by_project_id: bool = False,
        by_project_code: bool = False,
    ) -> Any:
        """Create a project version from the current workspace files."""
        self._validate(identifier=identifier)
        return await self._request(
            "POST",
            f"/project/{identifier}/workspace/create-project-version",
            description="Create project version",
            params=_lookup_query(by_project_id, by_project_code),
            timeout=30,
        )

    async def get_workspace_by_code(self, code: str) -> Any:
        self._validate(code=code)
        return await self._request(
            "GET", f"/workspace/{code}", description="Workspace by code"
        )

    async def create_workspace(self, workspace_data: dict[str, Any]) -> Any:
        """Create a workspace; ``projectCode`` is required."""
        self._validate(projectCode=(workspace_data or {}).get("projectCode"))
        return await self._request(
            "POST",
            "/workspaces",
            description="Create workspace",
            json=workspace_data,
        )

    async def ensure_workspace_exists(self, code: str) -> Any:
        self._validate(code=code)
        return await self._request(
            "POST",
            f"/workspace/{code}/ensure-exists",
            description="Ensure workspace exists",
        )

    async def _request(
        self,
        method: str,
        path: str,
        *,
        description: str,
        params: dict[str, str] | None = None,
        json: Any = None,
        timeout: float = 10,
    ) -> Any:
        headers = self._auth_headers()
        try:
            async with self._session.request(
                method,
                self._url(path),
                headers=headers,
                params=params,
                json=json,
                timeout=aiohttp.ClientTimeout(total=timeout),
            ) as resp:
                body = await _read_body(resp)
                if resp.status >= 400:
                    raise ResponseError(
                        resp.status,
                        f"{description} request failed with status {resp.status}",
                        body.get("error"),
                    )
                return body.get("data")
        except TimeoutError as err:
            raise ConnectionTimeoutError(f"{description} request timed out") from err
        except aiohttp.ClientError as err:
            raise WorkspaceConnectionError(f"{description} request failed") from err


async def _read_body(resp: aiohttp.ClientResponse) -> dict[str, Any]:
    try:
        body = await resp.json(content_type=None)
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def _lookup_query(by_project_id: bool, by_project_code: bool) -> dict[str, str]:
    query: dict[str, str] = {}
    if by_project_id:
        query["byProjectId"] = "true"
    if by_project_code:
        query["byProjectCode"] = "true"
    return query
