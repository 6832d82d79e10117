"""Tests for WorkspaceHttpClient."""

from __future__ import annotations

import aiohttp
import pytest

from h_workspace_client.errors import (
    ConnectionTimeoutError,
    InvalidOptionError,
    ResponseError,
    UnauthorizedError,
    WorkspaceConnectionError,
)
from h_workspace_client.http import WorkspaceHttpClient

from .conftest import create_mock_response

BASE = "https://workspace.test/h-workspace"


@pytest.fixture
def client(mock_session) -> WorkspaceHttpClient:
    """Create a client with a bearer token."""
    return WorkspaceHttpClient(mock_session, BASE + "/", token="tok")


def _call(mock_session):
    args, kwargs = mock_session.request.call_args
    return args, kwargs


class TestHttpClientRequests:
    """Tests for endpoint requests."""

    async def test_get_workspace(self, client, mock_session):
        """Test workspace lookup by project code."""
        mock_session.request.return_value = create_mock_response(
            200, {"data": {"code": "ABC123"}}
        )

        result = await client.get_workspace("proj", by_project_code=True)

        assert result == {"code": "ABC123"}
        args, kwargs = _call(mock_session)
        assert args == ("GET", f"{BASE}/project/proj/workspace")
        assert kwargs["params"] == {"byProjectCode": "true"}
        assert kwargs["headers"] == {"Authorization": "Bearer tok"}
        assert kwargs["timeout"].total == 10

    async def test_ensure_ready(self, client, mock_session):
        """Test ensure-ready posts the workspace data with a long timeout."""
        mock_session.request.return_value = create_mock_response(200, {"data": True})

        assert await client.ensure_ready("proj", {"name": "w"}) is True

        args, kwargs = _call(mock_session)
        assert args == ("POST", f"{BASE}/project/proj/workspace/ensure-ready")
        assert kwargs["json"] == {"name": "w"}
        assert kwargs["timeout"].total == 30

    async def test_ensure_ready_default_body(self, client, mock_session):
        """Test ensure-ready sends an empty object by default."""
        mock_session.request.return_value = create_mock_response(200, {"data": None})

        await client.ensure_ready("proj")

        assert _call(mock_session)[1]["json"] == {}

    @pytest.mark.parametrize(
        ("method_name", "suffix"),
        [
            ("load_latest_version", "load-latest-version"),
            ("create_project_version", "create-project-version"),
        ],
    )
    async def test_version_endpoints(self, client, mock_session, method_name, suffix):
        """Test version endpoints post to the project workspace."""
        mock_session.request.return_value = create_mock_response(200, {"data": {"v": 3}})

        result = await getattr(client, method_name)("42", by_project_id=True)

        assert result == {"v": 3}
        args, kwargs = _call(mock_session)
        assert args == ("POST", f"{BASE}/project/42/workspace/{suffix}")
        assert kwargs["params"] == {"byProjectId": "true"}

    async def test_get_workspace_by_code(self, client, mock_session):
        """Test workspace lookup by access code."""
        mock_session.request.return_value = create_mock_response(200, {"data": {"id": 1}})

        assert await client.get_workspace_by_code("ABC123") == {"id": 1}
        assert _call(mock_session)[0] == ("GET", f"{BASE}/workspace/ABC123")

    async def test_create_workspace(self, client, mock_session):
        """Test workspace creation posts the payload."""
        mock_session.request.return_value = create_mock_response(201, {"data": {"id": 2}})

        result = await client.create_workspace({"projectCode": "proj"})

        assert result == {"id": 2}
        args, kwargs = _call(mock_session)
        assert args == ("POST", f"{BASE}/workspaces")
        assert kwargs["json"] == {"projectCode": "proj"}

    async def test_ensure_workspace_exists(self, client, mock_session):
        """Test ensure-exists posts to the workspace code."""
        mock_session.request.return_value = create_mock_response(200, {"data": True})

        assert await client.ensure_workspace_exists("ABC123") is True
        assert _call(mock_session)[0] == ("POST", f"{BASE}/workspace/ABC123/ensure-exists")


class TestHttpClientValidation:
    """Tests for argument validation."""

    async def test_identifier_required(self, client, mock_session):
        """Test an empty identifier is rejected before any request."""
        with pytest.raises(InvalidOptionError) as exc_info:
            await client.get_workspace("")

        assert exc_info.value.option == "identifier"
        mock_session.request.assert_not_called()

    async def test_project_code_required(self, client, mock_session):
        """Test workspace creation requires a project code."""
        with pytest.raises(InvalidOptionError, match="projectCode is required"):
            await client.create_workspace({"name": "w"})

        mock_session.request.assert_not_called()

    async def test_token_required(self, mock_session):
        """Test requests without a token are refused."""
        client = WorkspaceHttpClient(mock_session, BASE)

        with pytest.raises(UnauthorizedError):
            await client.get_workspace_by_code("ABC123")

        mock_session.request.assert_not_called()


class TestHttpClientErrors:
    """Tests for error responses and transport failures."""

    async def test_error_status(self, client, mock_session):
        """Test error statuses raise ResponseError with the server error."""
        mock_session.request.return_value = create_mock_response(
            404, {"error": {"name": "NotFound"}}
        )

        with pytest.raises(ResponseError, match="status 404") as exc_info:
            await client.get_workspace_by_code("ABC123")

        assert exc_info.value.status == 404
        assert exc_info.value.error == {"name": "NotFound"}

    async def test_non_json_body(self, client, mock_session):
        """Test an unparseable body yields no data."""
        response = create_mock_response(200)
        response.json.side_effect = ValueError("not json")
        mock_session.request.return_value = response

        assert await client.get_workspace_by_code("ABC123") is None

    async def test_timeout(self, client, mock_session):
        """Test request timeouts raise ConnectionTimeoutError."""
        mock_session.request.side_effect = TimeoutError()

        with pytest.raises(ConnectionTimeoutError):
            await client.get_workspace_by_code("ABC123")

    async def test_client_error(self, client, mock_session):
        """Test aiohttp failures raise WorkspaceConnectionError."""
        mock_session.request.side_effect = aiohttp.ClientConnectionError("reset")

        with pytest.raises(WorkspaceConnectionError):
            await client.get_workspace_by_code("ABC123")

    async def test_token_checked_before_arguments(self, mock_session):
        """Test a missing token wins over a missing argument."""
        client = WorkspaceHttpClient(mock_session, BASE)

        with pytest.raises(UnauthorizedError):
            await client.get_workspace("")
        with pytest.raises(UnauthorizedError):
            await client.create_workspace({})
