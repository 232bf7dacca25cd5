"""Unit tests for the ACC, OSS and OAuth HTTP clients."""

import json
import pytest
import httpx
import respx
from urllib.parse import parse_qs

from acc_transform_mcp.exceptions import (
    ApsConnectionError,
    ApsTimeoutError,
    NotFoundError,
    PermissionDeniedError,
    RemoteRequestFailedError,
    UploadIncompleteError,
)
from acc_transform_mcp.services.acc_client import AccResourceClient
from acc_transform_mcp.services.auth_client import AuthClient

APS = "https://aps.test"


TOKEN = "user-token"
SOURCE_URN = "urn:adsk.objects:os.object:wip.dm.prod/source-1.rvt"


@pytest.fixture
def client(config):
    """Create AccResourceClient with test config."""
    return AccResourceClient(config=config)


def item_document():
    return {
        "data": {
            "id": "urn:adsk.wipprod:dm.lineage:abc",
            "attributes": {"displayName": "Tower.rvt"},
            "relationships": {
                "tip": {"data": {"id": "urn:adsk.wipprod:fs.file:vf.abc?version=3"}},
                "parent": {"data": {"id": "urn:adsk.wipprod:fs.folder:co.xyz"}},
            },
        }
    }


class TestClientConnection:
    """Tests for connection management."""

    @pytest.mark.asyncio
    async def test_context_manager(self, config):
        """Test async context manager usage."""
        async with AccResourceClient(config=config) as client:
            assert client._client is not None
        assert client._client is None

    @pytest.mark.asyncio
    async def test_ensure_connected(self, client):
        """Test _ensure_connected creates client if needed."""
        assert client._client is None
        await client._ensure_connected()
        assert client._client is not None
        await client.disconnect()


class TestErrorClassification:
    """Tests for status code mapping and retries."""

    @pytest.mark.asyncio
    @respx.mock
    async def test_not_found(self, client):
        """Test 404 raises NotFoundError."""
        respx.get(f"{APS}/project/v1/hubs").mock(return_value=httpx.Response(404, text="nope"))
        async with client:
            with pytest.raises(NotFoundError) as exc_info:
                await client.list_hubs(TOKEN)
        assert exc_info.value.status_code == 404
        assert exc_info.value.body == "nope"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [401, 403])
    async def test_permission_denied(self, client, status):
        """Test 401 and 403 raise PermissionDeniedError."""
        with respx.mock:
            respx.get(f"{APS}/project/v1/hubs").mock(return_value=httpx.Response(status))
            async with client:
                with pytest.raises(PermissionDeniedError):
                    await client.list_hubs(TOKEN)

    @pytest.mark.asyncio
    @respx.mock
    async def test_other_status(self, client):
        """Test other non-2xx raises RemoteRequestFailedError with the body."""
        respx.get(f"{APS}/project/v1/hubs").mock(return_value=httpx.Response(500, text="boom"))
        async with client:
            with pytest.raises(RemoteRequestFailedError) as exc_info:
                await client.list_hubs(TOKEN)
        error = exc_info.value
        assert type(error) is RemoteRequestFailedError
        assert error.operation == "List hubs"
        assert error.to_dict()["error"]["context"]["body"] == "boom"

    @pytest.mark.asyncio
    @respx.mock
    async def test_connection_error_retried(self, client):
        """Test connection errors are retried, then raised."""
        route = respx.get(f"{APS}/project/v1/hubs").mock(side_effect=httpx.ConnectError("refused"))
        async with client:
            with pytest.raises(ApsConnectionError):
                await client.list_hubs(TOKEN)
        assert route.call_count == 2

    @pytest.mark.asyncio
    @respx.mock
    async def test_timeout_retried(self, client):
        """Test timeouts are retried, then raised."""
        route = respx.get(f"{APS}/project/v1/hubs").mock(side_effect=httpx.ReadTimeout("slow"))
        async with client:
            with pytest.raises(ApsTimeoutError):
                await client.list_hubs(TOKEN)
        assert route.call_count == 2

    @pytest.mark.asyncio
    @respx.mock
    async def test_read_error_retried(self, client):
        """Test a connection reset mid-response is retried, then raised as a connection error."""
        route = respx.get(f"{APS}/project/v1/hubs").mock(side_effect=httpx.ReadError("connection reset"))
        async with client:
            with pytest.raises(ApsConnectionError) as exc_info:
                await client.list_hubs(TOKEN)
        assert route.call_count == 2
        assert "ReadError" in exc_info.value.message

    @pytest.mark.asyncio
    @respx.mock
    async def test_remote_protocol_error_not_retried_when_unsafe(self, config):
        """Test a broken exchange on a single-shot call is raised after one attempt."""
        route = respx.post(f"{APS}/authentication/v2/token").mock(
            side_effect=httpx.RemoteProtocolError("peer closed connection")
        )
        async with AuthClient(config=config) as auth:
            with pytest.raises(ApsConnectionError):
                await auth.refresh("r")
        assert route.call_count == 1

    @pytest.mark.asyncio
    @respx.mock
    async def test_recovers_after_one_failure(self, client):
        """Test a transient failure followed by success."""
        respx.get(f"{APS}/project/v1/hubs").mock(side_effect=[
            httpx.ConnectError("refused"),
            httpx.Response(200, json={"data": []}),
        ])
        async with client:
            assert await client.list_hubs(TOKEN) == []

    @pytest.mark.asyncio
    @respx.mock
    async def test_bearer_token_sent(self, client):
        """Test the access token is sent as bearer."""
        route = respx.get(f"{APS}/project/v1/hubs").mock(return_value=httpx.Response(200, json={"data": []}))
        async with client:
            await client.list_hubs(TOKEN)
        assert route.calls.last.request.headers["Authorization"] == f"Bearer {TOKEN}"


class TestBrowsing:
    """Tests for hubs, projects and folders."""

    @pytest.mark.asyncio
    @respx.mock
    async def test_list_hubs(self, client):
        """Test hub parsing."""
        respx.get(f"{APS}/project/v1/hubs").mock(return_value=httpx.Response(200, json={
            "data": [{"id": "b.hub-1", "attributes": {"name": "Acme", "region": "US"}}]
        }))
        async with client:
            hubs = await client.list_hubs(TOKEN)
        assert hubs[0].id == "b.hub-1"
        assert hubs[0].name == "Acme"

    @pytest.mark.asyncio
    @respx.mock
    async def test_list_projects_unfiltered(self, client):
        """Test that all projects are returned without a whitelist."""
        respx.get(f"{APS}/project/v1/hubs/b.hub-1/projects").mock(return_value=httpx.Response(200, json={
            "data": [
                {"id": "b.proj-1", "attributes": {"name": "Tower"}},
                {"id": "b.proj-2", "attributes": {"name": "Bridge"}},
            ]
        }))
        async with client:
            projects = await client.list_projects(TOKEN, "b.hub-1")
        assert [p.name for p in projects] == ["Tower", "Bridge"]
        assert projects[0].hub_id == "b.hub-1"

    @pytest.mark.asyncio
    @respx.mock
    async def test_list_projects_whitelist(self, config):
        """Test whitelist filtering with and without the b. prefix."""
        config.allowed_project_ids = ["proj-2"]
        respx.get(f"{APS}/project/v1/hubs/b.hub-1/projects").mock(return_value=httpx.Response(200, json={
            "data": [
                {"id": "b.proj-1", "attributes": {"name": "Tower"}},
                {"id": "b.proj-2", "attributes": {"name": "Bridge"}},
            ]
        }))
        async with AccResourceClient(config=config) as client:
            projects = await client.list_projects(TOKEN, "b.hub-1")
            assert client.is_project_allowed("b.proj-2")
            assert not client.is_project_allowed("proj-1")
        assert [p.id for p in projects] == ["b.proj-2"]

    @pytest.mark.asyncio
    @respx.mock
    async def test_list_top_folders_adds_prefix(self, client):
        """Test that bare project ids get the b. prefix."""
        route = respx.get(f"{APS}/project/v1/hubs/b.hub-1/projects/b.proj-1/topFolders").mock(
            return_value=httpx.Response(200, json={
                "data": [{"id": "urn:folder", "type": "folders", "attributes": {"displayName": "Project Files"}}]
            })
        )
        async with client:
            folders = await client.list_top_folders(TOKEN, "b.hub-1", "proj-1")
        assert route.called
        assert folders[0].is_folder
        assert folders[0].name == "Project Files"

    @pytest.mark.asyncio
    @respx.mock
    async def test_list_folder_contents(self, client):
        """Test folder listing with encoded folder urn."""
        respx.get(url__regex=rf"{APS}/data/v1/projects/b\.proj-1/folders/.+/contents").mock(
            return_value=httpx.Response(200, json={
                "data": [
                    {"id": "urn:sub", "type": "folders", "attributes": {"displayName": "Models"}},
                    {"id": "urn:item", "type": "items", "attributes": {"displayName": "Tower.rvt"}},
                ]
            })
        )
        async with client:
            entries = await client.list_folder_contents(TOKEN, "proj-1", "urn:adsk.wipprod:fs.folder:co.xyz")
        assert [e.is_folder for e in entries] == [True, False]


class TestItemsAndVersions:
    """Tests for item, version and storage resolution."""

    @pytest.mark.asyncio
    @respx.mock
    async def test_resolve_latest_version(self, client):
        """Test tip version resolution."""
        respx.get(url__regex=rf"{APS}/data/v1/projects/b\.proj-1/items/.+").mock(
            return_value=httpx.Response(200, json=item_document())
        )
        async with client:
            version_id = await client.resolve_latest_version(TOKEN, "proj-1", "urn:adsk.wipprod:dm.lineage:abc")
        assert version_id == "urn:adsk.wipprod:fs.file:vf.abc?version=3"

    @pytest.mark.asyncio
    @respx.mock
    async def test_item_without_tip(self, client):
        """Test that an item document without tip is a remote failure."""
        respx.get(url__regex=rf"{APS}/data/v1/projects/b\.proj-1/items/.+").mock(
            return_value=httpx.Response(200, json={"data": {"id": "urn:x", "attributes": {}}})
        )
        async with client:
            with pytest.raises(RemoteRequestFailedError):
                await client.get_item(TOKEN, "proj-1", "urn:x")

    @pytest.mark.asyncio
    @respx.mock
    async def test_get_storage_location(self, client):
        """Test storage urn parsing from a version."""
        respx.get(url__regex=rf"{APS}/data/v1/projects/b\.proj-1/versions/.+").mock(
            return_value=httpx.Response(200, json={
                "data": {
                    "id": "urn:v3",
                    "attributes": {"name": "Tower.rvt"},
                    "relationships": {"storage": {"data": {"id": SOURCE_URN}}},
                }
            })
        )
        async with client:
            location = await client.get_storage_location(TOKEN, "proj-1", "urn:v3")
        assert location.bucket_key == "wip.dm.prod"
        assert location.object_key == "source-1.rvt"

    @pytest.mark.asyncio
    @respx.mock
    async def test_create_storage(self, client):
        """Test storage creation payload."""
        route = respx.post(f"{APS}/data/v1/projects/b.proj-1/storage").mock(
            return_value=httpx.Response(201, json={"data": {"id": "urn:adsk.objects:os.object:wip.dm.prod/new.rvt"}})
        )
        async with client:
            urn = await client.create_storage(TOKEN, "proj-1", "urn:folder", "Tower.rvt")
        assert urn.endswith("wip.dm.prod/new.rvt")
        request = route.calls.last.request
        assert request.headers["Content-Type"] == "application/vnd.api+json"
        body = json.loads(request.content)
        assert body["data"]["attributes"]["name"] == "Tower.rvt"
        assert body["data"]["relationships"]["target"]["data"] == {"type": "folders", "id": "urn:folder"}

    @pytest.mark.asyncio
    @respx.mock
    async def test_create_version(self, client):
        """Test version creation payload."""
        route = respx.post(f"{APS}/data/v1/projects/b.proj-1/versions").mock(
            return_value=httpx.Response(201, json={"data": {"id": "urn:v4"}})
        )
        async with client:
            version_id = await client.create_version(TOKEN, "proj-1", "urn:item", "urn:storage", "Tower.rvt")
        assert version_id == "urn:v4"
        body = json.loads(route.calls.last.request.content)
        assert body["data"]["attributes"]["extension"]["type"] == "versions:autodesk.bim360:C4RModel"
        assert body["data"]["relationships"]["item"]["data"]["id"] == "urn:item"
        assert body["data"]["relationships"]["storage"]["data"]["id"] == "urn:storage"

    @pytest.mark.asyncio
    @respx.mock
    async def test_create_version_not_retried(self, client):
        """Test version creation is attempted once on connection errors."""
        route = respx.post(f"{APS}/data/v1/projects/b.proj-1/versions").mock(
            side_effect=httpx.ConnectError("refused")
        )
        async with client:
            with pytest.raises(ApsConnectionError):
                await client.create_version(TOKEN, "proj-1", "urn:item", "urn:storage", "Tower.rvt")
        assert route.call_count == 1


class TestObjectTransfer:
    """Tests for signed download and the three-phase upload."""

    @pytest.mark.asyncio
    @respx.mock
    async def test_download_object(self, client):
        """Test signed download fetches the S3 URL without bearer token."""
        respx.get(f"{APS}/oss/v2/buckets/wip.dm.prod/objects/source-1.rvt/signeds3download").mock(
            return_value=httpx.Response(200, json={"status": "complete", "url": "https://s3.test/source"})
        )
        s3 = respx.get("https://s3.test/source").mock(return_value=httpx.Response(200, content=b"rvt-bytes"))

        async with client:
            data = await client.download_object(TOKEN, "wip.dm.prod", "source-1.rvt")

        assert data == b"rvt-bytes"
        assert "Authorization" not in s3.calls.last.request.headers

    @pytest.mark.asyncio
    @respx.mock
    async def test_upload_object_multi_part(self, client):
        """Test slot request, part uploads and finalize in order."""
        path = f"{APS}/oss/v2/buckets/wip.dm.prod/objects/new.rvt/signeds3upload"
        slot = respx.get(path).mock(return_value=httpx.Response(200, json={
            "uploadKey": "key-1",
            "urls": ["https://s3.test/p1", "https://s3.test/p2", "https://s3.test/p3"],
        }))
        parts = [
            respx.put(f"https://s3.test/p{i}").mock(return_value=httpx.Response(200))
            for i in (1, 2, 3)
        ]
        finalize = respx.post(path).mock(return_value=httpx.Response(200, json={"objectKey": "new.rvt"}))

        data = b"0123456789abcdefghij"  # 20 bytes, 8-byte chunks
        async with client:
            result = await client.upload_object(TOKEN, "wip.dm.prod", "new.rvt", data)

        assert result == {"objectKey": "new.rvt"}
        assert slot.calls.last.request.url.params["parts"] == "3"
        assert [p.calls.last.request.content for p in parts] == [b"01234567", b"89abcdef", b"ghij"]
        assert all("Authorization" not in p.calls.last.request.headers for p in parts)
        assert json.loads(finalize.calls.last.request.content) == {"uploadKey": "key-1"}

    @pytest.mark.asyncio
    @respx.mock
    async def test_upload_part_failure(self, client):
        """Test that a failed part stops the upload before finalize."""
        path = f"{APS}/oss/v2/buckets/wip.dm.prod/objects/new.rvt/signeds3upload"
        respx.get(path).mock(return_value=httpx.Response(200, json={
            "uploadKey": "key-1", "urls": ["https://s3.test/p1"],
        }))
        part = respx.put("https://s3.test/p1").mock(return_value=httpx.Response(403, text="expired"))
        finalize = respx.post(path).mock(return_value=httpx.Response(200))

        async with client:
            with pytest.raises(UploadIncompleteError) as exc_info:
                await client.upload_object(TOKEN, "wip.dm.prod", "new.rvt", b"tiny")

        assert exc_info.value.phase == "put_part"
        assert exc_info.value.status_code == 403
        assert part.call_count == 1
        assert not finalize.called

    @pytest.mark.asyncio
    @respx.mock
    async def test_upload_slot_failure(self, client):
        """Test that a failed slot request is reported as its phase."""
        respx.get(f"{APS}/oss/v2/buckets/wip.dm.prod/objects/new.rvt/signeds3upload").mock(
            return_value=httpx.Response(500)
        )
        async with client:
            with pytest.raises(UploadIncompleteError) as exc_info:
                await client.upload_object(TOKEN, "wip.dm.prod", "new.rvt", b"tiny")
        assert exc_info.value.phase == "request_slot"

    @pytest.mark.asyncio
    @respx.mock
    async def test_upload_finalize_failure(self, client):
        """Test that a failed finalize is reported as its phase."""
        path = f"{APS}/oss/v2/buckets/wip.dm.prod/objects/new.rvt/signeds3upload"
        respx.get(path).mock(return_value=httpx.Response(200, json={
            "uploadKey": "key-1", "urls": ["https://s3.test/p1"],
        }))
        respx.put("https://s3.test/p1").mock(return_value=httpx.Response(200))
        respx.post(path).mock(return_value=httpx.Response(400, text="bad key"))

        async with client:
            with pytest.raises(UploadIncompleteError) as exc_info:
                await client.upload_object(TOKEN, "wip.dm.prod", "new.rvt", b"tiny")
        assert exc_info.value.phase == "finalize"


class TestAuthClient:
    """Tests for the OAuth client."""

    def test_authorization_url(self, config):
        """Test the sign-in URL."""
        url = AuthClient(config=config).authorization_url(state="abc")
        assert url.startswith(f"{APS}/authentication/v2/authorize?")
        assert "client_id=test-client" in url
        assert "response_type=code" in url
        assert "state=abc" in url

    @pytest.mark.asyncio
    @respx.mock
    async def test_exchange_code(self, config):
        """Test authorization code exchange."""
        route = respx.post(f"{APS}/authentication/v2/token").mock(return_value=httpx.Response(200, json={
            "access_token": "a", "refresh_token": "r", "expires_in": 3599, "token_type": "Bearer",
        }))
        async with AuthClient(config=config) as auth:
            grant = await auth.exchange_code("the-code")
        assert grant.access_token == "a"
        assert grant.refresh_token == "r"
        form = parse_qs(route.calls.last.request.content.decode())
        assert form["grant_type"] == ["authorization_code"]
        assert form["code"] == ["the-code"]
        assert form["client_secret"] == ["test-secret"]

    @pytest.mark.asyncio
    @respx.mock
    async def test_missing_access_token(self, config):
        """Test a token response without access_token."""
        respx.post(f"{APS}/authentication/v2/token").mock(return_value=httpx.Response(200, json={}))
        async with AuthClient(config=config) as auth:
            with pytest.raises(RemoteRequestFailedError):
                await auth.refresh("r")

    @pytest.mark.asyncio
    @respx.mock
    async def test_malformed_token_response(self, config):
        """Test that an invalid grant is a remote failure that does not echo the body."""
        respx.post(f"{APS}/authentication/v2/token").mock(return_value=httpx.Response(200, json={
            "access_token": "leaked-access", "refresh_token": "leaked-refresh", "expires_in": "abc",
        }))
        async with AuthClient(config=config) as auth:
            with pytest.raises(RemoteRequestFailedError) as exc_info:
                await auth.refresh("r")
        assert "malformed token response" in exc_info.value.message
        assert "leaked" not in str(exc_info.value.to_dict())

    @pytest.mark.asyncio
    @respx.mock
    async def test_app_token_cached(self, config):
        """Test that the app token is requested once while valid."""
        route = respx.post(f"{APS}/authentication/v2/token").mock(return_value=httpx.Response(200, json={
            "access_token": "app", "expires_in": 3599,
        }))
        async with AuthClient(config=config) as auth:
            assert await auth.get_app_token() == "app"
            assert await auth.get_app_token() == "app"
        assert route.call_count == 1
        form = parse_qs(route.calls.last.request.content.decode())
        assert form["grant_type"] == ["client_credentials"]
