import json

import httpx
import pytest

from application.dto import PresignRequestDTO
from domain.common.exceptions import FileQueryFailedException, FileRecordNotFoundException, UploadFailedException
from domain.upload import OwnerReference
from infrastructure.external.api_clients import APIError, BaseAPIClient, FilesAPIClient, create_files_client

OWNER = OwnerReference.of("post", "42")


def _client(handler) -> FilesAPIClient:
    return FilesAPIClient("https://api.test/api/v1", transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_presign_accepts_legacy_file_url_field():
    def handler(request):
        return httpx.Response(200, json={"uploadUrl": "https://s/put?sig=1", "fileKey": "k", "fileUrl": "https://cdn/k"})

    async with _client(handler) as client:
        target = await client.request_target("a.png", 3, "image/png", OWNER)

    assert target.object_key == "k"
    assert target.upload_url == "https://s/put?sig=1"
    assert target.public_url == "https://cdn/k"


@pytest.mark.asyncio
async def test_malformed_presign_response_is_upload_failed():
    def handler(request):
        return httpx.Response(200, json={"fileKey": "k"})

    async with _client(handler) as client:
        with pytest.raises(UploadFailedException) as ei:
            await client.request_target("a.png", 3, "image/png", OWNER)

    assert ei.value.stage == "presign"


@pytest.mark.asyncio
async def test_presign_is_attempted_once_even_on_503():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(503, json={"message": "unavailable"})

    async with _client(handler) as client:
        with pytest.raises(UploadFailedException) as ei:
            await client.request_target("a.png", 3, "image/png", OWNER)

    assert len(calls) == 1
    assert ei.value.status_code == 503


@pytest.mark.asyncio
async def test_network_error_during_register_is_upload_failed():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    async with _client(handler) as client:
        with pytest.raises(UploadFailedException) as ei:
            await client.register("k", "a.png", 3, "image/png", OWNER)

    assert ei.value.stage == "register"
    assert "connection refused" in ei.value.message


@pytest.mark.asyncio
async def test_register_returns_string_id():
    seen = {}

    def handler(request):
        seen["body"] = json.loads(request.content)
        return httpx.Response(201, json={"id": 501, "fileKey": "k", "publicUrl": "https://cdn/k"})

    async with _client(handler) as client:
        registered = await client.register("k", "a.png", 3, "image/png", OWNER)

    assert registered.file_id == "501"
    assert registered.public_url == "https://cdn/k"
    assert seen["body"]["ownerType"] == "post"


@pytest.mark.asyncio
async def test_files_by_owner_accepts_list_and_page():
    bodies = [
        [{"id": 1, "fileName": "a.png"}],
        {"items": [{"id": "2", "fileName": "b.png"}], "meta": {"page": 1, "size": 20, "totalElements": 1, "totalPages": 1}},
    ]
    queries = []

    def handler(request):
        queries.append(dict(request.url.params))
        return httpx.Response(200, json=bodies[len(queries) - 1])

    async with _client(handler) as client:
        first = await client.get_files_by_owner(OWNER)
        second = await client.get_files_by_owner(OWNER)

    assert [f.id for f in first] == ["1"]
    assert [f.file_name for f in second] == ["b.png"]
    assert queries[0] == {"ownerType": "post", "ownerId": "42"}


@pytest.mark.asyncio
async def test_get_and_delete_map_404():
    def handler(request):
        return httpx.Response(404, json={"message": "File not found"})

    async with _client(handler) as client:
        with pytest.raises(FileRecordNotFoundException):
            await client.get_file("9")
        with pytest.raises(FileRecordNotFoundException):
            await client.delete_file("9")


def test_factory_uses_versioned_root(test_settings):
    client = create_files_client(test_settings)
    assert client.base_url == "https://api.test/api/v1"
    assert client.default_headers["Authorization"] == "Bearer test-token"
    assert client.max_retries == 0


@pytest.mark.asyncio
async def test_base_client_retries_only_when_enabled():
    statuses = [503, 200]
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(statuses[len(calls) - 1], json={"ok": True})

    async with BaseAPIClient("https://api.test", max_retries=1, retry_delay=0.0, transport=httpx.MockTransport(handler)) as client:
        response = await client.get("ping")

    assert response.status_code == 200
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_owner_queries_map_server_errors():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(500, json={"message": "boom"})

    async with _client(handler) as client:
        with pytest.raises(FileQueryFailedException) as listed:
            await client.get_files_by_owner(OWNER)
        with pytest.raises(FileQueryFailedException) as fetched:
            await client.get_file("9")
        with pytest.raises(FileQueryFailedException) as deleted:
            await client.delete_file("9")

    assert [e.value.operation for e in (listed, fetched, deleted)] == ["list", "get", "delete"]
    assert listed.value.status_code == 500
    assert isinstance(listed.value.__cause__, APIError)
    assert len(calls) == 3


@pytest.mark.asyncio
async def test_malformed_owner_listing_is_query_failure():
    def handler(request):
        return httpx.Response(200, json=[{"fileName": "no-id.png"}])

    async with _client(handler) as client:
        with pytest.raises(FileQueryFailedException) as ei:
            await client.get_files_by_owner(OWNER)

    assert ei.value.operation == "list"
    assert ei.value.status_code is None


def test_wire_payload_uses_camel_case_aliases():
    payload = PresignRequestDTO(
        file_name="a.png",
        file_size=3,
        mime_type="image/png",
        owner_type="post",
        owner_id="42",
    )
    assert payload.to_wire() == {
        "fileName": "a.png",
        "fileSize": 3,
        "mimeType": "image/png",
        "ownerType": "post",
        "ownerId": "42",
    }
