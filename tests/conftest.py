"""Pytest bootstrap configuration.

Provides an in-memory CMS backend plus object store behind
``httpx.MockTransport`` so the whole pipeline runs without a network.
"""
import itertools
import json
from typing import Optional

import httpx
import pytest
import pytest_asyncio

from core.config import ApiSettings, Settings, UploadSettings
from domain.upload import UploadFile
from infrastructure.external.api_clients import create_upload_service

API_BASE = "https://api.test/api"
STORAGE_HOST = "storage.test"
CDN_BASE = "https://cdn.test"


class FakeCmsBackend:
    """Records every request; failures are keyed by file name."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.objects: dict[str, bytes] = {}
        self.registered: list[dict] = []
        self.fail_presign: dict[str, int] = {}
        self.fail_storage: dict[str, int] = {}
        self.fail_register: dict[str, int] = {}
        self.presign_payload: Optional[dict] = None
        self._ids = itertools.count(1)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.host == STORAGE_HOST:
            return self._storage(request)
        path = request.url.path
        if request.method == "POST" and path.endswith("/files/presigned-url"):
            return self._presign(request)
        if request.method == "POST" and path.endswith("/files/register"):
            return self._register(request)
        return httpx.Response(404, json={"message": "Not Found", "statusCode": 404})

    def _presign(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        name = body["fileName"]
        if name in self.fail_presign:
            return httpx.Response(self.fail_presign[name], json={"message": "presign rejected"})
        key = f"{body['ownerType']}/{body['ownerId']}/{name}"
        payload = self.presign_payload or {
            "uploadUrl": f"https://{STORAGE_HOST}/bucket/{key}?X-Amz-Signature=secret",
            "fileKey": key,
            "publicUrl": f"{CDN_BASE}/{key}",
            "expiresIn": 300,
        }
        return httpx.Response(200, json=payload)

    def _storage(self, request: httpx.Request) -> httpx.Response:
        key = request.url.path[len("/bucket/"):]
        name = key.rsplit("/", 1)[-1]
        if name in self.fail_storage:
            return httpx.Response(self.fail_storage[name], text="<Error><Code>AccessDenied</Code></Error>")
        self.objects[key] = request.content
        return httpx.Response(200)

    def _register(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        if body["fileName"] in self.fail_register:
            return httpx.Response(self.fail_register[body["fileName"]], json={"message": ["fileKey is invalid"]})
        file_id = next(self._ids)
        self.registered.append(body)
        return httpx.Response(
            201,
            json={
                "id": file_id,
                "fileKey": body["fileKey"],
                "fileName": body["fileName"],
                "fileSize": body["fileSize"],
                "mimeType": body["mimeType"],
                "publicUrl": f"{CDN_BASE}/{body['fileKey']}",
                "ownerType": body["ownerType"],
                "ownerId": body["ownerId"],
                "createdById": 7,
            },
        )

    def _matching(self, suffix: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.host != STORAGE_HOST and r.url.path.endswith(suffix)]

    @property
    def presign_calls(self) -> list[httpx.Request]:
        return self._matching("/files/presigned-url")

    @property
    def register_calls(self) -> list[httpx.Request]:
        return self._matching("/files/register")

    @property
    def storage_calls(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.host == STORAGE_HOST]

    def presigned_names(self) -> list[str]:
        return [json.loads(r.content)["fileName"] for r in self.presign_calls]


def _make_file(name: str, size: int, mime_type: str) -> UploadFile:
    return UploadFile.from_bytes(name, b"\x5a" * size, mime_type)


@pytest.fixture
def make_file():
    return _make_file


@pytest.fixture
def backend() -> FakeCmsBackend:
    return FakeCmsBackend()


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        api=ApiSettings(base_url=API_BASE, version="v1", auth_token="test-token"),
        upload=UploadSettings(chunk_size=256 * 1024),
    )


@pytest_asyncio.fixture
async def upload_service(backend, test_settings):
    transport = httpx.MockTransport(backend)
    async with create_upload_service(
        test_settings,
        api_transport=transport,
        storage_transport=transport,
    ) as service:
        yield service
