"""Unit tests for deployment record stores."""

import json

import httpx
import pytest

from mvp_deploy.core.records import HttpRecordStore, MemoryRecordStore
from mvp_deploy.models.deployment import DeploymentRecord


@pytest.fixture
def record() -> DeploymentRecord:
    return DeploymentRecord(url="https://app.example", deployment_id="artifact-mvp-1-1000")


class TestMemoryRecordStore:
    """Tests for MemoryRecordStore."""

    @pytest.mark.asyncio
    async def test_last_write_wins(self, record: DeploymentRecord):
        store = MemoryRecordStore()
        newer = DeploymentRecord(url="https://new.example", deployment_id="artifact-mvp-1-2000")

        await store.update_deployment_record("mvp-1", record)
        result = await store.update_deployment_record("mvp-1", newer)

        assert result.success is True
        stored = await store.get("mvp-1")
        assert stored.deployment_id == "artifact-mvp-1-2000"
        assert stored.status == "completed"


class TestHttpRecordStore:
    """Tests for HttpRecordStore."""

    @pytest.mark.asyncio
    async def test_patches_entity(self, record: DeploymentRecord):
        captured: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            captured.append(request)
            return httpx.Response(200, json={"id": "mvp-1"})

        store = HttpRecordStore(
            "https://entities.test/api/",
            token="secret",
            transport=httpx.MockTransport(handler),
        )

        result = await store.update_deployment_record("mvp-1", record)

        assert result.success is True
        request = captured[0]
        assert request.method == "PATCH"
        assert str(request.url) == "https://entities.test/api/entities/MVP/mvp-1"
        assert request.headers["Authorization"] == "Bearer secret"
        body = json.loads(request.content)
        assert body["preview_url"] == "https://app.example"
        assert body["status"] == "completed"
        assert body["deployment_id"] == "artifact-mvp-1-1000"
        assert "deployed_at" in body

    @pytest.mark.asyncio
    async def test_http_error_reported_not_raised(self, record: DeploymentRecord):
        store = HttpRecordStore(
            "https://entities.test/api",
            transport=httpx.MockTransport(lambda request: httpx.Response(503)),
        )

        result = await store.update_deployment_record("mvp-1", record)

        assert result.success is False
        assert "503" in result.error

    @pytest.mark.asyncio
    async def test_connection_error_reported(self, record: DeploymentRecord):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        store = HttpRecordStore("https://entities.test", transport=httpx.MockTransport(handler))

        result = await store.update_deployment_record("mvp-1", record)

        assert result.success is False
        assert result.error

    @pytest.mark.asyncio
    async def test_artifact_id_is_quoted_in_path(self, record: DeploymentRecord):
        captured: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            captured.append(request)
            return httpx.Response(200)

        store = HttpRecordStore("https://entities.test/api", transport=httpx.MockTransport(handler))

        await store.update_deployment_record("../admin?x=1", record)

        assert captured[0].url.raw_path == b"/api/entities/MVP/..%2Fadmin%3Fx%3D1"
