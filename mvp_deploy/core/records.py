"""Deployment record store adapters.

The record store is where the outcome of a successful deployment is written
back onto the product's record. Writes are last-write-wins, keyed by the
artifact id.
"""

from abc import ABC, abstractmethod
from typing import Any
from urllib.parse import quote

import httpx

from mvp_deploy.models.deployment import DeploymentRecord, RecordUpdateResult
from mvp_deploy.utils.logging import get_logger

logger = get_logger(__name__)


class RecordStore(ABC):
    """Persists deployment outcomes against artifact records."""

    @abstractmethod
    async def update_deployment_record(
        self, artifact_id: str, record: DeploymentRecord
    ) -> RecordUpdateResult:
        """Write ``record`` onto the artifact's record."""


class MemoryRecordStore(RecordStore):
    """Keeps records in memory.

    Note: For production, point ``record_store_url`` at the entity API.
    """

    def __init__(self):
        self._records: dict[str, DeploymentRecord] = {}

    async def update_deployment_record(
        self, artifact_id: str, record: DeploymentRecord
    ) -> RecordUpdateResult:
        self._records[artifact_id] = record
        return RecordUpdateResult(success=True)

    async def get(self, artifact_id: str) -> DeploymentRecord | None:
        return self._records.get(artifact_id)


class HttpRecordStore(RecordStore):
    """Updates MVP entities through a REST entity API.

    The record is written with ``PATCH {base_url}/entities/MVP/{artifact_id}``
    using the field names the entity schema expects.
    """

    def __init__(
        self,
        base_url: str,
        token: str = "",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    @staticmethod
    def _payload(record: DeploymentRecord) -> dict[str, Any]:
        return {
            "preview_url": record.url,
            "status": record.status,
            "deployment_id": record.deployment_id,
            "deployed_at": record.deployed_at.isoformat(),
        }

    async def update_deployment_record(
        self, artifact_id: str, record: DeploymentRecord
    ) -> RecordUpdateResult:
        url = f"{self.base_url}/entities/MVP/{quote(artifact_id, safe='')}"
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.patch(
                    url, json=self._payload(record), headers=self._headers()
                )
                response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning(
                "record_store.update_failed",
                artifact_id=artifact_id,
                error=str(e),
            )
            return RecordUpdateResult(success=False, error=str(e))

        return RecordUpdateResult(success=True)
