"""Best-effort deployment event log."""

from abc import ABC, abstractmethod
from typing import Any

from mvp_deploy.models.deployment import DeploymentLogEntry
from mvp_deploy.utils.logging import get_logger

logger = get_logger(__name__)

# Event types written by the pipeline
BUILD_STARTED = "BUILD_STARTED"
DEPLOYMENT_SUCCESS = "DEPLOYMENT_SUCCESS"
DEPLOYMENT_FAILED = "DEPLOYMENT_FAILED"
RECORD_UPDATE_FAILED = "RECORD_UPDATE_FAILED"
ROLLBACK = "ROLLBACK"

_LEVELS = {
    DEPLOYMENT_FAILED: "ERROR",
    RECORD_UPDATE_FAILED: "WARNING",
}


class EventLog(ABC):
    """Append-only sink for pipeline events."""

    @abstractmethod
    async def append(
        self, actor_id: str, event_type: str, event_data: dict[str, Any]
    ) -> None:
        """Store one event. May raise; callers go through ``log_event``."""

    async def entries_for(self, deployment_id: str) -> list[DeploymentLogEntry]:
        """Entries whose data carries ``deployment_id``."""
        return []


class MemoryEventLog(EventLog):
    """Keeps events in memory and mirrors them to the structured log."""

    def __init__(self, max_entries: int = 10_000):
        self._entries: list[DeploymentLogEntry] = []
        self._max_entries = max_entries

    async def append(
        self, actor_id: str, event_type: str, event_data: dict[str, Any]
    ) -> None:
        entry = DeploymentLogEntry(
            actor_id=actor_id,
            event_type=event_type,
            level=_LEVELS.get(event_type, "INFO"),
            message=str(event_data.get("message", event_type)),
            data=dict(event_data),
        )
        self._entries.append(entry)
        if len(self._entries) > self._max_entries:
            del self._entries[: len(self._entries) - self._max_entries]

        logger.info(
            "event_log.appended",
            actor_id=actor_id,
            event_type=event_type,
            deployment_id=event_data.get("deployment_id"),
        )

    async def entries_for(self, deployment_id: str) -> list[DeploymentLogEntry]:
        return [e for e in self._entries if e.data.get("deployment_id") == deployment_id]

    @property
    def entries(self) -> list[DeploymentLogEntry]:
        return list(self._entries)


async def log_event(
    event_log: EventLog,
    actor_id: str,
    event_type: str,
    event_data: dict[str, Any],
) -> bool:
    """Append an event, swallowing any failure of the sink.

    Returns whether the event was stored. Never raises for sink errors.
    """
    try:
        await event_log.append(actor_id, event_type, event_data)
        return True
    except Exception as e:
        logger.warning(
            "event_log.append_failed",
            actor_id=actor_id,
            event_type=event_type,
            error=str(e),
        )
        return False
