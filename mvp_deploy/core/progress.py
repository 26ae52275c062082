"""Progress reporting for deployment attempts.

``ProgressChannel`` is the single ordered stream a deployment attempt writes
to: the orchestrator publishes stage transitions and the build wait publishes
its sub-steps through the same object. ``EventBus`` fans progress out to
Server-Sent Events subscribers for the HTTP layer.
"""

import asyncio
import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable

from mvp_deploy.models.deployment import ProgressEvent, Stage
from mvp_deploy.utils.logging import get_logger

ProgressObserver = Callable[[ProgressEvent], None]

logger = get_logger(__name__)


class ProgressChannel:
    """Ordered, strictly increasing progress stream for one attempt."""

    def __init__(self, observer: ProgressObserver, deployment_id: str | None = None):
        if not callable(observer):
            raise TypeError("progress observer must be callable")
        self._observer = observer
        self.deployment_id = deployment_id
        self.stage: Stage | None = None
        self.last_progress = 0
        self.events: list[ProgressEvent] = []

    def enter(self, stage: Stage) -> ProgressEvent | None:
        """Move to ``stage`` and announce it."""
        self.stage = stage
        return self._emit(stage, stage.progress, stage.message)

    def publish(self, progress: int, message: str) -> ProgressEvent | None:
        """Publish a sub-step of the current stage."""
        if self.stage is None:
            raise RuntimeError("publish() called before any stage was entered")
        return self._emit(self.stage, progress, message)

    def sub_window(self) -> tuple[int, int]:
        """Open progress interval available to sub-steps of the current stage."""
        if self.stage is None:
            return (0, Stage.INITIALIZING.progress)
        upper = self.stage.next_stage
        return (self.stage.progress, upper.progress if upper else 100)

    def _emit(self, stage: Stage, progress: int, message: str) -> ProgressEvent | None:
        if progress <= self.last_progress:
            logger.debug(
                "progress.dropped",
                deployment_id=self.deployment_id,
                stage=stage.value,
                progress=progress,
                last_progress=self.last_progress,
            )
            return None

        event = ProgressEvent(stage=stage, progress=progress, message=message)
        self.last_progress = progress
        self.events.append(event)
        self._observer(event)
        return event


@dataclass
class Event:
    """An SSE event."""

    event_type: str
    data: dict[str, Any]
    timestamp: datetime = field(default_factory=datetime.utcnow)

    def to_sse_data(self) -> str:
        """JSON payload of the event."""
        return json.dumps({**self.data, "timestamp": self.timestamp.isoformat()})

    def to_sse(self) -> str:
        """Convert to SSE format."""
        return f"event: {self.event_type}\ndata: {self.to_sse_data()}\n\n"


class EventBus:
    """Per-artifact queues of deployment events for streaming clients."""

    def __init__(self):
        self._subscribers: dict[str, asyncio.Queue[Event]] = {}

    def subscribe(self, artifact_id: str) -> asyncio.Queue[Event]:
        """Subscribe to events for an artifact."""
        if artifact_id not in self._subscribers:
            self._subscribers[artifact_id] = asyncio.Queue()
        return self._subscribers[artifact_id]

    def unsubscribe(self, artifact_id: str) -> None:
        """Unsubscribe from artifact events."""
        self._subscribers.pop(artifact_id, None)

    def publish_nowait(self, artifact_id: str, event: Event) -> None:
        """Publish an event without suspending."""
        if artifact_id in self._subscribers:
            self._subscribers[artifact_id].put_nowait(event)

    def observer_for(self, artifact_id: str) -> ProgressObserver:
        """Return a progress observer that forwards to subscribers."""

        def observe(event: ProgressEvent) -> None:
            self.publish_nowait(
                artifact_id,
                Event(event_type="progress", data=event.model_dump(mode="json")),
            )

        return observe

    def publish_result(self, artifact_id: str, result: dict[str, Any]) -> None:
        """Publish the terminal deployment result."""
        self.publish_nowait(artifact_id, Event(event_type="result", data=result))


# Singleton instance
_event_bus: EventBus | None = None


def get_event_bus() -> EventBus:
    """Get the event bus singleton."""
    global _event_bus
    if _event_bus is None:
        _event_bus = EventBus()
    return _event_bus
