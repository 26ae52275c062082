"""Deployment endpoints."""

import asyncio
import json

from fastapi import APIRouter, BackgroundTasks, HTTPException, status
from pydantic import BaseModel
from sse_starlette.sse import EventSourceResponse

from mvp_deploy.api.deps import EventsDep, OrchestratorDep, SessionDep
from mvp_deploy.core.orchestrator import DeploymentOrchestrator
from mvp_deploy.core.progress import Event, EventBus
from mvp_deploy.core.session import SessionManager
from mvp_deploy.models.deployment import (
    DeploymentLogEntry,
    DeploymentRequest,
    DeploymentResult,
    DeploymentStatusReport,
    RollbackResult,
)
from mvp_deploy.utils.logging import get_logger

router = APIRouter()
logger = get_logger(__name__)

# Seconds between keepalive messages on idle streams
KEEPALIVE_SECONDS = 30.0


class DeploymentAccepted(BaseModel):
    """Response for a started deployment."""

    artifact_id: str
    service_name: str
    stream_url: str
    result_url: str


class RetryRequest(BaseModel):
    """Request to retry a failed deployment."""

    request: DeploymentRequest
    previous_deployment_id: str


class RollbackRequest(BaseModel):
    """Request to move traffic back to an earlier revision."""

    service_name: str
    previous_revision: str


class DeploymentSessionResponse(BaseModel):
    """State of the latest deployment started for an artifact."""

    artifact_id: str
    running: bool
    result: DeploymentResult | None = None


async def run_deployment_background(
    orchestrator: DeploymentOrchestrator,
    sessions: SessionManager,
    events: EventBus,
    request: DeploymentRequest,
    previous_deployment_id: str | None = None,
) -> None:
    """Background task running one attempt and publishing its result."""
    observer = events.observer_for(request.artifact_id)
    result = None
    try:
        if previous_deployment_id:
            result = await orchestrator.retry(request, previous_deployment_id, observer)
        else:
            result = await orchestrator.deploy(request, observer)
    except Exception as e:
        logger.error(
            "deployments.background_failed",
            artifact_id=request.artifact_id,
            error=str(e),
            exc_info=True,
        )
        result = DeploymentResult.failure(str(e))
    finally:
        # Release the artifact even when the task is cancelled
        if result is None:
            result = DeploymentResult.failure("deployment was interrupted")
        await sessions.finish(request.artifact_id, result)
        events.publish_result(request.artifact_id, result.model_dump(mode="json"))

    logger.info(
        "deployments.background_finished",
        artifact_id=request.artifact_id,
        status=result.status.value,
    )


async def _start(
    orchestrator: DeploymentOrchestrator,
    sessions: SessionManager,
    events: EventBus,
    background_tasks: BackgroundTasks,
    request: DeploymentRequest,
    previous_deployment_id: str | None = None,
) -> DeploymentAccepted:
    existing = await sessions.get(request.artifact_id)
    if existing and existing.running:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"A deployment for {request.artifact_id} is already running",
        )

    await sessions.start(request, previous_deployment_id)
    background_tasks.add_task(
        run_deployment_background,
        orchestrator,
        sessions,
        events,
        request,
        previous_deployment_id,
    )

    base = f"/v1/deployments/{request.artifact_id}"
    return DeploymentAccepted(
        artifact_id=request.artifact_id,
        service_name=orchestrator.service_name_for(request),
        stream_url=f"{base}/stream",
        result_url=f"{base}/result",
    )


@router.post(
    "",
    response_model=DeploymentAccepted,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Deploy an MVP",
    description="Start a deployment. Returns immediately while the pipeline runs in background.",
)
async def create_deployment(
    request: DeploymentRequest,
    orchestrator: OrchestratorDep,
    sessions: SessionDep,
    events: EventsDep,
    background_tasks: BackgroundTasks,
) -> DeploymentAccepted:
    """Start deploying an MVP."""
    return await _start(orchestrator, sessions, events, background_tasks, request)


@router.post(
    "/retry",
    response_model=DeploymentAccepted,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Retry a failed deployment",
)
async def retry_deployment(
    data: RetryRequest,
    orchestrator: OrchestratorDep,
    sessions: SessionDep,
    events: EventsDep,
    background_tasks: BackgroundTasks,
) -> DeploymentAccepted:
    """Start a fresh attempt for an MVP."""
    return await _start(
        orchestrator,
        sessions,
        events,
        background_tasks,
        data.request,
        data.previous_deployment_id,
    )


@router.post(
    "/rollback",
    response_model=RollbackResult,
    summary="Roll a service back to an earlier revision",
)
async def rollback_deployment(
    data: RollbackRequest,
    orchestrator: OrchestratorDep,
) -> RollbackResult:
    """Shift all traffic back to a previous revision."""
    return await orchestrator.rollback(data.service_name, data.previous_revision)


@router.get(
    "/status/{deployment_id}",
    response_model=DeploymentStatusReport,
    summary="Get deployment status",
)
async def get_deployment_status(
    deployment_id: str,
    orchestrator: OrchestratorDep,
) -> DeploymentStatusReport:
    """Current host status of the service a deployment targeted."""
    return await orchestrator.get_status(deployment_id)


@router.get(
    "/logs/{deployment_id}",
    response_model=list[DeploymentLogEntry],
    summary="Get deployment logs",
)
async def get_deployment_logs(
    deployment_id: str,
    orchestrator: OrchestratorDep,
) -> list[DeploymentLogEntry]:
    """Events recorded for a deployment."""
    return await orchestrator.get_logs(deployment_id)


@router.get(
    "/{artifact_id}/result",
    response_model=DeploymentSessionResponse,
    summary="Get the latest deployment result for an artifact",
)
async def get_deployment_result(
    artifact_id: str,
    sessions: SessionDep,
) -> DeploymentSessionResponse:
    """Latest result, or ``running`` while the attempt is in flight."""
    session = await sessions.get(artifact_id)
    if not session:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No deployment for artifact: {artifact_id}",
        )
    return DeploymentSessionResponse(
        artifact_id=artifact_id,
        running=session.running,
        result=session.result,
    )


@router.get(
    "/{artifact_id}/stream",
    summary="Stream deployment progress (SSE)",
)
async def stream_deployment(
    artifact_id: str,
    sessions: SessionDep,
    events: EventsDep,
) -> EventSourceResponse:
    """Stream progress events for an artifact using Server-Sent Events."""
    session = await sessions.get(artifact_id)
    if not session:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No deployment for artifact: {artifact_id}",
        )

    async def event_generator():
        queue = events.subscribe(artifact_id)

        try:
            yield {
                "event": "connected",
                "data": json.dumps(
                    {"artifact_id": artifact_id, "running": session.running}
                ),
            }

            # Attempt already finished before the client connected
            if session.result is not None:
                yield {"event": "result", "data": session.result.model_dump_json()}
                return

            while True:
                try:
                    event: Event = await asyncio.wait_for(
                        queue.get(), timeout=KEEPALIVE_SECONDS
                    )
                    yield {"event": event.event_type, "data": event.to_sse_data()}

                    if event.event_type == "result":
                        break

                except asyncio.TimeoutError:
                    yield {"event": "keepalive", "data": "{}"}

        finally:
            events.unsubscribe(artifact_id)

    return EventSourceResponse(event_generator())
