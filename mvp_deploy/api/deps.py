"""Dependency injection for API endpoints."""

from typing import Annotated

from fastapi import Depends

from mvp_deploy.core.orchestrator import DeploymentOrchestrator, get_orchestrator
from mvp_deploy.core.progress import EventBus, get_event_bus
from mvp_deploy.core.session import SessionManager, get_session_manager


async def get_deployer() -> DeploymentOrchestrator:
    """Get the deployment orchestrator."""
    return get_orchestrator()


async def get_sessions() -> SessionManager:
    """Get the deployment session manager."""
    return get_session_manager()


async def get_events() -> EventBus:
    """Get the event bus."""
    return get_event_bus()


# Type aliases for cleaner signatures
OrchestratorDep = Annotated[DeploymentOrchestrator, Depends(get_deployer)]
SessionDep = Annotated[SessionManager, Depends(get_sessions)]
EventsDep = Annotated[EventBus, Depends(get_events)]
