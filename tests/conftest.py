"""Pytest configuration and fixtures."""

import pytest
from httpx import ASGITransport, AsyncClient

from mvp_deploy.api.deps import get_deployer, get_events, get_sessions
from mvp_deploy.config import CloudConfig
from mvp_deploy.core.event_log import MemoryEventLog
from mvp_deploy.core.orchestrator import DeploymentOrchestrator
from mvp_deploy.core.progress import EventBus
from mvp_deploy.core.session import SessionManager
from mvp_deploy.main import app
from mvp_deploy.models.deployment import DeploymentRequest, ProgressEvent
from mvp_deploy.testing.fakes import (
    FakeBuildService,
    FakeContainerHost,
    FakePackager,
    FakeRecordStore,
)


@pytest.fixture
def cloud_config() -> CloudConfig:
    """Config with no simulated delays."""
    return CloudConfig(simulated_delay_scale=0, build_poll_interval_seconds=0)


@pytest.fixture
def deploy_request() -> DeploymentRequest:
    """The Acme Launcher MVP owned by jane@x.com."""
    return DeploymentRequest(
        artifact_id="mvp-42",
        owner_id="jane@x.com",
        display_name="Acme Launcher",
        description="Launch products faster",
        features=["Waitlist", "Pricing page"],
    )


@pytest.fixture
def packager() -> FakePackager:
    return FakePackager()


@pytest.fixture
def builder() -> FakeBuildService:
    return FakeBuildService()


@pytest.fixture
def host() -> FakeContainerHost:
    return FakeContainerHost()


@pytest.fixture
def records() -> FakeRecordStore:
    return FakeRecordStore()


@pytest.fixture
def event_log() -> MemoryEventLog:
    return MemoryEventLog()


@pytest.fixture
def orchestrator(
    cloud_config: CloudConfig,
    packager: FakePackager,
    builder: FakeBuildService,
    host: FakeContainerHost,
    records: FakeRecordStore,
    event_log: MemoryEventLog,
) -> DeploymentOrchestrator:
    """Orchestrator wired with fakes."""
    return DeploymentOrchestrator(
        config=cloud_config,
        packager=packager,
        builder=builder,
        host=host,
        records=records,
        event_log=event_log,
    )


@pytest.fixture
def progress_events() -> list[ProgressEvent]:
    """List the ``observe`` fixture appends to."""
    return []


@pytest.fixture
def observe(progress_events: list[ProgressEvent]):
    """Progress observer collecting into ``progress_events``."""
    return progress_events.append


@pytest.fixture
async def client(orchestrator: DeploymentOrchestrator) -> AsyncClient:
    """Async test client backed by the fake orchestrator."""
    sessions = SessionManager()
    events = EventBus()

    app.dependency_overrides[get_deployer] = lambda: orchestrator
    app.dependency_overrides[get_sessions] = lambda: sessions
    app.dependency_overrides[get_events] = lambda: events

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
