"""Testing utilities for mvp-deploy.

Fakes for the packaging, build, hosting, record and event-log
collaborators, so the pipeline can be exercised without timers or network.
"""

from mvp_deploy.testing.fakes import (
    FailingEventLog,
    FakeBuildService,
    FakeContainerHost,
    FakePackager,
    FakeRecordStore,
    make_orchestrator,
)

__all__ = [
    "FailingEventLog",
    "FakeBuildService",
    "FakeContainerHost",
    "FakePackager",
    "FakeRecordStore",
    "make_orchestrator",
]
