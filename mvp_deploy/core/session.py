"""Tracking of deployments started through the API."""

from datetime import datetime, timedelta
from functools import lru_cache

from pydantic import BaseModel, Field

from mvp_deploy.models.deployment import DeploymentRequest, DeploymentResult


class DeploymentSession(BaseModel):
    """Latest API-started attempt for one artifact."""

    request: DeploymentRequest
    previous_deployment_id: str | None = None
    result: DeploymentResult | None = None
    started_at: datetime = Field(default_factory=datetime.utcnow)
    finished_at: datetime | None = None

    @property
    def running(self) -> bool:
        return self.result is None


class SessionManager:
    """Keeps the latest deployment session per artifact in memory.

    Note: For production, this should be backed by Redis or a database.
    """

    def __init__(self, ttl_hours: int = 24):
        self._sessions: dict[str, DeploymentSession] = {}
        self._ttl = timedelta(hours=ttl_hours)

    async def start(
        self,
        request: DeploymentRequest,
        previous_deployment_id: str | None = None,
    ) -> DeploymentSession:
        """Open a new session, replacing any earlier one for the artifact."""
        session = DeploymentSession(
            request=request,
            previous_deployment_id=previous_deployment_id,
        )
        self._sessions[request.artifact_id] = session
        return session

    async def finish(self, artifact_id: str, result: DeploymentResult) -> None:
        """Attach the terminal result to the artifact's session."""
        session = self._sessions.get(artifact_id)
        if session:
            session.result = result
            session.finished_at = datetime.utcnow()

    async def get(self, artifact_id: str) -> DeploymentSession | None:
        """Get the session for an artifact."""
        session = self._sessions.get(artifact_id)
        if session:
            # Check if expired
            if datetime.utcnow() - session.started_at > self._ttl:
                del self._sessions[artifact_id]
                return None
        return session

    async def cleanup_expired(self) -> int:
        """Remove expired sessions. Returns count of removed sessions."""
        now = datetime.utcnow()
        expired = [
            artifact_id
            for artifact_id, session in self._sessions.items()
            if now - session.started_at > self._ttl
        ]
        for artifact_id in expired:
            del self._sessions[artifact_id]
        return len(expired)

    def clear(self) -> None:
        self._sessions.clear()


@lru_cache
def get_session_manager() -> SessionManager:
    """Get the session manager singleton."""
    return SessionManager()
