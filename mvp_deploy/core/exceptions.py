"""Custom exceptions for mvp-deploy."""

from typing import Any


class MvpDeployError(Exception):
    """Base exception for mvp-deploy."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ValidationError(MvpDeployError):
    """Caller broke the pipeline contract."""

    pass


class DeploymentNotFoundError(MvpDeployError):
    """No attempt is known under the given deployment id."""

    def __init__(self, deployment_id: str):
        super().__init__(
            f"Deployment not found: {deployment_id}",
            {"deployment_id": deployment_id},
        )
        self.deployment_id = deployment_id


class StageError(MvpDeployError):
    """A pipeline stage failed.

    ``logs`` holds the diagnostic lines the failing step collected; they are
    handed back to the caller on the failure result.
    """

    prefix = ""

    def __init__(
        self,
        message: str,
        stage: str | None = None,
        logs: list[str] | None = None,
    ):
        self.stage = stage
        self.logs = list(logs or [])
        text = f"{self.prefix}{message}" if self.prefix else message
        details: dict[str, Any] = {}
        if stage:
            details["stage"] = stage
        if self.logs:
            details["logs"] = self.logs
        super().__init__(text, details)


class PackagingError(StageError):
    """Bundling the product into a deployable unit failed."""

    prefix = "Packaging failed: "


class BuildTriggerError(StageError):
    """Starting or completing the container image build failed."""

    prefix = "Cloud Build trigger failed: "


class HostDeploymentError(StageError):
    """Deploying the built image to the container host failed."""

    prefix = "Cloud Run deployment failed: "


class CommandError(MvpDeployError):
    """An external CLI invocation exited unsuccessfully."""

    def __init__(self, command: str, returncode: int | None, output: str = ""):
        super().__init__(
            f"Command '{command}' failed with exit code {returncode}",
            {"command": command, "returncode": returncode},
        )
        self.command = command
        self.returncode = returncode
        self.output = output

    @property
    def output_lines(self) -> list[str]:
        """Non-empty output lines, oldest first."""
        return [line for line in self.output.splitlines() if line.strip()]
