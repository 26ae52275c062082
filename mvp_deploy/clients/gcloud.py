"""Async runner for the gcloud CLI."""

import asyncio
import json
from typing import Any

from mvp_deploy.core.exceptions import CommandError
from mvp_deploy.utils.logging import get_logger


class GcloudRunner:
    """Runs ``gcloud`` subcommands and decodes their JSON output."""

    def __init__(
        self,
        binary: str = "gcloud",
        project_id: str | None = None,
        timeout: int = 300,
    ):
        self.binary = binary
        self.project_id = project_id
        self.timeout = timeout
        self.logger = get_logger("client.gcloud")

    def _command(self, args: list[str]) -> list[str]:
        cmd = [self.binary, *args, "--format=json", "--quiet"]
        if self.project_id:
            cmd.append(f"--project={self.project_id}")
        return cmd

    async def run(self, args: list[str], cwd: str | None = None) -> str:
        """Run a gcloud command and return its stdout.

        Raises:
            CommandError: On a non-zero exit code or a timeout
        """
        cmd = self._command(args)
        cmd_display = " ".join(cmd)
        self.logger.info("gcloud.running", cmd=cmd_display, cwd=cwd)

        process = await asyncio.create_subprocess_exec(
            *cmd,
            cwd=cwd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            raise CommandError(
                cmd_display, None, f"Command timed out after {self.timeout} seconds"
            )

        stdout_text = stdout.decode() if stdout else ""
        stderr_text = stderr.decode() if stderr else ""

        if process.returncode != 0:
            self.logger.error(
                "gcloud.failed",
                cmd=cmd_display,
                returncode=process.returncode,
                error_preview=stderr_text[:500],
            )
            raise CommandError(cmd_display, process.returncode, stderr_text or stdout_text)

        return stdout_text

    async def run_json(self, args: list[str], cwd: str | None = None) -> Any:
        """Run a gcloud command and parse its JSON output."""
        output = await self.run(args, cwd=cwd)
        if not output.strip():
            return {}
        try:
            return json.loads(output)
        except json.JSONDecodeError as e:
            raise CommandError(" ".join(args), 0, f"Invalid JSON output: {e}")
