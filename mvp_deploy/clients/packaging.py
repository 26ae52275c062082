"""Packaging collaborator: turns a product description into a build context."""

import asyncio
from pathlib import Path

from mvp_deploy.clients.base import Packager
from mvp_deploy.config import CloudConfig
from mvp_deploy.core.exceptions import PackagingError
from mvp_deploy.core.naming import make_service_name
from mvp_deploy.generators.container import ContainerBundleGenerator
from mvp_deploy.models.build import PackageManifest
from mvp_deploy.models.deployment import DeploymentRequest
from mvp_deploy.utils.logging import get_logger


def describe_size(num_bytes: int) -> str:
    """Human readable size, e.g. ``2.4 KB``."""
    if num_bytes < 1024:
        return f"{num_bytes} B"
    if num_bytes < 1024 * 1024:
        return f"{num_bytes / 1024:.1f} KB"
    return f"{num_bytes / (1024 * 1024):.1f} MB"


class ContainerBundlePackager(Packager):
    """Renders the container bundle and optionally writes it to disk.

    With ``bundle_directory`` set, each artifact gets its own subdirectory
    that the build service can upload as its source.
    """

    def __init__(self, config: CloudConfig, bundle_directory: str | Path | None = None):
        self.config = config
        self.bundle_directory = Path(bundle_directory) if bundle_directory else None
        self.logger = get_logger("client.packaging")

    def bundle_path(self, request: DeploymentRequest) -> Path | None:
        if self.bundle_directory is None:
            return None
        root = self.bundle_directory.resolve()
        path = (root / request.artifact_id).resolve()
        if path == root or not path.is_relative_to(root):
            raise PackagingError(
                f"artifact id {request.artifact_id!r} escapes the bundle directory",
                stage="packaging",
            )
        return path

    async def package(self, request: DeploymentRequest) -> PackageManifest:
        service_name = make_service_name(
            request.display_name,
            request.owner_id,
            self.config.service_name_max_length,
        )
        output_dir = self.bundle_path(request)
        generator = ContainerBundleGenerator(request, self.config, service_name)

        try:
            if output_dir is None:
                bundle = generator.generate()
            else:
                bundle = await asyncio.to_thread(generator.write, output_dir)
        except OSError as e:
            raise PackagingError(f"could not write bundle: {e}", stage="packaging")

        self.logger.info(
            "packaging.completed",
            artifact_id=request.artifact_id,
            files=bundle.file_count,
            directory=str(output_dir) if output_dir else None,
        )

        return PackageManifest(
            files=bundle.paths,
            size_description=describe_size(bundle.total_bytes),
            directory=str(output_dir) if output_dir else None,
        )
