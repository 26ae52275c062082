"""Clients for the services the deployment pipeline drives."""

from mvp_deploy.clients.base import BuildService, ContainerHost, Packager
from mvp_deploy.clients.cloud_build import CloudBuildService, SimulatedBuildService
from mvp_deploy.clients.cloud_run import CloudRunHost, SimulatedCloudRunHost
from mvp_deploy.clients.gcloud import GcloudRunner
from mvp_deploy.clients.packaging import ContainerBundlePackager

__all__ = [
    "BuildService",
    "ContainerHost",
    "Packager",
    "CloudBuildService",
    "SimulatedBuildService",
    "CloudRunHost",
    "SimulatedCloudRunHost",
    "GcloudRunner",
    "ContainerBundlePackager",
]
