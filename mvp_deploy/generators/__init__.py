"""Deployment bundle generators."""

from mvp_deploy.generators.container import ContainerBundleGenerator

__all__ = ["ContainerBundleGenerator"]
