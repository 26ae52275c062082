"""mvp-deploy: deployment pipeline that takes a finished MVP live on Cloud Run."""

__version__ = "0.1.0"
