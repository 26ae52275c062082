"""HTTP API for mvp-deploy."""
