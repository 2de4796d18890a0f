"""FastAPI application factory for the read-only host API."""

from __future__ import annotations

from fastapi import FastAPI

from denyspam import __version__
from denyspam.config import DenySpamConfig
from denyspam.storage.snapshot import SnapshotStore


def create_app(config: DenySpamConfig | None = None) -> FastAPI:
    """Build and return the FastAPI application."""
    config = config or DenySpamConfig.load()

    app = FastAPI(
        title="DenySpam",
        version=__version__,
        docs_url="/api/docs",
    )

    app.state.config = config
    app.state.store = SnapshotStore(config.snapshot_file)

    from denyspam.web.api.hosts import router as hosts_router

    app.include_router(hosts_router, prefix="/api")
    return app
