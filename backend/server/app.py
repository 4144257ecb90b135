"""
FastAPI app factory.

Responsibilities:
- Create and configure FastAPI app
- Set up middleware
- Initialize shared resources (DiagramWorkspace)
- Register routes
- Tear the workspace down on shutdown
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import AppConfig
from observability.logger import configure as configure_logging, log_event
from server.routes import register_routes
from session.workspace import DiagramWorkspace


def create_app(
    config: AppConfig | None = None,
    workspace: DiagramWorkspace | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Tests pass a prebuilt workspace; production builds one from the
    environment.
    """
    config = config or (workspace.config if workspace is not None else AppConfig.load_from_env())
    configure_logging(level=config.log_level, json_output=config.enable_json_logs)

    workspace = workspace or DiagramWorkspace.from_config(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:  # pylint: disable=unused-argument
        log_event({
            "event_type": "APP_STARTED",
            "env": config.env,
            "active_session_id": workspace.active.get(),
        })
        try:
            yield
        finally:
            await workspace.shutdown()
            log_event({"event_type": "APP_STOPPED"})

    app = FastAPI(title="BPMN Voice Assistant", lifespan=lifespan)

    app.state.config = config
    app.state.workspace = workspace

    # Local control panel only
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_routes(app)

    return app
