# staybook/main.py
from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI

from staybook import __version__
from staybook.api.routers.bookings import router as bookings_router
from staybook.api.routers.health import router as health_router
from staybook.api.routers.holds import router as holds_router
from staybook.api.routers.ops_tasks import router as ops_tasks_router
from staybook.api.routers.properties import router as properties_router
from staybook.container import Container, build_container
from staybook.core.logging import setup_logging
from staybook.db.base import init_models
from staybook.http_problem_handlers import register_exception_handlers
from staybook.metrics import router as metrics_router

logger = logging.getLogger("staybook")


def create_app(container: Optional[Container] = None) -> FastAPI:
    """
    App factory. Tests pass a container wired to a temp database and a
    manual clock; the module-level `app` uses settings from the environment.
    """
    container = container or build_container()
    setup_logging(container.settings.LOG_LEVEL, json=container.settings.JSON_LOG)
    init_models()

    app = FastAPI(
        title="staybook",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.container = container

    register_exception_handlers(app)

    app.include_router(health_router)
    app.include_router(metrics_router)
    app.include_router(holds_router)
    app.include_router(bookings_router)
    app.include_router(ops_tasks_router)
    app.include_router(properties_router)

    logger.info("staybook app created env=%s", container.settings.ENV)
    return app


app = create_app()
