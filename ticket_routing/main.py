"""Ticket routing — FastAPI application factory."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ticket_routing.adapters.persistence.database import engine
from ticket_routing.config import settings
from ticket_routing.infrastructure.api.dependencies import close_publishers, sweep_scheduler
from ticket_routing.infrastructure.api.errors import register_error_handlers
from ticket_routing.infrastructure.api.routes_agents import router as agents_router
from ticket_routing.infrastructure.api.routes_assignments import router as assignments_router
from ticket_routing.infrastructure.api.routes_health import router as health_router
from ticket_routing.infrastructure.api.routes_sla import router as sla_router
from ticket_routing.infrastructure.api.routes_tickets import router as tickets_router
from ticket_routing.infrastructure.logging_config import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    try:
        async with engine.begin():
            pass  # Connection pool warmed up
        logger.info("Database connection established")
    except Exception as e:
        logger.warning("Database not available on startup: %s", e)

    if settings.sla_sweep_enabled:
        sweep_scheduler.start()
    yield
    sweep_scheduler.stop()
    await close_publishers()
    await engine.dispose()


def create_app() -> FastAPI:
    setup_logging(settings.log_level, settings.log_json)

    app = FastAPI(
        title="Ticket Routing",
        description="Capacity-aware ticket assignment and SLA tracking",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)

    # Register routers
    app.include_router(health_router, prefix="/api")
    app.include_router(tickets_router, prefix="/api")
    app.include_router(agents_router, prefix="/api")
    app.include_router(assignments_router, prefix="/api")
    app.include_router(sla_router, prefix="/api")

    return app


app = create_app()
