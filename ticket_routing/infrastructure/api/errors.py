"""Maps engine errors onto HTTP responses."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ticket_routing.domain.errors import (
    AgentUnavailable,
    CapacityExceeded,
    InvalidState,
    NotFound,
    RoutingError,
    ValidationError,
)

logger = logging.getLogger(__name__)

STATUS_CODES: dict[type[RoutingError], int] = {
    NotFound: 404,
    InvalidState: 409,
    CapacityExceeded: 409,
    AgentUnavailable: 409,
    ValidationError: 422,
}


def status_for(exc: RoutingError) -> int:
    for cls in type(exc).__mro__:
        if cls in STATUS_CODES:
            return STATUS_CODES[cls]
    return 400


async def routing_error_handler(request: Request, exc: RoutingError) -> JSONResponse:
    status = status_for(exc)
    logger.info(
        "%s %s rejected with %d: %s", request.method, request.url.path, status, exc.message
    )
    return JSONResponse(
        status_code=status,
        content={"error": type(exc).__name__, "message": exc.message, "details": exc.details},
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RoutingError, routing_error_handler)
