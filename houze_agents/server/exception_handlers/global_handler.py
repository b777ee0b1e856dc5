"""
Exception Handlers for the FastAPI Application.

Engine errors raised by the control API are mapped to HTTP status codes;
anything else goes through the global handler, which logs the full context
and returns an error ID clients can quote when reporting issues.
"""

import traceback
from typing import Dict, Type

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from houze_agents.agent_core.errors import (
    AgentEngineError,
    InvalidStateError,
    NotFoundError,
    QueueFullError,
    ValidationError,
)
from houze_agents.core.logging_config import get_logger

logger = get_logger(__name__)

ENGINE_ERROR_STATUS: Dict[Type[AgentEngineError], int] = {
    NotFoundError: 404,
    ValidationError: 422,
    InvalidStateError: 409,
    QueueFullError: 503,
}


async def engine_exception_handler(request: Request, exc: AgentEngineError) -> JSONResponse:
    """
    Translate an engine error into its HTTP response.

    Errors without a mapping are treated as unhandled.
    """
    for error_type, status_code in ENGINE_ERROR_STATUS.items():
        if isinstance(exc, error_type):
            logger.info(f"{request.method} {request.url.path} rejected with {status_code}: {exc}")
            return JSONResponse(
                status_code=status_code,
                content={"detail": str(exc), "error_type": type(exc).__name__},
            )
    return await global_exception_handler(request, exc)


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Global exception handler to log detailed error information.

    This handler is called for any unhandled exception in the application.
    It logs the full error context and returns a JSON response with an error ID
    that clients can use to reference the error when reporting issues.

    Args:
        request: The HTTP request that caused the exception
        exc: The exception that was raised

    Returns:
        JSONResponse with error details and error ID
    """
    error_id = id(exc)

    logger.error(
        f"Unhandled exception [{error_id}] in {request.method} {request.url.path}: {str(exc)}",
        exc_info=True,
        extra={
            "error_id": error_id,
            "method": request.method,
            "path": request.url.path,
            "query_params": dict(request.query_params),
            "client": request.client.host if request.client else "unknown",
            "error_type": type(exc).__name__,
            "traceback": traceback.format_exc(),
        },
    )

    return JSONResponse(
        status_code=500,
        content={
            "detail": "Internal server error",
            "error_id": error_id,
            "error_type": type(exc).__name__,
        },
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """
    Register exception handlers with the FastAPI application.

    Args:
        app: The FastAPI application instance
    """
    app.add_exception_handler(AgentEngineError, engine_exception_handler)
    app.add_exception_handler(Exception, global_exception_handler)
    logger.debug("Exception handlers registered successfully")
