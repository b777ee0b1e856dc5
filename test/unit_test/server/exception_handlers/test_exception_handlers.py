"""
Unit tests for server exception handlers.

Tests cover the mapping of engine errors to HTTP status codes and the global
handler for everything else.
"""

import json
from unittest.mock import Mock, patch

import pytest
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from houze_agents.agent_core.errors import (
    AgentEngineError,
    ConfigurationError,
    InvalidStateError,
    NotFoundError,
    QueueFullError,
    ValidationError,
)
from houze_agents.server.exception_handlers import setup_exception_handlers
from houze_agents.server.exception_handlers.global_handler import (
    engine_exception_handler,
    global_exception_handler,
)


@pytest.fixture
def mock_request():
    """Create a mock request object."""
    request = Mock(spec=Request)
    request.method = "POST"
    request.url.path = "/api/v1/agents/a-1/run-async"
    request.query_params = {}
    request.client = Mock()
    request.client.host = "127.0.0.1"
    return request


class TestEngineExceptionHandler:
    """Test suite for engine error mapping."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "exc,status_code",
        [
            (NotFoundError("agent", "a-1"), 404),
            (ValidationError("Missing required input variables: customer"), 422),
            (InvalidStateError("run 'r-1' is already completed"), 409),
            (QueueFullError(5), 503),
        ],
    )
    async def test_maps_engine_errors(self, mock_request, exc, status_code):
        """Test that each engine error type gets its status code."""
        with patch("houze_agents.server.exception_handlers.global_handler.logger"):
            response = await engine_exception_handler(mock_request, exc)

        assert isinstance(response, JSONResponse)
        assert response.status_code == status_code
        body = json.loads(response.body.decode())
        assert body == {"detail": str(exc), "error_type": type(exc).__name__}

    @pytest.mark.asyncio
    async def test_unmapped_engine_error_is_internal(self, mock_request):
        """Test that an engine error without a mapping falls through to a 500."""
        with patch("houze_agents.server.exception_handlers.global_handler.logger") as mock_logger:
            response = await engine_exception_handler(mock_request, ConfigurationError("unknown tool group"))

        assert response.status_code == 500
        mock_logger.error.assert_called_once()
        body = json.loads(response.body.decode())
        assert body["error_type"] == "ConfigurationError"
        assert body["detail"] == "Internal server error"


class TestGlobalExceptionHandler:
    """Test suite for global exception handler."""

    @pytest.mark.asyncio
    async def test_exception_handler_logs_error(self, mock_request):
        """Test that exception handler logs errors."""
        exc = ValueError("Test error")

        with patch("houze_agents.server.exception_handlers.global_handler.logger") as mock_logger:
            await global_exception_handler(mock_request, exc)

            mock_logger.error.assert_called_once()
            call_args = mock_logger.error.call_args
            assert "Unhandled exception" in call_args[0][0]
            assert call_args[1]["extra"]["error_type"] == "ValueError"
            assert call_args[1]["extra"]["client"] == "127.0.0.1"

    @pytest.mark.asyncio
    async def test_exception_handler_returns_error_id(self, mock_request):
        """Test that exception handler returns a 500 with an error ID."""
        exc = RuntimeError("Test error")

        with patch("houze_agents.server.exception_handlers.global_handler.logger"):
            response = await global_exception_handler(mock_request, exc)

        assert response.status_code == 500
        body = json.loads(response.body.decode())
        assert body["error_id"] == id(exc)
        assert body["error_type"] == "RuntimeError"

    @pytest.mark.asyncio
    async def test_exception_handler_without_client(self, mock_request):
        """Test that a request without client info is logged as unknown."""
        mock_request.client = None

        with patch("houze_agents.server.exception_handlers.global_handler.logger") as mock_logger:
            await global_exception_handler(mock_request, RuntimeError("boom"))

        assert mock_logger.error.call_args[1]["extra"]["client"] == "unknown"


def test_setup_exception_handlers_registers_handlers():
    """Test that both handlers are registered on the app."""
    app = FastAPI()
    setup_exception_handlers(app)

    assert app.exception_handlers[AgentEngineError] is engine_exception_handler
    assert app.exception_handlers[Exception] is global_exception_handler
