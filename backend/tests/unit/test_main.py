"""
Unit tests for main FastAPI application.

Tests the root endpoints, health checks, lifespan, and global exception handlers.
"""

import json

import pytest
from unittest.mock import AsyncMock, Mock, patch
from fastapi.testclient import TestClient
from fastapi import Request
import httpx

from main import (
    app,
    root,
    health_check,
    global_exception_handler,
    value_error_handler,
    http_status_error_handler,
    lifespan
)


class TestRootEndpoints:
    """Test root API endpoints."""

    def test_root_endpoint(self):
        """Test the root endpoint returns correct information."""
        client = TestClient(app)
        response = client.get("/")

        assert response.status_code == 200
        data = response.json()
        assert data["message"] == "Clinic Reception Backend API"
        assert data["version"] == "1.0.0"
        assert data["status"] == "running"

    def test_health_endpoint(self):
        """Test the health check endpoint."""
        client = TestClient(app)
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    @pytest.mark.asyncio
    async def test_root_function_directly(self):
        """Test the root function directly."""
        result = await root()
        assert result["message"] == "Clinic Reception Backend API"

    @pytest.mark.asyncio
    async def test_health_check_function_directly(self):
        """Test the health_check function directly."""
        assert await health_check() == {"status": "healthy"}


class TestExceptionHandlers:
    """Test global exception handlers."""

    @pytest.mark.asyncio
    async def test_global_exception_handler(self):
        """Test handling of unhandled exceptions."""
        mock_request = Mock(spec=Request)

        with patch('main.logger'):
            response = await global_exception_handler(mock_request, RuntimeError("Test error"))

        assert response.status_code == 500
        data = json.loads(response.body)
        assert data == {"detail": "サーバー内部エラーが発生しました", "type": "internal_error"}

    @pytest.mark.asyncio
    async def test_value_error_handler(self):
        """Test ValueError becomes a 400 with its message."""
        mock_request = Mock(spec=Request)

        with patch('main.logger'):
            response = await value_error_handler(mock_request, ValueError("氏名を入力してください"))

        assert response.status_code == 400
        data = json.loads(response.body)
        assert data["detail"] == "氏名を入力してください"
        assert data["type"] == "validation_error"

    @pytest.mark.asyncio
    async def test_http_status_error_handler(self):
        """Test upstream HTTP errors become a 502."""
        mock_request = Mock(spec=Request)
        upstream_request = httpx.Request("POST", "https://api.line.me/oauth2/v2.1/verify")
        upstream_response = httpx.Response(503, request=upstream_request)
        error = httpx.HTTPStatusError("unavailable", request=upstream_request, response=upstream_response)

        with patch('main.logger'):
            response = await http_status_error_handler(mock_request, error)

        assert response.status_code == 502
        data = json.loads(response.body)
        assert data["detail"] == "外部サービスでエラーが発生しました"
        assert data["type"] == "external_service_error"


class TestLifespan:
    """Test application startup and shutdown."""

    @pytest.mark.asyncio
    async def test_lifespan_starts_and_stops_aggregator(self):
        """Test the public status aggregator follows the app lifetime."""
        with patch('main.start_public_status_aggregator', new_callable=AsyncMock) as mock_start, \
             patch('main.stop_public_status_aggregator', new_callable=AsyncMock) as mock_stop:
            async with lifespan(app):
                mock_start.assert_awaited_once()
                mock_stop.assert_not_awaited()

            mock_stop.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_lifespan_survives_aggregator_failure(self):
        """Test a failing aggregator does not prevent startup or shutdown."""
        with patch('main.start_public_status_aggregator', new_callable=AsyncMock, side_effect=RuntimeError("boom")), \
             patch('main.stop_public_status_aggregator', new_callable=AsyncMock, side_effect=RuntimeError("boom")), \
             patch('main.logger') as mock_logger:
            async with lifespan(app):
                pass

        assert mock_logger.exception.call_count == 2
