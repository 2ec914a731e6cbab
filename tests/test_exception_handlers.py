"""Tests for global exception handlers.

Validates that all exception types are handled consistently with
proper HTTP status codes, error format, and no information leakage.
"""

import asyncio
import json
from unittest.mock import Mock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from leaf_tracker.core.errors import (
    AppError,
    CacheInstallError,
    UpstreamAppError,
)
from leaf_tracker.core.exception_handlers import general_exception_handler, setup_exception_handlers


@pytest.fixture
def app_with_handlers() -> FastAPI:
    """Create FastAPI app with exception handlers registered."""
    app = FastAPI()
    setup_exception_handlers(app)
    return app


@pytest.fixture
def client(app_with_handlers: FastAPI) -> TestClient:
    return TestClient(app_with_handlers, raise_server_exceptions=False)


class TestAppErrorHandler:
    """Test handler for AppError and subclasses."""

    def test_upstream_error_without_details_omits_them(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-upstream-bare")
        async def test_endpoint():
            raise UpstreamAppError(code="upstream_unreachable", message="Upstream down")

        response = client.get("/test-upstream-bare")

        assert response.status_code == 502
        data = response.json()
        assert data["error"]["code"] == "upstream_unreachable"
        assert data["error"]["message"] == "Upstream down"
        assert "request_id" in data["error"]
        assert "details" not in data["error"]

    def test_upstream_error_returns_502_with_details(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-upstream")
        async def test_endpoint():
            raise UpstreamAppError(
                code="upstream_unreachable",
                message="The upstream service could not be reached.",
                details={"upstream": "streets"},
            )

        response = client.get("/test-upstream")

        assert response.status_code == 502
        assert response.json()["error"]["details"] == {"upstream": "streets"}

    @pytest.mark.parametrize(
        "error",
        [
            AppError(code="generic", message="generic failure"),
            CacheInstallError(code="cache_install_failed", message="install failed"),
        ],
    )
    def test_other_app_errors_return_500(self, client: TestClient, app_with_handlers: FastAPI, error):
        @app_with_handlers.get("/test-other")
        async def test_endpoint():
            raise error

        response = client.get("/test-other")

        assert response.status_code == 500
        assert response.json()["error"]["code"] == error.code


class TestGeneralExceptionHandler:
    def test_unexpected_exception_returns_generic_500(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-crash")
        async def test_endpoint():
            raise RuntimeError("secret upstream token abc123 leaked")

        response = client.get("/test-crash")

        assert response.status_code == 500
        body = response.json()
        assert body["error"]["code"] == "internal_server_error"
        assert "abc123" not in response.text

    def test_handler_can_be_called_directly(self):
        request = Mock()
        request.url.path = "/api/streets"
        request.method = "GET"

        response = asyncio.run(general_exception_handler(request, ValueError("boom")))

        assert response.status_code == 500
        assert json.loads(response.body)["error"]["code"] == "internal_server_error"


def test_app_error_str_is_its_message():
    error = UpstreamAppError(code="upstream_unreachable", message="unreachable")

    assert str(error) == "unreachable"
    assert isinstance(error, Exception)
