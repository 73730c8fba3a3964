"""
Unit tests for the Gateway object store client.
"""

import json
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from shared.circuit_breaker import CircuitBreaker, CircuitBreakerState
from shared.errors import ExternalServiceError, ObjectNotFoundError
from service_gateway.app.adapters.object_store_client import ObjectStoreClient

BASE_URL = "http://store.local"


def _response(status_code: int, content: bytes = b"", method: str = "GET") -> httpx.Response:
    return httpx.Response(
        status_code=status_code,
        content=content,
        request=httpx.Request(method, f"{BASE_URL}/storage/v1/object"),
    )


class DummyMetrics:
    """Minimal metrics collector stub."""

    def __init__(self):
        self.histograms = []

    def observe_histogram(self, metric_name: str, value: float, **labels):
        self.histograms.append((metric_name, labels))


class TestObjectStoreClient:
    """Test cases for ObjectStoreClient."""

    @pytest.fixture
    def client(self):
        return ObjectStoreClient(f"{BASE_URL}/", "service-key")

    @pytest.mark.asyncio
    async def test_fetch_success(self, client):
        body = json.dumps([{"id": 1}]).encode()

        with patch('httpx.AsyncClient') as mock_client:
            mock_get = AsyncMock(return_value=_response(200, body))
            mock_client.return_value.__aenter__.return_value.get = mock_get

            result = await client.fetch("ds1")

        assert result == body
        url = mock_get.call_args.args[0]
        headers = mock_get.call_args.kwargs["headers"]
        assert url == f"{BASE_URL}/storage/v1/object/api-data/ds1/data.json"
        assert headers["apikey"] == "service-key"
        assert headers["Authorization"] == "Bearer service-key"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status_code", [400, 404])
    async def test_fetch_not_found(self, client, status_code):
        with patch('httpx.AsyncClient') as mock_client:
            mock_client.return_value.__aenter__.return_value.get = AsyncMock(
                return_value=_response(status_code, b'{"error":"not_found"}')
            )

            with pytest.raises(ObjectNotFoundError):
                await client.fetch("missing")

        assert client.circuit_breaker.state is CircuitBreakerState.CLOSED

    @pytest.mark.asyncio
    async def test_fetch_server_error(self, client):
        with patch('httpx.AsyncClient') as mock_client:
            mock_client.return_value.__aenter__.return_value.get = AsyncMock(
                return_value=_response(503, b"unavailable")
            )

            with pytest.raises(ExternalServiceError) as exc_info:
                await client.fetch("ds1")

        assert exc_info.value.details["status_code"] == 503

    @pytest.mark.asyncio
    async def test_fetch_transport_error_is_wrapped(self, client):
        with patch('httpx.AsyncClient') as mock_client:
            mock_client.return_value.__aenter__.return_value.get = AsyncMock(
                side_effect=httpx.ConnectError("Connection refused")
            )

            with pytest.raises(ExternalServiceError) as exc_info:
                await client.fetch("ds1")

        assert exc_info.value.details == {"dataset_id": "ds1"}

    @pytest.mark.asyncio
    async def test_circuit_breaker_opens_after_failures(self):
        breaker = CircuitBreaker(failure_threshold=2, recovery_timeout=60.0, name="test_store")
        client = ObjectStoreClient(BASE_URL, "key", circuit_breaker=breaker)

        with patch('httpx.AsyncClient') as mock_client:
            mock_get = AsyncMock(side_effect=httpx.ConnectError("down"))
            mock_client.return_value.__aenter__.return_value.get = mock_get

            for _ in range(3):
                with pytest.raises(ExternalServiceError):
                    await client.fetch("ds1")

        assert breaker.state is CircuitBreakerState.OPEN
        assert mock_get.await_count == 2

    @pytest.mark.asyncio
    async def test_fetch_records_duration(self):
        metrics = DummyMetrics()
        client = ObjectStoreClient(BASE_URL, "key", metrics=metrics)

        with patch('httpx.AsyncClient') as mock_client:
            mock_client.return_value.__aenter__.return_value.get = AsyncMock(return_value=_response(200, b"[]"))
            await client.fetch("ds1")

        assert metrics.histograms == [("object_store_fetch_duration_seconds", {"result": "ok"})]

    @pytest.mark.asyncio
    async def test_put_log_uploads_json(self, client):
        with patch('httpx.AsyncClient') as mock_client:
            mock_post = AsyncMock(return_value=_response(200, b'{"Key":"x"}', "POST"))
            mock_client.return_value.__aenter__.return_value.post = mock_post

            await client.put_log("ds1", "2024-01-01T00:00:00.000Z-abcd1234", b'{"a":1}')

        url = mock_post.call_args.args[0]
        assert url == f"{BASE_URL}/storage/v1/object/api-logs/ds1/2024-01-01T00%3A00%3A00.000Z-abcd1234.json"
        assert mock_post.call_args.kwargs["content"] == b'{"a":1}'
        assert mock_post.call_args.kwargs["headers"]["Content-Type"] == "application/json"

    @pytest.mark.asyncio
    async def test_put_log_failure_raises(self, client):
        with patch('httpx.AsyncClient') as mock_client:
            mock_client.return_value.__aenter__.return_value.post = AsyncMock(
                return_value=_response(409, b"duplicate", "POST")
            )

            with pytest.raises(ExternalServiceError):
                await client.put_log("ds1", "key", b"{}")
