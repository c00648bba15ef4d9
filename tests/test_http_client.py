"""
Tests for the resilient HTTP client.
"""
import httpx
import pytest

from shiprocket_gateway.core.http_client import (
    CircuitBreakerConfig,
    CircuitOpenError,
    CircuitState,
    ResilientHTTPClient,
    RetryConfig,
    get_shiprocket_http_client,
)

URL = "https://carrier.test/v1/resource"


def _client(handler, max_retries=2, failure_threshold=5, timeout_seconds=30.0) -> ResilientHTTPClient:
    http = ResilientHTTPClient(
        retry_config=RetryConfig(max_retries=max_retries, base_delay=0, max_delay=0, jitter_factor=0),
        circuit_config=CircuitBreakerConfig(failure_threshold=failure_threshold, timeout_seconds=timeout_seconds),
    )
    http._client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return http


class TestRetries:
    """Test retry behavior per method."""

    @pytest.mark.asyncio
    async def test_get_retries_until_success(self):
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) == 1:
                raise httpx.ConnectTimeout("slow", request=request)
            return httpx.Response(200, json={"ok": True})

        async with _client(handler) as http:
            response = await http.get(URL)

        assert response.status_code == 200
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_get_returns_last_retryable_response(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(503)

        http = _client(handler, max_retries=2)
        response = await http.get(URL)

        assert response.status_code == 503
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_get_reraises_timeout_after_last_attempt(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        http = _client(handler, max_retries=1)

        with pytest.raises(httpx.ReadTimeout):
            await http.get(URL)

    @pytest.mark.asyncio
    async def test_post_sent_once_on_timeout(self):
        """Test a POST that timed out is not replayed."""
        calls = []

        def handler(request):
            calls.append(request)
            raise httpx.ReadTimeout("slow", request=request)

        http = _client(handler)

        with pytest.raises(httpx.ReadTimeout):
            await http.post(URL, json={"order_id": "ord-1"})

        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_client_errors_not_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(404)

        http = _client(handler)
        response = await http.get(URL)

        assert response.status_code == 404
        assert len(calls) == 1


class TestCircuitBreaker:
    """Test circuit breaker state transitions."""

    @pytest.mark.asyncio
    async def test_opens_after_threshold(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(500)

        http = _client(handler, max_retries=0, failure_threshold=2)
        await http.get(URL)
        await http.get(URL)

        with pytest.raises(CircuitOpenError):
            await http.get(URL)

        assert len(calls) == 2
        assert http._get_host_state("carrier.test").circuit_state == CircuitState.OPEN

    @pytest.mark.asyncio
    async def test_open_circuit_is_a_transport_error(self):
        http = _client(lambda request: httpx.Response(500), max_retries=0, failure_threshold=1)
        await http.get(URL)

        with pytest.raises(httpx.TransportError):
            await http.get(URL)

    @pytest.mark.asyncio
    async def test_half_open_success_closes(self):
        responses = [httpx.Response(500), httpx.Response(200)]

        http = _client(lambda request: responses.pop(0), max_retries=0, failure_threshold=1, timeout_seconds=0)
        await http.get(URL)
        state = http._get_host_state("carrier.test")
        assert state.circuit_state == CircuitState.OPEN

        state.last_failure_time -= 1
        response = await http.get(URL)

        assert response.status_code == 200
        assert state.circuit_state == CircuitState.CLOSED
        assert state.failure_count == 0


class TestBackoff:

    def test_backoff_is_capped(self):
        http = ResilientHTTPClient(retry_config=RetryConfig(base_delay=1.0, max_delay=3.0, jitter_factor=0))

        assert http._calculate_backoff(0) == 1.0
        assert http._calculate_backoff(1) == 2.0
        assert http._calculate_backoff(5) == 3.0


def test_shiprocket_client_defaults():
    http = get_shiprocket_http_client(timeout=12.0)

    assert http.timeout == 12.0
    assert http.retry_config.max_retries == 2
    assert http.default_headers["Accept"] == "application/json"
