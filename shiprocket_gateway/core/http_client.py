"""
Resilient HTTP Client for Carrier API Calls

- Bounded timeout on every request
- Circuit breaker per host for repeated failures
- Exponential backoff with jitter, for idempotent methods ONLY

Order creation, cancellation and returns are POSTs and are never retried
here: a timed-out POST may already have been applied by the carrier, and
replaying it without an idempotency key can create duplicate shipments.
Callers re-invoke the use case instead.

Non-2xx responses are returned to the caller as-is; only transport
failures raise.
"""
import asyncio
import logging
import random
import time
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional
from urllib.parse import urlparse

import httpx

logger = logging.getLogger(__name__)

IDEMPOTENT_METHODS = ("GET", "HEAD", "OPTIONS")


class CircuitOpenError(httpx.TransportError):
    """Raised when a host's circuit is open and the request is rejected locally."""

    def __init__(self, host: str, remaining: float):
        self.host = host
        self.remaining = remaining
        super().__init__(f"Circuit breaker OPEN for {host} ({remaining:.1f}s until retry)")


class CircuitState(Enum):
    CLOSED = "closed"      # Normal operation
    OPEN = "open"          # Failing, reject requests
    HALF_OPEN = "half_open"  # Testing if service recovered


@dataclass
class RetryConfig:
    """Configuration for retry behavior of idempotent requests."""
    max_retries: int = 2
    base_delay: float = 0.5           # Base delay in seconds
    max_delay: float = 5.0            # Maximum delay cap
    exponential_base: float = 2.0     # Exponential backoff multiplier
    jitter_factor: float = 0.5        # Random jitter (0-1)

    # Status codes that should trigger retry
    retryable_status_codes: tuple = (429, 500, 502, 503, 504)


@dataclass
class CircuitBreakerConfig:
    """Configuration for circuit breaker."""
    failure_threshold: int = 5        # Failures before opening circuit
    success_threshold: int = 1        # Successes to close circuit
    timeout_seconds: float = 30.0     # Time before half-open test


@dataclass
class HostState:
    """Tracks circuit state for a specific host."""
    circuit_state: CircuitState = CircuitState.CLOSED
    failure_count: int = 0
    success_count: int = 0
    last_failure_time: float = 0.0


class ResilientHTTPClient:
    """
    Async HTTP client with built-in resilience patterns.

    Usage:
        async with ResilientHTTPClient(timeout=20.0) as client:
            response = await client.get("https://api.example.com/data")
    """

    def __init__(
        self,
        retry_config: Optional[RetryConfig] = None,
        circuit_config: Optional[CircuitBreakerConfig] = None,
        timeout: float = 20.0,
        default_headers: Optional[Dict[str, str]] = None,
    ):
        self.retry_config = retry_config or RetryConfig()
        self.circuit_config = circuit_config or CircuitBreakerConfig()
        self.timeout = timeout
        self.default_headers = default_headers or {}

        self._client: Optional[httpx.AsyncClient] = None
        self._host_states: Dict[str, HostState] = {}

    async def __aenter__(self):
        await self.init()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def init(self):
        """Initialize client without context manager. Must call close() when done."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                headers=self.default_headers,
            )
        return self

    async def close(self):
        """Close the client. Use this when not using context manager."""
        if self._client:
            await self._client.aclose()
            self._client = None

    def _get_host(self, url: str) -> str:
        """Extract host from URL for per-host tracking."""
        return urlparse(url).netloc

    def _get_host_state(self, host: str) -> HostState:
        """Get or create state for a host."""
        if host not in self._host_states:
            self._host_states[host] = HostState()
        return self._host_states[host]

    def _calculate_backoff(self, attempt: int) -> float:
        """
        Calculate delay with exponential backoff and jitter.

        Formula: min(base * (exp_base ^ attempt) + jitter, max_delay)
        """
        cfg = self.retry_config
        delay = cfg.base_delay * (cfg.exponential_base ** attempt)
        jitter = delay * cfg.jitter_factor * (2 * random.random() - 1)
        delay += jitter
        return max(0.0, min(delay, cfg.max_delay))

    def _check_circuit_breaker(self, host: str) -> None:
        """Raise CircuitOpenError if the circuit for host rejects requests."""
        state = self._get_host_state(host)
        cfg = self.circuit_config
        now = time.time()

        if state.circuit_state != CircuitState.OPEN:
            return

        if now - state.last_failure_time > cfg.timeout_seconds:
            logger.info(f"[CIRCUIT] {host}: Moving to HALF_OPEN for test request")
            state.circuit_state = CircuitState.HALF_OPEN
            state.success_count = 0
            return

        remaining = cfg.timeout_seconds - (now - state.last_failure_time)
        logger.warning(f"[CIRCUIT] {host}: OPEN, rejecting request ({remaining:.1f}s until retry)")
        raise CircuitOpenError(host, remaining)

    def _record_success(self, host: str) -> None:
        """Record successful request for circuit breaker."""
        state = self._get_host_state(host)
        state.failure_count = 0

        if state.circuit_state == CircuitState.HALF_OPEN:
            state.success_count += 1
            if state.success_count >= self.circuit_config.success_threshold:
                logger.info(f"[CIRCUIT] {host}: Closing circuit after {state.success_count} successes")
                state.circuit_state = CircuitState.CLOSED

    def _record_failure(self, host: str) -> None:
        """Record failed request for circuit breaker."""
        state = self._get_host_state(host)
        state.failure_count += 1
        state.last_failure_time = time.time()
        state.success_count = 0

        if state.circuit_state == CircuitState.HALF_OPEN:
            logger.warning(f"[CIRCUIT] {host}: Test request failed, reopening circuit")
            state.circuit_state = CircuitState.OPEN
        elif state.failure_count >= self.circuit_config.failure_threshold:
            logger.error(f"[CIRCUIT] {host}: Opening circuit after {state.failure_count} failures")
            state.circuit_state = CircuitState.OPEN

    async def request(self, method: str, url: str, **kwargs) -> httpx.Response:
        """
        Make an HTTP request.

        Args:
            method: HTTP method (GET, POST, etc.)
            url: Target URL
            **kwargs: Additional arguments passed to httpx

        Returns:
            httpx.Response for any status code

        Raises:
            httpx.TimeoutException: Request timed out (after retries for GET)
            httpx.RequestError: Connection or protocol failure
            CircuitOpenError: Host circuit is open
        """
        if not self._client:
            await self.init()

        host = self._get_host(url)
        self._check_circuit_breaker(host)

        method = method.upper()
        max_attempts = self.retry_config.max_retries + 1 if method in IDEMPOTENT_METHODS else 1
        return await self._do_request(method, url, host, max_attempts, **kwargs)

    async def _do_request(
        self,
        method: str,
        url: str,
        host: str,
        max_attempts: int,
        **kwargs
    ) -> httpx.Response:
        cfg = self.retry_config

        for attempt in range(max_attempts):
            is_last = attempt == max_attempts - 1
            try:
                logger.debug(f"[HTTP] {method} {url} (attempt {attempt + 1}/{max_attempts})")
                response = await self._client.request(method, url, **kwargs)
            except (httpx.TimeoutException, httpx.ConnectError) as e:
                self._record_failure(host)
                if is_last:
                    logger.error(f"[HTTP] {host}: {type(e).__name__} on {method}, giving up")
                    raise
                delay = self._calculate_backoff(attempt)
                logger.warning(f"[HTTP] {host}: {type(e).__name__}, retrying in {delay:.1f}s")
                await asyncio.sleep(delay)
                continue

            if response.status_code in cfg.retryable_status_codes:
                self._record_failure(host)
                if not is_last:
                    delay = self._calculate_backoff(attempt)
                    logger.warning(
                        f"[HTTP] {host}: Status {response.status_code}, "
                        f"retrying in {delay:.1f}s (attempt {attempt + 1})"
                    )
                    await asyncio.sleep(delay)
                    continue
                return response

            self._record_success(host)
            return response

        # max_attempts is always >= 1, the loop returns or raises
        raise RuntimeError(f"Request to {url} made no attempts")

    async def get(self, url: str, **kwargs) -> httpx.Response:
        """GET request, retried on transient failures."""
        return await self.request("GET", url, **kwargs)

    async def post(self, url: str, **kwargs) -> httpx.Response:
        """POST request, sent exactly once."""
        return await self.request("POST", url, **kwargs)


def get_shiprocket_http_client(timeout: float) -> ResilientHTTPClient:
    """
    Get client configured for the Shiprocket API.

    Shiprocket occasionally answers 5xx under load; GETs get two quick retries.
    """
    return ResilientHTTPClient(
        retry_config=RetryConfig(
            max_retries=2,
            base_delay=0.5,
            max_delay=5.0,
        ),
        circuit_config=CircuitBreakerConfig(
            failure_threshold=5,
            success_threshold=1,
            timeout_seconds=30.0,
        ),
        timeout=timeout,
        default_headers={"Content-Type": "application/json", "Accept": "application/json"},
    )
