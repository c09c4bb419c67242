"""HTTP client service with retry logic and rate limiting."""

import asyncio
import time
from typing import Any

import httpx
import structlog

log = structlog.stdlib.get_logger()


class HttpClientService:
    """HTTP client service with retry logic, rate limiting, and timeout handling.

    One instance is created per upstream API so that the minimum delay
    between calls applies to that API only.
    """

    def __init__(
        self,
        base_url: str = "",
        timeout: float = 10.0,
        max_retries: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        rate_limit_delay: float = 1.0,
        headers: dict[str, str] | None = None,
    ) -> None:
        """Initialize the HTTP client service.

        Args:
            base_url: Prefix for relative request URLs
            timeout: Request timeout in seconds
            max_retries: Maximum number of retry attempts
            base_delay: Base delay for exponential backoff in seconds
            max_delay: Maximum delay between retries in seconds
            rate_limit_delay: Minimum delay between requests in seconds
            headers: Extra default headers sent with every request
        """
        self.base_url = base_url
        self.timeout = timeout
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.rate_limit_delay = rate_limit_delay
        self._last_request_time: float = 0.0

        default_headers = {"User-Agent": "HandheldDeals-Sync/1.0"}
        if headers:
            default_headers.update(headers)

        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=httpx.Timeout(timeout),
            headers=default_headers,
            follow_redirects=True,
            limits=httpx.Limits(max_keepalive_connections=10, max_connections=20),
        )

        log.info(
            "HTTP client service initialized",
            base_url=base_url,
            timeout=timeout,
            max_retries=max_retries,
            rate_limit_delay=rate_limit_delay,
        )

    async def request(
        self,
        method: str,
        url: str,
        headers: dict[str, str] | None = None,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> httpx.Response:
        """Send a request, retrying transport failures, 5xx and 429.

        Raises:
            httpx.HTTPStatusError: On a 4xx response, or a 5xx after all retries
            httpx.RequestError: If the transport fails on every attempt
        """
        await self._enforce_rate_limit()

        merged_headers = self._client.headers.copy()
        if headers:
            merged_headers.update(headers)

        attempts = self.max_retries + 1
        for attempt in range(attempts):
            log.debug("HTTP request", method=method, url=url, attempt=attempt + 1, max_attempts=attempts)
            try:
                response = await self._client.request(
                    method, url, headers=merged_headers, params=params, json=json
                )
                response.raise_for_status()
            except (httpx.HTTPStatusError, httpx.RequestError) as e:
                log.warning(
                    "HTTP request failed",
                    method=method,
                    url=url,
                    attempt=attempt + 1,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                delay = self._retry_delay(e, attempt)
                if delay is None:
                    raise
                log.info("Retrying after delay", url=url, delay=delay)
                await asyncio.sleep(delay)
                continue

            log.debug("HTTP response", method=method, url=url, status_code=response.status_code)
            return response

        raise RuntimeError("retry loop exited without a response")

    def _retry_delay(self, error: httpx.HTTPError, attempt: int) -> float | None:
        """Seconds to wait before the next attempt, or None to give up."""
        if attempt >= self.max_retries:
            log.error("HTTP request failed after all retries", total_attempts=attempt + 1)
            return None

        if isinstance(error, httpx.HTTPStatusError):
            status = error.response.status_code
            if status == 429:
                retry_after = _parse_retry_after(error.response.headers.get("retry-after"))
                if retry_after is not None:
                    return min(retry_after, self.max_delay)
            elif 400 <= status < 500:
                log.debug("Client error, not retrying", status_code=status)
                return None

        return min(self.base_delay * (2 ** attempt), self.max_delay)

    async def get(
        self,
        url: str,
        headers: dict[str, str] | None = None,
        params: dict[str, Any] | None = None,
    ) -> httpx.Response:
        return await self.request("GET", url, headers=headers, params=params)

    async def post(
        self,
        url: str,
        json: Any = None,
        headers: dict[str, str] | None = None,
        params: dict[str, Any] | None = None,
    ) -> httpx.Response:
        return await self.request("POST", url, headers=headers, params=params, json=json)

    async def patch(
        self,
        url: str,
        json: Any = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        return await self.request("PATCH", url, headers=headers, json=json)

    async def delete(
        self,
        url: str,
        json: Any = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        return await self.request("DELETE", url, headers=headers, json=json)

    async def _enforce_rate_limit(self) -> None:
        """Enforce rate limiting between requests."""
        current_time = time.monotonic()
        time_since_last = current_time - self._last_request_time

        if self._last_request_time and time_since_last < self.rate_limit_delay:
            sleep_time = self.rate_limit_delay - time_since_last
            log.debug("Rate limiting: sleeping", sleep_time=sleep_time)
            await asyncio.sleep(sleep_time)

        self._last_request_time = time.monotonic()

    async def close(self) -> None:
        """Close the HTTP client and clean up resources."""
        await self._client.aclose()
        log.debug("HTTP client closed", base_url=self.base_url)

    async def __aenter__(self) -> "HttpClientService":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type: type[Exception] | None, exc_val: Exception | None, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()


def _parse_retry_after(value: str | None) -> float | None:
    """Retry-After in seconds; HTTP-date values are ignored."""
    if not value:
        return None
    try:
        return max(float(value), 0.0)
    except ValueError:
        return None
