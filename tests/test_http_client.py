"""Tests for retry, backoff and rate limiting in the HTTP client."""

from unittest.mock import AsyncMock, patch

import httpx
import pytest
from hypothesis import given, strategies as st

from handheld_deals.services import HttpClientService

URL = "https://api.example.com/deals"


def response(status_code: int, headers: dict[str, str] | None = None, json: object = None) -> httpx.Response:
    return httpx.Response(
        status_code,
        headers=headers,
        json=json if json is not None else {},
        request=httpx.Request("GET", URL),
    )


@pytest.fixture
def sleep():
    with patch("handheld_deals.services.http_client.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
        yield mock_sleep


@pytest.mark.asyncio
async def test_success_returns_response(sleep: AsyncMock) -> None:
    client = HttpClientService(rate_limit_delay=0.0)
    with patch.object(client._client, "request", new=AsyncMock(return_value=response(200, json={"ok": True}))):
        result = await client.get(URL, params={"pageSize": 5})

    assert result.json() == {"ok": True}
    sleep.assert_not_awaited()
    await client.close()


@pytest.mark.asyncio
async def test_server_errors_retry_with_exponential_backoff(sleep: AsyncMock) -> None:
    client = HttpClientService(max_retries=3, base_delay=1.0, max_delay=30.0, rate_limit_delay=0.0)
    mock_request = AsyncMock(side_effect=[response(500), response(502), response(503), response(200)])

    with patch.object(client._client, "request", new=mock_request):
        result = await client.get(URL)

    assert result.status_code == 200
    assert mock_request.await_count == 4
    assert [call.args[0] for call in sleep.await_args_list] == [1.0, 2.0, 4.0]
    await client.close()


@pytest.mark.asyncio
async def test_gives_up_after_max_retries(sleep: AsyncMock) -> None:
    client = HttpClientService(max_retries=2, rate_limit_delay=0.0)
    mock_request = AsyncMock(side_effect=httpx.ConnectError("refused"))

    with patch.object(client._client, "request", new=mock_request):
        with pytest.raises(httpx.ConnectError):
            await client.get(URL)

    assert mock_request.await_count == 3
    await client.close()


@pytest.mark.asyncio
async def test_client_errors_are_not_retried(sleep: AsyncMock) -> None:
    client = HttpClientService(max_retries=3, rate_limit_delay=0.0)
    mock_request = AsyncMock(return_value=response(404))

    with patch.object(client._client, "request", new=mock_request):
        with pytest.raises(httpx.HTTPStatusError):
            await client.get(URL)

    assert mock_request.await_count == 1
    sleep.assert_not_awaited()
    await client.close()


@pytest.mark.asyncio
async def test_rate_limited_response_honours_retry_after(sleep: AsyncMock) -> None:
    client = HttpClientService(max_retries=3, max_delay=30.0, rate_limit_delay=0.0)
    mock_request = AsyncMock(side_effect=[response(429, headers={"Retry-After": "120"}), response(200)])

    with patch.object(client._client, "request", new=mock_request):
        result = await client.get(URL)

    assert result.status_code == 200
    sleep.assert_awaited_once_with(30.0)
    await client.close()


@pytest.mark.asyncio
async def test_headers_and_body_are_forwarded(sleep: AsyncMock) -> None:
    client = HttpClientService(rate_limit_delay=0.0, headers={"X-Source": "tests"})
    mock_request = AsyncMock(return_value=response(200))

    with patch.object(client._client, "request", new=mock_request):
        await client.patch("/items/games/1", json={"title": "Celeste"}, headers={"Authorization": "Bearer t"})

    args, kwargs = mock_request.await_args
    assert args == ("PATCH", "/items/games/1")
    assert kwargs["json"] == {"title": "Celeste"}
    assert kwargs["headers"]["Authorization"] == "Bearer t"
    assert kwargs["headers"]["X-Source"] == "tests"
    assert kwargs["headers"]["User-Agent"] == "HandheldDeals-Sync/1.0"
    await client.close()


@given(
    attempt=st.integers(min_value=0, max_value=20),
    base_delay=st.floats(min_value=0.1, max_value=5.0),
    max_delay=st.floats(min_value=1.0, max_value=60.0),
)
@pytest.mark.asyncio
async def test_backoff_never_exceeds_max_delay(attempt: int, base_delay: float, max_delay: float) -> None:
    """**Feature: handheld-deals, Property 11: Backoff is capped**

    For any retry configuration, no single wait between attempts exceeds
    the configured maximum delay.
    """
    client = HttpClientService(max_retries=attempt, base_delay=base_delay, max_delay=max_delay, rate_limit_delay=0.0)
    mock_request = AsyncMock(side_effect=httpx.ReadTimeout("slow"))

    with patch("handheld_deals.services.http_client.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
        with patch.object(client._client, "request", new=mock_request):
            with pytest.raises(httpx.ReadTimeout):
                await client.get(URL)

    assert mock_sleep.await_count == attempt
    assert all(call.args[0] <= max_delay for call in mock_sleep.await_args_list)
    await client.close()


@pytest.mark.asyncio
async def test_rate_limit_spaces_requests() -> None:
    client = HttpClientService(rate_limit_delay=1.0)

    with patch("handheld_deals.services.http_client.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
        with patch.object(client._client, "request", new=AsyncMock(return_value=response(200))):
            await client.get(URL)
            mock_sleep.assert_not_awaited()
            await client.get(URL)

    mock_sleep.assert_awaited_once()
    assert 0 < mock_sleep.await_args.args[0] <= 1.0
    await client.close()
