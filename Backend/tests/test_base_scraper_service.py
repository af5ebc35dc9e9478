from __future__ import annotations

import pytest

import httpx

from services.base_scraper_service import BROWSER_USER_AGENT, BaseScraperService


@pytest.mark.asyncio
async def test_base_scraper_context_manager():
    """Test that BaseScraperService works as async context manager."""
    async with BaseScraperService(user_agent="test-agent/1.0") as service:
        assert service._client is not None
        assert isinstance(service._client, httpx.AsyncClient)

    # Client should be closed after context exit
    assert service._client is None or service._client.is_closed


@pytest.mark.asyncio
async def test_base_scraper_fetch_requires_context():
    """Test that fetch() raises error if client not initialized."""
    service = BaseScraperService(user_agent="test-agent/1.0")
    with pytest.raises(RuntimeError, match="not initialized"):
        await service.fetch("https://example.com")


@pytest.mark.asyncio
async def test_base_scraper_sends_browser_user_agent(httpx_mock):
    httpx_mock.add_response(url="https://example.com", text="<html>Test</html>")

    async with BaseScraperService() as service:
        html = await service.fetch_html("https://example.com")

    assert html == "<html>Test</html>"
    request = httpx_mock.get_requests()[0]
    assert request.headers["User-Agent"] == BROWSER_USER_AGENT


@pytest.mark.asyncio
async def test_base_scraper_single_attempt_by_default(httpx_mock):
    httpx_mock.add_response(url="https://example.com", status_code=503)

    async with BaseScraperService(user_agent="test-agent/1.0") as service:
        with pytest.raises(httpx.HTTPStatusError):
            await service.fetch("https://example.com")

    assert len(httpx_mock.get_requests()) == 1


@pytest.mark.asyncio
async def test_base_scraper_retry_logic(httpx_mock):
    """Test that retry logic works on failures."""
    # First two requests fail, third succeeds
    httpx_mock.add_response(status_code=500)
    httpx_mock.add_response(status_code=500)
    httpx_mock.add_response(text="Success")

    async with BaseScraperService(
        user_agent="test-agent/1.0",
        max_retries=2,
        retry_delay_s=0,
    ) as service:
        response = await service.fetch("https://example.com")
        assert response.text == "Success"
        assert len(httpx_mock.get_requests()) == 3


@pytest.mark.asyncio
async def test_fetch_html_or_none_maps_failures_to_none(httpx_mock):
    httpx_mock.add_response(url="https://example.com/missing", status_code=404)

    async with BaseScraperService(user_agent="test-agent/1.0") as service:
        assert await service.fetch_html_or_none("https://example.com/missing") is None


@pytest.mark.asyncio
async def test_injected_client_is_not_closed(httpx_mock):
    httpx_mock.add_response(url="https://example.com", text="ok")
    client = httpx.AsyncClient()
    try:
        async with BaseScraperService(client=client) as service:
            assert await service.fetch_html("https://example.com") == "ok"
        assert not client.is_closed
    finally:
        await client.aclose()
