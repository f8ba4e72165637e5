"""
Design Fetcher - Download a reference page for design cloning
"""

from __future__ import annotations

import asyncio
import logging
from urllib.parse import urlparse

import aiohttp

from services.errors import InvalidRequestError, UpstreamError

logger = logging.getLogger(__name__)

USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"


def validate_url(url: str | None) -> str:
    if not url or not url.strip():
        raise InvalidRequestError("Missing required field: url")
    url = url.strip()
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise InvalidRequestError(f"Invalid URL: {url}")
    return url


async def fetch_website(url: str | None, timeout: float = 30) -> str:
    """GET the page HTML, raising UpstreamError on a non-success response"""
    url = validate_url(url)
    client_timeout = aiohttp.ClientTimeout(total=timeout)

    try:
        async with aiohttp.ClientSession(timeout=client_timeout) as session:
            async with session.get(url, headers={"User-Agent": USER_AGENT}) as response:
                if response.status >= 400:
                    logger.error("Failed to fetch website %s: %d", url, response.status)
                    raise UpstreamError(response.status, "Failed to fetch website", "Design fetch")
                return await response.text(errors="replace")
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        logger.error("Error fetching website %s: %s", url, e)
        raise UpstreamError(None, str(e) or type(e).__name__, "Design fetch") from e
