"""
Image Assets
============

Download remote images and inline them as data URIs so that rendered
documents are self-contained.
"""

import asyncio
import base64
from typing import Any, Optional

import aiohttp

from ogify.config.logging import get_logger
from ogify.config.settings import get_settings

logger = get_logger(__name__)


def to_data_uri(data: bytes, content_type: str) -> str:
    """Encode bytes as a base64 data URI."""
    return f"data:{content_type};base64,{base64.b64encode(data).decode('ascii')}"


async def fetch_data_uri(url: str, content_type: Optional[str] = None) -> Optional[str]:
    """
    Fetch a remote asset as a data URI.

    Best effort: failures are logged and None is returned so the caller can
    fall back to leaving the asset out.

    Args:
        url: http(s) URL of the asset
        content_type: Override for the response content type

    Returns:
        Data URI or None
    """
    settings = get_settings()
    log: Any = logger.bind(component="asset_fetcher", url=url)

    try:
        timeout = aiohttp.ClientTimeout(total=settings.asset_timeout)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.get(url) as response:
                if response.status != 200:
                    log.warning("Asset request failed", status=response.status)
                    return None
                data = await response.read()
                mime = content_type or response.content_type or "application/octet-stream"
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        log.warning("Asset request failed", error=str(e))
        return None

    log.debug("Asset fetched", size=len(data), content_type=mime)
    return to_data_uri(data, mime)
