"""
Font Loader
===========

Download TrueType/OpenType fonts from the Google Fonts CSS API.
"""

import asyncio
import re
from typing import Any, Optional
from urllib.parse import quote

import aiohttp

from ogify.config.logging import get_logger
from ogify.config.settings import get_settings
from ogify.core.exceptions import AssetFetchError

logger = get_logger(__name__)

# Non-browser clients are served TrueType/OpenType sources, which is what the
# glyph vectorizer can read.
_FONT_SOURCE = re.compile(r"src: url\((.+?)\) format\('(opentype|truetype)'\)")


def build_font_css_url(family: str, weight: int, text: Optional[str] = None) -> str:
    """Build the CSS2 API URL for one family and weight."""
    settings = get_settings()
    url = f"{settings.google_fonts_css_url}?family={family.strip().replace(' ', '+')}:wght@{weight}"
    if text:
        url += f"&text={quote(text)}"
    return url


def extract_font_url(css: str) -> str:
    """
    Extract the first TrueType/OpenType source from a font CSS response.

    Raises:
        AssetFetchError: If the stylesheet has no usable source
    """
    match = _FONT_SOURCE.search(css)
    if not match:
        raise AssetFetchError("Font stylesheet contains no TrueType or OpenType source")
    return match.group(1).strip("'\"")


async def load_google_font(family: str, weight: int = 400, text: Optional[str] = None) -> bytes:
    """
    Download a font from Google Fonts.

    Args:
        family: Font family name, e.g. "Bitter"
        weight: Font weight (100-900)
        text: Optional subset of characters to request

    Returns:
        Raw font file bytes

    Raises:
        AssetFetchError: If the stylesheet or the font file cannot be fetched
    """
    settings = get_settings()
    log: Any = logger.bind(component="font_loader", family=family, weight=weight)
    css_url = build_font_css_url(family, weight, text)

    try:
        timeout = aiohttp.ClientTimeout(total=settings.asset_timeout)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.get(css_url) as response:
                if response.status != 200:
                    raise AssetFetchError(
                        f"Font stylesheet request failed with status {response.status}"
                    )
                css = await response.text()

            font_url = extract_font_url(css)

            async with session.get(font_url) as response:
                if response.status != 200:
                    raise AssetFetchError(f"Font download failed with status {response.status}")
                data = await response.read()

    except AssetFetchError as e:
        log.error("Font loading failed", error=str(e))
        raise
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        log.error("Font loading failed", error=str(e))
        raise AssetFetchError(f"Failed to load font {family}:{weight}: {e}") from e

    log.info("Font loaded", size=len(data))
    return data
