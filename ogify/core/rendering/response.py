"""
Image Responses
===============

Wrap rendered artifacts in HTTP responses with caching and transport headers.
"""

from typing import Dict, Optional, Union

from fastapi.responses import Response

from ogify.config.settings import get_settings
from ogify.core.rendering.pipeline import RenderPipeline
from ogify.models.schemas import ElementNode, ImageRequest, RenderOptions

SVG_CONTENT_TYPE = "image/svg+xml"
PNG_CONTENT_TYPE = "image/png"


class ImageResponse(Response):
    """Response carrying a rendered image.

    ASGI has no reason phrase, so the requested status text is kept on the
    response object for callers that need it.
    """

    def __init__(
        self,
        content: Union[str, bytes],
        status_code: int = 200,
        headers: Optional[Dict[str, str]] = None,
        media_type: Optional[str] = None,
        status_text: Optional[str] = None,
    ):
        super().__init__(
            content=content, status_code=status_code, headers=headers, media_type=media_type
        )
        self.status_text = status_text


def assemble_response(artifact: Union[str, bytes], options: RenderOptions) -> ImageResponse:
    """
    Build the HTTP response for a rendered artifact.

    Args:
        artifact: SVG document or PNG bytes
        options: Render options with debug flag and transport overrides

    Returns:
        Image response
    """
    settings = get_settings()

    headers = {
        "content-type": SVG_CONTENT_TYPE if isinstance(artifact, str) else PNG_CONTENT_TYPE,
        "cache-control": settings.debug_cache_control if options.debug else settings.cache_control,
    }
    # Caller headers win over the defaults
    for name, value in options.headers.items():
        headers[name.lower()] = value

    return ImageResponse(
        content=artifact,
        status_code=options.status or 200,
        headers=headers,
        status_text=options.status_text,
    )


async def create_image_response(
    element: Union[str, ElementNode],
    options: Optional[RenderOptions] = None,
    pipeline: Optional[RenderPipeline] = None,
) -> ImageResponse:
    """Render markup or an element tree and wrap the result in a response."""
    options = options or RenderOptions()
    pipeline = pipeline or RenderPipeline()

    artifact = await pipeline.render(ImageRequest(element=element, options=options))
    return assemble_response(artifact, options)
