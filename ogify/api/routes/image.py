"""
Image Routes
============

FastAPI routes for rendering markup into images.
"""

from fastapi import APIRouter

from ogify.config.logging import get_logger
from ogify.core.rendering.response import ImageResponse, create_image_response
from ogify.models.schemas import ImageRequest

logger = get_logger(__name__)

router = APIRouter(prefix="/api/v1", tags=["Images"])


@router.post("/image", response_class=ImageResponse)
async def render_image_endpoint(request: ImageRequest) -> ImageResponse:
    """
    Render markup or an element tree into an SVG or PNG image.

    Rendering errors are translated into structured error responses by the
    application's exception handlers.
    """
    options = request.options
    logger.info(
        "Image requested",
        format=options.format,
        width=options.width,
        height=options.height,
        emoji=options.emoji,
        markup=isinstance(request.element, str),
    )

    return await create_image_response(request.element, options)
