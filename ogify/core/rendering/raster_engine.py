"""
Raster Engine
=============

SVG to PNG conversion with CairoSVG, scaled to fit a target width or height.
"""

import asyncio
import importlib
import io
from typing import Any, Literal, Optional

from PIL import Image  # type: ignore
from pydantic import BaseModel, Field

from ogify.config.logging import get_logger
from ogify.config.settings import get_settings
from ogify.core.exceptions import RenderEngineError

logger = get_logger(__name__)

# Importing it loads and registers the native cairo library
RASTER_MODULE = "cairosvg"


class FitTo(BaseModel):
    """Output scaling constraint, the other side keeps the aspect ratio."""

    mode: Literal["width", "height"] = Field(..., description="Constrained dimension")
    value: int = Field(..., gt=0, description="Target size in pixels")


class RasterEngine:
    """CairoSVG-based PNG rasterizer."""

    def __init__(self) -> None:
        self.settings = get_settings()
        self.logger: Any = logger.bind(engine="raster")  # structlog.BoundLoggerBase
        self._module: Optional[Any] = None

    @property
    def ready(self) -> bool:
        return self._module is not None

    async def initialize(self) -> None:
        """Load the rasterization module. No-op once loaded."""
        if self.ready:
            return

        try:
            self._module = await asyncio.to_thread(importlib.import_module, RASTER_MODULE)
        except (ImportError, OSError) as e:
            self.logger.error("Failed to load raster module", module=RASTER_MODULE, error=str(e))
            raise RenderEngineError(f"Raster module {RASTER_MODULE} could not be loaded: {e}") from e

        self.logger.info("Raster engine initialized", module=RASTER_MODULE)

    def close(self) -> None:
        self._module = None

    async def render_png(self, svg: str, fit_to: FitTo) -> bytes:
        """
        Rasterize an SVG document.

        Args:
            svg: SVG document text
            fit_to: Dimension the output is scaled to

        Returns:
            PNG bytes

        Raises:
            RenderEngineError: If the engine is not initialized or conversion fails
        """
        if not self.ready:
            raise RenderEngineError("Raster engine not initialized")

        self.logger.info("Rasterizing SVG", mode=fit_to.mode, value=fit_to.value)

        output_size = {f"output_{fit_to.mode}": fit_to.value}
        try:
            png_bytes = await asyncio.to_thread(
                self._module.svg2png, bytestring=svg.encode("utf-8"), **output_size
            )
        except Exception as e:
            error_msg = f"PNG rasterization failed: {e}"
            self.logger.error("Raster engine error", error=error_msg)
            raise RenderEngineError(error_msg) from e

        if self.settings.optimize_png:
            png_bytes = await asyncio.to_thread(self._optimize_png, png_bytes)

        self.logger.info("PNG rasterization completed", file_size=len(png_bytes))
        return png_bytes

    def _optimize_png(self, png_bytes: bytes) -> bytes:
        """
        Re-encode PNG output with maximum compression using PIL.

        Args:
            png_bytes: Original PNG bytes

        Returns:
            Optimized PNG bytes, or the original bytes if optimization fails
        """
        try:
            image = Image.open(io.BytesIO(png_bytes))  # type: ignore[attr-defined]

            output = io.BytesIO()
            image.save(output, format="PNG", optimize=True, compress_level=9)  # type: ignore[attr-defined]
            optimized_bytes = output.getvalue()

            if len(optimized_bytes) >= len(png_bytes):
                return png_bytes

            reduction = (1 - len(optimized_bytes) / len(png_bytes)) * 100

            self.logger.debug(
                "PNG optimization completed",
                original_size=len(png_bytes),
                optimized_size=len(optimized_bytes),
                reduction_percent=round(reduction, 2),
            )

            return optimized_bytes

        except Exception as e:
            self.logger.warning("PNG optimization failed, using original", error=str(e))
            return png_bytes
