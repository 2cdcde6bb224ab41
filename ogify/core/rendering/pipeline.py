"""
Render Pipeline
===============

Markup or element tree in, SVG document or PNG bytes out.
"""

import time
from typing import Any, Awaitable, Callable, List, Optional, Union

from ogify.config.logging import get_logger
from ogify.config.settings import get_settings
from ogify.core.assets.emoji import load_dynamic_asset
from ogify.core.assets.fonts import load_google_font
from ogify.core.exceptions import ImageGenerationError, MalformedMarkupError, RenderEngineError
from ogify.core.markup.builder import build_element_tree
from ogify.core.rendering.engines import (
    EngineInitializer,
    get_engine_initializer,
    get_layout_engine,
    get_raster_engine,
)
from ogify.core.rendering.layout_engine import LayoutEngine
from ogify.core.rendering.raster_engine import FitTo, RasterEngine
from ogify.core.rendering.vectorizer import AssetLoader
from ogify.models.schemas import (
    Dimensions,
    ElementNode,
    FontDescriptor,
    ImageRequest,
    RenderOptions,
)

logger = get_logger(__name__)

TreeBuilder = Callable[[str], Optional[ElementNode]]
FontLoader = Callable[[str, int], Awaitable[bytes]]
AssetLoaderFactory = Callable[[str], AssetLoader]


def resolve_dimensions(options: RenderOptions) -> Dimensions:
    """
    Target size for a render.

    Given sides are used as-is, a single side lets the layout infer the other
    from content. Without either the configured default size applies.
    """
    if options.width is None and options.height is None:
        settings = get_settings()
        return Dimensions(width=settings.default_width, height=settings.default_height)
    return Dimensions(width=options.width, height=options.height)


def resolve_fit(dimensions: Dimensions) -> FitTo:
    """Raster scaling follows the width whenever the width is known."""
    if dimensions.width is not None:
        return FitTo(mode="width", value=dimensions.width)
    return FitTo(mode="height", value=dimensions.height)


class RenderPipeline:
    """Orchestrates tree building, layout, vectorization and rasterization."""

    def __init__(
        self,
        initializer: Optional[EngineInitializer] = None,
        layout_engine: Optional[LayoutEngine] = None,
        raster_engine: Optional[RasterEngine] = None,
        tree_builder: TreeBuilder = build_element_tree,
        font_loader: FontLoader = load_google_font,
        asset_loader_factory: AssetLoaderFactory = load_dynamic_asset,
    ):
        self.settings = get_settings()
        self.initializer = initializer or get_engine_initializer()
        self.layout_engine = layout_engine or get_layout_engine()
        self.raster_engine = raster_engine or get_raster_engine()
        self.tree_builder = tree_builder
        self.font_loader = font_loader
        self.asset_loader_factory = asset_loader_factory
        self.logger: Any = logger.bind(component="render_pipeline")  # structlog.BoundLoggerBase

    async def render(self, request: ImageRequest) -> Union[str, bytes]:
        """
        Render a request to an image.

        Args:
            request: Markup or element tree with render options

        Returns:
            SVG document for the svg format, PNG bytes otherwise

        Raises:
            ImageGenerationError: On any failure; nothing partial is returned
        """
        start_time = time.time()
        options = request.options

        await self.initializer.ensure_ready()

        tree = self._resolve_tree(request.element)
        dimensions = resolve_dimensions(options)
        fonts = await self._resolve_fonts(options)

        load_additional_asset: Optional[AssetLoader] = None
        if options.emoji:
            load_additional_asset = self.asset_loader_factory(options.emoji)

        try:
            svg = await self.layout_engine.render_svg(
                tree, dimensions, fonts, load_additional_asset
            )

            if options.format == "svg":
                artifact: Union[str, bytes] = svg
            else:
                artifact = await self.raster_engine.render_png(svg, resolve_fit(dimensions))

        except ImageGenerationError:
            raise
        except Exception as e:
            error_msg = f"Rendering failed: {e}"
            self.logger.error("Render pipeline error", error=error_msg)
            raise RenderEngineError(error_msg) from e

        self.logger.info(
            "Image rendered",
            format=options.format,
            width=dimensions.width,
            height=dimensions.height,
            size=len(artifact),
            processing_time=time.time() - start_time,
        )
        return artifact

    def _resolve_tree(self, element: Union[str, ElementNode]) -> ElementNode:
        if isinstance(element, ElementNode):
            return element

        tree = self.tree_builder(element)
        if tree is None:
            raise MalformedMarkupError("Markup could not be converted into an element tree")

        self.logger.debug("Element tree built", tree=tree.to_json())
        return tree

    async def _resolve_fonts(self, options: RenderOptions) -> List[FontDescriptor]:
        if options.fonts:
            return list(options.fonts)

        family = self.settings.default_font_family
        weight = self.settings.default_font_weight
        self.logger.debug("Loading default font", family=family, weight=weight)

        data = await self.font_loader(family, weight)
        return [FontDescriptor(name=family, data=data, weight=weight, style="normal")]


async def render_image(
    element: Union[str, ElementNode], options: Optional[RenderOptions] = None
) -> Union[str, bytes]:
    """Render markup or an element tree with the global engines."""
    request = ImageRequest(element=element, options=options or RenderOptions())
    return await RenderPipeline().render(request)
