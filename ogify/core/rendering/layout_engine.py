"""
Layout Engine
=============

Flexbox layout of element trees in headless Chromium.

The tree is rendered into an HTML document (Jinja2 template, every element a
flex container, caller fonts embedded as ``@font-face`` data URLs), laid out
by the browser, and the computed boxes and word positions are handed to the
SVG vectorizer.
"""

import asyncio
import base64
import re
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncGenerator, Dict, List, Optional

import jinja2
from markupsafe import Markup, escape
from playwright.async_api import async_playwright, Browser

from ogify.config.logging import get_logger
from ogify.config.settings import get_settings
from ogify.core.exceptions import ImageGenerationError, RenderEngineError
from ogify.core.rendering.vectorizer import (
    AssetLoader,
    LayoutResult,
    SVGVectorizer,
    css_font_name,
)
from ogify.models.schemas import Dimensions, ElementNode, FontDescriptor

logger = get_logger(__name__)

CANVAS_ID = "ogify-canvas"

VOID_TAGS = frozenset({"img", "br", "hr", "input", "wbr"})

# Never forwarded to the browser
DROPPED_TAGS = frozenset(
    {
        "script",
        "style",
        "link",
        "meta",
        "base",
        "title",
        "head",
        "iframe",
        "object",
        "embed",
        "noscript",
        "template",
    }
)

REPLACED_ELEMENT_ATTRIBUTES = ("src", "width", "height")

# Numeric style values are pixels except for these properties
UNITLESS_PROPERTIES = frozenset(
    {
        "aspectRatio",
        "flex",
        "flexGrow",
        "flexShrink",
        "fontWeight",
        "lineClamp",
        "lineHeight",
        "opacity",
        "order",
        "WebkitLineClamp",
        "zIndex",
    }
)

_TAG_NAME = re.compile(r"^[a-z][a-z0-9-]*$")

# Collects element border boxes and word boxes relative to the canvas, in
# document (paint) order.
LAYOUT_SCRIPT = """
(canvasId) => {
  const canvas = document.getElementById(canvasId);
  const origin = canvas.getBoundingClientRect();
  const items = [];
  const num = (value) => parseFloat(value) || 0;
  const box = (r) => ({
    x: r.left - origin.left,
    y: r.top - origin.top,
    width: r.width,
    height: r.height,
  });

  const walk = (el, parentOpacity) => {
    const cs = getComputedStyle(el);
    if (cs.display === 'none') return;
    const opacity = parentOpacity * (cs.opacity === '' ? 1 : num(cs.opacity));
    const visible = cs.visibility !== 'hidden';

    if (visible) {
      items.push(Object.assign(box(el.getBoundingClientRect()), {
        kind: 'box',
        tag: el.tagName.toLowerCase(),
        opacity,
        background_color: cs.backgroundColor,
        background_image: cs.backgroundImage,
        border_widths: [
          num(cs.borderTopWidth), num(cs.borderRightWidth),
          num(cs.borderBottomWidth), num(cs.borderLeftWidth),
        ],
        border_colors: [
          cs.borderTopColor, cs.borderRightColor,
          cs.borderBottomColor, cs.borderLeftColor,
        ],
        border_radius: num(cs.borderTopLeftRadius),
        src: el.tagName === 'IMG' ? el.getAttribute('src') : null,
        object_fit: cs.objectFit,
      }));
    }

    for (const child of el.childNodes) {
      if (child.nodeType === Node.ELEMENT_NODE) {
        walk(child, opacity);
        continue;
      }
      if (child.nodeType !== Node.TEXT_NODE || !visible) continue;

      for (const word of child.textContent.matchAll(/\\S+/g)) {
        const range = document.createRange();
        range.setStart(child, word.index);
        range.setEnd(child, word.index + word[0].length);
        const rects = range.getClientRects();
        if (!rects.length) continue;
        items.push(Object.assign(box(rects[0]), {
          kind: 'text',
          text: word[0],
          opacity,
          font_family: cs.fontFamily,
          font_size: num(cs.fontSize),
          font_weight: cs.fontWeight,
          font_style: cs.fontStyle,
          color: cs.color,
          letter_spacing: num(cs.letterSpacing),
          text_transform: cs.textTransform,
        }));
      }
    }
  };

  walk(canvas, 1);
  return { width: origin.width, height: origin.height, items };
}
"""


def to_kebab_case(prop: str) -> str:
    """``backgroundColor`` -> ``background-color``, ``WebkitLineClamp`` -> ``-webkit-line-clamp``."""
    return re.sub(r"[A-Z]", lambda match: "-" + match.group(0).lower(), prop)


def style_to_css(style: Dict[str, Any]) -> str:
    """Convert a camelCase style object to an inline CSS declaration list."""
    rules: List[str] = []
    for prop, value in style.items():
        if value is None or value == "" or isinstance(value, bool):
            continue
        if isinstance(value, (int, float)) and prop not in UNITLESS_PROPERTIES:
            value = f"{value}px"
        rules.append(f"{to_kebab_case(prop)}: {value}")
    return "; ".join(rules)


def font_mime_type(font: FontDescriptor) -> str:
    """Guess the font container from its magic bytes."""
    signature = font.data[:4]
    if signature == b"OTTO":
        return "font/otf"
    if signature == b"wOFF":
        return "font/woff"
    if signature == b"wOF2":
        return "font/woff2"
    return "font/ttf"


class BrowserPool:
    """Browser instance pool for the layout engine."""

    def __init__(self, pool_size: int = 2):
        self.pool_size = pool_size
        self.browsers: List[Browser] = []
        self._semaphore = asyncio.Semaphore(pool_size)
        self._playwright: Any = None
        self.initialized = False
        self.settings = get_settings()
        self.logger: Any = logger.bind(component="browser_pool")  # structlog.BoundLoggerBase

    async def initialize(self) -> None:
        """Start Playwright and launch the pool's browsers. No-op once launched."""
        if self.initialized:
            self.logger.debug("Browser pool already initialized", pool_size=self.pool_size)
            return

        try:
            self._playwright = await async_playwright().start()

            for _ in range(self.pool_size):
                browser = await self._playwright.chromium.launch(
                    headless=self.settings.playwright_headless,
                    args=[
                        "--no-sandbox",
                        "--disable-setuid-sandbox",
                        "--disable-dev-shm-usage",
                        "--font-render-hinting=none",
                    ],
                )
                self.browsers.append(browser)

            self.initialized = True
            self.logger.info("Browser pool initialized", pool_size=self.pool_size)
        except Exception as e:
            self.logger.error("Failed to initialize browser pool", error=str(e))
            await self.close()
            raise RenderEngineError(f"Browser pool initialization failed: {e}") from e

    async def close(self) -> None:
        """Close all browsers in the pool."""
        for browser in self.browsers:
            await browser.close()
        self.browsers = []
        self.initialized = False

        if self._playwright:
            await self._playwright.stop()
            self._playwright = None

        self.logger.info("Browser pool closed")

    @asynccontextmanager
    async def get_browser(self) -> AsyncGenerator[Browser, None]:
        """Get a browser instance from the pool."""
        async with self._semaphore:
            if not self.browsers:
                raise RenderEngineError("Browser pool not initialized")

            browser = self.browsers.pop()
            try:
                yield browser
            finally:
                self.browsers.append(browser)


class LayoutEngine:
    """Lay out element trees with Chromium and vectorize them to SVG."""

    def __init__(self, browser_pool: Optional[BrowserPool] = None):
        self.settings = get_settings()
        self.logger: Any = logger.bind(engine="layout")  # structlog.BoundLoggerBase
        self.browser_pool = browser_pool or BrowserPool(self.settings.browser_pool_size)
        self._setup_jinja2_environment()

    def _setup_jinja2_environment(self) -> None:
        """Setup Jinja2 template environment."""
        template_dir = Path(__file__).parent / "templates"
        self.env = jinja2.Environment(
            loader=jinja2.FileSystemLoader(str(template_dir)),
            autoescape=jinja2.select_autoescape(["html", "xml"]),
        )

        def px(value: float) -> str:
            """Convert numeric value to CSS pixels."""
            return f"{value}px"

        def css_safe(value: str) -> Markup:
            """Make a font family name safe inside a style block."""
            return Markup(css_font_name(value))

        def b64(value: bytes) -> Markup:
            return Markup(base64.b64encode(value).decode("ascii"))

        self.env.filters["px"] = px
        self.env.filters["css_safe"] = css_safe
        self.env.filters["b64"] = b64
        self.env.filters["font_mime"] = font_mime_type
        self.env.globals["render_element"] = self.render_element

    async def initialize(self) -> None:
        """Launch the browsers that compute layouts."""
        await self.browser_pool.initialize()
        self.logger.info("Layout engine initialized")

    async def close(self) -> None:
        await self.browser_pool.close()
        self.logger.info("Layout engine closed")

    def render_element(self, node: ElementNode) -> Markup:
        """Render an element tree to HTML markup."""
        tag = node.tag_name.lower()
        if tag in DROPPED_TAGS:
            return Markup("")
        if not _TAG_NAME.match(tag):
            tag = "div"

        attributes = Markup("")
        css = style_to_css(node.style)
        if css:
            attributes += Markup(' style="{}"').format(css)
        for name in REPLACED_ELEMENT_ATTRIBUTES:
            value = node.props.get(name)
            if value is not None:
                attributes += Markup(' {}="{}"').format(name, value)

        if tag in VOID_TAGS:
            return Markup("<{}{}>").format(tag, attributes)

        children = Markup("").join(
            self.render_element(child) if isinstance(child, ElementNode) else escape(child)
            for child in node.children
        )
        return Markup("<{0}{1}>{2}</{0}>").format(tag, attributes, children)

    def build_document(
        self, tree: ElementNode, dimensions: Dimensions, fonts: List[FontDescriptor]
    ) -> str:
        """
        Render the HTML document the browser lays out.

        Args:
            tree: Element tree
            dimensions: Canvas size, a missing side sizes to content
            fonts: Fonts embedded as @font-face rules

        Returns:
            HTML document
        """
        families: List[str] = []
        for font in fonts:
            if font.name not in families:
                families.append(font.name)
        font_stack = ", ".join([f'"{css_font_name(name)}"' for name in families] + ["sans-serif"])

        template = self.env.get_template("document.html")
        return template.render(
            tree=tree,
            fonts=fonts,
            font_stack=Markup(font_stack),
            dimensions=dimensions,
            canvas_id=CANVAS_ID,
        )

    async def compute_layout(self, html: str, dimensions: Dimensions) -> LayoutResult:
        """Load the document in a browser and collect the computed layout."""
        viewport = {
            "width": dimensions.width or self.settings.max_width,
            "height": dimensions.height or self.settings.max_height,
        }

        async with self.browser_pool.get_browser() as browser:
            context = await browser.new_context(viewport=viewport, device_scale_factor=1)  # type: ignore[arg-type]

            try:
                page = await context.new_page()
                page.set_default_timeout(self.settings.playwright_timeout)
                await page.set_content(html, wait_until="load")
                await page.evaluate("() => document.fonts.ready.then(() => true)")
                raw_layout = await page.evaluate(LAYOUT_SCRIPT, CANVAS_ID)
            finally:
                await context.close()

        return LayoutResult.model_validate(raw_layout)

    async def render_svg(
        self,
        tree: ElementNode,
        dimensions: Dimensions,
        fonts: List[FontDescriptor],
        load_additional_asset: Optional[AssetLoader] = None,
    ) -> str:
        """
        Lay out an element tree and vectorize it.

        Args:
            tree: Element tree to render
            dimensions: Target size, at least one side set
            fonts: Fonts available to the layout
            load_additional_asset: Optional emoji asset callback

        Returns:
            SVG document

        Raises:
            RenderEngineError: If layout or vectorization fails
        """
        try:
            self.logger.info(
                "Rendering element tree to SVG",
                width=dimensions.width,
                height=dimensions.height,
                fonts=len(fonts),
            )

            html = self.build_document(tree, dimensions, fonts)
            layout = await self.compute_layout(html, dimensions)
            svg = await SVGVectorizer(fonts, load_additional_asset).vectorize(layout)

            self.logger.info(
                "SVG rendering completed",
                items=len(layout.items),
                svg_length=len(svg),
            )
            return svg

        except ImageGenerationError:
            raise
        except Exception as e:
            error_msg = f"Layout failed: {e}"
            self.logger.error("Layout engine error", error=error_msg)
            raise RenderEngineError(error_msg) from e
