"""
Unit tests for the layout engine.
"""

from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from ogify.core.exceptions import RenderEngineError
from ogify.core.rendering.engines import EngineInitializer
from ogify.core.rendering.layout_engine import (
    CANVAS_ID,
    LAYOUT_SCRIPT,
    BrowserPool,
    LayoutEngine,
    css_font_name,
    font_mime_type,
    style_to_css,
    to_kebab_case,
)
from ogify.core.rendering.vectorizer import LayoutResult
from ogify.models.schemas import Dimensions, ElementNode, FontDescriptor


def element(tag, *children, **props):
    return ElementNode(type=tag, props={**props, "children": list(children)})


RAW_LAYOUT = {
    "width": 400,
    "height": 200,
    "items": [
        {
            "kind": "box",
            "tag": "div",
            "x": 0,
            "y": 0,
            "width": 400,
            "height": 200,
            "background_color": "rgb(255, 0, 0)",
        },
        {
            "kind": "text",
            "text": "AB",
            "x": 10,
            "y": 10,
            "width": 24,
            "height": 20,
            "font_family": '"Test Sans", sans-serif',
            "font_size": 20,
            "font_weight": "400",
        },
    ],
}


def make_browser_pool(page):
    """Browser pool whose browser serves the given page."""
    context = MagicMock()
    context.new_page = AsyncMock(return_value=page)
    context.close = AsyncMock()

    browser = MagicMock()
    browser.new_context = AsyncMock(return_value=context)

    pool = MagicMock(spec=BrowserPool)

    @asynccontextmanager
    async def get_browser():
        yield browser

    pool.get_browser = get_browser
    pool.browser = browser
    pool.context = context
    return pool


def make_page(raw_layout=RAW_LAYOUT):
    page = MagicMock()
    page.set_content = AsyncMock()
    page.evaluate = AsyncMock(side_effect=[True, raw_layout])
    return page


class TestStyleConversion:
    """Test style object to CSS conversion helpers."""

    @pytest.mark.parametrize(
        "prop,expected",
        [
            ("color", "color"),
            ("backgroundColor", "background-color"),
            ("borderTopLeftRadius", "border-top-left-radius"),
            ("WebkitLineClamp", "-webkit-line-clamp"),
        ],
    )
    def test_to_kebab_case(self, prop, expected):
        assert to_kebab_case(prop) == expected

    def test_style_to_css(self):
        css = style_to_css(
            {
                "fontSize": 32,
                "lineHeight": 1.2,
                "color": "red",
                "padding": "10px 20px",
                "margin": None,
                "display": "",
            }
        )

        assert css == "font-size: 32px; line-height: 1.2; color: red; padding: 10px 20px"

    def test_css_font_name_strips_quotes_and_braces(self):
        assert css_font_name('Inter"; } body { color: red') == "Inter  body  color red"
        assert css_font_name("Noto Sans JP") == "Noto Sans JP"

    def test_font_mime_type(self, test_font_data):
        assert font_mime_type(FontDescriptor(name="A", data=test_font_data)) == "font/ttf"
        assert font_mime_type(FontDescriptor(name="A", data=b"OTTO....")) == "font/otf"
        assert font_mime_type(FontDescriptor(name="A", data=b"wOF2....")) == "font/woff2"


class TestBrowserPool:
    """Test browser pool management."""

    @pytest.fixture
    def browser_pool(self):
        return BrowserPool(pool_size=2)

    @pytest.mark.asyncio
    async def test_initialize_browser_pool(self, browser_pool):
        mock_playwright = AsyncMock()
        mock_playwright.chromium.launch = AsyncMock(side_effect=[AsyncMock(), AsyncMock()])

        with patch("ogify.core.rendering.layout_engine.async_playwright") as mock_async_playwright:
            mock_async_playwright.return_value.start = AsyncMock(return_value=mock_playwright)

            await browser_pool.initialize()

        assert len(browser_pool.browsers) == 2
        assert browser_pool.initialized is True
        assert mock_playwright.chromium.launch.call_count == 2

    @pytest.mark.asyncio
    async def test_initialize_twice_keeps_one_launch(self, browser_pool):
        mock_playwright = AsyncMock()
        mock_playwright.chromium.launch = AsyncMock(side_effect=lambda **kwargs: AsyncMock())

        with patch("ogify.core.rendering.layout_engine.async_playwright") as mock_async_playwright:
            mock_async_playwright.return_value.start = AsyncMock(return_value=mock_playwright)

            await browser_pool.initialize()
            await browser_pool.initialize()

        assert len(browser_pool.browsers) == 2
        assert mock_async_playwright.return_value.start.await_count == 1
        assert mock_playwright.chromium.launch.call_count == 2

    @pytest.mark.asyncio
    async def test_initializer_reset_does_not_grow_pool(self, browser_pool):
        mock_playwright = AsyncMock()
        mock_playwright.chromium.launch = AsyncMock(side_effect=lambda **kwargs: AsyncMock())
        layout_engine = LayoutEngine(browser_pool=browser_pool)
        initializer = EngineInitializer({"layout": layout_engine.initialize})

        with patch("ogify.core.rendering.layout_engine.async_playwright") as mock_async_playwright:
            mock_async_playwright.return_value.start = AsyncMock(return_value=mock_playwright)

            await initializer.ensure_ready()
            initializer.reset()
            await initializer.ensure_ready()

        assert len(browser_pool.browsers) == 2
        assert mock_async_playwright.return_value.start.await_count == 1
        mock_playwright.stop.assert_not_called()
        assert initializer.states() == {"layout": "ready"}

    @pytest.mark.asyncio
    async def test_initialize_after_close_relaunches(self, browser_pool):
        mock_playwright = AsyncMock()
        mock_playwright.chromium.launch = AsyncMock(side_effect=lambda **kwargs: AsyncMock())

        with patch("ogify.core.rendering.layout_engine.async_playwright") as mock_async_playwright:
            mock_async_playwright.return_value.start = AsyncMock(return_value=mock_playwright)

            await browser_pool.initialize()
            await browser_pool.close()
            await browser_pool.initialize()

        assert len(browser_pool.browsers) == 2
        assert mock_async_playwright.return_value.start.await_count == 2
        mock_playwright.stop.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_initialize_browser_pool_failure(self, browser_pool):
        with patch("ogify.core.rendering.layout_engine.async_playwright") as mock_async_playwright:
            mock_async_playwright.return_value.start = AsyncMock(
                side_effect=Exception("Playwright failed")
            )

            with pytest.raises(RenderEngineError, match="Browser pool initialization failed"):
                await browser_pool.initialize()

        assert browser_pool.initialized is False
        assert browser_pool.browsers == []

    @pytest.mark.asyncio
    async def test_close_browser_pool(self, browser_pool):
        mock_browser1 = AsyncMock()
        mock_browser2 = AsyncMock()
        browser_pool.browsers = [mock_browser1, mock_browser2]
        mock_playwright = AsyncMock()
        browser_pool._playwright = mock_playwright
        browser_pool.initialized = True

        await browser_pool.close()

        mock_browser1.close.assert_called_once()
        mock_browser2.close.assert_called_once()
        mock_playwright.stop.assert_called_once()
        assert browser_pool.initialized is False

    @pytest.mark.asyncio
    async def test_get_browser_returns_browser_to_pool(self, browser_pool):
        mock_browser = AsyncMock()
        browser_pool.browsers = [mock_browser]

        with pytest.raises(ValueError):
            async with browser_pool.get_browser() as browser:
                assert browser is mock_browser
                assert browser_pool.browsers == []
                raise ValueError("render failed")

        assert browser_pool.browsers == [mock_browser]

    @pytest.mark.asyncio
    async def test_get_browser_empty_pool(self, browser_pool):
        with pytest.raises(RenderEngineError, match="Browser pool not initialized"):
            async with browser_pool.get_browser():
                pass


class TestLayoutEngine:
    """Test HTML document generation and layout collection."""

    @pytest.fixture
    def engine(self):
        return LayoutEngine(browser_pool=MagicMock(spec=BrowserPool))

    def test_render_element(self, engine):
        tree = element(
            "div",
            element("h1", "Hello <world>", style={"fontSize": 48, "color": "red"}),
            element("img", src="https://example.com/a.png", width="10", height="20"),
        )

        html = str(engine.render_element(tree))

        assert html == (
            '<div><h1 style="font-size: 48px; color: red">Hello &lt;world&gt;</h1>'
            '<img src="https://example.com/a.png" width="10" height="20"></div>'
        )

    def test_render_element_drops_unsafe_tags(self, engine):
        tree = element("div", element("script", "alert(1)"), element("iframe"), "text")

        assert str(engine.render_element(tree)) == "<div>text</div>"

    def test_render_element_escapes_attributes(self, engine):
        tree = element("img", src='x" onerror="alert(1)', width="1", height="1")

        html = str(engine.render_element(tree))

        assert 'onerror="alert' not in html
        assert "&#34;" in html

    def test_invalid_tag_names_become_div(self, engine):
        tree = element("x onload=alert(1)", "a")

        assert str(engine.render_element(tree)) == "<div>a</div>"

    def test_build_document(self, engine, font_descriptor):
        html = engine.build_document(
            element("div", "Hi"), Dimensions(width=1200, height=630), [font_descriptor]
        )

        assert '@font-face' in html
        assert 'font-family: "Test Sans";' in html
        assert "src: url(data:font/ttf;base64," in html
        assert "font-weight: 400;" in html
        assert 'font-family: "Test Sans", sans-serif;' in html
        assert f'<div id="{CANVAS_ID}"><div>Hi</div></div>' in html
        assert "width: 1200px;" in html
        assert "height: 630px;" in html

    def test_build_document_with_open_height(self, engine, font_descriptor):
        html = engine.build_document(
            element("div", "Hi"), Dimensions(width=400), [font_descriptor]
        )

        assert "width: 400px;" in html
        assert "height: auto;" in html

    def test_build_document_with_open_width(self, engine, font_descriptor):
        html = engine.build_document(
            element("div", "Hi"), Dimensions(height=300), [font_descriptor]
        )

        assert "width: max-content;" in html
        assert "height: 300px;" in html

    @pytest.mark.asyncio
    async def test_compute_layout(self, settings):
        page = make_page()
        pool = make_browser_pool(page)
        engine = LayoutEngine(browser_pool=pool)

        layout = await engine.compute_layout("<html></html>", Dimensions(width=400))

        assert isinstance(layout, LayoutResult)
        assert layout.width == 400
        assert [item.kind for item in layout.items] == ["box", "text"]
        pool.browser.new_context.assert_awaited_once_with(
            viewport={"width": 400, "height": settings.max_height}, device_scale_factor=1
        )
        page.set_content.assert_awaited_once_with("<html></html>", wait_until="load")
        page.evaluate.assert_awaited_with(LAYOUT_SCRIPT, CANVAS_ID)
        pool.context.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_context_closed_when_layout_fails(self):
        page = make_page()
        page.set_content.side_effect = TimeoutError("timed out")
        pool = make_browser_pool(page)
        engine = LayoutEngine(browser_pool=pool)

        with pytest.raises(TimeoutError):
            await engine.compute_layout("<html></html>", Dimensions(width=400, height=200))

        pool.context.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_render_svg(self, font_descriptor):
        engine = LayoutEngine(browser_pool=make_browser_pool(make_page()))

        svg = await engine.render_svg(
            element("div", "AB"), Dimensions(width=400, height=200), [font_descriptor]
        )

        assert svg.startswith('<svg width="400" height="200" viewBox="0 0 400 200"')
        assert '<rect x="0" y="0" width="400" height="200" fill="rgb(255,0,0)"/>' in svg
        assert "<path d=" in svg
        assert svg.endswith("</svg>")

    @pytest.mark.asyncio
    async def test_render_svg_wraps_layout_errors(self, font_descriptor):
        page = make_page()
        page.evaluate = AsyncMock(side_effect=[True, {"width": "not a number"}])
        engine = LayoutEngine(browser_pool=make_browser_pool(page))

        with pytest.raises(RenderEngineError, match="Layout failed"):
            await engine.render_svg(element("div"), Dimensions(width=10), [font_descriptor])

    @pytest.mark.asyncio
    async def test_render_svg_keeps_engine_errors(self, font_descriptor):
        pool = MagicMock(spec=BrowserPool)

        @asynccontextmanager
        async def get_browser():
            raise RenderEngineError("Browser pool not initialized")
            yield

        pool.get_browser = get_browser
        engine = LayoutEngine(browser_pool=pool)

        with pytest.raises(RenderEngineError, match="Browser pool not initialized"):
            await engine.render_svg(element("div"), Dimensions(width=10), [font_descriptor])
