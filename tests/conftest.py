"""
Test Configuration
==================

Pytest configuration with shared fixtures. Engines, fonts and network access
are mocked; no browser or cairo installation is needed to run the suite.
"""

import io
import os

os.environ.setdefault("OGIFY_ENVIRONMENT", "testing")
os.environ.setdefault("OGIFY_WARMUP_ENGINES", "false")

import pytest
from typing import Dict
from unittest.mock import AsyncMock, MagicMock

from fontTools.fontBuilder import FontBuilder
from fontTools.pens.ttGlyphPen import TTGlyphPen

from ogify.config.settings import get_settings
from ogify.core.rendering.engines import EngineInitializer
from ogify.core.rendering.pipeline import RenderPipeline
from ogify.models.schemas import FontDescriptor


def _box_glyph(width: int, height: int):
    pen = TTGlyphPen(None)
    pen.moveTo((0, 0))
    pen.lineTo((0, height))
    pen.lineTo((width, height))
    pen.lineTo((width, 0))
    pen.closePath()
    return pen.glyph()


def build_test_font(family: str = "Test Sans") -> bytes:
    """Build a minimal TrueType font whose "A" and "B" glyphs are boxes."""
    builder = FontBuilder(1000, isTTF=True)
    builder.setupGlyphOrder([".notdef", "A", "B"])
    builder.setupCharacterMap({ord("A"): "A", ord("B"): "B"})
    builder.setupGlyf(
        {".notdef": _box_glyph(400, 600), "A": _box_glyph(500, 700), "B": _box_glyph(500, 700)}
    )
    builder.setupHorizontalMetrics({".notdef": (500, 0), "A": (600, 0), "B": (600, 0)})
    builder.setupHorizontalHeader(ascent=800, descent=-200)
    builder.setupNameTable({"familyName": family, "styleName": "Regular"})
    builder.setupOS2(sTypoAscender=800, sTypoDescender=-200, usWinAscent=800, usWinDescent=200)
    builder.setupPost()

    output = io.BytesIO()
    builder.save(output)
    return output.getvalue()


@pytest.fixture(scope="session")
def test_font_data() -> bytes:
    """Raw bytes of the generated test font."""
    return build_test_font()


@pytest.fixture
def font_descriptor(test_font_data: bytes) -> FontDescriptor:
    """A caller-supplied font."""
    return FontDescriptor(name="Test Sans", data=test_font_data, weight=400, style="normal")


@pytest.fixture
def settings():
    """Current application settings."""
    return get_settings()


@pytest.fixture
def bootstrap_calls() -> Dict[str, int]:
    """Per-engine bootstrap call counters."""
    return {"layout": 0, "raster": 0}


@pytest.fixture
def engine_initializer(bootstrap_calls: Dict[str, int]) -> EngineInitializer:
    """Initializer over counting no-op bootstraps."""

    def counting(name: str):
        async def bootstrap() -> None:
            bootstrap_calls[name] += 1

        return bootstrap

    return EngineInitializer({name: counting(name) for name in bootstrap_calls})


@pytest.fixture
def mock_layout_engine() -> MagicMock:
    """Layout engine returning a fixed SVG document."""
    engine = MagicMock()
    engine.render_svg = AsyncMock(return_value='<svg width="1200" height="630"></svg>')
    return engine


@pytest.fixture
def mock_raster_engine() -> MagicMock:
    """Raster engine returning fixed PNG bytes."""
    engine = MagicMock()
    engine.render_png = AsyncMock(return_value=b"\x89PNG\r\n\x1a\nmock")
    return engine


@pytest.fixture
def mock_font_loader(test_font_data: bytes) -> AsyncMock:
    """Font loader returning the generated test font."""
    return AsyncMock(return_value=test_font_data)


@pytest.fixture
def asset_loader_factory() -> MagicMock:
    """Factory producing an emoji callback that resolves nothing."""
    return MagicMock(return_value=AsyncMock(return_value=None))


@pytest.fixture
def pipeline(
    engine_initializer: EngineInitializer,
    mock_layout_engine: MagicMock,
    mock_raster_engine: MagicMock,
    mock_font_loader: AsyncMock,
    asset_loader_factory: MagicMock,
) -> RenderPipeline:
    """Render pipeline wired to mocked engines and loaders."""
    return RenderPipeline(
        initializer=engine_initializer,
        layout_engine=mock_layout_engine,
        raster_engine=mock_raster_engine,
        font_loader=mock_font_loader,
        asset_loader_factory=asset_loader_factory,
    )


# Pytest configuration
def pytest_collection_modifyitems(config, items):
    """Modify test collection to add markers based on file paths."""
    for item in items:
        # Add markers based on file path
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
