"""
SVG Vectorizer
==============

Turn a computed layout (element boxes and positioned words) into a
self-contained SVG document. Text is converted to glyph outlines with
fontTools so the document renders identically without the fonts installed.
"""

import io
import math
import re
from functools import lru_cache
from typing import Annotated, Any, Awaitable, Callable, Iterator, List, Literal, Optional, Tuple, Union

from fontTools.pens.svgPathPen import SVGPathPen
from fontTools.pens.transformPen import TransformPen
from fontTools.ttLib import TTFont
from markupsafe import escape
from pydantic import BaseModel, Field

from ogify.config.logging import get_logger
from ogify.core.assets.images import fetch_data_uri
from ogify.models.schemas import FontDescriptor

logger = get_logger(__name__)

AssetLoader = Callable[[str, str], Awaitable[Optional[str]]]

SVG_NAMESPACE = "http://www.w3.org/2000/svg"

_CSS_RGB = re.compile(
    r"rgba?\(\s*([\d.]+)[,\s]+([\d.]+)[,\s]+([\d.]+)(?:\s*[,/]\s*([\d.]+%?))?\s*\)"
)

# Emoji presentation sequences: flags, keycaps and pictographs with optional
# variation selector, skin tone and zero width joiner continuations.
_EMOJI_SEQUENCE = re.compile(
    "[\U0001F1E6-\U0001F1FF]{2}"
    "|[#*0-9]\U0000FE0F?\U000020E3"
    "|[\U000000A9\U000000AE\U0000203C\U00002049\U00002122\U00002139\U00002194-\U000021AA"
    "\U0000231A-\U000023FF\U000024C2\U000025AA-\U000027BF\U00002934\U00002935"
    "\U00002B05-\U00002B55\U00003030\U0000303D\U00003297\U00003299\U0001F000-\U0001FAFF]"
    "\U0000FE0F?[\U0001F3FB-\U0001F3FF]?"
    "(?:\U0000200D[\U00002640-\U000027BF\U0001F000-\U0001FAFF]\U0000FE0F?[\U0001F3FB-\U0001F3FF]?)*"
)

_OBJECT_FIT_ASPECT = {
    "contain": "xMidYMid meet",
    "cover": "xMidYMid slice",
    "none": "xMidYMid meet",
    "scale-down": "xMidYMid meet",
}


# Layout Models
class BoxItem(BaseModel):
    """Border box of one element."""

    kind: Literal["box"] = "box"
    tag: str
    x: float
    y: float
    width: float
    height: float
    opacity: float = 1.0
    background_color: str = "transparent"
    background_image: str = "none"
    border_widths: List[float] = Field(default_factory=lambda: [0.0, 0.0, 0.0, 0.0])
    border_colors: List[str] = Field(default_factory=lambda: ["transparent"] * 4)
    border_radius: float = 0.0
    src: Optional[str] = None
    object_fit: str = "fill"


class TextItem(BaseModel):
    """One positioned word."""

    kind: Literal["text"] = "text"
    text: str
    x: float
    y: float
    width: float
    height: float
    opacity: float = 1.0
    font_family: str = ""
    font_size: float = 16.0
    font_weight: Union[int, str] = 400
    font_style: str = "normal"
    color: str = "rgb(0, 0, 0)"
    letter_spacing: float = 0.0
    text_transform: str = "none"


class LayoutResult(BaseModel):
    """Computed layout of a document, items in paint order."""

    width: float
    height: float
    items: List[Annotated[Union[BoxItem, TextItem], Field(discriminator="kind")]] = Field(
        default_factory=list
    )


# Helpers
def fmt(value: float) -> str:
    """Compact number formatting for SVG attributes."""
    text = f"{value:.2f}".rstrip("0").rstrip(".")
    return "0" if text in ("", "-0") else text


def parse_css_color(value: Optional[str]) -> Optional[Tuple[str, float]]:
    """
    Split a computed CSS color into an SVG paint and an opacity.

    Returns:
        (paint, alpha) or None when the color is fully transparent
    """
    if not value or value == "transparent":
        return None

    match = _CSS_RGB.match(value.strip())
    if not match:
        return value, 1.0

    red, green, blue = (int(round(float(channel))) for channel in match.group(1, 2, 3))
    alpha_text = match.group(4)
    if alpha_text is None:
        alpha = 1.0
    elif alpha_text.endswith("%"):
        alpha = float(alpha_text[:-1]) / 100
    else:
        alpha = float(alpha_text)

    if alpha <= 0:
        return None
    return f"rgb({red},{green},{blue})", min(alpha, 1.0)


def paint_attributes(color: Optional[str], prefix: str = "fill") -> Optional[str]:
    parsed = parse_css_color(color)
    if parsed is None:
        return None
    paint, alpha = parsed
    attrs = f'{prefix}="{escape(paint)}"'
    if alpha < 1:
        attrs += f' {prefix}-opacity="{fmt(alpha)}"'
    return attrs


def css_font_name(name: str) -> str:
    """Strip characters that could break out of a quoted CSS family name."""
    return re.sub(r"[^A-Za-z0-9 _-]", "", name)


def apply_text_transform(text: str, transform: str) -> str:
    if transform == "uppercase":
        return text.upper()
    if transform == "lowercase":
        return text.lower()
    if transform == "capitalize":
        return text[:1].upper() + text[1:]
    return text


def parse_font_weight(weight: Union[int, str]) -> int:
    if isinstance(weight, int):
        return weight
    keywords = {"normal": 400, "bold": 700, "lighter": 300, "bolder": 700}
    if weight in keywords:
        return keywords[weight]
    try:
        return int(float(weight))
    except ValueError:
        return 400


def segment_text(text: str, cmap: dict) -> Iterator[Tuple[str, bool]]:
    """
    Split text into (segment, is_emoji) runs.

    Sequences the font can draw itself (a plain symbol present in its cmap)
    stay text.
    """
    position = 0
    for match in _EMOJI_SEQUENCE.finditer(text):
        if match.start() > position:
            yield text[position : match.start()], False
        sequence = match.group(0)
        drawable = len(sequence) == 1 and ord(sequence) in cmap
        yield sequence, not drawable
        position = match.end()
    if position < len(text):
        yield text[position:], False


@lru_cache(maxsize=16)
def load_ttfont(data: bytes) -> TTFont:
    """Parse font data, cached by content."""
    return TTFont(io.BytesIO(data))


class SVGVectorizer:
    """Vectorize a computed layout with the fonts used to lay it out."""

    def __init__(self, fonts: List[FontDescriptor], load_additional_asset: Optional[AssetLoader] = None):
        self.fonts = fonts
        self.load_additional_asset = load_additional_asset
        self.logger: Any = logger.bind(component="svg_vectorizer")  # structlog.BoundLoggerBase

    async def vectorize(self, layout: LayoutResult) -> str:
        """
        Build the SVG document.

        Args:
            layout: Computed layout, coordinates relative to the canvas

        Returns:
            SVG document text
        """
        width = max(1, math.ceil(layout.width))
        height = max(1, math.ceil(layout.height))

        parts = [
            f'<svg width="{width}" height="{height}" viewBox="0 0 {width} {height}" '
            f'xmlns="{SVG_NAMESPACE}">'
        ]

        for item in layout.items:
            if item.width <= 0 or item.height <= 0:
                continue
            if isinstance(item, BoxItem):
                parts.extend(await self._vectorize_box(item))
            else:
                parts.extend(await self._vectorize_text(item))

        parts.append("</svg>")

        self.logger.debug("Vectorized layout", items=len(layout.items), width=width, height=height)
        return "".join(parts)

    # Boxes

    async def _vectorize_box(self, box: BoxItem) -> List[str]:
        parts: List[str] = []
        opacity = f' opacity="{fmt(box.opacity)}"' if box.opacity < 1 else ""
        geometry = f'x="{fmt(box.x)}" y="{fmt(box.y)}" width="{fmt(box.width)}" height="{fmt(box.height)}"'
        radius = f' rx="{fmt(box.border_radius)}"' if box.border_radius > 0 else ""

        fill = paint_attributes(box.background_color)
        if fill:
            parts.append(f"<rect {geometry}{radius} {fill}{opacity}/>")

        if box.background_image not in ("none", ""):
            self.logger.debug("Background images are not vectorized", tag=box.tag)

        if box.src:
            parts.append(await self._vectorize_image(box, geometry, opacity))

        parts.extend(self._vectorize_borders(box, radius, opacity))
        return parts

    async def _vectorize_image(self, box: BoxItem, geometry: str, opacity: str) -> str:
        href = box.src or ""
        if href.startswith(("http://", "https://")):
            href = await fetch_data_uri(href) or href
        aspect = _OBJECT_FIT_ASPECT.get(box.object_fit, "none")
        return f'<image {geometry} href="{escape(href)}" preserveAspectRatio="{aspect}"{opacity}/>'

    def _vectorize_borders(self, box: BoxItem, radius: str, opacity: str) -> List[str]:
        top, right, bottom, left = box.border_widths
        colors = box.border_colors

        if top > 0 and len(set(box.border_widths)) == 1 and len(set(colors)) == 1:
            stroke = paint_attributes(colors[0], prefix="stroke")
            if not stroke:
                return []
            inset = top / 2
            return [
                f'<rect x="{fmt(box.x + inset)}" y="{fmt(box.y + inset)}" '
                f'width="{fmt(box.width - top)}" height="{fmt(box.height - top)}"{radius} '
                f'fill="none" {stroke} stroke-width="{fmt(top)}"{opacity}/>'
            ]

        sides = [
            (top, colors[0], box.x, box.y, box.width, top),
            (right, colors[1], box.x + box.width - right, box.y, right, box.height),
            (bottom, colors[2], box.x, box.y + box.height - bottom, box.width, bottom),
            (left, colors[3], box.x, box.y, left, box.height),
        ]
        parts = []
        for size, color, x, y, width, height in sides:
            fill = paint_attributes(color)
            if size > 0 and fill:
                parts.append(
                    f'<rect x="{fmt(x)}" y="{fmt(y)}" width="{fmt(width)}" '
                    f'height="{fmt(height)}" {fill}{opacity}/>'
                )
        return parts

    # Text

    def match_font(self, family: str, weight: int, style: str) -> Optional[FontDescriptor]:
        """Pick the closest font for a computed font-family list."""
        if not self.fonts:
            return None

        candidates: List[FontDescriptor] = []
        for name in family.split(","):
            name = name.strip().strip("'\"").lower()
            candidates = [font for font in self.fonts if css_font_name(font.name).lower() == name]
            if candidates:
                break

        if not candidates:
            # Unknown families fall back to the first registered family
            fallback = self.fonts[0].name
            candidates = [font for font in self.fonts if font.name == fallback]

        return min(candidates, key=lambda font: (font.style != style, abs(font.weight - weight)))

    async def _vectorize_text(self, item: TextItem) -> List[str]:
        descriptor = self.match_font(
            item.font_family, parse_font_weight(item.font_weight), item.font_style
        )
        fill = paint_attributes(item.color)
        if descriptor is None or fill is None:
            return []

        font = load_ttfont(descriptor.data)
        glyph_set = font.getGlyphSet()
        cmap = font.getBestCmap() or {}
        metrics = font["hmtx"]
        hhea = font["hhea"]

        scale = item.font_size / font["head"].unitsPerEm
        content_height = (hhea.ascent - hhea.descent) * scale
        baseline = item.y + (item.height - content_height) / 2 + hhea.ascent * scale

        pen = SVGPathPen(glyph_set)
        images: List[str] = []
        cursor = item.x
        opacity = f' opacity="{fmt(item.opacity)}"' if item.opacity < 1 else ""

        for segment, is_emoji in segment_text(apply_text_transform(item.text, item.text_transform), cmap):
            if is_emoji:
                size = item.font_size
                uri = None
                if self.load_additional_asset is not None:
                    uri = await self.load_additional_asset("emoji", segment)
                if uri:
                    images.append(
                        f'<image x="{fmt(cursor)}" y="{fmt(item.y + (item.height - size) / 2)}" '
                        f'width="{fmt(size)}" height="{fmt(size)}" href="{escape(uri)}"{opacity}/>'
                    )
                cursor += size + item.letter_spacing
                continue

            for char in segment:
                glyph_name = cmap.get(ord(char), ".notdef")
                if glyph_name not in glyph_set:
                    cursor += item.font_size / 2 + item.letter_spacing
                    continue
                glyph_set[glyph_name].draw(
                    TransformPen(pen, (scale, 0, 0, -scale, cursor, baseline))
                )
                cursor += metrics[glyph_name][0] * scale + item.letter_spacing

        parts = []
        commands = pen.getCommands()
        if commands:
            parts.append(f'<path d="{commands}" {fill}{opacity}/>')
        parts.extend(images)
        return parts
