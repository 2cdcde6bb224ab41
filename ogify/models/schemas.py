"""
Pydantic Models and Schemas
===========================

Core data models for element trees, render options, API requests and
responses. All models include validation and type hints.
"""

from collections.abc import Mapping
from typing import Optional, List, Dict, Any, Union, Literal
from datetime import datetime, timezone
import base64
import binascii

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ogify.config.settings import get_settings
from ogify.core.markup.style import sanitize_json


EmojiType = Literal["twemoji", "openmoji", "blobmoji", "noto", "fluent", "fluentFlat"]
ImageFormat = Literal["svg", "png"]


# Element Tree
class ElementNode(BaseModel):
    """
    One element of the layout tree.

    Mirrors the layout engine's calling convention: the tag name lives in
    ``type`` and the ordered children live in ``props["children"]`` next to
    ``style`` and the replaced element attributes (``src``, ``width``,
    ``height``).
    """

    model_config = ConfigDict(frozen=True)

    type: str = Field(..., min_length=1, description="Tag name")
    props: Dict[str, Any] = Field(
        default_factory=dict, validate_default=True, description="Element properties"
    )

    @field_validator("props", mode="before")
    @classmethod
    def normalize_children(cls, v: Any) -> Dict[str, Any]:
        """Coerce ``children`` into a list of nodes and strings."""
        if v is None:
            v = {}
        if not isinstance(v, Mapping):
            raise ValueError("props must be an object")
        props = dict(v)
        children = props.get("children")

        if children is None:
            children = []
        elif isinstance(children, (str, dict, ElementNode)):
            children = [children]
        elif not isinstance(children, (list, tuple)):
            raise ValueError(f"Unsupported children type: {type(children).__name__}")

        normalized: List[Union["ElementNode", str]] = []
        for child in children:
            if isinstance(child, (str, ElementNode)):
                normalized.append(child)
            elif isinstance(child, dict):
                normalized.append(ElementNode.model_validate(child))
            elif isinstance(child, (int, float)) and not isinstance(child, bool):
                normalized.append(str(child))
            elif child is None or isinstance(child, bool):
                # React-style conditional children render nothing
                continue
            else:
                raise ValueError(f"Unsupported child type: {type(child).__name__}")

        props["children"] = normalized

        style = props.get("style")
        if style is not None and not isinstance(style, dict):
            raise ValueError("style must be an object")
        if not style:
            props.pop("style", None)

        return props

    @property
    def tag_name(self) -> str:
        return self.type

    @property
    def children(self) -> List[Union["ElementNode", str]]:
        return self.props["children"]

    @property
    def style(self) -> Dict[str, Any]:
        return self.props.get("style") or {}

    def iter_nodes(self):
        """Yield this node and all descendant nodes in document order."""
        yield self
        for child in self.children:
            if isinstance(child, ElementNode):
                yield from child.iter_nodes()

    def to_json(self) -> str:
        """Serialize the tree to JSON text with every string escaped."""
        return _dump_json(self)


def _dump_json(value: Any) -> str:
    if isinstance(value, ElementNode):
        return '{"type":%s,"props":%s}' % (_dump_json(value.type), _dump_json(value.props))
    if isinstance(value, str):
        return f'"{sanitize_json(value)}"'
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    if isinstance(value, (int, float)):
        return repr(value)
    if isinstance(value, dict):
        return "{%s}" % ",".join(f"{_dump_json(str(k))}:{_dump_json(v)}" for k, v in value.items())
    if isinstance(value, (list, tuple)):
        return "[%s]" % ",".join(_dump_json(item) for item in value)
    return _dump_json(str(value))


# Rendering Models
class FontDescriptor(BaseModel):
    """A font made available to the layout engine."""

    name: str = Field(..., min_length=1, description="Font family name")
    data: bytes = Field(..., description="TrueType/OpenType font data (base64 over JSON)")
    weight: int = Field(400, ge=100, le=900, description="Font weight")
    style: Literal["normal", "italic"] = Field("normal", description="Font style")

    @field_validator("data", mode="before")
    @classmethod
    def decode_base64(cls, v: Any) -> Any:
        """Accept raw bytes from Python callers and base64 text from JSON."""
        if isinstance(v, str):
            try:
                return base64.b64decode(v, validate=True)
            except binascii.Error as e:
                raise ValueError(f"Font data must be base64 encoded: {e}")
        return v

    @field_validator("data")
    @classmethod
    def validate_not_empty(cls, v: bytes) -> bytes:
        if not v:
            raise ValueError("Font data cannot be empty")
        return v


class RenderOptions(BaseModel):
    """Options for rendering an element tree to an image."""

    width: Optional[int] = Field(None, gt=0, description="Image width in pixels")
    height: Optional[int] = Field(None, gt=0, description="Image height in pixels")
    format: ImageFormat = Field("png", description="Output format")
    fonts: List[FontDescriptor] = Field(default_factory=list, description="Fonts to embed")
    emoji: Optional[EmojiType] = Field(None, description="Emoji style for glyph fallback")
    debug: bool = Field(False, description="Disable response caching")

    # Transport passthrough
    headers: Dict[str, str] = Field(default_factory=dict, description="Extra response headers")
    status: Optional[int] = Field(None, ge=100, le=599, description="Response status code")
    status_text: Optional[str] = Field(
        None, alias="statusText", description="Response status text"
    )

    model_config = ConfigDict(populate_by_name=True)

    @model_validator(mode="after")
    def validate_dimensions(self) -> "RenderOptions":
        """Keep requested dimensions within configured limits."""
        settings = get_settings()
        if self.width is not None and self.width > settings.max_width:
            raise ValueError(f"width must be <= {settings.max_width}")
        if self.height is not None and self.height > settings.max_height:
            raise ValueError(f"height must be <= {settings.max_height}")
        return self


class Dimensions(BaseModel):
    """Target size resolved for one render. At least one side is set."""

    model_config = ConfigDict(frozen=True)

    width: Optional[int] = None
    height: Optional[int] = None

    @model_validator(mode="after")
    def validate_one_side(self) -> "Dimensions":
        if self.width is None and self.height is None:
            raise ValueError("At least one of width or height is required")
        return self


class ImageRequest(BaseModel):
    """Request to render markup or an element tree into an image."""

    model_config = ConfigDict(frozen=True)

    element: Union[str, ElementNode] = Field(..., description="Markup or element tree")
    options: RenderOptions = Field(default_factory=RenderOptions, description="Render options")


# Health Check Models
class HealthStatus(BaseModel):
    """Health check status."""

    status: Literal["healthy", "unhealthy", "degraded"] = Field(..., description="Overall status")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc), description="Check timestamp"
    )
    version: str = Field(..., description="Application version")
    engines: Dict[str, str] = Field(default_factory=dict, description="Engine states")


# Error Models
class ErrorResponse(BaseModel):
    """Standard error response model."""

    error: str = Field(..., description="Error message")
    error_code: Optional[str] = Field(None, description="Error code")
    details: Optional[Dict[str, Any]] = Field(None, description="Additional error details")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc), description="Error timestamp"
    )
    request_id: Optional[str] = Field(None, description="Request identifier for tracking")
