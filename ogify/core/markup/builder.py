"""
Markup Tree Builder
===================

Streaming compiler from HTML-like markup fragments to element trees.

The fragment is wrapped in a single flex column container and fed through an
incremental tokenizer. Open, text and close events are applied to an explicit
stack of open elements, so nesting never depends on the tokenizer reporting
end tags for every element.
"""

from dataclasses import dataclass, field
from html.parser import HTMLParser
from typing import Any, Dict, List, Optional, Tuple, Union

from ogify.config.logging import get_logger
from ogify.core.markup.style import parse_style_attribute
from ogify.models.schemas import ElementNode

logger = get_logger(__name__)

ROOT_TAG = "div"
ROOT_STYLE = "display: flex; flex-direction: column;"

# Elements that never carry children and usually have no end tag
VOID_ELEMENTS = frozenset(
    {
        "area",
        "base",
        "br",
        "col",
        "embed",
        "hr",
        "img",
        "input",
        "link",
        "meta",
        "source",
        "track",
        "wbr",
    }
)


class MarkupStructureError(Exception):
    """Raised internally when the event stream cannot form a single tree."""

    pass


@dataclass
class _OpenElement:
    tag: str
    props: Dict[str, Any]
    children: List[Union[ElementNode, str]] = field(default_factory=list)

    def materialize(self) -> ElementNode:
        return ElementNode(type=self.tag, props={**self.props, "children": self.children})


class MarkupTreeBuilder(HTMLParser):
    """Build an element tree from open/text/close markup events."""

    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.logger: Any = logger.bind(component="markup_builder")  # structlog.BoundLoggerBase
        self._stack: List[_OpenElement] = []
        self._root: Optional[ElementNode] = None

    def build(self, markup: str) -> Optional[ElementNode]:
        """
        Compile a markup fragment.

        Args:
            markup: HTML-like fragment using inline styles

        Returns:
            The synthetic root element wrapping the fragment, or None if the
            fragment could not be compiled. Failures are logged, not raised.
        """
        self.reset()
        self._stack = []
        self._root = None

        try:
            self.feed(f'<{ROOT_TAG} style="{ROOT_STYLE}">{markup}</{ROOT_TAG}>')
            super().close()

            # Defensive closing of anything the stream left open
            while self._stack:
                self._close_top()

            if self._root is None:
                raise MarkupStructureError("Markup produced no root element")

            self.logger.debug(
                "Markup compiled",
                markup_length=len(markup),
                node_count=sum(1 for _ in self._root.iter_nodes()),
            )
            return self._root

        except Exception as e:
            self.logger.error(
                "Markup compilation failed",
                error=str(e),
                error_type=type(e).__name__,
                markup_length=len(markup) if isinstance(markup, str) else None,
            )
            return None

    # Tokenizer callbacks

    def handle_starttag(self, tag: str, attrs: List[Tuple[str, Optional[str]]]) -> None:
        self._open(tag, attrs)
        if tag in VOID_ELEMENTS:
            self._close_top()

    def handle_startendtag(self, tag: str, attrs: List[Tuple[str, Optional[str]]]) -> None:
        self._open(tag, attrs)
        self._close_top()

    def handle_endtag(self, tag: str) -> None:
        if tag in VOID_ELEMENTS:
            return

        for depth in range(len(self._stack) - 1, -1, -1):
            if self._stack[depth].tag == tag:
                # Close implicitly everything opened inside the matched element
                while len(self._stack) > depth:
                    self._close_top()
                return

        self.logger.debug("Ignoring unmatched close tag", tag=tag)

    def handle_data(self, data: str) -> None:
        if not data:
            return
        if not self._stack:
            raise MarkupStructureError("Text outside of the root element")
        self._stack[-1].children.append(data)

    # Stack operations

    def _open(self, tag: str, attrs: List[Tuple[str, Optional[str]]]) -> None:
        if self._root is not None and not self._stack:
            raise MarkupStructureError(f"Element <{tag}> outside of the root element")
        self._stack.append(_OpenElement(tag=tag, props=self._element_props(tag, attrs)))

    def _close_top(self) -> None:
        node = self._stack.pop().materialize()
        if self._stack:
            self._stack[-1].children.append(node)
        else:
            self._root = node

    def _element_props(self, tag: str, attrs: List[Tuple[str, Optional[str]]]) -> Dict[str, Any]:
        """Extract the attributes the layout engine understands."""
        attributes: Dict[str, str] = {}
        for name, value in attrs:
            # First occurrence wins, as in HTML
            if value is not None and name not in attributes:
                attributes[name] = value

        props: Dict[str, Any] = {}

        style = parse_style_attribute(attributes.get("style", ""))
        if style:
            props["style"] = style

        src = attributes.get("src")
        if src:
            width = attributes.get("width")
            height = attributes.get("height")
            if width and height:
                props.update(src=src, width=width, height=height)
            else:
                self.logger.warning(
                    "Image missing width or height attribute required for layout",
                    tag=tag,
                    src=src[:200],
                )
                props["src"] = src

        return props


def build_element_tree(markup: str) -> Optional[ElementNode]:
    """
    Compile markup into an element tree.

    Args:
        markup: HTML-like fragment

    Returns:
        Element tree or None if compilation failed
    """
    return MarkupTreeBuilder().build(markup)
