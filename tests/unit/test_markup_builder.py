"""
Unit tests for the markup tree builder.
"""

import json

import pytest

from ogify.core.markup.builder import (
    ROOT_TAG,
    MarkupTreeBuilder,
    build_element_tree,
)
from ogify.models.schemas import ElementNode


def node_tags(tree: ElementNode):
    return [node.type for node in tree.iter_nodes()]


class TestMarkupTreeBuilder:
    """Test markup to element tree compilation."""

    def test_wraps_fragment_in_flex_column_root(self):
        """The fragment is nested in a synthetic flex container."""
        tree = build_element_tree("<span>Hi</span>")

        assert tree is not None
        assert tree.type == ROOT_TAG
        assert tree.style == {"display": "flex", "flexDirection": "column"}
        assert tree.children[0].type == "span"
        assert tree.children[0].children == ["Hi"]

    def test_paired_tags_yield_one_node_each_plus_root(self):
        """N correctly paired tags produce N + 1 nodes."""
        markup = "<div><h1>Title</h1><p>Body <b>bold</b></p></div><footer>end</footer>"

        tree = build_element_tree(markup)

        assert tree is not None
        assert len(list(tree.iter_nodes())) == 6

    def test_document_order_is_preserved(self):
        tree = build_element_tree("<div><h1>A</h1><h2>B</h2></div><p>C</p>")

        assert node_tags(tree) == [ROOT_TAG, "div", "h1", "h2", "p"]

    def test_text_and_elements_interleave(self):
        tree = build_element_tree("<p>Hello <b>big</b> world</p>")

        paragraph = tree.children[0]
        assert paragraph.children[0] == "Hello "
        assert paragraph.children[1].type == "b"
        assert paragraph.children[2] == " world"

    def test_style_attribute_becomes_style_object(self):
        tree = build_element_tree(
            '<div style="color: red; background: rgba(0,0,0,0.5)">x</div>'
        )

        assert tree.children[0].style == {"color": "red", "background": "rgba(0,0,0,0.5)"}

    def test_element_without_style_has_no_style_prop(self):
        tree = build_element_tree("<div>x</div>")

        assert "style" not in tree.children[0].props

    def test_other_attributes_are_dropped(self):
        tree = build_element_tree('<div class="a" id="b" onclick="x()">x</div>')

        assert set(tree.children[0].props) == {"children"}

    def test_image_with_dimensions(self):
        tree = build_element_tree('<img src="https://example.com/a.png" width="100" height="50">')

        image = tree.children[0]
        assert image.type == "img"
        assert image.props["src"] == "https://example.com/a.png"
        assert image.props["width"] == "100"
        assert image.props["height"] == "50"
        assert image.children == []

    def test_image_without_dimensions_keeps_src(self):
        """A missing width or height is a diagnostic, not a failure."""
        tree = build_element_tree('<img src="https://example.com/a.png">')

        assert tree is not None
        image = tree.children[0]
        assert image.props["src"] == "https://example.com/a.png"
        assert "width" not in image.props

    def test_void_elements_do_not_swallow_siblings(self):
        tree = build_element_tree('<div><img src="a.png" width="1" height="1"><span>x</span></div>')

        div = tree.children[0]
        assert [child.type for child in div.children] == ["img", "span"]

    def test_self_closing_tags(self):
        tree = build_element_tree("<div><br/><span/>text</div>")

        div = tree.children[0]
        assert div.children[0].type == "br"
        assert div.children[1].type == "span"
        assert div.children[1].children == []
        assert div.children[2] == "text"

    def test_unmatched_close_tag_is_ignored(self):
        tree = build_element_tree("<div>a</span>b</div>")

        assert tree is not None
        assert tree.children[0].children == ["a", "b"]

    def test_unclosed_elements_are_closed_at_end(self):
        tree = build_element_tree("<div><p>open")

        assert node_tags(tree) == [ROOT_TAG, "div", "p"]
        assert tree.children[0].children[0].children == ["open"]

    def test_close_tag_closes_nested_open_elements(self):
        tree = build_element_tree("<div><p><b>x</div><span>y</span>")

        assert [child.type for child in tree.children] == ["div", "span"]

    def test_entities_are_decoded(self):
        tree = build_element_tree("<p>Tom &amp; Jerry &lt;3</p>")

        assert tree.children[0].children == ["Tom & Jerry <3"]

    def test_content_after_closed_root_fails(self):
        """A second top-level element cannot form a single tree."""
        assert build_element_tree("</div><p>stray</p>") is None

    def test_builder_is_reusable(self):
        builder = MarkupTreeBuilder()

        first = builder.build("<h1>One</h1>")
        second = builder.build("<h2>Two</h2>")

        assert node_tags(first) == [ROOT_TAG, "h1"]
        assert node_tags(second) == [ROOT_TAG, "h2"]

    def test_empty_markup_yields_bare_root(self):
        tree = build_element_tree("")

        assert tree is not None
        assert tree.children == []


class TestElementNodeSerialization:
    """Test JSON materialization of built trees."""

    @pytest.mark.parametrize(
        "text",
        ['quote " inside', "back\\slash", "tab\tand\nnewline"],
    )
    def test_text_round_trips_through_json(self, text):
        tree = ElementNode(type="p", props={"children": [text]})

        data = json.loads(tree.to_json())

        assert data == {"type": "p", "props": {"children": [text]}}

    def test_nested_tree_serializes_all_props(self):
        tree = build_element_tree(
            '<div style="color: red"><img src="a.png" width="10" height="20"></div>'
        )

        data = json.loads(tree.to_json())

        div = data["props"]["children"][0]
        assert div["props"]["style"] == {"color": "red"}
        assert div["props"]["children"][0]["props"] == {
            "src": "a.png",
            "width": "10",
            "height": "20",
            "children": [],
        }
