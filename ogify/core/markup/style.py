"""
Style Attribute Parser
======================

Parse inline ``style`` attributes into the camelCase style objects the layout
engine expects, and escape strings for embedding into JSON text.
"""

import re
from typing import Dict

# A semicolon is a declaration separator unless a closing parenthesis follows
# it before any opening one, i.e. it sits inside a function argument list.
_DECLARATION_SEPARATOR = re.compile(r";(?![^(]*\))")
_WHITESPACE_RUN = re.compile(r"\s+")

_JSON_ESCAPES = (
    ("\\", "\\\\"),
    ("\n", "\\n"),
    ("\r", "\\r"),
    ("\t", "\\t"),
    ("\f", "\\f"),
    ('"', '\\"'),
)


def sanitize_json(unsanitized: str) -> str:
    """
    Escape a string for embedding between double quotes in a JSON document.

    Only backslash, newline, carriage return, tab, form-feed and double-quote
    are escaped; every other character is left untouched.
    """
    for raw, escaped in _JSON_ESCAPES:
        unsanitized = unsanitized.replace(raw, escaped)
    return unsanitized


def to_camel_case(prop: str) -> str:
    """Convert a hyphenated CSS property name to camelCase.

    Vendor prefixes keep a leading capital (``-webkit-line-clamp`` becomes
    ``WebkitLineClamp``).
    """
    prop = prop.strip().lower()
    words = [word for word in prop.split("-") if word]
    if not words:
        return ""

    camel = words[0] + "".join(word[:1].upper() + word[1:] for word in words[1:])
    if prop.startswith("-"):
        camel = camel[:1].upper() + camel[1:]
    return camel


def parse_style_attribute(style: str) -> Dict[str, str]:
    """
    Parse an inline style attribute.

    Args:
        style: Raw attribute value, e.g. ``"color: red; font-size: 32px"``

    Returns:
        Ordered mapping of camelCase property to value. Later declarations of
        the same property overwrite earlier ones. Declarations with an empty
        property or value are dropped.
    """
    declarations: Dict[str, str] = {}
    if not style:
        return declarations

    clean_style = _WHITESPACE_RUN.sub(" ", style)

    for declaration in _DECLARATION_SEPARATOR.split(clean_style):
        # Split only the first colon, values like url(http://...) keep theirs
        key, _, value = declaration.partition(":")
        key = to_camel_case(key)
        value = value.strip()
        if key and value:
            declarations[key] = value

    return declarations
