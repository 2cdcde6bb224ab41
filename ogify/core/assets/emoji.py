"""
Emoji Assets
============

Resolve emoji graphemes to SVG images of the selected icon style. The
vectorizer calls the loader for every emoji it meets in text; a failed fetch
only drops that glyph.
"""

from collections import OrderedDict
from typing import Awaitable, Callable, Dict, Optional

from ogify.config.logging import get_logger
from ogify.config.settings import get_settings
from ogify.core.assets.images import fetch_data_uri

logger = get_logger(__name__)

ZERO_WIDTH_JOINER = "\u200d"
VARIATION_SELECTOR_16 = "\ufe0f"

# (code, segment) -> data URI or None
AssetLoader = Callable[[str, str], Awaitable[Optional[str]]]

EMOJI_URL_BUILDERS: Dict[str, Callable[[str], str]] = {
    "twemoji": lambda code: (
        f"https://cdnjs.cloudflare.com/ajax/libs/twemoji/14.0.2/svg/{code.lower()}.svg"
    ),
    "openmoji": lambda code: (
        f"https://cdn.jsdelivr.net/npm/@svgmoji/openmoji@2.0.0/svg/{code.upper()}.svg"
    ),
    "blobmoji": lambda code: (
        f"https://cdn.jsdelivr.net/npm/@svgmoji/blob@2.0.0/svg/{code.upper()}.svg"
    ),
    "noto": lambda code: (
        "https://cdn.jsdelivr.net/gh/svgmoji/svgmoji/packages/svgmoji__noto/svg/"
        f"{code.upper()}.svg"
    ),
    "fluent": lambda code: (
        "https://cdn.jsdelivr.net/gh/shuding/fluentui-emoji-unicode/assets/"
        f"{code.lower()}_color.svg"
    ),
    "fluentFlat": lambda code: (
        "https://cdn.jsdelivr.net/gh/shuding/fluentui-emoji-unicode/assets/"
        f"{code.lower()}_flat.svg"
    ),
}


def get_icon_code(segment: str) -> str:
    """
    Icon file code for an emoji grapheme.

    Code points in hex joined by "-". VS16 is dropped unless the sequence
    contains a zero width joiner, matching how the icon sets name files.
    """
    if ZERO_WIDTH_JOINER not in segment:
        segment = segment.replace(VARIATION_SELECTOR_16, "")
    return "-".join(f"{ord(char):x}" for char in segment)


class EmojiAssetCache:
    """Bounded in-process cache of emoji data URIs."""

    def __init__(self, max_size: int):
        self.max_size = max_size
        self._entries: "OrderedDict[str, str]" = OrderedDict()

    def get(self, key: str) -> Optional[str]:
        value = self._entries.get(key)
        if value is not None:
            self._entries.move_to_end(key)
        return value

    def set(self, key: str, value: str) -> None:
        self._entries[key] = value
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_size:
            self._entries.popitem(last=False)

    def __len__(self) -> int:
        return len(self._entries)


_cache: Optional[EmojiAssetCache] = None


def get_emoji_cache() -> EmojiAssetCache:
    """Get the process-wide emoji cache."""
    global _cache
    if _cache is None:
        _cache = EmojiAssetCache(get_settings().emoji_cache_size)
    return _cache


def load_dynamic_asset(emoji: str) -> AssetLoader:
    """
    Build the asset loading callback for an emoji style.

    Args:
        emoji: Emoji style name (twemoji, openmoji, blobmoji, noto, fluent, fluentFlat)

    Returns:
        Async callback resolving ``("emoji", segment)`` to an SVG data URI
    """
    if emoji not in EMOJI_URL_BUILDERS:
        raise ValueError(f"Unsupported emoji style: {emoji}")

    build_url = EMOJI_URL_BUILDERS[emoji]
    log = logger.bind(component="emoji_loader", emoji=emoji)

    async def load_asset(code: str, segment: str) -> Optional[str]:
        if code != "emoji":
            # Only emoji glyphs are resolved, other scripts fall back to the fonts
            return None

        icon_code = get_icon_code(segment)
        cache = get_emoji_cache()
        cache_key = f"{emoji}:{icon_code}"

        cached = cache.get(cache_key)
        if cached is not None:
            return cached

        data_uri = await fetch_data_uri(build_url(icon_code), content_type="image/svg+xml")
        if data_uri is None:
            log.warning("Emoji asset unavailable", icon_code=icon_code)
            return None

        cache.set(cache_key, data_uri)
        return data_uri

    return load_asset
