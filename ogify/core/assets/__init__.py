"""
Asset Loaders
=============

Remote font and emoji glyph loading.

Components:
- fonts: Google Fonts downloader for the default font
- emoji: Emoji SVG fetcher for the supported icon styles
- images: Remote image inlining as data URIs
"""
