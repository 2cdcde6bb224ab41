"""
Ogify
=====

Markup to image service for social preview (Open Graph) images.

This package provides:
- A streaming compiler from HTML-like markup to a flexbox element tree
- A rendering pipeline (Chromium layout + glyph vectorization to SVG,
  CairoSVG rasterization to PNG)
- A FastAPI endpoint returning cacheable image responses
"""

__version__ = "1.0.0"
__author__ = "Ogify Team"
