"""
Rendering Module
===============

Element tree layout, vectorization and rasterization.

Components:
- engines: One-time bootstrap of the rendering engines
- layout_engine: Chromium flexbox layout and SVG vectorization
- raster_engine: SVG to PNG conversion
- pipeline: Request orchestration
- response: HTTP response assembly
"""
