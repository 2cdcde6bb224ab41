"""
Markup Compiler
===============

Convert HTML-like markup fragments into element trees for the layout engine.

Components:
- style: Inline style attribute parsing and JSON escaping
- builder: Streaming markup to element tree compiler
"""
