"""
Core Business Logic
==================

Markup compilation, asset loading and image rendering.
"""
