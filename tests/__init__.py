"""
Test Suite
==========

Test suite matching the ogify/ package structure.

Test Categories:
- unit: Unit tests for individual components
- integration: API tests through the ASGI application
"""
