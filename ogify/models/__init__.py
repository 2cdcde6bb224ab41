"""
Data Models
===========

Pydantic models for element trees, render options and API payloads.
"""
