"""
API Layer
=========

FastAPI application exposing the image generation endpoint.
"""
