"""
API package for the tweeter backend.

This package exposes the FastAPI app (src.api.main:app), its factory
(src.api.main:create_app), and helper scripts such as OpenAPI generation
(src.api.generate_openapi).
"""
