"""Domain layer — identifiers, relationship types, and diagram parsing.

This layer depends only on stdlib and pydantic.
It must never import from services, infrastructure, or config.
"""
