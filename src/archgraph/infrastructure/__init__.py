"""Infrastructure layer — graph building, diagram extraction, relationship files.

This layer depends on the domain layer and third-party libs (NetworkX,
ruamel.yaml, structlog). It must never import from services or config.
"""
