"""
HTTP service for the identity registry.

    from idregistry_service import create_app
    app = create_app()
"""

from .main import create_app, build_registry

__all__ = ["create_app", "build_registry"]
