"""
HTTP API for photostore.

Thin FastAPI routers over the coordinator and the user service.
"""

from .app import create_app

__all__ = ["create_app"]
