"""
FastAPI binding endpoint.

Lets external systems plan and render fleets without going through the CLI.
"""

from .server import create_app, run_api

__all__ = ["create_app", "run_api"]
