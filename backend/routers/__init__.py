"""Routers module - FastAPI route handlers"""

from . import catalog, deploy, design, generate

__all__ = ["catalog", "deploy", "design", "generate"]
