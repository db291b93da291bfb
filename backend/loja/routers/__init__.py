"""Routers module - FastAPI route handlers"""

from . import chat, config, editor, surfaces

__all__ = ["chat", "config", "editor", "surfaces"]
