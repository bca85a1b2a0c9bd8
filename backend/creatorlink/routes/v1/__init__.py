# backend/creatorlink/routes/v1/__init__.py
"""
API v1 routes.

Routers are mounted under /api/v1 by the application factory.
"""

from . import conversations, metrics, realtime

__all__ = ["conversations", "metrics", "realtime"]
