"""
FastAPI routers for the edit service.
"""

from vedit_engine.routers import edits, health

__all__ = ["health", "edits"]
