"""
Durable storage for modification sessions.
"""

from .sqlite_store import DurableStore

__all__ = ["DurableStore"]
