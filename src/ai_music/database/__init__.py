"""
AI Music Database Module
Exports database models, connection management, and Base
"""

from .connection import Base, DatabaseManager, database_manager
from .models import GeneratedMusic, MusicFolder

__all__ = [
    "Base",
    "DatabaseManager",
    "database_manager",
    "GeneratedMusic",
    "MusicFolder"
]
