"""
AI Music Repository Layer
Data access layer with async CRUD operations
"""

from .base import BaseRepository, ConflictError, NotFoundError, RepositoryError
from .folder_repository import FolderRepository
from .music_repository import MusicRepository

__all__ = [
    "BaseRepository",
    "RepositoryError",
    "NotFoundError",
    "ConflictError",
    "MusicRepository",
    "FolderRepository"
]
