"""SQLAlchemy models, engines and stores for Seeker."""

from .base import Base, ThumbBase
from .database import Database
from .models import ThumbnailEntry, UploadSession
from .stores import ThumbnailStore, UploadSessionStore

__all__ = [
    "Base",
    "ThumbBase",
    "Database",
    "UploadSession",
    "ThumbnailEntry",
    "UploadSessionStore",
    "ThumbnailStore",
]
