"""Declarative bases for the two embedded SQLite databases."""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Main database (main.db): upload sessions."""


class ThumbBase(DeclarativeBase):
    """Thumbnail database (thumb.db), kept separate so the main database stays small."""
