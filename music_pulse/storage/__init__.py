"""Storage layer: asyncpg connection pool shared by the pulse and notes repositories."""

from music_pulse.storage.database import Database

__all__ = ["Database"]
