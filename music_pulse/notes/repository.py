"""PostgreSQL-backed notes: the authoritative side of optimistic reordering."""

import logging

from music_pulse.notes.errors import NoteNotFoundError, ReorderConflictError
from music_pulse.notes.schemas import Note
from music_pulse.storage.database import Database

logger = logging.getLogger(__name__)

_CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS creative_notes (
    note_id     BIGSERIAL PRIMARY KEY,
    owner_id    TEXT NOT NULL,
    content     TEXT NOT NULL,
    category    TEXT NOT NULL DEFAULT 'ideas',
    is_pinned   BOOLEAN NOT NULL DEFAULT FALSE,
    sort_order  INTEGER NOT NULL DEFAULT 0,
    created_at  TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at  TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_creative_notes_owner
    ON creative_notes(owner_id, is_pinned DESC, sort_order);
"""

_REORDER_SQL = """
UPDATE creative_notes AS n SET
    sort_order = o.position - 1,
    updated_at = NOW()
FROM unnest($1::bigint[]) WITH ORDINALITY AS o(note_id, position)
WHERE n.note_id = o.note_id AND n.owner_id = $2
"""


def _record_to_note(record) -> Note:
    """Convert an asyncpg Record to a Note."""
    return Note(
        note_id=record["note_id"],
        content=record["content"],
        category=record["category"],
        is_pinned=record["is_pinned"],
        sort_order=record["sort_order"],
        created_at=record["created_at"],
        updated_at=record["updated_at"],
    )


class NotesRepository:
    """
    Notes for a single owner, stored in PostgreSQL.

    Implements the ``NotesBackend`` protocol used by ``ReorderReconciler``.
    """

    def __init__(self, database: Database, owner_id: str) -> None:
        self._db = database
        self._owner_id = owner_id

    async def create_table(self) -> None:
        """Create the notes table and index (idempotent)."""
        await self._db.execute(_CREATE_TABLE_SQL)
        logger.info("Notes table ensured")

    async def add_note(self, content: str, category: str = "ideas") -> Note:
        """Append a note after the owner's current last position."""
        row = await self._db.fetchrow(
            """
            INSERT INTO creative_notes (owner_id, content, category, sort_order)
            SELECT $1, $2, $3, COALESCE(MAX(sort_order) + 1, 0)
            FROM creative_notes WHERE owner_id = $1
            RETURNING *
            """,
            self._owner_id, content, category,
        )
        return _record_to_note(row)

    async def list_notes(self) -> list[Note]:
        rows = await self._db.fetch(
            """
            SELECT * FROM creative_notes
            WHERE owner_id = $1
            ORDER BY is_pinned DESC, sort_order, note_id
            """,
            self._owner_id,
        )
        return [_record_to_note(r) for r in rows]

    async def update_note_order(self, note_ids: list[int]) -> None:
        """
        Set ``sort_order`` to each id's position in ``note_ids``.

        Raises:
            ReorderConflictError: If ids repeat or any id is not the owner's
        """
        if len(set(note_ids)) != len(note_ids):
            raise ReorderConflictError("Duplicate note ids in reorder request")

        async with self._db.transaction() as conn:
            owned = await conn.fetchval(
                """
                SELECT COUNT(*) FROM creative_notes
                WHERE owner_id = $1 AND note_id = ANY($2::bigint[])
                """,
                self._owner_id, note_ids,
            )
            if owned != len(note_ids):
                raise ReorderConflictError(
                    f"{len(note_ids) - owned} of {len(note_ids)} notes not owned by {self._owner_id}"
                )
            await conn.execute(_REORDER_SQL, note_ids, self._owner_id)

        logger.debug("Reordered %d notes for %s", len(note_ids), self._owner_id)

    async def toggle_note_pinned(self, note_id: int) -> bool:
        """
        Flip a note's pinned flag.

        Returns:
            The pinned state after the toggle

        Raises:
            NoteNotFoundError: If the note is not the owner's
        """
        pinned = await self._db.fetchval(
            """
            UPDATE creative_notes
            SET is_pinned = NOT is_pinned, updated_at = NOW()
            WHERE note_id = $1 AND owner_id = $2
            RETURNING is_pinned
            """,
            note_id, self._owner_id,
        )
        if pinned is None:
            raise NoteNotFoundError(note_id)
        return pinned
