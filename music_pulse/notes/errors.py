"""Exceptions for note reconciliation."""


class NotesError(Exception):
    """Base exception for note ordering errors."""


class NoteNotFoundError(NotesError):
    """Raised when a note id does not exist for the owner."""

    def __init__(self, note_id: int):
        super().__init__(f"Note {note_id} not found")
        self.note_id = note_id


class ReorderConflictError(NotesError):
    """The server rejected a commit because its state moved on."""


class InvalidActionStateError(NotesError):
    """Commit or revert called on an action that already resolved."""
