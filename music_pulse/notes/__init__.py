"""Creative notes: optimistic pinning and drag-reorder."""

from music_pulse.notes.errors import (
    InvalidActionStateError,
    NoteNotFoundError,
    NotesError,
    ReorderConflictError,
)
from music_pulse.notes.ordering import move_before, sort_for_display, visible_notes
from music_pulse.notes.reconciler import OptimisticUpdate, ReorderReconciler
from music_pulse.notes.repository import NotesRepository
from music_pulse.notes.schemas import ALL_CATEGORIES, ActionKind, ActionState, Note, NotesBackend

__all__ = [
    "ALL_CATEGORIES",
    "ActionKind",
    "ActionState",
    "InvalidActionStateError",
    "Note",
    "NoteNotFoundError",
    "NotesBackend",
    "NotesError",
    "NotesRepository",
    "OptimisticUpdate",
    "ReorderConflictError",
    "ReorderReconciler",
    "move_before",
    "sort_for_display",
    "visible_notes",
]
