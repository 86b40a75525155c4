"""
Pure ordering rules for notes.

Display order: pinned notes first, then ascending ``sort_order`` within
each partition, ties broken by ``note_id``. Drag-and-drop moves one note
in front of another of the same partition and renumbers the whole list
densely from zero, so a reordered list is still in display order.
"""

from collections.abc import Iterable, Sequence

from music_pulse.notes.schemas import ALL_CATEGORIES, Note


def display_key(note: Note) -> tuple[int, int, int]:
    return (0 if note.is_pinned else 1, note.sort_order, note.note_id)


def sort_for_display(notes: Iterable[Note]) -> list[Note]:
    return sorted(notes, key=display_key)


def visible_notes(notes: Iterable[Note], category: str = ALL_CATEGORIES) -> list[Note]:
    """Display-ordered notes in ``category`` (``all`` shows everything)."""
    if category == ALL_CATEGORIES:
        return sort_for_display(notes)
    return sort_for_display(n for n in notes if n.category == category)


def densify(notes: Sequence[Note]) -> list[Note]:
    """Renumber ``sort_order`` to 0..N-1 following the sequence order."""
    return [n if n.sort_order == i else n.with_order(i) for i, n in enumerate(notes)]


def move_before(notes: Sequence[Note], dragged_id: int, target_id: int) -> list[Note] | None:
    """
    Move ``dragged_id`` to sit immediately before ``target_id``.

    The dragged note is removed first and then inserted at the target's
    position in the remaining list, so [1, 5, 3, 2] with 5 dropped on 2
    becomes [1, 3, 5, 2]. Notes only move within their own pinned or
    unpinned partition.

    Returns:
        The new sequence with dense sort orders, or None for a no-op
        (self-drop, either note not in ``notes``, or a drop across the
        pinned/unpinned boundary).
    """
    if dragged_id == target_id:
        return None

    ids = [n.note_id for n in notes]
    if dragged_id not in ids or target_id not in ids:
        return None

    dragged = notes[ids.index(dragged_id)]
    if dragged.is_pinned != notes[ids.index(target_id)].is_pinned:
        return None

    remaining = [n for n in notes if n.note_id != dragged_id]
    target_index = next(i for i, n in enumerate(remaining) if n.note_id == target_id)
    remaining.insert(target_index, dragged)
    return densify(remaining)


def order_ids(notes: Iterable[Note]) -> list[int]:
    return [n.note_id for n in notes]
