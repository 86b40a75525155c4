"""
Optimistic pin-toggle and drag-reorder for notes.

Each action is applied locally first and handed back as an
``OptimisticUpdate`` in the PENDING state. ``commit()`` sends the
authoritative mutation: on success the preview stands (COMMITTED); on any
failure the exact pre-action notes are restored (REVERTED). A rejected
reorder also re-fetches server state, since concurrent edits cannot be
diffed against the speculative order.

Callers own the note list. Every operation takes the current notes and
returns new tuples; nothing is mutated in place.
"""

import logging
from collections.abc import Awaitable, Callable, Iterable

from music_pulse.notes.errors import InvalidActionStateError, ReorderConflictError
from music_pulse.notes.ordering import move_before, order_ids, sort_for_display, visible_notes
from music_pulse.notes.schemas import ALL_CATEGORIES, ActionKind, ActionState, Note, NotesBackend
from music_pulse.observability.metrics import MetricsCollector, get_metrics

logger = logging.getLogger(__name__)

NoteTuple = tuple[Note, ...]


class OptimisticUpdate:
    """
    One optimistic action and its resolution.

    Attributes:
        kind: reorder or toggle_pin
        before: Notes exactly as they were before the action
        preview: Notes as predicted by the action
        state: pending, committed or reverted
    """

    def __init__(
        self,
        kind: ActionKind,
        before: NoteTuple,
        preview: NoteTuple,
        send: Callable[[], Awaitable[None]],
        resync: Callable[[], Awaitable[NoteTuple]] | None,
        metrics: MetricsCollector,
    ) -> None:
        self.kind = kind
        self.before = before
        self.preview = preview
        self.state = ActionState.PENDING
        self._send = send
        self._resync = resync
        self._metrics = metrics
        self._resolved: NoteTuple | None = None

    @property
    def notes(self) -> NoteTuple:
        """What the caller should display right now."""
        if self._resolved is not None:
            return self._resolved
        return self.preview

    async def commit(self) -> NoteTuple:
        """
        Send the mutation and resolve the action.

        Never raises for server-side failures; the returned notes are the
        preview on success, otherwise authoritative (re-fetched) or
        pre-action state.

        Raises:
            InvalidActionStateError: If the action already resolved
        """
        self._require_pending()
        try:
            await self._send()
        except Exception as e:
            logger.warning(
                "Note %s commit failed, reverting: %s", self.kind.value, e,
                exc_info=not isinstance(e, ReorderConflictError),
            )
            self._mark_reverted()
            if self._resync is not None:
                self._resolved = await self._fetch_authoritative()
            return self.notes

        self.state = ActionState.COMMITTED
        self._resolved = self.preview
        self._metrics.record_note_commit(self.kind.value, "committed")
        return self.notes

    def revert(self) -> NoteTuple:
        """
        Abandon a pending action and restore the pre-action notes.

        Raises:
            InvalidActionStateError: If the action already resolved
        """
        self._require_pending()
        self._mark_reverted()
        return self.notes

    def _mark_reverted(self) -> None:
        self.state = ActionState.REVERTED
        self._resolved = self.before
        self._metrics.record_note_commit(self.kind.value, "reverted")

    async def _fetch_authoritative(self) -> NoteTuple:
        try:
            return await self._resync()
        except Exception as e:
            logger.warning("Re-fetch after failed %s failed, keeping pre-action notes: %s", self.kind.value, e)
            return self.before

    def _require_pending(self) -> None:
        if self.state is not ActionState.PENDING:
            raise InvalidActionStateError(
                f"{self.kind.value} action already {self.state.value}"
            )


class ReorderReconciler:
    """
    Builds optimistic actions against an authoritative notes backend.

    Usage:
        reconciler = ReorderReconciler(backend)
        update = reconciler.apply_reorder(notes, dragged_id=5, target_id=2)
        if update is not None:
            show(update.preview)
            notes = await update.commit()
    """

    def __init__(self, backend: NotesBackend, metrics: MetricsCollector | None = None) -> None:
        self._backend = backend
        self._metrics = metrics or get_metrics()

    async def resync(self) -> NoteTuple:
        """Fetch authoritative notes in display order."""
        return tuple(sort_for_display(await self._backend.list_notes()))

    def apply_reorder(
        self,
        notes: Iterable[Note],
        dragged_id: int,
        target_id: int,
        category: str = ALL_CATEGORIES,
    ) -> OptimisticUpdate | None:
        """
        Drop ``dragged_id`` onto ``target_id``.

        Only allowed while every note is visible (category ``all``).

        Returns:
            A pending update, or None for self-drops, drops under a
            category filter, drops across the pinned/unpinned boundary
            and ids not in the list.
        """
        before = tuple(notes)
        if category != ALL_CATEGORIES:
            return None

        reordered = move_before(visible_notes(before, category), dragged_id, target_id)
        if reordered is None:
            return None

        preview = tuple(reordered)
        note_ids = order_ids(preview)

        async def send() -> None:
            await self._backend.update_note_order(note_ids)

        return OptimisticUpdate(
            ActionKind.REORDER, before, preview, send, self.resync, self._metrics
        )

    def apply_toggle_pin(self, notes: Iterable[Note], note_id: int) -> OptimisticUpdate | None:
        """
        Flip a note's pinned flag. Sort orders are left untouched.

        A server answer that disagrees with the predicted flag means
        someone else toggled it concurrently; that is treated as a
        conflict and resolved by re-fetching.

        Returns:
            A pending update, or None if ``note_id`` is not in the list.
        """
        before = tuple(notes)
        if not any(n.note_id == note_id for n in before):
            return None

        preview = tuple(
            sort_for_display(n.toggled() if n.note_id == note_id else n for n in before)
        )
        expected = next(n.is_pinned for n in preview if n.note_id == note_id)

        async def send() -> None:
            pinned = await self._backend.toggle_note_pinned(note_id)
            if pinned != expected:
                raise ReorderConflictError(
                    f"Note {note_id} pinned={pinned} on server, expected {expected}"
                )

        return OptimisticUpdate(
            ActionKind.TOGGLE_PIN, before, preview, send, self.resync, self._metrics
        )
