"""Data models for note pinning and reordering."""

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Protocol

ALL_CATEGORIES = "all"


class ActionKind(str, Enum):
    """Mutating actions that go through the optimistic protocol."""

    REORDER = "reorder"
    TOGGLE_PIN = "toggle_pin"


class ActionState(str, Enum):
    """Lifecycle of one optimistic action."""

    PENDING = "pending"
    COMMITTED = "committed"
    REVERTED = "reverted"


@dataclass(frozen=True)
class Note:
    """A creative note as far as ordering is concerned."""

    note_id: int
    content: str = ""
    category: str = "ideas"
    is_pinned: bool = False
    sort_order: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def with_order(self, sort_order: int) -> "Note":
        return replace(self, sort_order=sort_order)

    def toggled(self) -> "Note":
        return replace(self, is_pinned=not self.is_pinned)


class NotesBackend(Protocol):
    """Authoritative note state (the server)."""

    async def list_notes(self) -> list[Note]:
        ...

    async def update_note_order(self, note_ids: list[int]) -> None:
        ...

    async def toggle_note_pinned(self, note_id: int) -> bool:
        ...
