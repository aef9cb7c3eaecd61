"""Snapshot-based undo/redo history for Mindline."""

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

from mindline.document import Document


logger = logging.getLogger(__name__)


@dataclass
class HistoryEntry:
    """A document snapshot plus a label for the toolbar tooltip."""
    snapshot: Document
    description: str = ""


class HistoryManager:
    """Manages undo/redo history.

    Each entry holds a full copy of the document taken before (undo stack)
    or after (redo stack) an action. Once pushed, a snapshot is owned by the
    manager: callers hand in copies and get copies back.
    """

    def __init__(self, max_undo: int = 100, max_redo: int = 100):
        self.max_undo = max_undo
        self.max_redo = max_redo
        self._undo_stack: List[HistoryEntry] = []
        self._redo_stack: List[HistoryEntry] = []

        # Callbacks
        self.on_state_changed: Optional[Callable[[], None]] = None

    @property
    def can_undo(self) -> bool:
        """Check if undo is available."""
        return len(self._undo_stack) > 0

    @property
    def can_redo(self) -> bool:
        """Check if redo is available."""
        return len(self._redo_stack) > 0

    @property
    def undo_depth(self) -> int:
        return len(self._undo_stack)

    @property
    def redo_depth(self) -> int:
        return len(self._redo_stack)

    @property
    def undo_description(self) -> str:
        """Get description of next undo action."""
        if self._undo_stack:
            return self._undo_stack[-1].description
        return ""

    @property
    def redo_description(self) -> str:
        """Get description of next redo action."""
        if self._redo_stack:
            return self._redo_stack[-1].description
        return ""

    def commit(self, before: Document, description: str = ""):
        """Record the state captured before a completed action."""
        self._undo_stack.append(HistoryEntry(before.snapshot(), description))
        self._redo_stack.clear()  # Clear redo on new action

        # Trim history if needed
        while len(self._undo_stack) > self.max_undo:
            self._undo_stack.pop(0)

        logger.debug("History commit: %s (depth %d)", description or "-", len(self._undo_stack))
        self._notify_changed()

    def commit_if_changed(self, before: Document, after: Document,
                          description: str = "") -> bool:
        """Commit only when the action produced a structural change."""
        if before == after:
            return False
        self.commit(before, description)
        return True

    def undo(self, current: Document) -> Optional[Document]:
        """Swap ``current`` for the previous snapshot.

        Returns the document to restore, or None when there is nothing to
        undo.
        """
        if not self._undo_stack:
            return None

        entry = self._undo_stack.pop()
        self._redo_stack.append(HistoryEntry(current.snapshot(), entry.description))
        while len(self._redo_stack) > self.max_redo:
            self._redo_stack.pop(0)

        logger.debug("Undo: %s", entry.description or "-")
        self._notify_changed()
        return entry.snapshot.snapshot()

    def redo(self, current: Document) -> Optional[Document]:
        """Swap ``current`` for the next snapshot on the redo stack."""
        if not self._redo_stack:
            return None

        entry = self._redo_stack.pop()
        self._undo_stack.append(HistoryEntry(current.snapshot(), entry.description))
        while len(self._undo_stack) > self.max_undo:
            self._undo_stack.pop(0)

        logger.debug("Redo: %s", entry.description or "-")
        self._notify_changed()
        return entry.snapshot.snapshot()

    def clear(self):
        """Clear all history."""
        self._undo_stack.clear()
        self._redo_stack.clear()
        self._notify_changed()

    def _notify_changed(self):
        """Notify that undo/redo state changed."""
        if self.on_state_changed:
            self.on_state_changed()
