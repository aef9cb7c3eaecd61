"""Shared fixtures for the Mindline test suite."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Callable, List, Tuple

import pytest

PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from mindline.database import Database  # noqa: E402
from mindline.document import ROOT_NODE_ID, Document  # noqa: E402
from mindline.session import MindMapSession  # noqa: E402


class FakeScheduler:
    """Manual clock standing in for GLib timeouts."""

    def __init__(self):
        self.now = 0
        self._next_handle = 0
        self._timers: List[Tuple[int, int, Callable[[], None]]] = []

    @property
    def pending(self) -> int:
        return len(self._timers)

    def schedule(self, delay_ms: int, callback: Callable[[], None]) -> Any:
        self._next_handle += 1
        self._timers.append((self.now + delay_ms, self._next_handle, callback))
        return self._next_handle

    def cancel(self, handle: Any) -> None:
        self._timers = [t for t in self._timers if t[1] != handle]

    def advance(self, ms: int):
        """Move the clock forward, firing timers that come due in order."""
        target = self.now + ms
        while True:
            due = sorted(t for t in self._timers if t[0] <= target)
            if not due:
                break
            when, handle, callback = due[0]
            self._timers.remove(due[0])
            self.now = when
            callback()
        self.now = target


def assert_invariants(doc: Document):
    """Check the structural contract every committed document must meet."""
    roots = [n for n in doc.nodes.values() if n.parent_id is None]
    assert [n.id for n in roots] == [ROOT_NODE_ID]

    for node in doc.nodes.values():
        assert len(node.children_ids) == len(set(node.children_ids)), node.id
        for child_id in node.children_ids:
            assert child_id in doc.nodes, child_id
            assert doc.nodes[child_id].parent_id == node.id
        if node.parent_id is not None:
            assert node.parent_id in doc.nodes, node.id
            assert node.id in doc.nodes[node.parent_id].children_ids

    seen = set()
    stack = [ROOT_NODE_ID]
    while stack:
        node_id = stack.pop()
        assert node_id not in seen, f"cycle through {node_id}"
        seen.add(node_id)
        stack.extend(doc.nodes[node_id].children_ids)
    assert seen == set(doc.nodes)

    for selected_id in doc.selected_ids:
        assert selected_id in doc.nodes


@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture
def db(tmp_path):
    database = Database(tmp_path / "mindline.db")
    yield database
    database.close()


@pytest.fixture
def session() -> MindMapSession:
    """A session with no store and no timers: edits apply immediately."""
    return MindMapSession()


@pytest.fixture
def invariants():
    return assert_invariants
