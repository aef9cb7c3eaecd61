"""Tests for the snapshot history."""

from mindline.document import ROOT_NODE_ID, ConnectorStyle
from mindline.layout import add_child
from mindline.tree_store import new_document, rename_node
from mindline.undo import HistoryManager


class TestHistoryManager:
    def test_empty_history(self):
        history = HistoryManager()
        doc = new_document()
        assert not history.can_undo
        assert not history.can_redo
        assert history.undo(doc) is None
        assert history.redo(doc) is None

    def test_undo_then_redo(self):
        history = HistoryManager()
        doc = new_document()
        before = doc.snapshot()
        add_child(doc, ROOT_NODE_ID, "A")
        history.commit(before, "Add node")
        after = doc.snapshot()

        restored = history.undo(doc)
        assert restored == before
        assert history.can_redo
        assert history.redo_description == "Add node"

        again = history.redo(restored)
        assert again == after
        assert history.undo_depth == 1
        assert history.redo_depth == 0

    def test_commit_clears_redo(self):
        history = HistoryManager()
        doc = new_document()
        history.commit(doc, "one")
        doc = history.undo(doc)
        history.commit(doc, "two")
        assert not history.can_redo
        assert history.undo_description == "two"

    def test_snapshots_are_independent(self):
        history = HistoryManager()
        doc = new_document("Original")
        history.commit(doc)
        rename_node(doc, ROOT_NODE_ID, "Changed")
        restored = history.undo(doc)
        assert restored.root.text == "Original"
        restored.root.text = "Mutated"
        assert history.redo(restored).root.text == "Changed"

    def test_commit_if_changed(self):
        history = HistoryManager()
        doc = new_document()
        assert history.commit_if_changed(doc.snapshot(), doc) is False
        before = doc.snapshot()
        doc.connector_style = ConnectorStyle.CURVED
        assert history.commit_if_changed(before, doc) is True
        assert history.undo_depth == 1

    def test_limit_drops_oldest(self):
        history = HistoryManager(max_undo=3)
        doc = new_document()
        for i in range(5):
            history.commit(doc, str(i))
        assert history.undo_depth == 3
        assert history.undo_description == "4"

    def test_undo_all_restores_first_state(self):
        history = HistoryManager()
        doc = new_document()
        initial = doc.snapshot()
        for text in ("a", "b", "c"):
            before = doc.snapshot()
            add_child(doc, ROOT_NODE_ID, text)
            history.commit(before)
        while history.can_undo:
            doc = history.undo(doc)
        assert doc == initial

    def test_state_callback(self):
        history = HistoryManager()
        calls = []
        history.on_state_changed = lambda: calls.append(1)
        doc = new_document()
        history.commit(doc)
        history.undo(doc)
        history.clear()
        assert len(calls) == 3
