"""Tests for the structural tree primitives."""

import pytest

from mindline.document import (
    DEFAULT_NODE_TEXT,
    DEFAULT_ROOT_TEXT,
    ROOT_NODE_ID,
    Document,
    NodeStyle,
    Position,
)
from mindline.tree_store import (
    clean_text,
    create_node,
    delete_subtree,
    new_document,
    rename_node,
    set_style,
)


@pytest.fixture
def doc():
    """Root with two branches; the first has two nested descendants."""
    document = new_document("Root")
    a = create_node(document, "A", ROOT_NODE_ID)
    a1 = create_node(document, "A1", a)
    create_node(document, "A1a", a1)
    create_node(document, "B", ROOT_NODE_ID)
    return document


def _id_of(doc, text):
    return next(n.id for n in doc.nodes.values() if n.text == text)


class TestCreateNode:
    def test_root_gets_reserved_id(self):
        doc = Document()
        assert create_node(doc, "Hello", None) == ROOT_NODE_ID
        assert doc.root.text == "Hello"
        assert doc.root.parent_id is None

    def test_second_root_is_rejected(self, invariants):
        doc = new_document()
        assert create_node(doc, "Other", None) is None
        assert len(doc.nodes) == 1
        invariants(doc)

    def test_missing_parent_is_rejected(self):
        doc = new_document()
        assert create_node(doc, "Orphan", "nope") is None
        assert len(doc.nodes) == 1

    def test_child_is_appended_in_order(self, doc, invariants):
        root = doc.root
        assert [doc.nodes[c].text for c in root.children_ids] == ["A", "B"]
        invariants(doc)

    def test_blank_text_gets_default(self):
        doc = Document()
        create_node(doc, "   ", None)
        child = create_node(doc, "", ROOT_NODE_ID)
        assert doc.root.text == DEFAULT_ROOT_TEXT
        assert doc.nodes[child].text == DEFAULT_NODE_TEXT

    def test_position_and_style_are_kept(self):
        doc = new_document()
        node_id = create_node(doc, "x", ROOT_NODE_ID, Position(5, 6), NodeStyle.PILL)
        assert doc.nodes[node_id].position == Position(5, 6)
        assert doc.nodes[node_id].style == NodeStyle.PILL

    def test_ids_are_unique(self):
        doc = new_document()
        ids = {create_node(doc, "n", ROOT_NODE_ID) for _ in range(50)}
        assert len(ids) == 50


class TestDeleteSubtree:
    def test_removes_descendants(self, doc, invariants):
        a = _id_of(doc, "A")
        removed = delete_subtree(doc, a)
        assert len(removed) == 3
        assert {n.text for n in doc.nodes.values()} == {"Root", "B"}
        assert all(n.parent_id != a for n in doc.nodes.values())
        invariants(doc)

    def test_reaches_collapsed_descendants(self, doc, invariants):
        a = _id_of(doc, "A")
        doc.nodes[_id_of(doc, "A1")].is_collapsed = True
        doc.nodes[a].is_collapsed = True
        delete_subtree(doc, a)
        assert "A1a" not in {n.text for n in doc.nodes.values()}
        invariants(doc)

    def test_root_cannot_be_deleted(self, doc):
        assert delete_subtree(doc, ROOT_NODE_ID) == []
        assert len(doc.nodes) == 5

    def test_unknown_id_is_noop(self, doc):
        assert delete_subtree(doc, "missing") == []
        assert len(doc.nodes) == 5

    def test_deleted_ids_leave_selection(self, doc):
        a1 = _id_of(doc, "A1")
        b = _id_of(doc, "B")
        doc.selected_ids = [a1, b]
        delete_subtree(doc, _id_of(doc, "A"))
        assert doc.selected_ids == [b]


class TestRenameAndStyle:
    def test_rename_trims_and_folds_line_breaks(self, doc):
        b = _id_of(doc, "B")
        assert rename_node(doc, b, "  Big\nidea\t\n") is True
        assert doc.nodes[b].text == "Big idea"

    def test_rename_keeps_inner_spacing(self, doc):
        b = _id_of(doc, "B")
        assert rename_node(doc, b, "a  b") is True
        assert doc.nodes[b].text == "a  b"

    def test_blank_rename_keeps_old_text(self, doc):
        b = _id_of(doc, "B")
        assert rename_node(doc, b, "   ") is False
        assert doc.nodes[b].text == "B"

    def test_same_text_is_not_a_change(self, doc):
        assert rename_node(doc, _id_of(doc, "B"), "B") is False

    def test_set_style_reports_changed_ids(self, doc):
        a = _id_of(doc, "A")
        b = _id_of(doc, "B")
        doc.nodes[b].style = NodeStyle.UNDERLINE
        changed = set_style(doc, [a, b, "missing"], NodeStyle.UNDERLINE)
        assert changed == [a]
        assert doc.nodes[a].style == NodeStyle.UNDERLINE


def test_clean_text():
    assert clean_text(None) == ""
    assert clean_text(" a\tb  c \r\n") == "a b  c"


def test_new_document_selects_root():
    doc = new_document()
    assert list(doc.nodes) == [ROOT_NODE_ID]
    assert doc.selected_ids == [ROOT_NODE_ID]
    assert doc.root.style == NodeStyle.RECT
