"""Tests for collapse-driven visibility."""

import pytest

from mindline.document import ROOT_NODE_ID
from mindline.layout import add_child
from mindline.tree_store import new_document
from mindline.visibility import (
    all_descendant_ids,
    descendant_ids,
    hidden_node_ids,
    is_visible,
    toggle_collapse,
    visible_node_ids,
)


@pytest.fixture
def tree():
    doc = new_document("A")
    b = add_child(doc, ROOT_NODE_ID, "B")
    b1 = add_child(doc, b, "B1")
    b1a = add_child(doc, b1, "B1a")
    c = add_child(doc, ROOT_NODE_ID, "C")
    return doc, {"B": b, "B1": b1, "B1a": b1a, "C": c}


def test_everything_visible_by_default(tree):
    doc, _ = tree
    assert set(visible_node_ids(doc)) == set(doc.nodes)
    assert hidden_node_ids(doc) == set()


def test_pre_order_traversal(tree):
    doc, ids = tree
    assert visible_node_ids(doc) == [ROOT_NODE_ID, ids["B"], ids["B1"], ids["B1a"], ids["C"]]


def test_collapse_hides_whole_subtree(tree):
    doc, ids = tree
    assert toggle_collapse(doc, ids["B"]) is True
    assert is_visible(doc, ids["B"])
    assert not is_visible(doc, ids["B1"])
    assert not is_visible(doc, ids["B1a"])
    assert is_visible(doc, ids["C"])


def test_collapse_is_transitive_regardless_of_own_flag(tree):
    doc, ids = tree
    doc.nodes[ids["B1"]].is_collapsed = False
    doc.nodes[ids["B"]].is_collapsed = True
    hidden = {ids["B1"], ids["B1a"]}
    assert hidden_node_ids(doc) == hidden
    for node_id in doc.nodes:
        assert is_visible(doc, node_id) == (node_id not in hidden)


def test_collapsing_only_child_leaves_root_visible():
    doc = new_document("A")
    b = add_child(doc, ROOT_NODE_ID, "B")
    add_child(doc, b, "B1")
    add_child(doc, b, "B2")
    toggle_collapse(doc, b)
    assert visible_node_ids(doc) == [ROOT_NODE_ID, b]


def test_descendant_variants(tree):
    doc, ids = tree
    doc.nodes[ids["B1"]].is_collapsed = True
    assert descendant_ids(doc, ids["B"]) == [ids["B1"]]
    assert all_descendant_ids(doc, ids["B"]) == [ids["B1"], ids["B1a"]]
    assert descendant_ids(doc, ids["B1"]) == []


def test_leaf_cannot_collapse(tree):
    doc, ids = tree
    assert toggle_collapse(doc, ids["C"]) is False
    assert toggle_collapse(doc, "missing") is False
    assert doc.nodes[ids["C"]].is_collapsed is False


def test_collapse_moves_hidden_selection_to_node(tree):
    doc, ids = tree
    doc.selected_ids = [ids["C"], ids["B1a"]]
    toggle_collapse(doc, ids["B"])
    assert doc.selected_ids == [ids["C"], ids["B"]]


def test_collapse_keeps_visible_selection(tree):
    doc, ids = tree
    doc.selected_ids = [ids["C"]]
    toggle_collapse(doc, ids["B"])
    assert doc.selected_ids == [ids["C"]]


def test_expand_restores_visibility(tree):
    doc, ids = tree
    toggle_collapse(doc, ids["B"])
    toggle_collapse(doc, ids["B"])
    assert hidden_node_ids(doc) == set()


def test_unknown_node_is_not_visible(tree):
    doc, _ = tree
    assert is_visible(doc, "missing") is False
