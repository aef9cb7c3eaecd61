"""Tests for selection state and arrow-key navigation."""

import pytest

from mindline.document import ROOT_NODE_ID, LayoutMode
from mindline.layout import Side, add_child
from mindline.selection import (
    ArrowKey,
    NavDirection,
    Navigator,
    active_id,
    clear,
    prune,
    select,
    select_subtree,
    toggle,
)
from mindline.tree_store import new_document


@pytest.fixture
def fan():
    """Root with B and D on the left (B above D) and C on the right."""
    doc = new_document("Root")
    b = add_child(doc, ROOT_NODE_ID, "B")
    c = add_child(doc, ROOT_NODE_ID, "C")
    d = add_child(doc, ROOT_NODE_ID, "D")
    return doc, {"B": b, "C": c, "D": d}


class TestSelection:
    def test_select_replaces(self, fan):
        doc, ids = fan
        assert select(doc, ids["B"]) is True
        assert doc.selected_ids == [ids["B"]]
        assert select(doc, ids["B"]) is False

    def test_toggle_adds_and_removes(self, fan):
        doc, ids = fan
        select(doc, ids["B"])
        toggle(doc, ids["C"])
        assert doc.selected_ids == [ids["B"], ids["C"]]
        assert active_id(doc) == ids["C"]
        toggle(doc, ids["B"])
        assert doc.selected_ids == [ids["C"]]

    def test_hidden_nodes_cannot_be_selected(self, fan):
        doc, ids = fan
        child = add_child(doc, ids["B"], "B1")
        doc.nodes[ids["B"]].is_collapsed = True
        assert select(doc, child) is False
        assert toggle(doc, child) is False
        assert select(doc, "missing") is False

    def test_select_none_and_clear(self, fan):
        doc, ids = fan
        select(doc, ids["B"])
        assert select(doc, None) is True
        assert doc.selected_ids == []
        assert clear(doc) is False

    def test_select_subtree_keeps_node_active(self, fan):
        doc, ids = fan
        b1 = add_child(doc, ids["B"], "B1")
        b2 = add_child(doc, ids["B"], "B2")
        assert select_subtree(doc, ids["B"]) is True
        assert set(doc.selected_ids) == {ids["B"], b1, b2}
        assert active_id(doc) == ids["B"]

    def test_prune_drops_hidden_and_missing(self, fan):
        doc, ids = fan
        b1 = add_child(doc, ids["B"], "B1")
        doc.nodes[ids["B"]].is_collapsed = True
        doc.selected_ids = [ids["C"], b1, "missing", ids["C"]]
        prune(doc)
        assert doc.selected_ids == [ids["C"]]


class TestNavigator:
    def test_no_active_node_goes_to_root(self, fan):
        doc, _ = fan
        doc.selected_ids = []
        assert Navigator().navigate(doc, NavDirection.CHILD) is True
        assert doc.selected_ids == [ROOT_NODE_ID]

    def test_parent(self, fan):
        doc, ids = fan
        select(doc, ids["B"])
        assert Navigator().navigate(doc, NavDirection.PARENT) is True
        assert active_id(doc) == ROOT_NODE_ID

    def test_root_has_no_parent(self, fan):
        doc, _ = fan
        assert Navigator().navigate(doc, NavDirection.PARENT) is False

    def test_child_picks_nearest_vertically(self, fan):
        doc, ids = fan
        assert Navigator().navigate(doc, NavDirection.CHILD) is True
        assert active_id(doc) == ids["C"]

    def test_siblings_stay_on_their_side_and_do_not_wrap(self, fan):
        doc, ids = fan
        nav = Navigator()
        select(doc, ids["B"])
        assert nav.navigate(doc, NavDirection.NEXT_SIBLING) is True
        assert active_id(doc) == ids["D"]
        assert nav.navigate(doc, NavDirection.NEXT_SIBLING) is False
        assert nav.navigate(doc, NavDirection.PREV_SIBLING) is True
        assert active_id(doc) == ids["B"]
        assert nav.navigate(doc, NavDirection.PREV_SIBLING) is False

    def test_sweep_across_the_root(self, fan):
        """Up to the root from one side, then down lands on the other side."""
        doc, ids = fan
        nav = Navigator()
        select(doc, ids["B"])
        nav.navigate(doc, NavDirection.PARENT)
        nav.navigate(doc, NavDirection.CHILD)
        assert active_id(doc) == ids["C"]

        nav.navigate(doc, NavDirection.PARENT)
        nav.navigate(doc, NavDirection.CHILD)
        assert active_id(doc) == ids["B"]

    def test_reset_forgets_sweep(self, fan):
        doc, ids = fan
        nav = Navigator()
        select(doc, ids["C"])
        nav.navigate(doc, NavDirection.PARENT)
        nav.reset()
        assert nav.target(doc, NavDirection.CHILD) == ids["C"]

    def test_collapsed_node_has_no_child_target(self, fan):
        doc, ids = fan
        add_child(doc, ids["C"], "C1")
        doc.nodes[ids["C"]].is_collapsed = True
        select(doc, ids["C"])
        assert Navigator().navigate(doc, NavDirection.CHILD) is False

    def test_nested_siblings_sorted_by_position(self, fan):
        doc, ids = fan
        first = add_child(doc, ids["C"], "C1")
        second = add_child(doc, ids["C"], "C2")
        select(doc, second)
        assert Navigator().navigate(doc, NavDirection.PREV_SIBLING) is True
        assert active_id(doc) == first


class TestArrowKeys:
    def test_outward_arrow_enters_children(self, fan):
        doc, ids = fan
        leaf = add_child(doc, ids["B"], "B1")
        select(doc, ids["B"])
        assert Navigator().navigate_arrow(doc, ArrowKey.LEFT) is True
        assert active_id(doc) == leaf

    def test_inward_arrow_returns_to_parent(self, fan):
        doc, ids = fan
        select(doc, ids["B"])
        assert Navigator().navigate_arrow(doc, ArrowKey.RIGHT) is True
        assert active_id(doc) == ROOT_NODE_ID

    def test_root_arrows_pick_a_side(self, fan):
        doc, ids = fan
        nav = Navigator()
        assert nav.navigate_arrow(doc, ArrowKey.RIGHT) is True
        assert active_id(doc) == ids["C"]
        select(doc, ROOT_NODE_ID)
        assert nav.navigate_arrow(doc, ArrowKey.LEFT) is True
        assert active_id(doc) in (ids["B"], ids["D"])

    def test_root_arrow_towards_empty_side(self):
        doc = new_document()
        add_child(doc, ROOT_NODE_ID, "only-left")
        assert Navigator().navigate_arrow(doc, ArrowKey.RIGHT) is False
        assert doc.selected_ids == [ROOT_NODE_ID]

    def test_vertical_arrows_walk_siblings(self, fan):
        doc, ids = fan
        select(doc, ids["D"])
        assert Navigator().navigate_arrow(doc, ArrowKey.UP) is True
        assert active_id(doc) == ids["B"]

    def test_rtl_uses_left_as_outward(self):
        doc = new_document(layout_mode=LayoutMode.RTL)
        a = add_child(doc, ROOT_NODE_ID, "A")
        nav = Navigator()
        assert nav.navigate_arrow(doc, ArrowKey.LEFT) is True
        assert active_id(doc) == a
        assert nav.navigate_arrow(doc, ArrowKey.RIGHT) is True
        assert active_id(doc) == ROOT_NODE_ID


def test_side_enum_values():
    assert Side(-Side.LEFT.value) == Side.RIGHT
