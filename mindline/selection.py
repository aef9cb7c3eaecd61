"""Selection state and keyboard navigation over visible nodes."""

from enum import Enum
from typing import List, Optional

from mindline.document import Document, LayoutMode, Node
from mindline.layout import Side, side_of
from mindline.visibility import descendant_ids, is_visible


class NavDirection(Enum):
    """Semantic navigation moves over the tree structure."""
    PARENT = "parent"
    CHILD = "child"
    PREV_SIBLING = "prev_sibling"
    NEXT_SIBLING = "next_sibling"


class ArrowKey(Enum):
    UP = "up"
    DOWN = "down"
    LEFT = "left"
    RIGHT = "right"


# ==================== Selection ====================

def active_id(doc: Document) -> Optional[str]:
    """The most recently selected id."""
    return doc.selected_ids[-1] if doc.selected_ids else None


def select(doc: Document, node_id: Optional[str]) -> bool:
    """Replace the selection with a single node (None clears it).

    Hidden or unknown nodes cannot be selected.
    """
    if node_id is None:
        changed = bool(doc.selected_ids)
        doc.selected_ids = []
        return changed
    if not is_visible(doc, node_id):
        return False
    if doc.selected_ids == [node_id]:
        return False
    doc.selected_ids = [node_id]
    return True


def clear(doc: Document) -> bool:
    changed = bool(doc.selected_ids)
    doc.selected_ids = []
    return changed


def toggle(doc: Document, node_id: str) -> bool:
    """Add a node to the selection, or remove it when already selected."""
    if node_id in doc.selected_ids:
        doc.selected_ids = [s for s in doc.selected_ids if s != node_id]
        return True
    if not is_visible(doc, node_id):
        return False
    doc.selected_ids = doc.selected_ids + [node_id]
    return True


def select_subtree(doc: Document, node_id: str) -> bool:
    """Select a node plus its visible descendants; the node stays active."""
    if not is_visible(doc, node_id):
        return False
    doc.selected_ids = descendant_ids(doc, node_id) + [node_id]
    return True


def prune(doc: Document):
    """Drop selected ids that no longer exist or are hidden."""
    doc.selected_ids = [s for s in dict.fromkeys(doc.selected_ids) if is_visible(doc, s)]


# ==================== Navigation ====================

def _by_vertical(nodes: List[Node]) -> List[Node]:
    return sorted(nodes, key=lambda n: (n.position.y, n.position.x))


def _nearest(nodes: List[Node], y: float) -> Optional[Node]:
    if not nodes:
        return None
    return min(_by_vertical(nodes), key=lambda n: abs(n.position.y - y))


class Navigator:
    """Directional moves for arrow-key traversal.

    Remembers the side a walk towards the root came from, so that moving
    down again from the root sweeps across to the opposite side of a
    bidirectional fan instead of bouncing back into the same branch.
    """

    def __init__(self):
        self.last_direction: Optional[NavDirection] = None
        self.came_from_side: Optional[Side] = None

    def reset(self):
        self.last_direction = None
        self.came_from_side = None

    def _visible_children(self, doc: Document, node: Node) -> List[Node]:
        if node.is_collapsed:
            return []
        return [c for c in doc.children(node.id) if is_visible(doc, c.id)]

    def target(self, doc: Document, direction: NavDirection,
               side: Optional[Side] = None) -> Optional[str]:
        """Return the id a move would land on, without moving."""
        current = doc.get(active_id(doc))
        if current is None:
            root = doc.root
            return root.id if root is not None else None

        if direction == NavDirection.PARENT:
            return current.parent_id

        if direction == NavDirection.CHILD:
            children = self._visible_children(doc, current)
            if current.is_root and doc.layout_mode == LayoutMode.BIDIRECTIONAL:
                wanted = side
                if (wanted is None and self.last_direction == NavDirection.PARENT
                        and self.came_from_side is not None):
                    wanted = Side(-self.came_from_side.value)
                if wanted is not None:
                    on_side = [c for c in children if side_of(doc, c.id) == wanted]
                    if side is not None or on_side:
                        children = on_side
            nearest = _nearest(children, current.position.y)
            return nearest.id if nearest is not None else None

        if current.is_root:
            return None
        siblings = [s for s in doc.children(current.parent_id) if is_visible(doc, s.id)]
        parent = doc.get(current.parent_id)
        if parent is not None and parent.is_root and doc.layout_mode == LayoutMode.BIDIRECTIONAL:
            my_side = side_of(doc, current.id)
            siblings = [s for s in siblings if side_of(doc, s.id) == my_side]
        ordered = _by_vertical(siblings)
        index = next((i for i, s in enumerate(ordered) if s.id == current.id), None)
        if index is None:
            return None
        if direction == NavDirection.PREV_SIBLING:
            return ordered[index - 1].id if index > 0 else None
        return ordered[index + 1].id if index < len(ordered) - 1 else None

    def navigate(self, doc: Document, direction: NavDirection,
                 side: Optional[Side] = None) -> bool:
        """Move the single selection; returns True when it moved."""
        origin = active_id(doc)
        target_id = self.target(doc, direction, side)
        if target_id is None or target_id == origin or not select(doc, target_id):
            return False
        if direction == NavDirection.PARENT:
            self.came_from_side = side_of(doc, origin) if origin else None
        else:
            self.came_from_side = None
        self.last_direction = direction
        return True

    def navigate_arrow(self, doc: Document, key: ArrowKey) -> bool:
        """Map an arrow key onto a semantic move for the active node."""
        if key == ArrowKey.UP:
            return self.navigate(doc, NavDirection.PREV_SIBLING)
        if key == ArrowKey.DOWN:
            return self.navigate(doc, NavDirection.NEXT_SIBLING)

        pressed = Side.LEFT if key == ArrowKey.LEFT else Side.RIGHT
        current = doc.get(active_id(doc))
        if current is None:
            return self.navigate(doc, NavDirection.CHILD)

        if doc.layout_mode == LayoutMode.RTL:
            outward = Side.LEFT
        elif doc.layout_mode == LayoutMode.LTR:
            outward = Side.RIGHT
        elif current.is_root:
            return self.navigate(doc, NavDirection.CHILD, side=pressed)
        else:
            outward = side_of(doc, current.id)

        if pressed == outward:
            return self.navigate(doc, NavDirection.CHILD)
        return self.navigate(doc, NavDirection.PARENT)
