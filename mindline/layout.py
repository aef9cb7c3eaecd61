"""Layout engine: derives node positions from tree shape and layout mode.

Positions are absolute node centres. Two strategies coexist:

- incremental placement (``add_child``) puts a new child next to its
  siblings in a zig-zag fan and only nudges the first sibling when the
  fan opens, so manual positions elsewhere are kept;
- full relayout (``apply_layout``) recomputes every position from the root
  and is idempotent for a given mode.
"""

import logging
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

from mindline.document import Document, LayoutMode, Node, NodeStyle, Position
from mindline.tree_store import create_node
from mindline.visibility import all_descendant_ids, descendant_ids


logger = logging.getLogger(__name__)

# Layout constants
OFFSET_X = 200
BASE_OFFSET_Y = 60
SIBLING_OFFSET_Y = 100
ROW_HEIGHT = 80


class Side(Enum):
    """Horizontal side of the root a branch grows on."""
    LEFT = -1
    RIGHT = 1


def side_of(doc: Document, node_id: str) -> Optional[Side]:
    """Side of the root the node lies on; None for the root itself."""
    root = doc.root
    node = doc.get(node_id)
    if root is None or node is None or node.id == root.id:
        return None
    return Side.LEFT if node.position.x < root.position.x else Side.RIGHT


def _growth_direction(doc: Document, parent: Node) -> int:
    """Horizontal direction (+1/-1) in which children of ``parent`` grow."""
    if doc.layout_mode == LayoutMode.RTL:
        return -1
    if doc.layout_mode == LayoutMode.LTR:
        return 1
    side = side_of(doc, parent.id)
    return side.value if side is not None else 1


def translate(doc: Document, node_ids: Iterable[str], dx: float, dy: float):
    for node_id in node_ids:
        node = doc.get(node_id)
        if node is not None:
            node.position = node.position.translated(dx, dy)


def _fan_offset(doc: Document, parent: Node, siblings: List[Node]) -> float:
    """Vertical offset of the next child given the siblings on its side."""
    count = len(siblings)
    if count == 0:
        return 0.0
    if count == 1:
        # Open the fan: lift the lone child (and its subtree) above the line.
        first = siblings[0]
        dy = (parent.position.y - BASE_OFFSET_Y) - first.position.y
        translate(doc, [first.id] + all_descendant_ids(doc, first.id), 0.0, dy)
        return float(BASE_OFFSET_Y)
    sign = 1 if count % 2 == 0 else -1
    return float(sign * ((count // 2) * SIBLING_OFFSET_Y + BASE_OFFSET_Y))


def add_child(doc: Document, parent_id: str, text: str,
              style: NodeStyle = NodeStyle.RECT) -> Optional[str]:
    """Create a child of ``parent_id`` at an automatically chosen position.

    Under bidirectional layout, root children join the side with fewer
    children (ties go left). Returns the new id, or None when the parent
    does not exist.
    """
    parent = doc.get(parent_id)
    if parent is None:
        return None

    children = doc.children(parent_id)
    if doc.layout_mode == LayoutMode.BIDIRECTIONAL and parent.is_root:
        left = [c for c in children if side_of(doc, c.id) == Side.LEFT]
        right = [c for c in children if side_of(doc, c.id) == Side.RIGHT]
        add_left = len(left) <= len(right)
        direction = -1 if add_left else 1
        siblings = left if add_left else right
    else:
        direction = _growth_direction(doc, parent)
        siblings = children

    offset_y = _fan_offset(doc, parent, siblings)
    position = Position(parent.position.x + direction * OFFSET_X,
                        parent.position.y + offset_y)
    return create_node(doc, text, parent_id, position, style)


def _leaf_counts(doc: Document) -> Dict[str, int]:
    """Number of leaves under each node (a leaf counts itself)."""
    root = doc.root
    if root is None:
        return {}
    order = [root.id] + all_descendant_ids(doc, root.id)
    counts: Dict[str, int] = {}
    for node_id in reversed(order):
        child_ids = [c for c in doc.nodes[node_id].children_ids if c in doc.nodes]
        counts[node_id] = sum(counts[c] for c in child_ids) or 1
    return counts


def _place_block(doc: Document, parent: Node, child_ids: List[str], direction: int,
                 leaves: Dict[str, int]) -> List[Tuple[str, int]]:
    """Stack children as one block centred on the parent's y."""
    total = sum(leaves[c] for c in child_ids) * ROW_HEIGHT
    cursor = parent.position.y - total / 2
    placed = []
    for child_id in child_ids:
        band = leaves[child_id] * ROW_HEIGHT
        doc.nodes[child_id].position = Position(
            parent.position.x + direction * OFFSET_X,
            cursor + band / 2,
        )
        cursor += band
        placed.append((child_id, direction))
    return placed


def apply_layout(doc: Document):
    """Recompute every node position from the root for the current mode.

    The root stays where it is. Collapse flags are ignored: hidden
    branches are laid out too so they reappear in place when expanded.
    """
    root = doc.root
    if root is None:
        return

    leaves = _leaf_counts(doc)
    root_children = [c for c in root.children_ids if c in doc.nodes]

    if doc.layout_mode == LayoutMode.BIDIRECTIONAL:
        left = root_children[0::2]
        right = root_children[1::2]
        stack = (_place_block(doc, root, left, -1, leaves)
                 + _place_block(doc, root, right, 1, leaves))
    else:
        direction = -1 if doc.layout_mode == LayoutMode.RTL else 1
        stack = _place_block(doc, root, root_children, direction, leaves)

    while stack:
        node_id, direction = stack.pop()
        node = doc.nodes[node_id]
        child_ids = [c for c in node.children_ids if c in doc.nodes]
        stack.extend(_place_block(doc, node, child_ids, direction, leaves))

    logger.debug("Applied %s layout to %d nodes", doc.layout_mode.value, len(doc.nodes))


def move_subtree(doc: Document, node_id: str, dx: float, dy: float) -> List[str]:
    """Translate a node and its visible descendants; returns moved ids."""
    if node_id not in doc.nodes:
        return []
    moved = [node_id] + descendant_ids(doc, node_id)
    translate(doc, moved, dx, dy)
    return moved


def move_nodes(doc: Document, node_ids: Iterable[str], dx: float, dy: float) -> List[str]:
    """Translate several subtrees at once.

    A node whose ancestor is also being moved is skipped, since the
    ancestor's translation already carries it.
    """
    requested = [n for n in dict.fromkeys(node_ids) if n in doc.nodes]
    chosen = set(requested)
    moved: List[str] = []
    for node_id in requested:
        if any(a in chosen for a in doc.ancestor_ids(node_id)):
            continue
        moved.extend(move_subtree(doc, node_id, dx, dy))
    return moved
