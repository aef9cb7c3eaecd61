"""Visibility resolver driven by per-node collapse flags.

Traversals are iterative over the id-indexed node map and return ids in
depth-first pre-order, children in sibling order.
"""

import logging
from typing import List, Set

from mindline.document import Document


logger = logging.getLogger(__name__)


def _walk(doc: Document, node_id: str, through_collapsed: bool) -> List[str]:
    node = doc.get(node_id)
    if node is None:
        return []
    if node.is_collapsed and not through_collapsed:
        return []

    result: List[str] = []
    stack = list(reversed(node.children_ids))
    while stack:
        current_id = stack.pop()
        current = doc.get(current_id)
        if current is None:
            continue
        result.append(current_id)
        if current.is_collapsed and not through_collapsed:
            continue
        stack.extend(reversed(current.children_ids))
    return result


def descendant_ids(doc: Document, node_id: str) -> List[str]:
    """Descendants reachable without passing through a collapsed node.

    A collapsed node has no traversable descendants. Used for selection
    ranges and drag propagation.
    """
    return _walk(doc, node_id, through_collapsed=False)


def all_descendant_ids(doc: Document, node_id: str) -> List[str]:
    """Every descendant regardless of collapse state (deletion path)."""
    return _walk(doc, node_id, through_collapsed=True)


def is_visible(doc: Document, node_id: str) -> bool:
    """True when the node exists and no ancestor is collapsed."""
    if node_id not in doc.nodes:
        return False
    for ancestor_id in doc.ancestor_ids(node_id):
        ancestor = doc.nodes.get(ancestor_id)
        if ancestor is not None and ancestor.is_collapsed:
            return False
    return True


def visible_node_ids(doc: Document) -> List[str]:
    """All displayable ids in pre-order, starting at the root."""
    root = doc.root
    if root is None:
        return []
    return [root.id] + descendant_ids(doc, root.id)


def hidden_node_ids(doc: Document) -> Set[str]:
    return set(doc.nodes) - set(visible_node_ids(doc))


def toggle_collapse(doc: Document, node_id: str) -> bool:
    """Flip the collapse flag of a node that has children.

    Selected ids hidden by a collapse are dropped from the selection and
    the collapsed node takes their place as the active node. Returns False
    when nothing changed.
    """
    node = doc.get(node_id)
    if node is None or not node.children_ids:
        return False

    node.is_collapsed = not node.is_collapsed
    if node.is_collapsed:
        hidden = set(all_descendant_ids(doc, node_id))
        kept = [s for s in doc.selected_ids if s not in hidden]
        if len(kept) != len(doc.selected_ids):
            doc.selected_ids = [s for s in kept if s != node_id] + [node_id]
    logger.debug("Node %s collapsed=%s", node_id, node.is_collapsed)
    return True
