"""Structural mutation primitives for the node tree.

Every function here is total over the document: invalid input leaves the
document untouched and is reported through the return value.
"""

import logging
import re
import uuid
from typing import Iterable, List, Optional

from mindline.document import (
    DEFAULT_NODE_TEXT,
    DEFAULT_ROOT_TEXT,
    ROOT_NODE_ID,
    ConnectorStyle,
    Document,
    LayoutMode,
    Node,
    NodeStyle,
    Position,
)
from mindline.visibility import all_descendant_ids


logger = logging.getLogger(__name__)

_LINE_BREAKS_RE = re.compile(r"[\r\n\t]+")


def _new_node_id(doc: Document) -> str:
    while True:
        node_id = f"node_{uuid.uuid4().hex[:12]}"
        if node_id not in doc.nodes:
            return node_id


def clean_text(text: Optional[str]) -> str:
    """Trim a label and fold line breaks and tabs into single spaces."""
    if not text:
        return ""
    return _LINE_BREAKS_RE.sub(" ", text).strip()


def create_node(doc: Document, text: str, parent_id: Optional[str],
                position: Optional[Position] = None,
                style: NodeStyle = NodeStyle.RECT) -> Optional[str]:
    """Create a node and return its id.

    A None parent creates the root, which is only allowed on an empty
    document. Otherwise the parent must exist and the new node is appended
    to its children. Returns None when the preconditions fail.
    """
    if parent_id is None:
        if not doc.is_empty:
            logger.debug("Refusing to create a second root")
            return None
        node_id = ROOT_NODE_ID
    else:
        parent = doc.get(parent_id)
        if parent is None:
            logger.debug("Refusing to create node under missing parent %s", parent_id)
            return None
        node_id = _new_node_id(doc)
        parent.children_ids.append(node_id)

    doc.nodes[node_id] = Node(
        id=node_id,
        text=clean_text(text) or (DEFAULT_ROOT_TEXT if parent_id is None else DEFAULT_NODE_TEXT),
        parent_id=parent_id,
        position=position or Position(),
        style=style,
    )
    logger.debug("Created node %s under %s", node_id, parent_id)
    return node_id


def delete_subtree(doc: Document, node_id: str) -> List[str]:
    """Remove a node and every descendant, collapsed or not.

    The root cannot be deleted. Deleted ids are also dropped from the
    selection. Returns the removed ids (empty when nothing happened).
    """
    node = doc.get(node_id)
    if node is None or node.is_root:
        return []

    removed = [node_id] + all_descendant_ids(doc, node_id)
    for removed_id in removed:
        doc.nodes.pop(removed_id, None)

    parent = doc.get(node.parent_id)
    if parent is not None:
        parent.children_ids = [c for c in parent.children_ids if c != node_id]

    gone = set(removed)
    doc.selected_ids = [s for s in doc.selected_ids if s not in gone]
    logger.debug("Deleted subtree %s (%d nodes)", node_id, len(removed))
    return removed


def rename_node(doc: Document, node_id: str, text: str) -> bool:
    """Set the node text. Blank text is rejected and the old text kept."""
    node = doc.get(node_id)
    new_text = clean_text(text)
    if node is None or not new_text or new_text == node.text:
        return False
    node.text = new_text
    return True


def set_style(doc: Document, node_ids: Iterable[str], style: NodeStyle) -> List[str]:
    """Apply one style to several nodes; returns the ids that changed."""
    changed = []
    for node_id in node_ids:
        node = doc.get(node_id)
        if node is not None and node.style != style:
            node.style = style
            changed.append(node_id)
    return changed


def new_document(root_text: str = DEFAULT_ROOT_TEXT,
                 root_position: Optional[Position] = None,
                 connector_style: ConnectorStyle = ConnectorStyle.STRAIGHT,
                 layout_mode: LayoutMode = LayoutMode.BIDIRECTIONAL) -> Document:
    """A document holding only a selected root node."""
    doc = Document(connector_style=connector_style, layout_mode=layout_mode)
    create_node(doc, root_text, None, root_position)
    doc.selected_ids = [ROOT_NODE_ID]
    return doc
