"""Outline text codec.

The outline format is one node per line, two spaces of indentation per
depth level, a ``- `` marker and an optional trailing style tag::

    - Central Topic
      - Branch {style:underline}
        - Leaf
"""

import logging
import re
from dataclasses import dataclass
from typing import List, Optional

from mindline.document import (
    ROOT_NODE_ID,
    ConnectorStyle,
    Document,
    LayoutMode,
    NodeStyle,
    Position,
)
from mindline.layout import add_child
from mindline.tree_store import clean_text, create_node, new_document


logger = logging.getLogger(__name__)

INDENT = "  "
MARKER = "- "
_STYLE_SUFFIX_RE = re.compile(r" \{style:(\w+)\}$")


class OutlineError(ValueError):
    """Raised for outline text that cannot describe a tree."""


@dataclass
class OutlineLine:
    depth: int
    text: str
    style: NodeStyle = NodeStyle.RECT


def style_suffix(style: NodeStyle) -> str:
    """The inline tag for a style; the default style has none."""
    if style == NodeStyle.RECT:
        return ""
    return f" {{style:{style.value}}}"


def _ends_with_style_tag(text: str) -> bool:
    match = _STYLE_SUFFIX_RE.search(text)
    return match is not None and NodeStyle.parse(match.group(1)) is not None


def _line_suffix(node) -> str:
    """Style tag written after a node's text.

    Text that itself ends in a known tag always gets an explicit tag, even
    ``{style:rect}``, so reading the line back keeps the text whole.
    """
    if node.style == NodeStyle.RECT and _ends_with_style_tag(node.text):
        return f" {{style:{NodeStyle.RECT.value}}}"
    return style_suffix(node.style)


def export_outline(doc: Document, include_styles: bool = True) -> str:
    """Serialize the tree in pre-order, one line per node.

    Collapsed branches are written out in full. ``include_styles=False``
    gives the plain editor view.
    """
    root = doc.root
    if root is None:
        return ""

    lines: List[str] = []
    stack = [(root.id, 0)]
    while stack:
        node_id, depth = stack.pop()
        node = doc.nodes[node_id]
        suffix = _line_suffix(node) if include_styles else ""
        lines.append(f"{INDENT * depth}{MARKER}{node.text}{suffix}")
        child_ids = [c for c in node.children_ids if c in doc.nodes]
        stack.extend((child_id, depth + 1) for child_id in reversed(child_ids))

    return "\n".join(lines) + "\n"


def _indent_width(raw: str) -> int:
    width = 0
    for char in raw:
        if char == " ":
            width += 1
        elif char == "\t":
            width += 2
        else:
            break
    return width


def parse_line(raw: str) -> OutlineLine:
    """Split one non-blank line into depth, text and style."""
    depth = _indent_width(raw) // len(INDENT)
    content = raw.strip()
    if content.startswith(MARKER):
        content = content[len(MARKER):]
    elif content == MARKER.strip():
        content = ""

    style = NodeStyle.RECT
    match = _STYLE_SUFFIX_RE.search(content)
    if match:
        parsed = NodeStyle.parse(match.group(1))
        # Unknown tags stay part of the text.
        if parsed is not None:
            style = parsed
            content = content[:match.start()]

    return OutlineLine(depth=depth, text=clean_text(content), style=style)


def parse_outline(text: str) -> List[OutlineLine]:
    """Parse outline text into lines, rejecting input with no valid root."""
    lines = [parse_line(raw) for raw in text.splitlines() if raw.strip()]
    if not lines:
        raise OutlineError("outline is empty")
    if lines[0].depth != 0:
        raise OutlineError(f"first line is indented to depth {lines[0].depth}")
    return lines


def import_outline(text: str,
                   layout_mode: LayoutMode = LayoutMode.BIDIRECTIONAL,
                   connector_style: ConnectorStyle = ConnectorStyle.STRAIGHT,
                   root_position: Optional[Position] = None) -> Document:
    """Build a document from outline text.

    Nodes are placed by the layout engine as if added one by one. Malformed
    input (empty, or a first line that is not at depth 0) yields a default
    single-root document instead of an error.
    """
    try:
        lines = parse_outline(text)
    except OutlineError as exc:
        logger.warning("Falling back to an empty map: %s", exc)
        return new_document(root_position=root_position,
                            connector_style=connector_style,
                            layout_mode=layout_mode)

    doc = Document(connector_style=connector_style, layout_mode=layout_mode)
    first = lines[0]
    create_node(doc, first.text, None, root_position, first.style)

    parents = [ROOT_NODE_ID]
    depths = [0]
    for line in lines[1:]:
        # A second top-level line becomes a child of the single root.
        depth = max(line.depth, 1)
        while len(depths) > 1 and depths[-1] >= depth:
            parents.pop()
            depths.pop()
        node_id = add_child(doc, parents[-1], line.text, line.style)
        parents.append(node_id)
        depths.append(depth)

    doc.selected_ids = [ROOT_NODE_ID]
    logger.debug("Imported outline with %d nodes", len(doc.nodes))
    return doc


def replace_root_text(text: str, new_root_text: str) -> str:
    """Rewrite the root line of stored outline text, keeping its style tag."""
    lines = text.split("\n")
    suffix = ""
    if lines and lines[0].strip():
        head = lines[0].rstrip()
        if _ends_with_style_tag(head):
            suffix = _STYLE_SUFFIX_RE.search(head).group(0)
        lines[0] = _root_line(new_root_text, suffix)
        return "\n".join(lines)
    return _root_line(new_root_text, "") + "\n"


def _root_line(root_text: str, suffix: str) -> str:
    root_text = clean_text(root_text)
    if not suffix and _ends_with_style_tag(root_text):
        suffix = f" {{style:{NodeStyle.RECT.value}}}"
    return f"{MARKER}{root_text}{suffix}"
