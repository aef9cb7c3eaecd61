"""Cairo drawing shared by the canvas and the exporters."""

import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import cairo

from mindline.document import ConnectorStyle, Document, Node, NodeStyle
from mindline.visibility import visible_node_ids


# Colors (matching the canvas theme)
COLORS = {
    'bg_primary': (0.039, 0.039, 0.039),      # #0a0a0a
    'bg_secondary': (0.078, 0.078, 0.078),    # #141414
    'surface': (0.118, 0.118, 0.118),         # #1e1e1e
    'surface_hover': (0.145, 0.145, 0.145),   # #252525
    'border_subtle': (0.165, 0.165, 0.165),   # #2a2a2a
    'border_active': (1.0, 0.176, 0.176),     # #ff2d2d
    'text_primary': (0.878, 0.878, 0.878),    # #e0e0e0
    'text_muted': (0.333, 0.333, 0.333),      # #555555
    'accent_primary': (1.0, 0.176, 0.176),    # #ff2d2d
    'accent_secondary': (0.8, 0.0, 0.0),      # #cc0000
    'grid_dots': (0.12, 0.12, 0.12),
    'root_node': (0.15, 0.05, 0.05),
    'root_border': (0.6, 0.1, 0.1),
}

NODE_PADDING = 16
NODE_MIN_WIDTH = 120
NODE_MAX_WIDTH = 300
ROOT_NODE_MIN_WIDTH = 160
NODE_HEIGHT = 40
ROOT_NODE_HEIGHT = 56
FONT_FACE = "JetBrains Mono"


@dataclass
class NodeBox:
    """Screen-independent bounding box of a drawn node (top-left origin)."""
    node: Node
    x: float
    y: float
    width: float
    height: float

    @property
    def cx(self) -> float:
        return self.x + self.width / 2

    @property
    def cy(self) -> float:
        return self.y + self.height / 2

    def contains_point(self, px: float, py: float) -> bool:
        return (self.x <= px <= self.x + self.width and
                self.y <= py <= self.y + self.height)

    def indicator_contains(self, px: float, py: float) -> bool:
        """Hit test for the collapse toggle at the right edge."""
        ix = self.x + self.width - 16
        return abs(px - ix) <= 10 and abs(py - self.cy) <= 10


def node_size(node: Node) -> Tuple[float, float]:
    """Calculate node dimensions based on text."""
    text_width = len(node.text) * 9 + NODE_PADDING * 2
    if node.is_root:
        return max(ROOT_NODE_MIN_WIDTH, min(NODE_MAX_WIDTH, text_width)), ROOT_NODE_HEIGHT
    return max(NODE_MIN_WIDTH, min(NODE_MAX_WIDTH, text_width)), NODE_HEIGHT


def build_boxes(doc: Document) -> List[NodeBox]:
    """Boxes for every visible node, in pre-order (root first)."""
    boxes = []
    for node_id in visible_node_ids(doc):
        node = doc.nodes[node_id]
        w, h = node_size(node)
        boxes.append(NodeBox(node, node.position.x - w / 2, node.position.y - h / 2, w, h))
    return boxes


def bounds(boxes: List[NodeBox]) -> Optional[Tuple[float, float, float, float]]:
    """(min_x, min_y, max_x, max_y) of the boxes, or None when empty."""
    if not boxes:
        return None
    return (
        min(b.x for b in boxes),
        min(b.y for b in boxes),
        max(b.x + b.width for b in boxes),
        max(b.y + b.height for b in boxes),
    )


def draw_rounded_rect(cr, x: float, y: float, w: float, h: float, radius: float):
    """Draw a rounded rectangle path."""
    radius = min(radius, h / 2, w / 2)
    cr.new_path()
    cr.arc(x + w - radius, y + radius, radius, -math.pi / 2, 0)
    cr.arc(x + w - radius, y + h - radius, radius, 0, math.pi / 2)
    cr.arc(x + radius, y + h - radius, radius, math.pi / 2, math.pi)
    cr.arc(x + radius, y + radius, radius, math.pi, 3 * math.pi / 2)
    cr.close_path()


def draw_connector(cr, parent: NodeBox, child: NodeBox, style: ConnectorStyle):
    """Draw the line from a parent's edge to its child's facing edge."""
    sign = -1 if child.cx < parent.cx else 1
    start_x = parent.cx + sign * parent.width / 2
    start_y = parent.cy
    end_x = child.cx - sign * child.width / 2
    end_y = child.cy
    mid_x = (start_x + end_x) / 2

    gradient = cairo.LinearGradient(start_x, start_y, end_x, end_y)
    gradient.add_color_stop_rgba(0, *COLORS['accent_primary'], 0.8)
    gradient.add_color_stop_rgba(1, *COLORS['accent_secondary'], 0.6)
    cr.set_source(gradient)
    cr.set_line_width(2)
    cr.set_line_cap(cairo.LINE_CAP_ROUND)
    cr.set_line_join(cairo.LINE_JOIN_ROUND)

    cr.move_to(start_x, start_y)
    if style == ConnectorStyle.CURVED:
        cr.curve_to(mid_x, start_y, mid_x, end_y, end_x, end_y)
    elif style == ConnectorStyle.STEPPED:
        cr.line_to(mid_x, start_y)
        cr.line_to(mid_x, end_y)
        cr.line_to(end_x, end_y)
    else:
        cr.line_to(end_x, end_y)
    cr.stroke()


def draw_connectors(cr, doc: Document, boxes: List[NodeBox]):
    by_id: Dict[str, NodeBox] = {b.node.id: b for b in boxes}
    for box in boxes:
        parent = by_id.get(box.node.parent_id) if box.node.parent_id else None
        if parent is not None:
            draw_connector(cr, parent, box, doc.connector_style)


def _node_shape(cr, box: NodeBox):
    """Path of the node outline for its style; None styles draw no shape."""
    x, y, w, h = box.x, box.y, box.width, box.height
    if box.node.style == NodeStyle.PILL:
        draw_rounded_rect(cr, x, y, w, h, h / 2)
    else:
        draw_rounded_rect(cr, x, y, w, h, 8 if box.node.is_root else 6)


def draw_node(cr, box: NodeBox, selected: bool = False, hovered: bool = False):
    """Draw a single node in its style."""
    node = box.node
    x, y, w, h = box.x, box.y, box.width, box.height
    is_root = node.is_root

    cr.save()

    if node.style in (NodeStyle.RECT, NodeStyle.PILL):
        _node_shape(cr, box)
        if is_root:
            bg = COLORS['root_node']
        elif selected or hovered:
            bg = COLORS['surface_hover']
        else:
            bg = COLORS['surface']
        cr.set_source_rgb(*bg)
        cr.fill_preserve()

        if selected:
            border = COLORS['border_active']
            cr.set_line_width(2)
        elif is_root:
            border = COLORS['root_border']
            cr.set_line_width(2)
        elif hovered:
            border = COLORS['text_muted']
            cr.set_line_width(1.5)
        else:
            border = COLORS['border_subtle']
            cr.set_line_width(1)
        cr.set_source_rgb(*border)
        cr.stroke()
    elif node.style == NodeStyle.UNDERLINE:
        cr.set_source_rgb(*(COLORS['border_active'] if selected else COLORS['accent_secondary']))
        cr.set_line_width(2)
        cr.move_to(x, y + h - 4)
        cr.line_to(x + w, y + h - 4)
        cr.stroke()

    # Glow for selected nodes, whatever their style
    if selected:
        for i in range(3):
            alpha = 0.15 - i * 0.04
            cr.set_source_rgba(*COLORS['accent_primary'], alpha)
            draw_rounded_rect(cr, x - i * 2, y - i * 2, w + i * 4, h + i * 4, 8 + i * 2)
            cr.stroke()

    # Text
    cr.set_source_rgb(*COLORS['text_primary'])
    cr.select_font_face(FONT_FACE, cairo.FONT_SLANT_NORMAL,
                        cairo.FONT_WEIGHT_BOLD if is_root else cairo.FONT_WEIGHT_NORMAL)
    cr.set_font_size(15 if is_root else 13)

    indicator_space = 18 if node.children_ids else 0
    max_width = w - NODE_PADDING * 2 - indicator_space
    text = node.text
    extents = cr.text_extents(text)
    while extents.width > max_width and len(text) > 3:
        text = text[:-4] + "..."
        extents = cr.text_extents(text)
    cr.move_to(x + NODE_PADDING, y + h / 2 + extents.height / 2 - 2)
    cr.show_text(text)

    if node.children_ids:
        _draw_collapse_indicator(cr, box)

    cr.restore()


def _draw_collapse_indicator(cr, box: NodeBox):
    """Plus (collapsed, with child count) or minus sign at the right edge."""
    ix = box.x + box.width - 16
    iy = box.cy
    cr.set_source_rgb(*COLORS['text_muted'])
    cr.set_line_width(1.5)
    cr.move_to(ix - 4, iy)
    cr.line_to(ix + 4, iy)
    if box.node.is_collapsed:
        cr.move_to(ix, iy - 4)
        cr.line_to(ix, iy + 4)
    cr.stroke()

    if box.node.is_collapsed:
        cr.set_font_size(9)
        cr.move_to(ix - 4, iy + 14)
        cr.show_text(str(len(box.node.children_ids)))


def draw_document(cr, doc: Document, boxes: List[NodeBox],
                  selected_ids=(), hovered_id: Optional[str] = None):
    """Connectors first, then nodes on top."""
    draw_connectors(cr, doc, boxes)
    selected = set(selected_ids)
    for box in boxes:
        draw_node(cr, box, box.node.id in selected, box.node.id == hovered_id)
