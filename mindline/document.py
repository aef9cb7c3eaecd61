"""Typed document model for Mindline mindmaps."""

from copy import deepcopy
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional


ROOT_NODE_ID = "root"
DEFAULT_ROOT_TEXT = "Central Topic"
DEFAULT_NODE_TEXT = "New Topic"


class NodeStyle(Enum):
    """How a node is distinguished on the canvas."""
    RECT = "rect"
    PILL = "pill"
    UNDERLINE = "underline"
    NONE = "none"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["NodeStyle"]:
        """Return the style named ``value`` or None when it is unknown."""
        try:
            return cls(value)
        except ValueError:
            return None


class ConnectorStyle(Enum):
    """Shape of the line drawn between a parent and its child."""
    STRAIGHT = "straight"
    CURVED = "curved"
    STEPPED = "stepped"

    @classmethod
    def parse(cls, value: Optional[str]) -> "ConnectorStyle":
        try:
            return cls(value)
        except ValueError:
            return cls.STRAIGHT


class LayoutMode(Enum):
    """Direction in which branches grow away from the root."""
    BIDIRECTIONAL = "bidirectional"
    RTL = "rtl"  # everything extends to the left
    LTR = "ltr"  # everything extends to the right

    @classmethod
    def parse(cls, value: Optional[str]) -> "LayoutMode":
        try:
            return cls(value)
        except ValueError:
            return cls.BIDIRECTIONAL


@dataclass(frozen=True)
class Position:
    """Absolute centre of a node in canvas coordinates."""
    x: float = 0.0
    y: float = 0.0

    def translated(self, dx: float, dy: float) -> "Position":
        return Position(self.x + dx, self.y + dy)


@dataclass
class Node:
    """Represents a node in the mindmap."""
    id: str
    text: str = DEFAULT_NODE_TEXT
    parent_id: Optional[str] = None
    children_ids: List[str] = field(default_factory=list)
    position: Position = field(default_factory=Position)
    is_collapsed: bool = False
    style: NodeStyle = NodeStyle.RECT

    @property
    def is_root(self) -> bool:
        return self.parent_id is None


@dataclass
class Document:
    """The live state of one mindmap.

    This is also the shape of a history snapshot: ``snapshot()`` returns a
    structurally independent copy, and two documents compare equal when
    their nodes, selection, connector style and layout mode are equal.
    """
    nodes: Dict[str, Node] = field(default_factory=dict)
    selected_ids: List[str] = field(default_factory=list)
    connector_style: ConnectorStyle = ConnectorStyle.STRAIGHT
    layout_mode: LayoutMode = LayoutMode.BIDIRECTIONAL

    @property
    def root(self) -> Optional[Node]:
        return self.nodes.get(ROOT_NODE_ID)

    @property
    def is_empty(self) -> bool:
        return not self.nodes

    def get(self, node_id: Optional[str]) -> Optional[Node]:
        if node_id is None:
            return None
        return self.nodes.get(node_id)

    def children(self, node_id: str) -> List[Node]:
        """Return the existing children of a node in sibling order."""
        node = self.nodes.get(node_id)
        if node is None:
            return []
        return [self.nodes[c] for c in node.children_ids if c in self.nodes]

    def depth(self, node_id: str) -> int:
        depth = 0
        node = self.nodes.get(node_id)
        while node is not None and node.parent_id is not None:
            depth += 1
            node = self.nodes.get(node.parent_id)
        return depth

    def ancestor_ids(self, node_id: str) -> List[str]:
        """Return ancestor ids from the parent up to the root."""
        result = []
        node = self.nodes.get(node_id)
        while node is not None and node.parent_id is not None:
            result.append(node.parent_id)
            node = self.nodes.get(node.parent_id)
        return result

    def snapshot(self) -> "Document":
        """Deep copy for the history stacks."""
        return deepcopy(self)

    def replace_with(self, other: "Document"):
        """Take over the state of another document wholesale."""
        copy = other.snapshot()
        self.nodes = copy.nodes
        self.selected_ids = copy.selected_ids
        self.connector_style = copy.connector_style
        self.layout_mode = copy.layout_mode
