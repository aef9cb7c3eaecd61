"""Semantic commands accepted by ``MindMapSession.dispatch``.

Input bindings (keys, toolbar buttons, menu items) build one of these
values instead of calling into the session directly, which keeps the
bindings swappable and the operations testable on their own.
"""

from dataclasses import dataclass
from typing import Optional

from mindline.document import ConnectorStyle, LayoutMode, NodeStyle
from mindline.selection import ArrowKey, NavDirection


@dataclass(frozen=True)
class Command:
    """Base class for all commands."""


@dataclass(frozen=True)
class AddChild(Command):
    text: Optional[str] = None


@dataclass(frozen=True)
class DeleteSelected(Command):
    pass


@dataclass(frozen=True)
class RenameNode(Command):
    node_id: str
    text: str


@dataclass(frozen=True)
class SetStyle(Command):
    style: NodeStyle


@dataclass(frozen=True)
class ToggleCollapse(Command):
    node_id: Optional[str] = None  # None means the active node


@dataclass(frozen=True)
class SetLayoutMode(Command):
    mode: LayoutMode


@dataclass(frozen=True)
class SetConnectorStyle(Command):
    style: ConnectorStyle


@dataclass(frozen=True)
class Undo(Command):
    pass


@dataclass(frozen=True)
class Redo(Command):
    pass


@dataclass(frozen=True)
class ImportText(Command):
    text: str


@dataclass(frozen=True)
class Select(Command):
    node_id: Optional[str]
    additive: bool = False  # modifier held: toggle membership


@dataclass(frozen=True)
class SelectSubtree(Command):
    node_id: str


@dataclass(frozen=True)
class Navigate(Command):
    direction: NavDirection


@dataclass(frozen=True)
class NavigateArrow(Command):
    key: ArrowKey


@dataclass(frozen=True)
class NewMap(Command):
    pass


@dataclass(frozen=True)
class Save(Command):
    pass
