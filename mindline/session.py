"""The editing session: one live document and everything that acts on it.

``MindMapSession`` is the only object allowed to mutate the live
``Document``. The UI calls its methods (or ``dispatch`` with a command),
then redraws when a subscribed listener is told what changed.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from mindline import commands
from mindline.database import Database, MapSettings, MindMap
from mindline.document import (
    DEFAULT_NODE_TEXT,
    ROOT_NODE_ID,
    ConnectorStyle,
    Document,
    LayoutMode,
    NodeStyle,
)
from mindline import layout, selection, tree_store, visibility
from mindline.outline import export_outline, import_outline
from mindline.selection import ArrowKey, NavDirection, Navigator
from mindline.timers import Debouncer, Scheduler
from mindline.undo import HistoryManager


logger = logging.getLogger(__name__)

AUTOSAVE_DELAY_MS = 2500
OUTLINE_SYNC_DELAY_MS = 750
HISTORY_LIMIT = 100
MIN_ZOOM = 0.2
MAX_ZOOM = 4.0

Listener = Callable[[str], None]


@dataclass
class ViewState:
    """Pan and zoom of the canvas; not part of the document history."""
    zoom: float = 1.0
    pan_x: float = 0.0
    pan_y: float = 0.0


class MindMapSession:
    """Controller owning the live document of one editing session."""

    def __init__(self, db: Optional[Database] = None,
                 scheduler: Optional[Scheduler] = None,
                 autosave_delay_ms: int = AUTOSAVE_DELAY_MS,
                 outline_sync_delay_ms: int = OUTLINE_SYNC_DELAY_MS,
                 history_limit: int = HISTORY_LIMIT,
                 default_layout_mode: LayoutMode = LayoutMode.BIDIRECTIONAL,
                 default_connector_style: ConnectorStyle = ConnectorStyle.STRAIGHT):
        self.db = db
        self.default_layout_mode = default_layout_mode
        self.default_connector_style = default_connector_style
        self.document = tree_store.new_document(
            connector_style=default_connector_style, layout_mode=default_layout_mode)
        self.history = HistoryManager(max_undo=history_limit, max_redo=history_limit)
        self.history.on_state_changed = lambda: self._emit("history")
        self.navigator = Navigator()
        self.view = ViewState()
        self.current_map: Optional[MindMap] = None
        self.is_dirty = False

        self._listeners: List[Listener] = []
        self._drag_start: Optional[Document] = None
        self._pending_outline: Optional[str] = None
        self._autosave = Debouncer(scheduler if db is not None else None,
                                   autosave_delay_ms, self.save)
        self._outline_sync = Debouncer(scheduler, outline_sync_delay_ms,
                                       self._apply_pending_outline)
        self._handlers: Dict[type, Callable[[commands.Command], object]] = {
            commands.AddChild: lambda c: self.add_child(c.text),
            commands.DeleteSelected: lambda c: self.delete_selected(),
            commands.RenameNode: lambda c: self.rename_node(c.node_id, c.text),
            commands.SetStyle: lambda c: self.set_style(c.style),
            commands.ToggleCollapse: lambda c: self.toggle_collapse(c.node_id),
            commands.SetLayoutMode: lambda c: self.set_layout_mode(c.mode),
            commands.SetConnectorStyle: lambda c: self.set_connector_style(c.style),
            commands.Undo: lambda c: self.undo(),
            commands.Redo: lambda c: self.redo(),
            commands.ImportText: lambda c: self.import_text(c.text),
            commands.Select: lambda c: self.select(c.node_id, additive=c.additive),
            commands.SelectSubtree: lambda c: self.select_subtree(c.node_id),
            commands.Navigate: lambda c: self.navigate(c.direction),
            commands.NavigateArrow: lambda c: self.navigate_arrow(c.key),
            commands.NewMap: lambda c: self.new_map(),
            commands.Save: lambda c: self.save(),
        }

    @classmethod
    def from_settings(cls, db: Database, scheduler: Optional[Scheduler] = None) -> "MindMapSession":
        """Build a session configured from the app settings table."""
        return cls(
            db=db,
            scheduler=scheduler,
            autosave_delay_ms=int(db.get_setting("autosave_delay_ms", AUTOSAVE_DELAY_MS)),
            outline_sync_delay_ms=int(db.get_setting("outline_sync_delay_ms", OUTLINE_SYNC_DELAY_MS)),
            history_limit=int(db.get_setting("history_limit", HISTORY_LIMIT)),
            default_layout_mode=LayoutMode.parse(db.get_setting("default_layout_mode")),
            default_connector_style=ConnectorStyle.parse(db.get_setting("default_connector_style")),
        )

    # ==================== Events ====================

    def subscribe(self, listener: Listener):
        """Register a callback receiving change names.

        Names: "document", "selection", "history", "view", "saved".
        """
        self._listeners.append(listener)

    def _emit(self, event: str):
        for listener in list(self._listeners):
            listener(event)

    def _touch(self, event: str = "document"):
        """Mark the document modified and schedule an autosave."""
        self.is_dirty = True
        self._autosave.trigger()
        self._emit(event)

    def _commit(self, before: Document, description: str):
        self.history.commit(before, description)
        self.navigator.reset()
        self._touch()

    def dispatch(self, command: commands.Command):
        """Run a semantic command; unknown commands are ignored."""
        handler = self._handlers.get(type(command))
        if handler is None:
            logger.warning("No handler for command %r", command)
            return None
        return handler(command)

    # ==================== Queries ====================

    @property
    def active_id(self) -> Optional[str]:
        return selection.active_id(self.document)

    @property
    def selected_ids(self) -> List[str]:
        return list(self.document.selected_ids)

    def export_text(self, include_styles: bool = True) -> str:
        """Outline text of the live document."""
        return export_outline(self.document, include_styles=include_styles)

    def visible_ids(self) -> List[str]:
        return visibility.visible_node_ids(self.document)

    # ==================== Document lifecycle ====================

    def _replace_document(self, doc: Document):
        self.document = doc
        selection.prune(self.document)
        self.navigator.reset()
        self._drag_start = None

    def _reset_session(self):
        self._autosave.cancel()
        self._outline_sync.cancel()
        self._pending_outline = None
        self.history.clear()

    def new_map(self):
        """Start an unsaved map holding only the root."""
        self._reset_session()
        self._replace_document(tree_store.new_document(
            connector_style=self.default_connector_style,
            layout_mode=self.default_layout_mode))
        self.current_map = None
        self.view = ViewState()
        self.is_dirty = False
        self._emit("document")

    def load_record(self, mind_map: MindMap):
        """Open a stored map, replacing the current document."""
        self._reset_session()
        self._replace_document(import_outline(
            mind_map.outline_text, mind_map.layout_mode, mind_map.connector_style))
        self.current_map = mind_map
        self.view = ViewState(
            zoom=mind_map.settings.zoom_level,
            pan_x=mind_map.settings.pan_x,
            pan_y=mind_map.settings.pan_y,
        )
        self.is_dirty = False
        logger.info("Loaded map %d '%s'", mind_map.id, mind_map.name)
        self._emit("document")

    def load_map(self, map_id: int) -> bool:
        if self.db is None:
            return False
        mind_map = self.db.get_map(map_id)
        if mind_map is None:
            return False
        self.load_record(mind_map)
        return True

    def import_text(self, text: str):
        """Replace the document with one parsed from outline text.

        The result is a new, unsaved map; history starts over.
        """
        self._reset_session()
        self._replace_document(import_outline(
            text, self.document.layout_mode, self.document.connector_style))
        self.current_map = None
        self._touch()

    def save(self) -> Optional[MindMap]:
        """Write the document to the store now, cancelling any pending autosave."""
        self._autosave.cancel()
        root = self.document.root
        if self.db is None or root is None or not self.is_dirty:
            return None

        outline_text = export_outline(self.document)
        settings = MapSettings(
            zoom_level=self.view.zoom,
            pan_x=self.view.pan_x,
            pan_y=self.view.pan_y,
            show_grid=self.current_map.settings.show_grid if self.current_map else True,
        )
        if self.current_map is None:
            self.current_map = self.db.create_map(
                root.text, outline_text,
                connector_style=self.document.connector_style,
                layout_mode=self.document.layout_mode,
                settings=settings,
            )
        else:
            self.current_map.name = root.text
            self.current_map.outline_text = outline_text
            self.current_map.connector_style = self.document.connector_style
            self.current_map.layout_mode = self.document.layout_mode
            self.current_map.settings = settings
            self.db.save_map(self.current_map)

        self.is_dirty = False
        logger.info("Saved map %d '%s'", self.current_map.id, self.current_map.name)
        self._emit("saved")
        return self.current_map

    # ==================== Structural edits ====================

    def add_child(self, text: Optional[str] = None) -> Optional[str]:
        """Create a child of the active node and select it."""
        parent_id = self.active_id
        if parent_id is None:
            return None
        before = self.document.snapshot()
        new_id = layout.add_child(self.document, parent_id, text or DEFAULT_NODE_TEXT)
        if new_id is None:
            return None
        parent = self.document.nodes[parent_id]
        if parent.is_collapsed:
            visibility.toggle_collapse(self.document, parent_id)
        selection.select(self.document, new_id)
        self._commit(before, "Add node")
        return new_id

    def delete_selected(self) -> bool:
        """Delete every selected subtree except the root."""
        targets = [s for s in self.document.selected_ids if s != ROOT_NODE_ID]
        if not targets:
            return False

        before = self.document.snapshot()
        active = self.document.get(self.active_id)
        fallback = active.parent_id if active is not None and not active.is_root else ROOT_NODE_ID
        for node_id in targets:
            tree_store.delete_subtree(self.document, node_id)

        while fallback is not None and fallback not in self.document.nodes:
            fallback = before.nodes[fallback].parent_id
        if not self.document.selected_ids and fallback is not None:
            selection.select(self.document, fallback)
        self._commit(before, "Delete node")
        return True

    def rename_node(self, node_id: str, text: str) -> bool:
        before = self.document.snapshot()
        if not tree_store.rename_node(self.document, node_id, text):
            return False
        self._commit(before, "Rename node")
        return True

    def set_style(self, style: NodeStyle) -> bool:
        """Apply a node style to the whole selection."""
        before = self.document.snapshot()
        if not tree_store.set_style(self.document, self.document.selected_ids, style):
            return False
        self._commit(before, "Change node style")
        return True

    def toggle_collapse(self, node_id: Optional[str] = None) -> bool:
        node_id = node_id or self.active_id
        if node_id is None:
            return False
        before = self.document.snapshot()
        if not visibility.toggle_collapse(self.document, node_id):
            return False
        self._commit(before, "Toggle collapse")
        return True

    def set_layout_mode(self, mode: LayoutMode) -> bool:
        """Switch layout mode and lay the whole tree out again."""
        before = self.document.snapshot()
        self.document.layout_mode = mode
        layout.apply_layout(self.document)
        if not self.history.commit_if_changed(before, self.document, "Change layout"):
            return False
        self._touch()
        return True

    def set_connector_style(self, style: ConnectorStyle) -> bool:
        if self.document.connector_style == style:
            return False
        before = self.document.snapshot()
        self.document.connector_style = style
        self._commit(before, "Change connector style")
        return True

    # ==================== History ====================

    def undo(self) -> bool:
        restored = self.history.undo(self.document)
        if restored is None:
            return False
        self._replace_document(restored)
        self._touch()
        return True

    def redo(self) -> bool:
        restored = self.history.redo(self.document)
        if restored is None:
            return False
        self._replace_document(restored)
        self._touch()
        return True

    # ==================== Outline editor sync ====================

    def outline_edited(self, text: str):
        """Note a keystroke in the outline editor; rebuild after a quiet period."""
        self._pending_outline = text
        if self._outline_sync.scheduler is None:
            self._apply_pending_outline()
        else:
            self._outline_sync.trigger()

    def flush_outline(self):
        """Apply a pending outline edit immediately."""
        self._outline_sync.flush()

    def _apply_pending_outline(self):
        text, self._pending_outline = self._pending_outline, None
        if text is not None:
            self.sync_from_outline(text)

    def sync_from_outline(self, text: str) -> bool:
        """Rebuild the tree from hand-edited outline text.

        The tree is recreated rather than diffed; the map record, view,
        connector style and layout mode carry over. Text that reads back to
        the current outline, such as an added blank line, changes nothing.
        """
        current_text = self.export_text()
        if text == current_text:
            return False

        root = self.document.root
        rebuilt = import_outline(
            text,
            layout_mode=self.document.layout_mode,
            connector_style=self.document.connector_style,
            root_position=root.position if root is not None else None,
        )
        if export_outline(rebuilt) == current_text:
            return False

        before = self.document.snapshot()
        current_map, view = self.current_map, self.view
        self._replace_document(rebuilt)
        self.current_map, self.view = current_map, view

        if not self.history.commit_if_changed(before, self.document, "Edit outline"):
            return False
        self._touch()
        return True

    # ==================== Selection and navigation ====================

    def select(self, node_id: Optional[str], additive: bool = False) -> bool:
        """Single-select, or toggle membership when ``additive``."""
        if additive and node_id is not None:
            changed = selection.toggle(self.document, node_id)
        else:
            changed = selection.select(self.document, node_id)
        if changed:
            self.navigator.reset()
            self._emit("selection")
        return changed

    def toggle_select(self, node_id: str) -> bool:
        return self.select(node_id, additive=True)

    def select_subtree(self, node_id: str) -> bool:
        changed = selection.select_subtree(self.document, node_id)
        if changed:
            self._emit("selection")
        return changed

    def navigate(self, direction: NavDirection) -> bool:
        moved = self.navigator.navigate(self.document, direction)
        if moved:
            self._emit("selection")
        return moved

    def navigate_arrow(self, key: ArrowKey) -> bool:
        moved = self.navigator.navigate_arrow(self.document, key)
        if moved:
            self._emit("selection")
        return moved

    # ==================== Dragging ====================

    def begin_drag(self, node_id: str):
        """Start moving the selection; grabbing an unselected node selects it."""
        if node_id not in self.document.selected_ids:
            selection.select(self.document, node_id)
        self._drag_start = self.document.snapshot()

    def drag_by(self, dx: float, dy: float):
        """Translate the selected subtrees by a canvas-space delta."""
        if self._drag_start is None:
            return
        layout.move_nodes(self.document, self.document.selected_ids, dx, dy)
        self._emit("document")

    def end_drag(self) -> bool:
        """Finish the gesture with one history entry if anything moved."""
        start, self._drag_start = self._drag_start, None
        if start is None:
            return False
        if not self.history.commit_if_changed(start, self.document, "Move node"):
            return False
        self._touch()
        return True

    # ==================== View ====================

    def set_view(self, zoom: float, pan_x: float, pan_y: float):
        """Jump to an absolute view, e.g. fit-to-window or centring the root."""
        self.view = ViewState(
            zoom=max(MIN_ZOOM, min(MAX_ZOOM, zoom)),
            pan_x=pan_x,
            pan_y=pan_y,
        )
        self._emit("view")

    def pan_by(self, dx: float, dy: float):
        self.view.pan_x += dx
        self.view.pan_y += dy
        self._emit("view")

    def zoom_at(self, factor: float, screen_x: float, screen_y: float):
        """Zoom keeping the canvas point under the pointer fixed."""
        old_zoom = self.view.zoom
        new_zoom = max(MIN_ZOOM, min(MAX_ZOOM, old_zoom * factor))
        if new_zoom == old_zoom:
            return
        world_x = (screen_x - self.view.pan_x) / old_zoom
        world_y = (screen_y - self.view.pan_y) / old_zoom
        self.view.zoom = new_zoom
        self.view.pan_x = screen_x - world_x * new_zoom
        self.view.pan_y = screen_y - world_y * new_zoom
        self._emit("view")
