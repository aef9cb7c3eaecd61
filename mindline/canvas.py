"""Canvas widget for rendering mindmap nodes and connections."""

import math
from typing import Optional, List, Callable

import gi

gi.require_version("Gtk", "4.0")
gi.require_version("Gdk", "4.0")
from gi.repository import Gtk, Gdk, GLib, Gio

from mindline import commands
from mindline.document import NodeStyle
from mindline.render import COLORS, NodeBox, bounds, build_boxes, draw_document
from mindline.selection import ArrowKey
from mindline.session import MindMapSession


ARROW_KEYS = {
    Gdk.KEY_Up: ArrowKey.UP,
    Gdk.KEY_Down: ArrowKey.DOWN,
    Gdk.KEY_Left: ArrowKey.LEFT,
    Gdk.KEY_Right: ArrowKey.RIGHT,
}


class MindMapCanvas(Gtk.DrawingArea):
    """Custom canvas widget for rendering mindmaps.

    The canvas owns no document state: it draws ``session.document`` and
    turns pointer and key events into session operations.
    """

    GRID_SIZE = 30
    DRAG_THRESHOLD = 5

    def __init__(self, session: MindMapSession):
        super().__init__()

        self.session = session
        self.boxes: List[NodeBox] = []

        # Pointer state
        self.hovered_id: Optional[str] = None
        self.last_mouse_x = 0.0
        self.last_mouse_y = 0.0
        self.is_panning = False
        self._drag_pending_id: Optional[str] = None
        self._drag_exceeded_threshold = False
        self._last_offset = (0.0, 0.0)

        # Popovers
        self._context_popover: Optional[Gtk.PopoverMenu] = None
        self._edit_popover: Optional[Gtk.Popover] = None

        # Canvas settings
        self.show_grid = True

        self.set_draw_func(self._on_draw)
        self.set_focusable(True)
        self.set_can_focus(True)
        self._setup_event_controllers()
        self.set_hexpand(True)
        self.set_vexpand(True)

        self.session.subscribe(self._on_session_event)
        self.refresh()

    def _setup_event_controllers(self):
        """Attach pointer, scroll and key controllers."""
        primary = Gdk.BUTTON_PRIMARY
        controllers = [
            (Gtk.GestureClick(button=primary), {"pressed": self._on_click}),
            (Gtk.GestureClick(button=Gdk.BUTTON_SECONDARY), {"pressed": self._on_right_click}),
            (Gtk.GestureDrag(button=primary), {
                "drag-begin": self._on_drag_begin,
                "drag-update": self._on_drag_update,
                "drag-end": self._on_drag_end,
            }),
            (Gtk.EventControllerMotion(), {"motion": self._on_motion, "leave": self._on_leave}),
            (Gtk.EventControllerScroll(flags=Gtk.EventControllerScrollFlags.BOTH_AXES),
             {"scroll": self._on_scroll}),
            (Gtk.EventControllerKey(), {"key-pressed": self._on_key_pressed}),
        ]
        for controller, handlers in controllers:
            for signal, handler in handlers.items():
                controller.connect(signal, handler)
            self.add_controller(controller)

    def _on_session_event(self, event: str):
        if event in ("document", "selection", "view"):
            self.refresh()

    def refresh(self):
        """Rebuild hit-test boxes from the document and redraw."""
        self.boxes = build_boxes(self.session.document)
        if self.hovered_id not in self.session.document.nodes:
            self.hovered_id = None
        self.queue_draw()

    # ==================== Drawing ====================

    def _on_draw(self, area, cr, width, height):
        """Main drawing function."""
        view = self.session.view
        cr.save()

        cr.set_source_rgb(*COLORS['bg_primary'])
        cr.paint()

        if self.show_grid:
            self._draw_grid(cr, width, height)

        cr.translate(view.pan_x, view.pan_y)
        cr.scale(view.zoom, view.zoom)
        draw_document(cr, self.session.document, self.boxes,
                      self.session.selected_ids, self.hovered_id)

        cr.restore()

    def _draw_grid(self, cr, width: float, height: float):
        """Draw dot grid pattern."""
        view = self.session.view
        cr.save()
        cr.set_source_rgb(*COLORS['grid_dots'])

        effective_grid = self.GRID_SIZE * view.zoom
        x = view.pan_x % effective_grid
        while x < width:
            y = view.pan_y % effective_grid
            while y < height:
                cr.arc(x, y, 1.5, 0, 2 * math.pi)
                cr.fill()
                y += effective_grid
            x += effective_grid

        cr.restore()

    # ==================== Hit testing ====================

    def _to_canvas(self, x: float, y: float):
        view = self.session.view
        return (x - view.pan_x) / view.zoom, (y - view.pan_y) / view.zoom

    def _find_box_at(self, x: float, y: float) -> Optional[NodeBox]:
        """Find the node at the given screen coordinates."""
        canvas_x, canvas_y = self._to_canvas(x, y)
        for box in reversed(self.boxes):
            if box.contains_point(canvas_x, canvas_y):
                return box
        return None

    # ==================== Pointer ====================

    def _on_click(self, gesture, n_press, x, y):
        """Select, toggle-select, branch-select or collapse on click."""
        self.grab_focus()
        box = self._find_box_at(x, y)
        state = gesture.get_current_event_state()
        ctrl = state & Gdk.ModifierType.CONTROL_MASK
        shift = state & Gdk.ModifierType.SHIFT_MASK

        if box is None:
            if n_press == 1 and not ctrl:
                self.session.dispatch(commands.Select(None))
            return

        canvas_x, canvas_y = self._to_canvas(x, y)
        if box.node.children_ids and box.indicator_contains(canvas_x, canvas_y):
            self.session.dispatch(commands.ToggleCollapse(box.node.id))
        elif n_press == 2:
            self.start_editing(box.node.id)
        elif shift:
            self.session.dispatch(commands.SelectSubtree(box.node.id))
        else:
            self.session.dispatch(commands.Select(box.node.id, additive=bool(ctrl)))

    def _on_motion(self, controller, x, y):
        self.last_mouse_x = x
        self.last_mouse_y = y
        box = self._find_box_at(x, y)
        new_hover = box.node.id if box else None
        if new_hover != self.hovered_id:
            self.hovered_id = new_hover
            self.queue_draw()

    def _on_leave(self, controller):
        if self.hovered_id:
            self.hovered_id = None
            self.queue_draw()

    def _on_scroll(self, controller, dx, dy):
        """Ctrl+scroll zooms towards the pointer; plain scroll pans."""
        state = controller.get_current_event_state()
        if state & Gdk.ModifierType.CONTROL_MASK:
            factor = 1.1 if dy < 0 else 0.9
            self.session.zoom_at(factor, self.last_mouse_x, self.last_mouse_y)
        else:
            self.session.pan_by(-dx * 30, -dy * 30)
        return True

    def _on_drag_begin(self, gesture, start_x, start_y):
        """Start of drag: node move once past the threshold, else pan."""
        box = self._find_box_at(start_x, start_y)
        self._last_offset = (0.0, 0.0)
        self._drag_exceeded_threshold = False
        if box is not None and self._edit_popover is None:
            self._drag_pending_id = box.node.id
            self.is_panning = False
        else:
            self._drag_pending_id = None
            self.is_panning = True

    def _on_drag_update(self, gesture, offset_x, offset_y):
        if self._drag_pending_id and not self._drag_exceeded_threshold:
            if math.hypot(offset_x, offset_y) < self.DRAG_THRESHOLD:
                return
            self._drag_exceeded_threshold = True
            self.session.begin_drag(self._drag_pending_id)

        step_x = offset_x - self._last_offset[0]
        step_y = offset_y - self._last_offset[1]
        self._last_offset = (offset_x, offset_y)

        if self._drag_exceeded_threshold:
            zoom = self.session.view.zoom
            self.session.drag_by(step_x / zoom, step_y / zoom)
        elif self.is_panning:
            self.session.pan_by(step_x, step_y)

    def _on_drag_end(self, gesture, offset_x, offset_y):
        if self._drag_exceeded_threshold:
            self.session.end_drag()
        self._drag_pending_id = None
        self._drag_exceeded_threshold = False
        self.is_panning = False

    # ==================== Keyboard ====================

    def _on_key_pressed(self, controller, keyval, keycode, state):
        """Translate keys into semantic commands."""
        ctrl = state & Gdk.ModifierType.CONTROL_MASK
        shift = state & Gdk.ModifierType.SHIFT_MASK
        active = self.session.active_id

        if keyval == Gdk.KEY_Tab:
            self.session.dispatch(commands.AddChild())
            return True
        if keyval in (Gdk.KEY_Delete, Gdk.KEY_BackSpace):
            self.session.dispatch(commands.DeleteSelected())
            return True
        if keyval == Gdk.KEY_F2:
            if active:
                self.start_editing(active)
            return True
        if keyval == Gdk.KEY_space and ctrl:
            self.session.dispatch(commands.ToggleCollapse())
            return True
        if keyval == Gdk.KEY_space and shift:
            if active:
                self.session.dispatch(commands.SelectSubtree(active))
            return True
        if keyval == Gdk.KEY_Escape:
            self.session.dispatch(commands.Select(None))
            return True
        if keyval in ARROW_KEYS:
            self.session.dispatch(commands.NavigateArrow(ARROW_KEYS[keyval]))
            return True

        # Start typing to rename (supports Unicode)
        uc = Gdk.keyval_to_unicode(keyval)
        if uc and chr(uc).isprintable() and not ctrl and active:
            self.start_editing(active, initial_text=chr(uc))
            return True

        return False

    # ==================== Popovers ====================

    def _show_popover(self, popover: Gtk.Popover, slot: str,
                      x: float, y: float, width: float = 1, height: float = 1):
        """Parent ``popover`` to the canvas at a screen rect and track it in ``slot``.

        The popover is unparented on idle after it closes, so a menu action
        triggered by the close still finds its widget.
        """
        previous = getattr(self, slot)
        if previous is not None:
            previous.popdown()
            previous.unparent()

        popover.set_parent(self)
        target = Gdk.Rectangle()
        target.x, target.y = int(x), int(y)
        target.width, target.height = max(1, int(width)), max(1, int(height))
        popover.set_pointing_to(target)

        def _on_closed(p):
            def _release():
                if getattr(self, slot) is p:
                    p.unparent()
                    setattr(self, slot, None)
                    self.grab_focus()
                return False
            GLib.idle_add(_release)
        popover.connect("closed", _on_closed)

        setattr(self, slot, popover)
        popover.popup()

    # ==================== Rename ====================

    def _box_for(self, node_id: str) -> Optional[NodeBox]:
        return next((b for b in self.boxes if b.node.id == node_id), None)

    def start_editing(self, node_id: str, initial_text: Optional[str] = None):
        """Open an inline entry over the node; Enter commits, Escape cancels."""
        box = self._box_for(node_id)
        if box is None:
            return

        entry = Gtk.Entry()
        entry.set_width_chars(max(12, min(40, len(box.node.text) + 4)))
        entry.set_text(initial_text if initial_text is not None else box.node.text)

        def _on_activate(e):
            self.session.dispatch(commands.RenameNode(node_id, e.get_text()))
            popover.popdown()
        entry.connect("activate", _on_activate)

        popover = Gtk.Popover(child=entry, has_arrow=False, position=Gtk.PositionType.BOTTOM)
        view = self.session.view
        self._show_popover(popover, "_edit_popover",
                           box.x * view.zoom + view.pan_x, box.y * view.zoom + view.pan_y,
                           box.width * view.zoom, box.height * view.zoom)

        entry.grab_focus()
        if initial_text is not None:
            entry.set_position(-1)
        else:
            entry.select_region(0, -1)

    # ==================== Context menu ====================

    def _on_right_click(self, gesture, n_press, x, y):
        """Node actions over a node, view actions over empty space."""
        box = self._find_box_at(x, y)
        menu = Gio.Menu()
        action_group = Gio.SimpleActionGroup()

        def add(label: str, name: str, callback: Callable[[], None], section: Gio.Menu):
            section.append(label, f"canvas.{name}")
            action = Gio.SimpleAction.new(name, None)
            action.connect("activate", lambda a, p: callback())
            action_group.add_action(action)

        if box is not None:
            node_id = box.node.id
            if node_id not in self.session.selected_ids:
                self.session.dispatch(commands.Select(node_id))

            edit_section = Gio.Menu()
            add("Edit", "edit-node", lambda: self.start_editing(node_id), edit_section)
            add("Add Subtopic", "add-child",
                lambda: self.session.dispatch(commands.AddChild()), edit_section)
            add("Select Branch", "select-branch",
                lambda: self.session.dispatch(commands.SelectSubtree(node_id)), edit_section)
            if box.node.children_ids:
                label = "Expand" if box.node.is_collapsed else "Collapse"
                add(label, "toggle-collapse",
                    lambda: self.session.dispatch(commands.ToggleCollapse(node_id)), edit_section)
            menu.append_section(None, edit_section)

            style_section = Gio.Menu()
            for style in NodeStyle:
                add(f"Style: {style.value.title()}", f"style-{style.value}",
                    lambda s=style: self.session.dispatch(commands.SetStyle(s)), style_section)
            menu.append_section(None, style_section)

            if not box.node.is_root:
                delete_section = Gio.Menu()
                add("Delete", "delete-node",
                    lambda: self.session.dispatch(commands.DeleteSelected()), delete_section)
                menu.append_section(None, delete_section)
        else:
            view_section = Gio.Menu()
            add("Center View", "center-view", self.center_view, view_section)
            add("Zoom to Fit", "zoom-fit", self.zoom_to_fit, view_section)
            menu.append_section(None, view_section)

        self.insert_action_group("canvas", action_group)
        self._show_popover(Gtk.PopoverMenu.new_from_model(menu), "_context_popover", x, y)

    # ==================== View ====================

    def zoom_in(self):
        self.session.zoom_at(1.2, self.get_width() / 2, self.get_height() / 2)

    def zoom_out(self):
        self.session.zoom_at(1 / 1.2, self.get_width() / 2, self.get_height() / 2)

    def zoom_to_100(self):
        view = self.session.view
        self.session.zoom_at(1.0 / view.zoom, self.get_width() / 2, self.get_height() / 2)

    def zoom_to_fit(self):
        """Zoom to fit all visible nodes."""
        box_bounds = bounds(self.boxes)
        if box_bounds is None:
            return
        min_x, min_y, max_x, max_y = box_bounds
        width, height = self.get_width(), self.get_height()

        zoom = min(
            (width - 40) / (max_x - min_x + 100),
            (height - 40) / (max_y - min_y + 100),
            1.0,  # Don't zoom in beyond 100%
        )
        center_x = (min_x + max_x) / 2
        center_y = (min_y + max_y) / 2
        self.session.set_view(zoom, width / 2 - center_x * zoom, height / 2 - center_y * zoom)

    def center_view(self):
        """Center the view on the root node."""
        root = self.session.document.root
        if root is None:
            return
        zoom = self.session.view.zoom
        self.session.set_view(
            zoom,
            self.get_width() / 2 - root.position.x * zoom,
            self.get_height() / 2 - root.position.y * zoom,
        )

    def toggle_grid(self):
        self.show_grid = not self.show_grid
        self.queue_draw()
