"""Custom widgets for the Mindline application."""

from typing import Optional, Callable, Dict, List
import gi

gi.require_version("Gtk", "4.0")
gi.require_version("Adw", "1")
from gi.repository import Gtk, Gdk, GLib, Gio, Adw, Pango

from mindline.database import Database, MindMap
from mindline.document import ConnectorStyle, LayoutMode
from mindline.session import MindMapSession


def _set_margins(widget: Gtk.Widget, start: int, end: int, top: int = 0, bottom: int = 0):
    widget.set_margin_start(start)
    widget.set_margin_end(end)
    widget.set_margin_top(top)
    widget.set_margin_bottom(bottom)


def _panel_header(title: str, *buttons: Gtk.Widget) -> Gtk.Box:
    """Small-caps title row used at the top of both side panels."""
    header = Gtk.Box(orientation=Gtk.Orientation.HORIZONTAL, spacing=8)
    _set_margins(header, 16, 8, 12, 12)

    label = Gtk.Label(label=title.upper(), xalign=0)
    label.set_hexpand(True)
    label.add_css_class("heading")
    header.append(label)

    for button in buttons:
        header.append(button)
    return header


def _flat_button(icon: str, tooltip: str, on_click: Callable[[], None]) -> Gtk.Button:
    button = Gtk.Button(icon_name=icon, tooltip_text=tooltip)
    button.add_css_class("flat")
    button.connect("clicked", lambda b: on_click())
    return button


def _topic_lines(mind_map: MindMap) -> List[str]:
    return [line.strip().lstrip("- ") for line in mind_map.outline_text.splitlines() if line.strip()]


# ==================== Maps sidebar ====================

class MapListRow(Gtk.ListBoxRow):
    """Sidebar entry: map name over a topic count and last-modified date."""

    def __init__(self, mind_map: MindMap):
        super().__init__()
        self.mind_map = mind_map

        box = Gtk.Box(orientation=Gtk.Orientation.VERTICAL, spacing=4)
        _set_margins(box, 12, 12, 8, 8)

        name = Gtk.Label(label=mind_map.name, xalign=0)
        name.set_ellipsize(Pango.EllipsizeMode.END)
        name.add_css_class("map-name")
        box.append(name)

        modified = mind_map.modified_at[:10] if mind_map.modified_at else ""
        info = Gtk.Label(label=f"{len(_topic_lines(mind_map))} topics · {modified}", xalign=0)
        info.add_css_class("dim-label")
        info.add_css_class("caption")
        box.append(info)

        self.set_child(box)

    def matches(self, query: str) -> bool:
        """Case-insensitive match on the name or any topic of the map."""
        query = query.lower()
        return (query in self.mind_map.name.lower()
                or any(query in topic.lower() for topic in _topic_lines(self.mind_map)))


class MapsSidebar(Gtk.Box):
    """Left sidebar listing stored mindmaps, most recent first."""

    CONTEXT_ACTIONS = [
        ("rename-map", "Rename", "on_map_rename"),
        ("duplicate-map", "Duplicate", "on_map_duplicate"),
        ("delete-map", "Delete", "on_map_delete"),
    ]

    def __init__(self, db: Database):
        super().__init__(orientation=Gtk.Orientation.VERTICAL)
        self.db = db
        self.add_css_class("sidebar")
        self.set_size_request(260, -1)

        # Callbacks
        self.on_map_selected: Optional[Callable[[MindMap], None]] = None
        self.on_new_map: Optional[Callable[[], None]] = None
        self.on_map_delete: Optional[Callable[[MindMap], None]] = None
        self.on_map_rename: Optional[Callable[[MindMap], None]] = None
        self.on_map_duplicate: Optional[Callable[[MindMap], None]] = None

        self._menu_target: Optional[MindMap] = None
        self._menu_popover: Optional[Gtk.PopoverMenu] = None
        self._suppress_selection = False
        self._query = ""

        self.append(_panel_header(
            "Maps", _flat_button("list-add-symbolic", "New Map (Ctrl+N)", self._request_new_map)))

        search = Gtk.SearchEntry(placeholder_text="Filter by name or topic...")
        _set_margins(search, 12, 12, 0, 8)
        search.connect("search-changed", self._on_query_changed)
        self.append(search)
        self.append(Gtk.Separator())

        self.listbox = Gtk.ListBox(selection_mode=Gtk.SelectionMode.SINGLE)
        self.listbox.add_css_class("navigation-sidebar")
        self.listbox.set_filter_func(lambda row: not self._query or row.matches(self._query))
        self.listbox.set_placeholder(Adw.StatusPage(
            icon_name="view-list-symbolic",
            title="No Saved Maps",
            description="Maps are saved as you edit",
        ))
        self.listbox.connect("row-selected", self._on_row_selected)

        context_click = Gtk.GestureClick(button=Gdk.BUTTON_SECONDARY)
        context_click.connect("pressed", self._on_context_click)
        self.listbox.add_controller(context_click)

        self.insert_action_group("sidebar", self._build_context_actions())

        scrolled = Gtk.ScrolledWindow(vexpand=True)
        scrolled.set_policy(Gtk.PolicyType.NEVER, Gtk.PolicyType.AUTOMATIC)
        scrolled.set_child(self.listbox)
        self.append(scrolled)

        self.rows: Dict[int, MapListRow] = {}
        self.refresh()

    def refresh(self, selected_id: Optional[int] = None):
        """Reload the list from the store, keeping ``selected_id`` highlighted."""
        self._suppress_selection = True
        self.listbox.remove_all()
        self.rows = {}
        for mind_map in self.db.get_all_maps():
            row = MapListRow(mind_map)
            self.rows[mind_map.id] = row
            self.listbox.append(row)
        self.select_map(selected_id)
        self._suppress_selection = False

    def select_map(self, map_id: Optional[int]):
        """Highlight a map by ID without firing ``on_map_selected``."""
        suppress, self._suppress_selection = self._suppress_selection, True
        row = self.rows.get(map_id) if map_id is not None else None
        if row is None:
            self.listbox.unselect_all()
        else:
            self.listbox.select_row(row)
        self._suppress_selection = suppress

    def _request_new_map(self):
        if self.on_new_map:
            self.on_new_map()

    def _on_query_changed(self, entry):
        self._query = entry.get_text().strip()
        self.listbox.invalidate_filter()

    def _on_row_selected(self, listbox, row):
        if self._suppress_selection or row is None:
            return
        if self.on_map_selected:
            self.on_map_selected(row.mind_map)

    def _build_context_actions(self) -> Gio.SimpleActionGroup:
        group = Gio.SimpleActionGroup()
        for name, _label, callback_attr in self.CONTEXT_ACTIONS:
            action = Gio.SimpleAction.new(name, None)
            action.connect("activate", lambda a, p, attr=callback_attr: self._run_on_target(attr))
            group.add_action(action)
        return group

    def _run_on_target(self, callback_attr: str):
        callback = getattr(self, callback_attr)
        if self._menu_target is not None and callback:
            callback(self._menu_target)

    def _on_context_click(self, gesture, n_press, x, y):
        """Rename / duplicate / delete menu for the clicked map."""
        row = self.listbox.get_row_at_y(int(y))
        if row is None:
            return
        self._menu_target = row.mind_map

        menu = Gio.Menu()
        for name, label, _callback_attr in self.CONTEXT_ACTIONS:
            menu.append(label, f"sidebar.{name}")

        if self._menu_popover is not None:
            self._menu_popover.unparent()
        popover = Gtk.PopoverMenu.new_from_model(menu)
        popover.set_parent(self.listbox)
        target = Gdk.Rectangle()
        target.x, target.y, target.width, target.height = int(x), int(y), 1, 1
        popover.set_pointing_to(target)

        # Unparent on idle: the menu action runs after "closed"
        def _on_closed(p):
            def _release():
                if self._menu_popover is p:
                    p.unparent()
                    self._menu_popover = None
                return False
            GLib.idle_add(_release)
        popover.connect("closed", _on_closed)

        self._menu_popover = popover
        popover.popup()


# ==================== Outline editor ====================

class OutlinePanel(Gtk.Box):
    """Right sidebar with the editable outline text of the current map.

    Keystrokes go to ``session.outline_edited``, which rebuilds the tree
    after a quiet period. Canvas edits flow back into the text unless the
    user is typing in it.
    """

    def __init__(self, session: MindMapSession):
        super().__init__(orientation=Gtk.Orientation.VERTICAL)
        self.session = session
        self.set_size_request(340, -1)

        self.append(_panel_header(
            "Outline",
            _flat_button("format-justify-left-symbolic", "Apply now and tidy the text",
                         self._apply_and_tidy),
        ))
        self.append(Gtk.Separator())

        self.text_view = Gtk.TextView(monospace=True, wrap_mode=Gtk.WrapMode.NONE)
        for setter in (self.text_view.set_left_margin, self.text_view.set_right_margin,
                       self.text_view.set_top_margin, self.text_view.set_bottom_margin):
            setter(16)
        self.text_buffer = self.text_view.get_buffer()
        self.text_buffer.connect("changed", self._on_text_changed)

        scrolled = Gtk.ScrolledWindow(vexpand=True)
        scrolled.set_child(self.text_view)
        self.append(scrolled)

        self.status_label = Gtk.Label(xalign=1)
        _set_margins(self.status_label, 16, 16, 8, 8)
        self.status_label.add_css_class("dim-label")
        self.append(self.status_label)

        self._status_timeout = 0
        self.session.subscribe(self._on_session_event)
        self.reload()

    def reload(self):
        """Replace the buffer with the session's current outline."""
        text = self.session.export_text()
        if self._buffer_text() == text:
            return
        self.text_buffer.handler_block_by_func(self._on_text_changed)
        self.text_buffer.set_text(text)
        self.text_buffer.handler_unblock_by_func(self._on_text_changed)

    def _buffer_text(self) -> str:
        start, end = self.text_buffer.get_bounds()
        return self.text_buffer.get_text(start, end, True)

    def _apply_and_tidy(self):
        """Rebuild from the text right away and show the normalised outline."""
        self.session.flush_outline()
        self.reload()

    def _show_status(self, text: str, clear_after_ms: int = 0):
        self.status_label.set_label(text)
        if self._status_timeout:
            GLib.source_remove(self._status_timeout)
            self._status_timeout = 0
        if clear_after_ms:
            self._status_timeout = GLib.timeout_add(clear_after_ms, self._clear_status)

    def _clear_status(self) -> bool:
        self._status_timeout = 0
        self.status_label.set_label("")
        return False

    def _on_session_event(self, event: str):
        if event == "document" and not self.text_view.has_focus():
            self.reload()
        elif event == "saved":
            self._show_status("Saved", clear_after_ms=2000)

    def _on_text_changed(self, buffer):
        self._show_status("Editing...")
        self.session.outline_edited(self._buffer_text())


# ==================== Dialogs ====================

class ShortcutsDialog(Adw.Window):
    """Keyboard shortcuts help, one preferences group per area."""

    SHORTCUTS = {
        "General": [
            ("New Map", "Ctrl+N"),
            ("Save Now", "Ctrl+S"),
            ("Import Outline", "Ctrl+O"),
            ("Toggle Maps Sidebar", "Ctrl+B"),
            ("Toggle Outline Panel", "Ctrl+Shift+B"),
            ("Preferences", "Ctrl+,"),
            ("Keyboard Shortcuts", "Ctrl+/ or F1"),
            ("Quit", "Ctrl+Q"),
        ],
        "Canvas": [
            ("Pan", "Drag empty space or scroll"),
            ("Zoom", "Ctrl+Scroll, Ctrl++ / Ctrl+-"),
            ("Zoom to Fit", "Ctrl+0"),
            ("Zoom to 100%", "Ctrl+1"),
            ("Previous / Next Sibling", "↑ / ↓"),
            ("Toward Parent / Children", "← / →"),
        ],
        "Editing": [
            ("Add Child", "Tab"),
            ("Rename", "F2, double-click or just type"),
            ("Delete Selection", "Delete / Backspace"),
            ("Collapse / Expand", "Ctrl+Space"),
            ("Select Branch", "Shift+Space or Shift+Click"),
            ("Add to Selection", "Ctrl+Click"),
            ("Undo", "Ctrl+Z"),
            ("Redo", "Ctrl+Y or Ctrl+Shift+Z"),
        ],
    }

    def __init__(self, parent: Gtk.Window):
        super().__init__(transient_for=parent, modal=True, title="Keyboard Shortcuts")
        self.set_default_size(480, 600)

        page = Adw.PreferencesPage()
        for section, shortcuts in self.SHORTCUTS.items():
            group = Adw.PreferencesGroup(title=section)
            for action, keys in shortcuts:
                row = Adw.ActionRow(title=action)
                keys_label = Gtk.Label(label=keys)
                keys_label.add_css_class("dim-label")
                row.add_suffix(keys_label)
                group.add(row)
            page.add(group)

        toolbar = Adw.ToolbarView()
        toolbar.add_top_bar(Adw.HeaderBar())
        toolbar.set_content(page)
        self.set_content(toolbar)

        key_ctrl = Gtk.EventControllerKey()
        key_ctrl.connect("key-pressed", self._on_key_pressed)
        self.add_controller(key_ctrl)

    def _on_key_pressed(self, controller, keyval, keycode, state):
        if keyval == Gdk.KEY_Escape:
            self.close()
            return True
        return False


class SettingsDialog(Adw.PreferencesWindow):
    """Preferences stored in the app settings table."""

    LAYOUT_CHOICES = [
        (LayoutMode.BIDIRECTIONAL, "Both sides"),
        (LayoutMode.LTR, "Left to right"),
        (LayoutMode.RTL, "Right to left"),
    ]
    CONNECTOR_CHOICES = [
        (ConnectorStyle.STRAIGHT, "Straight"),
        (ConnectorStyle.CURVED, "Curved"),
        (ConnectorStyle.STEPPED, "Stepped"),
    ]
    # key, title, default, lower, upper, step
    NUMERIC_SETTINGS = [
        ("autosave_delay_ms", "Auto-save Delay (ms)", 2500, 500, 60000, 500),
        ("outline_sync_delay_ms", "Outline Sync Delay (ms)", 750, 100, 5000, 50),
        ("history_limit", "Undo Steps", 100, 1, 1000, 1),
    ]

    def __init__(self, parent: Gtk.Window, db: Database):
        super().__init__(transient_for=parent, modal=True, title="Preferences")
        self.db = db
        self.set_default_size(560, 480)

        # Live-apply callback: (key: str, value: Any) -> None
        self.on_settings_changed: Optional[Callable] = None

        # Appearance page
        appearance_page = Adw.PreferencesPage(
            title="Appearance", icon_name="applications-graphics-symbolic")
        canvas_group = Adw.PreferencesGroup(title="Canvas")

        grid_row = Adw.SwitchRow(title="Show Grid", subtitle="Display dot grid pattern on canvas")
        grid_row.set_active(bool(self.db.get_setting("show_grid", True)))
        grid_row.connect("notify::active", self._on_grid_changed)
        canvas_group.add(grid_row)

        appearance_page.add(canvas_group)
        self.add(appearance_page)

        # Behavior page
        behavior_page = Adw.PreferencesPage(
            title="Behavior", icon_name="preferences-system-symbolic")

        new_maps_group = Adw.PreferencesGroup(title="New Maps")
        new_maps_group.add(self._choice_row(
            "Default Layout", "default_layout_mode", self.LAYOUT_CHOICES,
            LayoutMode.parse(self.db.get_setting("default_layout_mode"))))
        new_maps_group.add(self._choice_row(
            "Default Connectors", "default_connector_style", self.CONNECTOR_CHOICES,
            ConnectorStyle.parse(self.db.get_setting("default_connector_style"))))
        behavior_page.add(new_maps_group)

        timing_group = Adw.PreferencesGroup(
            title="Saving and History",
            description="Changes apply the next time Mindline starts")
        for key, title, default, lower, upper, step in self.NUMERIC_SETTINGS:
            row = Adw.SpinRow.new_with_range(lower, upper, step)
            row.set_title(title)
            row.set_value(self.db.get_setting(key, default))
            row.connect("notify::value", self._on_int_changed, key)
            timing_group.add(row)
        behavior_page.add(timing_group)

        self.add(behavior_page)

    def _choice_row(self, title: str, key: str, choices, current) -> Adw.ComboRow:
        """Combo row over (enum member, label) pairs, stored as the enum value."""
        row = Adw.ComboRow(title=title)
        row.set_model(Gtk.StringList.new([label for _member, label in choices]))
        row.set_selected([member for member, _label in choices].index(current))
        row.connect("notify::selected", self._on_choice_changed, key, choices)
        return row

    def _notify(self, key: str, value):
        """Notify listener of a settings change."""
        if self.on_settings_changed:
            self.on_settings_changed(key, value)

    def _on_grid_changed(self, row, param):
        self.db.set_setting("show_grid", row.get_active())
        self._notify("show_grid", row.get_active())

    def _on_choice_changed(self, row, param, key: str, choices):
        member = choices[row.get_selected()][0]
        self.db.set_setting(key, member.value)
        self._notify(key, member)

    def _on_int_changed(self, row, param, key: str):
        val = int(row.get_value())
        self.db.set_setting(key, val)
        self._notify(key, val)
