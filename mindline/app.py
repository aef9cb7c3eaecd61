"""Main Mindline application."""

import logging
import sqlite3
import sys
from pathlib import Path
from typing import Any, Callable, Optional, Sequence

import gi
gi.require_version("Gtk", "4.0")
gi.require_version("Adw", "1")
gi.require_version("Gdk", "4.0")
from gi.repository import Gtk, Gio, GLib, GObject, Adw

from mindline import __version__, __app_id__, commands
from mindline.canvas import MindMapCanvas
from mindline.database import Database, MindMap
from mindline.document import ROOT_NODE_ID, ConnectorStyle, LayoutMode, NodeStyle
from mindline.export import MindMapExporter, export_filename, get_export_dir
from mindline.session import MindMapSession
from mindline.widgets import MapsSidebar, OutlinePanel, ShortcutsDialog, SettingsDialog


logger = logging.getLogger(__name__)


class GLibScheduler:
    """One-shot timers on the GLib main loop for the session's debouncers.

    Store errors raised from a timer callback are handed to ``on_error``
    instead of escaping into the main loop.
    """

    def __init__(self, on_error: Optional[Callable[[Exception], None]] = None):
        self.on_error = on_error

    def schedule(self, delay_ms: int, callback: Callable[[], None]) -> Any:
        return GLib.timeout_add(delay_ms, self._run, callback)

    def cancel(self, handle: Any) -> None:
        GLib.source_remove(handle)

    def _run(self, callback: Callable[[], None]) -> bool:
        try:
            callback()
        except sqlite3.Error as exc:
            logger.error("Background save failed: %s", exc)
            if self.on_error:
                self.on_error(exc)
        return False  # one-shot


def _file_filters(name: str, patterns: Sequence[str] = (),
                  mime_types: Sequence[str] = ()) -> Gio.ListStore:
    file_filter = Gtk.FileFilter(name=name)
    for pattern in patterns:
        file_filter.add_pattern(pattern)
    for mime_type in mime_types:
        file_filter.add_mime_type(mime_type)
    filters = Gio.ListStore.new(Gtk.FileFilter)
    filters.append(file_filter)
    return filters


class MindlineWindow(Adw.ApplicationWindow):
    """Main application window: maps | canvas | outline."""

    NODE_STYLES = list(NodeStyle)
    CONNECTOR_STYLES = [ConnectorStyle.STRAIGHT, ConnectorStyle.CURVED, ConnectorStyle.STEPPED]
    LAYOUT_MODES = [LayoutMode.BIDIRECTIONAL, LayoutMode.LTR, LayoutMode.RTL]

    # Sections of the primary menu; a nested list becomes a submenu
    MENU = [
        [("New Map", "win.new-map"),
         ("Import Outline...", "win.import-outline"),
         ("Save Now", "win.save"),
         ("Delete Map", "win.delete-map")],
        [("Export", [("As PNG Image...", "win.export-png"),
                     ("As PDF Document...", "win.export-pdf"),
                     ("As Outline Text...", "win.export-md")])],
        [("Show Maps", "win.toggle-sidebar"),
         ("Show Outline", "win.toggle-outline"),
         ("Show Grid", "win.toggle-grid"),
         ("Fit Map in Window", "win.zoom-fit"),
         ("Actual Size", "win.zoom-100")],
        [("Preferences", "win.show-preferences"),
         ("Keyboard Shortcuts", "win.show-shortcuts"),
         ("About Mindline", "win.show-about")],
    ]

    EXPORT_FORMATS = {
        "png": ("Export as PNG", "PNG Images", "image/png"),
        "pdf": ("Export as PDF", "PDF Documents", "application/pdf"),
        "md": ("Export as Outline", "Outline Files", "text/markdown"),
    }

    def __init__(self, app: Adw.Application, db: Database):
        super().__init__(application=app, title="Mindline")
        self.db = db
        self.exporter = MindMapExporter()
        self.scheduler = GLibScheduler(on_error=self._on_store_error)
        self.session = MindMapSession.from_settings(db, self.scheduler)
        self.set_default_size(1400, 900)

        self._build_ui()
        self._install_actions()
        self.session.subscribe(self._on_session_event)
        self.connect("close-request", self._on_close_request)

        maps = self.db.get_all_maps()
        if maps:
            self._load_map(maps[0])
        else:
            self._on_new_map()

    # ==================== Layout ====================

    def _build_ui(self):
        self.sidebar = MapsSidebar(self.db)
        self.sidebar.on_map_selected = self._on_map_selected
        self.sidebar.on_new_map = self._on_new_map
        self.sidebar.on_map_delete = self._on_map_delete
        self.sidebar.on_map_rename = self._on_map_rename
        self.sidebar.on_map_duplicate = self._on_map_duplicate

        self.canvas = MindMapCanvas(self.session)
        self.canvas.show_grid = bool(self.db.get_setting("show_grid", True))
        self.outline_panel = OutlinePanel(self.session)

        # Outline on the right of the canvas, maps on the left of both
        self.outline_split = Adw.OverlaySplitView(
            sidebar_position=Gtk.PackType.END, show_sidebar=False,
            min_sidebar_width=300, max_sidebar_width=420)
        self.outline_split.set_content(self.canvas)
        self.outline_split.set_sidebar(self.outline_panel)

        self.maps_split = Adw.OverlaySplitView(
            show_sidebar=True, min_sidebar_width=220, max_sidebar_width=320)
        self.maps_split.set_sidebar(self.sidebar)
        self.maps_split.set_content(self.outline_split)

        self.toast_overlay = Adw.ToastOverlay(child=self.maps_split)

        toolbar_view = Adw.ToolbarView()
        toolbar_view.add_top_bar(self._build_header())
        toolbar_view.set_content(self.toast_overlay)
        self.set_content(toolbar_view)

    def _build_menu(self, sections) -> Gio.Menu:
        menu = Gio.Menu()
        for items in sections:
            section = Gio.Menu()
            for label, target in items:
                if isinstance(target, list):
                    section.append_submenu(label, self._build_menu([target]))
                else:
                    section.append(label, target)
            menu.append_section(None, section)
        return menu

    def _panel_toggle(self, icon: str, tooltip: str, split: Adw.OverlaySplitView) -> Gtk.ToggleButton:
        """Header toggle kept in sync with a split view's sidebar."""
        button = Gtk.ToggleButton(icon_name=icon, tooltip_text=tooltip)
        split.bind_property("show-sidebar", button, "active",
                            GObject.BindingFlags.BIDIRECTIONAL | GObject.BindingFlags.SYNC_CREATE)
        return button

    def _dropdown(self, labels, tooltip: str, handler) -> Gtk.DropDown:
        dropdown = Gtk.DropDown(model=Gtk.StringList.new(labels), tooltip_text=tooltip)
        dropdown.connect("notify::selected", handler)
        return dropdown

    def _build_header(self) -> Adw.HeaderBar:
        header = Adw.HeaderBar()

        header.pack_start(Gtk.MenuButton(
            icon_name="open-menu-symbolic", tooltip_text="Menu",
            menu_model=self._build_menu(self.MENU)))
        header.pack_start(self._panel_toggle(
            "sidebar-show-symbolic", "Maps (Ctrl+B)", self.maps_split))

        self.undo_btn = Gtk.Button(icon_name="edit-undo-symbolic", sensitive=False)
        self.undo_btn.connect("clicked", lambda b: self.session.dispatch(commands.Undo()))
        header.pack_start(self.undo_btn)
        self.redo_btn = Gtk.Button(icon_name="edit-redo-symbolic", sensitive=False)
        self.redo_btn.connect("clicked", lambda b: self.session.dispatch(commands.Redo()))
        header.pack_start(self.redo_btn)

        self.title_widget = Adw.WindowTitle(title="Mindline")
        header.set_title_widget(self.title_widget)

        header.pack_end(self._panel_toggle(
            "view-list-symbolic", "Outline (Ctrl+Shift+B)", self.outline_split))

        relayout_btn = Gtk.Button(icon_name="view-refresh-symbolic",
                                  tooltip_text="Re-arrange all topics (undo with Ctrl+Z)")
        relayout_btn.add_css_class("flat")
        relayout_btn.connect("clicked", lambda b: self.session.dispatch(
            commands.SetLayoutMode(self.session.document.layout_mode)))
        header.pack_end(relayout_btn)

        self.layout_dropdown = self._dropdown(
            ["Both Sides", "Left to Right", "Right to Left"], "Layout", self._on_layout_changed)
        header.pack_end(self.layout_dropdown)
        self.connector_dropdown = self._dropdown(
            ["Straight", "Curved", "Stepped"], "Connector style", self._on_connector_changed)
        header.pack_end(self.connector_dropdown)
        self.style_dropdown = self._dropdown(
            [s.value.title() for s in self.NODE_STYLES], "Style of selected topics",
            self._on_style_changed)
        header.pack_end(self.style_dropdown)

        return header

    def _install_actions(self):
        """Window actions and their accelerators."""
        actions = [
            ("new-map", self._on_new_map, ["<Control>n"]),
            ("import-outline", self._import_outline, ["<Control>o"]),
            ("save", self._on_save, ["<Control>s"]),
            ("delete-map", self._on_delete_current_map, []),
            ("toggle-sidebar", lambda: self._toggle_split(self.maps_split), ["<Control>b"]),
            ("toggle-outline", lambda: self._toggle_split(self.outline_split), ["<Control><Shift>b"]),
            ("toggle-grid", self.canvas.toggle_grid, []),
            ("zoom-fit", self.canvas.zoom_to_fit, ["<Control>0"]),
            ("zoom-100", self.canvas.zoom_to_100, ["<Control>1"]),
            ("zoom-in", self.canvas.zoom_in, ["<Control>plus", "<Control>equal"]),
            ("zoom-out", self.canvas.zoom_out, ["<Control>minus"]),
            ("show-shortcuts", lambda: ShortcutsDialog(self).present(), ["<Control>slash", "F1"]),
            ("show-preferences", self._show_preferences, ["<Control>comma"]),
            ("show-about", self._show_about, []),
            ("undo", lambda: self.session.dispatch(commands.Undo()), ["<Control>z"]),
            ("redo", lambda: self.session.dispatch(commands.Redo()), ["<Control>y", "<Control><Shift>z"]),
            ("export-png", lambda: self._export("png"), []),
            ("export-pdf", lambda: self._export("pdf"), []),
            ("export-md", lambda: self._export("md"), []),
            ("quit", self.close, ["<Control>q"]),
        ]

        app = self.get_application()
        for name, callback, accels in actions:
            action = Gio.SimpleAction.new(name, None)
            action.connect("activate", lambda a, p, cb=callback: cb())
            self.add_action(action)
            if accels:
                app.set_accels_for_action(f"win.{name}", accels)

    # ==================== Session events ====================

    def _on_session_event(self, event: str):
        if event == "history":
            history = self.session.history
            self.undo_btn.set_sensitive(history.can_undo)
            self.redo_btn.set_sensitive(history.can_redo)
            self.undo_btn.set_tooltip_text(f"Undo {history.undo_description}".strip())
            self.redo_btn.set_tooltip_text(f"Redo {history.redo_description}".strip())
        elif event == "document":
            self._sync_header()
        elif event == "selection":
            self._sync_style_dropdown()
        elif event == "saved":
            current = self.session.current_map
            self.sidebar.refresh(current.id if current else None)
            self._update_title()

    def _set_dropdown(self, dropdown: Gtk.DropDown, handler, index: int):
        dropdown.handler_block_by_func(handler)
        dropdown.set_selected(index)
        dropdown.handler_unblock_by_func(handler)

    def _sync_header(self):
        doc = self.session.document
        self._set_dropdown(self.layout_dropdown, self._on_layout_changed,
                           self.LAYOUT_MODES.index(doc.layout_mode))
        self._set_dropdown(self.connector_dropdown, self._on_connector_changed,
                           self.CONNECTOR_STYLES.index(doc.connector_style))
        self._sync_style_dropdown()
        self._update_title()

    def _sync_style_dropdown(self):
        node = self.session.document.get(self.session.active_id)
        self.style_dropdown.set_sensitive(node is not None)
        if node is not None:
            self._set_dropdown(self.style_dropdown, self._on_style_changed,
                               self.NODE_STYLES.index(node.style))

    def _update_title(self):
        root = self.session.document.root
        self.title_widget.set_title(root.text if root is not None else "Mindline")
        if self.session.current_map is None:
            subtitle = "Not saved yet"
        else:
            subtitle = "Unsaved changes" if self.session.is_dirty else "Saved"
        self.title_widget.set_subtitle(subtitle)

    def _on_layout_changed(self, dropdown, _param):
        mode = self.LAYOUT_MODES[dropdown.get_selected()]
        self.session.dispatch(commands.SetLayoutMode(mode))

    def _on_connector_changed(self, dropdown, _param):
        style = self.CONNECTOR_STYLES[dropdown.get_selected()]
        self.session.dispatch(commands.SetConnectorStyle(style))

    def _on_style_changed(self, dropdown, _param):
        style = self.NODE_STYLES[dropdown.get_selected()]
        self.session.dispatch(commands.SetStyle(style))
        self.canvas.grab_focus()

    # ==================== Maps ====================

    def _save_now(self) -> bool:
        """Flush pending work to the store; False when the store failed."""
        try:
            self.session.flush_outline()
            self.session.save()
        except sqlite3.Error as exc:
            self._on_store_error(exc)
            return False
        return True

    def _on_store_error(self, exc: Exception):
        self._show_toast(f"Could not save: {exc}")

    def _open_fresh_view(self):
        """Reset side panels after the document was replaced."""
        self.outline_panel.reload()
        GLib.idle_add(self._center_once)
        self.canvas.grab_focus()

    def _center_once(self) -> bool:
        self.canvas.center_view()
        return False

    def _load_map(self, mind_map: MindMap):
        self.session.load_record(mind_map)
        self.sidebar.select_map(mind_map.id)
        self.outline_panel.reload()
        if mind_map.settings.pan_x == 0 and mind_map.settings.pan_y == 0:
            GLib.idle_add(self._center_once)

    def _on_map_selected(self, mind_map: MindMap):
        current = self.session.current_map
        if current and current.id == mind_map.id:
            return
        if not self._save_now():
            return
        fresh = self.db.get_map(mind_map.id)
        if fresh:
            self._load_map(fresh)

    def _on_new_map(self):
        if not self._save_now():
            return
        self.session.new_map()
        self.sidebar.select_map(None)
        self._open_fresh_view()

    def _on_save(self):
        if self.session.current_map is None:
            # A never-saved map is written even without edits
            self.session.is_dirty = True
        if self._save_now():
            self._show_toast("Saved")

    def _confirm(self, heading: str, body: str, response: str, label: str,
                 on_confirm: Callable[[], None], destructive: bool = False,
                 extra_child: Optional[Gtk.Widget] = None):
        """Cancel/confirm message dialog; ``on_confirm`` runs on ``response``."""
        dialog = Adw.MessageDialog(transient_for=self, heading=heading, body=body)
        if extra_child is not None:
            dialog.set_extra_child(extra_child)
        dialog.add_response("cancel", "Cancel")
        dialog.add_response(response, label)
        if destructive:
            dialog.set_response_appearance(response, Adw.ResponseAppearance.DESTRUCTIVE)
            dialog.set_default_response("cancel")
        else:
            dialog.set_response_appearance(response, Adw.ResponseAppearance.SUGGESTED)
            dialog.set_default_response(response)
        dialog.connect("response", lambda d, r: r == response and on_confirm())
        dialog.present()

    def _on_delete_current_map(self):
        if self.session.current_map:
            self._on_map_delete(self.session.current_map)

    def _on_map_delete(self, mind_map: MindMap):
        self._confirm(
            "Delete Map?",
            f"“{mind_map.name}” and all its topics will be removed. This cannot be undone.",
            "delete", "Delete", lambda: self._delete_map(mind_map), destructive=True)

    def _delete_map(self, mind_map: MindMap):
        current = self.session.current_map
        is_current = current is not None and current.id == mind_map.id
        try:
            self.db.delete_map(mind_map.id)
        except sqlite3.Error as exc:
            self._on_store_error(exc)
            return
        self.sidebar.refresh(None if is_current else (current.id if current else None))

        if is_current:
            # Drop the deleted record so nothing writes it back
            self.session.current_map = None
            self.session.is_dirty = False
            remaining = self.db.get_all_maps()
            if remaining:
                self._load_map(remaining[0])
            else:
                self._on_new_map()

    def _on_map_rename(self, mind_map: MindMap):
        entry = Gtk.Entry(text=mind_map.name, activates_default=True)
        self._confirm(
            "Rename Map", "The central topic takes the new name.",
            "rename", "Rename", lambda: self._rename_map(mind_map, entry.get_text()),
            extra_child=entry)
        entry.grab_focus()

    def _rename_map(self, mind_map: MindMap, new_name: str):
        if not new_name.strip():
            return
        current = self.session.current_map
        if current and current.id == mind_map.id:
            self.session.rename_node(ROOT_NODE_ID, new_name)
            self._save_now()
            return
        try:
            self.db.rename_map(mind_map.id, new_name)
        except sqlite3.Error as exc:
            self._on_store_error(exc)
            return
        self.sidebar.refresh(current.id if current else None)

    def _on_map_duplicate(self, mind_map: MindMap):
        if not self._save_now():
            return
        try:
            new_map = self.db.duplicate_map(mind_map.id, f"{mind_map.name} (Copy)")
        except sqlite3.Error as exc:
            self._on_store_error(exc)
            return
        if new_map:
            self.sidebar.refresh(new_map.id)
            self._load_map(new_map)

    # ==================== Panels and dialogs ====================

    def _toggle_split(self, split: Adw.OverlaySplitView):
        split.set_show_sidebar(not split.get_show_sidebar())

    def _show_preferences(self):
        dialog = SettingsDialog(self, self.db)
        dialog.on_settings_changed = self._on_settings_changed
        dialog.present()

    def _on_settings_changed(self, key: str, value):
        """Apply preference changes that take effect immediately."""
        if key == "show_grid":
            self.canvas.show_grid = bool(value)
            self.canvas.queue_draw()
        elif key == "default_layout_mode":
            self.session.default_layout_mode = value
        elif key == "default_connector_style":
            self.session.default_connector_style = value

    def _show_about(self):
        Adw.AboutWindow(
            transient_for=self,
            application_name="Mindline",
            application_icon="applications-graphics",
            developer_name="Mindline Project",
            version=__version__,
            license_type=Gtk.License.MIT_X11,
            comments="Keyboard-driven mind maps with an editable outline",
        ).present()

    def _show_toast(self, message: str):
        self.toast_overlay.add_toast(Adw.Toast(title=message, timeout=3))

    # ==================== Import / Export ====================

    def _import_outline(self):
        dialog = Gtk.FileDialog(title="Import Outline")
        dialog.set_filters(_file_filters("Outline Files", patterns=("*.md", "*.txt")))
        dialog.open(self, None, self._on_import_response)

    def _on_import_response(self, dialog, result):
        try:
            file = dialog.open_finish(result)
        except GLib.Error:
            return  # cancelled
        path = file.get_path() if file else None
        if not path:
            return
        try:
            text = Path(path).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            self._show_toast(f"Import failed: {exc}")
            return
        if not self._save_now():
            return
        self.session.import_text(text)
        self.sidebar.select_map(None)
        self._open_fresh_view()
        self._show_toast(f"Imported {Path(path).name}")

    def _export(self, extension: str):
        title, filter_name, mime_type = self.EXPORT_FORMATS[extension]
        dialog = Gtk.FileDialog(
            title=title,
            initial_name=export_filename(self.session.document, extension),
            initial_folder=Gio.File.new_for_path(str(get_export_dir())),
        )
        dialog.set_filters(_file_filters(filter_name, mime_types=(mime_type,)))
        dialog.save(self, None, lambda d, r: self._on_export_response(d, r, extension))

    def _on_export_response(self, dialog, result, extension: str):
        try:
            file = dialog.save_finish(result)
        except GLib.Error:
            return  # cancelled
        filepath = file.get_path() if file else None
        if not filepath:
            self._show_toast("Export failed: selected location is not a local file")
            return

        writers = {
            "png": self.exporter.export_png,
            "pdf": self.exporter.export_pdf,
            "md": self.exporter.export_outline_file,
        }
        try:
            ok = writers[extension](self.session.document, filepath)
        except OSError as exc:
            logger.error("Export to %s failed: %s", filepath, exc)
            ok = False
        self._show_toast(f"Exported to {filepath}" if ok else "Export failed")

    def _on_close_request(self, window) -> bool:
        self._save_now()
        return False


class MindlineApp(Adw.Application):
    """Owns the store for the lifetime of the process."""

    def __init__(self):
        super().__init__(application_id=__app_id__,
                         flags=Gio.ApplicationFlags.DEFAULT_FLAGS)
        self.db: Optional[Database] = None
        self.window: Optional[MindlineWindow] = None

    def do_startup(self):
        Adw.Application.do_startup(self)
        Adw.StyleManager.get_default().set_color_scheme(Adw.ColorScheme.FORCE_DARK)
        self.db = Database()

    def do_activate(self):
        if self.window is None:
            self.window = MindlineWindow(self, self.db)
        self.window.present()

    def do_shutdown(self):
        if self.db is not None:
            self.db.close()
        Adw.Application.do_shutdown(self)


def main() -> int:
    """Application entry point."""
    return MindlineApp().run(sys.argv)


if __name__ == "__main__":
    sys.exit(main())
