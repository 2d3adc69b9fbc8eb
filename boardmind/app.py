"""Main BoardMind application."""

import logging
import sys
from pathlib import Path
from typing import Callable, Optional

import gi
gi.require_version("Gtk", "4.0")
gi.require_version("Adw", "1")
gi.require_version("Gdk", "4.0")
from gi.repository import Gtk, Gio, GLib, Adw

from boardmind import __version__, __app_id__
from boardmind.canvas import BoardCanvas, InteractiveCanvas, TreeCanvas
from boardmind.config import AppConfig
from boardmind.database import BoardBinding, Database, DiagramBinding, DiagramKind
from boardmind.elements import PALETTES, ElementType, find_element
from boardmind.export import export_board_png, export_tree_png
from boardmind.gestures import BoardInteraction, TreeInteraction
from boardmind.hierarchy import (
    CHILD_TYPE, DELIVERABLE_STATUSES, GOAL_ID, IMPACT_LAYOUT, SCREEN_STATUSES,
    ImpactType, SitemapFilter, can_add_child, find_node,
)
from boardmind.markdown import (
    board_to_markdown, export_filename, impact_map_to_markdown, sitemap_to_markdown,
)
from boardmind.tree_layout import SITEMAP_LAYOUT
from boardmind.undo import UndoManager
from boardmind.widgets import (
    BOARD_KIND, DocumentRef, DocumentsSidebar, ElementPalette, ShortcutsDialog,
    SitemapFilterBar, ask_text, confirm_destructive, edit_screen,
)

logger = logging.getLogger(__name__)

DEFAULT_SCREEN_TYPE = "other"


class BoardMindWindow(Adw.ApplicationWindow):
    """Main application window."""

    def __init__(self, app: Adw.Application, db: Database, config: AppConfig):
        super().__init__(application=app)
        self.db = db
        self.config = config
        self.current_doc: Optional[DocumentRef] = None
        self.canvas: Optional[InteractiveCanvas] = None
        self.board_binding: Optional[BoardBinding] = None
        self.diagram_binding: Optional[DiagramBinding] = None
        self._confirmed_delete: Optional[str] = None

        self.set_title("BoardMind")
        self.set_default_size(1400, 900)

        self._build_ui()
        self._setup_shortcuts()

        docs = self.sidebar.rows
        if docs:
            self.sidebar.listbox.select_row(docs[0])
        else:
            self._show_welcome()

    def _build_ui(self):
        """Build the main UI layout."""
        main_box = Gtk.Box(orientation=Gtk.Orientation.VERTICAL)
        main_box.append(self._build_header())

        self.main_paned = Gtk.Paned(orientation=Gtk.Orientation.HORIZONTAL)
        self.main_paned.set_vexpand(True)

        self.sidebar = DocumentsSidebar(self.db)
        self.sidebar.on_document_selected = self._load_document
        self.sidebar.on_document_delete = self._on_document_delete
        self.sidebar.on_document_rename = self._on_document_rename
        self.main_paned.set_start_child(self.sidebar)
        self.main_paned.set_shrink_start_child(False)
        self.main_paned.set_resize_start_child(False)

        self.canvas_frame = Gtk.Frame()
        self.main_paned.set_end_child(self.canvas_frame)

        self.toast_overlay = Adw.ToastOverlay()
        self.toast_overlay.set_child(self.main_paned)
        main_box.append(self.toast_overlay)

        self.set_content(main_box)

    def _build_header(self) -> Adw.HeaderBar:
        header = Adw.HeaderBar()

        # Board tools
        self.board_tools = Gtk.Box(orientation=Gtk.Orientation.HORIZONTAL, spacing=4)
        self.board_tools.append(ElementPalette())
        for icon, tooltip, callback in (
            ("list-add-symbolic", "Add vote", lambda b: self._change_votes(1)),
            ("list-remove-symbolic", "Remove vote", lambda b: self._change_votes(-1)),
            ("edit-clear-symbolic", "Reset votes", lambda b: self._reset_votes()),
        ):
            button = Gtk.Button(icon_name=icon, tooltip_text=tooltip)
            button.add_css_class("flat")
            button.connect("clicked", callback)
            self.board_tools.append(button)
        self.color_button = Gtk.MenuButton(icon_name="applications-graphics-symbolic",
                                           tooltip_text="Change colour")
        self.color_button.add_css_class("flat")
        self.color_button.set_create_popup_func(self._build_color_menu)
        self.board_tools.append(self.color_button)
        header.pack_start(self.board_tools)

        # Diagram tools
        self.tree_tools = Gtk.Box(orientation=Gtk.Orientation.HORIZONTAL, spacing=4)
        for icon, tooltip, callback in (
            ("list-add-symbolic", "Add child", lambda b: self._add_child()),
            ("go-up-symbolic", "Move up", lambda b: self._reorder("up")),
            ("go-down-symbolic", "Move down", lambda b: self._reorder("down")),
            ("emblem-ok-symbolic", "Cycle status", lambda b: self._cycle_status()),
            ("user-trash-symbolic", "Delete node", lambda b: self._delete_node()),
        ):
            button = Gtk.Button(icon_name=icon, tooltip_text=tooltip)
            button.add_css_class("flat")
            button.connect("clicked", callback)
            self.tree_tools.append(button)
        self.filter_bar = SitemapFilterBar()
        self.filter_bar.on_filter_changed = self._on_filter_changed
        self.tree_tools.append(self.filter_bar)
        header.pack_start(self.tree_tools)

        menu = Gio.Menu()
        view_section = Gio.Menu()
        view_section.append("Zoom to Fit", "win.zoom-fit")
        view_section.append("Zoom to 100%", "win.zoom-100")
        view_section.append("Toggle Grid", "win.toggle-grid")
        menu.append_section(None, view_section)
        export_section = Gio.Menu()
        export_section.append("Export as PNG", "win.export-png")
        export_section.append("Export as Markdown", "win.export-md")
        menu.append_section(None, export_section)
        help_section = Gio.Menu()
        help_section.append("Keyboard Shortcuts", "win.show-shortcuts")
        help_section.append("About BoardMind", "win.show-about")
        menu.append_section(None, help_section)

        menu_btn = Gtk.MenuButton()
        menu_btn.set_icon_name("open-menu-symbolic")
        menu_btn.set_menu_model(menu)
        header.pack_end(menu_btn)

        self._update_tools()
        return header

    def _setup_shortcuts(self):
        actions = [
            ("new-board", lambda: self._new_document(BOARD_KIND), "<Control>n"),
            ("new-sitemap", lambda: self._new_document(DiagramKind.SITEMAP), None),
            ("new-impact", lambda: self._new_document(DiagramKind.IMPACT), None),
            ("zoom-fit", lambda: self._with_canvas(lambda c: c.interaction.zoom_to_fit()), None),
            ("zoom-100", lambda: self._with_canvas(lambda c: c.interaction.zoom_reset()), None),
            ("toggle-grid", self._toggle_grid, None),
            ("export-png", self._export_png, "<Control>e"),
            ("export-md", self._export_md, "<Control><Shift>e"),
            ("show-shortcuts", self._show_shortcuts, "<Control>slash"),
            ("show-about", self._show_about, None),
            ("quit", lambda: self.close(), "<Control>q"),
        ]

        for name, callback, accel in actions:
            action = Gio.SimpleAction.new(name, None)
            action.connect("activate", lambda a, p, cb=callback: cb())
            self.add_action(action)

            if accel:
                self.get_application().set_accels_for_action(f"win.{name}", [accel])

        color_action = Gio.SimpleAction.new("set-color", GLib.VariantType.new("s"))
        color_action.connect("activate", lambda a, param: self._set_color(param.get_string()))
        self.add_action(color_action)

        self.get_application().set_accels_for_action("win.show-shortcuts", ["<Control>slash", "F1"])

    def _with_canvas(self, fn: Callable[[InteractiveCanvas], None]):
        if self.canvas is not None:
            fn(self.canvas)

    def _update_tools(self):
        kind = self.current_doc.kind if self.current_doc else None
        self.board_tools.set_visible(kind == BOARD_KIND)
        self.tree_tools.set_visible(kind in DiagramKind.ALL)
        self.filter_bar.set_visible(kind == DiagramKind.SITEMAP)

    # ==================== Documents ====================

    def _show_welcome(self):
        self._set_canvas(None)
        status = Adw.StatusPage(
            icon_name="view-grid-symbolic",
            title="No documents yet",
            description="Create a board, site map or impact map with Ctrl+N or the + menu",
        )
        self.canvas_frame.set_child(status)

    def _set_canvas(self, canvas: Optional[InteractiveCanvas]):
        if self.canvas is not None:
            self.canvas.teardown()
        self.canvas = canvas
        self.canvas_frame.set_child(canvas)
        self._update_tools()
        if canvas is not None:
            canvas.grab_focus()

    def _load_document(self, doc: DocumentRef):
        self.current_doc = doc
        self.board_binding = None
        self.diagram_binding = None
        canvas_kwargs = {"show_grid": self.config.show_grid, "grid_size": self.config.grid_size}

        if doc.kind == BOARD_KIND:
            self.board_binding = BoardBinding(self.db, doc.id)
            interaction = BoardInteraction(self.board_binding, undo_manager=UndoManager())
            canvas = BoardCanvas(interaction, **canvas_kwargs)
            canvas.on_element_activated = self._edit_element
        else:
            self.diagram_binding = DiagramBinding(self.db, doc.id)
            if doc.kind == DiagramKind.IMPACT:
                interaction = TreeInteraction(
                    self.diagram_binding, IMPACT_LAYOUT, confirm=self._confirm_node_delete,
                    goal=self.diagram_binding.get_goal, noun="item")
            else:
                interaction = TreeInteraction(
                    self.diagram_binding, SITEMAP_LAYOUT, confirm=self._confirm_node_delete,
                    noun="screen")
            canvas = TreeCanvas(interaction, **canvas_kwargs)
            canvas.on_node_activated = self._edit_node
            canvas.on_changed = self._on_tree_changed
            if doc.kind == DiagramKind.SITEMAP:
                self.filter_bar.set_nodes(self.diagram_binding.get_hierarchical_nodes())
                interaction.filter = self.filter_bar.current()

        self._set_canvas(canvas)
        self.set_title(f"{doc.name} - BoardMind")
        logger.debug("Loaded %s %d", doc.kind, doc.id)

    def _new_document(self, kind: str):
        if kind == BOARD_KIND:
            board = self.db.create_board()
            doc_id = board.id
        else:
            doc_id = self.db.create_diagram(kind).id
        self.sidebar.refresh()
        self.sidebar.select_document(kind, doc_id)

    def _on_document_delete(self, doc: DocumentRef):
        confirm_destructive(
            self, f'Delete "{doc.name}"?', "This cannot be undone.",
            lambda: self._delete_document(doc))

    def _delete_document(self, doc: DocumentRef):
        if doc.kind == BOARD_KIND:
            self.db.delete_board(doc.id)
        else:
            self.db.delete_diagram(doc.id)
        if self.current_doc and (self.current_doc.kind, self.current_doc.id) == (doc.kind, doc.id):
            self.current_doc = None
            self._show_welcome()
        self.sidebar.refresh()
        self._show_toast(f"Deleted {doc.name}")

    def _on_document_rename(self, doc: DocumentRef):
        ask_text(self, "Rename", doc.name, lambda name: self._rename_document(doc, name),
                 action_label="Rename")

    def _rename_document(self, doc: DocumentRef, name: str):
        name = name.strip()
        if not name:
            return
        if doc.kind == BOARD_KIND:
            self.db.rename_board(doc.id, name)
        else:
            diagram = self.db.get_diagram(doc.id)
            if diagram is None:
                return
            diagram.name = name
            self.db.update_diagram(diagram)
        doc.name = name
        self.sidebar.refresh()
        if self.current_doc and self.current_doc.id == doc.id and self.current_doc.kind == doc.kind:
            self.set_title(f"{name} - BoardMind")

    # ==================== Boards ====================

    def _selected_note_id(self) -> Optional[str]:
        if not isinstance(self.canvas, BoardCanvas):
            return None
        return self.canvas.interaction.selection.single_id

    def _change_votes(self, delta: int):
        note_id = self._selected_note_id()
        if note_id:
            self.canvas.interaction.change_votes(note_id, delta)

    def _reset_votes(self):
        note_id = self._selected_note_id()
        if note_id:
            self.canvas.interaction.reset_votes(note_id)

    def _selected_element(self):
        if not isinstance(self.canvas, BoardCanvas):
            return None
        interaction = self.canvas.interaction
        return find_element(interaction.elements, interaction.selection.single_id)

    def _build_color_menu(self, button: Gtk.MenuButton):
        menu = Gio.Menu()
        element = self._selected_element()
        if element is None:
            menu.append("Select a note or group", None)
        else:
            for name in PALETTES[element.type]:
                menu.append(name.capitalize(), f"win.set-color::{name}")
        button.set_menu_model(menu)

    def _set_color(self, color: str):
        element = self._selected_element()
        if element is not None:
            self.canvas.interaction.set_color(element.id, color)

    def _edit_element(self, element):
        if element.type == ElementType.NOTE:
            ask_text(self, "Edit Note", element.content,
                     lambda text: self._update_element(element.id, {"content": text}),
                     multiline=True)
        else:
            ask_text(self, "Rename Group", element.label,
                     lambda text: self._update_element(element.id, {"label": text.strip() or "Group"}))

    def _update_element(self, element_id: str, fields: dict):
        if self.board_binding is None:
            return
        self.board_binding.on_update_element(element_id, fields)
        self.canvas.queue_draw()

    # ==================== Diagrams ====================

    def _tree(self) -> Optional[TreeInteraction]:
        if isinstance(self.canvas, TreeCanvas):
            return self.canvas.interaction
        return None

    def _on_tree_changed(self):
        if self.diagram_binding is not None and self.current_doc.kind == DiagramKind.SITEMAP:
            self.filter_bar.set_nodes(self.diagram_binding.get_hierarchical_nodes())

    def _on_filter_changed(self, sitemap_filter: SitemapFilter):
        tree = self._tree()
        if tree is not None:
            tree.filter = sitemap_filter
            self.canvas.queue_draw()

    def _add_child(self):
        tree = self._tree()
        if tree is None:
            return
        selected = tree.selected_id
        if self.current_doc.kind == DiagramKind.IMPACT:
            node = find_node(tree.nodes, selected) if selected else None
            if node is None or node.id == GOAL_ID:
                tree.add_child(ImpactType.ACTOR.value, None)
            elif can_add_child(node.type):
                tree.add_child(CHILD_TYPE[ImpactType(node.type)].value, node.id)
            else:
                self._show_toast("Deliverables cannot have children")
        else:
            tree.add_child(DEFAULT_SCREEN_TYPE, selected)
        self.canvas.refresh()

    def _reorder(self, direction: str):
        tree = self._tree()
        if tree is not None and tree.selected_id and tree.selected_id != GOAL_ID:
            tree.reorder(tree.selected_id, direction)

    def _cycle_status(self):
        tree = self._tree()
        if tree is None or not tree.selected_id:
            return
        node = find_node(tree.nodes, tree.selected_id)
        if node is None or node.id == GOAL_ID:
            return
        if self.current_doc.kind == DiagramKind.IMPACT:
            if node.type != ImpactType.DELIVERABLE.value:
                return
            statuses = DELIVERABLE_STATUSES
        else:
            statuses = SCREEN_STATUSES
        current = node.data.get("status", statuses[0])
        index = statuses.index(current) if current in statuses else -1
        self.diagram_binding.on_update_node(node.id, {"status": statuses[(index + 1) % len(statuses)]})
        self.canvas.refresh()

    def _delete_node(self):
        tree = self._tree()
        if tree is not None and tree.selected_id and tree.selected_id != GOAL_ID:
            tree.delete_node(tree.selected_id)

    def _confirm_node_delete(self, message: str) -> bool:
        """Answer from an accepted dialog, or ask and retry the delete on accept."""
        tree = self._tree()
        if tree is None:
            return False
        node_id = tree.selected_id
        if node_id is not None and self._confirmed_delete == node_id:
            self._confirmed_delete = None
            return True

        def _accepted():
            self._confirmed_delete = node_id
            tree.delete_node(node_id)

        confirm_destructive(self, message, "This cannot be undone.", _accepted)
        return False

    def _edit_node(self, node_id: str):
        if self.diagram_binding is None:
            return
        if node_id == GOAL_ID:
            ask_text(self, "Edit Goal", self.diagram_binding.get_goal(), self._update_goal)
            return
        nodes = self.diagram_binding.get_hierarchical_nodes()
        node = find_node(nodes, node_id)
        if node is None:
            return
        if self.current_doc.kind == DiagramKind.SITEMAP:
            edit_screen(self, node, nodes, lambda fields: self._update_node(node_id, fields))
            return
        ask_text(self, "Edit Label", node.label,
                 lambda text: self._update_node(node_id, {"label": text.strip() or node.label}))

    def _update_node(self, node_id: str, fields: dict):
        tree = self._tree()
        if tree is None:
            return
        if not tree.edit_node(node_id, fields):
            self._show_toast("A screen cannot move under itself or its children")
        self.canvas.refresh()

    def _update_goal(self, goal: str):
        diagram = self.db.get_diagram(self.diagram_binding.diagram_id)
        if diagram is None:
            return
        diagram.goal = goal.strip()
        self.db.update_diagram(diagram)
        self.canvas.refresh()

    # ==================== View ====================

    def _toggle_grid(self):
        self.config.show_grid = not self.config.show_grid
        self.config.save(self.db)
        if self.canvas is not None:
            self.canvas.show_grid = self.config.show_grid
            self.canvas.queue_draw()

    def _show_shortcuts(self):
        ShortcutsDialog(self).present()

    def _show_about(self):
        about = Adw.AboutWindow(
            transient_for=self,
            application_name="BoardMind",
            application_icon="view-grid-symbolic",
            version=__version__,
            comments="Sticky-note boards, site maps and impact maps",
        )
        about.present()

    # ==================== Export ====================

    def _save_dialog(self, title: str, extension: str, filter_name: str,
                     on_path: Callable[[str], None]):
        if not self.current_doc:
            return
        kind_word = "board" if self.current_doc.kind == BOARD_KIND else self.current_doc.kind

        dialog = Gtk.FileDialog()
        dialog.set_title(title)
        dialog.set_initial_name(export_filename(self.current_doc.name, kind_word, extension))
        dialog.set_initial_folder(Gio.File.new_for_path(str(self.config.exports_dir)))

        file_filter = Gtk.FileFilter()
        file_filter.set_name(filter_name)
        file_filter.add_pattern(f"*.{extension}")
        filters = Gio.ListStore.new(Gtk.FileFilter)
        filters.append(file_filter)
        dialog.set_filters(filters)

        def _on_response(d, result):
            try:
                file = d.save_finish(result)
            except GLib.Error as e:
                # Dismissing the dialog also lands here
                logger.debug("Save dialog closed: %s", e.message)
                return
            filepath = file.get_path() if file else None
            if not filepath:
                self._show_toast("Export failed: selected location is not a local file")
                return
            on_path(filepath)

        dialog.save(self, None, _on_response)

    def _export_png(self):
        self._save_dialog("Export as PNG", "png", "PNG Images", self._write_png)

    def _write_png(self, filepath: str):
        canvas = self.canvas
        if canvas is None:
            return

        def _render():
            scale, padding = self.config.export_scale, self.config.export_padding
            if isinstance(canvas, BoardCanvas):
                ok = export_board_png(canvas.interaction.elements, filepath, scale, padding)
            else:
                tree = canvas.interaction
                ok = export_tree_png(tree.nodes, tree.config, filepath, scale, padding)
            self._show_toast(f"Exported to {filepath}" if ok else "Nothing to export")

        canvas.snapshot_after_frame(_render)

    def _export_md(self):
        self._save_dialog("Export as Markdown", "md", "Markdown Files", self._write_md)

    def _write_md(self, filepath: str):
        doc = self.current_doc
        if doc is None:
            return
        if doc.kind == BOARD_KIND:
            content = board_to_markdown(doc.name, self.db.get_elements(doc.id))
        elif doc.kind == DiagramKind.IMPACT:
            content = impact_map_to_markdown(doc.name, self.diagram_binding.get_goal(),
                                             self.db.get_nodes(doc.id))
        else:
            content = sitemap_to_markdown(doc.name, self.db.get_nodes(doc.id))
        try:
            Path(filepath).write_text(content, encoding="utf-8")
        except OSError as e:
            logger.error("Markdown export failed: %s", e)
            self._show_toast("Export failed")
            return
        logger.info("Exported markdown to %s", filepath)
        self._show_toast(f"Exported to {filepath}")

    def _show_toast(self, message: str):
        """Show a toast notification."""
        toast = Adw.Toast(title=message)
        toast.set_timeout(3)
        self.toast_overlay.add_toast(toast)


class BoardMindApp(Adw.Application):
    """Main application class."""

    def __init__(self, config: Optional[AppConfig] = None):
        super().__init__(
            application_id=__app_id__,
            flags=Gio.ApplicationFlags.DEFAULT_FLAGS
        )
        self.config = config
        self.db: Optional[Database] = None
        self.window: Optional[BoardMindWindow] = None

    def do_startup(self):
        """Initialize application."""
        Adw.Application.do_startup(self)

        overrides = {}
        if self.config is not None:
            overrides = {"data_dir": self.config.data_dir, "log_level": self.config.log_level}
        self.db = Database(self.config.db_path if self.config else None)
        self.config = AppConfig.load(self.db, **overrides)

    def do_activate(self):
        """Activate application."""
        if not self.window:
            self.window = BoardMindWindow(self, self.db, self.config)

        self.window.present()

    def do_shutdown(self):
        """Shutdown application."""
        if self.window and self.window.canvas:
            self.window.canvas.teardown()
        if self.db:
            self.db.close()

        Adw.Application.do_shutdown(self)


def main(config: Optional[AppConfig] = None) -> int:
    """Application entry point."""
    app = BoardMindApp(config)
    return app.run(sys.argv[:1])


if __name__ == "__main__":
    sys.exit(main())
