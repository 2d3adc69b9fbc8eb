"""Custom widgets for the BoardMind application."""

from dataclasses import dataclass
from typing import Callable, List, Optional

import gi

gi.require_version("Gtk", "4.0")
gi.require_version("Adw", "1")
from gi.repository import Gtk, Gdk, GLib, Gio, Adw, Pango

from boardmind.database import Database, DiagramKind
from boardmind.elements import ElementType
from boardmind.hierarchy import (
    NO_VALUE, SCREEN_STATUSES, SCREEN_TYPES, SitemapFilter, parent_options, parse_id_list,
    persona_ids, release_tags,
)
from boardmind.tree_layout import HierarchicalNode

BOARD_KIND = "board"

KIND_TITLES = {
    BOARD_KIND: "BOARDS",
    DiagramKind.SITEMAP: "SITE MAPS",
    DiagramKind.IMPACT: "IMPACT MAPS",
}


@dataclass
class DocumentRef:
    """A board or diagram as listed in the sidebar."""
    kind: str
    id: int
    name: str
    modified_at: str = ""


def list_documents(db: Database) -> List[DocumentRef]:
    docs = [DocumentRef(BOARD_KIND, b.id, b.name, b.modified_at) for b in db.get_all_boards()]
    docs.extend(DocumentRef(d.kind, d.id, d.name, d.modified_at) for d in db.get_all_diagrams())
    return docs


class DocumentListRow(Gtk.Box):
    """A row in the documents sidebar."""

    def __init__(self, doc: DocumentRef):
        super().__init__(orientation=Gtk.Orientation.VERTICAL, spacing=4)
        self.doc = doc

        self.set_margin_start(12)
        self.set_margin_end(12)
        self.set_margin_top(8)
        self.set_margin_bottom(8)

        self.name_label = Gtk.Label(label=doc.name)
        self.name_label.set_halign(Gtk.Align.START)
        self.name_label.set_ellipsize(Pango.EllipsizeMode.END)
        self.append(self.name_label)

        date_str = doc.modified_at[:10] if doc.modified_at else ""
        self.date_label = Gtk.Label(label=f"Modified: {date_str}")
        self.date_label.set_halign(Gtk.Align.START)
        self.date_label.add_css_class("dim-label")
        self.append(self.date_label)


class DocumentsSidebar(Gtk.Box):
    """Left sidebar listing boards, site maps and impact maps."""

    def __init__(self, db: Database):
        super().__init__(orientation=Gtk.Orientation.VERTICAL)
        self.db = db
        self.set_size_request(260, -1)

        # Callbacks
        self.on_document_selected: Optional[Callable[[DocumentRef], None]] = None
        self.on_document_delete: Optional[Callable[[DocumentRef], None]] = None
        self.on_document_rename: Optional[Callable[[DocumentRef], None]] = None

        self._right_click_doc: Optional[DocumentRef] = None
        self._context_popover: Optional[Gtk.PopoverMenu] = None

        header = Gtk.Box(orientation=Gtk.Orientation.HORIZONTAL, spacing=8)
        header.set_margin_start(16)
        header.set_margin_end(8)
        header.set_margin_top(12)
        header.set_margin_bottom(12)

        title = Gtk.Label(label="DOCUMENTS")
        title.set_hexpand(True)
        title.set_halign(Gtk.Align.START)
        title.add_css_class("heading")
        header.append(title)

        new_menu = Gio.Menu()
        new_menu.append("New Board", "win.new-board")
        new_menu.append("New Site Map", "win.new-sitemap")
        new_menu.append("New Impact Map", "win.new-impact")
        new_btn = Gtk.MenuButton()
        new_btn.set_icon_name("list-add-symbolic")
        new_btn.set_tooltip_text("New Document")
        new_btn.set_menu_model(new_menu)
        new_btn.add_css_class("flat")
        header.append(new_btn)
        self.append(header)

        self.search_entry = Gtk.SearchEntry()
        self.search_entry.set_placeholder_text("Filter documents...")
        self.search_entry.set_margin_start(12)
        self.search_entry.set_margin_end(12)
        self.search_entry.set_margin_bottom(8)
        self.search_entry.connect("search-changed", self._on_search_changed)
        self.append(self.search_entry)

        self.append(Gtk.Separator(orientation=Gtk.Orientation.HORIZONTAL))

        scrolled = Gtk.ScrolledWindow()
        scrolled.set_vexpand(True)
        scrolled.set_policy(Gtk.PolicyType.NEVER, Gtk.PolicyType.AUTOMATIC)

        self.listbox = Gtk.ListBox()
        self.listbox.set_selection_mode(Gtk.SelectionMode.SINGLE)
        self.listbox.connect("row-selected", self._on_row_selected)
        self.listbox.set_filter_func(self._filter_func)
        self.listbox.set_header_func(self._header_func)

        right_click = Gtk.GestureClick()
        right_click.set_button(3)
        right_click.connect("pressed", self._on_right_click)
        self.listbox.add_controller(right_click)

        scrolled.set_child(self.listbox)
        self.append(scrolled)

        self.rows: List[Gtk.ListBoxRow] = []
        self.filter_text = ""
        self.refresh()

    def refresh(self):
        """Reload the document list."""
        while True:
            row = self.listbox.get_row_at_index(0)
            if row is None:
                break
            self.listbox.remove(row)
        self.rows.clear()

        docs = sorted(list_documents(self.db), key=lambda d: list(KIND_TITLES).index(d.kind))
        for doc in docs:
            row = Gtk.ListBoxRow()
            row.set_child(DocumentListRow(doc))
            row.doc = doc
            self.listbox.append(row)
            self.rows.append(row)

        if not docs:
            label = Gtk.Label(label="No documents yet")
            label.add_css_class("dim-label")
            label.set_margin_top(40)
            row = Gtk.ListBoxRow()
            row.set_child(label)
            row.set_selectable(False)
            row.set_activatable(False)
            self.listbox.append(row)

    def _header_func(self, row: Gtk.ListBoxRow, before: Optional[Gtk.ListBoxRow]):
        doc = getattr(row, "doc", None)
        prev = getattr(before, "doc", None) if before is not None else None
        if doc is None or (prev is not None and prev.kind == doc.kind):
            row.set_header(None)
            return
        label = Gtk.Label(label=KIND_TITLES.get(doc.kind, doc.kind.upper()))
        label.set_halign(Gtk.Align.START)
        label.set_margin_start(12)
        label.set_margin_top(8)
        label.add_css_class("caption-heading")
        row.set_header(label)

    def _filter_func(self, row: Gtk.ListBoxRow) -> bool:
        if not self.filter_text or not hasattr(row, "doc"):
            return True
        return self.filter_text.lower() in row.doc.name.lower()

    def _on_search_changed(self, entry):
        self.filter_text = entry.get_text()
        self.listbox.invalidate_filter()

    def _on_row_selected(self, listbox, row):
        if row and hasattr(row, "doc") and self.on_document_selected:
            self.on_document_selected(row.doc)

    def _on_right_click(self, gesture, n_press, x, y):
        row = self.listbox.get_row_at_y(int(y))
        if not row or not hasattr(row, "doc"):
            return

        self._right_click_doc = row.doc

        menu = Gio.Menu()
        menu.append("Rename", "sidebar.rename")
        menu.append("Delete", "sidebar.delete")

        action_group = Gio.SimpleActionGroup()
        rename_action = Gio.SimpleAction.new("rename", None)
        rename_action.connect("activate", self._on_rename)
        action_group.add_action(rename_action)
        delete_action = Gio.SimpleAction.new("delete", None)
        delete_action.connect("activate", self._on_delete)
        action_group.add_action(delete_action)
        self.insert_action_group("sidebar", action_group)

        if self._context_popover is not None:
            self._context_popover.unparent()
            self._context_popover = None

        popover = Gtk.PopoverMenu.new_from_model(menu)
        popover.set_parent(self.listbox)
        popover.set_has_arrow(True)
        popover.set_pointing_to(Gdk.Rectangle(int(x), int(y), 1, 1))

        # Unparent on idle so the action callback fires first
        def _on_popover_closed(p):
            def _do_unparent():
                if self._context_popover is p:
                    p.unparent()
                    self._context_popover = None
                return False
            GLib.idle_add(_do_unparent)
        popover.connect("closed", _on_popover_closed)

        self._context_popover = popover
        popover.popup()

    def _on_rename(self, action, param):
        if self._right_click_doc and self.on_document_rename:
            self.on_document_rename(self._right_click_doc)

    def _on_delete(self, action, param):
        if self._right_click_doc and self.on_document_delete:
            self.on_document_delete(self._right_click_doc)

    def select_document(self, kind: str, doc_id: int):
        for row in self.rows:
            if row.doc.kind == kind and row.doc.id == doc_id:
                self.listbox.select_row(row)
                break


class ElementPalette(Gtk.Box):
    """Toolbar items dragged onto a board to create notes and groups."""

    ITEMS = (
        (ElementType.NOTE, "Note", "document-new-symbolic"),
        (ElementType.GROUP, "Group", "view-grid-symbolic"),
    )

    def __init__(self):
        super().__init__(orientation=Gtk.Orientation.HORIZONTAL, spacing=4)
        for element_type, label, icon in self.ITEMS:
            button = Gtk.Button()
            content = Adw.ButtonContent(label=label, icon_name=icon)
            button.set_child(content)
            button.add_css_class("flat")
            button.set_tooltip_text(f"Drag onto the board to add a {label.lower()}")

            source = Gtk.DragSource()
            source.set_actions(Gdk.DragAction.COPY)
            source.set_content(Gdk.ContentProvider.new_for_value(element_type.value))
            button.add_controller(source)
            self.append(button)


class SitemapFilterBar(Gtk.Box):
    """Status, persona and release filters for a site map."""

    def __init__(self):
        super().__init__(orientation=Gtk.Orientation.HORIZONTAL, spacing=8)
        self.on_filter_changed: Optional[Callable[[SitemapFilter], None]] = None
        self._personas: List[str] = []
        self._releases: List[str] = []

        self.status_dropdown = Gtk.DropDown.new_from_strings(["All statuses", *SCREEN_STATUSES])
        self.status_dropdown.connect("notify::selected", self._on_changed)
        self.append(self.status_dropdown)

        self.persona_dropdown = Gtk.DropDown.new_from_strings(["All personas"])
        self.persona_dropdown.connect("notify::selected", self._on_changed)
        self.append(self.persona_dropdown)

        self.release_dropdown = Gtk.DropDown.new_from_strings(["All releases"])
        self.release_dropdown.connect("notify::selected", self._on_changed)
        self.append(self.release_dropdown)

    def set_nodes(self, nodes: List[HierarchicalNode]):
        """Offer the personas and release tags present in ``nodes``."""
        personas = persona_ids(nodes)
        if personas != self._personas:
            self._personas = personas
            self.persona_dropdown.set_model(
                Gtk.StringList.new(["All personas", "No persona", *personas]))
        releases = release_tags(nodes)
        if releases != self._releases:
            self._releases = releases
            self.release_dropdown.set_model(
                Gtk.StringList.new(["All releases", "No release", *releases]))

    def current(self) -> SitemapFilter:
        status_index = self.status_dropdown.get_selected()
        status = SCREEN_STATUSES[status_index - 1] if 0 < status_index <= len(SCREEN_STATUSES) else ""
        return SitemapFilter(
            status=status,
            persona_id=_optional_choice(self.persona_dropdown.get_selected(), self._personas),
            release=_optional_choice(self.release_dropdown.get_selected(), self._releases),
        )

    def _on_changed(self, dropdown, _param):
        if self.on_filter_changed:
            self.on_filter_changed(self.current())


def _optional_choice(index: int, values: List[str]) -> str:
    """Map an "All / None / values..." dropdown index to a filter value."""
    if index == 1:
        return NO_VALUE
    if 1 < index <= len(values) + 1:
        return values[index - 2]
    return ""


# ==================== Dialogs ====================

def confirm_destructive(parent: Gtk.Window, heading: str, body: str,
                        on_confirm: Callable[[], None], action_label: str = "Delete"):
    """Ask before a destructive action; ``on_confirm`` runs only on accept."""
    dialog = Adw.MessageDialog(transient_for=parent, heading=heading, body=body)
    dialog.add_response("cancel", "Cancel")
    dialog.add_response("delete", action_label)
    dialog.set_response_appearance("delete", Adw.ResponseAppearance.DESTRUCTIVE)
    dialog.set_default_response("cancel")
    dialog.set_close_response("cancel")

    def _on_response(d, response):
        if response == "delete":
            on_confirm()

    dialog.connect("response", _on_response)
    dialog.present()


def ask_text(parent: Gtk.Window, heading: str, initial: str,
             on_accept: Callable[[str], None], multiline: bool = False,
             action_label: str = "Save"):
    """Prompt for a line (or block) of text."""
    dialog = Adw.MessageDialog(transient_for=parent, heading=heading)
    if multiline:
        text_view = Gtk.TextView()
        text_view.set_wrap_mode(Gtk.WrapMode.WORD_CHAR)
        text_view.get_buffer().set_text(initial)
        scrolled = Gtk.ScrolledWindow()
        scrolled.set_min_content_height(120)
        scrolled.set_min_content_width(320)
        scrolled.set_child(text_view)
        dialog.set_extra_child(scrolled)

        def _get_text() -> str:
            buffer = text_view.get_buffer()
            return buffer.get_text(buffer.get_start_iter(), buffer.get_end_iter(), False)
    else:
        entry = Gtk.Entry()
        entry.set_text(initial)
        entry.set_activates_default(True)
        dialog.set_extra_child(entry)

        def _get_text() -> str:
            return entry.get_text()

    dialog.add_response("cancel", "Cancel")
    dialog.add_response("save", action_label)
    dialog.set_response_appearance("save", Adw.ResponseAppearance.SUGGESTED)
    dialog.set_default_response("save")
    dialog.set_close_response("cancel")

    def _on_response(d, response):
        if response == "save":
            on_accept(_get_text())

    dialog.connect("response", _on_response)
    dialog.present()


def edit_screen(parent: Gtk.Window, node: HierarchicalNode, nodes: List[HierarchicalNode],
                on_accept: Callable[[dict], None]):
    """Edit a site-map screen: name, description, type, parent, status, release and personas."""
    dialog = Adw.MessageDialog(transient_for=parent, heading="Edit Screen")
    grid = Gtk.Grid(row_spacing=8, column_spacing=12)
    grid.set_size_request(380, -1)

    def add_row(row: int, title: str, widget: Gtk.Widget):
        label = Gtk.Label(label=title, xalign=0)
        label.add_css_class("dim-label")
        grid.attach(label, 0, row, 1, 1)
        widget.set_hexpand(True)
        grid.attach(widget, 1, row, 1, 1)

    name_entry = Gtk.Entry(text=node.label, placeholder_text="e.g. Home Page")
    add_row(0, "Name", name_entry)

    description_view = Gtk.TextView()
    description_view.set_wrap_mode(Gtk.WrapMode.WORD_CHAR)
    description_view.get_buffer().set_text(node.data.get("description") or "")
    scrolled = Gtk.ScrolledWindow()
    scrolled.set_min_content_height(72)
    scrolled.set_child(description_view)
    add_row(1, "Description", scrolled)

    type_keys = list(SCREEN_TYPES)
    type_dropdown = Gtk.DropDown.new_from_strings(list(SCREEN_TYPES.values()))
    type_dropdown.set_selected(type_keys.index(node.type) if node.type in SCREEN_TYPES
                               else type_keys.index("other"))
    add_row(2, "Type", type_dropdown)

    parents = parent_options(nodes, node.id)
    parent_dropdown = Gtk.DropDown.new_from_strings(
        ["None (root level)", *[p.label or "Untitled Screen" for p in parents]])
    parent_ids = [p.id for p in parents]
    if node.parent_id in parent_ids:
        parent_dropdown.set_selected(parent_ids.index(node.parent_id) + 1)
    add_row(3, "Parent", parent_dropdown)

    status_dropdown = Gtk.DropDown.new_from_strings([s.replace("-", " ").title()
                                                     for s in SCREEN_STATUSES])
    status = node.data.get("status")
    status_dropdown.set_selected(SCREEN_STATUSES.index(status) if status in SCREEN_STATUSES else 0)
    add_row(4, "Status", status_dropdown)

    release_box = Gtk.Box(orientation=Gtk.Orientation.HORIZONTAL, spacing=4)
    release_entry = Gtk.Entry(text=node.data.get("release") or "",
                              placeholder_text="Type or pick a release tag")
    release_entry.set_hexpand(True)
    release_box.append(release_entry)
    tags = release_tags(nodes)
    preset_dropdown = Gtk.DropDown.new_from_strings(["Pick", *tags])

    def _on_preset(dropdown, _param):
        index = dropdown.get_selected()
        if 0 < index <= len(tags):
            release_entry.set_text(tags[index - 1])

    preset_dropdown.connect("notify::selected", _on_preset)
    release_box.append(preset_dropdown)
    add_row(5, "Release", release_box)

    persona_entry = Gtk.Entry(text=", ".join(node.data.get("persona_ids") or []),
                              placeholder_text="Persona ids, comma separated")
    add_row(6, "Personas", persona_entry)

    dialog.set_extra_child(grid)
    dialog.add_response("cancel", "Cancel")
    dialog.add_response("save", "Save")
    dialog.set_response_appearance("save", Adw.ResponseAppearance.SUGGESTED)
    dialog.set_default_response("save")
    dialog.set_close_response("cancel")

    def _on_response(d, response):
        if response != "save":
            return
        buffer = description_view.get_buffer()
        parent_index = parent_dropdown.get_selected()
        on_accept({
            "label": name_entry.get_text().strip() or node.label,
            "description": buffer.get_text(buffer.get_start_iter(), buffer.get_end_iter(), False),
            "type": type_keys[type_dropdown.get_selected()],
            "parent_id": parent_ids[parent_index - 1] if 0 < parent_index <= len(parent_ids) else None,
            "status": SCREEN_STATUSES[status_dropdown.get_selected()],
            "release": release_entry.get_text().strip(),
            "persona_ids": parse_id_list(persona_entry.get_text()),
        })

    dialog.connect("response", _on_response)
    dialog.present()


class ShortcutsDialog(Gtk.Window):
    """Keyboard shortcuts help dialog."""

    SHORTCUTS = {
        "General": [
            ("New Board", "Ctrl+N"),
            ("Export as PNG", "Ctrl+E"),
            ("Export as Markdown", "Ctrl+Shift+E"),
            ("Keyboard Shortcuts", "Ctrl+/"),
            ("Quit", "Ctrl+Q"),
        ],
        "Navigation": [
            ("Pan Canvas", "Middle-click drag or Space+drag"),
            ("Zoom", "Ctrl+Scroll"),
            ("Zoom In / Out", "Ctrl++ / Ctrl+-"),
            ("Zoom to Fit", "Ctrl+0"),
            ("Zoom to 100%", "Ctrl+1"),
        ],
        "Boards": [
            ("Add Note", "Double-click background"),
            ("Edit Note or Group", "Double-click element"),
            ("Duplicate While Dragging", "Alt+drag"),
            ("Box Select", "Drag on background"),
            ("Delete Selection", "Delete / Backspace"),
            ("Clear Selection", "Escape"),
            ("Undo / Redo", "Ctrl+Z / Ctrl+Shift+Z"),
        ],
        "Diagrams": [
            ("Edit Label", "Double-click node"),
            ("Delete Node", "Delete / Backspace"),
            ("Clear Selection", "Escape"),
        ],
    }

    def __init__(self, parent: Gtk.Window):
        super().__init__()

        self.set_transient_for(parent)
        self.set_modal(True)
        self.set_default_size(460, 560)
        self.set_title("Keyboard Shortcuts")

        scrolled = Gtk.ScrolledWindow()
        scrolled.set_policy(Gtk.PolicyType.NEVER, Gtk.PolicyType.AUTOMATIC)

        box = Gtk.Box(orientation=Gtk.Orientation.VERTICAL, spacing=24)
        box.set_margin_start(24)
        box.set_margin_end(24)
        box.set_margin_top(24)
        box.set_margin_bottom(24)

        for section, shortcuts in self.SHORTCUTS.items():
            section_box = Gtk.Box(orientation=Gtk.Orientation.VERTICAL, spacing=8)

            title = Gtk.Label(label=section.upper())
            title.set_halign(Gtk.Align.START)
            title.add_css_class("heading")
            section_box.append(title)

            for action, keys in shortcuts:
                row = Gtk.Box(orientation=Gtk.Orientation.HORIZONTAL, spacing=12)

                action_label = Gtk.Label(label=action)
                action_label.set_halign(Gtk.Align.START)
                action_label.set_hexpand(True)
                row.append(action_label)

                keys_label = Gtk.Label(label=keys)
                keys_label.set_halign(Gtk.Align.END)
                keys_label.add_css_class("dim-label")
                row.append(keys_label)

                section_box.append(row)

            box.append(section_box)

        scrolled.set_child(box)
        self.set_child(scrolled)

        key_ctrl = Gtk.EventControllerKey()
        key_ctrl.connect("key-pressed", self._on_key_pressed)
        self.add_controller(key_ctrl)

    def _on_key_pressed(self, controller, keyval, keycode, state):
        if keyval == Gdk.KEY_Escape:
            self.close()
            return True
        return False
