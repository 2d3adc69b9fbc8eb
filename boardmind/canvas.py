"""Canvas widgets for rendering boards and hierarchical diagrams."""

import logging
from typing import Callable, List, Optional

import gi

gi.require_version("Gtk", "4.0")
gi.require_version("Gdk", "4.0")
from gi.repository import Gtk, Gdk, GLib, GObject

from boardmind.connectors import Connector, DeferredMeasure, measured_connectors, tree_edges
from boardmind.elements import Element
from boardmind.events import (
    Modifiers, PointerButton, PointerCapture, PointerEvent, scroll_pixels,
)
from boardmind.gestures import BoardInteraction, CanvasInteraction, TreeInteraction
from boardmind.painting import draw_background, draw_board, draw_selection_box, draw_tree
from boardmind.tree_layout import layout_tree

logger = logging.getLogger(__name__)


def _modifiers(state: Gdk.ModifierType) -> Modifiers:
    mods = Modifiers.NONE
    if state & Gdk.ModifierType.SHIFT_MASK:
        mods |= Modifiers.SHIFT
    if state & Gdk.ModifierType.CONTROL_MASK:
        mods |= Modifiers.CTRL
    if state & Gdk.ModifierType.ALT_MASK:
        mods |= Modifiers.ALT
    return mods


def _button(number: int) -> PointerButton:
    if number == Gdk.BUTTON_PRIMARY:
        return PointerButton.PRIMARY
    # Secondary pans like the middle button
    return PointerButton.MIDDLE


class InteractiveCanvas(Gtk.DrawingArea):
    """Drawing area that feeds GTK input to a ``CanvasInteraction``."""

    def __init__(self, interaction: CanvasInteraction, show_grid: bool = True,
                 grid_size: int = 20):
        super().__init__()
        self.interaction = interaction
        self.capture: PointerCapture = interaction.capture
        self.interaction.on_changed = self._on_interaction_changed

        self.show_grid = show_grid
        self.grid_size = grid_size
        self.last_mouse_x = 0.0
        self.last_mouse_y = 0.0
        self._drag_start_x = 0.0
        self._drag_start_y = 0.0
        self._drag_button = PointerButton.PRIMARY

        # Callbacks
        self.on_changed: Optional[Callable[[], None]] = None

        self.set_draw_func(self._on_draw)
        self.set_focusable(True)
        self.set_can_focus(True)
        self.set_hexpand(True)
        self.set_vexpand(True)

        self._setup_event_controllers()
        self.connect("unrealize", self._on_unrealize)

    def _setup_event_controllers(self):
        """Setup mouse and keyboard event controllers."""
        click_ctrl = Gtk.GestureClick()
        click_ctrl.set_button(0)  # All buttons
        click_ctrl.connect("pressed", self._on_pressed)
        self.add_controller(click_ctrl)

        # Drag updates become window-level pointer events for the active gesture
        drag_ctrl = Gtk.GestureDrag()
        drag_ctrl.set_button(0)
        drag_ctrl.connect("drag-begin", self._on_drag_begin)
        drag_ctrl.connect("drag-update", self._on_drag_update)
        drag_ctrl.connect("drag-end", self._on_drag_end)
        drag_ctrl.connect("cancel", self._on_drag_cancel)
        self.add_controller(drag_ctrl)

        motion_ctrl = Gtk.EventControllerMotion()
        motion_ctrl.connect("motion", self._on_motion)
        motion_ctrl.connect("leave", self._on_leave)
        self.add_controller(motion_ctrl)

        scroll_ctrl = Gtk.EventControllerScroll()
        scroll_ctrl.set_flags(Gtk.EventControllerScrollFlags.VERTICAL)
        scroll_ctrl.connect("scroll", self._on_scroll)
        self.add_controller(scroll_ctrl)

        key_ctrl = Gtk.EventControllerKey()
        key_ctrl.connect("key-pressed", self._on_key_pressed)
        key_ctrl.connect("key-released", self._on_key_released)
        self.add_controller(key_ctrl)

        focus_ctrl = Gtk.EventControllerFocus()
        focus_ctrl.connect("leave", self._on_focus_leave)
        self.add_controller(focus_ctrl)

    # ==================== Drawing ====================

    def _on_draw(self, area, cr, width, height):
        self.interaction.set_size(width, height)
        vp = self.interaction.viewport
        draw_background(cr, width, height, vp.x, vp.y, vp.zoom,
                        self.grid_size if self.show_grid else 0)
        cr.save()
        cr.translate(vp.x, vp.y)
        cr.scale(vp.zoom, vp.zoom)
        self.draw_content(cr)
        cr.restore()
        self.draw_overlay(cr)

    def draw_content(self, cr):
        """Paint in canvas coordinates."""

    def draw_overlay(self, cr):
        """Paint in screen coordinates."""

    def _on_interaction_changed(self):
        self.queue_draw()
        if self.on_changed:
            self.on_changed()

    # ==================== Pointer ====================

    def _event(self, x: float, y: float, button: PointerButton,
               state: Gdk.ModifierType, n_press: int = 1) -> PointerEvent:
        return PointerEvent(x, y, button, _modifiers(state), n_press)

    def _on_pressed(self, gesture, n_press, x, y):
        self.grab_focus()
        self._drag_button = _button(gesture.get_current_button())
        event = self._event(x, y, self._drag_button, gesture.get_current_event_state(), n_press)
        self.press(event)

    def press(self, event: PointerEvent):
        self.interaction.pointer_press(event)

    def _on_drag_begin(self, gesture, start_x, start_y):
        self._drag_start_x = start_x
        self._drag_start_y = start_y

    def _on_drag_update(self, gesture, offset_x, offset_y):
        x = self._drag_start_x + offset_x
        y = self._drag_start_y + offset_y
        self.last_mouse_x, self.last_mouse_y = x, y
        self.capture.motion.emit(
            self._event(x, y, self._drag_button, gesture.get_current_event_state()))

    def _on_drag_end(self, gesture, offset_x, offset_y):
        x = self._drag_start_x + offset_x
        y = self._drag_start_y + offset_y
        self.capture.release.emit(
            self._event(x, y, self._drag_button, gesture.get_current_event_state()))

    def _on_drag_cancel(self, gesture, sequence):
        self.capture.lost.emit()

    def _on_motion(self, controller, x, y):
        self.last_mouse_x, self.last_mouse_y = x, y
        if not self.interaction.busy:
            self.interaction.hover(x, y)

    def _on_leave(self, controller):
        if not self.interaction.busy:
            self.interaction.leave()

    def _on_focus_leave(self, controller):
        self.interaction.space_pressed = False
        self.capture.lost.emit()

    def _on_scroll(self, controller, dx, dy):
        state = controller.get_current_event_state()
        ctrl = bool(state & Gdk.ModifierType.CONTROL_MASK)
        discrete = controller.get_unit() == Gdk.ScrollUnit.WHEEL
        return self.interaction.scroll(self.last_mouse_x, self.last_mouse_y,
                                       scroll_pixels(dy, discrete), ctrl)

    # ==================== Keyboard ====================

    def _in_text_input(self) -> bool:
        root = self.get_root()
        focus = root.get_focus() if root is not None else None
        return isinstance(focus, (Gtk.Editable, Gtk.TextView))

    def _on_key_pressed(self, controller, keyval, keycode, state):
        key = Gdk.keyval_name(keyval) or ""
        return self.interaction.key_press(
            key,
            ctrl=bool(state & Gdk.ModifierType.CONTROL_MASK),
            shift=bool(state & Gdk.ModifierType.SHIFT_MASK),
            in_text_input=self._in_text_input(),
        )

    def _on_key_released(self, controller, keyval, keycode, state):
        self.interaction.key_release(Gdk.keyval_name(keyval) or "")

    # ==================== Export ====================

    def snapshot_after_frame(self, callback: Callable[[], None]):
        """Hide interactive chrome, let one frame render, then run ``callback``."""
        self.interaction.is_exporting = True
        self.interaction.hover_id = None
        self.queue_draw()

        def _run() -> bool:
            try:
                callback()
            finally:
                self.interaction.is_exporting = False
                self.queue_draw()
            return False

        GLib.timeout_add(16, _run)

    def _on_unrealize(self, widget):
        self.teardown()

    def teardown(self):
        self.interaction.teardown()


class BoardCanvas(InteractiveCanvas):
    """Sticky-note board: notes, groups, selection and drag gestures."""

    def __init__(self, interaction: BoardInteraction, **kwargs):
        super().__init__(interaction, **kwargs)
        self.on_element_activated: Optional[Callable[[Element], None]] = None

        # Toolbar items are dragged in as "note" / "group" strings
        drop_target = Gtk.DropTarget.new(GObject.TYPE_STRING, Gdk.DragAction.COPY)
        drop_target.connect("drop", self._on_drop)
        self.add_controller(drop_target)

    def press(self, event: PointerEvent):
        if event.n_press >= 2 and event.button == PointerButton.PRIMARY:
            element = self.interaction.element_at(event.x, event.y)
            if element is not None:
                if self.on_element_activated:
                    self.on_element_activated(element)
                return
        self.interaction.pointer_press(event)

    def _on_drop(self, target, value, x, y):
        return self.interaction.drop(str(value), x, y) is not None

    def draw_content(self, cr):
        interaction = self.interaction
        draw_board(cr, interaction.elements, interaction.selection,
                   interaction.hover_id, interaction.is_exporting,
                   interaction.viewport.zoom)

    def draw_overlay(self, cr):
        box = self.interaction.selection_box
        if box is not None:
            draw_selection_box(cr, box.screen_rect)


class TreeCanvas(InteractiveCanvas):
    """Site map or impact map rendered with the recursive tree layout."""

    def __init__(self, interaction: TreeInteraction, **kwargs):
        super().__init__(interaction, **kwargs)
        self.on_node_activated: Optional[Callable[[str], None]] = None
        self.measure = DeferredMeasure(self._compute_connectors, GLib.timeout_add,
                                       GLib.source_remove,
                                       on_ready=lambda connectors: self.queue_draw())
        self.measure.invalidate()

    def _compute_connectors(self) -> List[Connector]:
        nodes = self.interaction.nodes
        rects = self.interaction.node_rects(nodes)
        return measured_connectors(tree_edges(nodes), rects.get,
                                   self.interaction.config.orientation)

    def _on_interaction_changed(self):
        self.measure.invalidate()
        super()._on_interaction_changed()

    def refresh(self):
        """Re-read the store after an external change."""
        self.measure.invalidate()
        self.queue_draw()

    def press(self, event: PointerEvent):
        self.interaction.pointer_press(event)
        if (event.n_press >= 2 and self.interaction.selected_id is not None
                and self.on_node_activated):
            self.on_node_activated(self.interaction.selected_id)

    def draw_content(self, cr):
        interaction = self.interaction
        nodes = interaction.nodes
        draw_tree(cr, nodes, layout_tree(nodes, interaction.config), interaction.config,
                  self.measure.connectors, interaction.selected_id,
                  interaction.dimmed_ids(nodes), interaction.is_exporting)

    def teardown(self):
        self.measure.close()
        super().teardown()
