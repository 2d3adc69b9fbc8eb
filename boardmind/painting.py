"""Cairo painting shared by the on-screen canvases and PNG export."""

import math
from typing import AbstractSet, Dict, Iterable, List, Optional, Sequence

import cairo

from boardmind.connectors import Connector
from boardmind.elements import Element, ElementType, paint_order
from boardmind.geometry import Point, Rect
from boardmind.hierarchy import GOAL_ID
from boardmind.selection import Selection
from boardmind.transform import HANDLE_SIZE, handle_rects
from boardmind.tree_layout import HierarchicalNode, LayoutConfig

COLORS = {
    'bg_primary': (0.973, 0.980, 0.988),
    'grid_dots': (0.827, 0.851, 0.878),
    'text_primary': (0.118, 0.161, 0.231),
    'text_secondary': (0.392, 0.455, 0.545),
    'selection': (0.231, 0.510, 0.965),
    'connector': (0.580, 0.639, 0.722),
    'node_surface': (1.0, 1.0, 1.0),
    'node_border': (0.886, 0.910, 0.941),
}

NOTE_FILLS = {
    'yellow': (0.996, 0.941, 0.541),
    'pink': (0.984, 0.812, 0.910),
    'blue': (0.749, 0.859, 0.996),
    'green': (0.733, 0.969, 0.816),
    'purple': (0.914, 0.835, 1.0),
    'orange': (0.996, 0.843, 0.667),
}

GROUP_FILLS = {
    'slate': (0.392, 0.455, 0.545),
    'blue': (0.231, 0.510, 0.965),
    'green': (0.133, 0.773, 0.369),
    'purple': (0.659, 0.333, 0.969),
    'amber': (0.961, 0.620, 0.043),
    'rose': (0.957, 0.247, 0.369),
}

NODE_TYPE_COLORS = {
    'goal': (0.392, 0.455, 0.545),
    'actor': (0.231, 0.510, 0.965),
    'impact': (0.961, 0.620, 0.043),
    'deliverable': (0.133, 0.773, 0.369),
}

STATUS_COLORS = {
    'planned': (0.580, 0.639, 0.722),
    'in-progress': (0.961, 0.620, 0.043),
    'done': (0.133, 0.773, 0.369),
    'rejected': (0.937, 0.267, 0.267),
}

DIMMED_ALPHA = 0.3
NOTE_PADDING = 10


def draw_rounded_rect(cr, x: float, y: float, w: float, h: float, radius: float):
    """Draw a rounded rectangle path."""
    radius = min(radius, w / 2, h / 2)
    cr.new_path()
    cr.arc(x + w - radius, y + radius, radius, -math.pi / 2, 0)
    cr.arc(x + w - radius, y + h - radius, radius, 0, math.pi / 2)
    cr.arc(x + radius, y + h - radius, radius, math.pi / 2, math.pi)
    cr.arc(x + radius, y + radius, radius, math.pi, 3 * math.pi / 2)
    cr.close_path()


def draw_background(cr, width: float, height: float, pan_x: float = 0.0,
                    pan_y: float = 0.0, zoom: float = 1.0, grid_size: float = 0.0):
    """Fill the background and, when ``grid_size`` is set, a dot grid."""
    cr.set_source_rgb(*COLORS['bg_primary'])
    cr.paint()
    if grid_size <= 0:
        return

    cr.save()
    cr.set_source_rgb(*COLORS['grid_dots'])
    effective_grid = grid_size * zoom
    if effective_grid < 4:
        cr.restore()
        return
    x = pan_x % effective_grid
    while x < width:
        y = pan_y % effective_grid
        while y < height:
            cr.arc(x, y, 1.2, 0, 2 * math.pi)
            cr.fill()
            y += effective_grid
        x += effective_grid
    cr.restore()


def wrap_text(cr, text: str, max_width: float) -> List[str]:
    """Greedy word wrap using the current font."""
    lines: List[str] = []
    for paragraph in text.split("\n"):
        words = paragraph.split(" ")
        line = ""
        for word in words:
            candidate = f"{line} {word}" if line else word
            if line and cr.text_extents(candidate).x_advance > max_width:
                lines.append(line)
                line = word
            else:
                line = candidate
        lines.append(line)
    return lines


def draw_text_block(cr, text: str, x: float, y: float, max_width: float,
                    max_height: float, size: float = 13, bold: bool = False):
    cr.select_font_face("Sans", cairo.FONT_SLANT_NORMAL,
                        cairo.FONT_WEIGHT_BOLD if bold else cairo.FONT_WEIGHT_NORMAL)
    cr.set_font_size(size)
    line_height = size * 1.3
    baseline = y + size
    for line in wrap_text(cr, text, max_width):
        if baseline > y + max_height:
            break
        cr.move_to(x, baseline)
        cr.show_text(line)
        baseline += line_height


# ==================== Boards ====================

def draw_group(cr, group: Element, selected: bool, hovered: bool, is_exporting: bool,
               zoom: float = 1.0):
    color = GROUP_FILLS.get(group.color, GROUP_FILLS['slate'])
    draw_rounded_rect(cr, group.x, group.y, group.width, group.height, 12)
    cr.set_source_rgba(*color, 0.08)
    cr.fill_preserve()
    cr.set_source_rgba(*color, 0.9 if (selected or hovered) and not is_exporting else 0.5)
    cr.set_line_width(2 if selected and not is_exporting else 1.5)
    cr.set_dash([8, 4])
    cr.stroke()
    cr.set_dash([])

    cr.set_source_rgb(*color)
    draw_text_block(cr, group.label, group.x + 12, group.y + 8,
                    group.width - 24, 24, size=14, bold=True)

    if selected and not is_exporting:
        size = HANDLE_SIZE / zoom
        for area in handle_rects(group.rect, size).values():
            cr.rectangle(area.x, area.y, area.width, area.height)
            cr.set_source_rgb(1, 1, 1)
            cr.fill_preserve()
            cr.set_source_rgb(*COLORS['selection'])
            cr.set_line_width(1 / zoom)
            cr.stroke()


def draw_note(cr, note: Element, selected: bool, hovered: bool, is_exporting: bool):
    fill = NOTE_FILLS.get(note.color, NOTE_FILLS['yellow'])
    if not is_exporting:
        draw_rounded_rect(cr, note.x + 2, note.y + 3, note.width, note.height, 6)
        cr.set_source_rgba(0, 0, 0, 0.12 if hovered else 0.08)
        cr.fill()
    draw_rounded_rect(cr, note.x, note.y, note.width, note.height, 6)
    cr.set_source_rgb(*fill)
    cr.fill_preserve()
    if selected and not is_exporting:
        cr.set_source_rgb(*COLORS['selection'])
        cr.set_line_width(2)
    else:
        cr.set_source_rgba(0, 0, 0, 0.1)
        cr.set_line_width(1)
    cr.stroke()

    cr.set_source_rgb(*COLORS['text_primary'])
    draw_text_block(cr, note.content, note.x + NOTE_PADDING, note.y + NOTE_PADDING,
                    note.width - 2 * NOTE_PADDING, note.height - 2 * NOTE_PADDING - 14)

    if note.votes > 0:
        label = f"+{note.votes}"
        cr.select_font_face("Sans", cairo.FONT_SLANT_NORMAL, cairo.FONT_WEIGHT_BOLD)
        cr.set_font_size(11)
        extents = cr.text_extents(label)
        bx = note.x + note.width - extents.x_advance - 16
        by = note.y + note.height - 22
        draw_rounded_rect(cr, bx, by, extents.x_advance + 10, 16, 8)
        cr.set_source_rgba(0, 0, 0, 0.12)
        cr.fill()
        cr.set_source_rgb(*COLORS['text_primary'])
        cr.move_to(bx + 5, by + 12)
        cr.show_text(label)


def draw_board(cr, elements: Iterable[Element], selection: Optional[Selection] = None,
               hover_id: Optional[str] = None, is_exporting: bool = False,
               zoom: float = 1.0):
    """Paint elements in canvas space: groups behind notes, zIndex within each."""
    selected = selection.ids if selection is not None else frozenset()
    for element in paint_order(elements):
        is_selected = element.id in selected
        is_hovered = element.id == hover_id
        if element.type == ElementType.GROUP:
            # Resize handles only for a single selection
            single = selection is not None and selection.single_id == element.id
            draw_group(cr, element, single, is_hovered, is_exporting, zoom)
            if is_selected and not single and not is_exporting:
                draw_rounded_rect(cr, element.x, element.y, element.width, element.height, 12)
                cr.set_source_rgb(*COLORS['selection'])
                cr.set_line_width(2)
                cr.stroke()
        else:
            draw_note(cr, element, is_selected, is_hovered, is_exporting)


def draw_selection_box(cr, rect: Rect):
    """Rubber band in screen space."""
    cr.rectangle(rect.x, rect.y, rect.width, rect.height)
    cr.set_source_rgba(*COLORS['selection'], 0.1)
    cr.fill_preserve()
    cr.set_source_rgba(*COLORS['selection'], 0.8)
    cr.set_line_width(1)
    cr.stroke()


# ==================== Trees ====================

def draw_connectors(cr, connectors: Iterable[Connector], dimmed_ids: AbstractSet[str] = frozenset()):
    cr.set_line_width(2)
    cr.set_line_cap(cairo.LINE_CAP_ROUND)
    for connector in connectors:
        curve = connector.curve
        alpha = DIMMED_ALPHA if connector.child_id in dimmed_ids else 1.0
        cr.set_source_rgba(*COLORS['connector'], alpha)
        cr.move_to(curve.start.x, curve.start.y)
        cr.curve_to(curve.control1.x, curve.control1.y,
                    curve.control2.x, curve.control2.y,
                    curve.end.x, curve.end.y)
        cr.stroke()


def draw_tree_node(cr, node: HierarchicalNode, pos: Point, config: LayoutConfig,
                   selected: bool, dimmed: bool, is_exporting: bool):
    w, h = config.node_width, config.node_height
    accent = NODE_TYPE_COLORS.get(node.type, COLORS['selection'])
    alpha = DIMMED_ALPHA if dimmed else 1.0

    cr.push_group()
    draw_rounded_rect(cr, pos.x, pos.y, w, h, 8)
    cr.set_source_rgb(*COLORS['node_surface'])
    cr.fill_preserve()
    if selected and not is_exporting:
        cr.set_source_rgb(*COLORS['selection'])
        cr.set_line_width(2.5)
    else:
        cr.set_source_rgb(*accent)
        cr.set_line_width(1.5)
    cr.stroke()

    cr.rectangle(pos.x, pos.y + 8, 4, h - 16)
    cr.set_source_rgb(*accent)
    cr.fill()

    cr.set_source_rgb(*COLORS['text_secondary'])
    draw_text_block(cr, node.type.upper() if node.type else "", pos.x + 14, pos.y + 8,
                    w - 28, 14, size=9, bold=True)
    cr.set_source_rgb(*COLORS['text_primary'])
    draw_text_block(cr, node.label, pos.x + 14, pos.y + 26, w - 28, h - 44,
                    size=13, bold=node.id == GOAL_ID)

    status = node.data.get("status")
    if status in STATUS_COLORS:
        cr.arc(pos.x + w - 14, pos.y + 14, 5, 0, 2 * math.pi)
        cr.set_source_rgb(*STATUS_COLORS[status])
        cr.fill()
    cr.pop_group_to_source()
    cr.paint_with_alpha(alpha)


def draw_tree(cr, nodes: Sequence[HierarchicalNode], positions: Dict[str, Point],
              config: LayoutConfig, connectors: Iterable[Connector],
              selected_id: Optional[str] = None,
              dimmed_ids: AbstractSet[str] = frozenset(),
              is_exporting: bool = False):
    """Paint connectors first, then nodes, in canvas space."""
    draw_connectors(cr, connectors, dimmed_ids)
    for node in nodes:
        pos = positions.get(node.id)
        if pos is None:
            continue
        draw_tree_node(cr, node, pos, config, node.id == selected_id,
                       node.id in dimmed_ids, is_exporting)
