"""PNG export of boards and hierarchical diagrams."""

import logging
from typing import Sequence

import cairo

from boardmind.connectors import tree_connectors
from boardmind.elements import Element
from boardmind.geometry import Rect, bounding_rect
from boardmind.painting import draw_background, draw_board, draw_tree
from boardmind.tree_layout import HierarchicalNode, LayoutConfig, layout_bounds, layout_tree

logger = logging.getLogger(__name__)

EXPORT_PADDING = 50
EXPORT_SCALE = 2.0


def _surface_for(bounds: Rect, scale: float, padding: float):
    width = int((bounds.width + padding * 2) * scale)
    height = int((bounds.height + padding * 2) * scale)
    surface = cairo.ImageSurface(cairo.FORMAT_ARGB32, max(1, width), max(1, height))
    cr = cairo.Context(surface)
    cr.scale(scale, scale)
    draw_background(cr, width / scale, height / scale)
    cr.translate(-bounds.x + padding, -bounds.y + padding)
    return surface, cr


def export_board_png(elements: Sequence[Element], filepath: str,
                     scale: float = EXPORT_SCALE, padding: float = EXPORT_PADDING) -> bool:
    """Render every element to a PNG without selection or hover chrome."""
    bounds = bounding_rect(el.rect for el in elements)
    if bounds is None:
        logger.info("Nothing to export")
        return False

    surface, cr = _surface_for(bounds, scale, padding)
    draw_board(cr, elements, is_exporting=True)
    surface.write_to_png(filepath)
    logger.info("Exported board to %s", filepath)
    return True


def export_tree_png(nodes: Sequence[HierarchicalNode], config: LayoutConfig, filepath: str,
                    scale: float = EXPORT_SCALE, padding: float = EXPORT_PADDING) -> bool:
    """Render a laid-out tree, connectors behind nodes, to a PNG."""
    positions = layout_tree(nodes, config)
    bounds = layout_bounds(positions, config)
    if bounds is None:
        logger.info("Nothing to export")
        return False

    surface, cr = _surface_for(bounds, scale, padding)
    draw_tree(cr, nodes, positions, config, tree_connectors(nodes, positions, config),
              is_exporting=True)
    surface.write_to_png(filepath)
    logger.info("Exported diagram to %s", filepath)
    return True
