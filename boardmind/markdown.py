"""Markdown export of boards, site maps and impact maps."""

import re
from datetime import date
from typing import Dict, List, Optional, Sequence

from boardmind.containment import notes_by_group
from boardmind.elements import Element, ElementType
from boardmind.hierarchy import SCREEN_STATUSES, SCREEN_TYPES, ImpactType
from boardmind.tree_layout import HierarchicalNode, children_of


def export_filename(name: str, suffix: str, extension: str = "md") -> str:
    """``"My Board"`` -> ``"my-board-board.md"``."""
    slug = re.sub(r"\s+", "-", name.strip()).lower() or "untitled"
    return f"{slug}-{suffix}.{extension}"


def _note_line(note: Element) -> str:
    content = note.content or "*Empty note*"
    if note.votes > 0:
        return f"- {content} **(+{note.votes} votes)**\n"
    return f"- {content}\n"


def _by_votes(notes: List[Element]) -> List[Element]:
    return sorted(notes, key=lambda n: n.votes, reverse=True)


def board_to_markdown(name: str, elements: Sequence[Element],
                      exported: Optional[date] = None) -> str:
    """Notes listed under the group that contains them, most votes first."""
    exported = exported or date.today()
    groups = [el for el in elements if el.type == ElementType.GROUP]
    notes = [el for el in elements if el.type == ElementType.NOTE]
    grouped, ungrouped = notes_by_group(elements)

    md = f"# {name}\n\n"
    md += f"*Exported: {exported.isoformat()}*\n\n"

    for group in groups:
        md += f"## {group.label or 'Untitled Group'}\n\n"
        group_notes = grouped.get(group.id, [])
        if not group_notes:
            md += "*No notes in this group*\n\n"
            continue
        for note in _by_votes(group_notes):
            md += _note_line(note)
        md += "\n"

    if ungrouped:
        md += "## Ungrouped Notes\n\n"
        for note in _by_votes(ungrouped):
            md += _note_line(note)
        md += "\n"

    total_votes = sum(n.votes for n in notes)
    md += "---\n\n"
    md += f"**Summary:** {len(notes)} notes, {len(groups)} groups, {total_votes} total votes\n"
    return md


STATUS_MARKS = {"done": " ✓", "in-progress": " ⏳"}


def sitemap_to_markdown(name: str, nodes: Sequence[HierarchicalNode],
                        persona_names: Optional[Dict[str, str]] = None,
                        exported: Optional[date] = None) -> str:
    """Indented outline of the screens plus status and release counts."""
    exported = exported or date.today()
    persona_names = persona_names or {}

    md = f"# {name}\n\n"
    md += f"*Exported: {exported.isoformat()}*\n\n"
    md += "## Site Structure\n\n"

    lines: List[str] = []

    def render(node: HierarchicalNode, depth: int):
        indent = "  " * depth
        prefix = "### " if depth == 0 else f"{indent}- "
        detail_indent = indent if depth == 0 else indent + "  "
        type_label = SCREEN_TYPES.get(node.type, SCREEN_TYPES["other"])

        line = f"{prefix}{node.label or 'Untitled'} ({type_label})"
        if node.data.get("release"):
            line += f" - {node.data['release']}"
        line += STATUS_MARKS.get(node.data.get("status"), "")
        lines.append(line + "\n")

        if node.data.get("description"):
            lines.append(f"{detail_indent}*{node.data['description']}*\n")
        names = [persona_names[p] for p in node.data.get("persona_ids") or [] if p in persona_names]
        if names:
            lines.append(f"{detail_indent}- **Personas:** {', '.join(names)}\n")
        lines.append("\n")

        for child in children_of(nodes, node.id):
            render(child, depth + 1)

    for root in children_of(nodes, None):
        render(root, 0)
    md += "".join(lines)

    status_counts = {status: 0 for status in SCREEN_STATUSES}
    release_counts: Dict[str, int] = {}
    for node in nodes:
        status = node.data.get("status")
        if status in status_counts:
            status_counts[status] += 1
        release = node.data.get("release")
        if release:
            release_counts[release] = release_counts.get(release, 0) + 1

    md += "---\n\n"
    md += "## Summary\n\n"
    md += f"- **Total screens:** {len(nodes)}\n"
    for status, label in (("done", "Done"), ("in-progress", "In Progress"), ("planned", "Planned")):
        if status_counts[status]:
            md += f"- **{label}:** {status_counts[status]} screens\n"
    if release_counts:
        md += "\n### By Release\n"
        for release, count in sorted(release_counts.items()):
            md += f"- **{release}:** {count} screens\n"
    return md


def impact_map_to_markdown(name: str, goal: str, nodes: Sequence[HierarchicalNode],
                           persona_names: Optional[Dict[str, str]] = None,
                           exported: Optional[date] = None) -> str:
    """Goal, then every actor with its impacts and deliverable checklist."""
    exported = exported or date.today()
    persona_names = persona_names or {}

    md = f"# {name}\n\n"
    md += f"## Goal\n{goal}\n\n"
    md += "---\n\n"

    actors = [n for n in children_of(nodes, None) if n.type == ImpactType.ACTOR.value]
    for actor in actors:
        md += f"## Actor: {actor.label}"
        persona = persona_names.get(actor.data.get("persona_id"))
        if persona:
            md += f" ({persona})"
        md += "\n\n"

        for impact in children_of(nodes, actor.id):
            if impact.type != ImpactType.IMPACT.value:
                continue
            md += f"### Impact: {impact.label}\n\n"
            deliverables = [d for d in children_of(nodes, impact.id)
                            if d.type == ImpactType.DELIVERABLE.value]
            if not deliverables:
                continue
            md += "**Deliverables:**\n"
            for deliverable in deliverables:
                status = deliverable.data.get("status", "planned")
                checkbox = "[x]" if status == "done" else "[ ]"
                label = f" _({status})_" if status != "planned" else ""
                md += f"- {checkbox} {deliverable.label}{label}\n"
            md += "\n"

    md += "---\n\n"
    md += f"_Exported from BoardMind on {exported.isoformat()}_\n"
    return md
