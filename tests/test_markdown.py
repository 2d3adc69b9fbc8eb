from datetime import date

from boardmind.elements import Group, Note
from boardmind.markdown import (
    board_to_markdown, export_filename, impact_map_to_markdown, sitemap_to_markdown,
)
from boardmind.tree_layout import HierarchicalNode

DAY = date(2024, 3, 1)


def test_export_filename():
    assert export_filename("My Board", "board") == "my-board-board.md"
    assert export_filename("  Q3   plan ", "impact-map") == "q3-plan-impact-map.md"
    assert export_filename("", "sitemap", "png") == "untitled-sitemap.png"


def test_board_lists_notes_by_group_and_votes():
    elements = [
        Group(id="g1", x=0, y=0, width=400, height=300, label="Went well"),
        Group(id="g2", x=1000, y=0, label="Empty"),
        Note(id="a", x=10, y=10, content="Pairing", votes=1),
        Note(id="b", x=10, y=150, content="Demos", votes=3),
        Note(id="c", x=600, y=0, content="Flaky CI"),
        Note(id="d", x=600, y=200),
    ]
    md = board_to_markdown("Retro", elements, exported=DAY)

    assert md.startswith("# Retro\n\n*Exported: 2024-03-01*\n\n")
    assert "## Went well\n\n- Demos **(+3 votes)**\n- Pairing **(+1 votes)**\n\n" in md
    assert "## Empty\n\n*No notes in this group*\n\n" in md
    assert "## Ungrouped Notes\n\n- Flaky CI\n- *Empty note*\n\n" in md
    assert md.endswith("**Summary:** 4 notes, 2 groups, 4 total votes\n")


def test_board_without_ungrouped_notes_omits_section():
    md = board_to_markdown("Empty", [], exported=DAY)
    assert "Ungrouped" not in md
    assert "**Summary:** 0 notes, 0 groups, 0 total votes" in md


def test_sitemap_outline_and_summary():
    nodes = [
        HierarchicalNode("home", None, 0, "landing", "Home",
                         {"status": "done", "release": "MVP", "persona_ids": ["p1"],
                          "description": "Entry point"}),
        HierarchicalNode("signup", "home", 0, "form", "Sign up",
                         {"status": "in-progress", "release": "MVP"}),
        HierarchicalNode("weird", "home", 1, "hologram", "",
                         {"status": "planned", "release": "v2.0"}),
    ]
    md = sitemap_to_markdown("Shop", nodes, {"p1": "Buyer"}, exported=DAY)

    assert "## Site Structure\n\n### Home (Landing) - MVP ✓\n*Entry point*\n" in md
    assert "- **Personas:** Buyer\n" in md
    assert "  - Sign up (Form) - MVP ⏳\n" in md
    assert "  - Untitled (Other) - v2.0\n" in md
    assert "- **Total screens:** 3\n" in md
    assert "- **Done:** 1 screens\n- **In Progress:** 1 screens\n- **Planned:** 1 screens\n" in md
    assert md.endswith("### By Release\n- **MVP:** 2 screens\n- **v2.0:** 1 screens\n")


def test_impact_map_checklist():
    nodes = [
        HierarchicalNode("u", None, 0, "actor", "Shoppers", {"persona_id": "p1"}),
        HierarchicalNode("i1", "u", 0, "impact", "Check out faster"),
        HierarchicalNode("d1", "i1", 0, "deliverable", "One-click pay", {"status": "done"}),
        HierarchicalNode("d2", "i1", 1, "deliverable", "Saved cards", {"status": "planned"}),
        HierarchicalNode("d3", "i1", 2, "deliverable", "Wallets", {"status": "rejected"}),
        HierarchicalNode("i2", "u", 1, "impact", "Return more often"),
    ]
    md = impact_map_to_markdown("Q3", "Grow revenue", nodes, {"p1": "Buyer"}, exported=DAY)

    assert md.startswith("# Q3\n\n## Goal\nGrow revenue\n\n---\n\n")
    assert "## Actor: Shoppers (Buyer)\n\n### Impact: Check out faster\n\n" in md
    assert ("**Deliverables:**\n- [x] One-click pay _(done)_\n- [ ] Saved cards\n"
            "- [ ] Wallets _(rejected)_\n") in md
    assert "### Impact: Return more often\n\n---" in md
    assert md.endswith("_Exported from BoardMind on 2024-03-01_\n")
