"""
In-place text substitution of scanned markers.

Only w:t content changes; runs (and the formatting they carry) are never
removed here, so a fully consumed interior node stays behind with empty text.
"""

from typing import List

from docfill.fill.scanner import Match, SameNode
from docfill.utils.docx import get_node_text, set_text_content


def substitute_text(nodes: List, match: Match, value: str):
    """
    Replaces the marker described by match with value.

    Same node:    leading + value + trailing
    Spanning:     start node -> leading + value, interior nodes -> "", end node -> trailing
    """
    if isinstance(match, SameNode):
        t = nodes[match.node_index]
        text = get_node_text(t)
        set_text_content(t, text[: match.start_offset] + value + text[match.end_offset :])
        return

    start_t = nodes[match.start_index]
    end_t = nodes[match.end_index]
    set_text_content(start_t, get_node_text(start_t)[: match.start_offset] + value)
    for t in nodes[match.start_index + 1 : match.end_index]:
        set_text_content(t, "")
    set_text_content(end_t, get_node_text(end_t)[match.end_offset :])


def keep_marker_name(nodes: List, match: Match):
    """Strips the delimiters but keeps the raw name visible (unresolved placeholder)."""
    substitute_text(nodes, match, match.raw_name)
