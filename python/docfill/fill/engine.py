from dataclasses import dataclass, field
from typing import List, Optional

import structlog
from docx.oxml.ns import qn

from docfill.config import MARKER_START, FillOptions
from docfill.errors import MissingReplacement, UnterminatedMarker
from docfill.fill.classifier import FullTable, Image, ImageGroup, Skip, Text, classify
from docfill.fill.images import build_image_group_paragraphs, inject_image
from docfill.fill.rows import expand_table_rows
from docfill.fill.scanner import SameNode, Unterminated, scan_markers
from docfill.fill.tables import build_table
from docfill.fill.text import keep_marker_name, substitute_text
from docfill.models import ReplacementTable
from docfill.package.context import PackageContext
from docfill.utils.docx import create_element, get_node_text, get_paragraph_text_nodes, replace_element

logger = structlog.get_logger(__name__)


@dataclass
class FillReport:
    """Counters of what a fill run did, for callers and the CLI."""

    parts: List[str] = field(default_factory=list)
    changed_parts: List[str] = field(default_factory=list)
    substituted: int = 0
    images: int = 0
    tables: int = 0
    rows_bound: int = 0
    rows_added: int = 0
    unterminated: int = 0
    unresolved: List[str] = field(default_factory=list)

    @property
    def has_unresolved(self) -> bool:
        return bool(self.unresolved) or self.unterminated > 0


def _touched_indices(match) -> range:
    if isinstance(match, SameNode):
        return range(match.node_index, match.node_index + 1)
    return range(match.start_index, match.end_index + 1)


class PartFiller:
    """
    Fills the placeholders of one document part (body, header or footer).
    The part's tree is private to the filler; everything package-wide goes
    through the shared PackageContext.
    """

    def __init__(
        self,
        root,
        part_name: str,
        replacements: ReplacementTable,
        context: PackageContext,
        report: FillReport,
        options: Optional[FillOptions] = None,
    ):
        self.root = root
        self.part_name = part_name
        self.replacements = replacements
        self.context = context
        self.report = report
        self.options = options or context.options
        self.changed = False

    def run(self) -> bool:
        """Expands template rows, then fills every paragraph. Returns True if the tree changed."""
        for tbl in list(self.root.iter(qn("w:tbl"))):
            expansion = expand_table_rows(tbl, self.replacements, self.options)
            if expansion.rows_bound:
                self.changed = True
                self.report.rows_bound += expansion.rows_bound
                self.report.rows_added += expansion.rows_added

        for paragraph in list(self.root.iter(qn("w:p"))):
            # Paragraphs of a block replaced earlier are no longer in this tree
            if paragraph.getroottree().getroot() is not self.root:
                continue
            self._fill_paragraph(paragraph)

        logger.debug("Processed part", part=self.part_name, changed=self.changed)
        return self.changed

    def _classify(self, name: str):
        return classify(name, self.replacements, self.options.legacy_numeric_prefix)

    def _fill_paragraph(self, paragraph):
        nodes = get_paragraph_text_nodes(paragraph)
        texts = [get_node_text(t) for t in nodes]
        if not any(MARKER_START in t for t in texts):
            return

        matches = []
        for result in scan_markers(texts):
            if isinstance(result, Unterminated):
                self.report.unterminated += 1
                logger.debug("Unterminated marker", part=self.part_name, text=texts[result.node_index])
                if self.options.strict:
                    raise UnterminatedMarker(
                        f"Unterminated marker in {self.part_name}: {texts[result.node_index][result.start_offset:]!r}"
                    )
                continue
            matches.append((result, self._classify(result.name)))

        if not matches:
            return
        self.changed = True

        # The first block-level replacement takes over the whole paragraph.
        for match, kind in matches:
            if isinstance(kind, FullTable):
                tbl = build_table(kind.rows, styled=self.options.styled_tables)
                if tbl is not None:
                    self._replace_paragraph(paragraph, [tbl])
                    self.report.tables += 1
                    return
            elif isinstance(kind, ImageGroup) and kind.values:
                new_paragraphs = build_image_group_paragraphs(
                    paragraph, kind.values, kind.base_name, self.part_name, self.context
                )
                self._replace_paragraph(paragraph, new_paragraphs)
                self.report.images += len(new_paragraphs)
                return

        # Text edits go first, so a text marker ending in a run that an image
        # later replaces is still fully substituted.
        for match, kind in reversed(matches):
            if not isinstance(kind, Image):
                self._apply_text(nodes, match, kind)

        removed = set()
        for match, kind in reversed(matches):
            if not isinstance(kind, Image):
                continue
            if any(nodes[i].getparent() in removed for i in _touched_indices(match)):
                logger.debug("Image marker shares a replaced run", name=match.name, part=self.part_name)
                self.report.unresolved.append(match.name)
                continue
            removed |= inject_image(nodes, match, kind.value, self.part_name, self.context)
            self.report.images += 1

    def _apply_text(self, nodes, match, kind):
        if isinstance(kind, Text):
            substitute_text(nodes, match, kind.value)
            self.report.substituted += 1
        elif isinstance(kind, FullTable):
            # Empty table data
            substitute_text(nodes, match, "")
            self.report.substituted += 1
        else:
            if isinstance(kind, Skip) and self.options.strict:
                raise MissingReplacement(f"No replacement for placeholder '{kind.name}' in {self.part_name}")
            logger.debug("Placeholder left unresolved", name=match.name, part=self.part_name)
            self.report.unresolved.append(match.name)
            keep_marker_name(nodes, match)

    def _replace_paragraph(self, paragraph, new_elements):
        parent = paragraph.getparent()
        last_in_cell = parent is not None and parent.tag == qn("w:tc") and paragraph.getnext() is None
        replace_element(paragraph, new_elements)
        # A table cell must end with a paragraph
        if last_in_cell and new_elements and new_elements[-1].tag == qn("w:tbl"):
            parent.append(create_element("w:p"))
