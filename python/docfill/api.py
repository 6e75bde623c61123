"""
Entry points: fill a template package, or list the placeholders it contains.
"""

import re
from pathlib import Path
from typing import Any, List, Mapping, Optional, Tuple

import structlog
from docx.oxml.ns import qn

from docfill.config import HEADER_FOOTER_PATTERN, MAIN_DOCUMENT_PART, REQUIRED_PARTS, FillOptions
from docfill.fill.engine import FillReport, PartFiller
from docfill.fill.scanner import Unterminated, scan_markers
from docfill.models import ReplacementTable, build_replacements
from docfill.package.context import PackageContext
from docfill.package.store import PackageStore
from docfill.utils.docx import get_node_text, get_paragraph_text_nodes, parse_part, serialize_part

logger = structlog.get_logger(__name__)

_HEADER_FOOTER_RE = re.compile(HEADER_FOOTER_PATTERN)


def document_parts(store: PackageStore) -> List[str]:
    """The main document part, then headers and footers in numeric order."""
    extra = []
    for name in store.names():
        m = _HEADER_FOOTER_RE.match(name)
        if m:
            extra.append((int(m.group(2)), m.group(1), name))
    return [MAIN_DOCUMENT_PART] + [name for _, _, name in sorted(extra)]


def fill_package(
    store: PackageStore, replacements: Mapping[str, Any], options: Optional[FillOptions] = None
) -> FillReport:
    """
    Fills every document part of store in memory and flushes relationships,
    content types and media into it. Nothing is written to disk.
    """
    options = options or FillOptions()
    store.require(*REQUIRED_PARTS)
    table: ReplacementTable = build_replacements(replacements)
    context = PackageContext(store, options)
    report = FillReport()

    parts = [(name, parse_part(store.read(name), name)) for name in document_parts(store)]
    for _, root in parts:
        context.observe_drawing_ids(root)

    for name, root in parts:
        report.parts.append(name)
        filler = PartFiller(root, name, table, context, report, options)
        if filler.run():
            store.replace(name, serialize_part(root))
            report.changed_parts.append(name)

    context.flush()
    logger.info(
        "Filled package",
        parts=len(report.parts),
        changed=len(report.changed_parts),
        substituted=report.substituted,
        images=report.images,
        tables=report.tables,
        rows_added=report.rows_added,
        unresolved=len(report.unresolved),
    )
    return report


def fill_template(
    template_path, output_path, replacements: Mapping[str, Any], options: Optional[FillOptions] = None
) -> FillReport:
    """
    Writes a filled copy of template_path to output_path.

    The template is never modified. The output is published with an atomic
    rename only after every part, relationship and media file has been
    processed; on any DocfillError nothing is written at output_path.
    """
    store = PackageStore.open(template_path)
    report = fill_package(store, replacements, options)
    store.save(output_path)
    return report


def fill_stream(
    template_bytes: bytes, replacements: Mapping[str, Any], options: Optional[FillOptions] = None
) -> Tuple[bytes, FillReport]:
    store = PackageStore.from_bytes(template_bytes)
    report = fill_package(store, replacements, options)
    return store.to_bytes(), report


def list_placeholders(template_path) -> List[str]:
    """Normalized names of every complete marker, in document order, without duplicates."""
    store = PackageStore.open(Path(template_path))
    store.require(*REQUIRED_PARTS)
    names: List[str] = []
    for part_name in document_parts(store):
        root = parse_part(store.read(part_name), part_name)
        for paragraph in root.iter(qn("w:p")):
            texts = [get_node_text(t) for t in get_paragraph_text_nodes(paragraph)]
            for result in scan_markers(texts):
                if isinstance(result, Unterminated):
                    continue
                if result.name not in names:
                    names.append(result.name)
    return names
