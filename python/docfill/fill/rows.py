"""
Row-template expansion.

A table row whose cells hold numbered markers sharing a prefix
(`%*tableC1*%`, `%*tableC2*%`) is bound to the one replacement key
`tableC(<token>)`. The row is filled with the first data record and one new
row per remaining record is inserted after it, styled from the template row.
"""

from copy import deepcopy
from dataclasses import dataclass, field
from typing import Dict, List, NamedTuple, Optional

import structlog
from docx.oxml.ns import qn

from docfill.config import FillOptions
from docfill.errors import AmbiguousRowBinding
from docfill.fill.classifier import row_binding_candidates, split_column_marker
from docfill.fill.scanner import find_markers
from docfill.models import ReplacementTable, TableCell, TableValue
from docfill.utils.docx import (
    build_element,
    build_text_run,
    create_element,
    first_child,
    get_or_add_first,
    get_paragraph_runs,
    get_paragraph_text,
    set_cell_shading,
    set_run_color,
)

logger = structlog.get_logger(__name__)


class RowExpansion(NamedTuple):
    rows_bound: int
    rows_added: int


@dataclass
class CellTemplate:
    tcPr: Optional[object] = None
    pPr: Optional[object] = None
    rPr: Optional[object] = None


@dataclass
class RowTemplate:
    trPr: Optional[object] = None
    cells: List[CellTemplate] = field(default_factory=list)

    def cell(self, index: int) -> CellTemplate:
        if index < len(self.cells):
            return self.cells[index]
        return CellTemplate()


def _default_tcPr():
    return build_element("w:tcPr", children=[build_element("w:tcW", {"w:w": 0, "w:type": "auto"})])


def capture_row_template(row) -> RowTemplate:
    """Copies row, cell, paragraph and first-run properties before the row is touched."""
    trPr = first_child(row, "w:trPr")
    template = RowTemplate(trPr=deepcopy(trPr) if trPr is not None else None)
    for tc in row.findall(qn("w:tc")):
        tcPr = first_child(tc, "w:tcPr")
        p = first_child(tc, "w:p")
        pPr = first_child(p, "w:pPr")
        runs = get_paragraph_runs(p) if p is not None else []
        rPr = first_child(runs[0], "w:rPr") if runs else None
        template.cells.append(
            CellTemplate(
                tcPr=deepcopy(tcPr) if tcPr is not None else None,
                pPr=deepcopy(pPr) if pPr is not None else None,
                rPr=deepcopy(rPr) if rPr is not None else None,
            )
        )
    return template


def _apply_cell_colors(tc, cell: TableCell):
    if cell.bg_color:
        set_cell_shading(get_or_add_first(tc, "w:tcPr"), cell.bg_color)
    if cell.font_color:
        p = first_child(tc, "w:p")
        runs = get_paragraph_runs(p) if p is not None else []
        if runs:
            set_run_color(get_or_add_first(runs[0], "w:rPr"), cell.font_color)


def _cell_value(markers: List[str], prefix: str, data_row: List[TableCell], legacy_prefix) -> Optional[str]:
    """
    The text for a template cell: the data value of the last marker bound to
    prefix, or that marker's name when the record has no such column.
    None when no marker of the cell belongs to prefix.
    """
    value = None
    for name in markers:
        split = split_column_marker(name, legacy_prefix)
        if split is None or split[0] != prefix:
            continue
        column = split[1]
        if 1 <= column <= len(data_row):
            value = data_row[column - 1].value
        else:
            value = name
    return value


def _fill_template_row(tc_list, markers_by_cell: Dict[int, List[str]], prefix, data_row, template, legacy_prefix):
    for index, tc in enumerate(tc_list):
        markers = markers_by_cell.get(index)
        if not markers:
            continue
        value = _cell_value(markers, prefix, data_row, legacy_prefix)
        if value is None:
            continue
        p = first_child(tc, "w:p")
        for run in get_paragraph_runs(p):
            run.getparent().remove(run)
        p.append(build_text_run(value, template.cell(index).rPr))

    for index, tc in enumerate(tc_list):
        if index < len(data_row):
            _apply_cell_colors(tc, data_row[index])


def build_row(data_row: List[TableCell], template: RowTemplate):
    """A new w:tr for one data record, styled from the captured template."""
    tr = create_element("w:tr")
    if template.trPr is not None:
        tr.append(deepcopy(template.trPr))
    for index, cell in enumerate(data_row):
        cell_template = template.cell(index)
        tcPr = deepcopy(cell_template.tcPr) if cell_template.tcPr is not None else _default_tcPr()
        if cell.bg_color:
            set_cell_shading(tcPr, cell.bg_color)

        rPr = deepcopy(cell_template.rPr) if cell_template.rPr is not None else None
        if cell.font_color:
            if rPr is None:
                rPr = create_element("w:rPr")
            set_run_color(rPr, cell.font_color)

        p = create_element("w:p")
        if cell_template.pPr is not None:
            p.append(deepcopy(cell_template.pPr))
        p.append(build_text_run(cell.value, rPr))
        tr.append(build_element("w:tc", children=[tcPr, p]))
    return tr


def expand_table_rows(tbl, replacements: ReplacementTable, options: FillOptions) -> RowExpansion:
    """
    Expands every bound template row of tbl. Only rows present before
    expansion are considered.
    """
    legacy_prefix = options.legacy_numeric_prefix
    bound = 0
    added = 0

    for row in list(tbl.findall(qn("w:tr"))):
        tc_list = row.findall(qn("w:tc"))
        markers_by_cell: Dict[int, List[str]] = {}
        for index, tc in enumerate(tc_list):
            p = first_child(tc, "w:p")
            if p is None:
                continue
            names = find_markers(get_paragraph_text(p))
            if names:
                markers_by_cell[index] = names
        if not markers_by_cell:
            continue

        first_name = markers_by_cell[min(markers_by_cell)][0]
        split = split_column_marker(first_name, legacy_prefix)
        if split is None:
            continue
        prefix = split[0]

        candidates = row_binding_candidates(prefix, replacements)
        if len(candidates) != 1:
            if len(candidates) > 1:
                logger.debug("Ambiguous row binding", prefix=prefix, keys=candidates)
                if options.strict:
                    raise AmbiguousRowBinding(f"Row prefix '{prefix}' matches several keys: {', '.join(candidates)}")
            continue
        key = candidates[0]
        value = replacements[key]
        if not isinstance(value, TableValue) or not value.rows:
            continue

        template = capture_row_template(row)
        bound += 1
        first_record, *rest = value.rows
        _fill_template_row(tc_list, markers_by_cell, prefix, first_record, template, legacy_prefix)

        anchor = row
        for record in rest:
            new_row = build_row(record, template)
            anchor.addnext(new_row)
            anchor = new_row
            added += 1

        logger.debug("Expanded template row", key=key, records=len(value.rows))

    return RowExpansion(bound, added)
