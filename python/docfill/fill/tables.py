"""
Table synthesis for FullTable replacements.
"""

from typing import List, Optional

from docfill.config import (
    TABLE_BODY_FONT_SIZE,
    TABLE_BORDER_COLOR,
    TABLE_BORDER_SIZE,
    TABLE_HEADER_FILL,
    TABLE_HEADER_FONT_COLOR,
    TABLE_HEADER_FONT_SIZE,
    TABLE_HIGHLIGHT_FONT_COLOR,
    TABLE_PRESET_COLUMN_WIDTH,
    TABLE_PRESET_WIDTH,
    TABLE_STYLE_ID,
)
from docfill.models import TableCell
from docfill.utils.docx import build_element, create_element, set_text_content

BORDER_EDGES = ("top", "left", "bottom", "right", "insideH", "insideV")


def _table_properties(styled: bool):
    if not styled:
        return build_element(
            "w:tblPr",
            children=[
                build_element("w:tblStyle", {"w:val": TABLE_STYLE_ID}),
                build_element("w:tblW", {"w:w": 0, "w:type": "auto"}),
            ],
        )
    border = {"w:val": "single", "w:color": TABLE_BORDER_COLOR, "w:sz": TABLE_BORDER_SIZE}
    return build_element(
        "w:tblPr",
        children=[
            build_element("w:tblStyle", {"w:val": TABLE_STYLE_ID}),
            build_element("w:tblW", {"w:w": TABLE_PRESET_WIDTH, "w:type": "dxa"}),
            build_element("w:tblBorders", children=[build_element(f"w:{edge}", border) for edge in BORDER_EDGES]),
        ],
    )


def _cell_colors(cell: TableCell, row_index: int, col_index: int, col_count: int, styled: bool):
    bg = cell.bg_color
    font = cell.font_color
    if styled:
        if row_index == 0:
            bg = bg or TABLE_HEADER_FILL
            font = font or TABLE_HEADER_FONT_COLOR
        elif col_index == col_count - 1:
            font = font or TABLE_HIGHLIGHT_FONT_COLOR
    return bg, font


def _build_cell(cell: TableCell, row_index: int, col_index: int, col_count: int, styled: bool):
    bg, font = _cell_colors(cell, row_index, col_index, col_count, styled)
    width = TABLE_PRESET_COLUMN_WIDTH if styled else 0

    tcPr = build_element(
        "w:tcPr",
        children=[
            build_element("w:tcW", {"w:w": width, "w:type": "dxa"}),
            build_element("w:shd", {"w:val": "clear", "w:color": "auto", "w:fill": bg}) if bg else None,
        ],
    )

    rPr = None
    if font or styled:
        size = TABLE_HEADER_FONT_SIZE if (styled and row_index == 0) else TABLE_BODY_FONT_SIZE
        rPr = build_element(
            "w:rPr",
            children=[
                build_element("w:color", {"w:val": font}) if font else None,
                build_element("w:sz", {"w:val": size}),
            ],
        )

    t = create_element("w:t")
    set_text_content(t, cell.value)
    paragraph = build_element(
        "w:p",
        children=[
            build_element("w:pPr", children=[build_element("w:jc", {"w:val": "center" if styled else "left"})]),
            build_element("w:r", children=[rPr, t]),
        ],
    )
    return build_element("w:tc", children=[tcPr, paragraph])


def build_table(rows: List[List[TableCell]], styled: bool = True) -> Optional[object]:
    """
    Builds a w:tbl from rows of cells. The grid has as many columns as the
    first row. Returns None for empty data.
    """
    if not rows:
        return None

    col_count = len(rows[0])
    grid_width = TABLE_PRESET_COLUMN_WIDTH if styled else 0
    grid = build_element("w:tblGrid", children=[build_element("w:gridCol", {"w:w": grid_width}) for _ in range(col_count)])

    table = build_element("w:tbl", children=[_table_properties(styled), grid])
    for row_index, row in enumerate(rows):
        table.append(
            build_element(
                "w:tr",
                children=[_build_cell(cell, row_index, i, col_count, styled) for i, cell in enumerate(row)],
            )
        )
    return table
