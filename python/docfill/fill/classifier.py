"""
Replacement classifier: decides what a normalized marker name turns into.
"""

import re
from typing import List, NamedTuple, Optional, Tuple, Union

from docfill.models import (
    GROUP_KEY_PATTERN,
    ImageGroupValue,
    ImageSpec,
    ImageValue,
    ReplacementTable,
    TableCell,
    TableValue,
    TextValue,
)

_COLUMN_MARKER = re.compile(r"^(.+?)(\d+)$")
_NUMERIC_MARKER = re.compile(r"^\d+$")


class Skip(NamedTuple):
    name: str


class Text(NamedTuple):
    value: str


class Image(NamedTuple):
    value: ImageSpec


class ImageGroup(NamedTuple):
    base_name: str
    values: List[ImageSpec]


class FullTable(NamedTuple):
    rows: List[List[TableCell]]


class RowTemplateBinding(NamedTuple):
    key: str
    column: int  # 1-based


Classification = Union[Skip, Text, Image, ImageGroup, FullTable, RowTemplateBinding]


def split_column_marker(name: str, legacy_prefix: Optional[str] = "tableA") -> Optional[Tuple[str, int]]:
    """
    Splits a row marker into (prefix, 1-based column): 'tableC3' -> ('tableC', 3).
    A purely numeric marker binds to legacy_prefix ('1' -> ('tableA', 1)) unless
    the affordance is disabled. Returns None for names without a trailing integer.
    """
    if _NUMERIC_MARKER.match(name):
        if legacy_prefix is None:
            return None
        return legacy_prefix, int(name)
    m = _COLUMN_MARKER.match(name)
    if not m:
        return None
    return m.group(1), int(m.group(2))


def row_binding_candidates(prefix: str, table: ReplacementTable) -> List[str]:
    pattern = re.compile(r"^" + re.escape(prefix) + r"\(\w+\)$")
    return [key for key in table if pattern.match(key)]


def resolve_row_binding(prefix: str, table: ReplacementTable) -> Optional[str]:
    """The single `prefix(token)` key bound to a row prefix, or None if absent or ambiguous."""
    candidates = row_binding_candidates(prefix, table)
    if len(candidates) != 1:
        return None
    return candidates[0]


def classify(name: str, table: ReplacementTable, legacy_prefix: Optional[str] = "tableA") -> Classification:
    value = table.get(name)

    group_match = GROUP_KEY_PATTERN.match(name)
    if group_match and isinstance(value, ImageGroupValue):
        return ImageGroup(group_match.group(1), list(value.images.values()))

    if isinstance(value, ImageValue):
        return Image(value.image)

    if isinstance(value, TableValue):
        return FullTable(value.rows)

    if isinstance(value, TextValue):
        return Text(value.text)

    if value is None:
        split = split_column_marker(name, legacy_prefix)
        if split is not None:
            prefix, column = split
            key = resolve_row_binding(prefix, table)
            if key is not None and isinstance(table[key], TableValue):
                return RowTemplateBinding(key, column)

    return Skip(name)
