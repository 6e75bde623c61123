import re
from collections.abc import Mapping, Sequence
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, PositiveInt, field_validator

GROUP_KEY_PATTERN = re.compile(r"^(.+)\(i\)$")
HEX_COLOR_PATTERN = re.compile(r"^[0-9A-F]{6}$")


def _normalize_color(value: Optional[str]) -> Optional[str]:
    """'#ff0000' -> 'FF0000'. Only six-digit hex colors and 'auto' are valid in WordprocessingML."""
    if value is None:
        return None
    value = str(value).strip().lstrip("#").upper()
    if not value:
        return None
    if value == "AUTO":
        return "auto"
    if not HEX_COLOR_PATTERN.match(value):
        raise ValueError(f"Invalid color {value!r}: expected six hex digits such as 'FF0000'")
    return value


def _to_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class ImageSpec(BaseModel):
    """
    An image to embed. Width and height are in device-independent pixels;
    unset dimensions fall back to the fill options (300 x 300).
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    path: str = Field(..., alias="image", description="Filesystem path of the source image.")
    width: Optional[PositiveInt] = None
    height: Optional[PositiveInt] = None

    @property
    def extension(self) -> str:
        filename = self.path.replace("\\", "/").rsplit("/", 1)[-1]
        _, dot, ext = filename.rpartition(".")
        return ext.lower() if dot else ""


class TableCell(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    value: str = ""
    bg_color: Optional[str] = Field(None, alias="bgColor")
    font_color: Optional[str] = Field(None, alias="fontColor")

    @field_validator("value", mode="before")
    @classmethod
    def _coerce_value(cls, v):
        return _to_text(v)

    @field_validator("bg_color", "font_color", mode="before")
    @classmethod
    def _coerce_color(cls, v):
        return _normalize_color(v)

    @classmethod
    def from_raw(cls, raw: Any) -> "TableCell":
        if isinstance(raw, TableCell):
            return raw
        if isinstance(raw, Mapping):
            return cls.model_validate(dict(raw))
        return cls(value=raw)


# --- Replacement variants ---
# Built once from the raw replacement mapping; the engine dispatches on `kind`.


class TextValue(BaseModel):
    kind: Literal["text"] = "text"
    text: str


class ImageValue(BaseModel):
    kind: Literal["image"] = "image"
    image: ImageSpec


class ImageGroupValue(BaseModel):
    kind: Literal["image_group"] = "image_group"
    images: Dict[str, ImageSpec]


class TableValue(BaseModel):
    kind: Literal["table"] = "table"
    rows: List[List[TableCell]]


ReplacementValue = Union[TextValue, ImageValue, ImageGroupValue, TableValue]
ReplacementTable = Dict[str, ReplacementValue]


def _is_sequence(value: Any) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes))


def _is_image_mapping(value: Any) -> bool:
    return isinstance(value, Mapping) and "image" in value


def to_replacement_value(key: str, raw: Any) -> ReplacementValue:
    """
    Tags one raw replacement value by its shape.
    Raises ValueError for mappings that are neither an image nor an image group.
    """
    if isinstance(raw, (TextValue, ImageValue, ImageGroupValue, TableValue)):
        return raw

    if GROUP_KEY_PATTERN.match(key) and isinstance(raw, Mapping) and not _is_image_mapping(raw):
        images = {str(k): ImageSpec.model_validate(dict(v)) for k, v in raw.items() if _is_image_mapping(v)}
        return ImageGroupValue(images=images)

    # A list of image mappings is a group keyed by 1-based position
    if GROUP_KEY_PATTERN.match(key) and _is_sequence(raw) and raw and all(_is_image_mapping(v) for v in raw):
        images = {str(i): ImageSpec.model_validate(dict(v)) for i, v in enumerate(raw, start=1)}
        return ImageGroupValue(images=images)

    if _is_image_mapping(raw):
        return ImageValue(image=ImageSpec.model_validate(dict(raw)))

    if isinstance(raw, Mapping):
        raise ValueError(f"Unsupported replacement value for '{key}': mapping without an 'image' key")

    if _is_sequence(raw) and (not raw or _is_sequence(raw[0])):
        rows = [[TableCell.from_raw(cell) for cell in row] for row in raw if _is_sequence(row)]
        return TableValue(rows=rows)

    return TextValue(text=_to_text(raw))


def build_replacements(raw: Mapping[str, Any]) -> ReplacementTable:
    """
    Converts a raw name -> value mapping (as loaded from JSON) into a
    ReplacementTable of tagged variants. Keys are whitespace-stripped.
    """
    table: ReplacementTable = {}
    for key, value in raw.items():
        name = re.sub(r"\s+", "", str(key))
        table[name] = to_replacement_value(name, value)
    return table
