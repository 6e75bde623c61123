"""
Configuration for docfill.

Module constants describe the package conventions the engine writes against;
`FillOptions` carries the per-run switches the caller may change.
"""

from typing import Optional

from docx.opc.constants import CONTENT_TYPE as CT
from docx.opc.constants import RELATIONSHIP_TYPE as RT
from pydantic import BaseModel, Field, PositiveInt

# === Marker syntax ===
MARKER_START = "%*"
MARKER_END = "*%"

# === Units ===
EMU_PER_PIXEL = 9525  # 1 px at 96 DPI in English Metric Units

# === Package layout ===
CONTENT_TYPES_PART = "[Content_Types].xml"
MAIN_DOCUMENT_PART = "word/document.xml"
MAIN_DOCUMENT_RELS = "word/_rels/document.xml.rels"
REQUIRED_PARTS = (CONTENT_TYPES_PART, MAIN_DOCUMENT_PART, MAIN_DOCUMENT_RELS)
HEADER_FOOTER_PATTERN = r"^word/(header|footer)(\d+)\.xml$"
MEDIA_DIR = "media"

IMAGE_REL_TYPE = RT.IMAGE
IMAGE_REL_ID_PREFIX = "rIdImg"

IMAGE_CONTENT_TYPES = {
    "jpg": CT.JPEG,
    "jpeg": CT.JPEG,
    "png": CT.PNG,
    "gif": CT.GIF,
    "bmp": CT.BMP,
    "tif": CT.TIFF,
    "tiff": CT.TIFF,
}
FALLBACK_CONTENT_TYPE = "application/octet-stream"

# === Table preset ===
TABLE_STYLE_ID = "TableGrid"
TABLE_PRESET_WIDTH = 5000
TABLE_PRESET_COLUMN_WIDTH = 1250
TABLE_BORDER_SIZE = 12
TABLE_BORDER_COLOR = "000000"
TABLE_HEADER_FILL = "0070C0"
TABLE_HEADER_FONT_COLOR = "FFFFFF"
TABLE_HIGHLIGHT_FONT_COLOR = "00B050"
TABLE_HEADER_FONT_SIZE = 24  # half-points
TABLE_BODY_FONT_SIZE = 22


class FillOptions(BaseModel):
    """Per-run switches for a fill."""

    strict: bool = Field(
        False,
        description=(
            "Raise on unterminated markers, missing replacement keys and ambiguous row bindings "
            "instead of leaving the marker text visible."
        ),
    )
    styled_tables: bool = Field(True, description="Use the bordered/shaded preset for synthesized tables.")
    legacy_numeric_prefix: Optional[str] = Field(
        "tableA",
        description="Row prefix a purely numeric marker (e.g. %*1*%) binds to. None disables the affordance.",
    )
    default_image_width: PositiveInt = 300
    default_image_height: PositiveInt = 300


