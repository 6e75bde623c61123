from importlib.metadata import PackageNotFoundError, version

from docfill.api import fill_package, fill_stream, fill_template, list_placeholders
from docfill.config import FillOptions
from docfill.errors import DocfillError
from docfill.fill.engine import FillReport
from docfill.models import build_replacements

try:
    __version__ = version("docfill")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"

__all__ = [
    "fill_template",
    "fill_stream",
    "fill_package",
    "list_placeholders",
    "build_replacements",
    "FillOptions",
    "FillReport",
    "DocfillError",
    "__version__",
]
