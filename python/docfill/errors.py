"""
Exception hierarchy for docfill.

Fatal errors abort a fill run before anything is published at the output path.
Placeholder errors are only raised in strict mode; in lenient mode the same
conditions are tolerated and the marker text stays visible in the document.
"""


class DocfillError(Exception):
    """Base exception for all docfill errors."""


class InputNotFound(DocfillError):
    """The template (or another input file) does not exist."""


class PackageOpenFailed(DocfillError):
    """The template is not a readable zip package."""


class RequiredPartMissing(DocfillError):
    """A part every WordprocessingML package must contain is absent."""


class XmlParseFailed(DocfillError):
    """A package part could not be parsed as XML."""


class FragmentSynthesisFailed(DocfillError):
    """A generated XML fragment (drawing, table, row) could not be built."""


class MediaFileMissing(DocfillError):
    """An image source file is absent when media is flushed into the package."""


class PlaceholderError(DocfillError):
    """A placeholder could not be resolved (strict mode only)."""


class UnterminatedMarker(PlaceholderError):
    """A start token has no matching end token in the same paragraph."""


class MissingReplacement(PlaceholderError):
    """A marker names a key that is absent from the replacement table."""


class AmbiguousRowBinding(PlaceholderError):
    """A row template prefix binds to zero or several replacement keys."""
