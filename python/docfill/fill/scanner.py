"""
Marker scanner.

Finds `%*name*%` markers in the texts of one paragraph's w:t nodes. A marker
may start in one node and end in a later one; it never crosses a paragraph.
Offsets refer to the texts passed in, so callers that mutate nodes must apply
matches last-to-first.
"""

import re
from typing import Iterator, List, NamedTuple, Sequence, Union

from docfill.config import MARKER_END, MARKER_START

_WS = re.compile(r"\s+")
_MARKER_RE = re.compile(re.escape(MARKER_START) + r"([^*]+)" + re.escape(MARKER_END))


class SameNode(NamedTuple):
    node_index: int
    start_offset: int  # position of %*
    end_offset: int  # position just past *%
    raw_name: str

    @property
    def name(self) -> str:
        return normalize_name(self.raw_name)


class SpanningNodes(NamedTuple):
    start_index: int
    start_offset: int
    end_index: int
    end_offset: int
    raw_name: str

    @property
    def name(self) -> str:
        return normalize_name(self.raw_name)


class Unterminated(NamedTuple):
    node_index: int
    start_offset: int


Match = Union[SameNode, SpanningNodes]
ScanResult = Union[SameNode, SpanningNodes, Unterminated]


def normalize_name(raw: str) -> str:
    """Removes all whitespace, so names wrapped across lines still resolve."""
    return _WS.sub("", raw)


def scan_markers(texts: Sequence[str]) -> Iterator[ScanResult]:
    """
    Lazily yields the markers found in an ordered list of node texts.

    After a match, scanning resumes right after its end token (in the same node
    for SameNode, in the end node for SpanningNodes). A start token with no end
    token in the rest of the paragraph yields Unterminated and scanning resumes
    at the next node.
    """
    count = len(texts)
    i = 0
    pos = 0
    while i < count:
        text = texts[i] or ""
        start = text.find(MARKER_START, pos)
        if start == -1:
            i += 1
            pos = 0
            continue

        body_start = start + len(MARKER_START)
        end = text.find(MARKER_END, body_start)
        if end != -1:
            yield SameNode(i, start, end + len(MARKER_END), text[body_start:end])
            pos = end + len(MARKER_END)
            continue

        parts: List[str] = [text[body_start:]]
        for j in range(i + 1, count):
            candidate = texts[j] or ""
            end = candidate.find(MARKER_END)
            if end == -1:
                parts.append(candidate)
                continue
            parts.append(candidate[:end])
            yield SpanningNodes(i, start, j, end + len(MARKER_END), "".join(parts))
            i = j
            pos = end + len(MARKER_END)
            break
        else:
            yield Unterminated(i, start)
            i += 1
            pos = 0


def find_markers(text: str) -> List[str]:
    """Normalized names of every complete marker in a plain string."""
    return [normalize_name(m.group(1)) for m in _MARKER_RE.finditer(text)]
