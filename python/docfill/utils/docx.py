"""
Low-level utilities for reading and building WordprocessingML XML.
All elements are created through python-docx's oxml factory so parsed parts
and synthesized fragments share the same element classes.
"""

from copy import deepcopy
from typing import Dict, Iterable, List, Optional

from docx.oxml import OxmlElement, parse_xml
from docx.oxml.ns import nsmap, qn
from lxml import etree

from docfill.errors import FragmentSynthesisFailed, XmlParseFailed

# Schema order of the children that follow w:shd inside w:tcPr.
SHD_SUCCESSORS = (
    "w:noWrap",
    "w:tcMar",
    "w:textDirection",
    "w:tcFitText",
    "w:vAlign",
    "w:hideMark",
    "w:headers",
    "w:cellIns",
    "w:cellDel",
    "w:cellMerge",
    "w:tcPrChange",
)

# Schema order of the children that follow w:color inside w:rPr.
COLOR_SUCCESSORS = (
    "w:spacing",
    "w:w",
    "w:kern",
    "w:position",
    "w:sz",
    "w:szCs",
    "w:highlight",
    "w:u",
    "w:effect",
    "w:bdr",
    "w:shd",
    "w:fitText",
    "w:vertAlign",
    "w:rtl",
    "w:cs",
    "w:em",
    "w:lang",
    "w:eastAsianLayout",
    "w:specVanish",
    "w:oMath",
    "w:rPrChange",
)


def create_element(name: str):
    return OxmlElement(name)


def create_attribute(element, name: str, value: str):
    element.set(qn(name) if ":" in name else name, value)


def build_element(name: str, attrs: Optional[Dict[str, str]] = None, children: Iterable = ()):
    """
    Builds an element with prefixed attribute names and child elements.
    Children that are None are skipped, so optional parts can be inlined.
    """
    # Declare every prefix used by the tag or its attributes on the element
    # itself, so lxml never invents ns0-style prefixes for r:embed and friends.
    prefixes = {name.split(":")[0]}
    prefixes.update(a.split(":")[0] for a in (attrs or {}) if ":" in a)
    prefixes.discard("xml")
    element = OxmlElement(name, nsdecls={p: nsmap[p] for p in prefixes})
    for attr_name, value in (attrs or {}).items():
        create_attribute(element, attr_name, str(value))
    for child in children:
        if child is not None:
            element.append(child)
    return element


def set_text_content(element, text: str):
    try:
        element.text = text
    except ValueError as e:
        # lxml rejects control characters that XML 1.0 cannot carry
        raise FragmentSynthesisFailed(f"Text cannot be stored in XML: {text!r}") from e
    if text.strip() != text:
        create_attribute(element, "xml:space", "preserve")
    else:
        element.attrib.pop(qn("xml:space"), None)


def build_text_run(text: str, rPr=None):
    """Returns a new w:r carrying a copy of rPr (if any) and one w:t."""
    run = create_element("w:r")
    if rPr is not None:
        run.append(deepcopy(rPr))
    t = create_element("w:t")
    set_text_content(t, text)
    run.append(t)
    return run


# --- Navigation ---


def owning_paragraph(element):
    """Nearest w:p ancestor of element (text boxes nest paragraphs inside runs)."""
    parent = element.getparent()
    while parent is not None and parent.tag != qn("w:p"):
        parent = parent.getparent()
    return parent


def get_paragraph_runs(paragraph) -> List:
    """
    Runs that belong to this paragraph in document order, including those
    wrapped in hyperlinks, insertions or content controls, but excluding runs
    of paragraphs nested in text boxes.
    """
    return [r for r in paragraph.iter(qn("w:r")) if owning_paragraph(r) is paragraph]


def get_paragraph_text_nodes(paragraph) -> List:
    """
    Every w:t directly inside a run of this paragraph, in document order.
    A run may hold several (text split by w:br or w:tab); each is scanned.
    """
    return [
        t
        for t in paragraph.iter(qn("w:t"))
        if t.getparent().tag == qn("w:r") and owning_paragraph(t) is paragraph
    ]


def get_node_text(t) -> str:
    return t.text or ""


def get_paragraph_text(paragraph) -> str:
    return "".join(get_node_text(t) for t in get_paragraph_text_nodes(paragraph))


def first_child(element, name: str):
    return element.find(qn(name)) if element is not None else None


def insert_in_order(parent, child, successors: Iterable[str]):
    """Inserts child before the first existing successor tag, else appends."""
    successor_tags = {qn(s) for s in successors}
    for existing in parent:
        if existing.tag in successor_tags:
            existing.addprevious(child)
            return child
    parent.append(child)
    return child


def get_or_add_first(parent, name: str):
    """Returns the named child, creating it as the first child when absent (w:tcPr, w:rPr, w:pPr)."""
    child = parent.find(qn(name))
    if child is None:
        child = create_element(name)
        parent.insert(0, child)
    return child


def set_cell_shading(tcPr, fill: str):
    shd = tcPr.find(qn("w:shd"))
    if shd is not None:
        create_attribute(shd, "w:fill", fill)
        return shd
    shd = build_element("w:shd", {"w:val": "clear", "w:color": "auto", "w:fill": fill})
    return insert_in_order(tcPr, shd, SHD_SUCCESSORS)


def set_run_color(rPr, color: str):
    color_elm = rPr.find(qn("w:color"))
    if color_elm is not None:
        create_attribute(color_elm, "w:val", color)
        return color_elm
    color_elm = build_element("w:color", {"w:val": color})
    return insert_in_order(rPr, color_elm, COLOR_SUCCESSORS)


def replace_element(old, new_elements: List):
    """Replaces old with new_elements (in order) at the same position."""
    parent = old.getparent()
    if parent is None:
        return
    for new in new_elements:
        old.addprevious(new)
    parent.remove(old)


# --- Parts ---


def parse_part(blob: bytes, part_name: str):
    try:
        return parse_xml(blob)
    except etree.XMLSyntaxError as e:
        raise XmlParseFailed(f"Failed to parse {part_name}: {e}") from e


def serialize_part(root) -> bytes:
    return etree.tostring(root, xml_declaration=True, encoding="UTF-8", standalone=True)
