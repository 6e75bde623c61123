"""
Image injection: turns an Image or ImageGroup replacement into inline
drawings backed by new package relationships.
"""

from copy import deepcopy
from typing import List

import structlog
from docx.oxml.ns import qn

from docfill.fill.scanner import Match, SameNode
from docfill.models import ImageSpec
from docfill.package.context import ImageRegistration, PackageContext
from docfill.utils.docx import build_element, create_element, get_node_text, replace_element, set_text_content

logger = structlog.get_logger(__name__)

PICTURE_URI = "http://schemas.openxmlformats.org/drawingml/2006/picture"


def build_drawing_run(reg: ImageRegistration):
    """A w:r holding an inline picture that embeds reg.rel_id at the registered size."""
    extent = {"cx": reg.width_emu, "cy": reg.height_emu}
    pic = build_element(
        "pic:pic",
        children=[
            build_element(
                "pic:nvPicPr",
                children=[
                    build_element("pic:cNvPr", {"id": 0, "name": reg.media_name}),
                    build_element("pic:cNvPicPr"),
                ],
            ),
            build_element(
                "pic:blipFill",
                children=[
                    build_element("a:blip", {"r:embed": reg.rel_id}),
                    build_element("a:stretch", children=[build_element("a:fillRect")]),
                ],
            ),
            build_element(
                "pic:spPr",
                children=[
                    build_element(
                        "a:xfrm",
                        children=[build_element("a:off", {"x": 0, "y": 0}), build_element("a:ext", extent)],
                    ),
                    build_element("a:prstGeom", {"prst": "rect"}, [build_element("a:avLst")]),
                ],
            ),
        ],
    )
    inline = build_element(
        "wp:inline",
        {"distT": 0, "distB": 0, "distL": 0, "distR": 0},
        [
            build_element("wp:extent", extent),
            build_element("wp:docPr", {"id": reg.drawing_id, "name": reg.media_name}),
            build_element(
                "a:graphic",
                children=[build_element("a:graphicData", {"uri": PICTURE_URI}, [pic])],
            ),
        ],
    )
    return build_element("w:r", children=[build_element("w:drawing", children=[inline])])


def inject_image(nodes: List, match: Match, image: ImageSpec, part_name: str, context: PackageContext) -> set:
    """
    Replaces the run holding the marker with a drawing run.

    Same node: the node's whole run is replaced. Spanning: the start node's run
    is replaced, runs of interior nodes are deleted and the end node keeps only
    its trailing text. Returns the runs that left the tree.
    """
    reg = context.register_image(part_name, image)
    drawing = build_drawing_run(reg)

    if isinstance(match, SameNode):
        start_run = nodes[match.node_index].getparent()
        replace_element(start_run, [drawing])
        return {start_run}

    start_run = nodes[match.start_index].getparent()
    end_t = nodes[match.end_index]
    end_run = end_t.getparent()
    removed = {start_run}
    replace_element(start_run, [drawing])
    for t in nodes[match.start_index + 1 : match.end_index]:
        run = t.getparent()
        if run is end_run:
            set_text_content(t, "")
            continue
        parent = run.getparent()
        if parent is not None:
            parent.remove(run)
        removed.add(run)
    if end_run is not start_run:
        set_text_content(end_t, get_node_text(end_t)[match.end_offset :])
    return removed


def build_image_group_paragraphs(
    paragraph, images: List[ImageSpec], base_name: str, part_name: str, context: PackageContext
) -> List:
    """One new paragraph per image, each inheriting the original paragraph properties."""
    pPr = paragraph.find(qn("w:pPr"))
    paragraphs = []
    for image in images:
        reg = context.register_image(part_name, image, group_base=base_name)
        p = create_element("w:p")
        if pPr is not None:
            p.append(deepcopy(pPr))
        p.append(build_drawing_run(reg))
        paragraphs.append(p)
    logger.debug("Built image group", base=base_name, count=len(paragraphs), part=part_name)
    return paragraphs
