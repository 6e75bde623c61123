"""
Package mutation context.

Owns everything a fill run changes outside the document parts themselves:
relationship parts, [Content_Types].xml, queued media files and the counters
that keep relationship ids, media names and drawing ids unique across all
parts of the package. Components receive the context explicitly.
"""

import mimetypes
import os
import posixpath
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set

import structlog
from docx.opc.constants import NAMESPACE
from docx.oxml.ns import qn
from lxml import etree

from docfill.config import (
    CONTENT_TYPES_PART,
    EMU_PER_PIXEL,
    FALLBACK_CONTENT_TYPE,
    IMAGE_CONTENT_TYPES,
    IMAGE_REL_ID_PREFIX,
    IMAGE_REL_TYPE,
    MEDIA_DIR,
    FillOptions,
)
from docfill.errors import MediaFileMissing
from docfill.models import ImageSpec
from docfill.package.store import PackageStore
from docfill.utils.docx import parse_part, serialize_part

logger = structlog.get_logger(__name__)

REL_NS = NAMESPACE.OPC_RELATIONSHIPS
CT_NS = NAMESPACE.OPC_CONTENT_TYPES
RELS_CONTENT_TYPE = "application/vnd.openxmlformats-package.relationships+xml"


def rels_part_name(part_name: str) -> str:
    """'word/header1.xml' -> 'word/_rels/header1.xml.rels'"""
    directory, filename = posixpath.split(part_name)
    return posixpath.join(directory, "_rels", f"{filename}.rels")


def content_type_for(extension: str) -> str:
    ext = extension.lower()
    if ext in IMAGE_CONTENT_TYPES:
        return IMAGE_CONTENT_TYPES[ext]
    guessed, _ = mimetypes.guess_type(f"file.{ext}")
    return guessed or FALLBACK_CONTENT_TYPE


class RelationshipRegistry:
    """The relationship set of one document part (a .rels part)."""

    def __init__(self, part_name: str, root=None):
        self.part_name = part_name
        self.created = root is None
        if root is None:
            root = etree.Element(f"{{{REL_NS}}}Relationships", nsmap={None: REL_NS})
        self.root = root
        self.dirty = False

    def ids(self) -> Set[str]:
        return {rel.get("Id") for rel in self.root.iter(f"{{{REL_NS}}}Relationship")}

    def targets(self) -> Dict[str, str]:
        return {rel.get("Id"): rel.get("Target") for rel in self.root.iter(f"{{{REL_NS}}}Relationship")}

    def add(self, rel_id: str, rel_type: str, target: str):
        if rel_id in self.ids():
            raise ValueError(f"Relationship id {rel_id} already exists in {self.part_name}")
        etree.SubElement(self.root, f"{{{REL_NS}}}Relationship", Id=rel_id, Type=rel_type, Target=target)
        self.dirty = True

    def to_xml(self) -> bytes:
        return serialize_part(self.root)


class ContentTypeRegistry:
    """[Content_Types].xml: extension defaults and part overrides."""

    def __init__(self, root):
        self.root = root
        self.dirty = False

    def defaults(self) -> Dict[str, str]:
        return {
            (d.get("Extension") or "").lower(): d.get("ContentType")
            for d in self.root.iter(f"{{{CT_NS}}}Default")
        }

    def has_default(self, extension: str) -> bool:
        return extension.lower() in self.defaults()

    def add_default(self, extension: str, content_type: str) -> bool:
        if self.has_default(extension):
            return False
        etree.SubElement(self.root, f"{{{CT_NS}}}Default", Extension=extension.lower(), ContentType=content_type)
        self.dirty = True
        return True

    def to_xml(self) -> bytes:
        return serialize_part(self.root)


@dataclass
class QueuedMedia:
    source: str
    entry_name: str


@dataclass
class ImageRegistration:
    rel_id: str
    media_name: str
    drawing_id: int
    width_emu: int
    height_emu: int


@dataclass
class ContextStats:
    images: int = 0
    relationships: int = 0
    content_types: List[str] = field(default_factory=list)


class PackageContext:
    def __init__(self, store: PackageStore, options: Optional[FillOptions] = None):
        self.store = store
        self.options = options or FillOptions()
        self.content_types = ContentTypeRegistry(parse_part(store.read(CONTENT_TYPES_PART), CONTENT_TYPES_PART))
        self._relationships: Dict[str, RelationshipRegistry] = {}
        self._media: List[QueuedMedia] = []
        self._extensions: List[str] = []
        self._rel_counter = 0
        self._group_counters: Dict[str, int] = {}
        self._image_counter = 0
        self._max_drawing_id = 0
        self.stats = ContextStats()

    # --- Registries ---

    def relationships_for(self, part_name: str) -> RelationshipRegistry:
        name = rels_part_name(part_name)
        registry = self._relationships.get(name)
        if registry is None:
            root = parse_part(self.store.read(name), name) if self.store.has(name) else None
            registry = RelationshipRegistry(name, root)
            self._relationships[name] = registry
        return registry

    def _next_relationship_id(self, registry: RelationshipRegistry) -> str:
        taken = registry.ids()
        while True:
            self._rel_counter += 1
            rel_id = f"{IMAGE_REL_ID_PREFIX}{self._rel_counter}"
            if rel_id not in taken:
                return rel_id

    def _media_taken(self, entry_name: str) -> bool:
        return self.store.has(entry_name) or any(m.entry_name == entry_name for m in self._media)

    def _next_media_name(self, media_dir: str, extension: str, group_base: Optional[str]) -> str:
        while True:
            if group_base is None:
                self._image_counter += 1
                name = f"image{self._image_counter}.{extension}"
            else:
                k = self._group_counters.get(group_base, 0) + 1
                self._group_counters[group_base] = k
                name = f"{group_base}-{k}.{extension}"
            if not self._media_taken(posixpath.join(media_dir, name)):
                return name

    def observe_drawing_ids(self, root):
        for doc_pr in root.iter(qn("wp:docPr")):
            try:
                self._max_drawing_id = max(self._max_drawing_id, int(doc_pr.get("id")))
            except (TypeError, ValueError):
                pass

    def next_drawing_id(self) -> int:
        self._max_drawing_id += 1
        return self._max_drawing_id

    # --- Images ---

    def register_image(self, part_name: str, image: ImageSpec, group_base: Optional[str] = None) -> ImageRegistration:
        """
        Mints a relationship for image in the relationship set of part_name,
        queues the media file and records its extension for content types.
        """
        extension = image.extension or "bin"
        registry = self.relationships_for(part_name)
        media_dir = posixpath.join(posixpath.dirname(part_name), MEDIA_DIR)

        rel_id = self._next_relationship_id(registry)
        media_name = self._next_media_name(media_dir, extension, group_base)
        registry.add(rel_id, IMAGE_REL_TYPE, f"{MEDIA_DIR}/{media_name}")
        self._media.append(QueuedMedia(image.path, posixpath.join(media_dir, media_name)))
        if extension not in self._extensions:
            self._extensions.append(extension)

        width = image.width or self.options.default_image_width
        height = image.height or self.options.default_image_height
        self.stats.images += 1
        self.stats.relationships += 1
        logger.debug("Registered image", part=part_name, rel_id=rel_id, media=media_name, source=image.path)
        return ImageRegistration(
            rel_id=rel_id,
            media_name=media_name,
            drawing_id=self.next_drawing_id(),
            width_emu=width * EMU_PER_PIXEL,
            height_emu=height * EMU_PER_PIXEL,
        )

    # --- Flush ---

    def flush(self):
        """
        Writes relationships, content types and media into the store.
        Every media source is checked before anything is written.
        """
        missing = [m.source for m in self._media if not os.path.isfile(m.source)]
        if missing:
            raise MediaFileMissing(f"Image file not found: {missing[0]}")

        for extension in self._extensions:
            if self.content_types.add_default(extension, content_type_for(extension)):
                self.stats.content_types.append(extension)

        for registry in self._relationships.values():
            if not registry.dirty:
                continue
            if registry.created:
                self.content_types.add_default("rels", RELS_CONTENT_TYPE)
                self.store.add(registry.part_name, registry.to_xml())
            else:
                self.store.replace(registry.part_name, registry.to_xml())

        if self.content_types.dirty:
            self.store.replace(CONTENT_TYPES_PART, self.content_types.to_xml())

        for media in self._media:
            self.store.add_file(media.entry_name, media.source)

        logger.info(
            "Flushed package changes",
            images=self.stats.images,
            content_types=self.stats.content_types,
        )
