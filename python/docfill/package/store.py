"""
Zip-level access to a WordprocessingML package.

Entries are read into memory once; writes go to a new archive that is
published with an atomic rename, so a failed run never leaves a half-written
file at the output path and the template itself is never touched.
"""

import os
import tempfile
import zipfile
from io import BytesIO
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import structlog

from docfill.errors import InputNotFound, PackageOpenFailed, RequiredPartMissing

logger = structlog.get_logger(__name__)


class PackageStore:
    def __init__(self, entries: Dict[str, Tuple[Optional[zipfile.ZipInfo], bytes]]):
        # name -> (original ZipInfo or None for added entries, bytes)
        self._entries = entries
        self._dirty: set = set()

    @classmethod
    def open(cls, path) -> "PackageStore":
        path = Path(path)
        if not path.is_file():
            raise InputNotFound(f"Input file not found: {path}")
        logger.debug("Opening package", path=str(path))
        return cls.from_bytes(path.read_bytes(), source=str(path))

    @classmethod
    def from_bytes(cls, blob: bytes, source: str = "<stream>") -> "PackageStore":
        entries: Dict[str, Tuple[Optional[zipfile.ZipInfo], bytes]] = {}
        try:
            with zipfile.ZipFile(BytesIO(blob), "r") as zf:
                for info in zf.infolist():
                    if info.is_dir():
                        continue
                    entries[info.filename] = (info, zf.read(info))
        except (zipfile.BadZipFile, zipfile.LargeZipFile, OSError) as e:
            raise PackageOpenFailed(f"Unable to open package {source}: {e}") from e
        return cls(entries)

    # --- Entry access ---

    def names(self) -> List[str]:
        return list(self._entries)

    def has(self, name: str) -> bool:
        return name in self._entries

    def read(self, name: str) -> bytes:
        try:
            return self._entries[name][1]
        except KeyError:
            raise RequiredPartMissing(f"Package has no entry {name}") from None

    def replace(self, name: str, data: bytes):
        info = self._entries[name][0] if name in self._entries else None
        self._entries[name] = (info, data)
        self._dirty.add(name)

    def add(self, name: str, data: bytes):
        if name in self._entries:
            raise ValueError(f"Package already contains {name}")
        self._entries[name] = (None, data)
        self._dirty.add(name)

    def add_file(self, name: str, source_path):
        self.add(name, Path(source_path).read_bytes())

    def require(self, *names: str):
        missing = [n for n in names if n not in self._entries]
        if missing:
            raise RequiredPartMissing(f"Package is missing required part(s): {', '.join(missing)}")

    @property
    def changed_entries(self) -> List[str]:
        return [n for n in self._entries if n in self._dirty]

    # --- Output ---

    def _write(self, fileobj):
        with zipfile.ZipFile(fileobj, "w", zipfile.ZIP_DEFLATED) as out_zip:
            for name, (info, data) in self._entries.items():
                if info is None:
                    out_zip.writestr(name, data, compress_type=zipfile.ZIP_DEFLATED)
                    continue
                new_info = zipfile.ZipInfo(name, date_time=info.date_time)
                new_info.compress_type = info.compress_type
                new_info.external_attr = info.external_attr
                out_zip.writestr(new_info, data)

    def to_bytes(self) -> bytes:
        buf = BytesIO()
        self._write(buf)
        return buf.getvalue()

    def save(self, path):
        """Writes the package next to path and renames it into place."""
        path = Path(path)
        directory = path.parent if str(path.parent) else Path(".")
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=directory)
        try:
            with os.fdopen(fd, "wb") as f:
                self._write(f)
            os.replace(tmp_name, path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.remove(tmp_name)
            raise
        logger.info("Package saved", path=str(path), changed=len(self._dirty))
