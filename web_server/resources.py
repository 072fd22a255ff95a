"""Immutable resource table built from the frontend dist directory.

The table is produced once by the packager, written to a zip archive that
ships inside the ``web_server`` package, and loaded once at server start.
Nothing in it changes for the lifetime of the process.
"""

import hashlib
import mimetypes
import os
import tempfile
import zipfile
from collections.abc import Mapping
from importlib.resources import files
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterator, Optional

from pydantic import BaseModel, ConfigDict

INDEX_DOCUMENT = "index.html"
DEFAULT_CONTENT_TYPE = "application/octet-stream"

# Location of the generated archive inside the installed package
ARCHIVE_NAME = "generated/resources.zip"
ARCHIVE_PATH = Path(__file__).resolve().parent / ARCHIVE_NAME


def guess_content_type(path: str) -> str:
    content_type, _ = mimetypes.guess_type(path, strict=False)
    return content_type or DEFAULT_CONTENT_TYPE


def normalize_path(path: str) -> str:
    """Forward-slash form without a leading separator."""
    return path.replace("\\", "/").lstrip("/")


# ── Entries ──────────────────────────────────────────────────────────────────

class ResourceEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    path: str
    content: bytes
    content_type: str
    etag: str

    @classmethod
    def create(cls, path: str, content: bytes) -> "ResourceEntry":
        path = normalize_path(path)
        digest = hashlib.sha256(content).hexdigest()[:32]
        return cls(
            path=path,
            content=content,
            content_type=guess_content_type(path),
            etag=f'"{digest}"',
        )


# ── Table ────────────────────────────────────────────────────────────────────

class ResourceTable(Mapping):
    """Read-only mapping of request path to :class:`ResourceEntry`."""

    def __init__(self, entries: Dict[str, bytes]):
        built = {}
        for path, content in entries.items():
            entry = ResourceEntry.create(path, content)
            if entry.path in built:
                raise ValueError(f"duplicate resource path: {entry.path}")
            built[entry.path] = entry
        self._entries = MappingProxyType(built)

    def __getitem__(self, path: str) -> ResourceEntry:
        return self._entries[path]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"<ResourceTable {len(self)} entries>"

    def resolve(self, request_path: str) -> Optional[ResourceEntry]:
        """Exact, case-sensitive lookup.

        The empty path and directory paths (trailing ``/``) resolve to their
        ``index.html``. Anything else either matches an entry or returns None.
        """
        path = "" if request_path == "/" else request_path
        if path == "" or path.endswith("/"):
            path = f"{path}{INDEX_DOCUMENT}"
        return self._entries.get(path)

    # ── Construction ─────────────────────────────────────────────────────────

    @classmethod
    def from_directory(cls, directory) -> "ResourceTable":
        """Embed every regular file below ``directory``."""
        root = Path(directory)
        if not root.is_dir():
            raise FileNotFoundError(f"resource directory not found: {root}")
        entries = {}
        for file_path in sorted(root.rglob("*")):
            if file_path.is_file():
                entries[file_path.relative_to(root).as_posix()] = file_path.read_bytes()
        return cls(entries)

    @classmethod
    def load(cls, archive) -> "ResourceTable":
        """Read a table previously written by :meth:`write_archive`."""
        with zipfile.ZipFile(archive) as zf:
            entries = {
                info.filename: zf.read(info)
                for info in zf.infolist()
                if not info.is_dir()
            }
        return cls(entries)

    @classmethod
    def load_embedded(cls) -> "ResourceTable":
        """Load the archive bundled into the ``web_server`` package."""
        archive = files("web_server").joinpath(ARCHIVE_NAME)
        if not archive.is_file():
            raise FileNotFoundError(
                "Embedded frontend assets not found. "
                "Run 'web-server-package' before installing or starting the server."
            )
        with archive.open("rb") as fh:
            return cls.load(fh)

    # ── Serialization ────────────────────────────────────────────────────────

    def write_archive(self, dest) -> Path:
        """Atomically write the table to ``dest`` as a zip archive."""
        dest = Path(dest)
        dest.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=".resources-", suffix=".zip", dir=dest.parent)
        try:
            with os.fdopen(fd, "wb") as fh:
                with zipfile.ZipFile(fh, "w", compression=zipfile.ZIP_DEFLATED) as zf:
                    for path in sorted(self._entries):
                        zf.writestr(path, self._entries[path].content)
            os.replace(tmp_name, dest)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        return dest
