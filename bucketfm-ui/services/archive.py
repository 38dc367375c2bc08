"""Folder-as-ZIP assembly.

A folder is just a key prefix. ``assemble`` lists one page of keys under the
prefix, reads every object into memory (sequentially, no retry) and writes
them into an in-memory ZIP under their path relative to the prefix. Any read
failure aborts the whole archive.
"""

from __future__ import annotations

import io
import zipfile
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

from services.errors import ArchiveError, StorageError
from services.logging_setup import core_log as _core_log
from services.settings import LIST_PAGE_LIMIT


DEFAULT_ARCHIVE_NAME = "download"


@dataclass
class FolderArchive:
    data: bytes
    filename: str
    entries: List[str] = field(default_factory=list)

    @property
    def size(self) -> int:
        return len(self.data)


def relative_path(key: str, prefix: str) -> str:
    """Key with ``prefix`` and then one leading '/' stripped."""
    if not prefix:
        return key
    rel = key[len(prefix):] if key.startswith(prefix) else key
    if rel.startswith("/"):
        rel = rel[1:]
    return rel


def archive_filename(prefix: str, *, default: str = DEFAULT_ARCHIVE_NAME) -> str:
    parts = [p for p in (prefix or "").split("/") if p]
    return (parts[-1] if parts else default) + ".zip"


def _compression() -> int:
    # ZIP_DEFLATED requires zlib; some minimal Python builds ship without it.
    try:
        import zlib  # noqa: F401
        return zipfile.ZIP_DEFLATED
    except ImportError:
        return zipfile.ZIP_STORED


def plan_entries(contents: Iterable[Any], prefix: str) -> List[Tuple[str, str]]:
    """Return (key, relative_path) pairs for the listed objects that go into the archive."""
    out: List[Tuple[str, str]] = []
    for obj in contents:
        key = getattr(obj, "key", None) or ""
        if not key:
            continue
        rel = relative_path(key, prefix)
        if rel:
            out.append((key, rel))
    return out


def estimate(store: Any, prefix: str, *, max_keys: int = LIST_PAGE_LIMIT) -> Dict[str, Any]:
    """Size estimate from listing metadata only (no object reads)."""
    listing = store.list(prefix, max_keys)
    planned = {k for k, _ in plan_entries(listing.contents, prefix)}
    total: Optional[int] = 0
    for obj in listing.contents:
        if obj.key not in planned:
            continue
        if obj.size is None:
            total = None
            break
        total += int(obj.size)
    return {
        "estimated_bytes": total,
        "estimate_items": len(planned),
        "estimate_truncated": bool(listing.is_truncated),
    }


def assemble(store: Any, prefix: str, *, max_keys: int = LIST_PAGE_LIMIT) -> FolderArchive:
    prefix = prefix or ""
    try:
        listing = store.list(prefix, max_keys)
    except StorageError as e:
        raise ArchiveError("zip_failed", step="list", prefix=prefix, code=e.code) from e

    entries = plan_entries(listing.contents, prefix)
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", compression=_compression(), allowZip64=True) as zf:
        for key, rel in entries:
            try:
                data = store.get(key)
            except StorageError as e:
                _core_log("warning", "bucket.zip_read_failed", prefix=prefix, key=key, code=e.code)
                raise ArchiveError("zip_failed", step="get", prefix=prefix, key=key, code=e.code) from e
            zf.writestr(rel, data)

    archive = FolderArchive(
        data=buf.getvalue(),
        filename=archive_filename(prefix),
        entries=[rel for _, rel in entries],
    )
    _core_log(
        "info",
        "bucket.zip",
        prefix=prefix,
        items=len(archive.entries),
        bytes=archive.size,
        truncated=bool(listing.is_truncated),
    )
    return archive
