"""Single-object operations on top of the storage adapter.

Each function is a pass-through with at most one shaping rule. Multi-step
operations (move, bulk delete) are sequential and never roll back; errors say
which step failed or how many deletions were confirmed before it.
"""

from __future__ import annotations

import base64
import binascii
import re
from typing import Any, Iterable, List, Optional, Tuple
from urllib.parse import unquote_to_bytes

from services.errors import BulkDeleteError, MoveError, StorageError, ValidationError
from services.logging_setup import core_log as _core_log
from services.settings import LIST_PAGE_LIMIT
from services.storage import NOT_FOUND_CODES


_DATA_URL_RE = re.compile(r"^data:(?P<mime>[^;,]*)(?P<params>(?:;[^;,]*)*),", re.DOTALL)


def _require_key(key: Any, message: str = "Key is required") -> str:
    k = "" if key is None else str(key)
    if not k:
        raise ValidationError(message)
    return k


def list_objects(store: Any, prefix: str = "", max_keys: int = LIST_PAGE_LIMIT) -> Any:
    return store.list(prefix or "", max_keys)


def delete_object(store: Any, key: str) -> None:
    """Delete ``key``. A backend "not found" is treated as already deleted."""
    key = _require_key(key)
    try:
        store.delete(key)
    except StorageError as e:
        if e.code in NOT_FOUND_CODES:
            _core_log("info", "bucket.delete", key=key, already_absent=True)
            return
        raise
    _core_log("info", "bucket.delete", key=key)


def decode_content(content: Any, *, encoding: Optional[str] = None) -> Tuple[bytes, Optional[str]]:
    """Decode upload transport framing into (raw bytes, media type hint).

    Accepted forms:
      - ``data:<mime>;base64,<payload>`` (what FileReader.readAsDataURL produces)
      - base64 text when ``encoding == "base64"``
      - any other string is stored as UTF-8 text
    """
    if content is None:
        raise ValidationError("content is required")
    if isinstance(content, (bytes, bytearray)):
        return bytes(content), None
    s = str(content)

    m = _DATA_URL_RE.match(s)
    if m:
        mime = m.group("mime") or None
        payload = s[m.end():]
        params = [p.strip().lower() for p in (m.group("params") or "").split(";") if p.strip()]
        if "base64" in params:
            return _b64decode(payload), mime
        # Percent-encoded text data URL.
        return unquote_to_bytes(payload), mime

    if (encoding or "").strip().lower() == "base64":
        return _b64decode(s), None
    return s.encode("utf-8"), None


def _b64decode(payload: str) -> bytes:
    try:
        return base64.b64decode("".join(payload.split()), validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValidationError("invalid base64 content") from e


def upload_object(
    store: Any,
    key: str,
    content: Any,
    *,
    content_type: Optional[str] = None,
    encoding: Optional[str] = None,
) -> str:
    """Write ``content`` at ``key``, silently overwriting any existing object."""
    key = _require_key(key)
    data, hinted_type = decode_content(content, encoding=encoding)
    ctype = content_type or hinted_type or None
    store.put(key, data, ctype)
    _core_log("info", "bucket.upload", key=key, bytes=len(data), content_type=ctype or "")
    return key


def move_object(store: Any, old_key: str, new_key: str) -> Tuple[str, str]:
    """Copy ``old_key`` to ``new_key``, confirm the copy, then delete the source.

    Steps: read -> write -> confirm -> delete. The source is only deleted
    after the destination reports the same size as what was read. A failure
    raises ``MoveError`` naming the step; a copy written before a failed
    confirm/delete step is left in place.
    """
    if not old_key or not new_key:
        raise ValidationError("oldKey and newKey are required")
    old_key, new_key = str(old_key), str(new_key)
    if old_key == new_key:
        raise ValidationError("oldKey and newKey must differ")

    def _step(step: str, fn, *args):
        try:
            return fn(*args)
        except StorageError as e:
            _core_log("error", "bucket.move_failed", step=step, old_key=old_key, new_key=new_key, code=e.code)
            raise MoveError("move_failed", step=step, oldKey=old_key, newKey=new_key, code=e.code) from e

    data = _step("read", store.get, old_key)
    _step("write", store.put, new_key, data, None)
    written = _step("confirm", store.head, new_key)
    if written.size is not None and int(written.size) != len(data):
        _core_log("error", "bucket.move_failed", step="confirm", old_key=old_key, new_key=new_key,
                  expected=len(data), got=written.size)
        raise MoveError("move_failed", step="confirm", oldKey=old_key, newKey=new_key,
                        expected_bytes=len(data), stored_bytes=int(written.size))
    _step("delete", store.delete, old_key)
    _core_log("info", "bucket.move", old_key=old_key, new_key=new_key, bytes=len(data))
    return old_key, new_key


def presign_url(store: Any, key: Optional[str], expires_in: Any = 3600) -> str:
    key = _require_key(key)
    try:
        seconds = int(expires_in)
    except (TypeError, ValueError) as e:
        raise ValidationError("expiresIn must be a positive integer") from e
    if seconds <= 0:
        raise ValidationError("expiresIn must be a positive integer")
    return store.presign(key, seconds)


def delete_many(store: Any, keys: Iterable[str]) -> int:
    """Delete keys one by one; stop at the first failure.

    Returns the number of deleted keys. On failure raises ``BulkDeleteError``
    carrying the count confirmed before the failing key.
    """
    deleted = 0
    for key in keys:
        if not key:
            continue
        try:
            delete_object(store, key)
        except StorageError as e:
            _core_log("error", "bucket.bulk_delete_failed", deleted=deleted, key=key, code=e.code)
            raise BulkDeleteError("bulk_delete_failed", deleted=deleted, failed_key=key) from e
        deleted += 1
    _core_log("info", "bucket.bulk_delete", deleted=deleted)
    return deleted


def empty_bucket(store: Any, *, max_keys: int = LIST_PAGE_LIMIT) -> int:
    """Delete every object from one listing page of the whole bucket."""
    listing = store.list("", max_keys)
    keys: List[str] = [o.key for o in listing.contents if o.key]
    if not keys:
        _core_log("info", "bucket.empty", deleted=0, already_empty=True)
        return 0
    deleted = delete_many(store, keys)
    _core_log("info", "bucket.empty", deleted=deleted, truncated=bool(listing.is_truncated))
    return deleted
