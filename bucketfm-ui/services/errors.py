"""Error types shared by the bucket services and the HTTP layer.

Every error carries the HTTP status it maps to plus optional extra fields
that end up in the JSON error body next to ``error``.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class BucketError(Exception):
    status = 500

    def __init__(self, message: str, *, status: Optional[int] = None, **extra: Any) -> None:
        super().__init__(message)
        self.message = message
        if status is not None:
            self.status = int(status)
        self.extra: Dict[str, Any] = dict(extra)

    def payload(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"error": self.message}
        out.update(self.extra)
        return out


class ValidationError(BucketError):
    """Missing or malformed request parameter."""

    status = 400


class StorageError(BucketError):
    """Any failure reported by the storage backend (network, permission, not found)."""

    status = 502

    def __init__(self, message: str, *, op: str = "", key: str = "", code: str = "", **extra: Any) -> None:
        if op:
            extra.setdefault("op", op)
        if key:
            extra.setdefault("key", key)
        if code:
            extra.setdefault("code", code)
        super().__init__(message, **extra)
        self.op = op
        self.key = key
        self.code = code


class ArchiveError(BucketError):
    status = 502


class MoveError(BucketError):
    """Move aborted; ``step`` names the stage that failed (read/write/confirm/delete)."""

    status = 502

    def __init__(self, message: str, *, step: str, **extra: Any) -> None:
        super().__init__(message, step=step, **extra)
        self.step = step


class BulkDeleteError(BucketError):
    """Sequential delete stopped at ``failed_key`` after ``deleted`` confirmed deletions."""

    status = 502

    def __init__(self, message: str, *, deleted: int, failed_key: str) -> None:
        super().__init__(message, deleted=int(deleted), failedKey=failed_key)
        self.deleted = int(deleted)
        self.failed_key = failed_key
