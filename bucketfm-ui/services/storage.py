"""Thin boto3 adapter for the single bucket the UI manages.

One method per backend call. Nothing is cached; every botocore failure is
re-raised as ``StorageError`` with the S3 error code when there is one.
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from services.errors import StorageError
from services.settings import LIST_PAGE_LIMIT, Settings


NOT_FOUND_CODES = ("NoSuchKey", "NotFound", "404")


def _iso(ts: Optional[datetime.datetime]) -> Optional[str]:
    if ts is None:
        return None
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=datetime.timezone.utc)
    return ts.isoformat()


@dataclass
class StorageObject:
    key: str
    size: Optional[int] = None
    last_modified: Optional[datetime.datetime] = None
    etag: Optional[str] = None

    @classmethod
    def from_s3(cls, item: Dict[str, Any]) -> "StorageObject":
        etag = item.get("ETag")
        return cls(
            key=str(item.get("Key") or ""),
            size=item.get("Size") if item.get("Size") is not None else item.get("ContentLength"),
            last_modified=item.get("LastModified"),
            etag=str(etag).strip('"') if etag else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "size": self.size,
            "lastModified": _iso(self.last_modified),
            "eTag": self.etag,
        }


@dataclass
class ListResult:
    name: str
    prefix: str
    max_keys: int
    is_truncated: bool = False
    contents: List[StorageObject] = field(default_factory=list)

    @property
    def key_count(self) -> int:
        return len(self.contents)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "prefix": self.prefix,
            "maxKeys": self.max_keys,
            "keyCount": self.key_count,
            "isTruncated": self.is_truncated,
            "contents": [o.to_dict() for o in self.contents],
        }


def error_code(exc: BaseException) -> str:
    if isinstance(exc, ClientError):
        err = exc.response.get("Error") or {}
        return str(err.get("Code") or "")
    return ""


def build_client(settings: Settings) -> Any:
    """Create the boto3 S3 client from settings.

    Retries are disabled: failures surface to the caller immediately.
    """
    cfg = Config(
        region_name=settings.region,
        connect_timeout=settings.connect_timeout,
        read_timeout=settings.read_timeout,
        retries={"max_attempts": 1, "mode": "standard"},
        signature_version="s3v4",
        s3={"addressing_style": "path"} if settings.endpoint_url else None,
    )
    return boto3.client(
        "s3",
        endpoint_url=settings.endpoint_url,
        aws_access_key_id=settings.access_key_id,
        aws_secret_access_key=settings.secret_access_key,
        config=cfg,
    )


class ObjectStore:
    """Object-storage capability: list / head / get / put / delete / presign."""

    def __init__(self, client: Any, bucket: str) -> None:
        if not bucket:
            raise StorageError("bucket_not_configured", status=500)
        self.client = client
        self.bucket = bucket

    @classmethod
    def from_settings(cls, settings: Settings) -> "ObjectStore":
        return cls(build_client(settings), settings.bucket)

    def _fail(self, op: str, key: str, exc: Exception) -> StorageError:
        code = error_code(exc)
        return StorageError(f"{op}_failed", op=op, key=key, code=code, details=str(exc)[-400:])

    def list(self, prefix: str = "", max_keys: int = LIST_PAGE_LIMIT) -> ListResult:
        max_keys = max(1, min(LIST_PAGE_LIMIT, int(max_keys)))
        try:
            resp = self.client.list_objects_v2(Bucket=self.bucket, Prefix=prefix or "", MaxKeys=max_keys)
        except (ClientError, BotoCoreError) as e:
            raise self._fail("list", prefix, e) from e
        return ListResult(
            name=self.bucket,
            prefix=prefix or "",
            max_keys=max_keys,
            is_truncated=bool(resp.get("IsTruncated")),
            contents=[StorageObject.from_s3(item) for item in resp.get("Contents", [])],
        )

    def head(self, key: str) -> StorageObject:
        try:
            resp = self.client.head_object(Bucket=self.bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise self._fail("head", key, e) from e
        obj = StorageObject.from_s3(resp)
        obj.key = key
        return obj

    def get(self, key: str) -> bytes:
        try:
            resp = self.client.get_object(Bucket=self.bucket, Key=key)
            # Body is a StreamingBody; read() pulls the whole object into memory.
            return resp["Body"].read()
        except (ClientError, BotoCoreError) as e:
            raise self._fail("get", key, e) from e

    def put(self, key: str, data: bytes, content_type: Optional[str] = None) -> Optional[str]:
        extra: Dict[str, Any] = {}
        if content_type:
            extra["ContentType"] = content_type
        try:
            resp = self.client.put_object(Bucket=self.bucket, Key=key, Body=data, **extra)
        except (ClientError, BotoCoreError) as e:
            raise self._fail("put", key, e) from e
        etag = (resp or {}).get("ETag")
        return str(etag).strip('"') if etag else None

    def delete(self, key: str) -> None:
        try:
            self.client.delete_object(Bucket=self.bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise self._fail("delete", key, e) from e

    def presign(self, key: str, expires_in: int = 3600) -> str:
        try:
            return self.client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket, "Key": key},
                ExpiresIn=int(expires_in),
            )
        except (ClientError, BotoCoreError) as e:
            raise self._fail("presign", key, e) from e
