"""
Pytest configuration for the bucket file manager tests.

The storage backend is replaced by ``MemoryStore``, an in-memory object with
the same list/head/get/put/delete/presign surface as ``ObjectStore``. Single
calls can be made to fail via ``store.fail(op, key)``.
"""
from __future__ import annotations

import datetime
import os
from typing import Dict, Optional, Set, Tuple

import pytest

from services.errors import StorageError
from services.settings import Settings
from services.storage import ListResult, StorageObject


@pytest.fixture(scope="session", autouse=True)
def _log_dir(tmp_path_factory):
    d = tmp_path_factory.mktemp("logs")
    os.environ["BUCKETFM_LOG_DIR"] = str(d)
    yield d


class MemoryStore:
    bucket = "test-bucket"

    def __init__(self, objects: Optional[Dict[str, bytes]] = None) -> None:
        self.objects: Dict[str, bytes] = dict(objects or {})
        self.calls: list = []
        self._fail: Set[Tuple[str, str]] = set()
        self.head_size_override: Dict[str, int] = {}

    def fail(self, op: str, key: str, code: str = "InternalError") -> None:
        self._fail.add((op, key))
        self._fail_code = code

    def _check(self, op: str, key: str) -> None:
        self.calls.append((op, key))
        if (op, key) in self._fail:
            raise StorageError(f"{op}_failed", op=op, key=key, code=getattr(self, "_fail_code", "InternalError"))

    def list(self, prefix: str = "", max_keys: int = 1000) -> ListResult:
        self._check("list", prefix)
        keys = sorted(k for k in self.objects if k.startswith(prefix))
        page = keys[:max_keys]
        ts = datetime.datetime(2024, 1, 2, 3, 4, 5, tzinfo=datetime.timezone.utc)
        return ListResult(
            name=self.bucket,
            prefix=prefix,
            max_keys=max_keys,
            is_truncated=len(keys) > max_keys,
            contents=[StorageObject(key=k, size=len(self.objects[k]), last_modified=ts, etag="e-" + k) for k in page],
        )

    def head(self, key: str) -> StorageObject:
        self._check("head", key)
        if key not in self.objects:
            raise StorageError("head_failed", op="head", key=key, code="404")
        size = self.head_size_override.get(key, len(self.objects[key]))
        return StorageObject(key=key, size=size)

    def get(self, key: str) -> bytes:
        self._check("get", key)
        if key not in self.objects:
            raise StorageError("get_failed", op="get", key=key, code="NoSuchKey")
        return self.objects[key]

    def put(self, key: str, data: bytes, content_type: Optional[str] = None) -> str:
        self._check("put", key)
        self.objects[key] = bytes(data)
        self.last_content_type = content_type
        return "etag"

    def delete(self, key: str) -> None:
        self._check("delete", key)
        # S3 semantics: deleting a missing key succeeds.
        self.objects.pop(key, None)

    def presign(self, key: str, expires_in: int = 3600) -> str:
        self._check("presign", key)
        return f"https://s3.example.local/{self.bucket}/{key}?X-Amz-Expires={expires_in}"


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def settings() -> Settings:
    return Settings(bucket="test-bucket")


@pytest.fixture
def app(store, settings):
    from app import create_app

    application = create_app(settings, store=store)
    application.config["TESTING"] = True
    return application


@pytest.fixture
def client(app):
    return app.test_client()
