"""Runtime configuration read from environment variables.

Storage variables follow the usual S3 client names and fall back to their
AWS_* counterparts:

- S3_ENDPOINT / AWS_ENDPOINT_URL: custom endpoint (MinIO, R2, ...); empty for AWS
- S3_BUCKET / AWS_BUCKET: bucket name
- S3_REGION / AWS_REGION: region (default: us-east-1)
- S3_ACCESS_KEY_ID / AWS_ACCESS_KEY_ID
- S3_SECRET_ACCESS_KEY / AWS_SECRET_ACCESS_KEY

UI specific:

- BUCKETFM_LIST_MAX_KEYS: page size for listings (default: 1000, max: 1000)
- BUCKETFM_MAX_ZIP_MB: refuse folder archives above this size; 0 disables (default: 0)
- BUCKETFM_PRESIGN_EXPIRES: default presigned URL lifetime in seconds (default: 3600)
- BUCKETFM_CONNECT_TIMEOUT / BUCKETFM_READ_TIMEOUT: storage client timeouts in seconds
- BUCKETFM_HOST / BUCKETFM_PORT: listen address for run_server.py
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional


LIST_PAGE_LIMIT = 1000


def _env_str(env: Mapping[str, str], *names: str, default: str = "") -> str:
    for name in names:
        v = str(env.get(name, "") or "").strip()
        if v:
            return v
    return default


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    v = str(env.get(name, "") or "").strip()
    if not v:
        return int(default)
    try:
        return int(float(v))
    except ValueError:
        return int(default)


@dataclass(frozen=True)
class Settings:
    bucket: str = ""
    endpoint_url: Optional[str] = None
    region: str = "us-east-1"
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None
    list_max_keys: int = LIST_PAGE_LIMIT
    max_zip_mb: int = 0
    presign_expires: int = 3600
    connect_timeout: int = 10
    read_timeout: int = 60
    host: str = "0.0.0.0"
    port: int = 8088

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if env is None else env
        max_keys = _env_int(env, "BUCKETFM_LIST_MAX_KEYS", LIST_PAGE_LIMIT)
        return cls(
            bucket=_env_str(env, "S3_BUCKET", "AWS_BUCKET"),
            endpoint_url=_env_str(env, "S3_ENDPOINT", "AWS_ENDPOINT_URL") or None,
            region=_env_str(env, "S3_REGION", "AWS_REGION", default="us-east-1"),
            access_key_id=_env_str(env, "S3_ACCESS_KEY_ID", "AWS_ACCESS_KEY_ID") or None,
            secret_access_key=_env_str(env, "S3_SECRET_ACCESS_KEY", "AWS_SECRET_ACCESS_KEY") or None,
            list_max_keys=max(1, min(LIST_PAGE_LIMIT, max_keys)),
            max_zip_mb=max(0, _env_int(env, "BUCKETFM_MAX_ZIP_MB", 0)),
            presign_expires=max(1, _env_int(env, "BUCKETFM_PRESIGN_EXPIRES", 3600)),
            connect_timeout=max(1, _env_int(env, "BUCKETFM_CONNECT_TIMEOUT", 10)),
            read_timeout=max(1, _env_int(env, "BUCKETFM_READ_TIMEOUT", 60)),
            host=_env_str(env, "BUCKETFM_HOST", default="0.0.0.0"),
            port=_env_int(env, "BUCKETFM_PORT", 8088),
        )

    @property
    def max_zip_bytes(self) -> Optional[int]:
        if self.max_zip_mb > 0:
            return int(self.max_zip_mb) * 1024 * 1024
        return None
