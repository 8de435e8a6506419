from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Protocol

import boto3
from botocore.exceptions import ClientError


logger = logging.getLogger(__name__)

# Environment variable names for convenience configuration
ENV_BUCKET = "KEYLESS_STATE_BUCKET"
ENV_PREFIX = "KEYLESS_STATE_PREFIX"


class SyncStore(Protocol):
    """Synchronous string key-value store used for persisted flow state."""

    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


def storage_keys(api_key: str) -> "StorageKeys":
    return StorageKeys(
        state=f"@keyless/flow/state/{api_key}",
        session=f"@keyless/flow/session/{api_key}",
    )


@dataclass(frozen=True)
class StorageKeys:
    state: str
    session: str


class InMemoryStorage:
    """Process-local store; nothing survives the process."""

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileStorage:
    """
    Single JSON document on disk holding every key: `{key: value, ...}`.

    - Loaded lazily on first access and rewritten on every change.
    - A corrupt or unreadable file is treated as empty (and replaced on the next write).
    - Write failures propagate; callers rely on storage writes being fail-fast.
    """

    def __init__(self, path: os.PathLike[str] | str) -> None:
        self._path = Path(path)
        self._data: Dict[str, str] = {}
        self._loaded = False

    def _ensure_loaded(self) -> None:
        if self._loaded:
            return
        self._loaded = True
        if not self._path.exists():
            return
        try:
            with self._path.open("r", encoding="utf-8") as f:
                raw = json.load(f)
        except (OSError, ValueError):
            logger.warning("Ignoring unreadable state file %s", self._path)
            return
        if isinstance(raw, dict):
            self._data = {str(k): v for k, v in raw.items() if isinstance(v, str)}

    def _save(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_name(self._path.name + ".tmp")
        with tmp.open("w", encoding="utf-8") as f:
            json.dump(self._data, f, indent=2, sort_keys=True)
        os.replace(tmp, self._path)

    def get(self, key: str) -> Optional[str]:
        self._ensure_loaded()
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._ensure_loaded()
        self._data[key] = value
        self._save()

    def delete(self, key: str) -> None:
        self._ensure_loaded()
        if self._data.pop(key, None) is not None:
            self._save()


class S3Storage:
    """
    S3-backed store: one object per key under `prefix`.

    Usage
    - Provide a bucket (and optional key prefix), or build from env.
    - `get()` of a missing object returns None; other S3 errors propagate.

    Environment variables (optional)
    - `KEYLESS_STATE_BUCKET`: S3 bucket holding the state objects
    - `KEYLESS_STATE_PREFIX`: key prefix, e.g. "keyless/"
    """

    def __init__(
        self,
        *,
        s3: Optional[object] = None,
        bucket: str,
        prefix: str = "",
        region_name: Optional[str] = None,
    ) -> None:
        self._s3 = s3 or boto3.client("s3", region_name=region_name)
        self._bucket = bucket
        self._prefix = prefix

    @classmethod
    def from_env(cls) -> "S3Storage":
        bucket = os.environ.get(ENV_BUCKET)
        if not bucket:
            raise RuntimeError(f"Missing required environment variables for S3 storage: {ENV_BUCKET}")
        return cls(bucket=bucket, prefix=os.environ.get(ENV_PREFIX, ""))

    def _object_key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    def get(self, key: str) -> Optional[str]:
        try:
            resp = self._s3.get_object(Bucket=self._bucket, Key=self._object_key(key))
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code")
            if code in ("NoSuchKey", "404"):
                return None
            raise
        return resp["Body"].read().decode("utf-8")

    def set(self, key: str, value: str) -> None:
        self._s3.put_object(
            Bucket=self._bucket,
            Key=self._object_key(key),
            Body=value.encode("utf-8"),
            ContentType="application/octet-stream",
        )

    def delete(self, key: str) -> None:
        self._s3.delete_object(Bucket=self._bucket, Key=self._object_key(key))


__all__ = [
    "SyncStore",
    "StorageKeys",
    "storage_keys",
    "InMemoryStorage",
    "JsonFileStorage",
    "S3Storage",
]
