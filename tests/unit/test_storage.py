from __future__ import annotations

import json

import pytest
from botocore.exceptions import ClientError

from state.storage import InMemoryStorage, JsonFileStorage, S3Storage, storage_keys


class _FakeBody:
    def __init__(self, data: bytes) -> None:
        self._data = data

    def read(self) -> bytes:
        return self._data


class _FakeS3:
    def __init__(self) -> None:
        self._store = {}  # (bucket, key) -> bytes
        self.fail_get_with = None

    def put_object(self, *, Bucket: str, Key: str, Body: bytes, ContentType: str):
        self._store[(Bucket, Key)] = Body
        return {"ETag": f'"fake-{len(Body)}"'}

    def get_object(self, *, Bucket: str, Key: str):
        if self.fail_get_with:
            raise ClientError({"Error": {"Code": self.fail_get_with}}, "GetObject")
        body = self._store.get((Bucket, Key))
        if body is None:
            raise ClientError({"Error": {"Code": "NoSuchKey"}}, "GetObject")
        return {"Body": _FakeBody(body)}

    def delete_object(self, *, Bucket: str, Key: str):
        self._store.pop((Bucket, Key), None)
        return {}


def test_storage_keys_are_namespaced_per_api_key():
    keys = storage_keys("pk_123")
    assert keys.state == "@keyless/flow/state/pk_123"
    assert keys.session == "@keyless/flow/session/pk_123"


def test_in_memory_get_set_delete():
    s = InMemoryStorage()
    assert s.get("k") is None
    s.set("k", "v")
    assert s.get("k") == "v"
    s.delete("k")
    s.delete("k")
    assert s.get("k") is None


def test_json_file_storage_persists_between_instances(tmp_path):
    path = tmp_path / "nested" / "state.json"
    s1 = JsonFileStorage(path)
    s1.set("a", "1")
    s1.set("b", "2")
    s1.delete("a")

    s2 = JsonFileStorage(path)
    assert s2.get("a") is None
    assert s2.get("b") == "2"
    assert json.loads(path.read_text(encoding="utf-8")) == {"b": "2"}


def test_json_file_storage_ignores_corrupt_file(tmp_path):
    path = tmp_path / "state.json"
    path.write_text("{not json", encoding="utf-8")
    s = JsonFileStorage(path)
    assert s.get("a") is None
    s.set("a", "1")
    assert JsonFileStorage(path).get("a") == "1"


def test_s3_storage_roundtrip_with_prefix():
    s3 = _FakeS3()
    store = S3Storage(s3=s3, bucket="b", prefix="keyless/")

    assert store.get("k") is None
    store.set("k", "ciphertext")
    assert ("b", "keyless/k") in s3._store
    assert store.get("k") == "ciphertext"
    store.delete("k")
    assert store.get("k") is None


def test_s3_storage_propagates_other_errors():
    s3 = _FakeS3()
    s3.fail_get_with = "AccessDenied"
    store = S3Storage(s3=s3, bucket="b")
    with pytest.raises(ClientError):
        store.get("k")


def test_s3_from_env_missing_bucket_raises(monkeypatch):
    monkeypatch.delenv("KEYLESS_STATE_BUCKET", raising=False)
    with pytest.raises(RuntimeError):
        S3Storage.from_env()
