"""HTTP contract of the bucket API blueprint (Flask test client + MemoryStore)."""
from __future__ import annotations

import io
import zipfile
from urllib.parse import quote

import pytest

from services.settings import Settings


def test_list_returns_raw_listing(client, store):
    store.objects.update({"a/b.txt": b"12", "a/c/d.txt": b"", "e.txt": b"x"})

    resp = client.get("/api/list?prefix=a/")

    assert resp.status_code == 200
    body = resp.get_json()
    assert [o["key"] for o in body["contents"]] == ["a/b.txt", "a/c/d.txt"]
    first = body["contents"][0]
    assert first["size"] == 2
    assert first["eTag"] == "e-a/b.txt"
    assert first["lastModified"].startswith("2024-01-02T03:04:05")
    assert body["maxKeys"] == 1000
    assert body["keyCount"] == 2
    assert body["isTruncated"] is False


def test_list_without_prefix_lists_bucket_root(client, store):
    store.objects.update({"x": b"", "y/z": b""})
    body = client.get("/api/list").get_json()
    assert body["prefix"] == ""
    assert len(body["contents"]) == 2


def test_download_folder_returns_zip_attachment(client, store):
    store.objects.update({"a/x.txt": b"1", "a/y/z.txt": b"2"})

    resp = client.get("/api/download-folder?prefix=a")

    assert resp.status_code == 200
    assert resp.mimetype == "application/zip"
    assert resp.headers["Content-Disposition"] == 'attachment; filename="a.zip"'
    with zipfile.ZipFile(io.BytesIO(resp.data)) as zf:
        assert zf.read("x.txt") == b"1"
        assert zf.read("y/z.txt") == b"2"


def test_download_folder_read_failure_is_a_single_error(client, store):
    store.objects.update({"a/x.txt": b"1", "a/y.txt": b"2"})
    store.fail("get", "a/y.txt")

    resp = client.get("/api/download-folder?prefix=a")

    assert resp.status_code == 502
    assert resp.mimetype == "application/json"
    assert resp.get_json()["error"] == "zip_failed"


def test_download_folder_dry_run_estimates_without_reading(client, store):
    store.objects.update({"a/x.txt": b"123", "a/y.txt": b"4567"})

    body = client.get("/api/download-folder?prefix=a&dry_run=1").get_json()

    assert body["dry_run"] is True
    assert body["estimated_bytes"] == 7
    assert body["estimate_items"] == 2
    assert body["filename"] == "a.zip"
    assert not any(op == "get" for op, _ in store.calls)


def test_download_folder_size_cap(store):
    from app import create_app

    store.objects.update({"big/blob": b"x" * (1024 * 1024 + 1)})
    application = create_app(Settings(bucket="b", max_zip_mb=1), store=store)

    resp = application.test_client().get("/api/download-folder?prefix=big")

    assert resp.status_code == 413
    body = resp.get_json()
    assert body["error"] == "zip_too_large"
    assert body["max_bytes"] == 1024 * 1024


def test_delete(client, store):
    store.objects["k"] = b"1"

    resp = client.post("/api/delete", json={"key": "k"})

    assert resp.status_code == 200
    assert resp.get_json() == {"success": True}
    assert "k" not in store.objects


def test_delete_requires_json_body(client):
    resp = client.post("/api/delete", data="not json", content_type="text/plain")
    assert resp.status_code == 400


def test_upload(client, store):
    resp = client.post("/api/upload", json={"key": "dir/a.txt", "content": "data:text/plain;base64,aGVsbG8="})

    assert resp.get_json() == {"success": True, "key": "dir/a.txt"}
    assert store.objects["dir/a.txt"] == b"hello"


def test_upload_without_content_is_rejected(client, store):
    resp = client.post("/api/upload", json={"key": "k"})
    assert resp.status_code == 400
    assert resp.get_json() == {"error": "content is required"}
    assert store.objects == {}


def test_move(client, store):
    store.objects["old/f"] = b"content"

    resp = client.post("/api/move", json={"oldKey": "old/f", "newKey": "new/f"})

    assert resp.get_json() == {"success": True, "oldKey": "old/f", "newKey": "new/f"}
    assert store.objects == {"new/f": b"content"}


def test_move_failure_names_the_step(client, store):
    store.objects["old/f"] = b"content"
    store.fail("put", "new/f")

    resp = client.post("/api/move", json={"oldKey": "old/f", "newKey": "new/f"})

    assert resp.status_code == 502
    assert resp.get_json()["step"] == "write"
    assert store.objects == {"old/f": b"content"}


def test_move_same_key_is_400(client, store):
    store.objects["k"] = b"v"
    resp = client.post("/api/move", json={"oldKey": "k", "newKey": "k"})
    assert resp.status_code == 400
    assert store.objects == {"k": b"v"}


def test_presign_without_key_is_400(client):
    resp = client.get("/api/presign")

    assert resp.status_code == 400
    assert resp.get_json() == {"error": "Key is required"}


def test_presign_defaults_to_configured_expiry(client):
    resp = client.get("/api/presign?key=a/b.txt")
    assert resp.get_json()["url"].endswith("a/b.txt?X-Amz-Expires=3600")


def test_presign_with_expiry(client):
    resp = client.get("/api/presign?key=a/b.txt&expiresIn=300")
    assert resp.status_code == 200
    assert resp.get_json()["url"].endswith("X-Amz-Expires=300")


def test_bulk_delete_partial_failure_reports_deleted_count(client, store):
    store.objects.update({"1": b"", "2": b"", "3": b""})
    store.fail("delete", "2")

    resp = client.post("/api/bulk-delete", json={"keys": ["1", "2", "3"]})

    assert resp.status_code == 502
    body = resp.get_json()
    assert body["deleted"] == 1
    assert body["failedKey"] == "2"
    assert set(store.objects) == {"2", "3"}


@pytest.mark.parametrize("payload", [{}, {"keys": []}, {"keys": "a"}])
def test_bulk_delete_validates_keys(client, payload):
    resp = client.post("/api/bulk-delete", json=payload)
    assert resp.status_code == 400


def test_empty_bucket(client, store):
    store.objects.update({"a": b"", "b/c": b""})

    resp = client.post("/api/empty-bucket")

    assert resp.get_json() == {"success": True, "deleted": 2}
    assert store.objects == {}


def test_index_renders_virtual_folders(client, store):
    store.objects.update({"a/b.txt": b"12", "a/c/d.txt": b"", "ab/zz.txt": b"", "e.txt": b""})

    resp = client.get("/?path=a")

    assert resp.status_code == 200
    html = resp.get_data(as_text=True)
    assert 'data-key="a/b.txt"' in html
    assert 'data-drop-path="a/c"' in html
    assert "ab/zz.txt" not in html
    assert "e.txt" not in html
    assert ("list", "a/") in store.calls


def test_healthz(client):
    assert client.get("/healthz").get_json() == {"ok": True, "bucket": "test-bucket"}


def test_download_folder_non_ascii_name_is_latin1_safe(client, store):
    store.objects["отчёт/a.txt"] = b"1"

    resp = client.get("/api/download-folder?prefix=отчёт")

    assert resp.status_code == 200
    cd = resp.headers["Content-Disposition"]
    cd.encode("latin-1")
    assert "filename*=UTF-8''" + quote("отчёт.zip", safe="") in cd
    assert 'filename="_____.zip"' in cd


def test_download_folder_long_name_keeps_zip_suffix(client, store):
    name = "f" * 300
    store.objects[f"{name}/a.txt"] = b"1"

    cd = client.get(f"/api/download-folder?prefix={name}").headers["Content-Disposition"]

    assert cd == 'attachment; filename="' + "f" * 180 + '.zip"'


def test_index_storage_failure_is_json_error(client, store):
    store.fail("list", "")

    resp = client.get("/")

    assert resp.status_code == 502
    assert resp.get_json()["error"] == "list_failed"


def test_index_renders_from_browser_state(client, store):
    store.objects.update({"a/b.txt": b"", "a/c.txt": b""})

    resp = client.get("/?path=/a//&selected=a/b.txt&selected=x/missing")

    html = resp.get_data(as_text=True)
    assert 'value="a/b.txt" checked' in html
    assert 'value="a/c.txt">' in html
    assert "x/missing" not in html
    assert ("list", "a/") in store.calls
