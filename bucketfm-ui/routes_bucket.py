"""Bucket file manager API as a Flask Blueprint.

Endpoints (JSON unless noted):

- GET  /api/list?prefix=...              raw listing, one page (<= 1000 keys)
- GET  /api/download-folder?prefix=...   folder as ZIP (application/zip)
- POST /api/delete        {key}
- POST /api/upload        {key, content, contentType?, encoding?}
- POST /api/move          {oldKey, newKey}
- GET  /api/presign?key=...&expiresIn=...
- POST /api/bulk-delete   {keys: [...]}
- POST /api/empty-bucket
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Optional
from urllib.parse import quote as _url_quote

from flask import Blueprint, Response, jsonify, request

from services import archive as archive_svc
from services import objects as objects_svc
from services.errors import BucketError, ValidationError
from services.logging_setup import core_log as _core_log
from services.settings import LIST_PAGE_LIMIT


def error_response(message: str, status: int = 400, **extra: Any) -> Any:
    """Return a JSON error response: ``{"error": message, ...extra}``."""
    payload: Dict[str, Any] = {"error": message}
    payload.update(extra)
    return jsonify(payload), status


def handle_bucket_error(e: BucketError) -> Any:
    """Map a BucketError to its JSON response; 4xx are logged as warnings."""
    level = "warning" if e.status < 500 else "error"
    _core_log(level, "bucket.request_failed", path=request.path, status=e.status, error=e.message)
    return error_response(e.message, e.status, **e.extra)


def _sanitize_download_filename(name: str, *, default: str = "download", suffix: str = ".zip") -> str:
    """Sanitize filename for Content-Disposition header (prevent header injection)."""
    s = (name or "").replace("\r", "").replace("\n", "").replace('"', "").strip()
    stem = s[: -len(suffix)] if suffix and s.lower().endswith(suffix) else s
    stem = stem or default
    # Keep header reasonably small; the suffix always survives.
    if len(stem) > 180:
        stem = stem[:180]
    return stem + suffix


def _content_disposition_attachment(filename: str) -> str:
    """Build a safe Content-Disposition attachment header value.

    WSGI headers must be ISO-8859-1, so non-ASCII names get an ASCII
    ``filename=`` fallback plus an RFC 5987 ``filename*``.
    """
    fn = _sanitize_download_filename(filename)
    if fn.isascii():
        return f'attachment; filename="{fn}"'
    fallback = "".join(c if " " <= c < "\x7f" else "_" for c in fn)
    fn_star = _url_quote(fn, safe="")
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{fn_star}"


def _truthy(v: Any) -> bool:
    return str(v or "").strip().lower() in ("1", "true", "yes", "on")


def _fmt_mb(n: Optional[int]) -> str:
    if n is None:
        return ""
    return f"{(float(n) / (1024.0 * 1024.0)):.1f} MiB"


def create_bucket_blueprint(
    get_store: Callable[[], Any],
    *,
    list_max_keys: int = LIST_PAGE_LIMIT,
    max_zip_bytes: Optional[int] = None,
    presign_expires: int = 3600,
) -> Blueprint:
    """Create blueprint with the bucket API.

    Args:
        get_store: returns the ObjectStore used for every request.
        list_max_keys: listing page size (capped at 1000).
        max_zip_bytes: refuse folder archives whose listed size is above this; None disables.
        presign_expires: default expiresIn for /api/presign.
    """
    bp = Blueprint("bucket", __name__)
    MAX_KEYS = max(1, min(LIST_PAGE_LIMIT, int(list_max_keys or LIST_PAGE_LIMIT)))

    bp.register_error_handler(BucketError, handle_bucket_error)

    def _json_body() -> Dict[str, Any]:
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            raise ValidationError("JSON body required")
        return data

    @bp.get("/api/list")
    def api_list() -> Any:
        prefix = request.args.get("prefix", "") or ""
        result = objects_svc.list_objects(get_store(), prefix, MAX_KEYS)
        return jsonify(result.to_dict())

    @bp.get("/api/download-folder")
    def api_download_folder() -> Any:
        """Download every object under ``prefix`` as one ZIP.

        Query params:
          prefix=<key prefix> ('' = bucket root)
          dry_run=1 return a size estimate instead of the archive
        """
        prefix = request.args.get("prefix", "") or ""
        dry_run = _truthy(request.args.get("dry_run") or request.args.get("preflight"))
        store = get_store()

        if dry_run or max_zip_bytes is not None:
            est = archive_svc.estimate(store, prefix, max_keys=MAX_KEYS)
            est_bytes = est["estimated_bytes"]
            if dry_run:
                return jsonify({
                    "ok": True,
                    "dry_run": True,
                    "prefix": prefix,
                    "filename": archive_svc.archive_filename(prefix),
                    "max_bytes": max_zip_bytes,
                    **est,
                })
            if isinstance(est_bytes, int) and est_bytes > max_zip_bytes:
                return error_response(
                    "zip_too_large",
                    413,
                    estimated_bytes=est_bytes,
                    max_bytes=int(max_zip_bytes),
                    hint=f"Estimate: {_fmt_mb(est_bytes)}. Limit: {_fmt_mb(max_zip_bytes)}.",
                )

        arc = archive_svc.assemble(store, prefix, max_keys=MAX_KEYS)
        headers = {
            "Content-Disposition": _content_disposition_attachment(arc.filename),
            "Content-Length": str(arc.size),
            "Cache-Control": "no-store",
        }
        return Response(arc.data, mimetype="application/zip", headers=headers)

    @bp.post("/api/delete")
    def api_delete() -> Any:
        data = _json_body()
        objects_svc.delete_object(get_store(), data.get("key"))
        return jsonify({"success": True})

    @bp.post("/api/upload")
    def api_upload() -> Any:
        data = _json_body()
        if "content" not in data:
            raise ValidationError("content is required")
        key = objects_svc.upload_object(
            get_store(),
            data.get("key"),
            data.get("content"),
            content_type=data.get("contentType") or None,
            encoding=data.get("encoding") or None,
        )
        return jsonify({"success": True, "key": key})

    @bp.post("/api/move")
    def api_move() -> Any:
        data = _json_body()
        old_key, new_key = objects_svc.move_object(get_store(), data.get("oldKey"), data.get("newKey"))
        return jsonify({"success": True, "oldKey": old_key, "newKey": new_key})

    @bp.get("/api/presign")
    def api_presign() -> Any:
        key = request.args.get("key")
        if not key:
            return error_response("Key is required", 400)
        expires_in = request.args.get("expiresIn") or presign_expires
        url = objects_svc.presign_url(get_store(), key, expires_in)
        return jsonify({"url": url})

    @bp.post("/api/bulk-delete")
    def api_bulk_delete() -> Any:
        data = _json_body()
        keys = data.get("keys")
        if not isinstance(keys, list) or not keys:
            raise ValidationError("keys must be a non-empty list")
        deleted = objects_svc.delete_many(get_store(), [str(k) for k in keys if k])
        return jsonify({"success": True, "deleted": deleted})

    @bp.post("/api/empty-bucket")
    def api_empty_bucket() -> Any:
        deleted = objects_svc.empty_bucket(get_store(), max_keys=MAX_KEYS)
        return jsonify({"success": True, "deleted": deleted})

    return bp
