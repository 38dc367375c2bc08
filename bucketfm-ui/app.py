"""Flask application for the bucket file manager.

``create_app()`` wires settings, logging, the storage client and the API
blueprint. run_server.py serves it; tests build it with a stub store.
"""

from __future__ import annotations

import os
import time
from typing import Any, Optional

from flask import Flask, g, jsonify, render_template, request

from routes_bucket import create_bucket_blueprint, handle_bucket_error
from services.browser import BrowserState, breadcrumbs, format_file_size, group_listing
from services.errors import BucketError
from services.logging_setup import access_enabled as _access_enabled
from services.logging_setup import access_logger as _get_access_logger
from services.logging_setup import core_log as _core_log
from services.logging_setup import setup_logging as _setup_ui_logging
from services.settings import Settings
from services.storage import ObjectStore


STORE_EXT = "bucketfm.store"


def create_app(settings: Optional[Settings] = None, store: Optional[Any] = None) -> Flask:
    settings = settings or Settings.from_env()
    here = os.path.dirname(os.path.abspath(__file__))
    app = Flask(__name__, template_folder=os.path.join(here, "templates"))
    app.config["BUCKETFM_SETTINGS"] = settings

    # Logging must never be required for functionality.
    try:
        _setup_ui_logging()
    except OSError:
        pass

    if store is not None:
        app.extensions[STORE_EXT] = store

    def get_store() -> Any:
        # Built lazily so the app can start before the bucket is reachable/configured.
        st = app.extensions.get(STORE_EXT)
        if st is None:
            st = ObjectStore.from_settings(settings)
            app.extensions[STORE_EXT] = st
        return st

    app.register_blueprint(create_bucket_blueprint(
        get_store,
        list_max_keys=settings.list_max_keys,
        max_zip_bytes=settings.max_zip_bytes,
        presign_expires=settings.presign_expires,
    ))

    # --- Access log (optional) ---
    @app.before_request
    def _access_log_before_request():
        g._bucketfm_t0 = time.time()
        return None

    @app.after_request
    def _access_log_after_request(response):
        try:
            if not _access_enabled():
                return response
            path = request.path or ""
            if path.startswith("/static/"):
                return response
            client = request.headers.get("X-Forwarded-For") or request.remote_addr or ""
            status = getattr(response, "status_code", 0) or 0
            t0 = getattr(g, "_bucketfm_t0", None)
            line = f"{client} {request.method} {path} -> {status}"
            if t0:
                line += f" ({int((time.time() - float(t0)) * 1000.0)}ms)"
            _get_access_logger().info(line)
        except Exception:  # noqa: BLE001
            # Logging must never affect response
            pass
        return response

    app.register_error_handler(BucketError, handle_bucket_error)

    @app.get("/healthz")
    def healthz() -> Any:
        return jsonify({"ok": True, "bucket": settings.bucket})

    @app.get("/")
    def index() -> Any:
        state = BrowserState()
        state.navigate(request.args.get("path", ""))
        current_path = state.current_path
        # Trailing '/' keeps sibling keys like "ab/..." out of folder "a".
        prefix = f"{current_path}/" if current_path else ""
        listing = get_store().list(prefix, settings.list_max_keys)
        grouping = group_listing(listing.contents, current_path)
        # ?selected=<key> survives a reload; only keys shown on this page stay selected.
        shown = {f.key for f in grouping.files}
        for key in request.args.getlist("selected"):
            if key in shown and key not in state.selected:
                state.toggle_selection(key)
        return render_template(
            "index.html",
            bucket_name=settings.bucket,
            current_path=current_path,
            state=state.to_dict(),
            selected=state.selected,
            breadcrumbs=breadcrumbs(current_path),
            folders=grouping.folders,
            files=grouping.files,
            folder_count=len(grouping.folders),
            file_count=len(grouping.files),
            total_size_hr=format_file_size(grouping.total_size),
            truncated=listing.is_truncated,
            format_file_size=format_file_size,
        )

    _core_log("info", "app.created", bucket=settings.bucket, endpoint=settings.endpoint_url or "aws")
    return app
