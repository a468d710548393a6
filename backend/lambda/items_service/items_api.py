"""items_api.py — HTTP request handler for items and their attached files.

Routes (via API Gateway proxy):
    GET    /health                                  — liveness
    GET    /api/items?status=&search=               — list items, newest first
    POST   /api/items                               — create item
    GET    /api/items/{itemId}                      — get item
    PUT    /api/items/{itemId}                      — update name/description/status
    DELETE /api/items/{itemId}                      — soft delete (status=deleted)
    POST   /api/items/{itemId}/files                — attach a file (base64 JSON body)
    GET    /api/items/{itemId}/files                — files with presigned download URLs
    GET    /api/items/{itemId}/files/{fileId}       — one presigned download URL
    DELETE /api/items/{itemId}/files/{fileId}       — delete object and descriptor
    OPTIONS *                                       — CORS preflight
"""
from __future__ import annotations

import base64
import binascii
import re
import time
import uuid
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Optional

from config import (
    ITEMS_S3_PREFIX,
    MAX_NAME_LENGTH,
    MAX_UPLOAD_BYTES,
    PRESIGN_EXPIRES_SECONDS,
    PRESIGN_MAX_WORKERS,
    VALID_ITEM_STATUSES,
    logger,
)
from context import RuntimeContext
from errors import GatewayError
from http_utils import _cors_headers, _error, _json_body, _path_method, _response
from serialization import _now_z

__all__ = ["handle_request"]

_ID_RE = re.compile(r"^[0-9a-f]{32}$")
_ITEM_PATH = re.compile(r"/api/items/([^/]+)")
_FILES_PATH = re.compile(r"/api/items/([^/]+)/files")
_FILE_PATH = re.compile(r"/api/items/([^/]+)/files/([^/]+)")
_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]")


def _new_id() -> str:
    return uuid.uuid4().hex


def _valid_id(value: str) -> bool:
    return bool(_ID_RE.match(value or ""))


def _safe_filename(name: str) -> str:
    base = name.replace("\\", "/").rsplit("/", 1)[-1].strip()
    return _UNSAFE_FILENAME_CHARS.sub("_", base) or "file"


# ---------------------------------------------------------------------------
# Items
# ---------------------------------------------------------------------------


def _handle_list(ctx: RuntimeContext, qs: Dict[str, str]) -> Dict[str, Any]:
    status = (qs.get("status") or "").strip() or None
    search = (qs.get("search") or "").strip() or None
    items = ctx.ensure_metadata().list_items(status=status, search=search)
    return _response(200, {"items": items, "count": len(items)})


def _handle_get(ctx: RuntimeContext, item_id: str) -> Dict[str, Any]:
    item = ctx.ensure_metadata().get_item(item_id)
    if item is None:
        return _error(404, "Item not found")
    return _response(200, item)


def _handle_create(ctx: RuntimeContext, event: Dict[str, Any]) -> Dict[str, Any]:
    body = _json_body(event)
    if not isinstance(body, dict):
        return _error(400, "Request body must be a JSON object")
    name = body.get("name")
    if not isinstance(name, str) or not name.strip():
        return _error(400, 'Invalid "name" provided')
    name = name.strip()
    if len(name) > MAX_NAME_LENGTH:
        return _error(400, f"Name cannot exceed {MAX_NAME_LENGTH} characters")
    description = body.get("description")
    description = description.strip() if isinstance(description, str) else ""

    now = _now_z()
    item = {
        "item_id": _new_id(),
        "name": name,
        "description": description,
        "status": "active",
        "files": [],
        "created_at": now,
        "updated_at": now,
    }
    ctx.ensure_metadata().put_item(item)
    logger.info("[INFO] Item created: %s", item["item_id"])
    return _response(201, item)


def _handle_update(ctx: RuntimeContext, event: Dict[str, Any], item_id: str) -> Dict[str, Any]:
    body = _json_body(event)
    if not isinstance(body, dict):
        return _error(400, "Request body must be a JSON object")

    changes: Dict[str, Any] = {}
    name = body.get("name")
    if isinstance(name, str) and name.strip():
        if len(name.strip()) > MAX_NAME_LENGTH:
            return _error(400, f"Name cannot exceed {MAX_NAME_LENGTH} characters")
        changes["name"] = name.strip()
    if isinstance(body.get("description"), str):
        changes["description"] = body["description"].strip()
    status = body.get("status")
    if status:
        if status not in VALID_ITEM_STATUSES:
            return _error(400, f"Invalid status: {status!r}")
        changes["status"] = status

    updated = ctx.ensure_metadata().update_item(item_id, changes)
    if updated is None:
        return _error(404, "Item not found")
    return _response(200, updated)


def _handle_delete(ctx: RuntimeContext, item_id: str) -> Dict[str, Any]:
    deleted = ctx.ensure_metadata().update_item(item_id, {"status": "deleted"})
    if deleted is None:
        return _error(404, "Item not found")
    return _response(200, {"message": "Item deleted successfully", "item": deleted})


# ---------------------------------------------------------------------------
# Files
# ---------------------------------------------------------------------------


def _handle_upload(ctx: RuntimeContext, event: Dict[str, Any], item_id: str) -> Dict[str, Any]:
    body = _json_body(event)
    if not isinstance(body, dict) or not body.get("content"):
        return _error(400, "No file uploaded")
    try:
        content = base64.b64decode(str(body["content"]), validate=True)
    except (binascii.Error, ValueError):
        return _error(400, "File content must be base64 encoded")
    if len(content) > MAX_UPLOAD_BYTES:
        return _error(400, f"File exceeds {MAX_UPLOAD_BYTES} bytes")

    store = ctx.ensure_metadata()
    if store.get_item(item_id) is None:
        return _error(404, "Item not found")

    filename = _safe_filename(str(body.get("filename") or ""))
    mime_type = str(body.get("mime_type") or "application/octet-stream")
    key = f"{ITEMS_S3_PREFIX}/{item_id}/{int(time.time() * 1000)}-{filename}"
    url = ctx.objects.upload(content, key, mime_type)

    descriptor = {
        "file_id": _new_id(),
        "filename": filename,
        "s3_key": key,
        "s3_url": url,
        "size": len(content),
        "mime_type": mime_type,
        "uploaded_at": _now_z(),
    }
    if store.add_file(item_id, descriptor) is None:
        # Item vanished between the read and the write; the daily cleanup
        # will collect the object once it is past the grace period.
        return _error(404, "Item not found")
    logger.info("[INFO] File uploaded for item %s: %s", item_id, filename)
    return _response(201, {"message": "File uploaded successfully", "file": descriptor})


def _presign_all(ctx: RuntimeContext, files: List[Dict[str, Any]]) -> List[str]:
    if not files:
        return []
    with ThreadPoolExecutor(max_workers=min(len(files), PRESIGN_MAX_WORKERS)) as pool:
        return list(
            pool.map(lambda f: ctx.objects.presign(f["s3_key"], PRESIGN_EXPIRES_SECONDS), files)
        )


def _handle_list_files(ctx: RuntimeContext, item_id: str) -> Dict[str, Any]:
    item = ctx.ensure_metadata().get_item(item_id)
    if item is None:
        return _error(404, "Item not found")
    files = [f for f in item.get("files") or [] if isinstance(f, dict) and f.get("s3_key")]
    urls = _presign_all(ctx, files)
    return _response(
        200, {"files": [{**f, "download_url": url} for f, url in zip(files, urls)]}
    )


def _find_file(item: Dict[str, Any], file_id: str) -> Optional[int]:
    for index, f in enumerate(item.get("files") or []):
        if isinstance(f, dict) and f.get("file_id") == file_id:
            return index
    return None


def _handle_get_file(ctx: RuntimeContext, item_id: str, file_id: str) -> Dict[str, Any]:
    item = ctx.ensure_metadata().get_item(item_id)
    if item is None:
        return _error(404, "Item not found")
    index = _find_file(item, file_id)
    if index is None:
        return _error(404, "File not found")
    f = item["files"][index]
    return _response(
        200,
        {
            "url": ctx.objects.presign(f["s3_key"], PRESIGN_EXPIRES_SECONDS),
            "filename": f.get("filename"),
            "mime_type": f.get("mime_type"),
        },
    )


def _handle_delete_file(ctx: RuntimeContext, item_id: str, file_id: str) -> Dict[str, Any]:
    store = ctx.ensure_metadata()
    item = store.get_item(item_id)
    if item is None:
        return _error(404, "Item not found")
    index = _find_file(item, file_id)
    if index is None:
        return _error(404, "File not found")
    f = item["files"][index]

    # Object first, then descriptor: losing the race below leaves a dangling
    # descriptor, never an unreferenced object.
    ctx.objects.delete(f["s3_key"])
    if not store.remove_file(item_id, index, file_id):
        return _error(409, "Item files changed concurrently. Please retry.")
    logger.info("[INFO] File deleted for item %s: %s", item_id, f.get("filename"))
    return _response(200, {"message": "File deleted successfully"})


# ---------------------------------------------------------------------------
# Routing
# ---------------------------------------------------------------------------


def _route(ctx: RuntimeContext, event: Dict[str, Any], method: str, path: str) -> Dict[str, Any]:
    if method == "GET" and path == "/health":
        return _response(
            200, {"status": "ok", "timestamp": _now_z(), "database": "DynamoDB"}
        )

    if path == "/api/items":
        if method == "GET":
            return _handle_list(ctx, event.get("queryStringParameters") or {})
        if method == "POST":
            return _handle_create(ctx, event)
        return _error(405, f"Method {method} not allowed.")

    match_file = _FILE_PATH.fullmatch(path)
    if match_file:
        item_id, file_id = match_file.groups()
        if not _valid_id(item_id) or not _valid_id(file_id):
            return _error(400, "Invalid ID format")
        if method == "GET":
            return _handle_get_file(ctx, item_id, file_id)
        if method == "DELETE":
            return _handle_delete_file(ctx, item_id, file_id)
        return _error(405, f"Method {method} not allowed.")

    match_files = _FILES_PATH.fullmatch(path)
    if match_files:
        item_id = match_files.group(1)
        if not _valid_id(item_id):
            return _error(400, "Invalid item ID format")
        if method == "GET":
            return _handle_list_files(ctx, item_id)
        if method == "POST":
            return _handle_upload(ctx, event, item_id)
        return _error(405, f"Method {method} not allowed.")

    match_item = _ITEM_PATH.fullmatch(path)
    if match_item:
        item_id = match_item.group(1)
        if not _valid_id(item_id):
            return _error(400, "Invalid item ID format")
        if method == "GET":
            return _handle_get(ctx, item_id)
        if method == "PUT":
            return _handle_update(ctx, event, item_id)
        if method == "DELETE":
            return _handle_delete(ctx, item_id)
        return _error(405, f"Method {method} not allowed.")

    return _error(404, "Route not found")


def handle_request(ctx: RuntimeContext, event: Dict[str, Any], _context: Any = None) -> Dict[str, Any]:
    if not isinstance(event, dict):
        return _error(400, "Unsupported event payload")
    method, path = _path_method(event)
    if method == "OPTIONS":
        return {"statusCode": 204, "headers": _cors_headers(), "body": ""}

    logger.info("[INFO] route method=%s path=%s", method, path)
    try:
        return _route(ctx, event, method, path)
    except GatewayError as exc:
        logger.error("[ERROR] %s %s failed: %s", method, path, exc.message)
        return _error(500, "Request failed")
