"""http_utils.py — HTTP response building, body parsing, path/method extraction.

Part of the items-service Lambda.
"""
from __future__ import annotations

import base64
import json
from decimal import Decimal
from typing import Any, Dict, Tuple

from config import CORS_ORIGIN

__all__ = [
    "_cors_headers",
    "_error",
    "_json_body",
    "_path_method",
    "_response",
    "_scheduled_response",
]

# ---------------------------------------------------------------------------
# HTTP helpers
# ---------------------------------------------------------------------------


def _cors_headers() -> Dict[str, str]:
    return {
        "Access-Control-Allow-Origin": CORS_ORIGIN,
        "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS",
        "Access-Control-Allow-Headers": "Content-Type, Authorization",
        "Access-Control-Allow-Credentials": "true",
    }


def _json_default(obj: Any) -> Any:
    if isinstance(obj, Decimal):
        if obj % 1 == 0:
            return int(obj)
        return float(obj)
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def _response(status_code: int, payload: Any) -> Dict[str, Any]:
    return {
        "statusCode": status_code,
        "headers": {**_cors_headers(), "Content-Type": "application/json"},
        "body": json.dumps(payload, default=_json_default),
    }


def _scheduled_response(status_code: int, payload: Any) -> Dict[str, Any]:
    """Response for scheduler invocations: no CORS headers, just status and JSON body."""
    return {
        "statusCode": status_code,
        "body": json.dumps(payload, default=_json_default),
    }


def _error(status_code: int, message: str, **extra: Any) -> Dict[str, Any]:
    code = str(extra.pop("code", "") or "").strip().upper()
    if not code:
        if status_code == 400:
            code = "INVALID_INPUT"
        elif status_code == 404:
            code = "NOT_FOUND"
        elif status_code == 405:
            code = "METHOD_NOT_ALLOWED"
        elif status_code == 409:
            code = "CONFLICT"
        else:
            code = "INTERNAL_ERROR"
    retryable = bool(extra.pop("retryable", status_code >= 500))
    details = dict(extra)
    payload: Dict[str, Any] = {
        "success": False,
        "error": message,
        "error_envelope": {
            "code": code,
            "message": message,
            "retryable": retryable,
            "details": details,
        },
    }
    payload.update(details)
    return _response(status_code, payload)


def _json_body(event: Dict[str, Any]) -> Any:
    """Parse the JSON body (base64 aware). Returns None when it is not valid JSON."""
    raw = event.get("body") or "{}"
    if event.get("isBase64Encoded"):
        try:
            raw = base64.b64decode(raw).decode("utf-8")
        except (ValueError, UnicodeDecodeError):
            return None
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        return None


def _path_method(event: Dict[str, Any]) -> Tuple[str, str]:
    """Extract HTTP method and path from an API Gateway v1 or v2 event."""
    rc = event.get("requestContext") or {}
    http = rc.get("http") or {}
    method = (http.get("method") or event.get("httpMethod") or "GET").upper()
    path = http.get("path") or event.get("rawPath") or event.get("path") or "/"
    if len(path) > 1:
        path = path.rstrip("/")
    return method, path
