"""serialization.py — DynamoDB serialization/deserialization, timestamps, structured observability.

Part of the items-service Lambda.
"""
from __future__ import annotations

import datetime as dt
import json
import time
from decimal import Decimal
from typing import Any, Dict, Optional

from boto3.dynamodb.types import TypeDeserializer, TypeSerializer

from config import logger

__all__ = [
    "_deserialize",
    "_emit_structured_observability",
    "_iso_z",
    "_now_z",
    "_parse_iso",
    "_serialize",
    "_unix_now",
]

# ---------------------------------------------------------------------------
# Serialization helpers
# ---------------------------------------------------------------------------

_deserializer = TypeDeserializer()
_serializer = TypeSerializer()


def _plain(value: Any) -> Any:
    if isinstance(value, Decimal):
        return int(value) if value == int(value) else float(value)
    if isinstance(value, list):
        return [_plain(v) for v in value]
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    return value


def _serialize(value: Any) -> Dict[str, Any]:
    if isinstance(value, float):
        value = Decimal(str(value))
    return _serializer.serialize(value)


def _deserialize(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Deserialize a DynamoDB item to plain Python types (Decimal -> int/float)."""
    return {k: _plain(_deserializer.deserialize(v)) for k, v in raw.items()}


# ---------------------------------------------------------------------------
# Timestamps
# ---------------------------------------------------------------------------


def _iso_z(value: dt.datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=dt.timezone.utc)
    return value.astimezone(dt.timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _now_z() -> str:
    return _iso_z(dt.datetime.now(dt.timezone.utc))


def _unix_now() -> int:
    return int(time.time())


def _parse_iso(raw: Any) -> Optional[dt.datetime]:
    """Parse an ISO-8601 string (``Z`` suffix allowed) to an aware datetime."""
    if isinstance(raw, dt.datetime):
        return raw if raw.tzinfo else raw.replace(tzinfo=dt.timezone.utc)
    if not isinstance(raw, str) or not raw.strip():
        return None
    text = raw.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = dt.datetime.fromisoformat(text)
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=dt.timezone.utc)


# ---------------------------------------------------------------------------
# Structured observability
# ---------------------------------------------------------------------------


def _emit_structured_observability(
    *,
    component: str,
    event: str,
    rule: Optional[str] = None,
    latency_ms: Optional[int] = None,
    error_code: Optional[str] = None,
    extra: Optional[Dict[str, Any]] = None,
) -> None:
    payload: Dict[str, Any] = {
        "timestamp": _now_z(),
        "component": component,
        "event": event,
        "rule": str(rule or ""),
        "latency_ms": int(max(0, latency_ms or 0)),
        "error_code": str(error_code or ""),
    }
    if extra:
        payload.update(extra)
    logger.info("[OBSERVABILITY] %s", json.dumps(payload, sort_keys=True, default=str))
