"""reconciliation.py — Daily cleanup of S3 objects no longer referenced by any item.

Steps:
  1. Collect every ``s3_key`` referenced by the items table.
  2. List every object under CLEANUP_PREFIX (``scanned_count``).
  3. In listing order, skip referenced keys and objects younger than the grace
     period; delete the rest. A failed delete is recorded and the run goes on.

A failure while collecting references or listing, or any unexpected error,
ends the run early with a general error (``key: null``) and whatever was
accumulated so far.

Only one direction is reconciled: item files whose object is already gone are
kept as references and not reported.
"""
from __future__ import annotations

import datetime as dt
import json
import time
from typing import Optional, Set

from config import CLEANUP_PREFIX, ORPHAN_GRACE_SECONDS, logger
from context import RuntimeContext
from errors import GatewayError
from models import FileDescriptor, ReconciliationResult
from serialization import _emit_structured_observability, _iso_z, _parse_iso

__all__ = ["is_within_grace_period", "run_daily_cleanup"]


def is_within_grace_period(
    obj: FileDescriptor,
    now: dt.datetime,
    grace_seconds: int = ORPHAN_GRACE_SECONDS,
) -> bool:
    """True if ``obj`` is too young to delete. Objects with no timestamp are kept."""
    if obj.last_modified is None:
        return True
    age = (_parse_iso(now) - obj.last_modified).total_seconds()
    return age < grace_seconds


def _referenced_keys(ctx: RuntimeContext) -> Set[str]:
    return ctx.ensure_metadata().list_file_keys()


def run_daily_cleanup(
    ctx: RuntimeContext,
    *,
    now: Optional[dt.datetime] = None,
    prefix: str = CLEANUP_PREFIX,
    grace_seconds: int = ORPHAN_GRACE_SECONDS,
) -> ReconciliationResult:
    now = _parse_iso(now) if now is not None else dt.datetime.now(dt.timezone.utc)
    logger.info("[START] Running daily cleanup: prefix=%s grace=%ss", prefix, grace_seconds)
    started = time.monotonic()
    result = ReconciliationResult(timestamp=_iso_z(now))

    try:
        referenced = _referenced_keys(ctx)
        logger.info("[INFO] Found %d referenced file keys in metadata", len(referenced))

        listed = ctx.objects.list(prefix)
        result.scanned_count = len(listed)
        logger.info("[INFO] Found %d objects under %s", len(listed), prefix)

        for obj in listed:
            if obj.key in referenced:
                continue
            if is_within_grace_period(obj, now, grace_seconds):
                logger.info("[INFO] Skipping recent object: %s", obj.key)
                continue
            try:
                ctx.objects.delete(obj.key)
            except GatewayError as exc:
                result.record_error(obj.key, exc.message)
                logger.error("[ERROR] Failed to delete %s: %s", obj.key, exc.message)
                continue
            result.record_deleted(obj.key)
            logger.info("[INFO] Deleted orphaned object: %s", obj.key)
    except GatewayError as exc:
        logger.error("[ERROR] Cleanup aborted: %s", exc.message)
        result.record_error(None, exc.message)
    except Exception as exc:
        logger.exception("[ERROR] Cleanup aborted by unexpected error")
        result.record_error(None, str(exc))

    logger.info("[END] Cleanup results: %s", json.dumps(result.to_dict()))
    _emit_structured_observability(
        component="reconciliation",
        event="completed",
        latency_ms=int((time.monotonic() - started) * 1000),
        error_code="partial_failure" if result.errors else "",
        extra={
            "scanned_count": result.scanned_count,
            "deleted_count": result.deleted_count,
            "error_count": len(result.errors),
        },
    )
    return result
