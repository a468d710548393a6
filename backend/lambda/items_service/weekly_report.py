"""weekly_report.py — Read-only usage statistics over the items table and the bucket.

Counts are independent reads, not a snapshot. A failed bucket listing is
recorded as ``s3_error`` and the rest of the report is still returned; the
job always answers 200.
"""
from __future__ import annotations

import datetime as dt
import json
import time
from typing import Optional

from config import REPORT_WINDOW_DAYS, logger
from context import RuntimeContext
from errors import GatewayError
from models import MetricsReport
from serialization import _emit_structured_observability, _parse_iso

__all__ = ["run_weekly_report"]


def _file_totals(ctx: RuntimeContext) -> tuple:
    total_files = 0
    total_size = 0
    for item in ctx.metadata.iter_items_with_files():
        files = item.get("files")
        if not isinstance(files, list):
            continue
        total_files += len(files)
        for f in files:
            if isinstance(f, dict):
                total_size += int(f.get("size") or 0)
    return total_files, total_size


def run_weekly_report(
    ctx: RuntimeContext,
    *,
    now: Optional[dt.datetime] = None,
    window_days: int = REPORT_WINDOW_DAYS,
) -> MetricsReport:
    now = _parse_iso(now) if now is not None else dt.datetime.now(dt.timezone.utc)
    window_start = now - dt.timedelta(days=window_days)
    logger.info("[START] Generating weekly report: window_start=%s", window_start.isoformat())
    started = time.monotonic()
    report = MetricsReport(generated_at=now, window_start=window_start)

    try:
        store = ctx.ensure_metadata()
        report.total_items = store.count()
        report.items_created_in_window = store.count(created_since=window_start)
        report.items_updated_in_window = store.count(updated_since=window_start)
        report.total_files, report.total_file_size_bytes = _file_totals(ctx)

        try:
            objects = ctx.objects.list("")
        except GatewayError as exc:
            report.s3_error = exc.message
        else:
            report.s3_object_count = len(objects)
            report.s3_total_size_bytes = sum(o.size_bytes for o in objects)
    except GatewayError as exc:
        logger.error("[ERROR] Report generation failed: %s", exc.message)
        report.error = exc.message
    except Exception as exc:
        logger.exception("[ERROR] Report generation failed unexpectedly")
        report.error = str(exc)

    logger.info("[END] Weekly report: %s", json.dumps(report.to_dict()))
    _emit_structured_observability(
        component="weekly_report",
        event="completed",
        latency_ms=int((time.monotonic() - started) * 1000),
        error_code="report_error" if report.error else ("s3_error" if report.s3_error else ""),
        extra={"total_items": report.total_items, "s3_object_count": report.s3_object_count},
    )
    return report
