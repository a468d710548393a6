"""health_check.py — Scheduled probe of the metadata store and the object store.

Runs every five minutes. Both probes always run; a failed probe is reported,
never raised, since an unhealthy verdict is the expected output of this job.
"""
from __future__ import annotations

import json
import time

from config import logger
from context import RuntimeContext
from errors import GatewayError, StoreConnectionError
from models import HEALTHY, UNHEALTHY, HealthCheck, HealthReport
from serialization import _emit_structured_observability, _now_z

__all__ = ["check_metadata_store", "check_object_store", "run_health_check"]


def check_metadata_store(ctx: RuntimeContext) -> HealthCheck:
    try:
        store = ctx.metadata
        if store.is_connected():
            try:
                store.ping()
                return HealthCheck(status=HEALTHY, state="connected")
            except StoreConnectionError as exc:
                logger.warning("[WARNING] Cached metadata connection is stale: %s", exc.message)
        store.connect()
        return HealthCheck(status=HEALTHY, state="reconnected")
    except GatewayError as exc:
        return HealthCheck(status=UNHEALTHY, detail=exc.message)
    except Exception as exc:
        logger.exception("[ERROR] Metadata store probe crashed")
        return HealthCheck(status=UNHEALTHY, detail=str(exc))


def check_object_store(ctx: RuntimeContext) -> HealthCheck:
    try:
        ctx.objects.list("", max_keys=1)
        return HealthCheck(status=HEALTHY)
    except GatewayError as exc:
        return HealthCheck(status=UNHEALTHY, detail=exc.message)
    except Exception as exc:
        logger.exception("[ERROR] Object store probe crashed")
        return HealthCheck(status=UNHEALTHY, detail=str(exc))


def run_health_check(ctx: RuntimeContext) -> HealthReport:
    logger.info("[START] Running health check")
    started = time.monotonic()

    report = HealthReport(timestamp=_now_z())
    report.checks["database"] = check_metadata_store(ctx)
    report.checks["s3"] = check_object_store(ctx)

    logger.info("[END] Health check results: %s", json.dumps(report.to_dict()))
    _emit_structured_observability(
        component="health_check",
        event="completed",
        latency_ms=int((time.monotonic() - started) * 1000),
        error_code="" if report.overall == HEALTHY else "unhealthy",
        extra={"overall": report.overall},
    )
    return report
