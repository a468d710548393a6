"""dispatcher.py — Classify each invocation and route it to exactly one handler.

EventBridge scheduled events carry ``source == "aws.events"`` or
``detail-type == "Scheduled Event"``; the rule that fired is the last path
segment of ``resources[0]``, e.g.::

    arn:aws:events:us-east-1:123456789012:rule/daily-cleanup  ->  daily-cleanup

The rule name is only used as a key into a fixed routing table. Unknown rules
answer 200 with a diagnostic and do nothing. Anything that is not a scheduled
event goes to the request handler untouched.
"""
from __future__ import annotations

import json
import time
from typing import Any, Callable, Dict, Optional, Union

from config import (
    DAILY_CLEANUP_RULE,
    HEALTH_CHECK_RULE,
    SCHEDULED_EVENT_DETAIL_TYPE,
    SCHEDULER_SOURCE,
    WEEKLY_REPORT_RULE,
    logger,
)
from context import RuntimeContext
from health_check import run_health_check
from http_utils import _scheduled_response
from models import ScheduledTrigger, SynchronousRequest
from reconciliation import run_daily_cleanup
from serialization import _emit_structured_observability
from weekly_report import run_weekly_report

__all__ = [
    "DEFAULT_SCHEDULED_JOBS",
    "Dispatcher",
    "classify_event",
    "extract_rule_name",
]

DEFAULT_SCHEDULED_JOBS: Dict[str, Callable[[RuntimeContext], Any]] = {
    HEALTH_CHECK_RULE: run_health_check,
    DAILY_CLEANUP_RULE: run_daily_cleanup,
    WEEKLY_REPORT_RULE: run_weekly_report,
}


def extract_rule_name(event: Any) -> str:
    if not isinstance(event, dict):
        return ""
    resources = event.get("resources")
    if not isinstance(resources, list) or not resources:
        return ""
    first = resources[0]
    if not isinstance(first, str):
        return ""
    return first.rsplit("/", 1)[-1]


def classify_event(event: Any) -> Union[ScheduledTrigger, SynchronousRequest]:
    if isinstance(event, dict) and (
        event.get("source") == SCHEDULER_SOURCE
        or event.get("detail-type") == SCHEDULED_EVENT_DETAIL_TYPE
    ):
        return ScheduledTrigger(rule_name=extract_rule_name(event))
    return SynchronousRequest(payload=event)


class Dispatcher:
    """Routes one invocation. Holds no per-invocation state."""

    def __init__(
        self,
        ctx: RuntimeContext,
        request_handler: Callable[[Any, Any], Any],
        jobs: Optional[Dict[str, Callable[[RuntimeContext], Any]]] = None,
    ) -> None:
        self.ctx = ctx
        self.request_handler = request_handler
        self.jobs = dict(DEFAULT_SCHEDULED_JOBS if jobs is None else jobs)

    def dispatch(self, event: Any, context: Any = None) -> Any:
        invocation = classify_event(event)
        if isinstance(invocation, ScheduledTrigger):
            logger.info("[INFO] Scheduled event detected: %s", json.dumps(event, default=str))
            return self._run_scheduled(invocation.rule_name)
        return self.request_handler(invocation.payload, context)

    def _run_scheduled(self, rule_name: str) -> Dict[str, Any]:
        logger.info("[INFO] Rule name: %s", rule_name)
        job = self.jobs.get(rule_name)
        if job is None:
            logger.warning("[WARNING] Unknown scheduled rule: %r", rule_name)
            return _scheduled_response(
                200, {"message": "Unknown rule - no action taken", "rule": rule_name}
            )

        started = time.monotonic()
        try:
            report = job(self.ctx)
        except Exception as exc:
            # Jobs report their own failures; this only catches bugs.
            logger.exception("[ERROR] Scheduled job %s crashed", rule_name)
            _emit_structured_observability(
                component="dispatcher",
                event="job_crashed",
                rule=rule_name,
                latency_ms=int((time.monotonic() - started) * 1000),
                error_code=type(exc).__name__,
            )
            return _scheduled_response(500, {"rule": rule_name, "error": str(exc)})
        return _scheduled_response(report.status_code, report.to_dict())
