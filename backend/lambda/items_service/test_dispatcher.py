"""test_dispatcher.py — Event classification and scheduled-rule routing.

Run: python3 -m pytest test_dispatcher.py -v
"""

from __future__ import annotations

import json
import os
import sys

import pytest

sys.path.insert(0, os.path.dirname(__file__))

from dispatcher import DEFAULT_SCHEDULED_JOBS, Dispatcher, classify_event, extract_rule_name
from errors import ClassificationAmbiguity
from fakes import make_context
from models import ScheduledTrigger, SynchronousRequest

RULE_ARN = "arn:aws:events:us-east-1:123456789012:rule/"


class _Report:
    def __init__(self, status_code, body):
        self.status_code = status_code
        self._body = body

    def to_dict(self):
        return self._body


def _scheduled(resources, **extra):
    event = {"source": "aws.events", "detail-type": "Scheduled Event", "resources": resources}
    event.update(extra)
    return event


def _recording_dispatcher(calls, crash=None):
    def job(name):
        def run(ctx):
            calls.append(name)
            if crash == name:
                raise RuntimeError("boom")
            return _Report(200, {"job": name})
        return run

    jobs = {name: job(name) for name in ("health-check", "daily-cleanup", "weekly-report")}
    requests = []
    dispatcher = Dispatcher(
        make_context(),
        request_handler=lambda event, context: requests.append(event) or {"statusCode": 200, "handled": True},
        jobs=jobs,
    )
    return dispatcher, requests


# ---------------------------------------------------------------------------
# Rule name extraction
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "event, expected",
    [
        ({"resources": [RULE_ARN + "daily-cleanup"]}, "daily-cleanup"),
        ({"resources": ["health-check"]}, "health-check"),
        ({"resources": [RULE_ARN + "a", RULE_ARN + "b"]}, "a"),
        ({"resources": []}, ""),
        ({}, ""),
        ({"resources": None}, ""),
        ({"resources": [42]}, ""),
        ({"resources": ["arn:aws:events:rule/"]}, ""),
        ("not-a-dict", ""),
    ],
)
def test_extract_rule_name(event, expected):
    assert extract_rule_name(event) == expected


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------


def test_source_marker_alone_classifies_as_scheduled():
    result = classify_event({"source": "aws.events", "resources": [RULE_ARN + "weekly-report"]})
    assert result == ScheduledTrigger(rule_name="weekly-report")


def test_detail_type_marker_alone_classifies_as_scheduled():
    result = classify_event({"detail-type": "Scheduled Event", "resources": []})
    assert result == ScheduledTrigger(rule_name="")


def test_http_event_classifies_as_synchronous():
    event = {"requestContext": {"http": {"method": "GET", "path": "/api/items"}}}
    result = classify_event(event)
    assert isinstance(result, SynchronousRequest)
    assert result.payload is event


def test_other_eventbridge_sources_are_not_scheduled():
    event = {"source": "aws.s3", "detail-type": "Object Created", "resources": [RULE_ARN + "daily-cleanup"]}
    assert isinstance(classify_event(event), SynchronousRequest)


def test_non_dict_event_is_synchronous():
    assert isinstance(classify_event(["x"]), SynchronousRequest)


def test_classification_ambiguity_is_reserved_not_raised():
    assert issubclass(ClassificationAmbiguity, Exception)
    classify_event({"source": "aws.events", "detail-type": "Something Else"})


# ---------------------------------------------------------------------------
# Routing
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("rule", ["health-check", "daily-cleanup", "weekly-report"])
def test_known_rules_run_exactly_one_job(rule):
    calls = []
    dispatcher, requests = _recording_dispatcher(calls)

    resp = dispatcher.dispatch(_scheduled([RULE_ARN + rule]))

    assert calls == [rule]
    assert requests == []
    assert resp["statusCode"] == 200
    assert json.loads(resp["body"]) == {"job": rule}


@pytest.mark.parametrize(
    "resources",
    [[RULE_ARN + "microservice-daily-cleanup"], [RULE_ARN + "Daily-Cleanup"], [], [RULE_ARN + "daily-cleanup-v2"]],
)
def test_unknown_rules_are_noop_success(resources):
    calls = []
    dispatcher, requests = _recording_dispatcher(calls)

    resp = dispatcher.dispatch(_scheduled(resources))

    assert calls == []
    assert requests == []
    assert resp["statusCode"] == 200
    body = json.loads(resp["body"])
    assert body["message"] == "Unknown rule - no action taken"
    assert body["rule"] == extract_rule_name({"resources": resources})


def test_synchronous_request_is_delegated_unchanged():
    calls = []
    dispatcher, requests = _recording_dispatcher(calls)
    event = {"rawPath": "/api/items", "requestContext": {"http": {"method": "GET"}}}

    resp = dispatcher.dispatch(event, context="ctx")

    assert requests == [event]
    assert resp == {"statusCode": 200, "handled": True}
    assert calls == []


def test_crashing_job_is_contained():
    calls = []
    dispatcher, _ = _recording_dispatcher(calls, crash="weekly-report")

    resp = dispatcher.dispatch(_scheduled([RULE_ARN + "weekly-report"]))

    assert resp["statusCode"] == 500
    assert json.loads(resp["body"]) == {"rule": "weekly-report", "error": "boom"}


def test_default_routing_table_covers_the_three_jobs():
    assert sorted(DEFAULT_SCHEDULED_JOBS) == ["daily-cleanup", "health-check", "weekly-report"]
