"""config.py — Central configuration — environment variables, scheduler constants, logging.

Part of the items-service Lambda.
"""
from __future__ import annotations

import logging
import os

__all__ = [
    "AWS_REGION",
    "AWS_SECRET_NAME",
    "CLEANUP_PREFIX",
    "CORS_ORIGIN",
    "DAILY_CLEANUP_RULE",
    "HEALTH_CHECK_RULE",
    "ITEMS_S3_PREFIX",
    "ITEMS_TABLE",
    "MAX_NAME_LENGTH",
    "MAX_UPLOAD_BYTES",
    "ORPHAN_GRACE_SECONDS",
    "PRESIGN_EXPIRES_SECONDS",
    "PRESIGN_MAX_WORKERS",
    "REPORT_WINDOW_DAYS",
    "RULE_NAME_PREFIX",
    "S3_BUCKET",
    "SCHEDULED_EVENT_DETAIL_TYPE",
    "SCHEDULER_SOURCE",
    "USE_AWS_SECRETS",
    "VALID_ITEM_STATUSES",
    "WEEKLY_REPORT_RULE",
    "logger",
]


def _env_flag(name: str, default: str = "false") -> bool:
    return os.environ.get(name, default).strip().lower() in {"1", "true", "yes", "on"}


# ---------------------------------------------------------------------------
# AWS resources
# ---------------------------------------------------------------------------

AWS_REGION = os.environ.get("AWS_REGION", "us-east-1")
ITEMS_TABLE = os.environ.get("ITEMS_TABLE", "items")
S3_BUCKET = os.environ.get("S3_BUCKET", "microservice-files-dev2651998")
ITEMS_S3_PREFIX = os.environ.get("ITEMS_S3_PREFIX", "items").strip("/")
CLEANUP_PREFIX = os.environ.get("CLEANUP_PREFIX", f"{ITEMS_S3_PREFIX}/")

# Table and bucket names may also come from Secrets Manager (keys ITEMS_TABLE,
# S3_BUCKET_NAME); the values above are the fallback.
USE_AWS_SECRETS = _env_flag("USE_AWS_SECRETS")
AWS_SECRET_NAME = os.environ.get("AWS_SECRET_NAME", "microservice/secrets")

# ---------------------------------------------------------------------------
# Scheduled jobs
# ---------------------------------------------------------------------------

SCHEDULER_SOURCE = "aws.events"
SCHEDULED_EVENT_DETAIL_TYPE = "Scheduled Event"

RULE_NAME_PREFIX = os.environ.get("RULE_NAME_PREFIX", "")
HEALTH_CHECK_RULE = f"{RULE_NAME_PREFIX}health-check"
DAILY_CLEANUP_RULE = f"{RULE_NAME_PREFIX}daily-cleanup"
WEEKLY_REPORT_RULE = f"{RULE_NAME_PREFIX}weekly-report"

ORPHAN_GRACE_SECONDS = int(os.environ.get("ORPHAN_GRACE_SECONDS", str(24 * 60 * 60)))
REPORT_WINDOW_DAYS = int(os.environ.get("REPORT_WINDOW_DAYS", "7"))

# ---------------------------------------------------------------------------
# Items API
# ---------------------------------------------------------------------------

CORS_ORIGIN = os.environ.get("CORS_ORIGIN", "http://localhost:3000")
PRESIGN_EXPIRES_SECONDS = int(os.environ.get("PRESIGN_EXPIRES_SECONDS", "3600"))
PRESIGN_MAX_WORKERS = 8
MAX_UPLOAD_BYTES = 5 * 1024 * 1024
MAX_NAME_LENGTH = 200
VALID_ITEM_STATUSES = frozenset({"active", "archived", "deleted"})

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logger = logging.getLogger()
logger.setLevel(logging.INFO)
