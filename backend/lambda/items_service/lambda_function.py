"""items_service/lambda_function.py

Single Lambda entry point for the items service. Handles both:
  1. HTTP requests from API Gateway (items CRUD + file attachments)
  2. EventBridge scheduled rules:
       health-check   — every 5 minutes, probes DynamoDB and S3
       daily-cleanup  — 02:00 UTC, deletes unreferenced S3 objects older than 24h
       weekly-report  — Mondays 09:00 UTC, usage statistics

Environment variables:
    AWS_REGION           default: us-east-1
    ITEMS_TABLE          default: items
    S3_BUCKET            default: microservice-files-dev2651998
    ITEMS_S3_PREFIX      default: items
    CLEANUP_PREFIX       default: items/
    RULE_NAME_PREFIX     default: "" (e.g. "microservice-")
    USE_AWS_SECRETS      default: false
    AWS_SECRET_NAME      default: microservice/secrets
"""

from __future__ import annotations

from typing import Any, Dict

from context import RuntimeContext
from dispatcher import Dispatcher
from items_api import handle_request

# Built once per container; reused by warm invocations.
_ctx = RuntimeContext()
_dispatcher = Dispatcher(_ctx, request_handler=lambda event, context: handle_request(_ctx, event, context))


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    return _dispatcher.dispatch(event, context)
