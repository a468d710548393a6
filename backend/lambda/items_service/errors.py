"""errors.py — Gateway error taxonomy shared by the scheduled jobs and the items API.

Gateways translate botocore failures into these types so callers never have to
inspect raw ``ClientError`` responses.
"""
from __future__ import annotations

from typing import Optional

__all__ = [
    "ClassificationAmbiguity",
    "GatewayError",
    "QueryError",
    "StorageError",
    "StoreConnectionError",
    "_describe_client_error",
]


class GatewayError(Exception):
    """Base class for metadata-store and object-store failures."""

    def __init__(self, message: str, *, code: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or ""


class StoreConnectionError(GatewayError):
    """Metadata store is unreachable or the table cannot be described."""


class QueryError(GatewayError):
    """A metadata store read or write failed."""


class StorageError(GatewayError):
    """Object store transport, auth, or not-found failure."""


class ClassificationAmbiguity(Exception):
    """Reserved for trigger sources that cannot be classified deterministically."""


def _describe_client_error(exc: Exception) -> tuple:
    """Return ``(code, message)`` for a botocore ClientError or BotoCoreError."""
    response = getattr(exc, "response", None)
    if isinstance(response, dict):
        err = response.get("Error") or {}
        code = str(err.get("Code") or "Unknown")
        message = str(err.get("Message") or exc)
        return code, message
    return type(exc).__name__, str(exc)
