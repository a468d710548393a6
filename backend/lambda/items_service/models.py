"""models.py — Invocation and report types for the scheduled jobs.

Every report is created fresh per invocation, owned by the job that fills it,
and discarded once serialized into the Lambda response.
"""
from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from serialization import _iso_z

__all__ = [
    "HEALTHY",
    "UNHEALTHY",
    "FileDescriptor",
    "HealthCheck",
    "HealthReport",
    "MetricsReport",
    "ReconciliationResult",
    "ScheduledTrigger",
    "SynchronousRequest",
]

HEALTHY = "healthy"
UNHEALTHY = "unhealthy"


# ---------------------------------------------------------------------------
# Invocation events
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ScheduledTrigger:
    rule_name: str


@dataclass(frozen=True)
class SynchronousRequest:
    payload: Any


# ---------------------------------------------------------------------------
# Stored objects
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FileDescriptor:
    """A stored object. Identity is the key alone."""
    key: str
    size_bytes: int
    last_modified: Optional[dt.datetime]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FileDescriptor):
            return NotImplemented
        return self.key == other.key

    def __hash__(self) -> int:
        return hash(self.key)


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------


@dataclass
class ReconciliationResult:
    timestamp: str
    scanned_count: int = 0
    deleted_keys: List[str] = field(default_factory=list)
    errors: List[Dict[str, Optional[str]]] = field(default_factory=list)

    @property
    def deleted_count(self) -> int:
        return len(self.deleted_keys)

    def record_deleted(self, key: str) -> None:
        self.deleted_keys.append(key)

    def record_error(self, key: Optional[str], message: str) -> None:
        # key is None for a failure that ended the run before per-object work.
        self.errors.append({"key": key, "message": message})

    @property
    def status_code(self) -> int:
        return 200 if not self.errors else 500

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "scanned_count": self.scanned_count,
            "deleted_count": self.deleted_count,
            "deleted_keys": list(self.deleted_keys),
            "errors": [dict(e) for e in self.errors],
        }


@dataclass
class HealthCheck:
    status: str
    detail: Optional[str] = None
    state: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"status": self.status}
        if self.state is not None:
            out["state"] = self.state
        if self.detail is not None:
            out["detail"] = self.detail
        return out


@dataclass
class HealthReport:
    timestamp: str
    checks: Dict[str, HealthCheck] = field(default_factory=dict)

    @property
    def overall(self) -> str:
        if all(c.status == HEALTHY for c in self.checks.values()):
            return HEALTHY
        return UNHEALTHY

    @property
    def status_code(self) -> int:
        return 200 if self.overall == HEALTHY else 500

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "checks": {name: check.to_dict() for name, check in self.checks.items()},
            "overall": self.overall,
        }


def _mb(size_bytes: int) -> float:
    return round(size_bytes / (1024 * 1024), 2)


@dataclass
class MetricsReport:
    generated_at: dt.datetime
    window_start: dt.datetime
    total_items: Optional[int] = None
    items_created_in_window: Optional[int] = None
    items_updated_in_window: Optional[int] = None
    total_files: Optional[int] = None
    total_file_size_bytes: Optional[int] = None
    s3_object_count: Optional[int] = None
    s3_total_size_bytes: Optional[int] = None
    s3_error: Optional[str] = None
    error: Optional[str] = None

    status_code = 200

    def to_dict(self) -> Dict[str, Any]:
        metrics: Dict[str, Any] = {
            "total_items": self.total_items,
            "items_created_in_window": self.items_created_in_window,
            "items_updated_in_window": self.items_updated_in_window,
            "total_files": self.total_files,
            "total_file_size_bytes": self.total_file_size_bytes,
            "total_file_size_mb": (
                _mb(self.total_file_size_bytes) if self.total_file_size_bytes is not None else None
            ),
            "s3_object_count": self.s3_object_count,
            "s3_total_size_bytes": self.s3_total_size_bytes,
            "s3_total_size_mb": (
                _mb(self.s3_total_size_bytes) if self.s3_total_size_bytes is not None else None
            ),
        }
        if self.s3_error is not None:
            metrics["s3_error"] = self.s3_error
        out: Dict[str, Any] = {
            "generated_at": _iso_z(self.generated_at),
            "period": f"last_{(self.generated_at - self.window_start).days}_days",
            "window_start": _iso_z(self.window_start),
            "metrics": metrics,
        }
        if self.error is not None:
            out["error"] = self.error
        return out
