"""fakes.py — In-memory stand-ins for the boto3 clients and the metadata gateway, used by the tests."""

from __future__ import annotations

import datetime as dt
from typing import Any, Dict, Iterable, List, Optional, Set

from botocore.exceptions import ClientError

from context import RuntimeContext
from errors import QueryError, StoreConnectionError

NOW = dt.datetime(2026, 3, 2, 12, 0, tzinfo=dt.timezone.utc)
OLD = NOW - dt.timedelta(days=3)
RECENT = NOW - dt.timedelta(hours=2)


def client_error(code: str, message: str, op: str = "Operation") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": message}}, op)


class FakeS3:
    """Ordered bucket with optional per-key delete failures."""

    def __init__(self, objects: Iterable[tuple] = ()) -> None:
        self.objects: Dict[str, Dict[str, Any]] = {}
        for key, size, modified in objects:
            self.objects[key] = {"Key": key, "Size": size, "LastModified": modified}
        self.fail_delete: Set[str] = set()
        self.list_error: Optional[ClientError] = None
        self.deleted: List[str] = []
        self.list_calls: List[Dict[str, Any]] = []

    def _contents(self, prefix: str) -> List[Dict[str, Any]]:
        if self.list_error is not None:
            raise self.list_error
        return [dict(o) for k, o in self.objects.items() if k.startswith(prefix)]

    def list_objects_v2(self, Bucket: str, Prefix: str = "", MaxKeys: int = 1000) -> Dict[str, Any]:
        self.list_calls.append({"Bucket": Bucket, "Prefix": Prefix, "MaxKeys": MaxKeys})
        return {"Contents": self._contents(Prefix)[:MaxKeys]}

    def get_paginator(self, name: str) -> "FakeS3":
        assert name == "list_objects_v2"
        return self

    def paginate(self, Bucket: str, Prefix: str = ""):
        self.list_calls.append({"Bucket": Bucket, "Prefix": Prefix})
        contents = self._contents(Prefix)
        # Two pages to exercise pagination.
        half = len(contents) // 2
        yield {"Contents": contents[:half]}
        yield {"Contents": contents[half:]}

    def delete_object(self, Bucket: str, Key: str) -> Dict[str, Any]:
        if Key in self.fail_delete:
            raise client_error("AccessDenied", f"Access Denied for {Key}", "DeleteObject")
        self.objects.pop(Key, None)
        self.deleted.append(Key)
        return {}


class FakeMetadata:
    """Metadata gateway double with the same surface the scheduled jobs use."""

    def __init__(
        self,
        keys: Iterable[str] = (),
        *,
        connected: bool = True,
        connect_error: Optional[str] = None,
        ping_error: Optional[str] = None,
        query_error: Optional[str] = None,
        items_with_files: Iterable[Dict[str, Any]] = (),
        counts: Optional[Dict[str, int]] = None,
    ) -> None:
        self.keys = set(keys)
        self.connected = connected
        self.connect_error = connect_error
        self.ping_error = ping_error
        self.query_error = query_error
        self.items_with_files = list(items_with_files)
        self.counts = counts or {}
        self.connect_calls = 0
        self.ping_calls = 0
        self.count_calls: List[Dict[str, Any]] = []

    def is_connected(self) -> bool:
        return self.connected

    def connect(self) -> None:
        self.connect_calls += 1
        if self.connect_error:
            raise StoreConnectionError(self.connect_error, code="ResourceNotFoundException")
        self.connected = True

    def ping(self) -> None:
        self.ping_calls += 1
        if self.ping_error:
            self.connected = False
            raise StoreConnectionError(self.ping_error, code="ResourceNotFoundException")

    def _check(self) -> None:
        if self.query_error:
            raise QueryError(self.query_error, code="ProvisionedThroughputExceededException")

    def list_file_keys(self) -> Set[str]:
        self._check()
        return set(self.keys)

    def count(self, *, created_since=None, updated_since=None) -> int:
        self._check()
        self.count_calls.append({"created_since": created_since, "updated_since": updated_since})
        if created_since is not None:
            return self.counts.get("created", 0)
        if updated_since is not None:
            return self.counts.get("updated", 0)
        return self.counts.get("total", 0)

    def iter_items_with_files(self):
        self._check()
        return iter(self.items_with_files)


def make_context(metadata: Optional[FakeMetadata] = None, s3: Optional[FakeS3] = None) -> RuntimeContext:
    s3 = s3 if s3 is not None else FakeS3()
    ctx = RuntimeContext(
        ddb_factory=lambda: None,
        s3_factory=lambda: s3,
        secrets_factory=lambda: None,
        use_secrets=False,
        table_name="items",
        bucket="test-bucket",
    )
    ctx._metadata = metadata if metadata is not None else FakeMetadata()
    return ctx
