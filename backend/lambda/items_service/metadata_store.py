"""metadata_store.py — DynamoDB gateway for item records and their embedded file descriptors.

Item shape (one row per item, keyed by ``item_id``)::

    {
        "item_id": "3f1c...",
        "name": "...",
        "description": "...",
        "status": "active" | "archived" | "deleted",
        "files": [{"file_id", "filename", "s3_key", "size", "mime_type", "uploaded_at"}],
        "created_at": "2026-01-01T00:00:00Z",
        "updated_at": "2026-01-01T00:00:00Z",
    }

Every botocore failure is re-raised as StoreConnectionError or QueryError.
"""
from __future__ import annotations

import datetime as dt
from typing import Any, Dict, Iterator, List, Optional, Set

from botocore.exceptions import BotoCoreError, ClientError

from config import logger
from errors import QueryError, StoreConnectionError, _describe_client_error
from serialization import _deserialize, _iso_z, _now_z, _serialize

__all__ = ["MetadataStore"]

# ClientError codes that mean the table itself is unusable, not just one request.
_CONNECTION_ERROR_CODES = frozenset(
    {
        "AccessDeniedException",
        "ExpiredTokenException",
        "InvalidSignatureException",
        "ResourceNotFoundException",
        "UnrecognizedClientException",
    }
)


class MetadataStore:
    def __init__(self, client_factory, table_name: str) -> None:
        self._client_factory = client_factory
        self._client = None
        self._connected = False
        self.table_name = table_name

    # ------------------------------------------------------------------
    # Connection
    # ------------------------------------------------------------------

    def is_connected(self) -> bool:
        return self._connected and self._client is not None

    def connect(self) -> None:
        """Create the client if needed and verify the table is reachable."""
        if self.is_connected():
            logger.info("[INFO] Using existing metadata store connection")
            return
        self._describe()
        logger.info("[INFO] Metadata store connected: table=%s", self.table_name)

    def ping(self) -> None:
        """One live DescribeTable round trip, even on a cached connection.

        Raises StoreConnectionError and marks the store disconnected on failure.
        """
        self._describe()

    def _describe(self) -> None:
        try:
            if self._client is None:
                self._client = self._client_factory()
            desc = self._client.describe_table(TableName=self.table_name)
        except (BotoCoreError, ClientError) as exc:
            self._connected = False
            code, message = _describe_client_error(exc)
            logger.error("[ERROR] Metadata store connection failed: %s %s", code, message)
            raise StoreConnectionError(message, code=code) from exc

        status = (desc.get("Table") or {}).get("TableStatus", "ACTIVE")
        if status not in {"ACTIVE", "UPDATING"}:
            self._connected = False
            raise StoreConnectionError(
                f"Table {self.table_name} is {status}", code="TableNotActive"
            )
        self._connected = True

    def disconnect(self) -> None:
        self._connected = False

    def _ddb(self):
        if not self.is_connected():
            self.connect()
        return self._client

    # ------------------------------------------------------------------
    # Scans
    # ------------------------------------------------------------------

    def _scan(self, **params: Any) -> Iterator[Dict[str, Any]]:
        params = {"TableName": self.table_name, **params}
        ddb = self._ddb()
        try:
            while True:
                resp = ddb.scan(**params)
                for raw in resp.get("Items", []):
                    yield _deserialize(raw)
                lek = resp.get("LastEvaluatedKey")
                if not lek:
                    break
                params["ExclusiveStartKey"] = lek
        except (BotoCoreError, ClientError) as exc:
            self._fail("scan", exc)

    def _fail(self, op: str, exc: Exception) -> None:
        code, message = _describe_client_error(exc)
        if isinstance(exc, BotoCoreError) or code in _CONNECTION_ERROR_CODES:
            # Force a reconnect on the next call.
            self._connected = False
        logger.error("[ERROR] Metadata store %s failed: %s %s", op, code, message)
        raise QueryError(message, code=code) from exc

    def list_file_keys(self) -> Set[str]:
        """Return every ``s3_key`` referenced by any item's files."""
        keys: Set[str] = set()
        for item in self._scan(ProjectionExpression="files"):
            files = item.get("files")
            if not isinstance(files, list):
                continue
            for f in files:
                if isinstance(f, dict) and f.get("s3_key"):
                    keys.add(str(f["s3_key"]))
        return keys

    def count(
        self,
        *,
        created_since: Optional[dt.datetime] = None,
        updated_since: Optional[dt.datetime] = None,
    ) -> int:
        """Count items, optionally restricted to a created/updated window."""
        params: Dict[str, Any] = {"Select": "COUNT"}
        filters: List[str] = []
        values: Dict[str, Any] = {}
        if created_since is not None:
            filters.append("created_at >= :created_since")
            values[":created_since"] = _serialize(_iso_z(created_since))
        if updated_since is not None:
            filters.append("updated_at >= :updated_since")
            values[":updated_since"] = _serialize(_iso_z(updated_since))
        if filters:
            params["FilterExpression"] = " AND ".join(filters)
            params["ExpressionAttributeValues"] = values

        params["TableName"] = self.table_name
        ddb = self._ddb()
        total = 0
        try:
            while True:
                resp = ddb.scan(**params)
                total += int(resp.get("Count", 0))
                lek = resp.get("LastEvaluatedKey")
                if not lek:
                    break
                params["ExclusiveStartKey"] = lek
        except (BotoCoreError, ClientError) as exc:
            self._fail("count", exc)
        return total

    def iter_items_with_files(self) -> Iterator[Dict[str, Any]]:
        return self._scan(
            ProjectionExpression="item_id, files",
            FilterExpression="size(files) > :zero",
            ExpressionAttributeValues={":zero": _serialize(0)},
        )

    # ------------------------------------------------------------------
    # Item CRUD (items API)
    # ------------------------------------------------------------------

    def list_items(self, status: Optional[str] = None, search: Optional[str] = None) -> List[Dict[str, Any]]:
        params: Dict[str, Any] = {}
        if status:
            params["FilterExpression"] = "#st = :status"
            params["ExpressionAttributeNames"] = {"#st": "status"}
            params["ExpressionAttributeValues"] = {":status": _serialize(status)}
        items = list(self._scan(**params))
        if search:
            needle = search.lower()
            items = [i for i in items if needle in str(i.get("name", "")).lower()]
        items.sort(key=lambda i: i.get("created_at", ""), reverse=True)
        return items

    def get_item(self, item_id: str) -> Optional[Dict[str, Any]]:
        try:
            resp = self._ddb().get_item(
                TableName=self.table_name,
                Key={"item_id": _serialize(item_id)},
                ConsistentRead=True,
            )
        except (BotoCoreError, ClientError) as exc:
            self._fail("get_item", exc)
        raw = resp.get("Item")
        if not raw:
            return None
        return _deserialize(raw)

    def put_item(self, item: Dict[str, Any]) -> None:
        try:
            self._ddb().put_item(
                TableName=self.table_name,
                Item={k: _serialize(v) for k, v in item.items()},
                ConditionExpression="attribute_not_exists(item_id)",
            )
        except (BotoCoreError, ClientError) as exc:
            self._fail("put_item", exc)

    def update_item(self, item_id: str, changes: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Apply ``changes`` plus a fresh ``updated_at``; None if the item does not exist."""
        changes = {**changes, "updated_at": _now_z()}
        names = {f"#f{i}": k for i, k in enumerate(changes)}
        values = {f":v{i}": _serialize(v) for i, v in enumerate(changes.values())}
        assignments = ", ".join(f"#f{i} = :v{i}" for i in range(len(changes)))
        try:
            resp = self._ddb().update_item(
                TableName=self.table_name,
                Key={"item_id": _serialize(item_id)},
                UpdateExpression=f"SET {assignments}",
                ConditionExpression="attribute_exists(item_id)",
                ExpressionAttributeNames=names,
                ExpressionAttributeValues=values,
                ReturnValues="ALL_NEW",
            )
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") == "ConditionalCheckFailedException":
                return None
            self._fail("update_item", exc)
        except BotoCoreError as exc:
            self._fail("update_item", exc)
        return _deserialize(resp.get("Attributes") or {})

    def add_file(self, item_id: str, descriptor: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        try:
            resp = self._ddb().update_item(
                TableName=self.table_name,
                Key={"item_id": _serialize(item_id)},
                UpdateExpression=(
                    "SET files = list_append(if_not_exists(files, :empty), :new), updated_at = :now"
                ),
                ConditionExpression="attribute_exists(item_id)",
                ExpressionAttributeValues={
                    ":empty": _serialize([]),
                    ":new": _serialize([descriptor]),
                    ":now": _serialize(_now_z()),
                },
                ReturnValues="ALL_NEW",
            )
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") == "ConditionalCheckFailedException":
                return None
            self._fail("add_file", exc)
        except BotoCoreError as exc:
            self._fail("add_file", exc)
        return _deserialize(resp.get("Attributes") or {})

    def remove_file(self, item_id: str, index: int, file_id: str) -> bool:
        """Remove ``files[index]`` if it still holds ``file_id``; False on a concurrent change."""
        try:
            self._ddb().update_item(
                TableName=self.table_name,
                Key={"item_id": _serialize(item_id)},
                UpdateExpression=f"REMOVE files[{int(index)}] SET updated_at = :now",
                ConditionExpression=f"files[{int(index)}].file_id = :fid",
                ExpressionAttributeValues={
                    ":fid": _serialize(file_id),
                    ":now": _serialize(_now_z()),
                },
            )
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") == "ConditionalCheckFailedException":
                return False
            self._fail("remove_file", exc)
        except BotoCoreError as exc:
            self._fail("remove_file", exc)
        return True
