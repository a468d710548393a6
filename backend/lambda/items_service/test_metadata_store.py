"""test_metadata_store.py — DynamoDB gateway: connection, scans, error translation.

Run: python3 -m pytest test_metadata_store.py -v
"""

from __future__ import annotations

import datetime as dt
import os
import sys
import unittest
from unittest.mock import MagicMock

from botocore.exceptions import EndpointConnectionError

sys.path.insert(0, os.path.dirname(__file__))

from errors import QueryError, StoreConnectionError
from fakes import client_error
from metadata_store import MetadataStore
from serialization import _serialize


def _item(item_id, keys):
    files = [{"file_id": f"f{i}", "s3_key": k, "size": 10} for i, k in enumerate(keys)]
    return {"item_id": _serialize(item_id), "files": _serialize(files)}


def _store(ddb):
    ddb.describe_table.return_value = {"Table": {"TableStatus": "ACTIVE"}}
    return MetadataStore(lambda: ddb, "items")


class ConnectionTests(unittest.TestCase):
    def test_connect_describes_table_once(self):
        ddb = MagicMock()
        store = _store(ddb)
        self.assertFalse(store.is_connected())

        store.connect()
        store.connect()

        self.assertTrue(store.is_connected())
        ddb.describe_table.assert_called_once_with(TableName="items")

    def test_connect_failure_raises_connection_error(self):
        ddb = MagicMock()
        ddb.describe_table.side_effect = client_error(
            "ResourceNotFoundException", "Requested resource not found", "DescribeTable"
        )
        store = MetadataStore(lambda: ddb, "items")

        with self.assertRaises(StoreConnectionError) as cm:
            store.connect()
        self.assertEqual(cm.exception.code, "ResourceNotFoundException")
        self.assertFalse(store.is_connected())

    def test_inactive_table_is_not_connected(self):
        ddb = MagicMock()
        ddb.describe_table.return_value = {"Table": {"TableStatus": "DELETING"}}
        store = MetadataStore(lambda: ddb, "items")

        with self.assertRaises(StoreConnectionError):
            store.connect()

    def test_transport_error_forces_reconnect(self):
        ddb = MagicMock()
        store = _store(ddb)
        store.connect()
        ddb.scan.side_effect = EndpointConnectionError(endpoint_url="https://dynamodb")

        with self.assertRaises(QueryError):
            store.list_file_keys()
        self.assertFalse(store.is_connected())

    def test_ping_makes_a_live_call_on_cached_connection(self):
        ddb = MagicMock()
        store = _store(ddb)
        store.connect()

        store.ping()

        self.assertEqual(ddb.describe_table.call_count, 2)
        self.assertTrue(store.is_connected())

    def test_ping_failure_marks_store_disconnected(self):
        ddb = MagicMock()
        store = _store(ddb)
        store.connect()
        ddb.describe_table.side_effect = client_error(
            "ResourceNotFoundException", "Requested resource not found", "DescribeTable"
        )

        with self.assertRaises(StoreConnectionError):
            store.ping()
        self.assertFalse(store.is_connected())

    def test_table_level_client_error_forces_reconnect(self):
        ddb = MagicMock()
        store = _store(ddb)
        store.connect()
        ddb.scan.side_effect = client_error("ResourceNotFoundException", "Requested resource not found", "Scan")

        with self.assertRaises(QueryError):
            store.list_file_keys()
        self.assertFalse(store.is_connected())

    def test_throttling_keeps_connection(self):
        ddb = MagicMock()
        store = _store(ddb)
        store.connect()
        ddb.scan.side_effect = client_error(
            "ProvisionedThroughputExceededException", "Rate exceeded", "Scan"
        )

        with self.assertRaises(QueryError):
            store.list_file_keys()
        self.assertTrue(store.is_connected())


class ScanTests(unittest.TestCase):
    def test_list_file_keys_walks_pages_and_dedupes(self):
        ddb = MagicMock()
        ddb.scan.side_effect = [
            {"Items": [_item("a", ["k1", "k2"])], "LastEvaluatedKey": {"item_id": {"S": "a"}}},
            {"Items": [_item("b", ["k2", "k3"]), {"item_id": _serialize("c")}, {"item_id": _serialize("d"), "files": _serialize(3)}]},
        ]
        store = _store(ddb)

        self.assertEqual(store.list_file_keys(), {"k1", "k2", "k3"})
        self.assertEqual(ddb.scan.call_count, 2)
        second = ddb.scan.call_args_list[1].kwargs
        self.assertEqual(second["ExclusiveStartKey"], {"item_id": {"S": "a"}})
        self.assertEqual(second["ProjectionExpression"], "files")

    def test_list_file_keys_translates_client_error(self):
        ddb = MagicMock()
        ddb.scan.side_effect = client_error("AccessDeniedException", "not allowed", "Scan")
        store = _store(ddb)

        with self.assertRaises(QueryError) as cm:
            store.list_file_keys()
        self.assertEqual(cm.exception.message, "not allowed")

    def test_count_windowed_sums_pages(self):
        ddb = MagicMock()
        ddb.scan.side_effect = [
            {"Count": 4, "LastEvaluatedKey": {"item_id": {"S": "x"}}},
            {"Count": 3},
        ]
        store = _store(ddb)
        since = dt.datetime(2026, 2, 23, 12, 0, tzinfo=dt.timezone.utc)

        self.assertEqual(store.count(created_since=since), 7)
        first = ddb.scan.call_args_list[0].kwargs
        self.assertEqual(first["Select"], "COUNT")
        self.assertEqual(first["FilterExpression"], "created_at >= :created_since")
        self.assertEqual(
            first["ExpressionAttributeValues"], {":created_since": {"S": "2026-02-23T12:00:00Z"}}
        )

    def test_count_without_window_has_no_filter(self):
        ddb = MagicMock()
        ddb.scan.return_value = {"Count": 9}
        store = _store(ddb)

        self.assertEqual(store.count(), 9)
        self.assertNotIn("FilterExpression", ddb.scan.call_args.kwargs)

    def test_iter_items_with_files_filters_empty_lists(self):
        ddb = MagicMock()
        ddb.scan.return_value = {"Items": [_item("a", ["k1"])]}
        store = _store(ddb)

        items = list(store.iter_items_with_files())

        self.assertEqual(items[0]["files"][0]["size"], 10)
        self.assertEqual(ddb.scan.call_args.kwargs["FilterExpression"], "size(files) > :zero")


class CrudTests(unittest.TestCase):
    def test_update_missing_item_returns_none(self):
        ddb = MagicMock()
        ddb.update_item.side_effect = client_error(
            "ConditionalCheckFailedException", "The conditional request failed", "UpdateItem"
        )
        store = _store(ddb)

        self.assertIsNone(store.update_item("abc", {"status": "deleted"}))

    def test_update_sets_updated_at(self):
        ddb = MagicMock()
        ddb.update_item.return_value = {"Attributes": {"item_id": _serialize("abc"), "status": _serialize("archived")}}
        store = _store(ddb)

        updated = store.update_item("abc", {"status": "archived"})

        self.assertEqual(updated, {"item_id": "abc", "status": "archived"})
        kwargs = ddb.update_item.call_args.kwargs
        self.assertEqual(set(kwargs["ExpressionAttributeNames"].values()), {"status", "updated_at"})

    def test_remove_file_conflict_returns_false(self):
        ddb = MagicMock()
        ddb.update_item.side_effect = client_error(
            "ConditionalCheckFailedException", "The conditional request failed", "UpdateItem"
        )
        store = _store(ddb)

        self.assertFalse(store.remove_file("abc", 0, "f0"))


if __name__ == "__main__":
    unittest.main()
