"""test_object_store.py — S3 gateway listing, deletion and error translation.

Run: python3 -m pytest test_object_store.py -v
"""

from __future__ import annotations

import datetime as dt
import os
import sys
from unittest.mock import MagicMock

import pytest

sys.path.insert(0, os.path.dirname(__file__))

from errors import StorageError
from fakes import OLD, FakeS3, client_error
from object_store import ObjectStore


def test_list_with_max_keys_issues_single_request():
    s3 = MagicMock()
    s3.list_objects_v2.return_value = {
        "Contents": [{"Key": "items/a", "Size": 3, "LastModified": OLD}],
    }
    store = ObjectStore(lambda: s3, "bucket")

    listed = store.list("", max_keys=1)

    s3.list_objects_v2.assert_called_once_with(Bucket="bucket", Prefix="", MaxKeys=1)
    s3.get_paginator.assert_not_called()
    assert listed[0].key == "items/a"
    assert listed[0].size_bytes == 3
    assert listed[0].last_modified == OLD


def test_full_listing_walks_every_page_in_order():
    s3 = FakeS3([(f"items/{i}", i, OLD) for i in range(5)])
    store = ObjectStore(lambda: s3, "bucket")

    assert [o.key for o in store.list("items/")] == [f"items/{i}" for i in range(5)]


def test_naive_timestamps_are_treated_as_utc():
    s3 = FakeS3([("items/a", 1, dt.datetime(2026, 1, 1, 0, 0))])
    store = ObjectStore(lambda: s3, "bucket")

    assert store.list("items/")[0].last_modified.tzinfo == dt.timezone.utc


def test_list_failure_raises_storage_error():
    s3 = FakeS3()
    s3.list_error = client_error("NoSuchBucket", "The specified bucket does not exist", "ListObjectsV2")
    store = ObjectStore(lambda: s3, "bucket")

    with pytest.raises(StorageError) as excinfo:
        store.list("items/")
    assert excinfo.value.code == "NoSuchBucket"


def test_delete_failure_raises_storage_error():
    s3 = FakeS3([("items/a", 1, OLD)])
    s3.fail_delete.add("items/a")
    store = ObjectStore(lambda: s3, "bucket")

    with pytest.raises(StorageError):
        store.delete("items/a")
    assert "items/a" in s3.objects


def test_client_is_built_lazily_and_reused():
    built = []

    def factory():
        built.append(1)
        return FakeS3()

    store = ObjectStore(factory, "bucket")
    assert built == []
    store.list("")
    store.list("", max_keys=1)
    assert built == [1]


def test_presign_and_upload():
    s3 = MagicMock()
    s3.generate_presigned_url.return_value = "https://signed"
    store = ObjectStore(lambda: s3, "bucket")

    assert store.presign("items/a", 60) == "https://signed"
    s3.generate_presigned_url.assert_called_once_with(
        "get_object", Params={"Bucket": "bucket", "Key": "items/a"}, ExpiresIn=60
    )
    assert store.upload(b"abc", "items/a", "text/plain") == "https://bucket.s3.amazonaws.com/items/a"
    s3.put_object.assert_called_once_with(Bucket="bucket", Key="items/a", Body=b"abc", ContentType="text/plain")
