from datetime import timedelta
from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from conftest import NOW
from engblogs.entries import to_record
from engblogs.models import NormalizedEntry
from engblogs.store import DynamoStore, MemoryStore, StoreError, StoreErrorKind


def record(url="https://example.com/a", published=NOW):
    return to_record(NormalizedEntry(published_at=published, title="A", url=url,
                                     feed_title="Blog", feed_site_url="https://example.com/"))


def client_error(code):
    return ClientError({"Error": {"Code": code, "Message": "nope"}}, "PutItem")


def test_put_writes_item():
    table = MagicMock()
    store = DynamoStore("entries", table=table)
    r = record()

    store.put(r)

    table.put_item.assert_called_once_with(Item=r.to_item())


@pytest.mark.parametrize("error, kind", [
    (client_error("ProvisionedThroughputExceededException"), StoreErrorKind.THROTTLED),
    (client_error("ThrottlingException"), StoreErrorKind.THROTTLED),
    (client_error("ServiceUnavailable"), StoreErrorKind.SERVICE_UNAVAILABLE),
    (client_error("ValidationException"), StoreErrorKind.OTHER),
    (EndpointConnectionError(endpoint_url="https://dynamodb.us-east-1.amazonaws.com"),
     StoreErrorKind.SERVICE_UNAVAILABLE),
])
def test_put_errors_are_mapped(error, kind):
    table = MagicMock()
    table.put_item.side_effect = error
    store = DynamoStore("entries", table=table)

    with pytest.raises(StoreError) as exc_info:
        store.put(record())

    assert exc_info.value.kind == kind


def test_scan_follows_pagination():
    a, b = record("https://example.com/a"), record("https://example.com/b")
    table = MagicMock()
    table.scan.side_effect = [
        {"Items": [a.to_item()], "LastEvaluatedKey": {"hash": a.dedup_key}},
        {"Items": [b.to_item()]},
    ]
    store = DynamoStore("entries", table=table)

    assert store.scan() == [a, b]
    assert table.scan.call_args_list[1].kwargs == {"ExclusiveStartKey": {"hash": a.dedup_key}}


def test_table_is_created_lazily_once():
    with patch("engblogs.store.boto3") as mock_boto3:
        store = DynamoStore("entries", region="eu-west-1")
        mock_boto3.resource.assert_not_called()

        store.put(record("https://example.com/a"))
        store.put(record("https://example.com/b"))

        mock_boto3.resource.assert_called_once_with("dynamodb", region_name="eu-west-1")
        mock_boto3.resource.return_value.Table.assert_called_once_with("entries")


def test_memory_store_overwrites_same_key():
    store = MemoryStore()
    store.put(record())
    store.put(record())

    assert len(store) == 1
    assert store.puts == 2


def test_memory_store_expires_records():
    store = MemoryStore(clock=lambda: NOW.timestamp())
    fresh = record("https://example.com/fresh", NOW - timedelta(days=2))
    stale = record("https://example.com/stale", NOW - timedelta(days=7, hours=2))
    store.put(fresh)
    store.put(stale)

    assert store.scan() == [fresh]
    assert len(store) == 1
