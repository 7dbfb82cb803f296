"""
Dedup store: the table of entries already seen, keyed by sha1(url).

Records expire on their own through the table's TTL attribute; nothing in
this package deletes them. ``DynamoStore`` is the production store,
``MemoryStore`` an in-process one with the same behaviour (dry runs, tests).
"""
import logging, threading, time
from enum import Enum
from typing import Any, Dict, List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .models import StoreRecord

log = logging.getLogger("engblogs.store")

THROTTLE_CODES = frozenset([
    'ProvisionedThroughputExceededException',
    'ThrottlingException',
    'RequestLimitExceeded',
])
UNAVAILABLE_CODES = frozenset([
    'ServiceUnavailable',
    'InternalServerError',
])


class StoreErrorKind(str, Enum):
    SERVICE_UNAVAILABLE = 'service_unavailable'
    THROTTLED = 'throttled'
    OTHER = 'other'


class StoreError(Exception):
    def __init__(self, kind: StoreErrorKind, message: str = ''):
        super().__init__(message or kind.value)
        self.kind = kind


def _store_error(e: Exception) -> StoreError:
    if isinstance(e, ClientError):
        code = e.response.get('Error', {}).get('Code', '')
        if code in THROTTLE_CODES:
            return StoreError(StoreErrorKind.THROTTLED, str(e))
        if code in UNAVAILABLE_CODES:
            return StoreError(StoreErrorKind.SERVICE_UNAVAILABLE, str(e))
        return StoreError(StoreErrorKind.OTHER, str(e))
    # EndpointConnectionError, ReadTimeoutError, ...
    return StoreError(StoreErrorKind.SERVICE_UNAVAILABLE, str(e))


class DynamoStore:
    """DynamoDB table with ``hash`` as partition key and ``ttl`` as TTL attribute."""

    def __init__(self, table_name: str, region: Optional[str] = None, table: Any = None):
        self.table_name = table_name
        self.region = region
        self._table = table
        self._lock = threading.Lock()

    def _get_table(self):
        # boto3 resources are not thread safe to create; build it once
        with self._lock:
            if self._table is None:
                kwargs = {'region_name': self.region} if self.region else {}
                self._table = boto3.resource('dynamodb', **kwargs).Table(self.table_name)
            return self._table

    def put(self, record: StoreRecord) -> None:
        try:
            self._get_table().put_item(Item=record.to_item())
        except (ClientError, BotoCoreError) as e:
            raise _store_error(e) from e

    def scan(self) -> List[StoreRecord]:
        table = self._get_table()
        kwargs: Dict[str, Any] = {}
        records = []
        try:
            while True:
                page = table.scan(**kwargs)
                records.extend(StoreRecord.from_item(i) for i in page.get('Items', []))
                last = page.get('LastEvaluatedKey')
                if not last:
                    break
                kwargs['ExclusiveStartKey'] = last
        except (ClientError, BotoCoreError) as e:
            raise _store_error(e) from e
        log.info("Scanned %d records from %s", len(records), self.table_name)
        return records


class MemoryStore:
    def __init__(self, clock=time.time):
        self.clock = clock
        self._items: Dict[str, StoreRecord] = {}
        self._lock = threading.Lock()
        self.puts = 0

    def put(self, record: StoreRecord) -> None:
        with self._lock:
            self._items[record.dedup_key] = record
            self.puts += 1

    def scan(self) -> List[StoreRecord]:
        now = self.clock()
        with self._lock:
            expired = [k for k, r in self._items.items() if r.expires_at <= now]
            for k in expired:
                del self._items[k]
            return list(self._items.values())

    def __len__(self):
        with self._lock:
            return len(self._items)
