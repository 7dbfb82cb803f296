from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from dateutil import parser as dtparser

from .utils import dedup_key

# Records stay in the table one week plus an hour after publication
RECORD_TTL = timedelta(days=7, hours=1)


@dataclass(frozen=True)
class FeedSource:
    title: str
    fetch_url: str
    site_url: str = ''


@dataclass(frozen=True)
class RawEntry:
    published_at: datetime
    title: str
    url: str


@dataclass(frozen=True)
class NormalizedEntry:
    published_at: datetime
    title: str
    url: str
    feed_title: str
    feed_site_url: str


@dataclass(frozen=True)
class StoreRecord:
    """One row of the dedup table.

    ``to_item``/``from_item`` use the attribute names of the live table
    (``hash`` is the primary key, ``ttl`` the expiry attribute).
    """
    dedup_key: str
    partition_key: str
    published_at: str
    expires_at: int
    title: str
    url: str
    feed_title: str
    feed_site_url: str

    @classmethod
    def from_entry(cls, entry: NormalizedEntry) -> 'StoreRecord':
        t = entry.published_at
        return cls(
            dedup_key=dedup_key(entry.url),
            partition_key=t.strftime('%Y-%m-%d'),
            published_at=t.isoformat(),
            expires_at=int((t + RECORD_TTL).timestamp()),
            title=entry.title,
            url=entry.url,
            feed_title=entry.feed_title,
            feed_site_url=entry.feed_site_url,
        )

    @property
    def published(self) -> datetime:
        # ISO from this crawler, Ruby Time#to_s ("2026-10-18 10:00:00 UTC") from older rows
        t = dtparser.parse(self.published_at)
        return t if t.tzinfo else t.replace(tzinfo=timezone.utc)

    def to_item(self) -> dict:
        return {
            'hash': self.dedup_key,
            'date': self.partition_key,
            'published': self.published_at,
            'ttl': self.expires_at,
            'title': self.title,
            'url': self.url,
            'feed': self.feed_title,
            'feed_site': self.feed_site_url or '',
        }

    @classmethod
    def from_item(cls, item: dict) -> 'StoreRecord':
        return cls(
            dedup_key=item['hash'],
            partition_key=item['date'],
            published_at=item['published'],
            # boto3 hands numbers back as Decimal
            expires_at=int(item['ttl']),
            title=item.get('title', ''),
            url=item.get('url', ''),
            feed_title=item.get('feed', ''),
            feed_site_url=item.get('feed_site', ''),
        )


@dataclass
class SourceOutcome:
    source: FeedSource
    ok: bool
    fetched: int = 0
    recent: int = 0
    stored: int = 0
    store_failed: int = 0
    reason: Optional[str] = None


@dataclass
class CrawlSummary:
    attempted: int = 0
    succeeded: int = 0
    failed: int = 0
    entries_stored: int = 0
    entries_failed: int = 0

    @classmethod
    def from_outcomes(cls, outcomes) -> 'CrawlSummary':
        summary = cls()
        for o in outcomes:
            summary.attempted += 1
            if o.ok:
                summary.succeeded += 1
            else:
                summary.failed += 1
            summary.entries_stored += o.stored
            summary.entries_failed += o.store_failed
        return summary
