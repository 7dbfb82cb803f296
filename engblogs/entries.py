from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional

from .models import FeedSource, NormalizedEntry, RawEntry, StoreRecord

CRAWL_WINDOW  = timedelta(days=8)
REPAIR_WINDOW = timedelta(days=7)


def normalize(source: FeedSource, raw_entries: Iterable[RawEntry]) -> List[NormalizedEntry]:
    return [
        NormalizedEntry(
            published_at=r.published_at,
            title=(r.title or '').strip(),
            url=(r.url or '').strip(),
            feed_title=source.title,
            feed_site_url=source.site_url,
        )
        for r in raw_entries
    ]


def is_recent(entry, window: timedelta, now: datetime) -> bool:
    """True when the entry is strictly younger than ``window``.

    Future-dated entries count as recent; hiding them is the listing's job.
    """
    return now - entry.published_at < window


def filter_recent(entries, window: timedelta, now: Optional[datetime] = None) -> list:
    now = now or datetime.now(timezone.utc)
    return [e for e in entries if is_recent(e, window, now)]


def to_record(entry: NormalizedEntry) -> StoreRecord:
    return StoreRecord.from_entry(entry)
