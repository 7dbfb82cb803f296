import json, logging, os
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from .models import StoreRecord

LISTING_NAME = 'entries.json'

log = logging.getLogger("engblogs.aggregate")


def build_listing(records: Iterable[StoreRecord], now: Optional[datetime] = None) -> List[StoreRecord]:
    """Newest first, without entries dated after ``now``.

    The crawler stores future-dated entries as they come; they only show
    up here once their date has passed.
    """
    now = now or datetime.now(timezone.utc)
    visible = [r for r in records if r.published <= now]
    return sorted(visible, key=lambda r: r.published, reverse=True)


def listing_json(records: Iterable[StoreRecord]) -> str:
    return json.dumps([r.to_item() for r in records], ensure_ascii=False, indent=2)


def write_listing(store, output_dir: str, now: Optional[datetime] = None) -> str:
    records = build_listing(store.scan(), now)
    os.makedirs(output_dir, exist_ok=True)
    path = os.path.join(output_dir, LISTING_NAME)
    with open(path, 'w', encoding='utf-8') as f:
        f.write(listing_json(records))
    log.info("Wrote %d entries to %s", len(records), path)
    return path
