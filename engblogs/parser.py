import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

import feedparser

from .models import RawEntry

log = logging.getLogger("engblogs.parser")


class ParseErrorKind(str, Enum):
    UNSUPPORTED_FORMAT = 'unsupported_format'
    MALFORMED = 'malformed'


@dataclass(frozen=True)
class ParseError:
    kind: ParseErrorKind
    detail: str = ''

    def __str__(self):
        return f"{self.kind.value}: {self.detail}" if self.detail else self.kind.value


@dataclass(frozen=True)
class ParseResult:
    entries: List[RawEntry] = field(default_factory=list)
    error: Optional[ParseError] = None
    skipped: int = 0

    @property
    def ok(self) -> bool:
        return self.error is None


def _published(e) -> Optional[datetime]:
    # feedparser normalises both fields to UTC struct_time
    parsed = e.get('published_parsed') or e.get('updated_parsed')
    if not parsed:
        return None
    return datetime(*parsed[:6], tzinfo=timezone.utc)


def _url(e) -> str:
    link = (e.get('link') or '').strip()
    if link:
        return link
    guid = (e.get('id') or '').strip()
    if guid.startswith(('http://', 'https://')):
        return guid
    return ''


def parse_feed(content: bytes) -> ParseResult:
    """Turn raw feed bytes (RSS, Atom or RDF) into RawEntry values.

    An item without a date or without a URL is dropped and counted in
    ``skipped``; it can be neither recency-filtered nor keyed.
    """
    d = feedparser.parse(content)

    if not d.entries and not d.get('version'):
        if d.get('bozo'):
            return ParseResult(error=ParseError(ParseErrorKind.MALFORMED, str(d.get('bozo_exception', ''))))
        return ParseResult(error=ParseError(ParseErrorKind.UNSUPPORTED_FORMAT, 'no feed format recognised'))

    entries, skipped = [], 0
    for e in d.entries:
        published = _published(e)
        url = _url(e)
        if published is None or not url:
            skipped += 1
            continue
        entries.append(RawEntry(published_at=published, title=e.get('title') or '', url=url))

    if skipped:
        log.debug("Dropped %d entries without a date or link", skipped)
    return ParseResult(entries=entries, skipped=skipped)
