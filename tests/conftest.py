import threading, time
from datetime import datetime, timedelta, timezone
from email.utils import format_datetime
from xml.sax.saxutils import escape

import pytest

from engblogs.fetcher import FetchError, FetchErrorKind, FetchResult
from engblogs.models import FeedSource

NOW = datetime.now(timezone.utc).replace(microsecond=0)


def rss(items, title="Test Blog"):
    """RSS 2.0 document; ``items`` are (title, link, published datetime) tuples."""
    body = "".join(
        f"<item><title>{escape(t)}</title><link>{escape(l)}</link>"
        f"<pubDate>{format_datetime(p, usegmt=True)}</pubDate></item>"
        for t, l, p in items
    )
    return (
        '<?xml version="1.0" encoding="utf-8"?>'
        f'<rss version="2.0"><channel><title>{title}</title>'
        f'<link>https://example.com/</link><description>d</description>{body}</channel></rss>'
    ).encode("utf-8")


def ago(**kwargs) -> datetime:
    return NOW - timedelta(**kwargs)


class FakeFetcher:
    """Serves canned results per URL and records how many fetches overlap."""

    def __init__(self, responses=None, delay=0.0):
        self.responses = responses or {}
        self.delay = delay
        self.calls = []
        self.in_flight = 0
        self.max_in_flight = 0
        self._lock = threading.Lock()

    def fetch(self, url):
        with self._lock:
            self.calls.append(url)
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                time.sleep(self.delay)
            result = self.responses.get(url)
            if result is None:
                return FetchResult(error=FetchError(FetchErrorKind.TRANSPORT, f"HTTP 404 for {url}"))
            if isinstance(result, bytes):
                return FetchResult(content=result)
            return result
        finally:
            with self._lock:
                self.in_flight -= 1


def timeout():
    return FetchResult(error=FetchError(FetchErrorKind.TIMEOUT, "read timed out"))


def source(n, site=True):
    return FeedSource(
        title=f"Blog {n}",
        fetch_url=f"https://blog{n}.example.com/feed.xml",
        site_url=f"https://blog{n}.example.com/" if site else "",
    )


@pytest.fixture
def now():
    return NOW
