"""
One crawl pass: fetch every feed of the directory, keep the recent entries
and write them to the dedup store.

Feeds are processed by a fixed number of worker threads. A feed that cannot
be fetched or parsed is logged and skipped; a failed store write only loses
that entry. The pass always runs to the end.
"""
import contextlib, logging, os, threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, Sequence

from .entries import CRAWL_WINDOW, REPAIR_WINDOW, filter_recent, normalize, to_record
from .fetcher import CONNECT_TIMEOUT_S, READ_TIMEOUT_S, UA, Fetcher
from .models import CrawlSummary, FeedSource, SourceOutcome
from .parser import ParseResult, parse_feed
from .pool import run_pool
from .store import StoreError
from .utils import env_float, env_int

# --------- Settings ----------
CONCURRENCY        = 20
REPAIR_CONCURRENCY = 40
# ------------------------------

log = logging.getLogger("engblogs.crawl")


@dataclass
class CrawlConfig:
    store: object
    fetcher: Fetcher
    concurrency: int = CONCURRENCY
    recency_window: timedelta = CRAWL_WINDOW
    parser: Callable[[bytes], ParseResult] = parse_feed
    # one lock around every store write of the run; the store itself would
    # cope with concurrent puts
    serialize_writes: bool = True
    now: Optional[Callable[[], datetime]] = field(default=None)

    @classmethod
    def from_env(cls, store, fetcher: Optional[Fetcher] = None, **overrides) -> 'CrawlConfig':
        concurrency = env_int('CRAWL_CONCURRENCY', CONCURRENCY)
        if fetcher is None:
            fetcher = fetcher_from_env(pool_size=concurrency)
        kwargs = dict(
            store=store,
            fetcher=fetcher,
            concurrency=concurrency,
            recency_window=timedelta(days=env_int('RECENT_DAYS', CRAWL_WINDOW.days)),
        )
        kwargs.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**kwargs)


def fetcher_from_env(pool_size: int = CONCURRENCY) -> Fetcher:
    return Fetcher(
        connect_timeout=env_float('HTTP_CONNECT_TIMEOUT', CONNECT_TIMEOUT_S),
        read_timeout=env_float('HTTP_READ_TIMEOUT', READ_TIMEOUT_S),
        user_agent=os.getenv('HTTP_USER_AGENT', UA),
        pool_size=pool_size,
    )


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Crawler:
    def __init__(self, config: CrawlConfig):
        self.config = config
        self._now = config.now or _utcnow
        self._write_lock = threading.Lock() if config.serialize_writes else None

    def run(self, sources: Sequence[FeedSource]) -> CrawlSummary:
        log.info("Crawling %d feeds with %d workers", len(sources), self.config.concurrency)
        outcomes = run_pool(sources, self.crawl_source, self.config.concurrency, on_error=_crashed)
        summary = CrawlSummary.from_outcomes(outcomes)
        log.info("Finished: %d attempted, %d ok, %d failed, %d entries stored, %d store errors",
                 summary.attempted, summary.succeeded, summary.failed,
                 summary.entries_stored, summary.entries_failed)
        return summary

    def crawl_source(self, source: FeedSource) -> SourceOutcome:
        log.info("Doing %s", source.title)

        fetched = self.config.fetcher.fetch(source.fetch_url)
        if not fetched.ok:
            return _failed(source, fetched.error)

        parsed = self.config.parser(fetched.content)
        if not parsed.ok:
            return _failed(source, parsed.error)

        entries = normalize(source, parsed.entries)
        recent = filter_recent(entries, self.config.recency_window, self._now())
        log.info("  %s: fetched %d entries, %d recent", source.title, len(parsed.entries), len(recent))

        outcome = SourceOutcome(source=source, ok=True, fetched=len(parsed.entries), recent=len(recent))
        with self._writing():
            for entry in recent:
                record = to_record(entry)
                try:
                    self.config.store.put(record)
                except StoreError as e:
                    outcome.store_failed += 1
                    log.error("  ERROR storing %s (%s) from %s: [%s] %s",
                              record.url, record.dedup_key, source.title, e.kind.value, e)
                    continue
                outcome.stored += 1
                log.debug("  Added %s", record.url)
        return outcome

    def _writing(self):
        if self._write_lock is None:
            return contextlib.nullcontext()
        return self._write_lock


def _failed(source: FeedSource, reason) -> SourceOutcome:
    log.warning("  FAILURE %s (%s): %s", source.title, source.fetch_url, reason)
    return SourceOutcome(source=source, ok=False, reason=str(reason))


def _crashed(source: FeedSource, exc: BaseException) -> SourceOutcome:
    return SourceOutcome(source=source, ok=False, reason=f"unexpected error: {exc}")


def check_sources(sources: Sequence[FeedSource], fetcher: Fetcher,
                  concurrency: int = REPAIR_CONCURRENCY,
                  window: timedelta = REPAIR_WINDOW,
                  parser: Callable[[bytes], ParseResult] = parse_feed,
                  now: Optional[datetime] = None) -> List[FeedSource]:
    """Return the sources that still fetch and parse, in directory order."""
    now = now or _utcnow()

    def check(source: FeedSource) -> SourceOutcome:
        log.info("Doing %s", source.title)
        fetched = fetcher.fetch(source.fetch_url)
        if not fetched.ok:
            return _failed(source, fetched.error)
        parsed = parser(fetched.content)
        if not parsed.ok:
            return _failed(source, parsed.error)
        recent = filter_recent(parsed.entries, window, now)
        log.info("  %s: fetched %d entries, %d recent", source.title, len(parsed.entries), len(recent))
        return SourceOutcome(source=source, ok=True, fetched=len(parsed.entries), recent=len(recent))

    outcomes = run_pool(sources, check, concurrency, on_error=_crashed)
    alive = {o.source.fetch_url for o in outcomes if o.ok}
    log.info("%d of %d feeds still load", len(alive), len(sources))
    return [s for s in sources if s.fetch_url in alive]
