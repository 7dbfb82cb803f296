from datetime import datetime, timezone

from conftest import rss
from engblogs.parser import ParseErrorKind, parse_feed

ATOM = b"""<?xml version="1.0" encoding="utf-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
  <title>Atom Blog</title>
  <id>urn:uuid:60a76c80-d399-11d9-b93C-0003939e0af6</id>
  <updated>2026-10-10T12:00:00Z</updated>
  <entry>
    <title>Published entry</title>
    <link rel="alternate" href="https://atom.example.com/published"/>
    <id>tag:atom.example.com,2026:1</id>
    <published>2026-10-09T08:00:00Z</published>
    <updated>2026-10-10T12:00:00Z</updated>
  </entry>
  <entry>
    <title>Updated only</title>
    <id>https://atom.example.com/updated-only</id>
    <updated>2026-10-08T06:30:00+02:00</updated>
  </entry>
  <entry>
    <title>No date</title>
    <link href="https://atom.example.com/no-date"/>
    <id>tag:atom.example.com,2026:3</id>
  </entry>
</feed>
"""


def test_rss_items():
    published = datetime(2026, 10, 18, 9, 15, tzinfo=timezone.utc)
    content = rss([("Hello", "https://example.com/hello", published),
                   ("World", "https://example.com/world", published)])

    result = parse_feed(content)

    assert result.ok
    assert [(e.title, e.url, e.published_at) for e in result.entries] == [
        ("Hello", "https://example.com/hello", published),
        ("World", "https://example.com/world", published),
    ]


def test_atom_dates_links_and_skips():
    result = parse_feed(ATOM)

    assert result.ok
    assert result.skipped == 1
    first, second = result.entries
    assert first.url == "https://atom.example.com/published"
    assert first.published_at == datetime(2026, 10, 9, 8, 0, tzinfo=timezone.utc)
    # no link element, the id is a URL
    assert second.url == "https://atom.example.com/updated-only"
    assert second.published_at == datetime(2026, 10, 8, 4, 30, tzinfo=timezone.utc)


def test_empty_feed_is_not_an_error():
    result = parse_feed(rss([]))

    assert result.ok
    assert result.entries == []


def test_garbage_is_malformed():
    result = parse_feed(b"this is <not a feed")

    assert not result.ok
    assert result.error.kind == ParseErrorKind.MALFORMED


def test_unknown_xml_is_unsupported():
    result = parse_feed(b'<?xml version="1.0" encoding="utf-8"?><note><to>someone</to></note>')

    assert not result.ok
    assert result.error.kind == ParseErrorKind.UNSUPPORTED_FORMAT
