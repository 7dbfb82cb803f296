"""
Feed directory: the OPML list of blogs to crawl.

The directory can be a local file or an http(s) URL (the production list
lives next to the site in its S3 bucket). A YAML list is accepted too::

    feeds:
      - title: Some Blog
        url: https://example.com/feed.xml
        site: https://example.com/
"""
import logging, os
import xml.etree.ElementTree as ET
from typing import List, Optional, Union
from xml.sax.saxutils import escape, quoteattr

import requests
import yaml

from .models import FeedSource

DEFAULT_OPML = 'engblogs.opml'
OPML_TITLE   = 'Engineering Blogs'

log = logging.getLogger("engblogs.directory")


class DirectoryError(Exception):
    pass


def default_location() -> str:
    loc = os.getenv('OPML_LOCATION')
    if loc:
        return loc
    bucket = os.getenv('S3_BUCKET_NAME')
    region = os.getenv('AWS_DEFAULT_REGION')
    if bucket and region:
        return f"http://{bucket}.s3.{region}.amazonaws.com/{bucket}.opml"
    return DEFAULT_OPML


def _attr(el: ET.Element, name: str) -> str:
    name = name.lower()
    for k, v in el.attrib.items():
        if k.lower() == name:
            return (v or '').strip()
    return ''


def parse_opml(document: Union[bytes, str]) -> List[FeedSource]:
    try:
        root = ET.fromstring(document)
    except ET.ParseError as e:
        raise DirectoryError(f"Invalid OPML: {e}") from e

    sources: List[FeedSource] = []
    seen = set()
    # iter() walks nested outlines (categories) depth first, in document order
    for outline in root.iter('outline'):
        xml_url = _attr(outline, 'xmlUrl')
        if not xml_url or xml_url in seen:
            continue
        seen.add(xml_url)
        title = _attr(outline, 'title') or _attr(outline, 'text') or xml_url
        sources.append(FeedSource(title=title, fetch_url=xml_url, site_url=_attr(outline, 'htmlUrl')))
    return sources


def parse_yaml(document: Union[bytes, str]) -> List[FeedSource]:
    try:
        data = yaml.safe_load(document) or {}
    except yaml.YAMLError as e:
        raise DirectoryError(f"Invalid YAML directory: {e}") from e

    if not isinstance(data, dict):
        raise DirectoryError("YAML directory must be a mapping with a 'feeds' list")
    feeds = data.get('feeds') or []
    if not isinstance(feeds, list):
        raise DirectoryError("'feeds' must be a list")

    sources, seen = [], set()
    for f in feeds:
        # a bare string is just the feed URL
        if isinstance(f, str):
            f = {'url': f}
        if not isinstance(f, dict):
            raise DirectoryError(f"Invalid feed entry: {f!r}")
        url = str(f.get('url') or '').strip()
        if not url or url in seen:
            continue
        seen.add(url)
        sources.append(FeedSource(title=str(f.get('title') or url).strip(),
                                  fetch_url=url,
                                  site_url=str(f.get('site') or '').strip()))
    return sources


def _read(location: str, session: Optional[requests.Session]) -> bytes:
    if location.startswith(('http://', 'https://')):
        try:
            resp = (session or requests).get(location, timeout=30)
            resp.raise_for_status()
        except requests.RequestException as e:
            raise DirectoryError(f"Could not download {location}: {e}") from e
        return resp.content
    try:
        with open(location, 'rb') as f:
            return f.read()
    except OSError as e:
        raise DirectoryError(f"Could not read {location}: {e}") from e


def load_directory(location: Optional[str] = None, session: Optional[requests.Session] = None) -> List[FeedSource]:
    location = location or default_location()
    document = _read(location, session)
    if location.lower().endswith(('.yml', '.yaml')):
        sources = parse_yaml(document)
    else:
        sources = parse_opml(document)
    log.info("Loaded %d feeds from %s", len(sources), location)
    return sources


def render_opml(sources: List[FeedSource], title: str = OPML_TITLE) -> str:
    lines = [
        '<?xml version="1.0" encoding="UTF-8"?>',
        '<opml version="1.0">',
        '  <head>',
        f'    <title>{escape(title)}</title>',
        '  </head>',
        '  <body>',
        f'    <outline text={quoteattr(title)} title={quoteattr(title)}>',
    ]
    for s in sources:
        lines.append(
            f'      <outline type="rss" text={quoteattr(s.title)} title={quoteattr(s.title)} '
            f'xmlUrl={quoteattr(s.fetch_url)} htmlUrl={quoteattr(s.site_url)}/>'
        )
    lines += ['    </outline>', '  </body>', '</opml>', '']
    return '\n'.join(lines)
