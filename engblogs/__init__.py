"""Engineering blogs: crawl a directory of feeds into a self-expiring store."""

__version__ = "1.0.0"
