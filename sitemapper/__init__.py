from .core import CrawlSession, crawl
from .errors import AlreadyCrawling, FetchError, InvalidSeedUrl, RobotsDisallowed
from .export import to_csv, to_json, to_xml
from .models import CrawlOptions, CrawlProgress, PageNode, SitemapData
from .urls import is_internal_link

__version__ = "1.0.0"
__all__ = [
    "CrawlSession",
    "crawl",
    "CrawlOptions",
    "CrawlProgress",
    "PageNode",
    "SitemapData",
    "AlreadyCrawling",
    "FetchError",
    "InvalidSeedUrl",
    "RobotsDisallowed",
    "is_internal_link",
    "to_csv",
    "to_json",
    "to_xml",
]
