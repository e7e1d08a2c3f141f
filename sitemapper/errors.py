from typing import Optional


class SitemapperError(Exception):
    """Base class for every error raised by the crawl engine."""


class FetchError(SitemapperError):
    """
    A single page could not be fetched.
    kind is one of: timeout | network | http_status | cancelled
    """

    def __init__(self, kind: str, message: str, status_code: Optional[int] = None):
        self.kind = kind
        self.message = message
        self.status_code = status_code
        super().__init__(message)

    @property
    def cancelled(self) -> bool:
        return self.kind == "cancelled"


class RobotsDisallowed(SitemapperError):
    def __init__(self, url: str):
        self.url = url
        super().__init__(f"robots.txt disallows crawling {url}")


class AlreadyCrawling(SitemapperError):
    def __init__(self):
        super().__init__("Crawl already in progress")


class InvalidSeedUrl(SitemapperError):
    def __init__(self, url: str, reason: str = "URL must be an absolute http:// or https:// URL"):
        self.url = url
        self.reason = reason
        super().__init__(f"Invalid seed URL {url!r}: {reason}")
