import pytest

from sitemapper.errors import FetchError
from sitemapper.fetcher import FetchedPage
from sitemapper.models import CrawlOptions

SITE = "https://site.test"


def html_page(title: str = "", *links: str, body: str = "", head: str = "") -> str:
    anchors = "".join(f'<a href="{href}">{href}</a>' for href in links)
    title_tag = f"<title>{title}</title>" if title else ""
    return f"<html><head>{title_tag}{head}</head><body>{body}{anchors}</body></html>"


class FakeSite:
    """In-memory website standing in for the fetch layer. Unknown URLs 404."""

    def __init__(self, pages: dict, failures: dict = None, headers: dict = None):
        self.pages = pages
        self.failures = failures or {}
        self.headers = headers or {"Content-Type": "text/html; charset=utf-8"}
        self.requested: list[str] = []

    async def fetch(self, url, timeout, cancel_token=None):
        if cancel_token is not None and cancel_token.cancelled:
            raise FetchError("cancelled", f"Crawl stopped before fetching {url}")
        self.requested.append(url)
        if url in self.failures:
            code = self.failures[url]
            raise FetchError("http_status", f"{code} Server Error for url: {url}", status_code=code)
        if url not in self.pages:
            raise FetchError("http_status", f"404 Client Error: Not Found for url: {url}", status_code=404)
        return FetchedPage(url=url, final_url=url, status_code=200, body=self.pages[url], headers=self.headers)


def fast_options(**overrides) -> CrawlOptions:
    """No delay and no robots.txt lookups, so tests never sleep or touch the network."""
    values = {"delay": 0, "respect_robots_txt": False}
    values.update(overrides)
    return CrawlOptions(**values)


@pytest.fixture
def linear_site() -> FakeSite:
    # A -> B, B -> C and back to A
    return FakeSite({
        f"{SITE}/": html_page("Home", "/b"),
        f"{SITE}/b": html_page("Page B", "/c", "/"),
        f"{SITE}/c": html_page("Page C"),
    })
