import json
from unittest.mock import AsyncMock, patch

from fastapi import FastAPI
from fastapi.testclient import TestClient

from api.main import app
from api.middleware import RateLimitMiddleware
from sitemapper.core import CrawlSession
from sitemapper.models import (
    COMPLETED, ERROR, MetaAnalysis, MetaTags, PageNode, SitemapData, StructureAnalysis,
)

from conftest import SITE, html_page, FakeSite

client = TestClient(app)

# a realistic SitemapData to reuse across tests
MOCK_RESULT = SitemapData(
    nodes=[
        PageNode(
            url="https://example.com/",
            title="Example Home",
            depth=0,
            status=COMPLETED,
            content_type="text/html",
            meta_tags=MetaTags(title="Example Home", description="An example site.", keywords=["example"]),
            children=[
                PageNode(url="https://example.com/about", title="About", depth=1, status=COMPLETED, node_id=1, parent_id=0),
                PageNode(url="https://example.com/gone", title="Gone", depth=1, status=ERROR, node_id=2, parent_id=0,
                         error="404 Client Error: Not Found"),
            ],
        )
    ],
    total_pages=3,
    total_images=0,
    total_external_links=0,
    crawl_time=1234,
    generated_at="2024-10-01T12:00:00.000Z",
    meta_analysis=MetaAnalysis(total_pages=1, pages_with_title=1, pages_with_description=1, seo_score=40),
    structure_analysis=StructureAnalysis(max_depth=1, total_depth=1, depth_distribution={0: 1, 1: 1}),
)

REQUEST = {"url": "https://example.com/"}


# --- /health ---

def test_health_returns_ok():
    with patch("api.routes.is_cache_healthy", return_value=True):
        response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["cache"] == "connected"


def test_health_when_cache_down():
    with patch("api.routes.is_cache_healthy", return_value=False):
        response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["cache"] == "unavailable"


# --- /sitemap ---

def test_sitemap_success():
    with patch("api.routes.get_cached", return_value=None), \
         patch("api.routes.set_cached"), \
         patch("api.routes.crawl", new_callable=AsyncMock, return_value=MOCK_RESULT):
        response = client.post("/sitemap", json=REQUEST)

    assert response.status_code == 200
    data = response.json()
    assert data["cached"] is False
    assert data["total_pages"] == 3
    root = data["nodes"][0]
    assert root["title"] == "Example Home"
    assert root["children"][1]["status"] == "error"
    assert "error" not in root
    assert data["meta_analysis"]["seo_score"] == 40


def test_sitemap_returns_cached_result():
    with patch("api.routes.get_cached", return_value=MOCK_RESULT), \
         patch("api.routes.crawl", new_callable=AsyncMock) as mock_crawl:
        response = client.post("/sitemap", json=REQUEST)

    assert response.status_code == 200
    assert response.json()["cached"] is True
    mock_crawl.assert_not_called()


def test_sitemap_invalid_url_rejected():
    response = client.post("/sitemap", json={"url": "not-a-url"})
    assert response.status_code == 422


def test_sitemap_missing_url_rejected():
    response = client.post("/sitemap", json={})
    assert response.status_code == 422


def test_sitemap_options_validated():
    response = client.post("/sitemap", json={"url": "https://example.com/", "options": {"max_pages": 0}})
    assert response.status_code == 422


def test_sitemap_options_passed_through():
    body = {"url": "https://example.com/", "options": {"max_depth": 2, "respect_robots_txt": False}}
    with patch("api.routes.get_cached", return_value=None), \
         patch("api.routes.set_cached"), \
         patch("api.routes.crawl", new_callable=AsyncMock, return_value=MOCK_RESULT) as mock_crawl:
        client.post("/sitemap", json=body)

    url, options = mock_crawl.call_args.args
    assert url == "https://example.com/"
    assert options.max_depth == 2
    assert options.respect_robots_txt is False
    assert options.max_pages == 100


def test_successful_crawl_is_cached():
    with patch("api.routes.get_cached", return_value=None), \
         patch("api.routes.set_cached") as mock_set, \
         patch("api.routes.crawl", new_callable=AsyncMock, return_value=MOCK_RESULT):
        client.post("/sitemap", json=REQUEST)

    mock_set.assert_called_once()


def test_failed_seed_is_not_cached():
    failed = SitemapData(
        nodes=[PageNode(url="https://dead.example.com/", title="Error", depth=0, status=ERROR, error="Connection refused")],
        total_pages=1,
        total_images=0,
        total_external_links=0,
        crawl_time=10,
        generated_at="2024-10-01T12:00:00.000Z",
        meta_analysis=MetaAnalysis(),
        structure_analysis=StructureAnalysis(),
    )
    with patch("api.routes.get_cached", return_value=None), \
         patch("api.routes.set_cached") as mock_set, \
         patch("api.routes.crawl", new_callable=AsyncMock, return_value=failed):
        response = client.post("/sitemap", json={"url": "https://dead.example.com/"})

    # per-page failures are data, not HTTP errors
    assert response.status_code == 200
    assert response.json()["nodes"][0]["error"] == "Connection refused"
    mock_set.assert_not_called()


# --- /sitemap/export ---

def test_export_xml():
    with patch("api.routes.get_cached", return_value=MOCK_RESULT):
        response = client.post("/sitemap/export/xml", json=REQUEST)

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("application/xml")
    assert "<loc>https://example.com/about</loc>" in response.text
    assert "https://example.com/gone" not in response.text


def test_export_csv():
    with patch("api.routes.get_cached", return_value=MOCK_RESULT):
        response = client.post("/sitemap/export/csv", json=REQUEST)

    assert response.status_code == 200
    lines = response.text.splitlines()
    assert lines[0] == "URL,Title,Depth,Status,Last Modified"
    assert len(lines) == 4


def test_export_unknown_format():
    response = client.post("/sitemap/export/yaml", json=REQUEST)
    assert response.status_code == 404
    assert response.json() == {"detail": "Unknown export format: yaml", "code": "unknown_format"}


def test_error_responses_documented_in_openapi():
    paths = client.get("/openapi.json").json()["paths"]
    ref = paths["/sitemap"]["post"]["responses"]["422"]["content"]["application/json"]["schema"]["$ref"]
    assert ref.endswith("/ErrorResponse")
    assert "404" in paths["/sitemap/export/{fmt}"]["post"]["responses"]


# --- /sitemap/stream ---

def test_stream_emits_progress_then_result():
    site = FakeSite({
        f"{SITE}/": html_page("Home", "/b"),
        f"{SITE}/b": html_page("B"),
    })

    def session_factory(url, options):
        return CrawlSession(url, options, fetch=site.fetch)

    body = {"url": f"{SITE}/", "options": {"delay": 0, "respect_robots_txt": False}}
    with patch("api.routes.CrawlSession", side_effect=session_factory):
        response = client.post("/sitemap/stream", json=body)

    assert response.status_code == 200
    lines = [json.loads(line) for line in response.text.splitlines()]
    assert [line["type"] for line in lines] == ["progress", "progress", "progress", "result"]
    assert lines[2]["is_complete"] is True
    assert lines[-1]["data"]["total_pages"] == 2


class _BrokenSession(CrawlSession):
    async def _crawl_loop(self, on_progress):
        raise RuntimeError("loop bug")


def test_stream_ends_with_error_line_when_crawl_aborts():
    body = {"url": f"{SITE}/", "options": {"delay": 0, "respect_robots_txt": False}}
    with patch("api.routes.CrawlSession", side_effect=lambda url, options: _BrokenSession(url, options)):
        response = client.post("/sitemap/stream", json=body)

    assert response.status_code == 200
    lines = [json.loads(line) for line in response.text.splitlines()]
    assert lines[0]["type"] == "progress"
    assert lines[0]["stopped"] is True
    assert lines[-1] == {"type": "error", "detail": "An unexpected error occurred.", "code": "internal_error"}


def test_stream_rejects_unparseable_seed():
    response = client.post("/sitemap/stream", json={"url": "http://"})
    assert response.status_code == 422
    assert response.json()["code"] == "invalid_seed_url"


# --- middleware ---

def test_rate_limit_returns_429_with_retry_after():
    limited = FastAPI()
    limited.add_middleware(RateLimitMiddleware, requests_per_window=2, window_seconds=60)

    @limited.get("/ping")
    async def ping():
        return {"ok": True}

    limited_client = TestClient(limited)
    assert limited_client.get("/ping").status_code == 200
    assert limited_client.get("/ping").status_code == 200
    response = limited_client.get("/ping")
    assert response.status_code == 429
    assert int(response.headers["Retry-After"]) > 0
