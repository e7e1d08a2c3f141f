import asyncio
import json
import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse, Response, StreamingResponse

from sitemapper.core import CrawlSession, crawl
from sitemapper.export import EXPORTERS
from sitemapper.models import COMPLETED, SitemapData
from sitemapper.urls import validate_seed_url
from .cache import get_cached, set_cached, is_cache_healthy
from .schemas import ErrorResponse, HealthResponse, SitemapRequest, SitemapResponse

logger = logging.getLogger(__name__)

router = APIRouter()

ERROR_RESPONSES = {422: {"model": ErrorResponse, "description": "Seed URL cannot be crawled"}}


def _cacheable(data: SitemapData) -> bool:
    # partial or failed crawls are not worth serving again
    return not data.stopped and bool(data.nodes) and data.nodes[0].status == COMPLETED


async def _sitemap_for(request: SitemapRequest) -> tuple[SitemapData, bool]:
    """Cache-aside crawl: serve from Redis if this site + options was crawled recently."""
    options = request.options.to_crawl_options()

    cached = get_cached(request.url, options)
    if cached is not None:
        logger.info("Cache hit for %s", request.url)
        return cached, True

    data = await crawl(request.url, options)
    if _cacheable(data):
        set_cached(request.url, options, data)
    return data, False


@router.post(
    "/sitemap",
    response_model=SitemapResponse,
    response_model_exclude_none=True,
    responses=ERROR_RESPONSES,
    summary="Crawl a site and build its sitemap",
)
async def build_sitemap(request: SitemapRequest) -> SitemapResponse:
    """
    Crawls the site breadth-first from `url` and returns the page tree plus
    meta and structure analysis.

    - Checks Redis cache first; returns cached result if available.
    - Respects robots.txt by default (`options.respect_robots_txt: true`).
    - Per-page failures show up as `status: "error"` nodes, not as HTTP errors.
    """
    data, cached = await _sitemap_for(request)
    return SitemapResponse(**data.to_dict(), cached=cached)


@router.post("/sitemap/stream", responses=ERROR_RESPONSES, summary="Crawl a site, streaming progress as NDJSON")
async def stream_sitemap(request: SitemapRequest) -> StreamingResponse:
    """
    One JSON object per line: `{"type": "progress", ...}` for every page
    dequeued, then a final `{"type": "result", "data": {...}}`, or a final
    `{"type": "error", ...}` if the crawl aborted.
    """
    # surface a bad seed as 422 before the response starts streaming
    validate_seed_url(request.url)
    session = CrawlSession(request.url, request.options.to_crawl_options())

    async def events():
        progress = session.progress()
        task = asyncio.create_task(session.run())
        try:
            async for event in progress:
                yield json.dumps({"type": "progress", **event.to_dict()}) + "\n"
            try:
                data = await task
            except Exception as exc:
                logger.error("Streamed crawl of %s failed: %s", request.url, exc, exc_info=True)
                yield json.dumps({"type": "error", "detail": "An unexpected error occurred.", "code": "internal_error"}) + "\n"
                return
            yield json.dumps({"type": "result", "data": data.to_dict()}) + "\n"
        finally:
            if not task.done():
                # client went away mid-crawl
                logger.info("Stream closed early, stopping crawl of %s", request.url)
                session.stop()

    return StreamingResponse(events(), media_type="application/x-ndjson")


@router.post(
    "/sitemap/export/{fmt}",
    responses={**ERROR_RESPONSES, 404: {"model": ErrorResponse, "description": "Unknown export format"}},
    summary="Crawl a site and export the sitemap as xml, csv or json",
)
async def export_sitemap(fmt: str, request: SitemapRequest) -> Response:
    if fmt not in EXPORTERS:
        error = ErrorResponse(detail=f"Unknown export format: {fmt}", code="unknown_format")
        return JSONResponse(status_code=404, content=error.model_dump())

    data, _ = await _sitemap_for(request)
    render, media_type = EXPORTERS[fmt]
    return Response(
        content=render(data),
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="sitemap.{fmt}"'},
    )


@router.get("/health", response_model=HealthResponse, summary="Service health check")
async def health_check() -> HealthResponse:
    cache_status = "connected" if is_cache_healthy() else "unavailable"
    return HealthResponse(status="ok", cache=cache_status)
