import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from sitemapper.errors import AlreadyCrawling, InvalidSeedUrl
from .middleware import RateLimitMiddleware, RequestLoggingMiddleware
from .routes import router

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

app = FastAPI(
    title="Sitemap Generator",
    description=(
        "Given a seed URL, crawls the site breadth-first and returns its page tree "
        "with per-page meta tags and content counts, an SEO meta analysis and a "
        "structure analysis. Exports to XML sitemap, CSV and JSON."
    ),
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# middleware stack — outermost runs first on request, last on response
app.add_middleware(RateLimitMiddleware)
app.add_middleware(RequestLoggingMiddleware)


@app.exception_handler(InvalidSeedUrl)
async def invalid_seed_handler(request: Request, exc: InvalidSeedUrl):
    return JSONResponse(status_code=422, content={"detail": str(exc), "code": "invalid_seed_url"})


@app.exception_handler(AlreadyCrawling)
async def already_crawling_handler(request: Request, exc: AlreadyCrawling):
    return JSONResponse(status_code=409, content={"detail": str(exc), "code": "already_crawling"})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logging.getLogger(__name__).error("Unhandled error: %s", exc, exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "An unexpected error occurred.", "code": "internal_error"},
    )


app.include_router(router)
