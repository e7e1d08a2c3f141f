"""
Command-line interface: crawl one site and write the sitemap as JSON, XML or CSV.
"""
import argparse
import asyncio
import logging
import signal
import sys
from datetime import datetime
from pathlib import Path
from urllib.parse import urlparse

from .analysis import flatten_nodes
from .core import CrawlSession
from .errors import AlreadyCrawling, InvalidSeedUrl
from .export import EXPORTERS
from .models import ERROR, CrawlOptions, CrawlProgress, SitemapData

logger = logging.getLogger(__name__)


def print_progress(progress: CrawlProgress) -> None:
    if progress.current_url:
        sys.stderr.write(
            f"  [{progress.pages_crawled}/{progress.total_pages}] depth {progress.current_depth}  {progress.current_url}\n"
        )


def print_summary(data: SitemapData) -> None:
    """Print crawl summary to stderr."""
    meta = data.meta_analysis
    structure = data.structure_analysis
    errors = sum(1 for n in flatten_nodes(data.nodes) if n.status == ERROR)

    sys.stderr.write("=" * 50 + "\n")
    sys.stderr.write("CRAWL STOPPED\n" if data.stopped else "CRAWL SUMMARY\n")
    sys.stderr.write("=" * 50 + "\n\n")
    sys.stderr.write(f"Pages crawled:        {data.total_pages}\n")
    sys.stderr.write(f"Pages with errors:    {errors}\n")
    sys.stderr.write(f"Max depth reached:    {structure.max_depth}\n")
    sys.stderr.write(f"Crawl time:           {data.crawl_time}ms\n")
    sys.stderr.write(f"SEO score:            {meta.seo_score}/100\n")
    if meta.missing_meta_tags:
        sys.stderr.write(f"Missing meta tags:    {', '.join(meta.missing_meta_tags)}\n")
    sys.stderr.write("\n")


def generate_output_path(start_url: str, fmt: str) -> Path:
    """Generate output path: sitemaps/{hostname}_{datetime}.{fmt}"""
    hostname = urlparse(start_url).hostname or "unknown"
    hostname_safe = hostname.replace(".", "_")
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    return Path("sitemaps") / f"{hostname_safe}_{timestamp}.{fmt}"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sitemapper",
        description="Crawl a website breadth-first and write its sitemap with SEO and structure analysis.",
    )
    parser.add_argument("start_url", help="Seed URL (e.g. https://example.com)")
    parser.add_argument("--max-depth", type=int, default=3, help="Maximum link depth from the seed (default: 3)")
    parser.add_argument("--max-pages", type=int, default=100, help="Maximum pages to crawl (default: 100)")
    parser.add_argument("--delay", type=int, default=100, help="Delay between requests in ms (default: 100)")
    parser.add_argument("--no-robots", action="store_true", help="Ignore robots.txt")
    parser.add_argument("--no-meta", action="store_true", help="Skip meta tag extraction")
    parser.add_argument("--no-content", action="store_true", help="Skip content analysis")
    parser.add_argument("--no-social", action="store_true", help="Skip Open Graph / Twitter tags")
    parser.add_argument("--images", action="store_true", help="Count images per page")
    parser.add_argument("--external-links", action="store_true", help="Count external links per page")
    parser.add_argument("--schema", action="store_true", help="Collect JSON-LD schema types")
    parser.add_argument("--format", choices=sorted(EXPORTERS), default="json", help="Output format (default: json)")
    parser.add_argument("--out", help="Output file path, or '-' for stdout (default: auto-generated in sitemaps/)")
    parser.add_argument("--verbose", action="store_true", help="Show progress, summary and debug logs")
    return parser


def options_from_args(args: argparse.Namespace) -> CrawlOptions:
    return CrawlOptions(
        max_depth=args.max_depth,
        max_pages=args.max_pages,
        delay=args.delay,
        respect_robots_txt=not args.no_robots,
        extract_meta_tags=not args.no_meta,
        analyze_content=not args.no_content,
        include_images=args.images,
        include_external_links=args.external_links,
        include_social_media=not args.no_social,
        include_schema_markup=args.schema,
    )


async def run_crawl(session: CrawlSession, verbose: bool) -> SitemapData:
    loop = asyncio.get_running_loop()
    try:
        # Ctrl-C stops the crawl but still returns the partial tree
        loop.add_signal_handler(signal.SIGINT, session.stop)
    except NotImplementedError:
        logger.debug("Signal handlers unsupported on this platform")
    return await session.run(print_progress if verbose else None)


def main(argv=None) -> int:
    """Main entry point for the sitemapper CLI."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    try:
        session = CrawlSession(args.start_url, options_from_args(args).validate())
        data = asyncio.run(run_crawl(session, args.verbose))
    except (InvalidSeedUrl, AlreadyCrawling, ValueError) as exc:
        sys.stderr.write(f"error: {exc}\n")
        return 2

    if args.verbose:
        print_summary(data)

    render, _ = EXPORTERS[args.format]
    text = render(data)

    if args.out == "-":
        print(text)
    else:
        output_path = Path(args.out) if args.out else generate_output_path(args.start_url, args.format)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(text, encoding="utf-8")
        sys.stderr.write(f"Sitemap written to: {output_path}\n")

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
