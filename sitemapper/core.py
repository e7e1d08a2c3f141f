import asyncio
import logging
import time
from collections import deque
from datetime import datetime, timezone
from typing import AsyncIterator, Awaitable, Callable, Optional

from . import config
from .analysis import analyze_meta, analyze_structure
from .errors import AlreadyCrawling, FetchError, RobotsDisallowed
from .extractor import extract_page
from .fetcher import CancelToken, FetchedPage, fetch_page
from .models import COMPLETED, CRAWLING, ERROR, CrawlOptions, CrawlProgress, PageNode, SitemapData
from .robots import RobotsChecker
from .urls import is_internal_link, normalize_url, title_from_url, validate_seed_url

logger = logging.getLogger(__name__)

FetchFn = Callable[[str, float, Optional[CancelToken]], Awaitable[FetchedPage]]
RobotsCheck = Callable[[str], bool]
ProgressCallback = Callable[[CrawlProgress], None]

ERROR_TITLE = "Error"


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class CrawlSession:
    """
    State for one breadth-first crawl of one site.

    A session is created per invocation and runs at most once. It owns the
    frontier, the visited-set and the node arena; nothing else mutates them
    while run() is in progress. stop() may be called from any task or thread.
    """

    def __init__(
        self,
        seed_url: str,
        options: Optional[CrawlOptions] = None,
        robots_check: Optional[RobotsCheck] = None,
        fetch: FetchFn = fetch_page,
        timeout: float = config.DEFAULT_TIMEOUT,
    ):
        self.seed_url = seed_url
        self.options = options or CrawlOptions()
        self.robots_check = robots_check
        self.timeout = timeout
        self._fetch = fetch

        self.cancel_token = CancelToken()
        self.nodes: list[PageNode] = []            # arena, indexed by node_id
        self.visited: set[str] = set()
        self.frontier: deque[tuple[str, int, Optional[int]]] = deque()   # (url, depth, parent_id)

        self._running = False
        self._finished = False
        self._subscribers: list[asyncio.Queue] = []
        self._last_event: Optional[CrawlProgress] = None

    @property
    def is_crawling(self) -> bool:
        return self._running

    @property
    def root(self) -> Optional[PageNode]:
        return self.nodes[0] if self.nodes else None

    def parent_of(self, node: PageNode) -> Optional[PageNode]:
        return self.nodes[node.parent_id] if node.parent_id is not None else None

    def stop(self) -> None:
        if not self.cancel_token.cancelled:
            logger.info("Stop requested for crawl of %s", self.seed_url)
        self.cancel_token.cancel()

    # --- progress stream ---

    def progress(self) -> AsyncIterator[CrawlProgress]:
        """
        Async iterator over progress events, ending after the terminal one.
        Subscribe before awaiting run() to see every event.
        """
        queue: asyncio.Queue = asyncio.Queue()
        if self._finished and self._last_event is not None:
            queue.put_nowait(self._last_event)
        else:
            self._subscribers.append(queue)
        return self._iter_queue(queue)

    async def _iter_queue(self, queue: asyncio.Queue) -> AsyncIterator[CrawlProgress]:
        try:
            while True:
                event = await queue.get()
                yield event
                if event.is_complete or event.stopped:
                    return
        finally:
            if queue in self._subscribers:
                self._subscribers.remove(queue)

    def _emit(self, event: CrawlProgress, on_progress: Optional[ProgressCallback]) -> None:
        self._last_event = event
        for queue in self._subscribers:
            queue.put_nowait(event)
        if on_progress is not None:
            on_progress(event)

    # --- crawl ---

    async def run(self, on_progress: Optional[ProgressCallback] = None) -> SitemapData:
        """
        Crawl the site and return the finished SitemapData.

        Raises InvalidSeedUrl or ValueError (bad options) before any work starts,
        and AlreadyCrawling if this session is running or has already run.
        Per-page failures never raise; they're recorded on the node.
        """
        if self._running or self._finished:
            raise AlreadyCrawling()
        seed = validate_seed_url(self.seed_url)
        self.options.validate()

        self._running = True
        started = time.monotonic()
        logger.info(
            "Crawling %s (max_depth=%d, max_pages=%d)",
            seed, self.options.max_depth, self.options.max_pages,
        )
        self.frontier.append((seed, 0, None))
        finished = False
        try:
            await self._crawl_loop(on_progress)
            finished = True
        finally:
            self._running = False
            self._finished = True
            if not finished:
                # the loop blew up; stream subscribers still need a terminal event
                logger.error("Crawl of %s aborted", seed)
                self._emit(self._terminal_event(stopped=True), None)

        root = self.root
        if root is not None and root.children:
            root.status = COMPLETED

        stopped = self.cancel_token.cancelled
        crawl_time = int((time.monotonic() - started) * 1000)
        logger.info(
            "Crawl of %s %s: %d pages in %dms",
            seed, "stopped" if stopped else "finished", len(self.visited), crawl_time,
        )

        self._emit(self._terminal_event(stopped), on_progress)
        return self._build_result(crawl_time, stopped)

    def _terminal_event(self, stopped: bool) -> CrawlProgress:
        return CrawlProgress(
            current_url="",
            current_depth=0,
            pages_crawled=len(self.visited),
            total_pages=self.options.max_pages,
            is_complete=not stopped,
            stopped=stopped,
        )

    async def _crawl_loop(self, on_progress: Optional[ProgressCallback]) -> None:
        while self.frontier and len(self.visited) < self.options.max_pages:
            if self.cancel_token.cancelled:
                break

            url, depth, parent_id = self.frontier.popleft()
            if url in self.visited or depth > self.options.max_depth:
                continue

            self.visited.add(url)
            self._emit(
                CrawlProgress(
                    current_url=url,
                    current_depth=depth,
                    pages_crawled=len(self.visited),
                    total_pages=self.options.max_pages,
                ),
                on_progress,
            )

            await self._crawl_page(url, depth, parent_id)

            if self.options.delay > 0:
                await self.cancel_token.sleep(self.options.delay / 1000)

    async def _crawl_page(self, url: str, depth: int, parent_id: Optional[int]) -> None:
        try:
            await self._check_robots(url)
            page = await self._fetch(url, self.timeout, self.cancel_token)
        except FetchError as exc:
            if exc.cancelled:
                # never finished, so it doesn't count as visited
                logger.debug("Dropping %s: %s", url, exc.message)
                self.visited.discard(url)
                return
            logger.error("Fetch failed for %s: %s", url, exc.message)
            self._attach_error(url, depth, parent_id, exc.message)
            return
        except RobotsDisallowed as exc:
            logger.warning("Robots disallow: %s", url)
            self._attach_error(url, depth, parent_id, str(exc))
            return
        except Exception as exc:
            logger.error("Fetch failed for %s: %s", url, exc)
            self._attach_error(url, depth, parent_id, str(exc) or type(exc).__name__)
            return

        # links on a redirected page are relative to where it landed
        base_url = page.final_url or url
        try:
            fields = extract_page(page.body, base_url, self.options, page.headers)
            node = PageNode(url=url, title=fields.title, depth=depth, status=CRAWLING)
            fields.apply_to(node)
        except Exception as exc:
            logger.error("Extraction failed for %s: %s", url, exc)
            self._attach_error(url, depth, parent_id, str(exc) or type(exc).__name__)
            return
        self._attach(node, parent_id)
        node.status = COMPLETED
        logger.debug("Crawled %s (depth %d): %s", url, depth, node.title)

        # leaves at max depth are recorded but not expanded
        if depth >= self.options.max_depth:
            return
        for href in fields.links:
            if not is_internal_link(href, base_url):
                continue
            target = normalize_url(href, base_url)
            if target is None or target in self.visited:
                continue
            self.frontier.append((target, depth + 1, node.node_id))

    async def _check_robots(self, url: str) -> None:
        if not self.options.respect_robots_txt:
            return
        if self.robots_check is None:
            self.robots_check = RobotsChecker(timeout=self.timeout)

        loop = asyncio.get_running_loop()
        try:
            allowed = await loop.run_in_executor(None, self.robots_check, url)
        except Exception as exc:
            # a broken robots collaborator fails safe
            logger.warning("robots check failed for %s, treating as disallowed: %s", url, exc)
            allowed = False
        if not allowed:
            raise RobotsDisallowed(url)

    def _attach(self, node: PageNode, parent_id: Optional[int]) -> PageNode:
        node.node_id = len(self.nodes)
        node.parent_id = parent_id
        self.nodes.append(node)
        if parent_id is not None:
            self.nodes[parent_id].children.append(node)
        return node

    def _attach_error(self, url: str, depth: int, parent_id: Optional[int], message: str) -> PageNode:
        node = PageNode(url=url, title=title_from_url(url) or ERROR_TITLE, depth=depth, status=ERROR, error=message)
        return self._attach(node, parent_id)

    def _build_result(self, crawl_time: int, stopped: bool) -> SitemapData:
        roots = [self.root] if self.root is not None else []
        meta_analysis = analyze_meta(roots)
        structure_analysis = analyze_structure(roots)
        return SitemapData(
            nodes=roots,
            total_pages=len(self.visited),
            total_images=structure_analysis.image_count,
            total_external_links=structure_analysis.external_link_count,
            crawl_time=crawl_time,
            generated_at=_utc_now_iso(),
            meta_analysis=meta_analysis,
            structure_analysis=structure_analysis,
            stopped=stopped,
        )


async def crawl(
    seed_url: str,
    options: Optional[CrawlOptions] = None,
    on_progress: Optional[ProgressCallback] = None,
    **session_kwargs,
) -> SitemapData:
    """
    Top-level entry point. Crawls one site breadth-first from seed_url.
    Returns SitemapData; per-page errors are captured on the nodes.
    """
    session = CrawlSession(seed_url, options, **session_kwargs)
    return await session.run(on_progress)
