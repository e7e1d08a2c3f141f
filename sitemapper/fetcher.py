import asyncio
import logging
import threading
from dataclasses import dataclass, field
from typing import Optional

import requests
from requests.structures import CaseInsensitiveDict

from . import config
from .errors import FetchError

logger = logging.getLogger(__name__)

ACCEPT_HEADER = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"


class CancelToken:
    """
    Stop signal shared between a crawl session and its fetches.
    cancel() is idempotent and may be called from any thread.
    """

    def __init__(self):
        self._flag = threading.Event()
        self._event: Optional[asyncio.Event] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def cancelled(self) -> bool:
        return self._flag.is_set()

    def _get_event(self) -> asyncio.Event:
        if self._event is None:
            self._loop = asyncio.get_running_loop()
            self._event = asyncio.Event()
            if self._flag.is_set():
                self._event.set()
        return self._event

    def cancel(self) -> None:
        if self._flag.is_set():
            return
        self._flag.set()
        if self._event is None or self._loop is None:
            return

        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if running is self._loop:
            self._event.set()
        else:
            try:
                self._loop.call_soon_threadsafe(self._event.set)
            except RuntimeError:
                # loop already closed, nobody left waiting
                logger.debug("cancel() after event loop shutdown")

    async def wait(self) -> None:
        await self._get_event().wait()

    async def sleep(self, seconds: float) -> bool:
        """Sleep up to `seconds`; returns True if cancelled while waiting."""
        if self.cancelled:
            return True
        try:
            await asyncio.wait_for(self.wait(), timeout=seconds)
            return True
        except asyncio.TimeoutError:
            return False


@dataclass
class FetchedPage:
    url: str
    final_url: str                      # may differ from url after redirects
    status_code: int
    body: str
    headers: CaseInsensitiveDict = field(default_factory=CaseInsensitiveDict)

    def __post_init__(self):
        if not isinstance(self.headers, CaseInsensitiveDict):
            self.headers = CaseInsensitiveDict(self.headers or {})


def _sync_fetch(url: str, timeout: float) -> FetchedPage:
    """Synchronous fetch using requests — runs inside a thread executor."""
    headers = {
        "User-Agent": config.USER_AGENT,
        "Accept": ACCEPT_HEADER,
        "Accept-Language": "en-US,en;q=0.5",
    }
    try:
        response = requests.get(url, headers=headers, timeout=timeout, allow_redirects=True)
        response.raise_for_status()
    except requests.Timeout as exc:
        raise FetchError("timeout", f"Request timed out after {timeout:g}s: {url}") from exc
    except requests.HTTPError as exc:
        status = exc.response.status_code if exc.response is not None else None
        raise FetchError("http_status", str(exc), status_code=status) from exc
    except requests.RequestException as exc:
        raise FetchError("network", str(exc) or f"Network error fetching {url}") from exc

    content = response.text
    if len(content) > config.MAX_CONTENT_BYTES:
        logger.debug("Truncating %s to %d bytes", url, config.MAX_CONTENT_BYTES)
        content = content[:config.MAX_CONTENT_BYTES]
    return FetchedPage(
        url=url,
        final_url=response.url,
        status_code=response.status_code,
        body=content,
        headers=response.headers,
    )


def _drain(future: asyncio.Future) -> None:
    # retrieve the outcome of an abandoned fetch so asyncio doesn't warn about it
    if not future.cancelled():
        future.exception()


async def fetch_page(
    url: str,
    timeout: float = config.DEFAULT_TIMEOUT,
    cancel_token: Optional[CancelToken] = None,
) -> FetchedPage:
    """
    GET one page without blocking the event loop.

    Raises FetchError for timeouts, network failures, non-2xx responses and
    cancellation. When cancel_token fires mid-flight the call returns at once;
    the worker thread is left to finish on its own, bounded by `timeout`.
    """
    if cancel_token is not None and cancel_token.cancelled:
        raise FetchError("cancelled", f"Crawl stopped before fetching {url}")

    loop = asyncio.get_running_loop()
    future = loop.run_in_executor(None, _sync_fetch, url, timeout)
    if cancel_token is None:
        return await future

    waiter = asyncio.ensure_future(cancel_token.wait())
    try:
        done, _ = await asyncio.wait({future, waiter}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        waiter.cancel()

    if future in done:
        return future.result()

    future.add_done_callback(_drain)
    raise FetchError("cancelled", f"Crawl stopped while fetching {url}")
