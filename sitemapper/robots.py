import logging
from collections import OrderedDict
from typing import Optional
from urllib.parse import urlparse
from urllib.robotparser import RobotFileParser

import requests

from . import config

logger = logging.getLogger(__name__)


def _robots_url(url: str) -> str:
    parsed = urlparse(url)
    return f"{parsed.scheme}://{parsed.netloc}/robots.txt"


class RobotsChecker:
    """
    robots.txt lookups for the crawl scheduler, one parser cached per origin.

    An unreachable robots.txt or one that 404s allows everything; a 401/403
    disallows everything, matching urllib.robotparser semantics.
    """

    def __init__(
        self,
        user_agent: str = config.USER_AGENT,
        timeout: float = config.DEFAULT_TIMEOUT,
        cache_size: int = config.ROBOTS_CACHE_SIZE,
    ):
        self.user_agent = user_agent
        self.timeout = timeout
        self.cache_size = cache_size
        self._parsers: "OrderedDict[str, Optional[RobotFileParser]]" = OrderedDict()

    def _load(self, robots_url: str) -> Optional[RobotFileParser]:
        try:
            response = requests.get(robots_url, headers={"User-Agent": self.user_agent}, timeout=self.timeout)
        except requests.RequestException as exc:
            # if robots.txt is unreachable, assume allowed
            logger.info("robots.txt unreachable at %s: %s", robots_url, exc)
            return None

        rp = RobotFileParser()
        rp.set_url(robots_url)
        if response.status_code in (401, 403):
            rp.disallow_all = True
        elif 400 <= response.status_code < 500:
            rp.allow_all = True
        elif response.status_code >= 500:
            return None
        else:
            rp.parse(response.text.splitlines())
        return rp

    def _parser_for(self, url: str) -> Optional[RobotFileParser]:
        robots_url = _robots_url(url)
        if robots_url in self._parsers:
            self._parsers.move_to_end(robots_url)
            return self._parsers[robots_url]

        rp = self._load(robots_url)
        self._parsers[robots_url] = rp
        if len(self._parsers) > self.cache_size:
            self._parsers.popitem(last=False)
        return rp

    def is_allowed(self, url: str) -> bool:
        rp = self._parser_for(url)
        if rp is None:
            return True
        return rp.can_fetch(self.user_agent, url)

    __call__ = is_allowed
