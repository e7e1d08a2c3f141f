import hashlib
import json
import logging
import os
from typing import Optional

import redis

from sitemapper.models import CrawlOptions, SitemapData

logger = logging.getLogger(__name__)

REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379")
CACHE_TTL = int(os.getenv("CACHE_TTL_SECONDS", "3600"))  # 1 hour default

# module-level client; None if Redis is unavailable (cache degrades gracefully)
_client: Optional[redis.Redis] = None


def get_client() -> Optional[redis.Redis]:
    global _client
    if _client is None:
        try:
            _client = redis.from_url(REDIS_URL, decode_responses=True, socket_connect_timeout=2)
            _client.ping()
        except redis.RedisError as exc:
            logger.warning("Redis unavailable, caching disabled: %s", exc)
            _client = None
    return _client


def cache_key(url: str, options: CrawlOptions) -> str:
    # the same site crawled with different options is a different sitemap
    raw = json.dumps({"url": url, "options": options.to_dict()}, sort_keys=True)
    digest = hashlib.sha256(raw.encode()).hexdigest()[:16]
    return f"sitemap:{digest}"


def get_cached(url: str, options: CrawlOptions) -> Optional[SitemapData]:
    client = get_client()
    if client is None:
        return None
    try:
        raw = client.get(cache_key(url, options))
        return SitemapData.from_dict(json.loads(raw)) if raw else None
    except (redis.RedisError, ValueError, KeyError, TypeError) as exc:
        logger.warning("Cache read error: %s", exc)
        return None


def set_cached(url: str, options: CrawlOptions, data: SitemapData, ttl: int = CACHE_TTL) -> None:
    client = get_client()
    if client is None:
        return
    try:
        client.setex(cache_key(url, options), ttl, json.dumps(data.to_dict()))
    except redis.RedisError as exc:
        logger.warning("Cache write error: %s", exc)


def is_cache_healthy() -> bool:
    client = get_client()
    if client is None:
        return False
    try:
        client.ping()
        return True
    except redis.RedisError:
        return False
