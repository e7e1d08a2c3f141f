import os

# identifying client header sent with every page and robots.txt request
USER_AGENT = os.getenv("SITEMAPPER_USER_AGENT", "SitemapGenerator/1.0")

DEFAULT_TIMEOUT = float(os.getenv("SITEMAPPER_TIMEOUT_SECONDS", "10"))  # seconds
MAX_CONTENT_BYTES = int(os.getenv("SITEMAPPER_MAX_CONTENT_BYTES", str(5 * 1024 * 1024)))

# origins whose robots.txt parser is kept in memory per checker
ROBOTS_CACHE_SIZE = int(os.getenv("SITEMAPPER_ROBOTS_CACHE_SIZE", "32"))

# crawl option defaults
DEFAULT_MAX_DEPTH = 3
DEFAULT_MAX_PAGES = 100
DEFAULT_DELAY_MS = 100
