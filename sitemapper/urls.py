import re
from typing import Optional
from urllib.parse import unquote, urldefrag, urljoin, urlparse, urlunparse

from .errors import InvalidSeedUrl

_WEB_SCHEMES = ("http", "https")

# hrefs that never point at another page
_NON_PAGE_PREFIXES = ("#", "javascript:", "mailto:")

_EXTENSION_RE = re.compile(r"\.[^/.]+$")


def normalize_url(href: str, base: str = "") -> Optional[str]:
    """
    Resolve href against base and canonicalise it for the visited-set:
    fragment dropped, scheme and host lowercased, empty path -> "/".
    Returns None when the result is not a parseable URL.
    """
    try:
        absolute = urljoin(base, href.strip()) if base else href.strip()
        absolute, _ = urldefrag(absolute)
        parsed = urlparse(absolute)
        # touching .port validates it; bad ports raise ValueError
        parsed.port
    except ValueError:
        return None

    if not parsed.scheme or not parsed.netloc:
        return None
    return urlunparse((
        parsed.scheme.lower(),
        parsed.netloc.lower(),
        parsed.path or "/",
        parsed.params,
        parsed.query,
        "",
    ))


def _resolve(candidate: str, base_url: str):
    try:
        target = urlparse(urljoin(base_url, candidate.strip()))
        base = urlparse(base_url)
        # hostname access can raise on malformed netlocs
        return target, base, target.hostname, base.hostname
    except ValueError:
        return None


def is_internal_link(candidate: str, base_url: str) -> bool:
    """True if candidate resolves to a page on the same scheme + host as base_url. Never raises."""
    if not candidate or candidate.strip().lower().startswith(_NON_PAGE_PREFIXES):
        return False

    resolved = _resolve(candidate, base_url)
    if resolved is None:
        return False
    target, base, target_host, base_host = resolved

    if target.scheme not in _WEB_SCHEMES or not target_host:
        return False
    return target.scheme == base.scheme and target_host == base_host


def classify_link(candidate: str, base_url: str) -> Optional[str]:
    """Returns "internal", "external", or None for hrefs that aren't web pages (anchors, mailto, ...)."""
    if is_internal_link(candidate, base_url):
        return "internal"
    if not candidate or candidate.strip().lower().startswith(_NON_PAGE_PREFIXES):
        return None

    resolved = _resolve(candidate, base_url)
    if resolved is None:
        return None
    target, _, target_host, _ = resolved
    if target.scheme in _WEB_SCHEMES and target_host:
        return "external"
    return None


def title_from_url(url: str) -> Optional[str]:
    """
    Derive a readable title from the last path segment, e.g.
    https://example.com/about-us.html -> "About us".
    """
    try:
        path = urlparse(url).path
    except ValueError:
        return None

    segments = [segment for segment in path.split("/") if segment]
    if not segments:
        return None

    title = unquote(segments[-1])
    title = re.sub(r"[-_]", " ", title)
    title = _EXTENSION_RE.sub("", title).strip()
    if not title:
        return None
    return title[0].upper() + title[1:]


def validate_seed_url(url: str) -> str:
    """Normalise the seed or raise InvalidSeedUrl before any crawl work starts."""
    if not url or not isinstance(url, str):
        raise InvalidSeedUrl(str(url))

    normalized = normalize_url(url)
    if normalized is None:
        raise InvalidSeedUrl(url)

    parsed = urlparse(normalized)
    if parsed.scheme not in _WEB_SCHEMES:
        raise InvalidSeedUrl(url, "only http:// and https:// URLs can be crawled")
    if not parsed.hostname:
        raise InvalidSeedUrl(url, "URL has no host")
    return normalized
