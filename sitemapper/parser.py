import json
import re
from typing import Any, Callable, Optional

from bs4 import BeautifulSoup

from .urls import classify_link

Rule = Callable[[BeautifulSoup], Any]


def _clean_text(raw: str) -> str:
    """Collapse whitespace and strip control characters from extracted text."""
    text = re.sub(r"[\r\n\t]+", " ", raw)
    text = re.sub(r" {2,}", " ", text)
    return text.strip()


def _attr_re(value: str) -> re.Pattern:
    # attribute values like "msapplication-TileColor" are matched case-insensitively
    return re.compile(f"^{re.escape(value)}$", re.IGNORECASE)


def _get_meta(soup: BeautifulSoup, name: str = None, prop: str = None, http_equiv: str = None) -> Optional[str]:
    """Pull content from a <meta> tag by name, property or http-equiv attribute."""
    tag = None
    if name:
        tag = soup.find("meta", attrs={"name": _attr_re(name)})
    if not tag and prop:
        tag = soup.find("meta", attrs={"property": _attr_re(prop)})
    if not tag and http_equiv:
        tag = soup.find("meta", attrs={"http-equiv": _attr_re(http_equiv)})
    if tag:
        return (tag.get("content") or "").strip() or None
    return None


# --- rule builders: each returns a pure Document -> Optional[value] function ---

def _meta(name: str = None, prop: str = None, http_equiv: str = None) -> Rule:
    return lambda soup: _get_meta(soup, name=name, prop=prop, http_equiv=http_equiv)


def _meta_flag(name: str, truthy: str) -> Rule:
    def rule(soup: BeautifulSoup) -> Optional[bool]:
        value = _get_meta(soup, name=name)
        return None if value is None else value.lower() == truthy
    return rule


def _first_text(tag_name: str) -> Rule:
    def rule(soup: BeautifulSoup) -> Optional[str]:
        tag = soup.find(tag_name)
        return (_clean_text(tag.get_text()) or None) if tag else None
    return rule


def _keywords(soup: BeautifulSoup) -> Optional[list[str]]:
    raw = _get_meta(soup, name="keywords")
    if raw is None:
        return None
    return [k.strip() for k in raw.split(",") if k.strip()]


def _canonical(soup: BeautifulSoup) -> Optional[str]:
    tag = soup.find("link", rel="canonical")
    if not tag:
        return None
    return (tag.get("href") or "").strip() or None


def _language(soup: BeautifulSoup) -> Optional[str]:
    html = soup.find("html")
    lang = (html.get("lang") or "").strip() if html else ""
    return lang or _get_meta(soup, http_equiv="content-language")


def _charset(soup: BeautifulSoup) -> Optional[str]:
    tag = soup.find("meta", charset=True)
    if tag and tag["charset"].strip():
        return tag["charset"].strip()
    content_type = _get_meta(soup, http_equiv="content-type")
    if content_type is None:
        return None
    match = re.search(r"charset=([^\s;]+)", content_type, re.IGNORECASE)
    return match.group(1) if match else content_type


# (field name, rule) — applied in order, first to last
META_RULES: tuple[tuple[str, Rule], ...] = (
    ("title", _first_text("title")),
    ("description", _meta(name="description")),
    ("keywords", _keywords),
    ("author", _meta(name="author")),
    ("viewport", _meta(name="viewport")),
    ("robots", _meta(name="robots")),
    ("canonical", _canonical),
    ("language", _language),
    ("charset", _charset),
    ("refresh", _meta(http_equiv="refresh")),
    ("rating", _meta(name="rating")),
    ("referrer", _meta(name="referrer")),
    ("generator", _meta(name="generator")),
    ("theme_color", _meta(name="theme-color")),
    ("color_scheme", _meta(name="color-scheme")),
    ("msapplication_tile_color", _meta(name="msapplication-TileColor")),
    ("apple_mobile_web_app_title", _meta(name="apple-mobile-web-app-title")),
    ("apple_mobile_web_app_capable", _meta_flag("apple-mobile-web-app-capable", "yes")),
    ("apple_mobile_web_app_status_bar_style", _meta(name="apple-mobile-web-app-status-bar-style")),
    ("format_detection", _meta(name="format-detection")),
    ("mobile_optimized", _meta(name="MobileOptimized")),
    ("handheld_friendly", _meta_flag("HandheldFriendly", "true")),
)

SOCIAL_RULES: tuple[tuple[str, Rule], ...] = (
    ("og_title", _meta(prop="og:title")),
    ("og_description", _meta(prop="og:description")),
    ("og_image", _meta(prop="og:image")),
    ("og_type", _meta(prop="og:type")),
    ("og_url", _meta(prop="og:url")),
    # twitter tags are officially name=, but property= shows up in the wild
    ("twitter_card", _meta(name="twitter:card", prop="twitter:card")),
    ("twitter_title", _meta(name="twitter:title", prop="twitter:title")),
    ("twitter_description", _meta(name="twitter:description", prop="twitter:description")),
    ("twitter_image", _meta(name="twitter:image", prop="twitter:image")),
)


def apply_rules(soup: BeautifulSoup, rules: tuple[tuple[str, Rule], ...]) -> dict:
    return {name: rule(soup) for name, rule in rules}


def _schema_types(soup: BeautifulSoup) -> list[str]:
    """@type values from every JSON-LD block; unparseable blocks are skipped."""
    found: list[str] = []

    def collect(item: Any) -> None:
        if isinstance(item, list):
            for entry in item:
                collect(entry)
        elif isinstance(item, dict):
            types = item.get("@type")
            for t in types if isinstance(types, list) else [types]:
                if isinstance(t, str) and t not in found:
                    found.append(t)
            if "@graph" in item:
                collect(item["@graph"])

    for script in soup.find_all("script", type=_attr_re("application/ld+json")):
        try:
            collect(json.loads(script.string or ""))
        except ValueError:
            continue
    return found


def _content_counts(soup: BeautifulSoup, url: str) -> dict:
    internal = external = 0
    for a in soup.find_all("a", href=True):
        kind = classify_link(a["href"], url)
        if kind == "internal":
            internal += 1
        elif kind == "external":
            external += 1

    # text analysis ignores scripts, styles and noscript fallbacks
    for tag in soup(["script", "style", "noscript"]):
        tag.decompose()

    body = soup.find("body")
    text = body.get_text(separator=" ") if body else soup.get_text(separator=" ")

    return {
        "word_count": len(text.split()),
        "internal_links": internal,
        "external_links": external,
        "images": len(soup.find_all("img")),
        "h1_tags": len(soup.find_all("h1")),
        "h2_tags": len(soup.find_all("h2")),
        "h3_tags": len(soup.find_all("h3")),
    }


def parse_html(
    html: str,
    url: str = "",
    meta: bool = True,
    social: bool = True,
    content: bool = True,
    schema: bool = False,
) -> dict:
    """
    Parse raw HTML and return a flat dict of every extractable signal.
    Sections that were not requested come back as None.
    The extractor layer turns this into PageFields.
    """
    soup = BeautifulSoup(html or "", "lxml")

    parsed = {
        "title": _first_text("title")(soup),
        "h1": _first_text("h1")(soup),
        "links": [a["href"] for a in soup.find_all("a", href=True)],
        "meta": None,
        "schema_types": None,
        "content": None,
    }

    if meta:
        parsed["meta"] = apply_rules(soup, META_RULES)
        if social:
            parsed["meta"].update(apply_rules(soup, SOCIAL_RULES))

    if schema:
        parsed["schema_types"] = _schema_types(soup)

    # must run last: decomposes script/style/noscript
    if content:
        parsed["content"] = _content_counts(soup, url)

    return parsed
