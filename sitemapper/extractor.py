import logging
from dataclasses import dataclass, field
from typing import Mapping, Optional

from requests.structures import CaseInsensitiveDict

from .models import CrawlOptions, MetaTags, PageNode
from .parser import parse_html
from .urls import title_from_url

logger = logging.getLogger(__name__)

UNTITLED = "Untitled Page"

_ROBOTS_FLAGS = ("noindex", "nofollow", "noarchive", "nosnippet", "noimageindex")


@dataclass
class PageFields:
    """Everything the extractor learned about one page, ready to copy onto a PageNode."""
    title: str
    links: list[str] = field(default_factory=list)      # raw hrefs in document order
    meta_tags: Optional[MetaTags] = None
    content_type: Optional[str] = None
    last_modified: Optional[str] = None
    word_count: Optional[int] = None
    internal_links: Optional[int] = None
    external_links: Optional[int] = None
    images: Optional[int] = None
    h1_tags: Optional[int] = None
    h2_tags: Optional[int] = None
    h3_tags: Optional[int] = None
    schema_types: Optional[list[str]] = None

    def apply_to(self, node: PageNode) -> None:
        node.title = self.title
        node.content_type = self.content_type
        node.last_modified = self.last_modified
        node.schema_types = self.schema_types

        if self.meta_tags is not None:
            node.meta_tags = self.meta_tags
            node.language = self.meta_tags.language
            node.charset = self.meta_tags.charset
            node.canonical_url = self.meta_tags.canonical
            node.robots_meta = self.meta_tags.robots

        node.word_count = self.word_count
        node.internal_links = self.internal_links
        node.external_links = self.external_links
        node.images = self.images
        node.h1_tags = self.h1_tags
        node.h2_tags = self.h2_tags
        node.h3_tags = self.h3_tags


def resolve_title(title: Optional[str], h1: Optional[str], url: str) -> str:
    """<title>, then first <h1>, then the URL's last path segment, then a placeholder."""
    return title or h1 or title_from_url(url) or UNTITLED


def robots_flags(robots: Optional[str]) -> dict:
    if robots is None:
        return {}
    value = robots.lower()
    return {flag: flag in value for flag in _ROBOTS_FLAGS}


def build_meta_tags(raw: dict) -> MetaTags:
    meta = MetaTags(**raw)
    for flag, present in robots_flags(meta.robots).items():
        setattr(meta, flag, present)
    return meta


def content_type_of(headers: Mapping[str, str]) -> str:
    raw = headers.get("content-type") or ""
    return raw.split(";")[0].strip().lower() or "text/html"


def extract_page(
    html: str,
    url: str,
    options: CrawlOptions,
    headers: Optional[Mapping[str, str]] = None,
) -> PageFields:
    """
    Turn a fetched page into PageFields. Never raises: a document that can't be
    parsed at all is treated the same as an empty one.
    """
    headers = CaseInsensitiveDict(headers or {})
    try:
        parsed = parse_html(
            html,
            url=url,
            meta=options.extract_meta_tags,
            social=options.include_social_media,
            content=options.analyze_content,
            schema=options.include_schema_markup,
        )
    except Exception as exc:
        logger.warning("Parse failed for %s, treating as empty page: %s", url, exc)
        parsed = {"title": None, "h1": None, "links": [], "meta": None, "schema_types": None, "content": None}

    fields = PageFields(
        title=resolve_title(parsed["title"], parsed["h1"], url),
        links=parsed["links"],
        content_type=content_type_of(headers),
        last_modified=headers.get("last-modified"),
        schema_types=parsed["schema_types"],
    )

    if parsed["meta"] is not None:
        fields.meta_tags = build_meta_tags(parsed["meta"])

    content = parsed["content"]
    if content is not None:
        fields.word_count = content["word_count"]
        fields.internal_links = content["internal_links"]
        fields.h1_tags = content["h1_tags"]
        fields.h2_tags = content["h2_tags"]
        fields.h3_tags = content["h3_tags"]
        if options.include_external_links:
            fields.external_links = content["external_links"]
        if options.include_images:
            fields.images = content["images"]

    return fields
