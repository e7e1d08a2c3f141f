import csv
import io
import json
from typing import Iterable, Union
from xml.sax.saxutils import escape

from .analysis import flatten_nodes
from .models import COMPLETED, PageNode, SitemapData

CSV_HEADER = ("URL", "Title", "Depth", "Status", "Last Modified")

_XML_ENTITIES = {'"': "&quot;", "'": "&apos;"}

URLSET_OPEN = (
    '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9"\n'
    '        xmlns:image="http://www.google.com/schemas/sitemap-image/1.1"\n'
    '        xmlns:news="http://www.google.com/schemas/sitemap-news/0.9"\n'
    '        xmlns:video="http://www.google.com/schemas/sitemap-video/1.1">'
)

# optional per-page count elements, emitted only when non-zero
_COUNT_ELEMENTS = (
    ("word-count", "word_count"),
    ("internal-links", "internal_links"),
    ("external-links", "external_links"),
    ("images", "images"),
    ("h1-tags", "h1_tags"),
    ("h2-tags", "h2_tags"),
    ("h3-tags", "h3_tags"),
)


def _roots(data: Union[SitemapData, Iterable[PageNode]]) -> list[PageNode]:
    return list(data.nodes) if isinstance(data, SitemapData) else list(data)


def escape_xml(text: str) -> str:
    return escape(str(text), _XML_ENTITIES)


def priority(depth: int) -> str:
    if depth == 0:
        return "1.0"
    return f"{max(0.1, 1.0 - depth * 0.1):.1f}"


def change_frequency(depth: int) -> str:
    if depth == 0:
        return "daily"
    if depth == 1:
        return "weekly"
    if depth == 2:
        return "monthly"
    return "yearly"


def _url_element(node: PageNode) -> str:
    lines = [
        "  <url>",
        f"    <loc>{escape_xml(node.url)}</loc>",
        f"    <title>{escape_xml(node.title)}</title>",
    ]
    if node.last_modified:
        lines.append(f"    <lastmod>{escape_xml(node.last_modified)}</lastmod>")
    lines.append(f"    <priority>{priority(node.depth)}</priority>")
    lines.append(f"    <changefreq>{change_frequency(node.depth)}</changefreq>")

    meta = node.meta_tags
    if meta is not None:
        if meta.description:
            lines.append(f"    <description>{escape_xml(meta.description)}</description>")
        if meta.keywords:
            lines.append(f"    <keywords>{escape_xml(', '.join(meta.keywords))}</keywords>")
        if meta.canonical:
            lines.append(f"    <canonical>{escape_xml(meta.canonical)}</canonical>")
        if meta.robots:
            lines.append(f"    <robots>{escape_xml(meta.robots)}</robots>")
    if node.content_type:
        lines.append(f"    <content-type>{escape_xml(node.content_type)}</content-type>")

    for tag, attr in _COUNT_ELEMENTS:
        value = getattr(node, attr)
        if value:
            lines.append(f"    <{tag}>{value}</{tag}>")

    lines.append("  </url>")
    return "\n".join(lines)


def to_xml(data: Union[SitemapData, Iterable[PageNode]]) -> str:
    """XML sitemap with one <url> per completed page, in pre-order."""
    body = [_url_element(node) for node in flatten_nodes(_roots(data)) if node.status == COMPLETED]
    return "\n".join(['<?xml version="1.0" encoding="UTF-8"?>', URLSET_OPEN, *body, "</urlset>"]) + "\n"


def to_csv(data: Union[SitemapData, Iterable[PageNode]]) -> str:
    """One row per node (every status), pre-order, all values quoted."""
    buffer = io.StringIO()
    buffer.write(",".join(CSV_HEADER) + "\n")
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    for node in flatten_nodes(_roots(data)):
        writer.writerow((node.url, node.title, node.depth, node.status, node.last_modified or ""))
    return buffer.getvalue()


def to_json(data: SitemapData, pretty: bool = True) -> str:
    return json.dumps(data.to_dict(), ensure_ascii=False, indent=2 if pretty else None)


EXPORTERS = {
    "xml": (to_xml, "application/xml"),
    "csv": (to_csv, "text/csv"),
    "json": (to_json, "application/json"),
}
