"""
Reductions over a finished crawl tree. Both passes are pure: they read the
tree, never mutate it, and are recomputed from scratch for every crawl.
"""
import math
from typing import Iterable

from .models import COMPLETED, KeywordCount, MetaAnalysis, PageNode, StructureAnalysis

TOP_KEYWORDS = 10

# (label, attribute on MetaAnalysis, minimum coverage before the tag is reported missing)
MISSING_TAG_THRESHOLDS = (
    ("description", "pages_with_description", 0.8),
    ("keywords", "pages_with_keywords", 0.5),
    ("Open Graph", "pages_with_open_graph", 0.6),
    ("canonical", "pages_with_canonical", 0.7),
    ("robots", "pages_with_robots_meta", 0.5),
)

# weights sum to 100, so the score stays within 0..100
SEO_WEIGHTS = (
    ("pages_with_title", 20),
    ("pages_with_description", 20),
    ("pages_with_keywords", 15),
    ("pages_with_open_graph", 15),
    ("pages_with_canonical", 15),
    ("pages_with_robots_meta", 15),
)


def flatten_nodes(nodes: Iterable[PageNode]) -> list[PageNode]:
    """Pre-order list of every node under the given roots."""
    result: list[PageNode] = []
    stack = list(reversed(list(nodes)))
    while stack:
        node = stack.pop()
        result.append(node)
        stack.extend(reversed(node.children))
    return result


def _mean(values: list) -> float:
    return sum(values) / len(values) if values else 0.0


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def analyze_meta(nodes: Iterable[PageNode]) -> MetaAnalysis:
    pages = [n for n in flatten_nodes(nodes) if n.status == COMPLETED and n.meta_tags is not None]
    total = len(pages)
    if total == 0:
        return MetaAnalysis()

    metas = [n.meta_tags for n in pages]
    report = MetaAnalysis(
        total_pages=total,
        pages_with_title=sum(1 for m in metas if m.title),
        pages_with_description=sum(1 for m in metas if m.description),
        pages_with_keywords=sum(1 for m in metas if m.keywords),
        pages_with_open_graph=sum(1 for m in metas if m.has_open_graph),
        pages_with_twitter_cards=sum(1 for m in metas if m.twitter_card),
        pages_with_canonical=sum(1 for m in metas if m.canonical),
        pages_with_robots_meta=sum(1 for m in metas if m.robots),
        average_title_length=_mean([len(m.title) for m in metas if m.title]),
        average_description_length=_mean([len(m.description) for m in metas if m.description]),
    )

    # dicts keep insertion order and sorted() is stable, so ties stay in first-seen order
    counts: dict[str, int] = {}
    for m in metas:
        for keyword in m.keywords or []:
            counts[keyword] = counts.get(keyword, 0) + 1
    ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)
    report.common_keywords = [KeywordCount(keyword=k, count=c) for k, c in ranked[:TOP_KEYWORDS]]

    report.missing_meta_tags = [
        label for label, attr, threshold in MISSING_TAG_THRESHOLDS
        if getattr(report, attr) / total < threshold
    ]
    report.seo_score = _round_half_up(
        sum(weight * getattr(report, attr) / total for attr, weight in SEO_WEIGHTS)
    )
    return report


def analyze_structure(nodes: Iterable[PageNode]) -> StructureAnalysis:
    pages = [n for n in flatten_nodes(nodes) if n.status == COMPLETED]
    if not pages:
        return StructureAnalysis()

    depths = [n.depth for n in pages]
    depth_distribution: dict[int, int] = {}
    for depth in depths:
        depth_distribution[depth] = depth_distribution.get(depth, 0) + 1

    content_types: dict[str, int] = {}
    for n in pages:
        if n.content_type:
            content_types[n.content_type] = content_types.get(n.content_type, 0) + 1

    total_words = sum(n.word_count or 0 for n in pages)

    # a page nobody lists as a child; always includes the root
    linked = {child.url for n in pages for child in n.children}
    orphaned = []
    for n in pages:
        if n.url not in linked and n.url not in orphaned:
            orphaned.append(n.url)

    return StructureAnalysis(
        total_depth=max(depths),
        average_depth=_mean(depths),
        max_depth=max(depths),
        depth_distribution=depth_distribution,
        internal_link_count=sum(n.internal_links or 0 for n in pages),
        external_link_count=sum(n.external_links or 0 for n in pages),
        image_count=sum(n.images or 0 for n in pages),
        content_type_distribution=content_types,
        h1_tag_count=sum(n.h1_tags or 0 for n in pages),
        h2_tag_count=sum(n.h2_tags or 0 for n in pages),
        h3_tag_count=sum(n.h3_tags or 0 for n in pages),
        total_word_count=total_words,
        average_word_count=total_words / len(pages),
        orphaned_pages=orphaned,
    )
