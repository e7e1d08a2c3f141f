from dataclasses import dataclass, field, fields
from typing import Optional

from . import config

# node lifecycle: pending -> crawling -> completed | error
PENDING = "pending"
CRAWLING = "crawling"
COMPLETED = "completed"
ERROR = "error"


def _compact(obj) -> dict:
    """Dataclass -> dict, leaving out fields that were never populated."""
    return {f.name: getattr(obj, f.name) for f in fields(obj) if getattr(obj, f.name) is not None}


@dataclass
class MetaTags:
    # standard meta
    title: Optional[str] = None
    description: Optional[str] = None
    keywords: Optional[list[str]] = None
    author: Optional[str] = None
    viewport: Optional[str] = None
    robots: Optional[str] = None
    canonical: Optional[str] = None
    language: Optional[str] = None
    charset: Optional[str] = None

    # open graph / social tags
    og_title: Optional[str] = None
    og_description: Optional[str] = None
    og_image: Optional[str] = None
    og_type: Optional[str] = None
    og_url: Optional[str] = None

    # twitter card
    twitter_card: Optional[str] = None
    twitter_title: Optional[str] = None
    twitter_description: Optional[str] = None
    twitter_image: Optional[str] = None

    # misc http-equiv / browser tags
    refresh: Optional[str] = None
    rating: Optional[str] = None
    referrer: Optional[str] = None
    generator: Optional[str] = None
    theme_color: Optional[str] = None
    color_scheme: Optional[str] = None
    msapplication_tile_color: Optional[str] = None
    apple_mobile_web_app_title: Optional[str] = None
    apple_mobile_web_app_capable: Optional[bool] = None
    apple_mobile_web_app_status_bar_style: Optional[str] = None
    format_detection: Optional[str] = None
    mobile_optimized: Optional[str] = None
    handheld_friendly: Optional[bool] = None

    # derived from the robots value; only set when robots is present
    noindex: Optional[bool] = None
    nofollow: Optional[bool] = None
    noarchive: Optional[bool] = None
    nosnippet: Optional[bool] = None
    noimageindex: Optional[bool] = None

    @property
    def has_open_graph(self) -> bool:
        return bool(self.og_title or self.og_description)

    def to_dict(self) -> dict:
        return _compact(self)

    @classmethod
    def from_dict(cls, data: dict) -> "MetaTags":
        return cls(**data)


@dataclass
class CrawlOptions:
    max_depth: int = config.DEFAULT_MAX_DEPTH
    max_pages: int = config.DEFAULT_MAX_PAGES
    delay: int = config.DEFAULT_DELAY_MS           # milliseconds between requests
    respect_robots_txt: bool = True
    extract_meta_tags: bool = True
    analyze_content: bool = True
    include_images: bool = False
    include_external_links: bool = False
    include_social_media: bool = True
    include_schema_markup: bool = False

    def validate(self) -> "CrawlOptions":
        if self.max_depth < 1:
            raise ValueError("max_depth must be at least 1")
        if self.max_pages < 1:
            raise ValueError("max_pages must be at least 1")
        if self.delay < 0:
            raise ValueError("delay must not be negative")
        return self

    def to_dict(self) -> dict:
        return {k: v for k, v in self.__dict__.items()}


@dataclass
class PageNode:
    url: str
    title: str
    depth: int
    status: str = PENDING
    node_id: int = 0
    parent_id: Optional[int] = None     # arena index of the parent, None for the root
    children: list["PageNode"] = field(default_factory=list)

    # populated only when the matching option is enabled
    meta_tags: Optional[MetaTags] = None
    content_type: Optional[str] = None
    word_count: Optional[int] = None
    internal_links: Optional[int] = None
    external_links: Optional[int] = None
    images: Optional[int] = None
    h1_tags: Optional[int] = None
    h2_tags: Optional[int] = None
    h3_tags: Optional[int] = None
    canonical_url: Optional[str] = None
    robots_meta: Optional[str] = None
    language: Optional[str] = None
    charset: Optional[str] = None
    last_modified: Optional[str] = None
    schema_types: Optional[list[str]] = None

    # error info (populated only when status == error)
    error: Optional[str] = None

    def to_dict(self) -> dict:
        data = _compact(self)
        if self.meta_tags is not None:
            data["meta_tags"] = self.meta_tags.to_dict()
        data["children"] = [child.to_dict() for child in self.children]
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "PageNode":
        data = dict(data)
        children = [cls.from_dict(child) for child in data.pop("children", [])]
        meta = data.pop("meta_tags", None)
        node = cls(**data, children=children)
        if meta is not None:
            node.meta_tags = MetaTags.from_dict(meta)
        return node


@dataclass
class CrawlProgress:
    current_url: str
    current_depth: int
    pages_crawled: int
    total_pages: int                    # page budget, i.e. options.max_pages
    is_complete: bool = False
    stopped: bool = False

    def to_dict(self) -> dict:
        return {k: v for k, v in self.__dict__.items()}


@dataclass
class KeywordCount:
    keyword: str
    count: int


@dataclass
class MetaAnalysis:
    total_pages: int = 0
    pages_with_title: int = 0
    pages_with_description: int = 0
    pages_with_keywords: int = 0
    pages_with_open_graph: int = 0
    pages_with_twitter_cards: int = 0
    pages_with_canonical: int = 0
    pages_with_robots_meta: int = 0
    average_title_length: float = 0.0
    average_description_length: float = 0.0
    common_keywords: list[KeywordCount] = field(default_factory=list)
    missing_meta_tags: list[str] = field(default_factory=list)
    seo_score: int = 0

    def to_dict(self) -> dict:
        data = {k: v for k, v in self.__dict__.items()}
        data["common_keywords"] = [kc.__dict__.copy() for kc in self.common_keywords]
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "MetaAnalysis":
        data = dict(data)
        keywords = [KeywordCount(**kc) for kc in data.pop("common_keywords", [])]
        return cls(**data, common_keywords=keywords)


@dataclass
class StructureAnalysis:
    total_depth: int = 0
    average_depth: float = 0.0
    max_depth: int = 0
    depth_distribution: dict[int, int] = field(default_factory=dict)
    internal_link_count: int = 0
    external_link_count: int = 0
    image_count: int = 0
    content_type_distribution: dict[str, int] = field(default_factory=dict)
    h1_tag_count: int = 0
    h2_tag_count: int = 0
    h3_tag_count: int = 0
    total_word_count: int = 0
    average_word_count: float = 0.0
    orphaned_pages: list[str] = field(default_factory=list)
    circular_references: list[str] = field(default_factory=list)   # not detected yet, always empty
    broken_links: list[str] = field(default_factory=list)          # not detected yet, always empty

    def to_dict(self) -> dict:
        return {k: v for k, v in self.__dict__.items()}

    @classmethod
    def from_dict(cls, data: dict) -> "StructureAnalysis":
        data = dict(data)
        # JSON turns the integer depth keys into strings
        data["depth_distribution"] = {int(k): v for k, v in data.get("depth_distribution", {}).items()}
        return cls(**data)


@dataclass
class SitemapData:
    nodes: list[PageNode]
    total_pages: int
    total_images: int
    total_external_links: int
    crawl_time: int                     # milliseconds
    generated_at: str                   # ISO-8601, UTC
    meta_analysis: MetaAnalysis
    structure_analysis: StructureAnalysis
    stopped: bool = False

    def to_dict(self) -> dict:
        return {
            "nodes": [node.to_dict() for node in self.nodes],
            "total_pages": self.total_pages,
            "total_images": self.total_images,
            "total_external_links": self.total_external_links,
            "crawl_time": self.crawl_time,
            "generated_at": self.generated_at,
            "meta_analysis": self.meta_analysis.to_dict(),
            "structure_analysis": self.structure_analysis.to_dict(),
            "stopped": self.stopped,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SitemapData":
        return cls(
            nodes=[PageNode.from_dict(node) for node in data["nodes"]],
            total_pages=data["total_pages"],
            total_images=data["total_images"],
            total_external_links=data["total_external_links"],
            crawl_time=data["crawl_time"],
            generated_at=data["generated_at"],
            meta_analysis=MetaAnalysis.from_dict(data["meta_analysis"]),
            structure_analysis=StructureAnalysis.from_dict(data["structure_analysis"]),
            stopped=data.get("stopped", False),
        )
