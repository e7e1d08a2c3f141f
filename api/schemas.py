from typing import Optional

from pydantic import BaseModel, Field, field_validator

from sitemapper.models import CrawlOptions


class CrawlOptionsSchema(BaseModel):
    max_depth: int = Field(3, ge=1, le=10)
    max_pages: int = Field(100, ge=1, le=1000)
    delay: int = Field(100, ge=0, le=10000, description="Milliseconds between requests")
    respect_robots_txt: bool = True
    extract_meta_tags: bool = True
    analyze_content: bool = True
    include_images: bool = False
    include_external_links: bool = False
    include_social_media: bool = True
    include_schema_markup: bool = False

    def to_crawl_options(self) -> CrawlOptions:
        return CrawlOptions(**self.model_dump())


class SitemapRequest(BaseModel):
    url: str
    options: CrawlOptionsSchema = Field(default_factory=CrawlOptionsSchema)

    @field_validator("url")
    @classmethod
    def url_must_be_http(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("URL must start with http:// or https://")
        return v


class PageNodeSchema(BaseModel):
    url: str
    title: str
    depth: int
    status: str                 # pending | crawling | completed | error
    node_id: int = 0
    parent_id: Optional[int] = None
    children: list["PageNodeSchema"] = []

    meta_tags: Optional[dict] = None
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

    # error info
    error: Optional[str] = None


PageNodeSchema.model_rebuild()


class KeywordCountSchema(BaseModel):
    keyword: str
    count: int


class MetaAnalysisSchema(BaseModel):
    total_pages: int
    pages_with_title: int
    pages_with_description: int
    pages_with_keywords: int
    pages_with_open_graph: int
    pages_with_twitter_cards: int
    pages_with_canonical: int
    pages_with_robots_meta: int
    average_title_length: float
    average_description_length: float
    common_keywords: list[KeywordCountSchema] = []
    missing_meta_tags: list[str] = []
    seo_score: int


class StructureAnalysisSchema(BaseModel):
    total_depth: int
    average_depth: float
    max_depth: int
    depth_distribution: dict[int, int] = {}
    internal_link_count: int
    external_link_count: int
    image_count: int
    content_type_distribution: dict[str, int] = {}
    h1_tag_count: int
    h2_tag_count: int
    h3_tag_count: int
    total_word_count: int
    average_word_count: float
    orphaned_pages: list[str] = []
    circular_references: list[str] = []
    broken_links: list[str] = []


class SitemapResponse(BaseModel):
    nodes: list[PageNodeSchema]
    total_pages: int
    total_images: int
    total_external_links: int
    crawl_time: int                 # milliseconds
    generated_at: str
    meta_analysis: MetaAnalysisSchema
    structure_analysis: StructureAnalysisSchema
    stopped: bool = False
    cached: bool = False


class HealthResponse(BaseModel):
    status: str
    cache: str  # "connected" or "unavailable"


class ErrorResponse(BaseModel):
    detail: str
    code: str
