import pytest
from sitemapper.parser import parse_html


SAMPLE_HTML = """
<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="utf-8">
    <title>Best Camping Tents for 2024</title>
    <meta name="description" content="A guide to the top camping tents for outdoor enthusiasts.">
    <meta name="keywords" content="camping, tents , outdoor,, hiking">
    <meta name="author" content="Jane Doe">
    <meta name="viewport" content="width=device-width, initial-scale=1">
    <meta name="robots" content="index, follow">
    <meta name="theme-color" content="#336699">
    <meta name="msapplication-tilecolor" content="#ffffff">
    <meta name="apple-mobile-web-app-capable" content="yes">
    <meta name="HandheldFriendly" content="false">
    <meta property="og:title" content="Top Camping Tents">
    <meta property="og:description" content="Expert picks for campers.">
    <meta property="og:image" content="https://example.com/tent.jpg">
    <meta property="og:type" content="article">
    <meta name="twitter:card" content="summary_large_image">
    <meta name="twitter:title" content="Best Tents 2024">
    <link rel="canonical" href="https://example.com/camping-tents">
    <script type="application/ld+json">{"@context": "https://schema.org", "@type": "Article"}</script>
    <script type="application/ld+json">{"@graph": [{"@type": ["Organization", "Brand"]}, {"@type": "Article"}]}</script>
    <script type="application/ld+json">{ not json </script>
</head>
<body>
    <h1>Best Camping Tents</h1>
    <h2>Budget Picks</h2>
    <h2>Premium Picks</h2>
    <h3>Under $100</h3>
    <p>Looking for a great camping tent? Here's our curated list.</p>
    <img src="/tent1.jpg"><img src="/tent2.jpg">
    <a href="/reviews">Reviews</a>
    <a href="https://example.com/about">About</a>
    <a href="https://partner.com/deal">Partner</a>
    <a href="mailto:hi@example.com">Mail</a>
    <a href="#top">Top</a>
    <script>alert("should be removed");</script>
    <style>.x { color: red }</style>
    <noscript>Enable JavaScript please</noscript>
</body>
</html>
"""

PAGE_URL = "https://example.com/camping-tents"


def test_title_extracted():
    result = parse_html(SAMPLE_HTML, PAGE_URL)
    assert result["title"] == "Best Camping Tents for 2024"
    assert result["h1"] == "Best Camping Tents"


def test_meta_description():
    meta = parse_html(SAMPLE_HTML, PAGE_URL)["meta"]
    assert "camping tents" in meta["description"].lower()


def test_meta_keywords_split_and_trimmed():
    meta = parse_html(SAMPLE_HTML, PAGE_URL)["meta"]
    assert meta["keywords"] == ["camping", "tents", "outdoor", "hiking"]


def test_og_tags():
    meta = parse_html(SAMPLE_HTML, PAGE_URL)["meta"]
    assert meta["og_title"] == "Top Camping Tents"
    assert meta["og_type"] == "article"
    assert meta["og_image"] == "https://example.com/tent.jpg"
    assert meta["og_url"] is None


def test_twitter_tags():
    meta = parse_html(SAMPLE_HTML, PAGE_URL)["meta"]
    assert meta["twitter_card"] == "summary_large_image"
    assert meta["twitter_title"] == "Best Tents 2024"


def test_canonical_language_charset():
    meta = parse_html(SAMPLE_HTML, PAGE_URL)["meta"]
    assert meta["canonical"] == "https://example.com/camping-tents"
    assert meta["language"] == "en"
    assert meta["charset"] == "utf-8"


def test_browser_specific_tags():
    meta = parse_html(SAMPLE_HTML, PAGE_URL)["meta"]
    assert meta["theme_color"] == "#336699"
    assert meta["msapplication_tile_color"] == "#ffffff"
    assert meta["apple_mobile_web_app_capable"] is True
    assert meta["handheld_friendly"] is False
    assert meta["generator"] is None


def test_language_and_charset_fallbacks():
    html = """
    <html><head>
      <meta http-equiv="Content-Language" content="de">
      <meta http-equiv="Content-Type" content="text/html; charset=ISO-8859-1">
    </head><body></body></html>
    """
    meta = parse_html(html)["meta"]
    assert meta["language"] == "de"
    assert meta["charset"] == "ISO-8859-1"


def test_social_tags_skipped_when_disabled():
    meta = parse_html(SAMPLE_HTML, PAGE_URL, social=False)["meta"]
    assert "og_title" not in meta
    assert meta["description"] is not None


def test_content_counts():
    content = parse_html(SAMPLE_HTML, PAGE_URL)["content"]
    assert content["h1_tags"] == 1
    assert content["h2_tags"] == 2
    assert content["h3_tags"] == 1
    assert content["images"] == 2
    assert content["internal_links"] == 2
    assert content["external_links"] == 1


def test_word_count_ignores_scripts_styles_noscript():
    html = """<html><body><p>one two three</p><script>var a = 1;</script>
    <style>p { x: y }</style><noscript>four five</noscript><span>six</span></body></html>"""
    content = parse_html(html, "https://example.com/")["content"]
    assert content["word_count"] == 4


def test_schema_types_collected_only_when_requested():
    assert parse_html(SAMPLE_HTML, PAGE_URL)["schema_types"] is None
    types = parse_html(SAMPLE_HTML, PAGE_URL, schema=True)["schema_types"]
    assert types == ["Article", "Organization", "Brand"]


def test_links_in_document_order():
    links = parse_html(SAMPLE_HTML, PAGE_URL)["links"]
    assert links[:3] == ["/reviews", "https://example.com/about", "https://partner.com/deal"]


def test_sections_disabled():
    result = parse_html(SAMPLE_HTML, PAGE_URL, meta=False, content=False)
    assert result["meta"] is None
    assert result["content"] is None
    assert result["title"] == "Best Camping Tents for 2024"


def test_empty_html_does_not_crash():
    result = parse_html("")
    assert result["title"] is None
    assert result["links"] == []
    assert result["content"]["word_count"] == 0


def test_malformed_html_best_effort():
    result = parse_html("<html><head><title>Broken</title><body><h1>Still here<p>text <a href='/x'>x")
    assert result["title"] == "Broken"
    assert result["links"] == ["/x"]
