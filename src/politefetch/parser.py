"""Content extraction for HTML pages and RSS/Atom feeds.

Both parsers are pure functions over text. They never raise on malformed
input: anything that cannot be found is returned as an empty string or list.

HTML goes through BeautifulSoup with the lxml tree builder. Feeds go through
feedparser, which handles RSS ``<item>`` and Atom ``<entry>`` blocks and
unwraps CDATA sections.
"""

from __future__ import annotations

import re

import feedparser
from bs4 import BeautifulSoup, Comment, Tag

from politefetch.models.page import FeedItem, Heading, Link, ParsedPage

MAX_LINKS = 100
MAX_PARAGRAPHS = 50
MIN_PARAGRAPH_CHARS = 50
MAX_LIST_ITEMS = 50
MIN_LIST_ITEM_CHARS = 10
MAX_FULL_TEXT_CHARS = 50_000
MAX_FEED_DESCRIPTION_CHARS = 500

_WHITESPACE_RE = re.compile(r"\s+")
_STRIPPED_TAGS = ["script", "style", "noscript"]


def _collapse(text: str) -> str:
    # \s also matches U+00A0, so &nbsp; turns into a plain space
    return _WHITESPACE_RE.sub(" ", text).strip()


def _text_of(tag: Tag) -> str:
    return _collapse(tag.get_text())


def _meta_content(soup: BeautifulSoup, name: str) -> str:
    meta = soup.find("meta", attrs={"name": re.compile(rf"^{name}$", re.IGNORECASE)})
    if not isinstance(meta, Tag):
        return ""
    content = meta.get("content")
    return content.strip() if isinstance(content, str) else ""


def strip_tags(value: str) -> str:
    """Remove markup and decode entities, collapsing whitespace."""
    if "<" not in value and "&" not in value:
        return _collapse(value)
    return _collapse(BeautifulSoup(value, "lxml").get_text())


def parse_html(html: str) -> ParsedPage:
    """Extract title, meta, headings, links, paragraphs, list items and text."""
    soup = BeautifulSoup(html or "", "lxml")

    for tag in soup(_STRIPPED_TAGS):
        tag.decompose()
    for comment in soup.find_all(string=lambda node: isinstance(node, Comment)):
        comment.extract()

    title = _text_of(soup.title) if soup.title else ""
    description = _meta_content(soup, "description")
    keywords_raw = _meta_content(soup, "keywords")
    keywords = [k.strip() for k in keywords_raw.split(",") if k.strip()]

    headings = [
        Heading(level=int(tag.name[1]), text=_text_of(tag))
        for tag in soup.find_all(["h1", "h2"])
    ]

    links: list[Link] = []
    for anchor in soup.find_all("a", href=True):
        if len(links) >= MAX_LINKS:
            break
        links.append(Link(href=str(anchor["href"]).strip(), text=_text_of(anchor)))

    paragraphs: list[str] = []
    for tag in soup.find_all("p"):
        text = _text_of(tag)
        if len(text) > MIN_PARAGRAPH_CHARS:
            paragraphs.append(text)
            if len(paragraphs) >= MAX_PARAGRAPHS:
                break

    list_items: list[str] = []
    for tag in soup.find_all("li"):
        text = _text_of(tag)
        if len(text) > MIN_LIST_ITEM_CHARS:
            list_items.append(text)
            if len(list_items) >= MAX_LIST_ITEMS:
                break

    root = soup.body if soup.body is not None else soup
    full_text = _collapse(root.get_text(" "))[:MAX_FULL_TEXT_CHARS]

    return ParsedPage(
        title=title,
        description=description,
        keywords=keywords,
        headings=headings,
        links=links,
        paragraphs=paragraphs,
        list_items=list_items,
        full_text=full_text,
        word_count=len(full_text.split()),
    )


def parse_feed_items(xml: str, default_source: str | None = None) -> list[FeedItem]:
    """Extract entries from an RSS or Atom document.

    ``default_source`` fills ``source`` for entries without a ``<source>``
    element (news-search feeds name the aggregator there).
    """
    # Bytes only: a str is tried as a URL or file path before being parsed
    feed = feedparser.parse((xml or "").encode("utf-8"))
    items: list[FeedItem] = []

    for entry in feed.entries:
        source = entry.get("source") or {}
        source_title = strip_tags(source.get("title", "")) if source else ""
        description = strip_tags(entry.get("summary", ""))[:MAX_FEED_DESCRIPTION_CHARS]

        items.append(
            FeedItem(
                title=strip_tags(entry.get("title", "")),
                link=(entry.get("link") or "").strip(),
                description=description,
                published_at=(entry.get("published") or entry.get("updated") or "").strip(),
                source=source_title or default_source,
            )
        )

    return items
