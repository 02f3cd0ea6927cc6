from __future__ import annotations

from pydantic import BaseModel


class Heading(BaseModel):
    level: int  # 1 or 2
    text: str


class Link(BaseModel):
    href: str
    text: str


class ParsedPage(BaseModel):
    """Content signals extracted from one HTML page.

    The size caps (100 links, 50 paragraphs, 50 list items, 50,000 characters
    of text) are relied on by callers that budget prompt sizes.
    """

    title: str = ""
    description: str = ""
    keywords: list[str] = []
    headings: list[Heading] = []
    links: list[Link] = []
    paragraphs: list[str] = []
    list_items: list[str] = []
    full_text: str = ""
    word_count: int = 0


class FeedItem(BaseModel):
    """Single entry from an RSS or Atom feed."""

    title: str = ""
    link: str = ""
    description: str = ""
    published_at: str = ""  # Raw pubDate text, not normalised
    source: str | None = None
