from __future__ import annotations

import re
from dataclasses import dataclass

from bs4 import BeautifulSoup

STRIP_TAGS = ("head", "script", "style", "noscript", "svg", "iframe", "nav", "footer", "header", "form")


@dataclass
class ExtractedContent:
    url: str
    title: str
    text: str
    is_html: bool
    raw_length: int


def _normalize_text(text: str) -> str:
    text = text.replace("\xa0", " ")
    text = re.sub(r"\r\n?", "\n", text)
    text = re.sub(r"[ \t]+", " ", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def looks_like_html(raw_content: str) -> bool:
    head = raw_content[:2000].lower()
    return "<html" in head or "<body" in head or "<!doctype html" in head


def html_to_text(raw_html: str) -> tuple[str, str]:
    """Return (title, visible text) for an HTML document."""
    soup = BeautifulSoup(raw_html, "html.parser")
    title = soup.title.string if soup.title and soup.title.string else ""
    for tag in soup(list(STRIP_TAGS)):
        tag.decompose()
    return _normalize_text(title), _normalize_text(soup.get_text("\n"))


def extract_content(url: str, raw_content: str) -> ExtractedContent:
    """Normalize a fetched payload; HTML is reduced to its visible text."""
    if looks_like_html(raw_content):
        title, text = html_to_text(raw_content)
        return ExtractedContent(
            url=url,
            title=title,
            text=text,
            is_html=True,
            raw_length=len(raw_content),
        )
    return ExtractedContent(
        url=url,
        title="",
        text=_normalize_text(raw_content),
        is_html=False,
        raw_length=len(raw_content),
    )
