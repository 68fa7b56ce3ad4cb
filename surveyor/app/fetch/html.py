"""HTML to plain text for extraction prompts."""

from __future__ import annotations

import re

from bs4 import BeautifulSoup

_WHITESPACE = re.compile(r"\s+")

# Chrome that never carries statutory text
_STRIP_TAGS = ["script", "style", "nav", "footer", "noscript"]


def clean_html(html: str, *, max_chars: int) -> str:
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(_STRIP_TAGS):
        tag.decompose()

    root = soup.body or soup
    text = _WHITESPACE.sub(" ", root.get_text(" ")).strip()
    return text[:max_chars]
