"""Markdown for a book's Highlights sheet."""

from typing import List
from urllib.parse import quote

from readwise_ulysses.models import Book, Highlight

_KINDLE_URL = "https://readwise.io/to_kindle?action=open&asin={asin}&location={location}"

_HEADER_TEMPLATE = """\
## {heading}

![{heading}]({cover_image_url})

### Metadata

- Author: {author}
- Full Title: {title}
- Category: #{category}"""

NOTES_TEXT = "# Notes\n"


def heading_title(title: str) -> str:
    """The sheet title Ulysses derives from the page heading."""
    return " ".join(title.split())


def build_page(book: Book, highlights: List[Highlight]) -> str:
    """Render the Highlights sheet for `book`.

    Highlights keep the order they are given in. The output depends only
    on the arguments.
    """
    page = _HEADER_TEMPLATE.format(
        heading=heading_title(book.title),
        title=book.title,
        cover_image_url=book.cover_image_url,
        author=book.author,
        category=book.category,
    )
    page += "\n\n### Highlights\n\n"
    for highlight in highlights:
        page += _render_highlight(book, highlight)
    return page


def _render_highlight(book: Book, highlight: Highlight) -> str:
    entry = f"- {highlight.text}"
    if highlight.location is not None:
        if book.asin:
            url = _KINDLE_URL.format(
                asin=quote(book.asin), location=highlight.location,
            )
            entry += f" ([Location {highlight.location}]({url}))"
        else:
            entry += f" (Location {highlight.location})"
    if highlight.note:
        entry += f"\n    - Note: {highlight.note}"
    return entry + "\n\n"
