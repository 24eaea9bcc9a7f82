"""Snapshots of Readwise entities, built from API payloads."""

from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class Book:
    id: int
    title: str
    author: str = ""
    category: str = ""
    cover_image_url: str = ""
    asin: str = ""

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Book":
        return cls(
            id=data["id"],
            title=data.get("title") or "",
            author=data.get("author") or "",
            category=data.get("category") or "",
            cover_image_url=data.get("cover_image_url") or "",
            asin=data.get("asin") or "",
        )


@dataclass(frozen=True)
class Highlight:
    text: str
    location: Optional[int] = None
    book_id: Optional[int] = None
    note: str = ""

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Highlight":
        return cls(
            text=data.get("text") or "",
            location=data.get("location"),
            book_id=data.get("book_id"),
            note=data.get("note") or "",
        )
