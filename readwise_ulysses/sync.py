"""Readwise → Ulysses reconciliation.

One pass per run: resolve the root group (capturing its tree when it
already exists), then for each book resolve its group and replace its
Highlights sheet. Any error other than a group lookup miss aborts the run.
"""

import logging
import re
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Set

from readwise_ulysses.models import Book
from readwise_ulysses.page import NOTES_TEXT, build_page, heading_title
from readwise_ulysses.readwise_client import ReadwiseClient
from readwise_ulysses.ulysses_client import LookupResult, UlyssesClient

log = logging.getLogger(__name__)

HIGHLIGHTS_TITLE = "Highlights"
NOTES_TITLE = "Notes"

Sheet = Dict[str, Any]
SheetMatcher = Callable[[Sheet, Book], bool]


@dataclass
class SyncOptions:
    root_group: str = "Readwise"
    # "title", "category" or "category-title"
    group_by: str = "title"
    # "book-title" or "sheet-name"
    sheet_match: str = "book-title"
    create_notes: bool = False
    # seconds to wait between books (Readwise rate limit)
    delay: float = 5.0


@dataclass
class SyncReport:
    books: int = 0
    groups_created: int = 0
    sheets_created: int = 0
    sheets_trashed: int = 0

    def summary(self) -> str:
        return (
            f"{self.books} book(s), {self.groups_created} group(s) created, "
            f"{self.sheets_created} sheet(s) created, "
            f"{self.sheets_trashed} sheet(s) trashed"
        )


def capitalize(text: str) -> str:
    """Upper-case the first character only ("books" -> "Books")."""
    return text[:1].upper() + text[1:]


def sanitize_name(name: str) -> str:
    """Make `name` usable as one segment of a Ulysses path."""
    result = re.sub(r"[\x00-\x1f/]", " ", name)
    return " ".join(result.split())[:200].strip()


def group_names(book: Book, group_by: str) -> List[str]:
    """Names of the groups (below the root) that hold `book`'s sheets."""
    category = sanitize_name(capitalize(book.category)) or "Uncategorized"
    title = sanitize_name(book.title) or f"Book {book.id}"
    if group_by == "title":
        return [title]
    if group_by == "category":
        return [category]
    if group_by == "category-title":
        return [category, title]
    raise ValueError(f"Unknown grouping: {group_by}")


def sheet_matcher(mode: str) -> SheetMatcher:
    """Predicate deciding which existing sheets a book's page replaces.

    "book-title": Ulysses titles a sheet after its first heading, which
    build_page() sets to the whitespace-normalized book title.
    "sheet-name": the sheet is titled "Highlights" (see sheet_text()).
    """
    if mode == "book-title":
        return lambda sheet, book: sheet.get("title") == heading_title(book.title)
    if mode == "sheet-name":
        return lambda sheet, book: sheet.get("title") == HIGHLIGHTS_TITLE
    raise ValueError(f"Unknown sheet match mode: {mode}")


def sheet_text(page: str, sheet_match: str) -> str:
    if sheet_match == "sheet-name":
        return f"# {HIGHLIGHTS_TITLE}\n\n{page}"
    return page


def find_container(tree: Dict[str, Any], identifier: str) -> Optional[Dict[str, Any]]:
    """Depth-first search of a get-item tree for a group by identifier."""
    if not identifier:
        return None
    if tree.get("identifier") == identifier:
        return tree
    for child in tree.get("containers") or []:
        found = find_container(child, identifier)
        if found is not None:
            return found
    return None


def _sheets(container: Optional[Dict[str, Any]]) -> List[Sheet]:
    if container is None:
        return []
    return list(container.get("sheets") or [])


class Synchronizer:
    """Drives one sync run between an authorized Readwise and Ulysses."""

    def __init__(
        self,
        readwise: ReadwiseClient,
        ulysses: UlyssesClient,
        options: Optional[SyncOptions] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.readwise = readwise
        self.ulysses = ulysses
        self.options = options or SyncOptions()
        self.sleep = sleep
        self.matches = sheet_matcher(self.options.sheet_match)
        self.report = SyncReport()
        # Tree of the root group as it was before this run touched it
        self.snapshot: Optional[Dict[str, Any]] = None
        # Sheets trashed so far; the snapshot still lists them
        self.trashed: Set[str] = set()

    def run(self) -> SyncReport:
        books = self.readwise.list_books()
        log.info("Fetched %d book(s) from Readwise", len(books))

        root = self._resolve_root()

        for index, book in enumerate(books, 1):
            log.info("[%d/%d] Syncing '%s'", index, len(books), book.title)
            self.sync_book(book, root)
            self.report.books += 1
            if index < len(books) and self.options.delay > 0:
                self.sleep(self.options.delay)

        log.info("Done: %s", self.report.summary())
        return self.report

    def _resolve_root(self) -> LookupResult:
        name = self.options.root_group
        root = self.ulysses.find_or_create_group(f"/{name}", name)
        if root.found:
            self.snapshot = root.item
            log.info("Found Ulysses group /%s, replacing existing sheets", name)
        else:
            self.report.groups_created += 1
        return root

    def sync_book(self, book: Book, root: LookupResult) -> None:
        """Replace (or create) the Highlights sheet of one book."""
        highlights = self.readwise.list_highlights(book_id=book.id)
        log.debug("'%s': %d highlight(s)", book.title, len(highlights))

        group = self._resolve_book_group(book, root)
        text = sheet_text(build_page(book, highlights), self.options.sheet_match)

        existing = self._existing_sheets(group)
        matched = [
            sheet for sheet in existing
            if sheet.get("identifier") and self.matches(sheet, book)
        ]
        # Books sharing a group and title match the same sheets
        stale = [sheet for sheet in matched if sheet["identifier"] not in self.trashed]

        # Trash before create, so two copies are never visible at once
        for sheet in stale:
            self.ulysses.trash(sheet["identifier"])
            self.trashed.add(sheet["identifier"])
            self.report.sheets_trashed += 1
            log.info("Trashed old sheet '%s' (%s)", sheet.get("title"), sheet["identifier"])

        self.ulysses.create_sheet(text, group.identifier)
        self.report.sheets_created += 1
        log.info("Created Highlights sheet for '%s'", book.title)

        if self.options.create_notes and not matched and not self._has_notes(existing):
            self.ulysses.create_sheet(NOTES_TEXT, group.identifier)
            self.report.sheets_created += 1
            log.info("Created Notes sheet for '%s'", book.title)

    def _resolve_book_group(self, book: Book, root: LookupResult) -> LookupResult:
        parent = root
        path = f"/{self.options.root_group}"
        for name in group_names(book, self.options.group_by):
            path = f"{path}/{name}"
            parent = self.ulysses.find_or_create_group(
                path, name, parent=parent.identifier, recursive=False,
            )
            if not parent.found:
                self.report.groups_created += 1
        return parent

    def _existing_sheets(self, group: LookupResult) -> List[Sheet]:
        """Sheets of `group` as captured in the root snapshot."""
        if self.snapshot is None or not group.found:
            return []
        return _sheets(find_container(self.snapshot, group.identifier))

    def _has_notes(self, sheets: List[Sheet]) -> bool:
        # A category group is shared between books, so its Notes sheets
        # can't be attributed to any one of them
        if self.options.group_by == "category":
            return False
        return any(sheet.get("title") == NOTES_TITLE for sheet in sheets)


def run_sync(
    readwise: ReadwiseClient,
    ulysses: UlyssesClient,
    options: Optional[SyncOptions] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> SyncReport:
    """Run one full sync and return what it did."""
    return Synchronizer(readwise, ulysses, options, sleep).run()
