"""
notion.py — Notion Knowledge-Base Gateway
===========================================
Every read and write the widgets make against the user's Notion workspace.

Two kinds of records:
- Book entries: one database row per saved book (title / author / cover / status).
- To-dos: one page per calendar date, whose to_do blocks are the checklist.

    Database "Daily"
      └─ page  날짜=2026-10-19  제목="2026-10-19 할 일"
           ├─ [ ] 장보기
           ├─ [x] ♥︎ 운동        ← "♥︎ " prefix = important
           └─ [ ] 책 읽기

Everything here is a thin, stateless call. No caching, no retries.
When Notion says no, its message is passed through unchanged as a
NotionAPIError and the caller decides what to show.
"""

import re
from typing import Optional

import httpx
import notion_client
from notion_client.errors import APIResponseError, HTTPResponseError, RequestTimeoutError

from shelfnote.config import settings
from shelfnote.schemas import (
    BookDatabaseConfig, BookPropertyMap, BookResult, DatabaseSummary,
    TodoDatabaseConfig, TodoItem, TodoPage, TodoPropertyMap,
)
from shelfnote.services.schema_detector import (
    columns_from_notion, detect_book_properties, detect_todo_properties,
)

IMPORTANT_MARKER = "♥︎"
_IMPORTANT_PREFIX = re.compile(r"^" + re.escape(IMPORTANT_MARKER) + r"\s*")

# New books always start here; there is no way to pick another status on save
INITIAL_BOOK_STATUS = "읽고 싶은 책"
UNTITLED_DATABASE = "제목 없음"

# Role annotations Aladin appends to author names: "룰루 밀러 (지은이), 정지인 (옮긴이)"
_AUTHOR_ROLE_SUFFIXES = [
    re.compile(r"\s*\([^)]*이\)"),   # (지은이), (옮긴이), (엮은이)...
    re.compile(r"\s*\(글\)"),
    re.compile(r"\s*\(그림\)"),
]


class NotionAPIError(Exception):
    """Notion (or the network in front of it) refused a request."""

    def __init__(self, message: str, status_code: Optional[int] = None, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code


# ============================================================
# HTTP client
# ============================================================

class NotionClient:
    """
    The few Notion endpoints the widgets use, on top of notion_client.AsyncClient.

    Use as a context manager so the underlying connection pool is closed:
        async with NotionClient(api_key) as notion:
            db = await notion.retrieve_database(database_id)
    """

    # Tests swap this for an httpx.MockTransport
    transport: Optional[httpx.AsyncBaseTransport] = None

    def __init__(self, api_key: str):
        self.api_key = api_key
        self._client: Optional[notion_client.AsyncClient] = None

    async def __aenter__(self) -> "NotionClient":
        self._client = notion_client.AsyncClient(
            auth=self.api_key,
            client=httpx.AsyncClient(transport=self.transport),
            base_url=settings.notion_api_url,
            notion_version=settings.notion_version,
            timeout_ms=int(settings.http_timeout * 1000),
        )
        return self

    async def __aexit__(self, *exc_info):
        await self._client.aclose()
        self._client = None

    async def request(self, method: str, path: str, body: dict = None, params: dict = None) -> dict:
        try:
            return await self._client.request(path=path.lstrip("/"), method=method, query=params, body=body)
        except APIResponseError as e:
            raise NotionAPIError(str(e), status_code=e.status, code=getattr(e.code, "value", e.code)) from e
        except HTTPResponseError as e:
            raise NotionAPIError(str(e) or f"Notion returned HTTP {e.status}", status_code=e.status) from e
        except (RequestTimeoutError, httpx.HTTPError) as e:
            raise NotionAPIError(f"Notion request failed: {e}") from e

    # --- Databases ---

    async def search_databases(self) -> dict:
        return await self.request("POST", "/search", {
            "filter": {"property": "object", "value": "database"},
        })

    async def retrieve_database(self, database_id: str) -> dict:
        return await self.request("GET", f"/databases/{database_id}")

    async def query_database(self, database_id: str, filter: dict = None, sorts: list = None) -> dict:
        body = {}
        if filter:
            body["filter"] = filter
        if sorts:
            body["sorts"] = sorts
        return await self.request("POST", f"/databases/{database_id}/query", body)

    # --- Pages ---

    async def create_page(self, database_id: str, properties: dict) -> dict:
        return await self.request("POST", "/pages", {
            "parent": {"database_id": database_id},
            "properties": properties,
        })

    # --- Blocks ---

    async def list_block_children(self, block_id: str) -> dict:
        return await self.request("GET", f"/blocks/{block_id}/children", params={"page_size": 100})

    async def append_block_children(self, block_id: str, children: list) -> dict:
        return await self.request("PATCH", f"/blocks/{block_id}/children", {"children": children})

    async def retrieve_block(self, block_id: str) -> dict:
        return await self.request("GET", f"/blocks/{block_id}")

    async def update_block(self, block_id: str, body: dict) -> dict:
        return await self.request("PATCH", f"/blocks/{block_id}", body)

    async def delete_block(self, block_id: str) -> dict:
        return await self.request("DELETE", f"/blocks/{block_id}")


# ============================================================
# Helpers
# ============================================================

def plain_text(rich_text: list) -> str:
    return "".join(
        rt.get("plain_text") or rt.get("text", {}).get("content", "")
        for rt in rich_text or []
    )


def _text(content: str) -> list:
    return [{"type": "text", "text": {"content": content}}]


def split_important(text: str) -> tuple[str, bool]:
    """'♥︎ 운동' → ('운동', True); '운동' → ('운동', False)."""
    if text.startswith(IMPORTANT_MARKER):
        return _IMPORTANT_PREFIX.sub("", text, count=1), True
    return text, False


def set_important(text: str, important: bool) -> str:
    """Strip any existing marker, then re-add exactly one if important."""
    cleaned = _IMPORTANT_PREFIX.sub("", text, count=1)
    return f"{IMPORTANT_MARKER} {cleaned}" if important else cleaned


def clean_author(author: str) -> str:
    for pattern in _AUTHOR_ROLE_SUFFIXES:
        author = pattern.sub("", author)
    return author.strip()


def default_todo_title(date: str) -> str:
    return f"{date} 할 일"


def _page_title(page: dict, title_property: str) -> str:
    prop = page.get("properties", {}).get(title_property) or {}
    return plain_text(prop.get("title", []))


def parse_todo_block(block: dict) -> TodoItem:
    text, important = split_important(plain_text(block["to_do"].get("rich_text", [])))
    return TodoItem(
        id=block["id"],
        text=text,
        completed=bool(block["to_do"].get("checked")),
        priority="medium",
        is_important=important,
        created_at=block.get("created_time", ""),
        updated_at=block.get("last_edited_time", ""),
    )


# ============================================================
# Databases & schema
# ============================================================

async def list_databases(api_key: str) -> list[DatabaseSummary]:
    async with NotionClient(api_key) as notion:
        response = await notion.search_databases()

    return [
        DatabaseSummary(
            id=result["id"],
            title=plain_text(result.get("title", [])[:1]) or UNTITLED_DATABASE,
        )
        for result in response.get("results", [])
    ]


async def _database_columns(api_key: str, database_id: str) -> list[tuple[str, str]]:
    async with NotionClient(api_key) as notion:
        database = await notion.retrieve_database(database_id)
    return columns_from_notion(database.get("properties", {}))


async def analyze_book_database(api_key: str, database_id: str) -> BookPropertyMap:
    """Raises SchemaDetectionError if the database has no title column."""
    return detect_book_properties(await _database_columns(api_key, database_id))


async def analyze_todo_database(api_key: str, database_id: str) -> TodoPropertyMap:
    """Raises SchemaDetectionError if the database lacks a date or title column."""
    return detect_todo_properties(await _database_columns(api_key, database_id))


# ============================================================
# Books
# ============================================================

def build_book_properties(config: BookDatabaseConfig, book: BookResult) -> dict:
    """Only roles with a mapped column get written; "" means skip."""
    properties = {}

    if config.title_property:
        properties[config.title_property] = {"title": _text(book.title or "")}

    if config.author_property and book.author:
        properties[config.author_property] = {"rich_text": _text(clean_author(book.author))}

    if config.cover_property and book.cover:
        if config.cover_property_type == "files":
            properties[config.cover_property] = {
                "files": [{
                    "type": "external",
                    "name": "cover.jpg",
                    "external": {"url": book.cover},
                }],
            }
        else:
            properties[config.cover_property] = {"url": book.cover}

    if config.status_property:
        properties[config.status_property] = {"select": {"name": INITIAL_BOOK_STATUS}}

    return properties


async def create_book_entry(config: BookDatabaseConfig, book: BookResult) -> str:
    """Save a search result as a new row. Returns the Notion page id."""
    properties = build_book_properties(config, book)
    print(f"📚 Saving book to Notion: {book.title} (cover: {book.cover or 'none'})")

    async with NotionClient(config.api_key) as notion:
        page = await notion.create_page(config.database_id, properties)

    print(f"✓ Book saved: {page['id']}")
    return page["id"]


# ============================================================
# To-dos
# ============================================================

async def _find_date_page(notion: NotionClient, config: TodoDatabaseConfig, date: str) -> Optional[dict]:
    """
    Newest page whose date column equals `date`, or None.
    Duplicates (two devices racing to create the day's page) are ignored, not merged.
    """
    response = await notion.query_database(
        config.database_id,
        filter={"property": config.date_property, "date": {"equals": date}},
        sorts=[{"property": config.date_property, "direction": "descending"}],
    )
    results = response.get("results", [])
    if len(results) > 1:
        print(f"⚠ {len(results)} pages for {date}; using the newest")
    return results[0] if results else None


async def get_todos_for_date(config: TodoDatabaseConfig, date: str) -> TodoPage:
    """The day's checklist. A day with no page yet gets an empty synthetic page (nothing is created)."""
    async with NotionClient(config.api_key) as notion:
        page = await _find_date_page(notion, config, date)
        if page is None:
            return TodoPage(id="", date=date, title=default_todo_title(date), todos=[], page_url="")

        blocks = await notion.list_block_children(page["id"])

    todos = [
        parse_todo_block(block)
        for block in blocks.get("results", [])
        if block.get("type") == "to_do"
    ]
    return TodoPage(
        id=page["id"],
        date=date,
        title=_page_title(page, config.title_property) or default_todo_title(date),
        todos=todos,
        page_url=page.get("url", ""),
    )


async def add_todo(config: TodoDatabaseConfig, date: str, text: str) -> TodoItem:
    """Append an unchecked item to the day's page, creating the page first if needed."""
    async with NotionClient(config.api_key) as notion:
        page = await _find_date_page(notion, config, date)
        if page is None:
            page = await notion.create_page(config.database_id, {
                config.date_property: {"date": {"start": date}},
                config.title_property: {"title": _text(default_todo_title(date))},
            })
            print(f"✓ Created page for {date}: {page['id']}")

        response = await notion.append_block_children(page["id"], [{
            "object": "block",
            "type": "to_do",
            "to_do": {"rich_text": _text(text), "checked": False},
        }])

    created = [b for b in response.get("results", []) if b.get("type") == "to_do"]
    if not created:
        raise NotionAPIError("Notion did not return the new to-do block")

    print(f"✓ Added to-do for {date}: {text!r}")
    return parse_todo_block(created[-1])


async def toggle_todo_completed(config: TodoDatabaseConfig, todo_id: str, completed: bool) -> None:
    async with NotionClient(config.api_key) as notion:
        block = await notion.retrieve_block(todo_id)
        # Send back the exact rich text so formatting and links survive
        await notion.update_block(todo_id, {
            "to_do": {"rich_text": block["to_do"].get("rich_text", []), "checked": completed},
        })


async def toggle_todo_important(config: TodoDatabaseConfig, todo_id: str, important: bool) -> None:
    async with NotionClient(config.api_key) as notion:
        block = await notion.retrieve_block(todo_id)
        new_text = set_important(plain_text(block["to_do"].get("rich_text", [])), important)
        await notion.update_block(todo_id, {
            "to_do": {"rich_text": _text(new_text), "checked": bool(block["to_do"].get("checked"))},
        })


async def delete_todo(config: TodoDatabaseConfig, todo_id: str) -> None:
    async with NotionClient(config.api_key) as notion:
        await notion.delete_block(todo_id)


class TodoGateway:
    """The to-do operations above, bound to one widget's database."""

    def __init__(self, config: TodoDatabaseConfig):
        self.config = config

    @classmethod
    def from_widget_config(cls, config: dict) -> "TodoGateway":
        """Loaded to-do widget config (see load_todo_widget) → gateway."""
        db_config = TodoDatabaseConfig(api_key=config["token"], database_id=config["databaseId"])
        if config.get("dateProperty"):
            db_config.date_property = config["dateProperty"]
        if config.get("titleProperty"):
            db_config.title_property = config["titleProperty"]
        return cls(db_config)

    async def get_page(self, date: str) -> TodoPage:
        return await get_todos_for_date(self.config, date)

    async def add(self, date: str, text: str) -> TodoItem:
        return await add_todo(self.config, date, text)

    async def set_completed(self, todo_id: str, completed: bool) -> None:
        await toggle_todo_completed(self.config, todo_id, completed)

    async def set_important(self, todo_id: str, important: bool) -> None:
        await toggle_todo_important(self.config, todo_id, important)

    async def delete(self, todo_id: str) -> None:
        await delete_todo(self.config, todo_id)
