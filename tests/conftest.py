"""
Shared fixtures: an in-memory Notion workspace behind httpx.MockTransport,
and a canned book-search provider.
"""

import itertools
import json
import re

import httpx
import pytest

from shelfnote.schemas import BookResult
from shelfnote.services.book_search import pastel_color
from shelfnote.services.notion import NotionClient

BOOK_DB_ID = "a" * 32
TODO_DB_ID = "b" * 32


def _rich_text(items: list) -> list:
    """What Notion echoes back for rich text we sent it."""
    out = []
    for item in items or []:
        content = item.get("plain_text") or item.get("text", {}).get("content", "")
        out.append({"type": "text", "text": {"content": content}, "plain_text": content})
    return out


class FakeNotion:
    """Just enough of the Notion REST API for the gateway, kept in dicts."""

    def __init__(self):
        self.databases = {}
        self.pages = []
        self.blocks = {}
        self.children = {}
        self.calls = []
        self.fail = set()
        self._ids = itertools.count(1)

    # --- Seeding ---

    def add_database(self, database_id: str, title: str, properties: dict):
        self.databases[database_id] = {
            "object": "database",
            "id": database_id,
            "title": [{"plain_text": title}] if title else [],
            "properties": {name: {"type": t} for name, t in properties.items()},
        }

    def add_page(self, database_id: str, properties: dict) -> dict:
        page = {
            "object": "page",
            "id": f"page-{next(self._ids)}",
            "parent": {"database_id": database_id},
            "properties": properties,
            "url": "",
        }
        page["url"] = f"https://www.notion.so/{page['id']}"
        self.pages.append(page)
        self.children[page["id"]] = []
        return page

    def add_block(self, parent_id: str, text: str, checked: bool = False) -> dict:
        block = {
            "object": "block",
            "id": f"block-{next(self._ids)}",
            "type": "to_do",
            "to_do": {"rich_text": _rich_text([{"text": {"content": text}}]), "checked": checked},
            "created_time": "2025-01-31T00:00:00.000Z",
            "last_edited_time": "2025-01-31T00:00:00.000Z",
        }
        self.blocks[block["id"]] = block
        self.children[parent_id].append(block["id"])
        return block

    def pages_for(self, database_id: str) -> list[dict]:
        return [p for p in self.pages if p["parent"]["database_id"] == database_id]

    def todo_texts(self, page_id: str) -> list[str]:
        return [
            "".join(rt["plain_text"] for rt in self.blocks[b]["to_do"]["rich_text"])
            for b in self.children[page_id]
        ]

    def count(self, method: str, pattern: str) -> int:
        return sum(1 for m, p in self.calls if m == method and re.fullmatch(pattern, p))

    # --- Transport ---

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path.removeprefix("/v1")
        method = request.method
        self.calls.append((method, path))
        body = json.loads(request.content) if request.content else {}

        if (method, path) in self.fail:
            return httpx.Response(400, json={"object": "error", "code": "validation_error", "message": "boom"})

        if method == "POST" and path == "/search":
            return httpx.Response(200, json={"results": list(self.databases.values())})

        m = re.fullmatch(r"/databases/([^/]+)(/query)?", path)
        if m:
            database_id, query = m.groups()
            if database_id not in self.databases:
                return httpx.Response(404, json={
                    "object": "error", "code": "object_not_found",
                    "message": f"Could not find database with ID: {database_id}.",
                })
            if not query:
                return httpx.Response(200, json=self.databases[database_id])
            return httpx.Response(200, json={"results": self._query(database_id, body)})

        if method == "POST" and path == "/pages":
            page = self.add_page(body["parent"]["database_id"], body["properties"])
            return httpx.Response(200, json=page)

        m = re.fullmatch(r"/blocks/([^/]+)/children", path)
        if m:
            parent_id = m.group(1)
            if parent_id not in self.children:
                return httpx.Response(404, json={"object": "error", "code": "object_not_found", "message": "no page"})
            if method == "GET":
                return httpx.Response(200, json={"results": [self.blocks[b] for b in self.children[parent_id]]})
            created = []
            for child in body["children"]:
                block = self.add_block(parent_id, "", child["to_do"].get("checked", False))
                block["to_do"]["rich_text"] = _rich_text(child["to_do"]["rich_text"])
                created.append(block)
            return httpx.Response(200, json={"results": created})

        m = re.fullmatch(r"/blocks/([^/]+)", path)
        if m:
            block_id = m.group(1)
            block = self.blocks.get(block_id)
            if block is None:
                return httpx.Response(404, json={"object": "error", "code": "object_not_found", "message": "no block"})
            if method == "GET":
                return httpx.Response(200, json=block)
            if method == "PATCH":
                block["to_do"] = {
                    "rich_text": _rich_text(body["to_do"]["rich_text"]),
                    "checked": body["to_do"]["checked"],
                }
                return httpx.Response(200, json=block)
            if method == "DELETE":
                del self.blocks[block_id]
                for kids in self.children.values():
                    if block_id in kids:
                        kids.remove(block_id)
                return httpx.Response(200, json={**block, "archived": True})

        return httpx.Response(400, json={"object": "error", "code": "invalid_request_url", "message": path})

    def _query(self, database_id: str, body: dict) -> list[dict]:
        pages = self.pages_for(database_id)
        flt = body.get("filter")
        if flt and "date" in flt:
            wanted = flt["date"]["equals"]
            pages = [
                p for p in pages
                if (p["properties"].get(flt["property"], {}).get("date") or {}).get("start") == wanted
            ]
        return list(reversed(pages))


@pytest.fixture
def notion(monkeypatch):
    fake = FakeNotion()
    fake.add_database(BOOK_DB_ID, "읽고 싶은 책", {
        "이름": "title", "저자": "rich_text", "표지": "files", "상태": "select",
    })
    fake.add_database(TODO_DB_ID, "Daily", {"제목": "title", "날짜": "date"})
    monkeypatch.setattr(NotionClient, "transport", httpx.MockTransport(fake.handler))
    return fake


class FakeBookProvider:
    name = "fake"

    def __init__(self, count: int = 12, error: Exception = None):
        self.count = count
        self.error = error
        self.queries = []

    async def search(self, query: str, max_results: int = 10):
        self.queries.append((query, max_results))
        if self.error:
            raise self.error
        books = [
            BookResult(id=str(1000 + i), title=f"{query} {i}", author="작가", color=pastel_color(i))
            for i in range(min(max_results, self.count))
        ]
        return books, self.count


@pytest.fixture
def book_provider():
    return FakeBookProvider()
