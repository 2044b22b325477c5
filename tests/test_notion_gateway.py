import asyncio

import pytest

from shelfnote.schemas import BookDatabaseConfig, BookResult, TodoDatabaseConfig
from shelfnote.services import notion as gateway
from shelfnote.services.notion import (
    IMPORTANT_MARKER, INITIAL_BOOK_STATUS, NotionAPIError, build_book_properties,
    clean_author, set_important, split_important,
)
from shelfnote.services.schema_detector import SchemaDetectionError
from conftest import BOOK_DB_ID, TODO_DB_ID

DATE = "2025-01-31"


def todo_config():
    return TodoDatabaseConfig(api_key="secret_x", database_id=TODO_DB_ID)


# ─── Important marker ─────────────────────────────────────

def test_marker_is_heart_with_text_presentation_selector():
    assert IMPORTANT_MARKER == "♥︎"


def test_important_marker_round_trip():
    marked = set_important("buy milk", True)
    assert marked == f"{IMPORTANT_MARKER} buy milk"
    assert split_important(marked) == ("buy milk", True)
    assert set_important(marked, False) == "buy milk"
    assert split_important("buy milk") == ("buy milk", False)


def test_marking_twice_keeps_one_marker():
    assert set_important(set_important("x", True), True) == f"{IMPORTANT_MARKER} x"


def test_clean_author_drops_role_suffixes():
    assert clean_author("룰루 밀러 (지은이), 정지인 (옮긴이)") == "룰루 밀러, 정지인"
    assert clean_author("백희나 (글), 백희나 (그림)") == "백희나, 백희나"


# ─── Books ────────────────────────────────────────────────

def test_book_properties_only_write_mapped_roles():
    book = BookResult(id="1", title="모순", author="양귀자 (지은이)", cover="https://image.aladin.co.kr/1.jpg")
    props = build_book_properties(
        BookDatabaseConfig(api_key="k", database_id="d", title_property="이름", cover_property="표지"),
        book,
    )
    assert set(props) == {"이름", "표지"}
    assert props["표지"]["files"][0]["external"]["url"] == book.cover


def test_book_properties_url_cover_and_status():
    book = BookResult(id="1", title="모순", author="양귀자 (지은이)", cover="https://c/1.jpg")
    config = BookDatabaseConfig(
        api_key="k", database_id="d", title_property="Name", author_property="Author",
        cover_property="Cover", cover_property_type="url", status_property="Status",
    )
    props = build_book_properties(config, book)
    assert props["Cover"] == {"url": "https://c/1.jpg"}
    assert props["Author"]["rich_text"][0]["text"]["content"] == "양귀자"
    assert props["Status"] == {"select": {"name": INITIAL_BOOK_STATUS}}


def test_create_book_entry(notion):
    config = BookDatabaseConfig(api_key="k", database_id=BOOK_DB_ID, title_property="이름")
    page_id = asyncio.run(gateway.create_book_entry(config, BookResult(id="1", title="모순")))
    assert [p["id"] for p in notion.pages_for(BOOK_DB_ID)] == [page_id]


# ─── Databases ────────────────────────────────────────────

def test_list_databases(notion):
    notion.add_database("c" * 32, "", {"Name": "title"})
    databases = asyncio.run(gateway.list_databases("secret_x"))
    titles = {d.id: d.title for d in databases}
    assert titles[BOOK_DB_ID] == "읽고 싶은 책"
    assert titles["c" * 32] == "제목 없음"


def test_analyze_databases(notion):
    book = asyncio.run(gateway.analyze_book_database("k", BOOK_DB_ID))
    assert book.title_property == "이름"
    assert book.status_property == "상태"
    todo = asyncio.run(gateway.analyze_todo_database("k", TODO_DB_ID))
    assert (todo.date_property, todo.title_property) == ("날짜", "제목")


def test_analyze_missing_column_and_unknown_database(notion):
    with pytest.raises(SchemaDetectionError):
        asyncio.run(gateway.analyze_todo_database("k", BOOK_DB_ID))
    with pytest.raises(NotionAPIError) as exc:
        asyncio.run(gateway.analyze_book_database("k", "f" * 32))
    assert exc.value.status_code == 404
    assert "Could not find database" in exc.value.message


# ─── To-dos ───────────────────────────────────────────────

def test_day_without_page_is_empty_and_creates_nothing(notion):
    page = asyncio.run(gateway.get_todos_for_date(todo_config(), DATE))
    assert page.id == ""
    assert page.todos == []
    assert page.title == f"{DATE} 할 일"
    assert notion.pages_for(TODO_DB_ID) == []


def test_add_todo_creates_page_once_then_reuses_it(notion):
    config = todo_config()
    first = asyncio.run(gateway.add_todo(config, DATE, "장보기"))
    second = asyncio.run(gateway.add_todo(config, DATE, "운동"))

    pages = notion.pages_for(TODO_DB_ID)
    assert len(pages) == 1
    assert notion.count("POST", "/pages") == 1
    assert notion.todo_texts(pages[0]["id"]) == ["장보기", "운동"]
    assert first.text == "장보기" and not first.completed
    assert second.id != first.id

    page = asyncio.run(gateway.get_todos_for_date(config, DATE))
    assert page.id == pages[0]["id"]
    assert [t.text for t in page.todos] == ["장보기", "운동"]
    assert page.title == f"{DATE} 할 일"


def test_newest_page_wins_when_a_date_has_two(notion):
    older = notion.add_page(TODO_DB_ID, {"날짜": {"date": {"start": DATE}}})
    newer = notion.add_page(TODO_DB_ID, {"날짜": {"date": {"start": DATE}}})
    notion.add_block(older["id"], "old")
    notion.add_block(newer["id"], "new")
    page = asyncio.run(gateway.get_todos_for_date(todo_config(), DATE))
    assert [t.text for t in page.todos] == ["new"]


def test_toggle_important_rewrites_text_and_keeps_checked(notion):
    page = notion.add_page(TODO_DB_ID, {"날짜": {"date": {"start": DATE}}})
    block = notion.add_block(page["id"], "운동", checked=True)

    asyncio.run(gateway.toggle_todo_important(todo_config(), block["id"], True))
    assert notion.todo_texts(page["id"]) == [f"{IMPORTANT_MARKER} 운동"]
    assert notion.blocks[block["id"]]["to_do"]["checked"] is True

    todo = asyncio.run(gateway.get_todos_for_date(todo_config(), DATE)).todos[0]
    assert todo.text == "운동" and todo.is_important

    asyncio.run(gateway.toggle_todo_important(todo_config(), block["id"], False))
    assert notion.todo_texts(page["id"]) == ["운동"]


def test_toggle_completed_keeps_text(notion):
    page = notion.add_page(TODO_DB_ID, {"날짜": {"date": {"start": DATE}}})
    block = notion.add_block(page["id"], f"{IMPORTANT_MARKER} 책 읽기")
    asyncio.run(gateway.toggle_todo_completed(todo_config(), block["id"], True))
    assert notion.blocks[block["id"]]["to_do"]["checked"] is True
    assert notion.todo_texts(page["id"]) == [f"{IMPORTANT_MARKER} 책 읽기"]


def test_delete_todo(notion):
    page = notion.add_page(TODO_DB_ID, {"날짜": {"date": {"start": DATE}}})
    block = notion.add_block(page["id"], "x")
    asyncio.run(gateway.delete_todo(todo_config(), block["id"]))
    assert notion.todo_texts(page["id"]) == []


def test_notion_errors_pass_through(notion):
    page = notion.add_page(TODO_DB_ID, {"날짜": {"date": {"start": DATE}}})
    block = notion.add_block(page["id"], "x")
    notion.fail.add(("DELETE", f"/blocks/{block['id']}"))
    with pytest.raises(NotionAPIError) as exc:
        asyncio.run(gateway.delete_todo(todo_config(), block["id"]))
    assert exc.value.message == "boom"
    assert exc.value.code == "validation_error"


def test_gateway_from_widget_config():
    backend = gateway.TodoGateway.from_widget_config({
        "token": "secret_x", "databaseId": TODO_DB_ID, "dateProperty": "Day", "titleProperty": None,
    })
    assert backend.config.api_key == "secret_x"
    assert backend.config.database_id == TODO_DB_ID
    assert backend.config.date_property == "Day"
    assert backend.config.title_property == TodoDatabaseConfig(api_key="k", database_id="d").title_property
