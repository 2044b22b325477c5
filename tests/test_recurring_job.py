import asyncio

from conftest import TODO_DB_ID
from jobs.recurring_todos import inject_for_widget, read_tokens, start_watching, token_from_embed
from shelfnote.services.config_codec import build_todo_widget_config, encode_config
from shelfnote.services.kv_store import InMemoryKeyValueStore


def test_token_from_embed():
    assert token_from_embed("https://w.example/todo-widget/abc_-123?x=1") == "abc_-123"
    assert token_from_embed("abc_-123\n") == "abc_-123"


def test_read_tokens_from_args_and_file(tmp_path):
    listing = tmp_path / "widgets.txt"
    listing.write_text("# mine\nhttps://w.example/todo-widget/t2\n\n", encoding="utf-8")
    assert read_tokens(["t1", "--file", str(listing)]) == ["t1", "t2"]


def test_job_injects_once(notion):
    token = encode_config(build_todo_widget_config("secret_x", TODO_DB_ID, "날짜", "제목", recurring_todos=["운동", "일기"]))
    store = InMemoryKeyValueStore()

    assert asyncio.run(inject_for_widget(token, store, "2025-01-31")) == 2
    assert asyncio.run(inject_for_widget(token, store, "2025-01-31")) == 2

    pages = notion.pages_for(TODO_DB_ID)
    assert len(pages) == 1
    assert notion.todo_texts(pages[0]["id"]) == ["운동", "일기"]


def test_watch_moves_to_the_new_day_after_midnight(notion):
    token = encode_config(build_todo_widget_config("secret_x", TODO_DB_ID, "날짜", "제목", recurring_todos=["운동"]))
    store = InMemoryKeyValueStore()
    day = ["2025-01-31"]

    async def scenario():
        [controller] = await start_watching([token, "garbage"], store, today=lambda: day[0])
        assert len(controller._timers) == 2
        day[0] = "2025-02-01"
        assert await controller.check_date_change() is True
        await controller.stop()
        return controller

    controller = asyncio.run(scenario())
    assert controller.target_date == "2025-02-01"
    assert controller._timers == []
    pages = notion.pages_for(TODO_DB_ID)
    assert len(pages) == 2
    assert [notion.todo_texts(p["id"]) for p in pages] == [["운동"], ["운동"]]
