import asyncio

import pytest

from shelfnote.modules.todo_list import MAX_TODOS, TodoListController, is_pending, sort_todos
from shelfnote.schemas import TodoItem, TodoPage
from shelfnote.services.kv_store import InMemoryKeyValueStore, recurring_marker_key

DATE = "2025-01-31"


class FakeBackend:
    """In-memory TodoBackend. Set `failing` to make a method raise."""

    def __init__(self, todos=None):
        self.todos = list(todos or [])
        self.failing = set()
        self.calls = []
        self.next_id = 100

    def _check(self, name):
        self.calls.append(name)
        if name in self.failing:
            raise RuntimeError(f"{name} refused")

    async def get_page(self, date):
        self._check("get_page")
        return TodoPage(id="page", date=date, title=f"{date} 할 일", todos=list(self.todos))

    async def add(self, date, text):
        self._check("add")
        self.next_id += 1
        item = TodoItem(id=f"real-{self.next_id}", text=text)
        self.todos.append(item)
        return item

    async def set_completed(self, todo_id, completed):
        self._check("set_completed")

    async def set_important(self, todo_id, important):
        self._check("set_important")

    async def delete(self, todo_id):
        self._check("delete")


def item(id, text=None, completed=False, important=False):
    return TodoItem(id=id, text=text or id, completed=completed, is_important=important)


def controller(backend=None, **kwargs):
    kwargs.setdefault("today", lambda: DATE)
    return TodoListController(backend, database_id="db1", **kwargs)


# ─── Sorting ──────────────────────────────────────────────

def test_sort_bands_and_stability():
    todos = [
        item("a"), item("b", completed=True, important=True), item("c", important=True),
        item("d"), item("e", completed=True), item("f", important=True),
    ]
    assert [t.id for t in sort_todos(todos)] == ["c", "f", "a", "d", "b", "e"]


def test_sort_does_not_touch_input():
    todos = [item("a", completed=True), item("b")]
    sort_todos(todos)
    assert [t.id for t in todos] == ["a", "b"]


# ─── Loading & recurring items ────────────────────────────

def test_load_fetches_todos():
    ctl = controller(FakeBackend([item("1")]))
    asyncio.run(ctl.load())
    assert [t.id for t in ctl.todos] == ["1"]
    assert ctl.loading is False
    assert ctl.error is None


def test_recurring_items_are_added_once_per_day():
    backend = FakeBackend([item("1", "물 마시기")])
    store = InMemoryKeyValueStore()
    ctl = controller(backend, recurring_todos=["물 마시기", "운동", "", "일기"], store=store)

    asyncio.run(ctl.load())
    assert [t.text for t in ctl.todos] == ["물 마시기", "운동", "일기"]
    assert backend.calls.count("add") == 2
    assert store.get(recurring_marker_key("db1")) == DATE

    asyncio.run(ctl.load())
    assert backend.calls.count("add") == 2
    assert len(ctl.todos) == 3


def test_recurring_marker_is_per_database_and_day():
    store = InMemoryKeyValueStore({recurring_marker_key("db1"): "2025-01-30"})
    backend = FakeBackend()
    ctl = controller(backend, recurring_todos=["운동"], store=store)
    asyncio.run(ctl.load())
    assert [t.text for t in ctl.todos] == ["운동"]


def test_failed_recurring_add_still_sets_marker():
    backend = FakeBackend()
    backend.failing.add("add")
    store = InMemoryKeyValueStore()
    ctl = controller(backend, recurring_todos=["운동"], store=store)
    asyncio.run(ctl.load())
    assert ctl.todos == []
    assert store.get(recurring_marker_key("db1")) == DATE


def test_refresh_never_injects():
    backend = FakeBackend()
    ctl = controller(backend, recurring_todos=["운동"])
    asyncio.run(ctl.refresh())
    assert "add" not in backend.calls


def test_load_failure_sets_error():
    backend = FakeBackend()
    backend.failing.add("get_page")
    ctl = controller(backend)
    asyncio.run(ctl.load())
    assert "refused" in ctl.error
    assert ctl.loading is False


# ─── Date handling ────────────────────────────────────────

def test_date_rollover_reloads():
    days = iter(["2025-01-31", "2025-01-31", "2025-02-01"])
    backend = FakeBackend()
    ctl = controller(backend, today=lambda: next(days))

    assert asyncio.run(ctl.check_date_change()) is False
    assert asyncio.run(ctl.check_date_change()) is True
    assert ctl.current_date == "2025-02-01"
    assert backend.calls == ["get_page"]


def test_pinned_date_is_not_moved_by_rollover():
    days = iter(["2025-01-31", "2025-02-01"])
    backend = FakeBackend()
    ctl = controller(backend, selected_date="2025-01-15", today=lambda: next(days))
    asyncio.run(ctl.check_date_change())
    assert ctl.target_date == "2025-01-15"
    assert backend.calls == []


def test_timers_start_and_stop():
    async def run():
        ctl = controller(FakeBackend())
        ctl.start()
        assert len(ctl._timers) == 2
        await ctl.stop()
        assert ctl._timers == []

    asyncio.run(run())


# ─── Mutations ────────────────────────────────────────────

def test_add_swaps_temp_id_for_real_one():
    backend = FakeBackend()
    ctl = controller(backend)
    ctl.new_todo_text = "  장보기  "
    added = asyncio.run(ctl.add())
    assert added.id.startswith("real-")
    assert [t.text for t in ctl.todos] == ["장보기"]
    assert ctl.new_todo_text == ""


def test_add_rejects_blank_and_full_list():
    backend = FakeBackend()
    ctl = controller(backend)
    assert asyncio.run(ctl.add("   ")) is None

    ctl.todos = [item(str(i)) for i in range(MAX_TODOS)]
    assert asyncio.run(ctl.add("one more")) is None
    assert len(ctl.todos) == MAX_TODOS
    assert "add" not in backend.calls


def test_failed_add_is_rolled_back():
    backend = FakeBackend()
    backend.failing.add("add")
    ctl = controller(backend)
    assert asyncio.run(ctl.add("x")) is None
    assert ctl.todos == []


class GatedBackend(FakeBackend):
    """add() waits until `release` is set."""

    def __init__(self):
        super().__init__()
        self.release = None

    async def add(self, date, text):
        await self.release.wait()
        return await super().add(date, text)


@pytest.mark.parametrize("fails", [False, True])
def test_temp_item_is_shown_until_notion_answers(fails):
    backend = GatedBackend()
    if fails:
        backend.failing.add("add")
    ctl = controller(backend)

    async def run():
        backend.release = asyncio.Event()
        task = asyncio.create_task(ctl.add("장보기"))
        await asyncio.sleep(0.01)
        assert len(ctl.todos) == 1
        assert ctl.todos[0].id.startswith("temp-")
        assert ctl.todos[0].text == "장보기"
        backend.release.set()
        return await task

    added = asyncio.run(run())
    if fails:
        assert added is None
        assert ctl.todos == []
    else:
        assert [t.id for t in ctl.todos] == [added.id]
        assert added.id.startswith("real-")


def test_toggle_is_reverted_when_notion_refuses():
    backend = FakeBackend()
    backend.failing.update({"set_completed", "set_important"})
    ctl = controller(backend)
    ctl.todos = [item("1")]

    assert asyncio.run(ctl.toggle_completed("1")) is False
    assert asyncio.run(ctl.toggle_important("1")) is False
    assert ctl.todos[0].completed is False
    assert ctl.todos[0].is_important is False


def test_toggle_succeeds():
    ctl = controller(FakeBackend())
    ctl.todos = [item("1")]
    assert asyncio.run(ctl.toggle_completed("1")) is True
    assert asyncio.run(ctl.toggle_important("1")) is True
    assert ctl.todos[0].completed and ctl.todos[0].is_important


def test_pending_items_stay_local():
    backend = FakeBackend()
    ctl = controller(backend)
    ctl.todos = [item("temp-abc")]
    assert is_pending("temp-abc")
    assert asyncio.run(ctl.toggle_completed("temp-abc")) is True
    assert asyncio.run(ctl.delete("temp-abc")) is True
    assert backend.calls == []


def test_failed_delete_puts_item_back_at_the_end():
    backend = FakeBackend()
    backend.failing.add("delete")
    ctl = controller(backend)
    ctl.todos = [item("1"), item("2"), item("3")]
    assert asyncio.run(ctl.delete("1")) is False
    assert [t.id for t in ctl.todos] == ["2", "3", "1"]


def test_unknown_id_is_ignored():
    ctl = controller(FakeBackend())
    assert asyncio.run(ctl.toggle_completed("nope")) is False


# ─── Preview ──────────────────────────────────────────────

def test_preview_mode_is_local_only():
    ctl = controller(None)
    asyncio.run(ctl.load())
    assert ctl.preview
    assert len(ctl.todos) == 3

    added = asyncio.run(ctl.add("새 할 일"))
    assert not is_pending(added.id)
    assert asyncio.run(ctl.delete(added.id)) is True
    assert len(ctl.todos) == 3


@pytest.mark.parametrize("todo_id", ["1", "2"])
def test_preview_toggle(todo_id):
    ctl = controller(None)
    asyncio.run(ctl.load())
    before = next(t for t in ctl.todos if t.id == todo_id).completed
    asyncio.run(ctl.toggle_completed(todo_id))
    assert next(t for t in ctl.todos if t.id == todo_id).completed is not before
