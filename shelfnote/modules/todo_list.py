"""
modules/todo_list.py — Daily To-Do Widget Controller
=======================================================
Holds the list a to-do widget is showing and keeps it in step with Notion.

Lifecycle:
- load():   fetch today's page, then (once per day per database) add the
            user's recurring items that aren't there yet
- refresh(): plain re-fetch, every 10 minutes while running
- a 1-minute clock check: when midnight passes, switch to the new date
- add / toggle_completed / toggle_important / delete: optimistic,
  rolled back if Notion refuses

Items the widget created but Notion hasn't confirmed carry a "temp-" id.
Toggling or deleting those never reaches Notion; there's nothing there yet.

Preview mode (no backend): sample items, every change stays local.
"""

import asyncio
import contextlib
import uuid
from datetime import datetime, timezone
from typing import Callable, Optional

from shelfnote.modules.base import TodoBackend, apply_optimistic
from shelfnote.schemas import TodoItem
from shelfnote.services.kv_store import InMemoryKeyValueStore, KeyValueStore, recurring_marker_key

MAX_TODOS = 10
REFRESH_INTERVAL_SECONDS = 10 * 60
DATE_CHECK_INTERVAL_SECONDS = 60
TEMP_ID_PREFIX = "temp-"


def local_today() -> str:
    """Today's date in the machine's local time zone, YYYY-MM-DD."""
    return datetime.now().strftime("%Y-%m-%d")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def is_pending(todo_id: str) -> bool:
    return todo_id.startswith(TEMP_ID_PREFIX)


def sort_todos(todos: list[TodoItem]) -> list[TodoItem]:
    """
    Display order: important & open, then open, then done.
    Done items sink regardless of importance. Stable: ties keep input order.
    """
    def band(todo: TodoItem) -> int:
        if todo.completed:
            return 2
        return 0 if todo.is_important else 1

    return sorted(todos, key=band)


def sample_todos() -> list[TodoItem]:
    now = _now_iso()
    return [
        TodoItem(id="1", text="밥 먹기", priority="high", is_important=True, created_at=now, updated_at=now),
        TodoItem(id="2", text="약속가기", priority="medium", created_at=now, updated_at=now),
        TodoItem(id="3", text="공부", completed=True, priority="high", is_important=True, created_at=now, updated_at=now),
    ]


class TodoListController:

    def __init__(
        self,
        backend: Optional[TodoBackend],
        database_id: str = "",
        recurring_todos: Optional[list[str]] = None,
        store: Optional[KeyValueStore] = None,
        selected_date: Optional[str] = None,
        today: Callable[[], str] = local_today,
    ):
        self.backend = backend
        self.database_id = database_id
        self.recurring_todos = recurring_todos or []
        self.store = store or InMemoryKeyValueStore()
        self.selected_date = selected_date
        self._today = today

        self.current_date = today()
        self.todos: list[TodoItem] = []
        self.new_todo_text = ""
        self.loading = True
        self.refreshing = False
        self.error: Optional[str] = None

        self._timers: list[asyncio.Task] = []

    @property
    def preview(self) -> bool:
        return self.backend is None

    @property
    def target_date(self) -> str:
        return self.selected_date or self.current_date

    def sorted_todos(self) -> list[TodoItem]:
        return sort_todos(self.todos)

    # ─── Loading ──────────────────────────────────────────────

    async def load(self) -> None:
        """Mount / date change / config change: fetch, then inject recurring items once per day."""
        if self.preview:
            self.todos = sample_todos()
            self.loading = False
            return

        date = self.target_date
        self.loading = True
        try:
            todos = (await self.backend.get_page(date)).todos
            if await self._inject_recurring(date, todos):
                todos = (await self.backend.get_page(date)).todos
            self.todos = todos
            self.error = None
        except Exception as e:
            self.error = str(e)
            print(f"✗ Failed to load to-dos for {date}: {e}")
        finally:
            self.loading = False

    async def _inject_recurring(self, date: str, todos: list[TodoItem]) -> bool:
        """Add today's missing recurring items. Returns True if anything was added."""
        if not self.recurring_todos:
            return False

        marker_key = recurring_marker_key(self.database_id)
        if self.store.get(marker_key) == date:
            return False

        existing = [t.text for t in todos]
        added = []
        # One at a time: Notion keeps append order, and the first add may create the page
        for raw in self.recurring_todos:
            text = (raw or "").strip()
            if not text or text in existing:
                continue
            try:
                await self.backend.add(date, text)
            except Exception as e:
                print(f"✗ Recurring to-do {text!r} not added: {e}")
                continue
            existing.append(text)
            added.append(text)

        self.store.set(marker_key, date)
        if added:
            print(f"✓ Recurring to-dos added for {date}: {', '.join(added)}")
        return bool(added)

    async def refresh(self) -> None:
        """Re-fetch the whole list. Never re-runs recurring injection."""
        if self.preview:
            return
        self.refreshing = True
        try:
            self.todos = (await self.backend.get_page(self.target_date)).todos
            self.error = None
        except Exception as e:
            self.error = str(e)
            print(f"✗ Refresh failed: {e}")
        finally:
            self.refreshing = False

    async def select_date(self, date: Optional[str]) -> None:
        """Pin the widget to a date (None = follow the clock) and reload."""
        self.selected_date = date
        await self.load()

    async def check_date_change(self) -> bool:
        """Called every minute. After midnight, move to the new day."""
        new_date = self._today()
        if new_date == self.current_date:
            return False

        print(f"🌅 Date changed: {self.current_date} → {new_date}")
        self.current_date = new_date
        if not self.selected_date:
            await self.load()
        return True

    # ─── Timers ───────────────────────────────────────────────

    def start(self) -> None:
        """Start the 10-minute refresh and the 1-minute date check. Needs a running loop."""
        if self._timers:
            return
        self._timers = [
            asyncio.create_task(self._every(REFRESH_INTERVAL_SECONDS, self.refresh)),
            asyncio.create_task(self._every(DATE_CHECK_INTERVAL_SECONDS, self.check_date_change)),
        ]

    async def stop(self) -> None:
        timers, self._timers = self._timers, []
        for task in timers:
            task.cancel()
        for task in timers:
            with contextlib.suppress(asyncio.CancelledError):
                await task

    @staticmethod
    async def _every(seconds: float, action) -> None:
        while True:
            await asyncio.sleep(seconds)
            await action()

    # ─── Mutations ────────────────────────────────────────────

    def _find(self, todo_id: str) -> Optional[TodoItem]:
        return next((t for t in self.todos if t.id == todo_id), None)

    def _patch(self, todo_id: str, **changes) -> None:
        changes["updated_at"] = _now_iso()
        self.todos = [
            t.model_copy(update=changes) if t.id == todo_id else t
            for t in self.todos
        ]

    def _remote(self, todo_id: str, call):
        """Local-only when previewing or when Notion doesn't know the item yet."""
        if self.preview or is_pending(todo_id):
            return None
        return call

    async def add(self, text: Optional[str] = None) -> Optional[TodoItem]:
        """
        Add an item (defaults to whatever is in new_todo_text).
        Returns the item now in the list, or None if rejected or rolled back.
        """
        text = (self.new_todo_text if text is None else text).strip()
        if not text:
            return None
        if len(self.todos) >= MAX_TODOS:
            print(f"⚠ To-do limit reached ({MAX_TODOS}), not adding {text!r}")
            return None

        self.new_todo_text = ""
        now = _now_iso()
        temp = TodoItem(
            id=f"{TEMP_ID_PREFIX}{uuid.uuid4().hex[:12]}",
            text=text,
            created_at=now,
            updated_at=now,
        )
        if self.preview:
            temp = temp.model_copy(update={"id": uuid.uuid4().hex[:12]})

        confirmed = {"item": temp}
        date = self.target_date

        def reconcile(item: TodoItem) -> None:
            confirmed["item"] = item
            self.todos = [item if t.id == temp.id else t for t in self.todos]

        ok = await apply_optimistic(
            apply=lambda: self.todos.append(temp),
            remote=None if self.preview else (lambda: self.backend.add(date, text)),
            revert=lambda: setattr(self, "todos", [t for t in self.todos if t.id != temp.id]),
            reconcile=reconcile,
            label="Add to-do",
        )
        return confirmed["item"] if ok else None

    async def toggle_completed(self, todo_id: str) -> bool:
        todo = self._find(todo_id)
        if todo is None:
            return False
        before = todo.completed

        return await apply_optimistic(
            apply=lambda: self._patch(todo_id, completed=not before),
            remote=self._remote(todo_id, lambda: self.backend.set_completed(todo_id, not before)),
            revert=lambda: self._patch(todo_id, completed=before),
            label="Toggle to-do",
        )

    async def toggle_important(self, todo_id: str) -> bool:
        todo = self._find(todo_id)
        if todo is None:
            return False
        before = todo.is_important

        return await apply_optimistic(
            apply=lambda: self._patch(todo_id, is_important=not before),
            remote=self._remote(todo_id, lambda: self.backend.set_important(todo_id, not before)),
            revert=lambda: self._patch(todo_id, is_important=before),
            label="Toggle important",
        )

    async def delete(self, todo_id: str) -> bool:
        todo = self._find(todo_id)
        if todo is None:
            return False

        # A failed delete puts the item back at the end, not where it was
        return await apply_optimistic(
            apply=lambda: setattr(self, "todos", [t for t in self.todos if t.id != todo_id]),
            remote=self._remote(todo_id, lambda: self.backend.delete(todo_id)),
            revert=lambda: self.todos.append(todo),
            label="Delete to-do",
        )
