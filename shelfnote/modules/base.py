"""
modules/base.py — Widget Controller Building Blocks
=====================================================
The widgets are state machines that live next to the user (an embed page,
a CLI, a cron job). They share two things:

1. What they talk to. `TodoBackend` is the shape the to-do controller
   needs; services.notion.TodoGateway fits it, and tests hand in fakes.

2. How they mutate. Every change is optimistic:

       apply locally  →  await the remote call  →  failed? revert : reconcile

   The user sees the change instantly; Notion catches up in the background.
   If Notion says no, the local change is undone. Nobody retries.

NOTE ON PYTHON TYPING:
`Protocol` says "anything with these methods will do": TodoGateway never
inherits from TodoBackend, it just happens to have the right methods.
"""

from typing import Any, Awaitable, Callable, Optional, Protocol

from shelfnote.schemas import TodoItem, TodoPage


class TodoBackend(Protocol):
    """What the to-do controller needs from the knowledge base."""

    async def get_page(self, date: str) -> TodoPage:
        ...

    async def add(self, date: str, text: str) -> TodoItem:
        ...

    async def set_completed(self, todo_id: str, completed: bool) -> None:
        ...

    async def set_important(self, todo_id: str, important: bool) -> None:
        ...

    async def delete(self, todo_id: str) -> None:
        ...


async def apply_optimistic(
    apply: Callable[[], None],
    remote: Optional[Callable[[], Awaitable[Any]]],
    revert: Callable[[], None],
    reconcile: Optional[Callable[[Any], None]] = None,
    label: str = "update",
) -> bool:
    """
    Run one optimistic mutation. Returns True if the change stands.

    remote=None means "local only" (preview mode, or an item Notion
    hasn't confirmed yet): the change is applied and nothing is sent.
    """
    apply()
    if remote is None:
        return True

    try:
        result = await remote()
    except Exception as e:
        print(f"✗ {label} failed, rolling back: {e}")
        revert()
        return False

    if reconcile is not None:
        reconcile(result)
    return True
