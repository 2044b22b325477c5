"""
jobs/recurring_todos.py — Morning Recurring To-Dos
====================================================
The to-do widget adds the user's recurring items the first time it is
opened each day. If nobody opens it, nothing happens. Run this from cron
to have the day's items in Notion before anyone looks.

Pass embed URLs (or just the token part) as arguments, or list them one
per line in a file:

  python -m jobs.recurring_todos https://host/todo-widget/eyJ0b2tl...
  python -m jobs.recurring_todos --file widgets.txt
  python -m jobs.recurring_todos --watch --file widgets.txt

CRON SETUP:
  crontab -e
  # 6am every day:
  0 6 * * * cd /path/to/shelfnote && /path/to/venv/bin/python -m jobs.recurring_todos --file widgets.txt

The same once-per-day marker the widget uses is written here, so the
widget won't add the items a second time.

--watch keeps every widget's list loaded instead of exiting: it re-reads
Notion every 10 minutes and adds the new day's items right after midnight.
"""

import sys
import os
import asyncio
from datetime import datetime
from zoneinfo import ZoneInfo

sys.path.insert(0, os.path.join(os.path.dirname(os.path.abspath(__file__)), ".."))

from shelfnote.config import settings
from shelfnote.database import init_db
from shelfnote.modules.todo_list import TodoListController
from shelfnote.services.config_codec import ConfigTokenError, TODO_WIDGET_ROUTE, load_todo_widget
from shelfnote.services.kv_store import KeyValueStore, SqlKeyValueStore
from shelfnote.services.notion import TodoGateway


def today_in_timezone() -> str:
    return datetime.now(ZoneInfo(settings.timezone)).strftime("%Y-%m-%d")


def token_from_embed(value: str) -> str:
    """Full embed URL or bare token → bare token."""
    value = value.strip().rstrip("/")
    marker = f"/{TODO_WIDGET_ROUTE}/"
    if marker in value:
        value = value.split(marker, 1)[1]
    return value.split("?", 1)[0]


def read_tokens(argv: list[str]) -> list[str]:
    values = []
    args = iter(argv)
    for arg in args:
        if arg == "--file":
            path = next(args, None)
            if not path:
                raise SystemExit("--file needs a path")
            with open(path, encoding="utf-8") as f:
                values.extend(line for line in f if line.strip() and not line.startswith("#"))
        else:
            values.append(arg)
    return [token_from_embed(v) for v in values if v.strip()]


async def inject_for_widget(token: str, store: KeyValueStore, today: str) -> int:
    """Run the widget's daily load for one embed token. Returns how many items it now shows."""
    config = load_todo_widget(token)
    if not config["recurringTodos"]:
        print(f"  {config['databaseId']}: no recurring to-dos, skipping")
        return 0

    controller = TodoListController(
        backend=TodoGateway.from_widget_config(config),
        database_id=config["databaseId"],
        recurring_todos=config["recurringTodos"],
        store=store,
        today=lambda: today,
    )
    await controller.load()
    if controller.error:
        raise RuntimeError(controller.error)
    return len(controller.todos)


async def start_watching(tokens: list[str], store: KeyValueStore, today=today_in_timezone) -> list[TodoListController]:
    """Load each widget and start its refresh / date-change timers. Needs a running loop."""
    controllers = []
    for token in tokens:
        try:
            config = load_todo_widget(token)
        except ConfigTokenError as e:
            print(f"✗ {token[:12]}...: bad embed token ({e})")
            continue
        controller = TodoListController(
            backend=TodoGateway.from_widget_config(config),
            database_id=config["databaseId"],
            recurring_todos=config["recurringTodos"],
            store=store,
            today=today,
        )
        await controller.load()
        controller.start()
        controllers.append(controller)
        print(f"✓ Watching {config['databaseId']}")
    return controllers


async def watch(tokens: list[str], store: KeyValueStore):
    controllers = await start_watching(tokens, store)
    try:
        await asyncio.Event().wait()
    finally:
        for controller in controllers:
            await controller.stop()


async def run(argv: list[str]):
    watching = "--watch" in argv
    tokens = read_tokens([a for a in argv if a != "--watch"])
    if not tokens:
        print("No widgets given. Pass embed URLs or --file widgets.txt")
        return

    init_db()
    store = SqlKeyValueStore()
    if watching:
        print(f"Watching {len(tokens)} widget(s), Ctrl+C to stop")
        await watch(tokens, store)
        return

    today = today_in_timezone()
    print(f"Recurring to-dos for {today}: {len(tokens)} widget(s)")

    failed = 0
    for token in tokens:
        try:
            count = await inject_for_widget(token, store, today)
            print(f"✓ {token[:12]}...: {count} to-dos on today's page")
        except ConfigTokenError as e:
            failed += 1
            print(f"✗ {token[:12]}...: bad embed token ({e})")
        except Exception as e:
            failed += 1
            print(f"✗ {token[:12]}...: {e}")

    if failed:
        print(f"✗ {failed} widget(s) failed")


if __name__ == "__main__":
    asyncio.run(run(sys.argv[1:]))
