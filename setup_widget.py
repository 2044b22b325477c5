"""
setup_widget.py — Terminal Widget Setup
=========================================
The onboarding flow without a browser. Walks through:

1. Paste your Notion integration token
   (https://www.notion.so/my-integrations → New integration → copy the secret,
   then share your database with the integration)
2. Pick a database from the list
3. Confirm the detected columns, pick colors / recurring to-dos
4. Get the embed URL to paste into Notion (/embed)

Usage: python setup_widget.py [book|todo]
"""

import sys
import os
import asyncio
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from pydantic import ValidationError

from shelfnote.config import settings
from shelfnote.modules.onboarding import BookOnboarding, OnboardingError, TodoOnboarding
from shelfnote.schemas import ThemeConfig
from shelfnote.services.config_codec import MAX_RECURRING_TODOS
from shelfnote.services.notion import NotionAPIError
from shelfnote.services.schema_detector import SchemaDetectionError


def ask(prompt: str, default: str = "") -> str:
    suffix = f" [{default}]" if default else ""
    answer = input(f"{prompt}{suffix}: ").strip()
    return answer or default


def ask_theme() -> ThemeConfig:
    print("\nColors (Enter keeps the widget default)")
    fields = {
        "primaryColor": ask("  Primary color (#RRGGBB)"),
        "backgroundColor": ask("  Background color (#RRGGBB)"),
        "fontColor": ask("  Font color (#RRGGBB)"),
        "fontFamily": ask("  Font (Galmuri11 / Pretendard / Corbel)"),
    }
    try:
        return ThemeConfig.model_validate({k: v for k, v in fields.items() if v})
    except ValidationError as e:
        print(f"⚠ Ignoring theme: {e.errors()[0]['msg']}")
        return ThemeConfig()


def ask_recurring() -> list[str]:
    print(f"\nRecurring to-dos, added every day (up to {MAX_RECURRING_TODOS}, empty line to finish)")
    items = []
    while len(items) < MAX_RECURRING_TODOS:
        item = input(f"  {len(items) + 1}. ").strip()
        if not item:
            break
        items.append(item)
    return items


async def setup(kind: str):
    flow = TodoOnboarding() if kind == "todo" else BookOnboarding()

    # 1. Connect
    while True:
        try:
            databases = await flow.connect(ask("Notion integration token"))
            break
        except (OnboardingError, NotionAPIError) as e:
            print(f"✗ {e}")

    if not databases:
        print("✗ No databases visible to this integration.")
        print("  Open your database in Notion → ··· → Connections → add the integration.")
        return

    # 2. Choose
    print("\nDatabases:")
    for i, db in enumerate(databases, 1):
        print(f"  {i}. {db.title}")
    while True:
        choice = ask("Pick one", "1")
        try:
            database = databases[int(choice) - 1]
            properties = await flow.choose_database(database.id)
            break
        except (ValueError, IndexError):
            print(f"✗ Enter a number between 1 and {len(databases)}")
        except (OnboardingError, SchemaDetectionError, NotionAPIError) as e:
            print(f"✗ {e}")

    print("\nDetected columns:")
    for role, column in properties.to_json().items():
        print(f"  {role}: {column or '(none)'}")

    # 3. Design
    theme = ask_theme()
    if kind == "todo":
        flow.design(theme, ask_recurring())
    else:
        flow.design(theme)

    # 4. Finish
    base_url = ask("\nPublic URL of this server", settings.public_base_url or "http://localhost:8000")
    url = flow.finish(base_url)

    print(f"\n✓ Widget ready. Paste this into a Notion /embed block:\n\n  {url}\n")
    print("⚠ The URL contains your Notion token. Don't share it.")


if __name__ == "__main__":
    kind = sys.argv[1] if len(sys.argv) > 1 else "book"
    if kind not in ("book", "todo"):
        print("Usage: python setup_widget.py [book|todo]")
        sys.exit(1)
    asyncio.run(setup(kind))
