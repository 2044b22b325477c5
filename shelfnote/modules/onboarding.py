"""
modules/onboarding.py — Widget Setup Wizard
=============================================
The four steps a user goes through before getting an embed URL:

    1 connect   paste a Notion integration token → we list their databases
    2 choose    pick a database → we guess which column is which
    3 design    colors, font, (to-do only) up to 5 recurring items
    4 finish    config is encoded into <base>/<widget>/<token>

The web onboarding pages and setup_widget.py both drive these classes.
Going back a step is just calling an earlier method again.
"""

from abc import ABC, abstractmethod
from typing import Optional

from shelfnote.schemas import BookPropertyMap, DatabaseSummary, ThemeConfig, TodoPropertyMap
from shelfnote.services import notion
from shelfnote.services.config_codec import (
    BOOK_WIDGET_ROUTE, TODO_WIDGET_ROUTE, MAX_RECURRING_TODOS,
    build_book_widget_config, build_todo_widget_config, clean_recurring_todos, embed_url,
)
from shelfnote.services.validation import is_non_empty_string, validate_database_id

STEP_CONNECT = 1
STEP_CHOOSE = 2
STEP_DESIGN = 3
STEP_DONE = 4


class OnboardingError(ValueError):
    """A step was called with bad input or out of order."""


class WidgetOnboarding(ABC):
    route = ""

    def __init__(self):
        self.step = STEP_CONNECT
        self.api_key = ""
        self.databases: list[DatabaseSummary] = []
        self.database_id = ""
        self.properties = None
        self.theme = ThemeConfig()
        self.config: Optional[dict] = None
        self.embed_url = ""

    async def connect(self, api_key: str) -> list[DatabaseSummary]:
        if not is_non_empty_string(api_key):
            raise OnboardingError("Notion API 토큰을 입력해주세요.")
        self.databases = await notion.list_databases(api_key.strip())
        self.api_key = api_key.strip()
        self.step = STEP_CHOOSE
        return self.databases

    async def choose_database(self, database_id: str):
        if self.step < STEP_CHOOSE:
            raise OnboardingError("Connect to Notion first.")
        if not validate_database_id(database_id):
            raise OnboardingError(f"Not a Notion database id: {database_id!r}")
        self.properties = await self._analyze(database_id)
        self.database_id = database_id
        self.step = STEP_DESIGN
        return self.properties

    @abstractmethod
    async def _analyze(self, database_id: str):
        """Detect the column mapping for this widget kind."""

    def design(self, theme: Optional[ThemeConfig] = None) -> None:
        if self.step < STEP_DESIGN:
            raise OnboardingError("Choose a database first.")
        self.theme = theme or ThemeConfig()

    @abstractmethod
    def _build_config(self) -> dict:
        """Short-key config dict that gets encoded into the embed URL."""

    def finish(self, base_url: str) -> str:
        if self.step < STEP_DESIGN:
            raise OnboardingError("Choose a database first.")
        self.config = self._build_config()
        self.embed_url = embed_url(base_url, self.route, self.config)
        self.step = STEP_DONE
        return self.embed_url


class BookOnboarding(WidgetOnboarding):
    route = BOOK_WIDGET_ROUTE
    properties: Optional[BookPropertyMap]

    async def _analyze(self, database_id: str) -> BookPropertyMap:
        return await notion.analyze_book_database(self.api_key, database_id)

    def _build_config(self) -> dict:
        p = self.properties
        return build_book_widget_config(
            token=self.api_key,
            database_id=self.database_id,
            title_property=p.title_property,
            author_property=p.author_property,
            cover_property=p.cover_property,
            cover_property_type=p.cover_property_type,
            status_property=p.status_property,
            theme=self.theme,
        )


class TodoOnboarding(WidgetOnboarding):
    route = TODO_WIDGET_ROUTE
    properties: Optional[TodoPropertyMap]

    def __init__(self):
        super().__init__()
        self.recurring_todos: list[str] = []

    async def _analyze(self, database_id: str) -> TodoPropertyMap:
        return await notion.analyze_todo_database(self.api_key, database_id)

    def design(self, theme: Optional[ThemeConfig] = None, recurring_todos: Optional[list[str]] = None) -> None:
        super().design(theme)
        recurring_todos = recurring_todos or []
        if len(recurring_todos) > MAX_RECURRING_TODOS:
            raise OnboardingError(f"At most {MAX_RECURRING_TODOS} recurring to-dos.")
        self.recurring_todos = clean_recurring_todos(recurring_todos)

    def _build_config(self) -> dict:
        return build_todo_widget_config(
            token=self.api_key,
            database_id=self.database_id,
            date_property=self.properties.date_property,
            title_property=self.properties.title_property,
            theme=self.theme,
            recurring_todos=self.recurring_todos,
        )
