"""
schemas.py — Data Shapes
==========================
Everything that crosses a boundary: API bodies, widget configs, and the
book / to-do records the widgets pass around.

JSON field names are camelCase because that's what the widget pages and
the embed tokens have always used (isImportant, pubDate, pageUrl...).
Python code uses snake_case; the aliases do the translation.
"""

from pydantic import BaseModel, Field
from typing import Optional, Literal


class CamelModel(BaseModel):
    """Accepts both snake_case and camelCase; dumps camelCase with by_alias=True."""

    class Config:
        populate_by_name = True
        coerce_numbers_to_str = True

    def to_json(self) -> dict:
        return self.model_dump(by_alias=True)


# ============================================================
# Theme (presentation only)
# ============================================================

FontFamily = Literal["Galmuri11", "Pretendard", "Corbel"]
CheckboxStyle = Literal["circle", "heart"]


class ThemeConfig(CamelModel):
    """Any field left as None gets the widget's default when the config is built."""
    primary_color: Optional[str] = Field(default=None, alias="primaryColor")
    accent_color: Optional[str] = Field(default=None, alias="accentColor")
    background_color: Optional[str] = Field(default=None, alias="backgroundColor")
    background_opacity: Optional[int] = Field(default=None, ge=0, le=100, alias="backgroundOpacity")
    font_color: Optional[str] = Field(default=None, alias="fontColor")
    font_family: Optional[FontFamily] = Field(default=None, alias="fontFamily")
    checkbox_style: Optional[CheckboxStyle] = Field(default=None, alias="checkboxStyle")


# ============================================================
# Property maps, produced by the schema detector
# ============================================================

class BookPropertyMap(CamelModel):
    """Which column of a reading-list database plays which role. "" = not found."""
    title_property: str = Field(alias="titleProperty")
    author_property: str = Field(default="", alias="authorProperty")
    cover_property: str = Field(default="", alias="coverProperty")
    cover_property_type: Literal["files", "url", ""] = Field(default="", alias="coverPropertyType")
    status_property: str = Field(default="", alias="statusProperty")


class TodoPropertyMap(CamelModel):
    date_property: str = Field(alias="dateProperty")
    title_property: str = Field(alias="titleProperty")


# ============================================================
# Knowledge-base configs: what the gateway needs to talk to Notion
# ============================================================

class NotionConfig(BaseModel):
    """Integration token + target database. Never stored server-side."""
    api_key: str
    database_id: str


class BookDatabaseConfig(NotionConfig):
    title_property: str = ""
    author_property: str = ""
    cover_property: str = ""
    cover_property_type: str = "files"
    status_property: str = ""


class TodoDatabaseConfig(NotionConfig):
    # Fallback names match the Korean template database the widget ships with
    date_property: str = "날짜"
    title_property: str = "제목"


# ============================================================
# Books
# ============================================================

class BookResult(CamelModel):
    """One search hit, normalized across providers. Never stored on its own."""
    id: str
    title: str
    author: str = ""
    cover: str = ""             # Image URL, or "" when the provider has none
    color: str = ""             # Pastel swatch drawn behind / instead of the cover
    publisher: Optional[str] = None
    pub_date: Optional[str] = Field(default=None, alias="pubDate")   # YYYY-MM-DD
    description: Optional[str] = None
    isbn13: Optional[str] = None
    price: Optional[int] = None
    link: Optional[str] = None


# ============================================================
# To-dos
# ============================================================

class TodoItem(CamelModel):
    """
    A checklist block on a date page. Ids starting with "temp-" belong to
    items the widget created locally that Notion hasn't confirmed yet.
    """
    id: str
    text: str
    completed: bool = False
    priority: Literal["low", "medium", "high"] = "medium"
    is_important: bool = Field(default=False, alias="isImportant")
    created_at: str = Field(default="", alias="createdAt")
    updated_at: str = Field(default="", alias="updatedAt")


class TodoPage(CamelModel):
    """The one Notion page holding a given day's checklist. id == "" means no page yet."""
    id: str
    date: str
    title: str
    todos: list[TodoItem] = Field(default_factory=list)
    page_url: str = Field(default="", alias="pageUrl")


# ============================================================
# Databases
# ============================================================

class DatabaseSummary(BaseModel):
    id: str
    title: str


# ============================================================
# Health Check
# ============================================================

class HealthResponse(BaseModel):
    status: str
    environment: str
    version: str
    book_search_provider: str
    book_search_configured: bool
