"""
config.py — Centralized Settings
=================================
Every setting the widget server needs, in one place. Reads from .env file.

Nothing here is required at startup. The book-search credentials are
looked up again on every search request (see services/book_search.py),
so a missing key shows up as a 500 on that endpoint instead of crashing
the whole server. Notion credentials never live here at all; they
travel inside each widget's embed token.
"""

from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    # --- Book search providers ---
    aladin_ttb_key: str = Field(default="", description="Aladin Open API TTB key")
    kakao_rest_api_key: str = Field(default="", description="Kakao REST API key")
    # Exactly one provider is wired per deployment: "aladin" or "kakao"
    book_search_provider: str = Field(default="aladin")

    # --- Cover image relay ---
    # Kakao thumbnails point at paths Notion won't preview. When enabled,
    # covers are rewritten to <public_base_url><image_proxy_prefix>/cover.jpg?url=...
    use_image_proxy: bool = Field(default=False)
    image_proxy_prefix: str = Field(default="/api/image-proxy")

    # --- Notion ---
    notion_api_url: str = Field(default="https://api.notion.com")
    notion_version: str = Field(default="2022-06-28")

    # --- HTTP ---
    http_timeout: float = Field(default=30.0)

    # --- Local marker store (recurring to-do bookkeeping) ---
    database_url: str = Field(default="sqlite:///./shelfnote.db")

    # --- Server ---
    # Used to build embed URLs. Empty means "use the request's own host".
    public_base_url: str = Field(default="")
    environment: str = Field(default="development")
    timezone: str = Field(default="Asia/Seoul")

    class Config:
        env_file = ".env"
        case_sensitive = False


settings = Settings()
