"""
routers/setup.py — Widget Setup (onboarding step 4)
=====================================================
Turns the choices made in onboarding into an embed URL.

Nothing is stored: the whole config, Notion token included, is packed
into the URL itself. Whoever has the URL can use the token.

Failures here answer 200 with success=false; the onboarding page only
checks `success`.
"""

from fastapi import APIRouter, Request
from pydantic import ValidationError

from shelfnote.config import settings
from shelfnote.routers.envelope import fail, ok, read_json
from shelfnote.schemas import ThemeConfig
from shelfnote.services.config_codec import (
    BOOK_WIDGET_ROUTE, TODO_WIDGET_ROUTE,
    build_book_widget_config, build_todo_widget_config, embed_url,
)

router = APIRouter(prefix="/api", tags=["setup"])


def public_base_url(request: Request) -> str:
    return (settings.public_base_url or str(request.base_url)).rstrip("/")


def _theme(raw) -> ThemeConfig:
    return ThemeConfig.model_validate(raw if isinstance(raw, dict) else {})


@router.post("/setup-book-widget")
async def setup_book_widget(request: Request):
    try:
        body = await read_json(request)
        token = body.get("token")
        database_id = body.get("databaseId")
        title_property = body.get("titleProperty")

        if not token or not database_id or not title_property:
            return fail("MISSING_PARAMETERS", "필수 파라미터가 누락되었습니다.", 200)

        config = build_book_widget_config(
            token=token,
            database_id=database_id,
            title_property=title_property,
            author_property=body.get("authorProperty") or "",
            cover_property=body.get("coverProperty") or "",
            cover_property_type=body.get("coverPropertyType"),
            status_property=body.get("statusProperty") or "",
            theme=_theme(body.get("theme")),
        )
        url = embed_url(public_base_url(request), BOOK_WIDGET_ROUTE, config)
        print(f"✓ Book widget configured for database {database_id}")
        return ok({"embedUrl": url, "config": config})

    except ValidationError as e:
        return fail("INVALID_THEME", "테마 설정이 올바르지 않습니다.", 200, details=str(e))
    except Exception as e:
        print(f"✗ Book widget setup failed: {e}")
        return fail("SETUP_ERROR", "위젯 설정 중 오류가 발생했습니다.", 200)


@router.post("/setup-todo")
async def setup_todo(request: Request):
    try:
        body = await read_json(request)
        token = body.get("token")
        database_id = body.get("databaseId")
        date_property = body.get("dateProperty")
        title_property = body.get("titleProperty")

        if not token or not database_id or not date_property or not title_property:
            return fail("MISSING_PARAMETERS", "필수 파라미터가 누락되었습니다.", 200)

        config = build_todo_widget_config(
            token=token,
            database_id=database_id,
            date_property=date_property,
            title_property=title_property,
            theme=_theme(body.get("theme")),
            recurring_todos=body.get("recurringTodos") or [],
        )
        url = embed_url(public_base_url(request), TODO_WIDGET_ROUTE, config)
        print(f"✓ To-do widget configured for database {database_id} ({len(config['recurring'])} recurring)")
        return ok({"embedUrl": url, "config": config})

    except ValidationError as e:
        return fail("INVALID_THEME", "테마 설정이 올바르지 않습니다.", 200, details=str(e))
    except Exception as e:
        print(f"✗ To-do widget setup failed: {e}")
        return fail("SETUP_ERROR", "위젯 설정 중 오류가 발생했습니다.", 200)
