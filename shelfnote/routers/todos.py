"""
routers/todos.py — Daily To-Do API
====================================
GET  /api/todos?token=...&dbId=...&date=2025-01-31&dateProp=날짜&titleProp=제목
POST /api/todos  {token, dbId, date, action, todoId?, text?, completed?, isImportant?}

Actions: add | toggle | delete | toggle-important

The widget already changed its own list before calling; these endpoints
only make Notion agree. Errors come back as 200 + success=false.
"""

from fastapi import APIRouter, Request

from shelfnote.routers.envelope import fail, ok, read_json
from shelfnote.schemas import TodoDatabaseConfig
from shelfnote.services import notion
from shelfnote.services.validation import validate_date

router = APIRouter(prefix="/api/todos", tags=["todos"])

ACTIONS = ("add", "toggle", "delete", "toggle-important")


def _config(token: str, database_id: str, date_property=None, title_property=None) -> TodoDatabaseConfig:
    config = TodoDatabaseConfig(api_key=token, database_id=database_id)
    if date_property:
        config.date_property = date_property
    if title_property:
        config.title_property = title_property
    return config


@router.get("")
async def get_todos(request: Request):
    params = request.query_params
    token = params.get("token")
    database_id = params.get("dbId")
    date = params.get("date")

    if not token or not database_id or not date:
        return fail("MISSING_PARAMETERS", "필수 파라미터가 누락되었습니다.", 200)
    if not validate_date(date):
        return fail("INVALID_DATE", "날짜 형식이 올바르지 않습니다. (YYYY-MM-DD)", 200)

    try:
        config = _config(token, database_id, params.get("dateProp"), params.get("titleProp"))
        page = await notion.get_todos_for_date(config, date)
        return ok(page.to_json())
    except Exception as e:
        print(f"✗ Failed to fetch to-dos for {date}: {e}")
        return fail("FETCH_ERROR", "투두리스트를 가져오는 중 오류가 발생했습니다.", 200)


@router.post("")
async def update_todos(request: Request):
    try:
        body = await read_json(request)
        token = body.get("token")
        database_id = body.get("dbId")
        date = body.get("date")
        action = body.get("action")
        todo_id = body.get("todoId")

        if not token or not database_id or not date:
            return fail("MISSING_PARAMETERS", "필수 파라미터가 누락되었습니다.", 200)
        if not validate_date(date):
            return fail("INVALID_DATE", "날짜 형식이 올바르지 않습니다. (YYYY-MM-DD)", 200)

        config = _config(token, database_id, body.get("dateProp"), body.get("titleProp"))

        if action == "add":
            text = (body.get("text") or "").strip()
            if not text:
                return fail("MISSING_PARAMETERS", "할 일 내용이 비어 있습니다.", 200)
            todo = await notion.add_todo(config, date, text)
            return ok({"message": "할 일이 추가되었습니다.", "todo": todo.to_json()})

        if action not in ACTIONS or not todo_id:
            return fail("INVALID_ACTION", "잘못된 액션입니다.", 200)

        if action == "toggle":
            await notion.toggle_todo_completed(config, todo_id, bool(body.get("completed")))
            return ok({"message": "할 일 상태가 업데이트되었습니다."})

        if action == "delete":
            await notion.delete_todo(config, todo_id)
            return ok({"message": "할 일이 삭제되었습니다."})

        await notion.toggle_todo_important(config, todo_id, bool(body.get("isImportant")))
        return ok({"message": "할 일 중요 상태가 업데이트되었습니다."})

    except Exception as e:
        print(f"✗ To-do update failed: {e}")
        return fail("UPDATE_ERROR", f"투두리스트를 업데이트하는 중 오류가 발생했습니다: {e}", 200)
