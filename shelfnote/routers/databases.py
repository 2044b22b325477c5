"""
routers/databases.py — Notion Database Discovery (onboarding steps 1–2)
=========================================================================
POST /api/databases                 {apiKey}             → [{id, title}]
POST /api/analyze-book-database     {apiKey, databaseId} → BookPropertyMap
POST /api/analyze-todo-database     {apiKey, databaseId} → TodoPropertyMap
"""

from fastapi import APIRouter, Request

from shelfnote.routers.envelope import fail, ok, read_json
from shelfnote.services import notion
from shelfnote.services.notion import NotionAPIError
from shelfnote.services.schema_detector import SchemaDetectionError
from shelfnote.services.validation import is_non_empty_string

router = APIRouter(prefix="/api", tags=["databases"])


@router.post("/databases")
async def list_databases(request: Request):
    try:
        body = await read_json(request)
        api_key = body.get("apiKey")
        if not is_non_empty_string(api_key):
            return fail("INVALID_API_KEY", "API key is required", 400)

        databases = await notion.list_databases(api_key)
        return ok([d.model_dump() for d in databases])

    except NotionAPIError as e:
        print(f"✗ Failed to fetch databases: {e.message}")
        return fail("DATABASE_FETCH_FAILED", "Failed to fetch databases", 400, details=e.message)
    except Exception as e:
        print(f"✗ Database list crashed: {e}")
        return fail("INTERNAL_ERROR", "Internal server error", 500)


async def _analyze(request: Request, analyzer):
    try:
        body = await read_json(request)
        api_key = body.get("apiKey")
        database_id = body.get("databaseId")

        if not is_non_empty_string(api_key):
            return fail("INVALID_API_KEY", "API key is required", 400)
        if not is_non_empty_string(database_id):
            return fail("INVALID_DATABASE_ID", "Database ID is required", 400)

        properties = await analyzer(api_key, database_id)
        return ok(properties.to_json())

    except (SchemaDetectionError, NotionAPIError) as e:
        print(f"✗ Schema analysis failed for {body.get('databaseId')}: {e}")
        return fail("ANALYSIS_FAILED", "Failed to analyze database schema", 400, details=str(e))
    except Exception as e:
        print(f"✗ Schema analysis crashed: {e}")
        return fail("INTERNAL_ERROR", "Internal server error", 500)


@router.post("/analyze-book-database")
async def analyze_book_database(request: Request):
    return await _analyze(request, notion.analyze_book_database)


@router.post("/analyze-todo-database")
async def analyze_todo_database(request: Request):
    return await _analyze(request, notion.analyze_todo_database)
