"""
routers/books.py — Book Search & Save
=======================================
GET  /api/books/search?query=물고기&maxResults=5
POST /api/books/save   {token, databaseId, titleProperty, ..., book}

Search goes to whichever provider this deployment is wired to.
Save writes one row into the user's reading-list database.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from pydantic import ValidationError

from shelfnote.routers.envelope import fail, ok, read_json
from shelfnote.schemas import BookDatabaseConfig, BookResult
from shelfnote.services.book_search import BookSearchError, BookSearchProvider, get_book_search_provider
from shelfnote.services.notion import NotionAPIError, create_book_entry

router = APIRouter(prefix="/api/books", tags=["books"])


def search_provider(request: Request) -> BookSearchProvider:
    """The deployment's provider, built per request so env keys are re-read."""
    return get_book_search_provider(str(request.base_url))


@router.get("/search")
async def search_books(
    query: Optional[str] = Query(default=None),
    max_results: int = Query(default=10, ge=1, le=50, alias="maxResults"),
    provider: BookSearchProvider = Depends(search_provider),
):
    if not query or not query.strip():
        return fail("MISSING_QUERY", "검색어를 입력해주세요.", 400)

    try:
        books, total = await provider.search(query.strip(), max_results)
    except BookSearchError as e:
        print(f"✗ Book search error ({e.provider}): {e.message}")
        return fail(e.code, e.message, e.http_status)
    except Exception as e:
        print(f"✗ Book search crashed: {e}")
        return fail("SEARCH_ERROR", "도서 검색 중 오류가 발생했습니다.", 500, details=str(e))

    return ok([b.to_json() for b in books], totalResults=total)


@router.post("/save")
async def save_book(request: Request):
    try:
        body = await read_json(request)
        token = body.get("token")
        database_id = body.get("databaseId")
        raw_book = body.get("book")

        if not token or not database_id or not raw_book:
            return fail("MISSING_PARAMETERS", "필수 파라미터가 누락되었습니다.", 400)

        try:
            book = BookResult.model_validate(raw_book)
        except ValidationError as e:
            return fail("INVALID_BOOK", "도서 정보가 올바르지 않습니다.", 400, details=str(e))

        config = BookDatabaseConfig(
            api_key=token,
            database_id=database_id,
            title_property=body.get("titleProperty") or "",
            author_property=body.get("authorProperty") or "",
            cover_property=body.get("coverProperty") or "",
            cover_property_type=body.get("coverPropertyType") or "files",
            status_property=body.get("statusProperty") or "",
        )
        page_id = await create_book_entry(config, book)
        return ok({"pageId": page_id})

    except NotionAPIError as e:
        print(f"✗ Book save failed: {e.message}")
        return fail("SAVE_ERROR", f"도서 저장 중 오류가 발생했습니다: {e.message}", 500)
    except Exception as e:
        print(f"✗ Book save crashed: {e}")
        return fail("SAVE_ERROR", f"도서 저장 중 오류가 발생했습니다: {e}", 500)
