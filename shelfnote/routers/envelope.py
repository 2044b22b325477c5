"""
routers/envelope.py — Response Envelope
=========================================
Every JSON endpoint answers in the same shape:

    {"success": true,  "data": ...}
    {"success": false, "error": {"code": "...", "message": "...", "details": ...}}

Some endpoints report failures with a 4xx/5xx, others (to-dos, setup)
with a plain 200 and success=false. The widget pages only look at
`success`.
"""

from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse


def ok(data: Any = None, status_code: int = 200, **extra) -> JSONResponse:
    content = {"success": True, "data": data}
    content.update(extra)
    return JSONResponse(status_code=status_code, content=content)


def fail(code: str, message: str, status_code: int = 400, details: Any = None) -> JSONResponse:
    error = {"code": code, "message": message}
    if details is not None:
        error["details"] = details
    return JSONResponse(status_code=status_code, content={"success": False, "error": error})


async def read_json(request: Request) -> dict:
    """Request body as a dict ({} for a JSON array/scalar). Malformed JSON raises."""
    body = await request.json()
    return body if isinstance(body, dict) else {}
