"""
routers/widgets.py — Embed Pages
==================================
The pages users paste into a Notion embed block.

- /book-widget/{cfg}    clock ↔ search view, click a result to save it
- /todo-widget/{cfg}    the day's checklist
- /todo-widget/preview  same page with sample items, nothing sent to Notion

Pages are rendered server-side from the widget controllers. Every button
is a small form: POST → controller does the work → 303 back to the page.
"""

import json
from typing import Optional
from urllib.parse import quote, urlencode

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from pydantic import ValidationError

from shelfnote.modules.book_search import MESSAGE_SECONDS, BookSearchWidget, book_config_from_widget
from shelfnote.modules.todo_list import (
    DATE_CHECK_INTERVAL_SECONDS, MAX_TODOS, REFRESH_INTERVAL_SECONDS, TodoListController, is_pending,
)
from shelfnote.routers.books import search_provider
from shelfnote.schemas import BookResult, TodoItem
from shelfnote.services.book_search import BookSearchProvider
from shelfnote.services.config_codec import (
    BOOK_THEME_DEFAULTS, TODO_THEME_DEFAULTS, ConfigTokenError, load_book_widget, load_todo_widget,
)
from shelfnote.services.kv_store import KeyValueStore, SqlKeyValueStore
from shelfnote.services.notion import TodoGateway
from shelfnote.services.validation import validate_date

router = APIRouter(tags=["widgets"])


def marker_store() -> KeyValueStore:
    return SqlKeyValueStore()


# ─── Book widget ──────────────────────────────────────────

@router.get("/book-widget", response_class=HTMLResponse)
@router.get("/book-widget/{cfg}", response_class=HTMLResponse)
async def book_widget(
    request: Request,
    cfg: str = "",
    provider: BookSearchProvider = Depends(search_provider),
):
    config = load_book_widget(cfg) if cfg else {}
    widget = BookSearchWidget(provider, config=book_config_from_widget(config), message_seconds=0)

    params = request.query_params
    if "query" in params:
        widget.open_search()
        await widget.search(params.get("query", ""))

    saved = params.get("saved")
    if saved:
        widget.selected_book_id = saved
        widget.message = params.get("msg") or "Saved"

    theme = config.get("theme") or BOOK_THEME_DEFAULTS
    return HTMLResponse(content=_render_book(widget, theme, cfg))


@router.post("/book-widget/{cfg}/save")
async def book_widget_save(
    cfg: str,
    request: Request,
    provider: BookSearchProvider = Depends(search_provider),
):
    form = await request.form()
    query = form.get("query", "")
    try:
        book = BookResult.model_validate(json.loads(form.get("book", "")))
    except (ValueError, ValidationError) as e:
        print(f"⚠ Book widget got an unreadable book: {e}")
        return RedirectResponse(f"/book-widget/{cfg}?{urlencode({'query': query})}", status_code=303)

    widget = BookSearchWidget(provider, config=book_config_from_widget(load_book_widget(cfg)), message_seconds=0)
    message = await widget.select(book)
    qs = urlencode({"query": query, "saved": book.id, "msg": message})
    return RedirectResponse(f"/book-widget/{cfg}?{qs}", status_code=303)


# ─── To-do widget ─────────────────────────────────────────

@router.get("/todo-widget/preview", response_class=HTMLResponse)
async def todo_widget_preview():
    controller = TodoListController(backend=None)
    await controller.load()
    return HTMLResponse(content=_render_todos(controller, TODO_THEME_DEFAULTS, cfg=None))


@router.get("/todo-widget/{cfg}", response_class=HTMLResponse)
async def todo_widget(cfg: str, request: Request, store: KeyValueStore = Depends(marker_store)):
    try:
        config = load_todo_widget(cfg)
    except ConfigTokenError as e:
        print(f"✗ To-do widget token rejected: {e}")
        return HTMLResponse(content=_error_page("위젯 설정을 불러올 수 없습니다. 위젯을 다시 설정해주세요."), status_code=400)

    controller = _todo_controller(config, store)
    await controller.select_date(_valid_date(request.query_params.get("date")))
    return HTMLResponse(content=_render_todos(controller, config["theme"], cfg))


@router.post("/todo-widget/{cfg}/action")
async def todo_widget_action(cfg: str, request: Request, store: KeyValueStore = Depends(marker_store)):
    try:
        config = load_todo_widget(cfg)
    except ConfigTokenError as e:
        print(f"✗ To-do widget token rejected: {e}")
        return HTMLResponse(content=_error_page("위젯 설정을 불러올 수 없습니다. 위젯을 다시 설정해주세요."), status_code=400)

    form = await request.form()
    date = _valid_date(form.get("date"))
    controller = _todo_controller(config, store)
    await controller.select_date(date)

    action = form.get("action")
    todo_id = form.get("todo_id", "")
    if action == "add":
        await controller.add(form.get("text", ""))
    elif action == "toggle":
        await controller.toggle_completed(todo_id)
    elif action == "toggle-important":
        await controller.toggle_important(todo_id)
    elif action == "delete":
        await controller.delete(todo_id)
    else:
        print(f"⚠ Unknown to-do widget action: {action!r}")

    suffix = f"?{urlencode({'date': date})}" if date else ""
    return RedirectResponse(f"/todo-widget/{cfg}{suffix}", status_code=303)


def _todo_controller(config: dict, store: KeyValueStore) -> TodoListController:
    return TodoListController(
        backend=TodoGateway.from_widget_config(config),
        database_id=config["databaseId"],
        recurring_todos=config.get("recurringTodos"),
        store=store,
    )


def _valid_date(date: Optional[str]) -> Optional[str]:
    return date if date and validate_date(date) else None


# ─── Helpers ──────────────────────────────────────────────

def _e(s):
    if not s: return ""
    s = str(s)
    return s.replace("&","&amp;").replace("<","&lt;").replace(">","&gt;").replace('"',"&quot;").replace("'","&#39;")


def _background(color: str, opacity) -> str:
    """#RRGGBB + 0–100 opacity → rgba(). Anything unparseable is used as-is."""
    try:
        h = color.lstrip("#")
        r, g, b = int(h[0:2], 16), int(h[2:4], 16), int(h[4:6], 16)
        return f"rgba({r},{g},{b},{int(opacity) / 100:.2f})"
    except (ValueError, TypeError, AttributeError):
        return color


def _style(theme: dict) -> str:
    return f'''<style>
:root {{
  --primary: {_e(theme.get("primaryColor"))};
  --accent: {_e(theme.get("accentColor"))};
  --bg: {_e(_background(theme.get("backgroundColor", "#FFFFFF"), theme.get("backgroundOpacity", 100)))};
  --font: {_e(theme.get("fontColor"))};
}}
* {{ box-sizing: border-box; margin: 0; padding: 0; }}
body {{ font-family: "{_e(theme.get("fontFamily"))}", -apple-system, sans-serif; color: var(--font); background: transparent; }}
.widget {{ background: var(--bg); border-radius: 14px; padding: 16px; min-height: 100vh; }}
a {{ color: var(--primary); text-decoration: none; }}
input[type=text] {{ width: 100%; padding: 8px 10px; border: 1px solid var(--accent); border-radius: 8px; font: inherit; color: inherit; background: transparent; }}
button {{ border: none; background: none; cursor: pointer; font: inherit; color: inherit; }}
.clock {{ font-size: 42px; text-align: center; margin-top: 28px; color: var(--primary); }}
.hint {{ text-align: center; opacity: .45; margin-top: 6px; font-size: 13px; }}
.results {{ margin-top: 12px; }}
.book {{ display: flex; gap: 10px; align-items: center; padding: 8px; border-radius: 10px; }}
.book:hover {{ background: rgba(0,0,0,.04); }}
.cover {{ width: 40px; height: 58px; border-radius: 4px; object-fit: cover; flex-shrink: 0; }}
.book-title {{ font-size: 14px; }}
.book-author {{ font-size: 12px; opacity: .6; }}
.flash {{ font-size: 12px; color: var(--primary); }}
.date {{ font-size: 13px; opacity: .6; margin-bottom: 10px; }}
.todo {{ display: flex; align-items: center; gap: 8px; padding: 6px 0; }}
.todo.done .todo-text {{ text-decoration: line-through; opacity: .45; }}
.todo-text {{ flex: 1; }}
.check {{ width: 18px; height: 18px; border: 2px solid var(--primary); border-radius: 50%; display: inline-block; }}
.check.on {{ background: var(--primary); }}
.heart {{ color: var(--primary); }}
.del {{ opacity: .3; }}
.error {{ color: #dc2626; font-size: 13px; margin-bottom: 8px; }}
.empty {{ opacity: .45; font-size: 13px; padding: 12px 0; }}
</style>'''


def _page(title: str, theme: dict, body: str, head: str = "") -> str:
    return f'''<!DOCTYPE html>
<html lang="ko"><head><meta charset="utf-8"><meta name="viewport" content="width=device-width, initial-scale=1">{head}
<title>{_e(title)}</title>{_style(theme)}</head>
<body><div class="widget">{body}</div></body></html>'''


def _error_page(message: str) -> str:
    return _page("Shelfnote", TODO_THEME_DEFAULTS, f'<div class="error">{_e(message)}</div>')


# ─── Render ──────────────────────────────────────────────

def _render_book(widget: BookSearchWidget, theme: dict, cfg: str) -> str:
    base = f"/book-widget/{quote(cfg)}" if cfg else "/book-widget"

    if widget.view == "main":
        body = f'''<a href="{base}?query="><div class="clock" id="clock"></div><div class="hint">search</div></a>
<script>
function tick() {{ const d = new Date(); document.getElementById("clock").textContent =
  String(d.getHours()).padStart(2, "0") + ":" + String(d.getMinutes()).padStart(2, "0"); }}
tick(); setInterval(tick, 1000);
</script>'''
        return _page("Book search", theme, body)

    rows = ""
    for b in widget.results:
        cover = f'<img class="cover" src="{_e(b.cover)}" alt="">' if b.cover else f'<div class="cover" style="background:{_e(b.color)}"></div>'
        flash = f'<div class="flash">{_e(widget.message)}</div>' if widget.selected_book_id == b.id and widget.message else ""
        label = f'{cover}<div><div class="book-title">{_e(b.title)}</div><div class="book-author">{_e(b.author)}</div>{flash}</div>'
        if cfg:
            rows += f'''<form method="post" action="{base}/save">
    <input type="hidden" name="query" value="{_e(widget.query)}">
    <input type="hidden" name="book" value="{_e(json.dumps(b.to_json(), ensure_ascii=False))}">
    <button type="submit" class="book">{label}</button>
</form>'''
        else:
            # Demo mode: nothing to save to, just flash the message
            rows += f'<a class="book" href="{_e(base + "?" + urlencode({"query": widget.query, "saved": b.id}))}">{label}</a>'
    if not rows and widget.query:
        rows = '<div class="empty">검색 결과가 없습니다.</div>'

    body = f'''<form method="get" action="{base}"><input type="text" name="query" value="{_e(widget.query)}" placeholder="책 제목, 저자" autofocus></form>
<div class="results">{rows}</div>
<div class="hint"><a href="{base}">back</a></div>'''
    if widget.message:
        body += f'<script>setTimeout(() => document.querySelectorAll(".flash").forEach(el => el.remove()), {int(MESSAGE_SECONDS * 1000)});</script>'
    return _page("Book search", theme, body)


def _render_todos(controller: TodoListController, theme: dict, cfg: Optional[str]) -> str:
    action = f"/todo-widget/{quote(cfg)}/action" if cfg else ""
    date = controller.selected_date or ""
    heart_style = theme.get("checkboxStyle") == "heart"

    def button(todo: TodoItem, name: str, label: str, cls: str) -> str:
        if not action:
            return f'<span class="{cls}">{label}</span>'
        return f'''<form method="post" action="{action}" style="display:inline">
<input type="hidden" name="action" value="{name}"><input type="hidden" name="todo_id" value="{_e(todo.id)}"><input type="hidden" name="date" value="{_e(date)}">
<button type="submit" class="{cls}">{label}</button></form>'''

    items = ""
    for t in controller.sorted_todos():
        if heart_style:
            mark = "&#9829;" if t.completed else "&#9825;"
            check = button(t, "toggle", mark, "heart")
        else:
            check = button(t, "toggle", "", f"check{' on' if t.completed else ''}")
        star = button(t, "toggle-important", "&#9829;" if t.is_important else "&#9825;", "heart")
        pending = ' title="saving..."' if is_pending(t.id) else ""
        items += f'''<div class="todo{' done' if t.completed else ''}"{pending}>
    {check}<span class="todo-text">{_e(t.text)}</span>{star}{button(t, "delete", "&times;", "del")}
</div>'''
    if not items:
        items = '<div class="empty">할 일이 없습니다.</div>'

    error = f'<div class="error">{_e(controller.error)}</div>' if controller.error else ""
    add_form = ""
    if action and len(controller.todos) < MAX_TODOS:
        add_form = f'''<form method="post" action="{action}"><input type="hidden" name="action" value="add"><input type="hidden" name="date" value="{_e(date)}">
<input type="text" name="text" placeholder="할 일 추가" maxlength="200"></form>'''

    body = f'''<div class="date">{_e(controller.target_date)}{' · preview' if controller.preview else ''}</div>
{error}{items}{add_form}'''
    return _page("To-do", theme, body, head=_todo_timers(controller) if action else "")


def _todo_timers(controller: TodoListController) -> str:
    """Reload every 10 minutes; when following the clock, also reload once the local date changes."""
    head = f'<meta http-equiv="refresh" content="{REFRESH_INTERVAL_SECONDS}">'
    if controller.selected_date:
        return head
    return head + f'''
<script>
function localDate() {{ const d = new Date(); return [d.getFullYear(),
  String(d.getMonth() + 1).padStart(2, "0"), String(d.getDate()).padStart(2, "0")].join("-"); }}
const openedOn = localDate();
setInterval(() => {{ if (localDate() !== openedOn) location.reload(); }}, {DATE_CHECK_INTERVAL_SECONDS * 1000});
</script>'''
