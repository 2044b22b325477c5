"""
main.py — Application Entry Point
====================================
"""
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from shelfnote.config import settings
from shelfnote.database import init_db
from shelfnote.schemas import HealthResponse
from shelfnote.services.book_search import is_book_search_configured

VERSION = "0.1.0"

# Embed pages live inside Notion's iframe; everything else must not be framed
FRAMEABLE_PREFIXES = ("/book-widget", "/todo-widget")


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    print("Marker table created/verified")

    provider = settings.book_search_provider.lower()
    if is_book_search_configured():
        print(f"✓ Book search: {provider}")
    else:
        print(f"⚠ Book search: {provider} key not set, /api/books/search will answer API_KEY_MISSING")
    if settings.use_image_proxy:
        print(f"Image proxy: {settings.image_proxy_prefix}")
    yield
    print("Server shutting down")


app = FastAPI(
    title="Shelfnote API",
    description="Notion widgets: a book-search box and a daily to-do list.",
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def security_headers(request: Request, call_next):
    response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["Referrer-Policy"] = "origin-when-cross-origin"
    if request.url.path.startswith(FRAMEABLE_PREFIXES):
        response.headers["Content-Security-Policy"] = "frame-ancestors *"
    else:
        response.headers["X-Frame-Options"] = "DENY"
    return response


from shelfnote.routers import books, databases, setup, todos, image_proxy, widgets
app.include_router(books.router)
app.include_router(databases.router)
app.include_router(setup.router)
app.include_router(todos.router)
app.include_router(image_proxy.router)
app.include_router(widgets.router)


@app.get("/health", response_model=HealthResponse, tags=["system"])
def health_check():
    return HealthResponse(
        status="healthy",
        environment=settings.environment,
        version=VERSION,
        book_search_provider=settings.book_search_provider.lower(),
        book_search_configured=is_book_search_configured(),
    )
