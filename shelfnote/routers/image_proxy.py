"""
routers/image_proxy.py — Cover Image Relay
============================================
GET /api/image-proxy/cover.jpg?url=https://t1.daumcdn.net/lbook/image/6253040

Notion won't preview an image URL without an image-looking path, and some
CDNs refuse hotlinking. The path ends in .jpg and we fetch the bytes
ourselves, so saved covers show up.

Only book-cover CDNs are relayed, redirects included. Anything else is a
403 and is never fetched.
"""

from typing import Optional
from urllib.parse import urlparse

import httpx
from fastapi import APIRouter, Query
from fastapi.responses import PlainTextResponse, Response

from shelfnote.config import settings

router = APIRouter(prefix="/api/image-proxy", tags=["image-proxy"])

ALLOWED_HOSTS = (
    "t1.daumcdn.net",
    "search1.kakaocdn.net",
    "image.aladin.co.kr",
)

FETCH_HEADERS = {
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36",
    "Accept": "image/*",
}

MAX_REDIRECTS = 5

# Tests swap this for an httpx.MockTransport
transport: Optional[httpx.AsyncBaseTransport] = None


class RedirectNotAllowed(Exception):
    """An allowed host redirected somewhere that isn't."""


def is_allowed_image_url(url: str) -> bool:
    """http(s) URL on an allowed host or one of its subdomains."""
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    if parsed.scheme not in ("http", "https"):
        return False
    host = (parsed.hostname or "").lower()
    return any(host == allowed or host.endswith("." + allowed) for allowed in ALLOWED_HOSTS)


async def fetch_image(url: str) -> httpx.Response:
    """GET the image, following redirects only while they stay on allowed hosts."""
    async with httpx.AsyncClient(timeout=settings.http_timeout, transport=transport) as client:
        for _ in range(MAX_REDIRECTS + 1):
            response = await client.get(url, headers=FETCH_HEADERS)
            if not response.is_redirect:
                return response
            url = str(response.url.join(response.headers["location"]))
            if not is_allowed_image_url(url):
                raise RedirectNotAllowed(url)
        raise httpx.TooManyRedirects("Too many redirects", request=response.request)


@router.get("/{filename}")
async def image_proxy(filename: str, url: Optional[str] = Query(default=None)):
    if not url:
        return PlainTextResponse("Missing url parameter", status_code=400)
    if not is_allowed_image_url(url):
        print(f"⚠ Image proxy refused {url}")
        return PlainTextResponse("Domain not allowed", status_code=403)

    try:
        upstream = await fetch_image(url)
    except RedirectNotAllowed as e:
        print(f"⚠ Image proxy refused redirect from {url} to {e}")
        return PlainTextResponse("Domain not allowed", status_code=403)
    except httpx.HTTPError as e:
        print(f"✗ Image proxy fetch failed for {url}: {e}")
        return PlainTextResponse("Failed to fetch image", status_code=502)

    if upstream.status_code >= 400:
        return PlainTextResponse("Failed to fetch image", status_code=upstream.status_code)

    return Response(
        content=upstream.content,
        media_type=upstream.headers.get("content-type", "image/jpeg"),
        headers={
            "Content-Disposition": 'inline; filename="cover.jpg"',
            "Cache-Control": "public, max-age=31536000, immutable",
            "Access-Control-Allow-Origin": "*",
        },
    )
