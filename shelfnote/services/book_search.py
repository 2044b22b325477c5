"""
book_search.py — Book Search Providers
========================================
Two interchangeable providers behind one interface:

    results, total = await provider.search("물고기", 5)

- Aladin (알라딘 Open API): gives us cover URLs we can use as-is.
- Kakao (Daum book search): gives us a thumbnail URL that *wraps* the real
  image: https://search1.kakaocdn.net/thumb/R120x174.q85/?fname=http%3A%2F%2Ft1.daumcdn.net%2F...
  Notion only previews URLs that look like static image files, so we dig
  the original out, force https, and drop its query string. Optionally we
  route it through our own /cover.jpg relay so the path always ends in .jpg.

Exactly one provider is active per deployment (settings.book_search_provider).
The API keys are read from the environment on every request, so a server
started without one still runs, and searches just fail with a 500.
"""

import os
from typing import Optional, Protocol
from urllib.parse import parse_qs, quote, urlsplit, urlunsplit

import httpx

from shelfnote.config import settings
from shelfnote.schemas import BookResult


# Background swatches behind (or instead of) covers, cycled by result position
PASTEL_COLORS = [
    "#CDE4F5", "#D8EBF7", "#E0F0FA", "#D1E6F3", "#DBEEF9",
    "#E8F4FC", "#C5DFF8", "#D4E6F1", "#E1F0F5", "#CCE5FF",
]

ALADIN_SEARCH_URL = "http://www.aladin.co.kr/ttb/api/ItemSearch.aspx"
KAKAO_SEARCH_URL = "https://dapi.kakao.com/v3/search/book"


# ============================================================
# Errors
# ============================================================

class BookSearchError(Exception):
    """Base for everything a provider can fail with."""

    code = "SEARCH_ERROR"
    http_status = 500

    def __init__(self, provider: str, message: str, status_code: Optional[int] = None):
        if status_code is not None:
            message = f"{message} (HTTP {status_code})"
        super().__init__(message)
        self.provider = provider
        self.message = message
        self.status_code = status_code


class BookSearchNotConfigured(BookSearchError):
    """The provider's API key isn't in the environment."""
    code = "API_KEY_MISSING"
    http_status = 500


class BookSearchProviderError(BookSearchError):
    """The provider answered, and its answer was an error."""
    http_status = 400

    @property
    def code(self) -> str:
        return f"{self.provider.upper()}_API_ERROR"


class BookSearchTransportError(BookSearchError):
    """We never got a usable answer (network failure, non-JSON, 5xx...)."""
    http_status = 500


# ============================================================
# Normalization helpers (shared by both providers)
# ============================================================

def pastel_color(index: int) -> str:
    return PASTEL_COLORS[index % len(PASTEL_COLORS)]


def extract_isbn13(raw: Optional[str]) -> str:
    """
    Providers hand back "893543219X 9788935432190" style lists.
    Prefer the 13-digit one, else whatever comes first, else "".
    """
    tokens = (raw or "").split()
    for token in tokens:
        if len(token) == 13:
            return token
    return tokens[0] if tokens else ""


def normalize_pub_date(raw: Optional[str]) -> str:
    """'2014-11-17T00:00:00.000+09:00' → '2014-11-17'. Anything unparsable → ''."""
    if not raw:
        return ""
    candidate = raw.strip()[:10]
    parts = candidate.split("-")
    if (
        len(candidate) == 10
        and len(parts) == 3
        and all(p.isdigit() for p in parts)
        and [len(p) for p in parts] == [4, 2, 2]
        and 1 <= int(parts[1]) <= 12
        and 1 <= int(parts[2]) <= 31
    ):
        return candidate
    return ""


def extract_origin_image(thumbnail: Optional[str]) -> str:
    """
    Pull the real image out of a Kakao thumbnail wrapper.

    https://search1.kakaocdn.net/thumb/R120x174.q85/?fname=http%3A%2F%2Ft1.daumcdn.net%2Flbook%2Fimage%2F1467038%3Ftimestamp%3D20190131
      → https://t1.daumcdn.net/lbook/image/1467038
    """
    if not thumbnail:
        return ""
    fname = parse_qs(urlsplit(thumbnail).query).get("fname", [""])[0]
    if not fname:
        return thumbnail

    origin = urlsplit(fname)   # parse_qs already URL-decoded it
    return urlunsplit(("https", origin.netloc, origin.path, "", ""))


def proxied_cover_url(image_url: str, proxy_base: str) -> str:
    """Route an image through our relay so the URL path always ends in .jpg."""
    if not image_url:
        return ""
    return f"{proxy_base.rstrip('/')}/cover.jpg?url={quote(image_url, safe='')}"


# ============================================================
# Providers
# ============================================================

class BookSearchProvider(Protocol):
    name: str

    async def search(self, query: str, max_results: int = 10) -> tuple[list[BookResult], int]:
        ...


class AladinBookSearch:
    name = "aladin"

    def __init__(self, api_key: str, transport: httpx.AsyncBaseTransport = None):
        self.api_key = api_key
        self.transport = transport

    async def search(self, query: str, max_results: int = 10) -> tuple[list[BookResult], int]:
        if not self.api_key:
            raise BookSearchNotConfigured(self.name, "알라딘 API 키가 설정되지 않았습니다.")

        params = {
            "ttbkey": self.api_key,
            "Query": query,
            "QueryType": "Keyword",
            "MaxResults": str(max_results),
            "start": "1",
            "SearchTarget": "Book",
            "output": "js",
            "Version": "20131101",
            "Cover": "Big",
        }
        print(f"📚 Aladin search: query={query!r} max={max_results} key=***")

        try:
            async with httpx.AsyncClient(timeout=settings.http_timeout, transport=self.transport) as client:
                response = await client.get(ALADIN_SEARCH_URL, params=params)
        except httpx.HTTPError as e:
            raise BookSearchTransportError(self.name, f"Aladin request failed: {e}") from e

        if response.status_code >= 400:
            raise BookSearchTransportError(self.name, "알라딘 API 응답 오류", response.status_code)

        try:
            data = response.json()
        except ValueError as e:
            raise BookSearchTransportError(self.name, f"Aladin returned invalid JSON: {e}") from e

        if data.get("errorCode"):
            raise BookSearchProviderError(
                self.name,
                data.get("errorMessage") or "알라딘 API 오류가 발생했습니다.",
            )

        books = [
            BookResult(
                id=str(item.get("itemId", index)),
                title=item.get("title", ""),
                author=item.get("author", ""),
                cover=item.get("cover", ""),
                color=pastel_color(index),
                publisher=item.get("publisher"),
                pub_date=normalize_pub_date(item.get("pubDate")),
                description=item.get("description"),
                isbn13=item.get("isbn13") or extract_isbn13(item.get("isbn")),
                price=item.get("priceStandard"),
                link=item.get("link"),
            )
            for index, item in enumerate(data.get("item") or [])
        ]
        print(f"✓ Aladin: {len(books)} books")
        return books, data.get("totalResults") or 0


class KakaoBookSearch:
    name = "kakao"

    def __init__(
        self,
        api_key: str,
        proxy_base: Optional[str] = None,
        transport: httpx.AsyncBaseTransport = None,
    ):
        self.api_key = api_key
        # When set, covers become <proxy_base>/cover.jpg?url=<origin>
        self.proxy_base = proxy_base
        self.transport = transport

    def _cover(self, thumbnail: str) -> str:
        origin = extract_origin_image(thumbnail)
        if self.proxy_base:
            return proxied_cover_url(origin, self.proxy_base)
        return origin

    async def search(self, query: str, max_results: int = 10) -> tuple[list[BookResult], int]:
        if not self.api_key:
            raise BookSearchNotConfigured(self.name, "카카오 API 키가 설정되지 않았습니다.")

        print(f"📚 Kakao search: query={query!r} max={max_results}")

        try:
            async with httpx.AsyncClient(timeout=settings.http_timeout, transport=self.transport) as client:
                response = await client.get(
                    KAKAO_SEARCH_URL,
                    params={"query": query, "size": max_results},
                    headers={"Authorization": f"KakaoAK {self.api_key}"},
                )
        except httpx.HTTPError as e:
            raise BookSearchTransportError(self.name, f"Kakao request failed: {e}") from e

        try:
            data = response.json()
        except ValueError as e:
            raise BookSearchTransportError(
                self.name, f"Kakao returned invalid JSON: {e}", response.status_code
            ) from e

        if response.status_code >= 500:
            raise BookSearchTransportError(self.name, "카카오 API 응답 오류", response.status_code)
        if response.status_code >= 400:
            raise BookSearchProviderError(
                self.name,
                data.get("message") or data.get("errorType") or "카카오 API 오류가 발생했습니다.",
                response.status_code,
            )

        books = []
        for index, doc in enumerate(data.get("documents") or []):
            isbn13 = extract_isbn13(doc.get("isbn"))
            books.append(BookResult(
                id=isbn13 or doc.get("url") or str(index),
                title=doc.get("title", ""),
                author=", ".join(doc.get("authors") or []),
                cover=self._cover(doc.get("thumbnail", "")),
                color=pastel_color(index),
                publisher=doc.get("publisher"),
                pub_date=normalize_pub_date(doc.get("datetime")),
                description=doc.get("contents"),
                isbn13=isbn13,
                price=doc.get("price"),
                link=doc.get("url"),
            ))

        total = (data.get("meta") or {}).get("total_count", 0)
        print(f"✓ Kakao: {len(books)} books")
        return books, total


def get_book_search_provider(base_url: str = "") -> BookSearchProvider:
    """
    Build this deployment's provider. Keys come from the process environment
    first (so they can be added without a restart), then from .env.
    """
    if settings.book_search_provider.lower() == "kakao":
        proxy_base = None
        if settings.use_image_proxy:
            proxy_base = (settings.public_base_url or base_url).rstrip("/") + settings.image_proxy_prefix
        return KakaoBookSearch(
            api_key=os.environ.get("KAKAO_REST_API_KEY") or settings.kakao_rest_api_key,
            proxy_base=proxy_base,
        )
    return AladinBookSearch(api_key=os.environ.get("ALADIN_TTB_KEY") or settings.aladin_ttb_key)


def is_book_search_configured() -> bool:
    if settings.book_search_provider.lower() == "kakao":
        return bool(os.environ.get("KAKAO_REST_API_KEY") or settings.kakao_rest_api_key)
    return bool(os.environ.get("ALADIN_TTB_KEY") or settings.aladin_ttb_key)
