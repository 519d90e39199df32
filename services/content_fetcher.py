"""Fetch a URL and reduce its markup to plain text for summarization."""

from __future__ import annotations

import logging
import re

import httpx
from bs4 import BeautifulSoup, Comment

from engine.errors import FetchError

logger = logging.getLogger("condense.fetch")

DEFAULT_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/124.0 Safari/537.36 (Condense ContentFetcher)"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,text/plain;q=0.8,*/*;q=0.5",
    "Accept-Language": "en-US,en;q=0.9",
}

_ALLOWED_SCHEMES = ("http://", "https://")
_DROP_TAGS = ("script", "style", "noscript", "template", "svg", "iframe")
_CONTENT_TAGS = ("article", "main", "section", "p", "h1", "h2", "h3", "h4", "h5", "h6", "li")
_WHITESPACE = re.compile(r"\s+")


def html_to_text(html: str) -> str:
    """Extract readable text from *html*.

    Text is collected from content-bearing tags; when a page has none of them
    the whole document text is used instead.
    """
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(_DROP_TAGS):
        tag.decompose()
    for comment in soup.find_all(string=lambda s: isinstance(s, Comment)):
        comment.extract()

    chunks: list[str] = []
    # Leaf-most content tags only, so nested <article><p> is not emitted twice.
    for tag in soup.find_all(_CONTENT_TAGS):
        if tag.find(_CONTENT_TAGS) is not None:
            continue
        text = _WHITESPACE.sub(" ", tag.get_text(" ")).strip()
        if text:
            chunks.append(text)

    text = " ".join(chunks) if chunks else soup.get_text(" ")
    return _WHITESPACE.sub(" ", text).strip()


def truncate_text(text: str, max_chars: int) -> str:
    """Cut *text* to *max_chars*, preferring a word boundary near the end."""
    if len(text) <= max_chars:
        return text
    cut = text[:max_chars]
    last_space = cut.rfind(" ")
    if last_space > max_chars * 0.9:
        cut = cut[:last_space]
    return cut + "..."


class ContentFetcher:
    """Async URL fetcher with a byte cap and markup-to-text conversion."""

    def __init__(
        self,
        *,
        timeout: float = 15.0,
        max_bytes: int = 2 * 1024 * 1024,
        max_chars: int = 20_000,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.max_bytes = max_bytes
        self.max_chars = max_chars
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=timeout,
            follow_redirects=True,
            headers=DEFAULT_HEADERS,
        )

    async def fetch(self, url: str) -> str:
        url = url.strip()
        if not url.lower().startswith(_ALLOWED_SCHEMES):
            raise FetchError(f"Invalid URL (expected http:// or https://): {url}")

        logger.info("Fetching %s", url)
        try:
            async with self._client.stream("GET", url) as response:
                if not 200 <= response.status_code < 300:
                    raise FetchError(f"Failed to fetch content from URL: {url} (HTTP {response.status_code})")
                body = await self._read_capped(response)
                encoding = response.encoding or "utf-8"
                content_type = response.headers.get("content-type", "")
        except httpx.HTTPError as exc:
            raise FetchError(f"Failed to fetch content from URL: {url} ({exc})") from exc

        raw = body.decode(encoding, errors="replace")
        text = raw.strip() if content_type.startswith("text/plain") else html_to_text(raw)
        if not text:
            raise FetchError(f"No readable content at {url}")
        return truncate_text(text, self.max_chars)

    async def _read_capped(self, response: httpx.Response) -> bytes:
        buf = bytearray()
        async for chunk in response.aiter_bytes():
            buf.extend(chunk)
            if len(buf) >= self.max_bytes:
                logger.info("Response body capped at %d bytes", self.max_bytes)
                del buf[self.max_bytes:]
                break
        return bytes(buf)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
