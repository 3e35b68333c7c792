"""Playwright page loading and avatar downloading."""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Protocol
from urllib.parse import urlsplit

import httpx
from playwright.async_api import (
    async_playwright,
    Browser,
    BrowserContext,
    Page,
    Playwright,
    Error as PlaywrightError,
)

from xcard.core.dom import DomSource, PageDomSource
from xcard.exceptions import AssetFetchError, FetchError
from xcard.logging import get_logger

_log = get_logger("fetcher")


# Common user agents for rotation
USER_AGENTS = [
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
]

# Avatars are only fetched from X's image CDNs
ALLOWED_AVATAR_HOSTS = frozenset({"pbs.twimg.com", "abs.twimg.com"})


class PageLoader(Protocol):
    """Opens a profile URL and yields a DomSource for the loaded page."""

    def open(self, url: str) -> "AsyncIterator[DomSource]": ...


class BrowserPageLoader:
    """
    Loads profile pages in a shared headless Chromium.

    Example:
        async with BrowserPageLoader() as loader:
            async with loader.open("https://x.com/alice") as source:
                view = await source.snapshot()
    """

    def __init__(
        self,
        headless: bool = True,
        timeout_ms: int = 30000,
        user_agent: str | None = None,
    ):
        self.headless = headless
        self.timeout_ms = timeout_ms
        self.user_agent = user_agent or USER_AGENTS[0]
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None

    async def __aenter__(self) -> "BrowserPageLoader":
        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch(headless=self.headless)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._browser:
            await self._browser.close()
            self._browser = None
        if self._playwright:
            await self._playwright.stop()
            self._playwright = None

    @asynccontextmanager
    async def open(self, url: str) -> AsyncIterator[DomSource]:
        """
        Navigate to a profile page.

        Raises:
            FetchError: Navigation failed, profile missing, or blocked
        """
        if self._browser is None:
            raise FetchError("Browser not started; use BrowserPageLoader as a context manager")

        context: BrowserContext = await self._browser.new_context(
            viewport={"width": 1280, "height": 720},
            user_agent=self.user_agent,
        )
        try:
            page: Page = await context.new_page()
            try:
                response = await page.goto(url, wait_until="domcontentloaded", timeout=self.timeout_ms)
            except PlaywrightError as e:
                raise FetchError(f"Browser error loading {url}: {e}") from e

            if response is None:
                raise FetchError(f"No response received for {url}")

            status = response.status
            if status == 404:
                raise FetchError(f"Profile not found: {url}")
            if status in (403, 429):
                raise FetchError(f"Blocked or rate limited (HTTP {status})")
            if status >= 400:
                raise FetchError(f"HTTP {status} loading {url}")

            _log.debug("page_loaded", url=url, status=status)
            yield PageDomSource(page)
        finally:
            await context.close()


def check_avatar_url(url: str) -> None:
    """
    Reject avatar URLs outside the trusted image CDNs.

    Raises:
        AssetFetchError: Non-HTTPS URL or untrusted host
    """
    parts = urlsplit(url)
    if parts.scheme != "https":
        raise AssetFetchError(f"Only HTTPS avatar URLs are allowed: {url}")
    if parts.hostname not in ALLOWED_AVATAR_HOSTS:
        raise AssetFetchError(f"Avatar host not allowed: {parts.hostname}")


async def fetch_avatar(
    url: str,
    client: httpx.AsyncClient,
    max_retries: int = 3,
    backoff_base: float = 2.0,
) -> bytes:
    """
    Download avatar image bytes with bounded retries.

    Args:
        url: Avatar image URL on an allowed CDN host
        client: Shared httpx client (carries timeout and headers)
        max_retries: Total attempts before giving up
        backoff_base: Exponential backoff base, seconds

    Returns:
        Raw image bytes

    Raises:
        AssetFetchError: Disallowed URL, non-image response, or all attempts failed
    """
    check_avatar_url(url)

    last_error: Exception | None = None
    for attempt in range(max(max_retries, 1)):
        try:
            response = await client.get(url)
            response.raise_for_status()
            content_type = response.headers.get("content-type", "")
            if not content_type.startswith("image/"):
                raise AssetFetchError(f"Unexpected content type for avatar: {content_type or 'none'}")
            if not response.content:
                raise AssetFetchError("Downloaded avatar is empty")
            return response.content
        except AssetFetchError:
            raise
        except httpx.HTTPError as e:
            last_error = e
            _log.debug("avatar_attempt_failed", url=url, attempt=attempt + 1, error=str(e))
            if attempt < max_retries - 1:
                await asyncio.sleep(backoff_base ** attempt)

    raise AssetFetchError(f"Failed to download avatar after {max_retries} attempts: {last_error}")
