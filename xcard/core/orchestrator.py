"""Pipeline orchestrator - coordinates page loading, assembly, rendering and layout."""

import asyncio
import time
import uuid
from contextlib import AsyncExitStack
from functools import partial
from typing import Awaitable, Callable

import httpx

from xcard.cache import CacheProvider, create_cache
from xcard.config import CardConfig
from xcard.core.assembler import assemble
from xcard.core.compositor import compose, document_filename, layout
from xcard.core.fetcher import USER_AGENTS, BrowserPageLoader, PageLoader, fetch_avatar
from xcard.core.renderer import CardRenderer, QrCodeEncoder, QrEncoder, resize_avatar
from xcard.core.urls import cache_key, require_profile_url
from xcard.exceptions import (
    AssetFetchError,
    BatchTooLargeError,
    CacheError,
    ConfigError,
    ErrorCode,
    NoValidProfilesError,
    RenderError,
    XcardError,
)
from xcard.logging import bind_batch_context, clear_batch_context, get_logger
from xcard.models.card import RenderedCard
from xcard.models.layout import FrameSize, TileConfig
from xcard.models.profile import Profile
from xcard.models.result import BatchResult, DocumentResult, FailedItem
from xcard.models.template import Template, default_template

AvatarFetcher = Callable[[str], Awaitable[bytes]]


def parse_url_list(urls: list[str] | str) -> list[str]:
    """Accept a list or a newline-delimited string; blank lines are dropped."""
    if isinstance(urls, str):
        urls = urls.splitlines()
    return [u.strip() for u in urls if u and u.strip()]


class RateLimiter:
    """Enforces a minimum spacing between external page loads."""

    def __init__(
        self,
        min_interval: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.min_interval = min_interval
        self._clock = clock
        self._sleep = sleep
        self._last: float | None = None

    async def wait(self) -> float:
        """
        Await until the next load is allowed.

        Returns:
            Seconds waited
        """
        waited = 0.0
        if self._last is not None:
            remaining = self.min_interval - (self._clock() - self._last)
            if remaining > 0:
                await self._sleep(remaining)
                waited = remaining
        self._last = self._clock()
        return waited


class CardMaker:
    """
    High-level name tag interface with caching and rate limiting.

    Collaborators are injected; anything not supplied is built from config
    and owned (opened and closed) by the context manager.

    Example:
        async with CardMaker() as maker:
            result = await maker.build_document(["https://x.com/alice", "https://x.com/bob"])
            Path(result.filename).write_bytes(result.pdf)
    """

    def __init__(
        self,
        config: CardConfig | None = None,
        page_loader: PageLoader | None = None,
        avatar_fetcher: AvatarFetcher | None = None,
        qr_encoder: QrEncoder | None = None,
        cache: CacheProvider | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize with optional configuration and collaborators.

        Args:
            config: CardConfig instance, uses defaults if None
            page_loader: Opens profile pages; a headless browser if None
            avatar_fetcher: Downloads avatar bytes; httpx if None
            qr_encoder: QR encoder for card backs; qrcode if None
            cache: Profile cache; built from config.cache_backend if None
            clock: Monotonic clock for durations and rate limiting
        """
        self.config = config or CardConfig()
        self.page_loader = page_loader
        self.avatar_fetcher = avatar_fetcher
        self.cache = cache
        if qr_encoder is None:
            try:
                qr_encoder = QrCodeEncoder(
                    self.config.qr_error_correction,
                    self.config.qr_box_size,
                    self.config.qr_border,
                )
            except ValueError as e:
                raise ConfigError(f"Invalid QR settings: {e}") from e
        self.renderer = CardRenderer(qr_encoder)
        self.rate_limiter = RateLimiter(self.config.request_delay_ms / 1000, clock=clock)
        self._clock = clock
        self._stack = AsyncExitStack()
        self._log = get_logger("cardmaker")

    async def __aenter__(self) -> "CardMaker":
        """Open owned resources."""
        await self._stack.__aenter__()
        cfg = self.config

        if self.page_loader is None:
            self.page_loader = await self._stack.enter_async_context(BrowserPageLoader(
                headless=cfg.headless,
                timeout_ms=cfg.browser_timeout_ms,
                user_agent=cfg.user_agent,
            ))

        if self.avatar_fetcher is None:
            client = await self._stack.enter_async_context(httpx.AsyncClient(
                timeout=cfg.avatar_timeout_ms / 1000,
                follow_redirects=False,
                headers={"User-Agent": cfg.user_agent or USER_AGENTS[0]},
            ))
            self.avatar_fetcher = partial(
                fetch_avatar,
                client=client,
                max_retries=cfg.avatar_max_retries,
                backoff_base=cfg.avatar_backoff_base,
            )

        if self.cache is None:
            cache = create_cache(cfg)
            if cache is not None:
                self.cache = await self._stack.enter_async_context(cache)

        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Close owned resources."""
        await self._stack.__aexit__(exc_type, exc_val, exc_tb)

    def default_tile_config(self, double_sided: bool = False) -> TileConfig:
        """Tile options from config defaults."""
        cfg = self.config
        return TileConfig(
            page_size=cfg.page_size,
            margin=cfg.margin_pt,
            spacing=cfg.spacing_pt,
            double_sided=double_sided,
            front_frame_size=FrameSize(w=cfg.card_width_pt, h=cfg.card_height_pt),
        )

    async def _cached(self, key: str) -> Profile | None:
        if self.cache is None:
            return None
        try:
            return await self.cache.get(key)
        except CacheError as e:
            self._log.warning("cache_read_failed", key=key, error=e.message)
            return None

    async def _store(self, key: str, profile: Profile) -> None:
        if self.cache is None:
            return
        try:
            await self.cache.set(key, profile)
        except CacheError as e:
            self._log.warning("cache_write_failed", key=key, error=e.message)

    async def fetch_profile(self, url: str) -> Profile:
        """
        Load a canonical profile URL and assemble its Profile.

        Raises:
            FetchError: Page could not be loaded
            ExtractionTimeoutError: Page never produced a usable DOM
            MissingRequiredFieldError: Username unrecoverable
        """
        if self.page_loader is None:
            raise RuntimeError("CardMaker must be used as an async context manager")

        waited = await self.rate_limiter.wait()
        if waited:
            self._log.debug("rate_limited", url=url, waited_s=round(waited, 3))

        cfg = self.config
        async with self.page_loader.open(url) as source:
            return await assemble(
                source,
                url,
                timeout=cfg.hydration_timeout_ms / 1000,
                poll_interval=cfg.poll_interval_ms / 1000,
                grace_period=cfg.grace_period_ms / 1000,
                allow_url_fallback_on_timeout=cfg.allow_url_fallback_on_timeout,
            )

    async def get_profile(self, url: str, force_refresh: bool = False) -> Profile:
        """Validate a URL and return its Profile, from cache when fresh."""
        validation = require_profile_url(url, self.config.reject_ambiguous_fragments)
        key = cache_key(validation.normalized_url)

        if not force_refresh:
            cached = await self._cached(key)
            if cached is not None:
                self._log.info("cache_hit", username=cached.username)
                return cached

        profile = await self.fetch_profile(validation.normalized_url)
        await self._store(key, profile)
        return profile

    async def validate_profile(self, url: str) -> bool:
        """True if the profile page loads and yields a Profile."""
        try:
            await self.get_profile(url)
        except XcardError as e:
            self._log.info("profile_inaccessible", url=url, code=e.code.value)
            return False
        return True

    async def load_avatar(self, profile: Profile, size: int) -> bytes | None:
        """Avatar bytes for a profile, or None for the placeholder. Never raises."""
        if not profile.avatar_url or self.avatar_fetcher is None:
            return None
        try:
            data = await self.avatar_fetcher(profile.avatar_url)
        except AssetFetchError as e:
            self._log.info("avatar_unavailable", username=profile.username, error=e.message)
            return None
        try:
            return resize_avatar(data, size)
        except RenderError:
            # Undecodable bytes go through so the renderer records the placeholder
            return data

    async def make_card(
        self,
        url: str,
        template: Template | None = None,
        include_back: bool = True,
        force_refresh: bool = False,
    ) -> RenderedCard:
        """
        Produce a rendered card for one profile URL.

        Args:
            url: Profile URL in any accepted form
            template: Card template; the default badge if None
            include_back: Render the QR back side
            force_refresh: Skip the cache

        Returns:
            RenderedCard

        Raises:
            XcardError: Any per-URL failure (invalid URL, fetch, timeout, render)
        """
        template = template or default_template()
        self._log.info("card_start", url=url)
        profile = await self.get_profile(url, force_refresh)
        avatar = await self.load_avatar(profile, template.layout.avatar_size)
        card = self.renderer.render(profile, template, avatar=avatar, include_back=include_back)
        self._log.info("card_complete", username=card.username, placeholders=card.placeholders)
        return card

    async def process_batch(
        self,
        urls: list[str] | str,
        template: Template | None = None,
        include_back: bool = True,
        force_refresh: bool = False,
    ) -> BatchResult:
        """
        Render cards for many URLs sequentially, isolating per-URL failures.

        Args:
            urls: List of URLs or a newline-delimited string
            template: Card template for every card
            include_back: Render QR back sides
            force_refresh: Skip the cache for all

        Returns:
            BatchResult; succeeded follows input order

        Raises:
            BatchTooLargeError: More URLs than max_batch_size
            NoValidProfilesError: Every URL failed
        """
        items = parse_url_list(urls)
        limit = self.config.max_batch_size
        if len(items) > limit:
            raise BatchTooLargeError(
                f"Batch of {len(items)} URLs exceeds the maximum of {limit}; split it into smaller batches"
            )
        if not items:
            raise NoValidProfilesError("No profile URLs provided")

        start = self._clock()
        result = BatchResult()
        bind_batch_context(uuid.uuid4().hex[:8], len(items))
        try:
            for url in items:
                try:
                    card = await self.make_card(url, template, include_back, force_refresh)
                except XcardError as e:
                    self._log.warning("card_failed", url=url, code=e.code.value, error=e.message)
                    result.failed.append(FailedItem(url, e.code, e.message))
                    continue
                except Exception as e:
                    self._log.error("card_failed_unexpected", url=url, error=str(e), exc_info=True)
                    result.failed.append(FailedItem(url, ErrorCode.RENDER_ERROR, f"Unexpected error: {e}"))
                    continue
                result.succeeded.append(card)

            result.duration_ms = (self._clock() - start) * 1000
            self._log.info(
                "batch_complete",
                succeeded=len(result.succeeded),
                failed=len(result.failed),
                duration_ms=round(result.duration_ms, 1),
            )
        finally:
            clear_batch_context()

        if not result.succeeded:
            raise NoValidProfilesError(
                f"None of the {len(items)} profile URLs could be turned into a name tag",
                failed=result.failed,
            )
        return result

    async def build_document(
        self,
        urls: list[str] | str,
        template: Template | None = None,
        tile_config: TileConfig | None = None,
        force_refresh: bool = False,
    ) -> DocumentResult:
        """
        Render a batch and tile it into a paginated PDF.

        The layout is validated before any page is loaded.

        Raises:
            InvalidLayoutConfigError: Geometry is impossible
            BatchTooLargeError: Too many URLs
            NoValidProfilesError: Every URL failed
        """
        tile_config = tile_config or self.default_tile_config()
        layout(1, tile_config)

        batch = await self.process_batch(
            urls, template, include_back=tile_config.double_sided, force_refresh=force_refresh,
        )
        pdf, plan = compose(batch.succeeded, tile_config)
        filename = document_filename([card.username for card in batch.succeeded])
        return DocumentResult(pdf=pdf, filename=filename, plan=plan, batch=batch)

    async def invalidate_cache(self, url: str) -> None:
        """Remove one profile URL from the cache."""
        key = cache_key(url)
        if self.cache and key:
            await self.cache.invalidate(key)

    async def clear_cache(self) -> None:
        """Clear all cached profiles."""
        if self.cache:
            await self.cache.clear()
