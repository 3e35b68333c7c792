"""Poll a hydrating page until its header resolves, then build a Profile."""

import asyncio
import time
from datetime import datetime
from enum import Enum
from typing import Callable

from xcard.core.dom import DomSource, DomView
from xcard.core.extractor import FieldKind, extract, extract_all
from xcard.core.urls import CANONICAL_HOST, username_from_path
from xcard.exceptions import ExtractionTimeoutError, MissingRequiredFieldError
from xcard.logging import get_logger
from xcard.models.profile import Profile

_log = get_logger("assembler")

PRIMARY_FIELDS = (FieldKind.USERNAME, FieldKind.DISPLAY_NAME)


class AssemblyState(str, Enum):
    POLLING = "polling"
    RESOLVED = "resolved"
    TIMED_OUT = "timed_out"


def _primary_resolved(view: DomView) -> bool:
    return any(extract(field, view) for field in PRIMARY_FIELDS)


async def _bounded_snapshot(source: DomSource, timeout: float) -> DomView | None:
    """Take a snapshot, giving up (None) if it does not complete in time."""
    if timeout <= 0:
        return None
    try:
        return await asyncio.wait_for(source.snapshot(), timeout=timeout)
    except asyncio.TimeoutError:
        return None


async def wait_for_hydration(
    source: DomSource,
    timeout: float = 5.0,
    poll_interval: float = 0.1,
    clock: Callable[[], float] = time.monotonic,
) -> tuple[AssemblyState, DomView | None]:
    """
    Poll until a primary field resolves or the wall-clock bound elapses.

    Every wait is an awaited sleep, and each snapshot is itself bounded by
    the remaining time, so a hung page cannot stall the caller.

    Returns:
        (RESOLVED, view) or (TIMED_OUT, last view seen or None)
    """
    deadline = clock() + timeout
    last_view: DomView | None = None
    polls = 0

    while True:
        remaining = deadline - clock()
        view = await _bounded_snapshot(source, remaining)
        polls += 1
        if view is not None:
            last_view = view
            if _primary_resolved(view):
                _log.debug("hydration_resolved", polls=polls)
                return AssemblyState.RESOLVED, view

        remaining = deadline - clock()
        if remaining <= 0:
            _log.info("hydration_timed_out", polls=polls, timeout_s=timeout)
            return AssemblyState.TIMED_OUT, last_view

        await asyncio.sleep(min(poll_interval, remaining))


async def assemble(
    source: DomSource,
    source_url: str,
    timeout: float = 5.0,
    poll_interval: float = 0.1,
    grace_period: float = 0.25,
    allow_url_fallback_on_timeout: bool = True,
    clock: Callable[[], float] = time.monotonic,
) -> Profile:
    """
    Assemble a validated Profile from a page that hydrates asynchronously.

    Args:
        source: Produces DOM snapshots of the loaded page
        source_url: Canonical profile URL the page was loaded from
        timeout: Wall-clock bound on hydration polling, seconds
        poll_interval: Delay between polls, seconds
        grace_period: Extra wait after the first primary field resolves
        allow_url_fallback_on_timeout: Build a degraded Profile from the URL
            handle when the page never hydrated
        clock: Monotonic clock, injectable for tests

    Returns:
        Profile with username and profile_url always set

    Raises:
        ExtractionTimeoutError: Page never produced a usable DOM in time
        MissingRequiredFieldError: Username not found on the page or in the URL
    """
    state, view = await wait_for_hydration(source, timeout, poll_interval, clock)

    if state == AssemblyState.RESOLVED:
        await asyncio.sleep(grace_period)
        final = await _bounded_snapshot(source, max(timeout, grace_period))
        if final is not None:
            view = final

    fields = extract_all(view) if view is not None else {}

    username = fields.get(FieldKind.USERNAME)
    if not username:
        username = username_from_path(source_url)
        if username:
            _log.info("username_from_url", url=source_url, username=username)

    if not username:
        raise MissingRequiredFieldError(
            f"Could not determine the username for {source_url}: "
            "not present on the page and not recoverable from the URL"
        )

    if state == AssemblyState.TIMED_OUT:
        if view is None or not allow_url_fallback_on_timeout:
            raise ExtractionTimeoutError(
                f"Profile page for @{username} did not load within {timeout:g}s; try again later"
            )
        _log.warning("degraded_profile", username=username, reason="hydration_timeout")

    profile = Profile(
        username=username,
        display_name=fields.get(FieldKind.DISPLAY_NAME) or username,
        bio=fields.get(FieldKind.BIO) or None,
        avatar_url=fields.get(FieldKind.AVATAR_URL) or None,
        verified=bool(fields.get(FieldKind.VERIFIED, False)),
        follower_count=fields.get(FieldKind.FOLLOWER_COUNT) or 0,
        following_count=fields.get(FieldKind.FOLLOWING_COUNT) or 0,
        profile_url=f"https://{CANONICAL_HOST}/{username}",
        extracted_at=datetime.now(),
    )
    _log.info("profile_assembled", username=username, state=state.value)
    return profile
