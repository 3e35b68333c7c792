"""Selector-fallback field extraction for X profile headers."""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from xcard.core.dom import DomView
from xcard.core.urls import username_from_path, is_valid_username
from xcard.logging import get_logger

_log = get_logger("extractor")


class FieldKind(str, Enum):
    USERNAME = "username"
    DISPLAY_NAME = "display_name"
    BIO = "bio"
    AVATAR_URL = "avatar_url"
    FOLLOWER_COUNT = "follower_count"
    FOLLOWING_COUNT = "following_count"
    VERIFIED = "verified"


# Selectors - centralized for easy updates when X changes their DOM
SELECTORS = {
    "user_name": '[data-testid="UserName"]',
    "user_description": '[data-testid="UserDescription"]',
    "avatar_unknown": '[data-testid="UserAvatar-Container-unknown"] img',
    "avatar_any": '[data-testid^="UserAvatar-Container-"] img',
    "avatar_alt": 'img[alt*="profile" i]',
    "avatar_src": 'img[src*="profile_images"]',
    "followers_verified": 'a[href$="/verified_followers"]',
    "followers": 'a[href$="/followers"]',
    "following": 'a[href$="/following"]',
    "canonical": 'link[rel="canonical"]',
    "og_url": 'meta[property="og:url"]',
    "og_title": 'meta[property="og:title"]',
    "og_description": 'meta[property="og:description"]',
    "og_image": 'meta[property="og:image"]',
    "title": "title",
}

# Independent verification indicators; any one match marks the profile verified
VERIFIED_INDICATORS = (
    '[data-testid="icon-verified"]',
    '[aria-label="Verified account"]',
    '[aria-label="Cuenta verificada"]',
    '[aria-label="Compte certifié"]',
    '[aria-label="Verifizierter Account"]',
    '[aria-label="認証済みアカウント"]',
    f'{SELECTORS["user_name"]} svg[aria-label*="erifi"]',
)

# Low-resolution avatar filename suffixes, replaced by the high-resolution one
AVATAR_LOW_RES_SUFFIXES = ("_normal", "_bigger", "_mini", "_200x200", "_x96")
AVATAR_HIGH_RES_SUFFIX = "_400x400"
_AVATAR_SUFFIX_PATTERN = re.compile(
    r"(" + "|".join(AVATAR_LOW_RES_SUFFIXES) + r")(\.(?:jpe?g|png|webp|gif))(\?.*)?$",
    re.IGNORECASE,
)

# "Display Name (@handle) / X" as used in page titles and og:title
_TITLE_PATTERN = re.compile(r"^(?P<name>.+?)\s*\(@(?P<handle>[A-Za-z0-9_]{1,15})\)")

COUNT_MULTIPLIERS = {
    "K": 1_000,
    "M": 1_000_000,
    "B": 1_000_000_000,
}


def parse_count(count_str: str | None) -> int:
    """
    Convert abbreviated count strings to integers.

    Suffixes are case-sensitive upper-case; anything unparseable is 0.

    Examples:
        "1.2K" -> 1200
        "2M" -> 2000000
        "500" -> 500
        "1,234" -> 1234
        "1,234 Followers" -> 1234
        "" -> 0
    """
    if not count_str:
        return 0

    tokens = count_str.strip().split()
    if not tokens:
        return 0
    text = tokens[0].replace(",", "")

    multiplier = 1
    if text and text[-1] in COUNT_MULTIPLIERS:
        multiplier = COUNT_MULTIPLIERS[text[-1]]
        text = text[:-1]

    try:
        value = round(float(text) * multiplier)
    except (ValueError, OverflowError):
        return 0

    return max(value, 0)


def upscale_avatar_url(url: str | None) -> str | None:
    """
    Request the high-resolution variant of a profile image URL.

    Examples:
        ".../abc_normal.jpg" -> ".../abc_400x400.jpg"
        ".../abc_200x200.png?x=1" -> ".../abc_400x400.png?x=1"
    """
    if not url:
        return url
    return _AVATAR_SUFFIX_PATTERN.sub(
        lambda m: AVATAR_HIGH_RES_SUFFIX + m.group(2) + (m.group(3) or ""),
        url,
    )


@dataclass(frozen=True)
class Strategy:
    """One way of locating a field; returns raw text or None."""

    name: str
    read: Callable[[DomView], str | None]


def _text_of(selector: str) -> Callable[[DomView], str | None]:
    def read(view: DomView) -> str | None:
        node = view.query(selector)
        return node.text() if node is not None else None
    return read


def _attr_of(selector: str, attr: str) -> Callable[[DomView], str | None]:
    def read(view: DomView) -> str | None:
        node = view.query(selector)
        return node.attr(attr) if node is not None else None
    return read


def _user_name_spans(view: DomView) -> list[str]:
    block = view.query(SELECTORS["user_name"])
    if block is None:
        return []
    return [t for t in (span.text() for span in block.query_all("span")) if t]


def _handle_from_user_name(view: DomView) -> str | None:
    for text in _user_name_spans(view):
        if text.startswith("@"):
            return text[1:]
    return None


def _name_from_user_name(view: DomView) -> str | None:
    # Display name is the first non-empty span that is not the @handle
    for text in _user_name_spans(view):
        if not text.startswith("@"):
            return text
    return None


def _title_part(selector: str, attr: str | None, part: str) -> Callable[[DomView], str | None]:
    def read(view: DomView) -> str | None:
        node = view.query(selector)
        if node is None:
            return None
        raw = node.attr(attr) if attr else node.text()
        match = _TITLE_PATTERN.match(raw or "")
        return match.group(part) if match else None
    return read


def _handle_from_link(selector: str, attr: str) -> Callable[[DomView], str | None]:
    def read(view: DomView) -> str | None:
        node = view.query(selector)
        return username_from_path(node.attr(attr)) if node is not None else None
    return read


def _count_from_link(selector: str) -> Callable[[DomView], str | None]:
    def read(view: DomView) -> str | None:
        link = view.query(selector)
        if link is None:
            return None
        span = link.query("span")
        return span.text() if span is not None else link.text()
    return read


STRATEGIES: dict[FieldKind, tuple[Strategy, ...]] = {
    FieldKind.USERNAME: (
        Strategy("user_name_handle", _handle_from_user_name),
        Strategy("canonical_link", _handle_from_link(SELECTORS["canonical"], "href")),
        Strategy("og_url", _handle_from_link(SELECTORS["og_url"], "content")),
        Strategy("og_title_handle", _title_part(SELECTORS["og_title"], "content", "handle")),
    ),
    FieldKind.DISPLAY_NAME: (
        Strategy("user_name_first_span", _name_from_user_name),
        Strategy("og_title_name", _title_part(SELECTORS["og_title"], "content", "name")),
        Strategy("title_name", _title_part(SELECTORS["title"], None, "name")),
    ),
    FieldKind.BIO: (
        Strategy("user_description", _text_of(SELECTORS["user_description"])),
        Strategy("og_description", _attr_of(SELECTORS["og_description"], "content")),
    ),
    FieldKind.AVATAR_URL: (
        Strategy("avatar_unknown", _attr_of(SELECTORS["avatar_unknown"], "src")),
        Strategy("avatar_any", _attr_of(SELECTORS["avatar_any"], "src")),
        Strategy("avatar_alt", _attr_of(SELECTORS["avatar_alt"], "src")),
        Strategy("avatar_src", _attr_of(SELECTORS["avatar_src"], "src")),
        Strategy("og_image", _attr_of(SELECTORS["og_image"], "content")),
    ),
    FieldKind.FOLLOWER_COUNT: (
        Strategy("verified_followers_link", _count_from_link(SELECTORS["followers_verified"])),
        Strategy("followers_link", _count_from_link(SELECTORS["followers"])),
    ),
    FieldKind.FOLLOWING_COUNT: (
        Strategy("following_link", _count_from_link(SELECTORS["following"])),
    ),
}


def resolve_raw(field: FieldKind, view: DomView) -> tuple[str, str] | None:
    """
    Run a field's strategies in order and return (strategy name, raw text)
    for the first non-empty match, or None.
    """
    for strategy in STRATEGIES.get(field, ()):
        try:
            value = strategy.read(view)
        except Exception as e:
            # A broken selector must not stop the remaining fallbacks
            _log.debug("strategy_error", field=field.value, strategy=strategy.name, error=str(e))
            continue
        if value and value.strip():
            return strategy.name, value.strip()
    return None


def is_verified(view: DomView) -> bool:
    """OR over the independent verification badge lookups."""
    return any(view.query(selector) is not None for selector in VERIFIED_INDICATORS)


def extract(field: FieldKind, view: DomView):
    """
    Resolve one logical field from a DOM view.

    Returns:
        str for text fields, int for counts, bool for VERIFIED,
        or None when no strategy matched
    """
    if field == FieldKind.VERIFIED:
        return is_verified(view)

    hit = resolve_raw(field, view)
    if hit is None:
        return None
    strategy_name, raw = hit

    if field == FieldKind.USERNAME:
        handle = raw.lstrip("@")
        if not is_valid_username(handle):
            _log.debug("username_rejected", strategy=strategy_name, raw=raw)
            return None
        return handle
    if field in (FieldKind.FOLLOWER_COUNT, FieldKind.FOLLOWING_COUNT):
        return parse_count(raw)
    if field == FieldKind.AVATAR_URL:
        return upscale_avatar_url(raw)
    return raw


def extract_all(view: DomView) -> dict[FieldKind, object]:
    """Single extraction pass over every field."""
    return {field: extract(field, view) for field in FieldKind}
