"""Profile URL validation and canonicalization."""

import re
from dataclasses import dataclass
from urllib.parse import urlsplit

from xcard.exceptions import EXAMPLE_URL, InvalidUrlError


CANONICAL_HOST = "x.com"

# Equivalent hosts; matched case-sensitively
ALIAS_HOSTS = ("x.com", "twitter.com")

RESERVED_PATHS = frozenset({
    "home",
    "explore",
    "notifications",
    "messages",
    "bookmarks",
    "lists",
    "settings",
    "help",
    "i",
})

# Short fragments that are known page anchors rather than mangled usernames
FRAGMENT_SAFE_WORDS = frozenset({"section"})

MAX_AMBIGUOUS_FRAGMENT_LENGTH = 8

USERNAME_PATTERN = re.compile(r"^[A-Za-z0-9_]{1,15}$")
_FRAGMENT_PATTERN = re.compile(r"^[A-Za-z0-9_]+$")
_URL_PATTERN = re.compile(
    r"^https?://(?:www\.)?(?P<host>"
    + "|".join(re.escape(h) for h in ALIAS_HOSTS)
    + r")/(?P<segment>[^/?#]*)(?P<rest>.*)$"
)


@dataclass(frozen=True)
class UrlValidation:
    """Outcome of validating a candidate profile URL."""

    valid: bool
    normalized_url: str | None = None
    username: str | None = None
    error: str | None = None


def _invalid(message: str) -> UrlValidation:
    return UrlValidation(valid=False, error=message)


def _ambiguous_fragment(rest: str, safe_words: frozenset[str]) -> bool:
    """True if the URL tail is a short username-like fragment."""
    if not rest.startswith("#"):
        return False
    fragment = re.split(r"[/?]", rest[1:], maxsplit=1)[0]
    return (
        bool(fragment)
        and len(fragment) <= MAX_AMBIGUOUS_FRAGMENT_LENGTH
        and bool(_FRAGMENT_PATTERN.match(fragment))
        and fragment not in safe_words
    )


def validate_profile_url(
    raw_url: str | None,
    reject_ambiguous_fragments: bool = True,
    safe_words: frozenset[str] = FRAGMENT_SAFE_WORDS,
) -> UrlValidation:
    """
    Validate an X profile URL and rewrite it to canonical form.

    Accepts http(s) URLs on x.com or twitter.com, with or without "www.".
    Extra path segments, query strings and fragments are stripped, except a
    short username-like fragment, which makes the URL ambiguous.

    Args:
        raw_url: Candidate URL, surrounding whitespace ignored
        reject_ambiguous_fragments: Apply the short-fragment rejection rule
        safe_words: Fragments that are never considered ambiguous

    Returns:
        UrlValidation with normalized_url and username when valid
    """
    if not isinstance(raw_url, str):
        return _invalid("URL is required and must be a string")

    url = raw_url.strip()
    if not url:
        return _invalid("URL cannot be empty")

    match = _URL_PATTERN.match(url)
    if match is None:
        return _invalid(
            "Invalid X profile URL format. "
            f"Expected format: {EXAMPLE_URL} or https://twitter.com/username"
        )

    username = match.group("segment")
    rest = match.group("rest")

    if not USERNAME_PATTERN.match(username):
        return _invalid(
            "Invalid username format. Username must be 1-15 characters long "
            "and contain only letters, numbers, and underscores."
        )

    if username.lower() in RESERVED_PATHS:
        return _invalid(
            f"'{username}' is not a profile page. Expected format: {EXAMPLE_URL}"
        )

    if reject_ambiguous_fragments and _ambiguous_fragment(rest, safe_words):
        return _invalid(
            "Invalid URL format. Ambiguous fragment that could be part of username."
        )

    return UrlValidation(
        valid=True,
        normalized_url=f"https://{CANONICAL_HOST}/{username}",
        username=username,
    )


def require_profile_url(raw_url: str, reject_ambiguous_fragments: bool = True) -> UrlValidation:
    """Like validate_profile_url but raises InvalidUrlError on rejection."""
    result = validate_profile_url(raw_url, reject_ambiguous_fragments)
    if not result.valid:
        raise InvalidUrlError(result.error or "Invalid profile URL", url=raw_url)
    return result


def normalize_url(raw_url: str) -> str | None:
    """Canonical profile URL, or None if invalid."""
    return validate_profile_url(raw_url).normalized_url


def extract_username(raw_url: str) -> str | None:
    """Username from a valid profile URL, or None if invalid."""
    return validate_profile_url(raw_url).username


def is_valid_username(username: str | None) -> bool:
    """Check a bare handle (no URL, no @) against the username grammar."""
    if not isinstance(username, str):
        return False
    return bool(USERNAME_PATTERN.match(username.strip()))


def username_from_path(url: str | None) -> str | None:
    """
    Lenient username recovery from the first path segment of any URL.

    Used when the page itself never yielded a handle. The host is not
    checked; the segment must still satisfy the username grammar.
    """
    if not url:
        return None
    path = urlsplit(url.strip()).path
    segments = [s for s in path.split("/") if s]
    if not segments:
        return None
    candidate = segments[0].lstrip("@")
    if candidate.lower() in RESERVED_PATHS or not is_valid_username(candidate):
        return None
    return candidate


def is_profile_page(url: str) -> bool:
    """True for a profile root URL (no sub-page such as /status or /photo)."""
    result = validate_profile_url(url)
    if not result.valid:
        return False
    path = urlsplit(url.strip()).path.rstrip("/")
    return path.count("/") == 1


def cache_key(raw_url: str) -> str | None:
    """Case-insensitive key for caching, derived from the canonical URL."""
    normalized = normalize_url(raw_url)
    return normalized.lower() if normalized else None
