"""Unit tests for profile URL validation and canonicalization."""

import pytest

from xcard.core.urls import (
    cache_key,
    extract_username,
    is_profile_page,
    is_valid_username,
    normalize_url,
    require_profile_url,
    username_from_path,
    validate_profile_url,
)
from xcard.exceptions import ErrorCode, InvalidUrlError


class TestValidateProfileUrl:
    """Accepted forms rewrite to https://x.com/<username>."""

    @pytest.mark.parametrize("raw", [
        "https://x.com/alice",
        "http://x.com/alice",
        "https://www.x.com/alice",
        "https://twitter.com/alice",
        "https://www.twitter.com/alice/",
        "  https://x.com/alice  ",
        "https://x.com/alice?s=20",
        "https://x.com/alice/status/12345",
        "https://x.com/alice#section",
    ])
    def test_accepted_forms_normalize(self, raw):
        result = validate_profile_url(raw)
        assert result.valid
        assert result.normalized_url == "https://x.com/alice"
        assert result.username == "alice"
        assert result.error is None

    def test_username_case_preserved(self):
        assert normalize_url("https://x.com/Alice_01") == "https://x.com/Alice_01"

    def test_fifteen_char_username_ok(self):
        assert validate_profile_url("https://x.com/" + "a" * 15).valid

    @pytest.mark.parametrize("raw", [
        "https://x.com/" + "a" * 16,
        "https://x.com/al-ice",
        "https://x.com/al.ice",
        "https://x.com/",
    ])
    def test_bad_username_rejected(self, raw):
        result = validate_profile_url(raw)
        assert not result.valid
        assert "Username must be 1-15 characters" in result.error

    @pytest.mark.parametrize("raw", [
        "https://facebook.com/alice",
        "https://X.COM/alice",
        "ftp://x.com/alice",
        "x.com/alice",
        "https://mobile.x.com/alice",
    ])
    def test_bad_host_rejected_with_example(self, raw):
        result = validate_profile_url(raw)
        assert not result.valid
        assert "https://x.com/username" in result.error

    @pytest.mark.parametrize("raw", [None, "", "   ", 42])
    def test_missing_input(self, raw):
        assert not validate_profile_url(raw).valid

    @pytest.mark.parametrize("segment", ["home", "explore", "settings", "i", "Home"])
    def test_reserved_paths_rejected(self, segment):
        result = validate_profile_url(f"https://x.com/{segment}")
        assert not result.valid
        assert "not a profile page" in result.error

    def test_short_fragment_is_ambiguous(self):
        result = validate_profile_url("https://x.com/ali#ce")
        assert not result.valid
        assert "Ambiguous fragment" in result.error

    def test_fragment_rule_can_be_disabled(self):
        result = validate_profile_url("https://x.com/ali#ce", reject_ambiguous_fragments=False)
        assert result.valid
        assert result.username == "ali"

    def test_long_fragment_is_not_ambiguous(self):
        assert validate_profile_url("https://x.com/alice#somethinglong").valid


class TestRequireProfileUrl:
    def test_raises_typed_error(self):
        with pytest.raises(InvalidUrlError) as exc_info:
            require_profile_url("https://example.com/alice")
        assert exc_info.value.code == ErrorCode.INVALID_URL
        assert exc_info.value.url == "https://example.com/alice"
        assert exc_info.value.retryable is False

    def test_returns_validation(self):
        assert require_profile_url("https://twitter.com/bob").normalized_url == "https://x.com/bob"


class TestHelpers:
    def test_extract_username(self):
        assert extract_username("https://x.com/bob_b/media") == "bob_b"
        assert extract_username("not a url") is None

    @pytest.mark.parametrize("name,expected", [
        ("alice", True),
        ("a_1", True),
        ("", False),
        ("a" * 16, False),
        ("@alice", False),
        (None, False),
    ])
    def test_is_valid_username(self, name, expected):
        assert is_valid_username(name) is expected

    def test_username_from_path_is_host_agnostic(self):
        assert username_from_path("https://example.org/@carol/extra") == "carol"

    @pytest.mark.parametrize("url", [None, "", "https://x.com/", "https://x.com/home", "https://x.com/bad-name"])
    def test_username_from_path_rejects(self, url):
        assert username_from_path(url) is None

    def test_is_profile_page(self):
        assert is_profile_page("https://x.com/alice")
        assert is_profile_page("https://x.com/alice/")
        assert not is_profile_page("https://x.com/alice/status/1")

    def test_cache_key_ignores_case_and_form(self):
        assert cache_key("https://twitter.com/Alice") == cache_key("https://x.com/alice?s=1")
        assert cache_key("https://x.com/home") is None
