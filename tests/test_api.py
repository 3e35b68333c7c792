"""Unit tests for the FastAPI server - fake page loader, no browser."""

import io
import json
from contextlib import asynccontextmanager
from pathlib import Path
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from xcard.api import LayoutOptions, app, get_maker
from xcard.config import CacheBackend, CardConfig, PageSize
from xcard.core.dom import StaticDomSource
from xcard.core.orchestrator import CardMaker
from xcard.exceptions import FetchError
from xcard.models.layout import DuplexMode, FrameSize


FIXTURES_DIR = Path(__file__).parent / "fixtures"


def png_bytes() -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (40, 40), "green").save(buffer, format="PNG")
    return buffer.getvalue()


class FakePageLoader:
    def __init__(self, pages: dict):
        self.pages = pages

    @asynccontextmanager
    async def open(self, url):
        page = self.pages[url]
        if isinstance(page, Exception):
            raise page
        yield StaticDomSource.from_html(page)


class StubQrEncoder:
    def encode(self, payload: str) -> bytes:
        return png_bytes()


@pytest.fixture
def maker():
    pages = {
        "https://x.com/alice": (FIXTURES_DIR / "alice_hydrated.html").read_text(encoding="utf-8"),
        "https://x.com/bob_b": (FIXTURES_DIR / "bob_meta_only.html").read_text(encoding="utf-8"),
        "https://x.com/gone": FetchError("Profile not found: https://x.com/gone"),
    }
    config = CardConfig(
        request_delay_ms=0,
        hydration_timeout_ms=200,
        poll_interval_ms=10,
        grace_period_ms=0,
        cache_backend=CacheBackend.NONE,
        max_batch_size=3,
    )
    return CardMaker(
        config,
        page_loader=FakePageLoader(pages),
        avatar_fetcher=AsyncMock(return_value=png_bytes()),
        qr_encoder=StubQrEncoder(),
    )


@pytest.fixture
def client(maker):
    app.dependency_overrides[get_maker] = lambda: maker
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert "version" in data


class TestGenerate:
    def test_single_pdf(self, client):
        response = client.post("/api/name-tag/generate", json={"profileUrl": "https://twitter.com/alice"})
        assert response.status_code == 200
        assert response.headers["content-type"] == "application/pdf"
        assert 'filename="nametag-alice.pdf"' in response.headers["content-disposition"]
        assert response.content.startswith(b"%PDF")

    def test_simple_pdf(self, client):
        response = client.post("/api/name-tag/generate-simple", json={"profileUrl": "https://x.com/bob_b"})
        assert response.status_code == 200
        assert 'filename="nametag-simple-bob_b.pdf"' in response.headers["content-disposition"]

    def test_invalid_url_is_400(self, client):
        response = client.post("/api/name-tag/generate", json={"profileUrl": "https://facebook.com/alice"})
        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "INVALID_URL"
        assert "x.com" in error["message"]
        assert "timestamp" in response.json()

    def test_fetch_failure_is_502(self, client):
        response = client.post("/api/name-tag/generate", json={"profileUrl": "https://x.com/gone"})
        assert response.status_code == 502
        assert response.json()["error"]["code"] == "FETCH_FAILED"

    def test_missing_body_field(self, client):
        response = client.post("/api/name-tag/generate", json={})
        assert response.status_code == 422

    def test_unexpected_error_is_500(self, client, maker):
        maker.make_card = AsyncMock(side_effect=RuntimeError("boom"))
        response = client.post("/api/name-tag/generate", json={"profileUrl": "https://x.com/alice"})
        assert response.status_code == 500
        assert response.json()["error"]["code"] == "INTERNAL_ERROR"


class TestGenerateMultiple:
    def test_skipped_urls_in_headers(self, client):
        response = client.post("/api/name-tag/generate-multiple", json={
            "profileUrls": ["https://x.com/alice", "not-a-url", "https://x.com/bob_b"],
            "options": {"columns": 2, "rows": 2},
        })
        assert response.status_code == 200
        assert 'filename="nametags-2.pdf"' in response.headers["content-disposition"]
        assert json.loads(response.headers["x-skipped-urls"]) == ["not-a-url"]
        assert response.headers["x-warning"] == "1 profile URLs were skipped"

    def test_no_skips_no_warning(self, client):
        response = client.post("/api/name-tag/generate-multiple", json={"profileUrls": ["https://x.com/alice"]})
        assert response.status_code == 200
        assert "x-skipped-urls" not in response.headers

    def test_all_invalid_is_422_with_skips(self, client):
        response = client.post("/api/name-tag/generate-multiple", json={
            "profileUrls": ["nope", "https://x.com/gone"],
        })
        assert response.status_code == 422
        error = response.json()["error"]
        assert error["code"] == "NO_VALID_PROFILES"
        assert [item["code"] for item in error["skipped"]] == ["INVALID_URL", "FETCH_FAILED"]

    def test_too_many_urls(self, client):
        urls = [f"https://x.com/user{i}" for i in range(4)]
        response = client.post("/api/name-tag/generate-multiple", json={"profileUrls": urls})
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "BATCH_TOO_LARGE"

    def test_empty_list_rejected(self, client):
        response = client.post("/api/name-tag/generate-multiple", json={"profileUrls": []})
        assert response.status_code == 422

    def test_impossible_layout(self, client):
        response = client.post("/api/name-tag/generate-multiple", json={
            "profileUrls": ["https://x.com/alice"],
            "options": {"margin": 400},
        })
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_LAYOUT_CONFIG"


class TestValidate:
    def test_valid_and_accessible(self, client):
        response = client.post("/api/name-tag/validate", json={"profileUrl": "https://www.twitter.com/alice/"})
        data = response.json()
        assert data["valid"] is True
        assert data["accessible"] is True
        assert data["username"] == "alice"
        assert data["normalized_url"] == "https://x.com/alice"

    def test_valid_but_inaccessible(self, client):
        data = client.post("/api/name-tag/validate", json={"profileUrl": "https://x.com/gone"}).json()
        assert data["valid"] is True
        assert data["accessible"] is False

    def test_invalid_format(self, client):
        data = client.post("/api/name-tag/validate", json={"profileUrl": "https://x.com/home"}).json()
        assert data["valid"] is False
        assert data["accessible"] is False
        assert data["error"]


class TestOptions:
    def test_options(self, client):
        data = client.get("/api/name-tag/options").json()
        assert data["multiple"]["maxProfiles"] == 3
        assert data["multiple"]["paperSizes"] == ["A4", "Letter"]
        assert data["qrCode"]["errorCorrectionLevels"] == ["L", "M", "Q", "H"]


class TestErrorDetails:
    def test_debug_exposes_exception_type(self, client, maker):
        app.state.maker = maker
        maker.config = maker.config.model_copy(update={"debug": True})
        maker.make_card = AsyncMock(side_effect=RuntimeError("boom"))
        try:
            response = client.post("/api/name-tag/generate", json={"profileUrl": "https://x.com/alice"})
        finally:
            del app.state.maker
        assert "RuntimeError: boom" in response.json()["error"]["message"]
        assert "Traceback" not in response.text


class TestLayoutOptions:
    def test_camel_case_keys(self):
        options = LayoutOptions.model_validate({
            "pageSize": "A4",
            "doubleSided": True,
            "duplexMode": "split",
            "frontFrameSize": {"w": 200, "h": 120},
            "backFrameSize": {"w": 180, "h": 110},
        })
        tile = options.to_tile_config(CardConfig())
        assert tile.page_size == PageSize.A4
        assert tile.double_sided is True
        assert tile.duplex_mode == DuplexMode.SPLIT
        assert tile.front_frame_size == FrameSize(w=200, h=120)
        assert tile.back_frame_size == FrameSize(w=180, h=110)

    def test_field_names_still_accepted(self):
        options = LayoutOptions(page_size=PageSize.A4, double_sided=True)
        assert options.to_tile_config(CardConfig()).page_size == PageSize.A4

    def test_front_frame_defaults_to_card_size(self):
        tile = LayoutOptions().to_tile_config(CardConfig(card_width_pt=240.0, card_height_pt=150.0))
        assert tile.front_frame_size == FrameSize(w=240.0, h=150.0)
        assert tile.back_frame_size is None

    def test_oversized_frame_in_request_is_400(self, client):
        response = client.post("/api/name-tag/generate-multiple", json={
            "profileUrls": ["https://x.com/alice"],
            "options": {"frontFrameSize": {"w": 700, "h": 100}},
        })
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_LAYOUT_CONFIG"

    def test_oversized_back_frame_in_request_is_400(self, client):
        response = client.post("/api/name-tag/generate-multiple", json={
            "profileUrls": ["https://x.com/alice"],
            "options": {"doubleSided": True, "backFrameSize": {"w": 100, "h": 800}},
        })
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_LAYOUT_CONFIG"
