"""Unit tests for card rendering - stub QR encoder, in-memory images."""

import io
from datetime import datetime

import pytest
from PIL import Image, ImageFont

from xcard.core.renderer import (
    CAPTION_TEXT,
    CardRenderer,
    QrCodeEncoder,
    display_width,
    format_count,
    resize_avatar,
    truncate_text,
)
from xcard.exceptions import RenderError
from xcard.models.card import OpKind
from xcard.models.profile import Profile
from xcard.models.template import default_template


def png_bytes(size=(64, 64), color="red") -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format="PNG")
    return buffer.getvalue()


class StubQrEncoder:
    """Records payloads and returns a fixed image."""

    def __init__(self):
        self.payloads = []

    def encode(self, payload: str) -> bytes:
        self.payloads.append(payload)
        return png_bytes((29, 29), "black")


class FailingQrEncoder:
    def encode(self, payload: str) -> bytes:
        raise ValueError("payload too long")


def make_profile(**overrides) -> Profile:
    data = {
        "username": "alice",
        "display_name": "Alice Example",
        "verified": True,
        "follower_count": 1234,
        "following_count": 56,
        "profile_url": "https://x.com/alice",
        "extracted_at": datetime(2024, 1, 1),
    }
    data.update(overrides)
    return Profile(**data)


@pytest.fixture
def renderer():
    return CardRenderer(StubQrEncoder())


def elements(ops) -> list[str]:
    return [op.element for op in ops]


def decode(data: bytes) -> Image.Image:
    return Image.open(io.BytesIO(data))


class TestTextHelpers:
    def test_display_width_counts_full_width_double(self):
        assert display_width("abc") == 3
        assert display_width("日本") == 4

    def test_truncate_short_text_untouched(self):
        assert truncate_text("Alice", 24) == "Alice"

    def test_truncate_long_text(self):
        result = truncate_text("A" * 30, 10)
        assert result == "AAAAAAA..."
        assert display_width(result) <= 10

    def test_truncate_full_width(self):
        result = truncate_text("日本語の名前です", 8)
        assert result.endswith("...")
        assert display_width(result) <= 8

    @pytest.mark.parametrize("count,expected", [
        (0, "0"),
        (999, "999"),
        (1000, "1K"),
        (1234, "1.2K"),
        (2_000_000, "2M"),
        (1_500_000_000, "1.5B"),
    ])
    def test_format_count(self, count, expected):
        assert format_count(count) == expected


class TestBuildFront:
    def test_element_order(self, renderer):
        ops = renderer.build_front(make_profile(), default_template(), png_bytes(), [])
        assert elements(ops) == ["background", "border", "avatar", "name", "handle", "verified", "stats"]

    def test_avatar_is_clipped_image(self, renderer):
        ops = renderer.build_front(make_profile(), default_template(), png_bytes(), [])
        avatar = ops[2]
        assert avatar.kind == OpKind.IMAGE
        assert avatar.clip == "circle"
        assert (avatar.w, avatar.h) == (140, 140)

    def test_missing_avatar_uses_placeholder_circle(self, renderer):
        placeholders = []
        ops = renderer.build_front(make_profile(), default_template(), None, placeholders)
        avatar = [op for op in ops if op.element == "avatar"][0]
        assert avatar.kind == OpKind.CIRCLE
        assert avatar.fill == default_template().styles.placeholder_color
        assert placeholders == ["avatar"]

    def test_undecodable_avatar_recorded(self, renderer):
        placeholders = []
        ops = renderer.build_front(make_profile(), default_template(), b"not an image", placeholders)
        assert [op for op in ops if op.element == "avatar"][0].kind == OpKind.CIRCLE
        assert placeholders == ["avatar"]

    def test_text_content(self, renderer):
        ops = renderer.build_front(make_profile(), default_template(), None, [])
        by_element = {op.element: op for op in ops}
        assert by_element["name"].text == "Alice Example"
        assert by_element["handle"].text == "@alice"
        assert by_element["stats"].text == "1.2K followers · 56 following"
        assert by_element["name"].align == "center"

    def test_optional_lines_omitted(self, renderer):
        profile = make_profile(verified=False, follower_count=0, following_count=0)
        ops = renderer.build_front(profile, default_template(), None, [])
        assert "verified" not in elements(ops)
        assert "stats" not in elements(ops)

    def test_long_name_truncated(self, renderer):
        profile = make_profile(display_name="X" * 40)
        ops = renderer.build_front(profile, default_template(), None, [])
        name = [op for op in ops if op.element == "name"][0]
        assert name.text.endswith("...")
        assert len(name.text) == default_template().styles.max_name_length

    def test_no_border_when_width_zero(self, renderer):
        template = default_template().with_styles(border_width=0)
        ops = renderer.build_front(make_profile(), template, None, [])
        assert "border" not in elements(ops)


class TestBuildBack:
    def test_qr_payload_is_profile_url(self):
        encoder = StubQrEncoder()
        ops = CardRenderer(encoder).build_back(make_profile(), default_template(), [])
        assert encoder.payloads == ["https://x.com/alice"]
        assert elements(ops) == ["background", "border", "qr", "caption", "footer"]

    def test_caption_and_footer(self, renderer):
        ops = renderer.build_back(make_profile(), default_template(), [])
        by_element = {op.element: op for op in ops}
        assert by_element["caption"].text == CAPTION_TEXT
        assert by_element["footer"].text == "x.com/alice"
        assert by_element["footer"].y + by_element["footer"].font_size <= 450

    def test_qr_failure_degrades(self):
        placeholders = []
        ops = CardRenderer(FailingQrEncoder()).build_back(make_profile(), default_template(), placeholders)
        qr = [op for op in ops if op.element == "qr"][0]
        assert qr.kind == OpKind.RECT
        assert placeholders == ["qr"]


class TestRender:
    def test_front_and_back_dimensions(self, renderer):
        card = renderer.render(make_profile(), default_template(), avatar=png_bytes())
        assert card.username == "alice"
        assert card.has_back
        assert decode(card.front).size == (700, 450)
        assert decode(card.back).size == (700, 450)
        assert card.placeholders == []

    def test_front_only(self, renderer):
        card = renderer.render(make_profile(), default_template(), include_back=False)
        assert card.back is None
        assert card.back_ops == ()

    def test_avatar_placeholder_color_drawn(self, renderer):
        card = renderer.render(make_profile(), default_template(), avatar=None)
        # Centre of the avatar circle
        pixel = decode(card.front).convert("RGB").getpixel((350, 100))
        assert pixel == (0xE1, 0xE8, 0xED)

    def test_avatar_drawn_inside_circle(self, renderer):
        card = renderer.render(make_profile(), default_template(), avatar=png_bytes(color=(255, 0, 0)))
        image = decode(card.front).convert("RGB")
        assert image.getpixel((350, 100)) == (255, 0, 0)
        # Corner of the avatar square lies outside the circle
        assert image.getpixel((282, 32)) == (255, 255, 255)

    def test_deterministic(self, renderer):
        first = renderer.render(make_profile(), default_template(), avatar=png_bytes())
        second = renderer.render(make_profile(), default_template(), avatar=png_bytes())
        assert first.front == second.front
        assert first.back == second.back
        assert [op.describe() for op in first.front_ops] == [op.describe() for op in second.front_ops]

    def test_missing_font_degrades(self, renderer):
        template = default_template().with_styles(font_path="/nonexistent/font.ttf")
        card = renderer.render(make_profile(), template)
        assert "font" in card.placeholders
        assert decode(card.front).size == (700, 450)

    def test_absent_avatar_reported(self, renderer):
        card = renderer.render(make_profile(), default_template(), avatar=None)
        assert card.placeholders == ["avatar"]

    def test_unencodable_text_degrades_per_element(self, renderer, monkeypatch):
        # Bitmap font without Unicode coverage, as on hosts where FreeType is missing
        monkeypatch.setattr(
            "xcard.core.renderer.ImageFont.load_default",
            lambda size=None: ImageFont.load_default_imagefont(),
        )
        template = default_template().with_styles(font_path="/nonexistent/font.ttf")
        card = renderer.render(make_profile(display_name="アリス"), template, avatar=png_bytes())
        assert "name" in card.placeholders
        assert "handle" not in card.placeholders
        assert decode(card.front).size == (700, 450)

    def test_bad_color_raises_render_error(self, renderer):
        template = default_template().with_styles(background_color="not-a-color")
        with pytest.raises(RenderError):
            renderer.render(make_profile(), template)


class TestQrCodeEncoder:
    def test_encodes_png(self):
        data = QrCodeEncoder().encode("https://x.com/alice")
        image = decode(data)
        assert image.format == "PNG"
        assert image.size[0] == image.size[1]

    def test_unknown_level_rejected(self):
        with pytest.raises(ValueError):
            QrCodeEncoder(error_correction="Z")


class TestResizeAvatar:
    def test_square_output(self):
        data = resize_avatar(png_bytes((300, 200)), 140)
        assert decode(data).size == (140, 140)

    def test_garbage_raises(self):
        with pytest.raises(RenderError):
            resize_avatar(b"garbage", 140)
