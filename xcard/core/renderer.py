"""Build card draw instructions from a Profile and rasterize them with Pillow."""

import io
from typing import Protocol

import qrcode
from PIL import Image, ImageDraw, ImageFont, ImageOps, UnidentifiedImageError
from qrcode.constants import ERROR_CORRECT_H, ERROR_CORRECT_L, ERROR_CORRECT_M, ERROR_CORRECT_Q

from xcard.exceptions import RenderError, XcardError
from xcard.logging import get_logger
from xcard.models.card import DrawOp, OpKind, RenderedCard
from xcard.models.profile import Profile
from xcard.models.template import Align, Position, Template

_log = get_logger("renderer")

CAPTION_TEXT = "Scan to view profile"
VERIFIED_TEXT = "✓ Verified"
ELLIPSIS = "..."

ERROR_CORRECTION_LEVELS = {
    "L": ERROR_CORRECT_L,
    "M": ERROR_CORRECT_M,
    "Q": ERROR_CORRECT_Q,
    "H": ERROR_CORRECT_H,
}

# Code point ranges rendered at double width (CJK, Hangul, full-width forms)
FULL_WIDTH_RANGES = (
    (0x1100, 0x115F),
    (0x2E80, 0x9FFF),
    (0xAC00, 0xD7AF),
    (0xF900, 0xFAFF),
    (0xFE30, 0xFE4F),
    (0xFF00, 0xFF60),
    (0xFFE0, 0xFFE6),
)


def char_width(char: str) -> int:
    code = ord(char)
    for low, high in FULL_WIDTH_RANGES:
        if low <= code <= high:
            return 2
    return 1


def display_width(text: str) -> int:
    """Visual width of text, counting full-width characters as 2."""
    return sum(char_width(c) for c in text)


def truncate_text(text: str, max_length: int) -> str:
    """
    Truncate text to a visual width, appending an ellipsis when cut.

    Examples:
        truncate_text("Alice", 24) -> "Alice"
        truncate_text("A" * 30, 10) -> "AAAAAAA..."
    """
    if display_width(text) <= max_length:
        return text

    budget = max_length - len(ELLIPSIS)
    kept = []
    used = 0
    for char in text:
        width = char_width(char)
        if used + width > budget:
            break
        kept.append(char)
        used += width
    return "".join(kept).rstrip() + ELLIPSIS


def format_count(count: int) -> str:
    """
    Abbreviate a follower count for display.

    Examples:
        999 -> "999"
        1234 -> "1.2K"
        2000000 -> "2M"
    """
    for threshold, suffix in ((1_000_000_000, "B"), (1_000_000, "M"), (1_000, "K")):
        if count >= threshold:
            value = f"{count / threshold:.1f}".rstrip("0").rstrip(".")
            return f"{value}{suffix}"
    return str(count)


class QrEncoder(Protocol):
    """Encodes a payload as a square PNG image."""

    def encode(self, payload: str) -> bytes: ...


class QrCodeEncoder:
    """QrEncoder backed by the qrcode library."""

    def __init__(self, error_correction: str = "M", box_size: int = 10, border: int = 2):
        if error_correction not in ERROR_CORRECTION_LEVELS:
            raise ValueError(f"Unknown QR error correction level: {error_correction}")
        self.error_correction = ERROR_CORRECTION_LEVELS[error_correction]
        self.box_size = box_size
        self.border = border

    def encode(self, payload: str) -> bytes:
        qr = qrcode.QRCode(
            error_correction=self.error_correction,
            box_size=self.box_size,
            border=self.border,
        )
        qr.add_data(payload)
        qr.make(fit=True)
        image = qr.make_image(fill_color="black", back_color="white")
        buffer = io.BytesIO()
        image.save(buffer, format="PNG")
        return buffer.getvalue()


def is_decodable_image(data: bytes | None) -> bool:
    if not data:
        return False
    try:
        with Image.open(io.BytesIO(data)) as image:
            image.verify()
        return True
    except (UnidentifiedImageError, OSError, ValueError, SyntaxError):
        return False


def resize_avatar(data: bytes, size: int) -> bytes:
    """
    Centre-crop and resize avatar bytes to a square PNG.

    Raises:
        RenderError: Bytes are not a decodable image
    """
    try:
        with Image.open(io.BytesIO(data)) as image:
            square = ImageOps.fit(image.convert("RGB"), (size, size), Image.LANCZOS)
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise RenderError(f"Avatar image could not be decoded: {e}") from e
    buffer = io.BytesIO()
    square.save(buffer, format="PNG")
    return buffer.getvalue()


class CardRenderer:
    """
    Produces front/back card images for a profile.

    Rendering is two-phase: the card is first described as an immutable tuple
    of DrawOps, then rasterized once. Element-level failures (undecodable
    avatar, QR encoding error, unloadable font) degrade to a placeholder and
    are listed in RenderedCard.placeholders.

    Example:
        renderer = CardRenderer(QrCodeEncoder())
        card = renderer.render(profile, default_template(), avatar=avatar_bytes)
    """

    def __init__(self, qr_encoder: QrEncoder | None = None):
        self.qr_encoder = qr_encoder or QrCodeEncoder()
        self._fonts: dict[tuple[str | None, int], ImageFont.ImageFont] = {}

    def render(
        self,
        profile: Profile,
        template: Template,
        avatar: bytes | None = None,
        include_back: bool = True,
    ) -> RenderedCard:
        """
        Render a profile onto a template.

        Args:
            profile: Assembled profile
            template: Card template (dimensions, layout, styles)
            avatar: Raw avatar image bytes, or None for the placeholder
            include_back: Also render the QR back side

        Returns:
            RenderedCard with PNG bytes for each side

        Raises:
            RenderError: Card could not be produced at all
        """
        placeholders: list[str] = []
        try:
            front_ops = self.build_front(profile, template, avatar, placeholders)
            back_ops = self.build_back(profile, template, placeholders) if include_back else ()
            front = self.materialize(front_ops, template, placeholders)
            back = self.materialize(back_ops, template, placeholders) if include_back else None
        except XcardError:
            raise
        except Exception as e:
            raise RenderError(f"Failed to render card for @{profile.username}: {e}") from e

        if placeholders:
            _log.info("card_degraded", username=profile.username, placeholders=placeholders)
        _log.debug("card_rendered", username=profile.username, back=include_back)

        return RenderedCard(
            username=profile.username,
            profile_url=profile.profile_url,
            width=template.dimensions.width,
            height=template.dimensions.height,
            front=front,
            back=back,
            front_ops=front_ops,
            back_ops=back_ops,
            placeholders=placeholders,
        )

    def _frame_ops(self, template: Template) -> list[DrawOp]:
        w, h = template.dimensions.width, template.dimensions.height
        styles = template.styles
        ops = [DrawOp(OpKind.RECT, "background", 0, 0, w, h, fill=styles.background_color)]
        if styles.border_width > 0:
            inset = styles.border_width // 2
            ops.append(DrawOp(
                OpKind.ROUNDED_RECT, "border",
                inset, inset, w - 2 * inset, h - 2 * inset,
                outline=styles.border_color,
                stroke_width=styles.border_width,
                radius=styles.border_radius,
            ))
        return ops

    @staticmethod
    def _text(element: str, text: str, pos: Position, size: int, color: str) -> DrawOp:
        return DrawOp(
            OpKind.TEXT, element, pos.x, pos.y,
            fill=color, text=text, font_size=size, align=pos.align.value,
        )

    def build_front(
        self,
        profile: Profile,
        template: Template,
        avatar: bytes | None,
        placeholders: list[str],
    ) -> tuple[DrawOp, ...]:
        """Describe the front side: avatar, name, handle, badge and stats."""
        layout, styles = template.layout, template.styles
        ops = self._frame_ops(template)

        ax, ay, size = layout.avatar_position.x, layout.avatar_position.y, layout.avatar_size
        if is_decodable_image(avatar):
            ops.append(DrawOp(OpKind.IMAGE, "avatar", ax, ay, size, size, data=avatar, clip="circle"))
        else:
            placeholders.append("avatar")
            ops.append(DrawOp(OpKind.CIRCLE, "avatar", ax, ay, size, size, fill=styles.placeholder_color))

        name = truncate_text(profile.display_name or profile.username, styles.max_name_length)
        ops.append(self._text("name", name, layout.name_position, styles.name_font_size, styles.text_color))
        ops.append(self._text(
            "handle", profile.handle, layout.handle_position, styles.handle_font_size, styles.accent_color,
        ))

        if profile.verified:
            handle = layout.handle_position
            badge = Position(x=handle.x, y=handle.y + styles.handle_font_size + 8, align=handle.align)
            ops.append(self._text("verified", VERIFIED_TEXT, badge, styles.stats_font_size, styles.accent_color))

        if profile.follower_count or profile.following_count:
            stats = (
                f"{format_count(profile.follower_count)} followers"
                f" · {format_count(profile.following_count)} following"
            )
            ops.append(self._text("stats", stats, layout.stats_position, styles.stats_font_size, styles.muted_color))

        return tuple(ops)

    def build_back(
        self,
        profile: Profile,
        template: Template,
        placeholders: list[str],
    ) -> tuple[DrawOp, ...]:
        """Describe the back side: QR code to the profile, caption and footer."""
        layout, styles = template.layout, template.styles
        ops = self._frame_ops(template)

        qx, qy, size = layout.qr_position.x, layout.qr_position.y, layout.qr_size
        try:
            qr_png = self.qr_encoder.encode(profile.profile_url)
        except Exception as e:
            _log.warning("qr_encode_failed", username=profile.username, error=str(e))
            qr_png = None
        if qr_png:
            ops.append(DrawOp(OpKind.IMAGE, "qr", qx, qy, size, size, data=qr_png))
        else:
            placeholders.append("qr")
            ops.append(DrawOp(OpKind.RECT, "qr", qx, qy, size, size, fill=styles.placeholder_color))

        caption = layout.caption_position
        ops.append(self._text("caption", CAPTION_TEXT, caption, styles.caption_font_size, styles.text_color))

        footer_size = max(styles.caption_font_size * 3 // 4, 1)
        footer_y = min(
            caption.y + styles.caption_font_size + 16,
            template.dimensions.height - styles.border_width - footer_size - 4,
        )
        footer = Position(x=caption.x, y=footer_y, align=caption.align)
        ops.append(self._text("footer", f"x.com/{profile.username}", footer, footer_size, styles.accent_color))

        return tuple(ops)

    def _font(self, font_path: str | None, size: int, placeholders: list[str]) -> ImageFont.ImageFont:
        key = (font_path, size)
        if key in self._fonts:
            return self._fonts[key]
        font = None
        if font_path:
            try:
                font = ImageFont.truetype(font_path, size)
            except OSError:
                _log.warning("font_unavailable", path=font_path)
                if "font" not in placeholders:
                    placeholders.append("font")
                return ImageFont.load_default(size=size)
        if font is None:
            font = ImageFont.load_default(size=size)
        self._fonts[key] = font
        return font

    def _draw_image(self, canvas: Image.Image, op: DrawOp, placeholder_color: str, placeholders: list[str]) -> None:
        try:
            with Image.open(io.BytesIO(op.data)) as source:
                resample = Image.NEAREST if op.element == "qr" else Image.LANCZOS
                tile = ImageOps.fit(source.convert("RGB"), (op.w, op.h), resample)
        except (UnidentifiedImageError, OSError, ValueError, TypeError):
            placeholders.append(op.element)
            draw = ImageDraw.Draw(canvas)
            box = [op.x, op.y, op.x + op.w - 1, op.y + op.h - 1]
            if op.clip == "circle":
                draw.ellipse(box, fill=placeholder_color)
            else:
                draw.rectangle(box, fill=placeholder_color)
            return

        mask = None
        if op.clip == "circle":
            mask = Image.new("L", (op.w, op.h), 0)
            ImageDraw.Draw(mask).ellipse([0, 0, op.w - 1, op.h - 1], fill=255)
        canvas.paste(tile, (op.x, op.y), mask)

    @staticmethod
    def _draw_text(draw: ImageDraw.ImageDraw, op: DrawOp, text: str, font: ImageFont.ImageFont) -> None:
        width = draw.textlength(text, font=font)
        x = op.x
        if op.align == Align.CENTER.value:
            x = op.x - width / 2
        elif op.align == Align.RIGHT.value:
            x = op.x - width
        draw.text((x, op.y), text, font=font, fill=op.fill)

    def materialize(self, ops: tuple[DrawOp, ...], template: Template, placeholders: list[str]) -> bytes:
        """Rasterize draw ops into PNG bytes."""
        w, h = template.dimensions.width, template.dimensions.height
        styles = template.styles
        canvas = Image.new("RGB", (w, h), styles.background_color)

        for op in ops:
            draw = ImageDraw.Draw(canvas)
            box = [op.x, op.y, op.x + op.w - 1, op.y + op.h - 1]
            if op.kind == OpKind.RECT:
                draw.rectangle(box, fill=op.fill, outline=op.outline, width=op.stroke_width or 1)
            elif op.kind == OpKind.ROUNDED_RECT:
                draw.rounded_rectangle(
                    box, radius=op.radius, fill=op.fill, outline=op.outline, width=op.stroke_width or 1,
                )
            elif op.kind == OpKind.CIRCLE:
                draw.ellipse(box, fill=op.fill, outline=op.outline, width=op.stroke_width or 1)
            elif op.kind == OpKind.IMAGE:
                self._draw_image(canvas, op, styles.placeholder_color, placeholders)
            elif op.kind == OpKind.TEXT:
                font = self._font(styles.font_path, op.font_size, placeholders)
                try:
                    self._draw_text(draw, op, op.text, font)
                except (UnicodeError, OSError, ValueError):
                    # Bitmap fallback fonts only cover Latin-1
                    _log.warning("text_unrenderable", element=op.element)
                    placeholders.append(op.element)
                    fallback = op.text.encode("latin-1", "replace").decode("latin-1")
                    self._draw_text(draw, op, fallback, font)

        buffer = io.BytesIO()
        canvas.save(buffer, format="PNG")
        return buffer.getvalue()
