"""Tile rendered cards onto fixed-size PDF pages."""

import io
import math
from dataclasses import dataclass
from typing import Protocol

from fpdf import FPDF
from PIL import ImageColor

from xcard.config import PAGE_DIMENSIONS, PageSize
from xcard.exceptions import InvalidLayoutConfigError, NoValidProfilesError
from xcard.logging import get_logger
from xcard.models.card import RenderedCard
from xcard.models.layout import DuplexMode, FrameSize, LayoutPlan, Placement, Side, TileConfig

_log = get_logger("compositor")

# Tolerance for floating point grid fits (a card that fits exactly must count)
_EPSILON = 1e-9


@dataclass(frozen=True)
class TextStyle:
    size: float = 10.0
    color: str = "#000000"


class DocumentWriter(Protocol):
    """Page-oriented drawing surface the compositor emits into."""

    def new_page(self) -> None: ...

    def draw_image(self, data: bytes, x: float, y: float, w: float, h: float) -> None: ...

    def draw_text(self, text: str, x: float, y: float, style: TextStyle | None = None) -> None: ...

    def output(self) -> bytes: ...


class FpdfWriter:
    """DocumentWriter backed by fpdf2, in PDF points with a top-left origin."""

    def __init__(self, page_size: PageSize = PageSize.LETTER):
        width, height = PAGE_DIMENSIONS[page_size]
        self.pdf = FPDF(unit="pt", format=(width, height))
        self.pdf.set_auto_page_break(False)
        self.pdf.set_margins(0, 0, 0)
        self.pdf.set_creator("xcard")
        self.page_count = 0

    def new_page(self) -> None:
        self.pdf.add_page()
        self.page_count += 1

    def draw_image(self, data: bytes, x: float, y: float, w: float, h: float) -> None:
        self.pdf.image(io.BytesIO(data), x=x, y=y, w=w, h=h)

    def draw_text(self, text: str, x: float, y: float, style: TextStyle | None = None) -> None:
        style = style or TextStyle()
        self.pdf.set_font("helvetica", size=style.size)
        self.pdf.set_text_color(*ImageColor.getrgb(style.color)[:3])
        self.pdf.text(x, y, text)

    def output(self) -> bytes:
        return bytes(self.pdf.output())


def _fit(content: float, frame: float, spacing: float) -> int:
    """Items of one frame size that fit along an axis, each followed by a gap."""
    if frame > content + _EPSILON:
        return 0
    return math.floor(content / (frame + spacing) + _EPSILON)


def _axis_count(content: float, frames: list[float], spacing: float, explicit: int | None) -> int:
    """Items along one axis; an explicit count is clamped so frames never overlap."""
    if explicit is None:
        return min(_fit(content, frame, spacing) for frame in frames)
    return min([explicit] + [_fit(content, frame, 0.0) for frame in frames])


def _axis_spacing(content: float, frame: float, count: int, spacing: float, explicit: bool) -> float:
    """Gap between items; explicit counts spread the leftover space evenly."""
    if not explicit or count < 2:
        return spacing
    return max(0.0, (content - count * frame) / (count - 1))


def _check_frame(label: str, frame: FrameSize, content_w: float, content_h: float) -> None:
    if frame.w > content_w + _EPSILON or frame.h > content_h + _EPSILON:
        raise InvalidLayoutConfigError(
            f"{label} frame {frame.w:g}x{frame.h:g}pt is larger than the usable area "
            f"{content_w:g}x{content_h:g}pt; reduce the margin or the frame size"
        )


def layout(card_count: int, config: TileConfig) -> LayoutPlan:
    """
    Compute card placements for a tiled document.

    Cards are placed row-major; a new page starts only once the current one
    is full. With double-sided output each card also gets a back placement:
    in PAGES mode on a back page set following all front pages, mirrored
    horizontally so it lines up after duplex printing; in SPLIT mode on the
    right half of the same page.

    A computed grid keeps the configured spacing. Explicit columns or rows
    are clamped so frames never overlap or leave the content area, and the
    leftover space along that axis is spread evenly between them.

    Args:
        card_count: Number of cards to place
        config: Page size, margins, grid and frame options

    Returns:
        LayoutPlan; identical inputs always produce equal plans

    Raises:
        InvalidLayoutConfigError: A frame does not fit or no card fits on a page
    """
    page_w, page_h = config.page_dimensions
    margin = config.margin
    front = config.front_frame_size
    back = config.effective_back_frame
    split = config.double_sided and config.duplex_mode == DuplexMode.SPLIT

    content_h = page_h - 2 * margin
    if split:
        # Each half keeps the outer margin; the centre gutter is one spacing wide
        content_w = page_w / 2 - margin - config.spacing / 2
    else:
        content_w = page_w - 2 * margin

    if content_w <= 0 or content_h <= 0:
        raise InvalidLayoutConfigError(
            f"Margin {margin:g}pt leaves no usable area on a {page_w:g}x{page_h:g}pt page"
        )

    frames = [front, back] if config.double_sided else [front]
    for label, frame in zip(("Front", "Back"), frames):
        _check_frame(label, frame, content_w, content_h)

    cols = _axis_count(content_w, [f.w for f in frames], config.spacing, config.columns)
    rows = _axis_count(content_h, [f.h for f in frames], config.spacing, config.rows)
    per_page = cols * rows
    if per_page == 0:
        raise InvalidLayoutConfigError(
            f"No card fits on a {config.page_size.value} page with the given margin and spacing"
        )

    spacing_x = _axis_spacing(content_w, front.w, cols, config.spacing, config.columns is not None)
    spacing_y = _axis_spacing(content_h, front.h, rows, config.spacing, config.rows is not None)
    back_spacing_x = _axis_spacing(content_w, back.w, cols, config.spacing, config.columns is not None)
    back_spacing_y = _axis_spacing(content_h, back.h, rows, config.spacing, config.rows is not None)

    front_pages = math.ceil(card_count / per_page) if card_count else 0
    fronts: list[Placement] = []
    backs: list[Placement] = []

    for index in range(card_count):
        page, pos = divmod(index, per_page)
        row, col = divmod(pos, cols)
        front_x = margin + col * (front.w + spacing_x)
        fronts.append(Placement(
            page_index=page,
            card_index=index,
            x=front_x,
            y=margin + row * (front.h + spacing_y),
            width=front.w,
            height=front.h,
            side=Side.FRONT,
        ))
        if not config.double_sided:
            continue

        if split:
            back_page = page
            back_x = page_w / 2 + config.spacing / 2 + col * (back.w + back_spacing_x)
        else:
            # Reflect the front slot's centre about the page's vertical axis
            back_page = front_pages + page
            back_x = page_w - (front_x + front.w / 2) - back.w / 2
        backs.append(Placement(
            page_index=back_page,
            card_index=index,
            x=back_x,
            y=margin + row * (back.h + back_spacing_y),
            width=back.w,
            height=back.h,
            side=Side.BACK,
        ))

    if split:
        placements = [p for pair in zip(fronts, backs) for p in pair]
        page_count = front_pages
    else:
        placements = fronts + backs
        page_count = front_pages * (2 if config.double_sided else 1)

    return LayoutPlan(
        placements=tuple(placements),
        page_count=page_count,
        items_per_row=cols,
        items_per_column=rows,
        items_per_page=per_page,
        spacing_x=spacing_x,
        spacing_y=spacing_y,
        page_width=page_w,
        page_height=page_h,
    )


def _emit(writer: DocumentWriter, card: RenderedCard, placement: Placement) -> None:
    if placement.side == Side.FRONT:
        writer.draw_image(card.front, placement.x, placement.y, placement.width, placement.height)
    elif card.back is not None:
        writer.draw_image(card.back, placement.x, placement.y, placement.width, placement.height)
    else:
        # Card was rendered front-only; label the back slot so it can still be matched
        writer.draw_text(
            f"x.com/{card.username}",
            placement.x + 8,
            placement.y + placement.height / 2,
            TextStyle(size=9, color="#666666"),
        )


def compose(
    cards: list[RenderedCard],
    config: TileConfig,
    writer: DocumentWriter | None = None,
) -> tuple[bytes, LayoutPlan]:
    """
    Tile cards onto pages and serialize the document.

    Args:
        cards: Rendered cards, in output order
        config: Tiling options
        writer: Drawing surface; an FpdfWriter for the configured page size if None

    Returns:
        (PDF bytes, the LayoutPlan that was drawn)

    Raises:
        NoValidProfilesError: No cards given
        InvalidLayoutConfigError: Geometry is impossible
    """
    if not cards:
        raise NoValidProfilesError("No cards to compose into a document")

    plan = layout(len(cards), config)
    writer = writer or FpdfWriter(config.page_size)

    current_page = -1
    for placement in sorted(plan.placements, key=lambda p: p.page_index):
        if placement.page_index != current_page:
            writer.new_page()
            current_page = placement.page_index
        _emit(writer, cards[placement.card_index], placement)

    _log.info(
        "document_composed",
        cards=len(cards),
        pages=plan.page_count,
        per_page=plan.items_per_page,
        double_sided=config.double_sided,
    )
    return writer.output(), plan


def compose_single(
    card: RenderedCard,
    page_size: PageSize = PageSize.LETTER,
    frame: FrameSize = FrameSize(w=252.0, h=162.0),
    writer: DocumentWriter | None = None,
) -> bytes:
    """One card centred on a page, with its back (if any) centred on the next page."""
    page_w, page_h = PAGE_DIMENSIONS[page_size]
    if frame.w > page_w or frame.h > page_h:
        raise InvalidLayoutConfigError(
            f"Frame {frame.w:g}x{frame.h:g}pt does not fit a {page_size.value} page"
        )
    writer = writer or FpdfWriter(page_size)
    x = (page_w - frame.w) / 2
    y = (page_h - frame.h) / 2

    writer.new_page()
    writer.draw_image(card.front, x, y, frame.w, frame.h)
    if card.back is not None:
        writer.new_page()
        writer.draw_image(card.back, x, y, frame.w, frame.h)
    return writer.output()


def document_filename(usernames: list[str]) -> str:
    """nametag-<handle>.pdf for one card, nametags-<n>.pdf otherwise."""
    if len(usernames) == 1:
        return f"nametag-{usernames[0]}.pdf"
    return f"nametags-{len(usernames)}.pdf"
