"""Page layout configuration and plan models."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from xcard.config import PageSize, PAGE_DIMENSIONS


class DuplexMode(str, Enum):
    """How back sides are placed when double-sided output is requested."""
    PAGES = "pages"  # front page set, then a mirrored back page set
    SPLIT = "split"  # fronts on the left half, backs on the right half


class Side(str, Enum):
    FRONT = "front"
    BACK = "back"


class FrameSize(BaseModel):
    """Printed size of one card side, in PDF points."""

    model_config = ConfigDict(frozen=True)

    w: float = Field(..., gt=0)
    h: float = Field(..., gt=0)


class TileConfig(BaseModel):
    """Grid tiling options for placing cards on pages."""

    model_config = ConfigDict(frozen=True)

    page_size: PageSize = PageSize.LETTER
    margin: float = Field(default=36.0, ge=0)
    columns: int | None = Field(default=None, ge=1)
    rows: int | None = Field(default=None, ge=1)
    spacing: float = Field(default=10.0, ge=0)
    double_sided: bool = False
    duplex_mode: DuplexMode = DuplexMode.PAGES
    front_frame_size: FrameSize = FrameSize(w=252.0, h=162.0)
    back_frame_size: FrameSize | None = None

    @property
    def page_dimensions(self) -> tuple[float, float]:
        return PAGE_DIMENSIONS[self.page_size]

    @property
    def effective_back_frame(self) -> FrameSize:
        return self.back_frame_size or self.front_frame_size


class Placement(BaseModel):
    """Where one side of one card goes."""

    model_config = ConfigDict(frozen=True)

    page_index: int
    card_index: int
    x: float
    y: float
    width: float
    height: float
    side: Side = Side.FRONT


class LayoutPlan(BaseModel):
    """Ordered placements plus grid metrics. Identical inputs give equal plans."""

    model_config = ConfigDict(frozen=True)

    placements: tuple[Placement, ...] = ()
    page_count: int = 0
    items_per_row: int = 0
    items_per_column: int = 0
    items_per_page: int = 0
    spacing_x: float = 0.0
    spacing_y: float = 0.0
    page_width: float = 0.0
    page_height: float = 0.0

    def for_page(self, page_index: int) -> list[Placement]:
        return [p for p in self.placements if p.page_index == page_index]
