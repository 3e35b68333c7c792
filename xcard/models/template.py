"""Card template model."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator


class Align(str, Enum):
    LEFT = "left"
    CENTER = "center"
    RIGHT = "right"


class Dimensions(BaseModel):
    model_config = ConfigDict(frozen=True)

    width: int = Field(..., gt=0)
    height: int = Field(..., gt=0)


class Position(BaseModel):
    """Anchor point of an element; x is the anchor for the given alignment."""

    model_config = ConfigDict(frozen=True)

    x: int
    y: int
    align: Align = Align.LEFT


class TemplateLayout(BaseModel):
    model_config = ConfigDict(frozen=True)

    avatar_position: Position
    avatar_size: int = Field(..., gt=0)
    name_position: Position
    handle_position: Position
    stats_position: Position
    qr_position: Position
    qr_size: int = Field(..., gt=0)
    caption_position: Position


class TemplateStyles(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    background_color: str = "#FFFFFF"
    text_color: str = "#000000"
    accent_color: str = "#1DA1F2"
    muted_color: str = "#666666"
    placeholder_color: str = "#E1E8ED"
    font_path: str | None = None
    name_font_size: int = Field(default=48, gt=0)
    handle_font_size: int = Field(default=32, gt=0)
    stats_font_size: int = Field(default=24, gt=0)
    caption_font_size: int = Field(default=24, gt=0)
    border_width: int = Field(default=4, ge=0)
    border_color: str = "#1DA1F2"
    border_radius: int = Field(default=10, ge=0)
    max_name_length: int = Field(default=24, gt=3)


class Template(BaseModel):
    """
    Fixed-size card description.

    Every referenced position, plus the avatar and QR squares, must lie within
    the template's dimensions.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    dimensions: Dimensions
    layout: TemplateLayout
    styles: TemplateStyles = TemplateStyles()

    @model_validator(mode="after")
    def _check_positions_within_bounds(self) -> "Template":
        w, h = self.dimensions.width, self.dimensions.height
        layout = self.layout

        named = {
            "avatar_position": layout.avatar_position,
            "name_position": layout.name_position,
            "handle_position": layout.handle_position,
            "stats_position": layout.stats_position,
            "qr_position": layout.qr_position,
            "caption_position": layout.caption_position,
        }
        for label, pos in named.items():
            if not (0 <= pos.x <= w and 0 <= pos.y <= h):
                raise ValueError(f"{label} ({pos.x}, {pos.y}) lies outside {w}x{h}")

        squares = {
            "avatar": (layout.avatar_position, layout.avatar_size),
            "qr": (layout.qr_position, layout.qr_size),
        }
        for label, (pos, size) in squares.items():
            if pos.x + size > w or pos.y + size > h:
                raise ValueError(f"{label} square of size {size} overflows {w}x{h}")

        return self

    def with_styles(self, **overrides) -> "Template":
        """Return a copy with style overrides applied; this template is untouched.

        Raises:
            pydantic.ValidationError: An override is out of range or not a style
        """
        styles = TemplateStyles.model_validate({**self.styles.model_dump(), **overrides})
        return self.model_copy(update={"styles": styles})


def default_template() -> Template:
    """Standard 3.5in x 2.25in badge rendered at 200 px per inch."""
    return Template(
        id="default",
        name="Default Name Tag",
        dimensions=Dimensions(width=700, height=450),
        layout=TemplateLayout(
            avatar_position=Position(x=280, y=30),
            avatar_size=140,
            name_position=Position(x=350, y=190, align=Align.CENTER),
            handle_position=Position(x=350, y=255, align=Align.CENTER),
            stats_position=Position(x=350, y=350, align=Align.CENTER),
            qr_position=Position(x=225, y=60),
            qr_size=250,
            caption_position=Position(x=350, y=330, align=Align.CENTER),
        ),
    )
