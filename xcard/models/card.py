"""Draw instructions and rendered card records."""

from dataclasses import dataclass, field
from enum import Enum


class OpKind(str, Enum):
    RECT = "rect"
    ROUNDED_RECT = "rounded_rect"
    CIRCLE = "circle"
    IMAGE = "image"
    TEXT = "text"


@dataclass(frozen=True)
class DrawOp:
    """
    A single immutable drawing instruction.

    Geometry is (x, y, w, h) in card pixels. For TEXT ops x is the anchor
    for `align` and y is the top of the line box. IMAGE ops carry encoded
    image bytes in `data`; `clip` is "circle" or None.
    """

    kind: OpKind
    element: str
    x: int
    y: int
    w: int = 0
    h: int = 0
    fill: str | None = None
    outline: str | None = None
    stroke_width: int = 0
    radius: int = 0
    text: str | None = None
    font_size: int = 0
    align: str = "left"
    data: bytes | None = field(default=None, repr=False)
    clip: str | None = None

    def describe(self) -> str:
        """Stable one-line summary, used for snapshot comparisons."""
        parts = [self.kind.value, self.element, f"{self.x},{self.y},{self.w},{self.h}"]
        if self.fill:
            parts.append(f"fill={self.fill}")
        if self.outline:
            parts.append(f"outline={self.outline}/{self.stroke_width}")
        if self.text is not None:
            parts.append(f"text={self.text!r}@{self.font_size}/{self.align}")
        if self.data is not None:
            parts.append(f"bytes={len(self.data)}")
        if self.clip:
            parts.append(f"clip={self.clip}")
        return " ".join(parts)


@dataclass
class RenderedCard:
    """Front/back surfaces of one card plus the identity of its profile."""

    username: str
    profile_url: str
    width: int
    height: int
    front: bytes = field(repr=False)
    back: bytes | None = field(default=None, repr=False)
    front_ops: tuple[DrawOp, ...] = ()
    back_ops: tuple[DrawOp, ...] = ()
    placeholders: list[str] = field(default_factory=list)

    @property
    def has_back(self) -> bool:
        return self.back is not None
