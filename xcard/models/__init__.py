"""Pydantic models and pipeline records for xcard."""

from xcard.models.profile import Profile
from xcard.models.template import (
    Align,
    Dimensions,
    Position,
    Template,
    TemplateLayout,
    TemplateStyles,
    default_template,
)
from xcard.models.card import DrawOp, OpKind, RenderedCard
from xcard.models.layout import DuplexMode, FrameSize, LayoutPlan, Placement, Side, TileConfig
from xcard.models.result import BatchResult, DocumentResult, FailedItem

__all__ = [
    "Profile",
    "Align",
    "Dimensions",
    "Position",
    "Template",
    "TemplateLayout",
    "TemplateStyles",
    "default_template",
    "DrawOp",
    "OpKind",
    "RenderedCard",
    "DuplexMode",
    "FrameSize",
    "LayoutPlan",
    "Placement",
    "Side",
    "TileConfig",
    "BatchResult",
    "DocumentResult",
    "FailedItem",
]
