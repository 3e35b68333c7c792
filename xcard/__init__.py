"""xcard - printable name tags from X profiles."""

from xcard.models.profile import Profile
from xcard.models.template import Template, default_template
from xcard.models.card import RenderedCard
from xcard.models.layout import DuplexMode, FrameSize, LayoutPlan, TileConfig
from xcard.models.result import BatchResult, DocumentResult, FailedItem
from xcard.config import CardConfig, PageSize
from xcard.core.orchestrator import CardMaker
from xcard.core.compositor import compose, compose_single, layout
from xcard.core.exporter import save_pdf, save_document, save_card_images

__version__ = "0.1.0"

__all__ = [
    # Main interface
    "CardMaker",
    "CardConfig",
    "PageSize",
    # Models
    "Profile",
    "Template",
    "default_template",
    "RenderedCard",
    "DuplexMode",
    "FrameSize",
    "LayoutPlan",
    "TileConfig",
    "BatchResult",
    "DocumentResult",
    "FailedItem",
    # Layout
    "layout",
    "compose",
    "compose_single",
    # Export utilities
    "save_pdf",
    "save_document",
    "save_card_images",
    "__version__",
]
