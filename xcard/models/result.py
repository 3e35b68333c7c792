"""Batch and document result models."""

from dataclasses import dataclass, field

from xcard.exceptions import ErrorCode
from xcard.models.card import RenderedCard
from xcard.models.layout import LayoutPlan


@dataclass(frozen=True)
class FailedItem:
    """One skipped input with the reason it was skipped."""

    url: str
    code: ErrorCode
    reason: str

    def to_dict(self) -> dict:
        return {"url": self.url, "code": self.code.value, "reason": self.reason}


@dataclass
class BatchResult:
    """Partition of a batch into rendered cards and failures, in input order."""

    succeeded: list[RenderedCard] = field(default_factory=list)
    failed: list[FailedItem] = field(default_factory=list)
    duration_ms: float = 0.0

    @property
    def total(self) -> int:
        return len(self.succeeded) + len(self.failed)

    def summary(self) -> dict:
        return {
            "total": self.total,
            "succeeded": len(self.succeeded),
            "failed": len(self.failed),
            "skipped": [item.to_dict() for item in self.failed],
        }


@dataclass
class DocumentResult:
    """Paginated PDF built from a batch."""

    pdf: bytes = field(repr=False)
    filename: str
    plan: LayoutPlan
    batch: BatchResult
