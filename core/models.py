"""
Data models for the recognition pipeline.
Uses frozen dataclasses for value records; the Pydantic wire schema lives in core.schema.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping


class RecognitionMode(str, Enum):
    """CPU vs accuracy tradeoff, chosen once per invocation."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class ModeProfile:
    """Preprocessing variants x segmentation modes for one RecognitionMode."""

    variants: tuple[str, ...]
    psms: tuple[int, ...]
    max_passes: int


MODE_PROFILES: Mapping[RecognitionMode, ModeProfile] = MappingProxyType({
    RecognitionMode.LOW: ModeProfile(
        variants=("default", "high_contrast"),
        psms=(6,),
        max_passes=2,
    ),
    RecognitionMode.MEDIUM: ModeProfile(
        variants=("default", "high_contrast", "threshold"),
        psms=(6, 4),
        max_passes=6,
    ),
    RecognitionMode.HIGH: ModeProfile(
        variants=("default", "high_contrast", "threshold", "sharpen", "denoise"),
        psms=(6, 4, 3),
        max_passes=15,
    ),
})


class AmountProvenance(str, Enum):
    KEYWORD = "keyword-match"
    CURRENCY_PATTERN = "generic-currency-pattern"
    FALLBACK_LARGEST = "fallback-largest"


class Verdict(str, Enum):
    ACCEPT = "ACCEPT"
    RETRY = "RETRY"
    ESCALATE = "ESCALATE"


@dataclass(frozen=True)
class OCRWord:
    """One recognized word and its confidence (0-100)."""

    text: str
    confidence: float


@dataclass(frozen=True)
class OCRPage:
    """Raw output of one OCR engine call."""

    text: str
    confidence: float
    words: tuple[OCRWord, ...] = ()


@dataclass(frozen=True)
class PassResult:
    """Result of one (variant, psm) pass. Not persisted."""

    variant: str
    psm: int
    text: str
    confidence: float
    words: tuple[OCRWord, ...] = ()


@dataclass(frozen=True)
class AmountCandidate:
    value: Decimal
    confidence: float
    priority: int
    provenance: AmountProvenance
    line: str = ""


@dataclass(frozen=True)
class DateCandidate:
    iso_date: str
    confidence: float
    raw: str = ""


@dataclass(frozen=True)
class FieldConfidence:
    amount: float = 0.0
    date: float = 0.0


@dataclass(frozen=True)
class QualityReport:
    score: int
    verdict: Verdict


@dataclass(frozen=True)
class RecognitionResult:
    """Final result of one receipt (the single public output of the pipeline)."""

    amount: Decimal
    date: str | None
    confidence: FieldConfidence
    raw_text: str
    verdict: Verdict
    quality_score: int
    trace_id: str = ""
    passes_attempted: int = 0
    passes_succeeded: int = 0
    timed_out: bool = False

    @property
    def accepted(self) -> bool:
        return self.verdict is Verdict.ACCEPT

    def to_dict(self) -> dict[str, Any]:
        """Export for logging/serialization."""
        return {
            "amount": float(self.amount),
            "date": self.date,
            "confidence": {
                "amount": round(self.confidence.amount, 2),
                "date": round(self.confidence.date, 2),
            },
            "rawText": self.raw_text,
            "verdict": self.verdict.value,
            "qualityScore": self.quality_score,
            "traceId": self.trace_id,
            "passesAttempted": self.passes_attempted,
            "passesSucceeded": self.passes_succeeded,
            "timedOut": self.timed_out,
        }


@dataclass
class BatchMetrics:
    """Metrics collected during batch processing."""

    total_processed: int = 0
    accepted_count: int = 0
    retry_count: int = 0
    escalated_count: int = 0
    failed_count: int = 0
    total_time_sec: float = 0.0
    failed_files: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Export for logging/serialization."""
        return {
            "total_processed": self.total_processed,
            "accepted_count": self.accepted_count,
            "retry_count": self.retry_count,
            "escalated_count": self.escalated_count,
            "failed_count": self.failed_count,
            "failed_files": list(self.failed_files),
            "total_time_sec": round(self.total_time_sec, 4),
        }
