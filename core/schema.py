"""
Pydantic schemas for the caller-facing recognition response.
Field names (amount, date, confidence.amount/date, rawText, success) are what the upload form pre-fills from.
"""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

from core.models import RecognitionResult, Verdict

SOURCE_LOCAL = "local"
SOURCE_LOW_CONFIDENCE = "local_low_confidence"
LOW_CONFIDENCE_WARNING = "OCR confidence is low - please verify manually"


class ConfidenceSchema(BaseModel):
    """Per-field confidence (0-100)."""

    amount: float = 0.0
    date: float = 0.0


class RecognitionResponse(BaseModel):
    """Recognition output as serialized to the host API."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = False
    amount: float = 0.0
    date: str | None = None
    confidence: ConfidenceSchema = Field(default_factory=ConfidenceSchema)
    raw_text: str = Field(default="", alias="rawText")
    verdict: Verdict = Verdict.ESCALATE
    quality_score: int = Field(default=0, alias="qualityScore")
    source: str = SOURCE_LOW_CONFIDENCE
    warning: str | None = None
    trace_id: str = Field(default="", alias="traceId")

    @field_validator("amount")
    @classmethod
    def amount_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("amount must be >= 0")
        return v

    @classmethod
    def from_result(cls, result: RecognitionResult) -> RecognitionResponse:
        """ACCEPT is a success; RETRY and ESCALATE are one low-confidence outcome with best-effort values."""
        accepted = result.verdict is Verdict.ACCEPT
        return cls(
            success=accepted,
            amount=float(result.amount),
            date=result.date,
            confidence=ConfidenceSchema(
                amount=round(result.confidence.amount, 2),
                date=round(result.confidence.date, 2),
            ),
            raw_text=result.raw_text,
            verdict=result.verdict,
            quality_score=result.quality_score,
            source=SOURCE_LOCAL if accepted else SOURCE_LOW_CONFIDENCE,
            warning=None if accepted else LOW_CONFIDENCE_WARNING,
            trace_id=result.trace_id,
        )

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=False)
