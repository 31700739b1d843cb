"""
Result selector and quality evaluator.
Amount and date are chosen independently across the candidates of every successful pass,
then scored once per request into an ACCEPT / RETRY / ESCALATE verdict.
"""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import Iterable, Sequence

from core.models import (
    AmountCandidate,
    DateCandidate,
    FieldConfidence,
    PassResult,
    QualityReport,
    RecognitionResult,
    Verdict,
)
from extraction.candidates import PassCandidates, extract_candidates
from utils.config import ThresholdConfig
from utils.logger import log_structured

logger = logging.getLogger(__name__)

# (average confidence floor, points), checked in order
CONFIDENCE_BANDS: tuple[tuple[float, int], ...] = ((70.0, 50), (50.0, 30), (30.0, 15))
BOTH_FIELDS_POINTS = 50
ONE_FIELD_POINTS = 25


def select_amount(
    candidates: Iterable[AmountCandidate],
    min_confidence: float = ThresholdConfig.amount_min_confidence,
) -> AmountCandidate | None:
    """Confidence > min and value > 0; highest priority tier first, then highest confidence."""
    valid = [c for c in candidates if c.value > 0 and c.confidence > min_confidence]
    if not valid:
        return None
    return sorted(valid, key=lambda c: (-c.priority, -c.confidence))[0]


def select_date(
    candidates: Iterable[DateCandidate],
    min_confidence: float = ThresholdConfig.date_min_confidence,
) -> DateCandidate | None:
    """Confidence > min; single highest-confidence candidate (first seen on ties)."""
    valid = [c for c in candidates if c.confidence > min_confidence]
    if not valid:
        return None
    return sorted(valid, key=lambda c: -c.confidence)[0]


def evaluate_quality(
    amount: Decimal,
    date_value: str | None,
    confidence: FieldConfidence,
    thresholds: ThresholdConfig | None = None,
) -> QualityReport:
    """Confidence contribution (0-50) + extraction contribution (0-50) -> score and verdict."""
    thresholds = thresholds or ThresholdConfig()
    avg_confidence = (confidence.amount + confidence.date) / 2
    has_amount = amount > 0
    has_date = date_value is not None

    score = 0
    for floor, points in CONFIDENCE_BANDS:
        if avg_confidence > floor:
            score += points
            break

    if has_amount and has_date:
        score += BOTH_FIELDS_POINTS
    elif has_amount or has_date:
        score += ONE_FIELD_POINTS

    if score > thresholds.accept_score:
        verdict = Verdict.ACCEPT
    elif score > thresholds.retry_score:
        verdict = Verdict.RETRY
    else:
        verdict = Verdict.ESCALATE
    return QualityReport(score=score, verdict=verdict)


def _log_pass_candidates(index: int, pc: PassCandidates) -> None:
    best_amount = select_amount(pc.amounts, min_confidence=float("-inf"))
    best_date = select_date(pc.dates, min_confidence=float("-inf"))
    logger.info(
        "    Result %s: Amount=$%s (conf=%.1f%%), Date=%s (%s, PSM%s)",
        index,
        best_amount.value if best_amount else 0,
        best_amount.confidence if best_amount else 0.0,
        best_date.iso_date if best_date else "none",
        pc.variant,
        pc.psm,
    )


def select_best(
    results: Sequence[PassResult],
    thresholds: ThresholdConfig | None = None,
    *,
    today: date | None = None,
    trace_id: str = "",
) -> RecognitionResult:
    """Merge candidates from every successful pass and build the final result."""
    thresholds = thresholds or ThresholdConfig()
    logger.info("  Analyzing %s OCR results...", len(results))

    per_pass = [extract_candidates(r, today=today) for r in results]
    for i, pc in enumerate(per_pass, start=1):
        _log_pass_candidates(i, pc)

    amount_sources = [(a, pc) for pc in per_pass for a in pc.amounts]
    date_sources = [(d, pc) for pc in per_pass for d in pc.dates]
    best_amount = select_amount((a for a, _ in amount_sources), thresholds.amount_min_confidence)
    best_date = select_date((d for d, _ in date_sources), thresholds.date_min_confidence)

    amount_origin = next((pc for a, pc in amount_sources if a is best_amount), None)
    date_origin = next((pc for d, pc in date_sources if d is best_date), None)
    log_structured(
        logger,
        logging.INFO,
        "  Best Amount: $%s from %s; Best Date: %s from %s" % (
            best_amount.value if best_amount else 0,
            amount_origin.variant if amount_origin else "none",
            best_date.iso_date if best_date else "not found",
            date_origin.variant if date_origin else "none",
        ),
        trace_id=trace_id,
        amount_provenance=best_amount.provenance.value if best_amount else None,
        amount_priority=best_amount.priority if best_amount else None,
    )

    amount = best_amount.value if best_amount else Decimal("0")
    date_value = best_date.iso_date if best_date else None
    confidence = FieldConfidence(
        amount=best_amount.confidence if best_amount else 0.0,
        date=best_date.confidence if best_date else 0.0,
    )
    quality = evaluate_quality(amount, date_value, confidence, thresholds)
    logger.info("Quality Score: %s/100 - Verdict: %s", quality.score, quality.verdict.value)

    return RecognitionResult(
        amount=amount,
        date=date_value,
        confidence=confidence,
        raw_text=results[0].text if results else "",
        verdict=quality.verdict,
        quality_score=quality.score,
        trace_id=trace_id,
        passes_succeeded=len(results),
    )
