"""
Candidate extractor: one pass's OCR text + word confidences -> amount and date candidates.

Amounts: keyword lines (TOTAL / BALANCE / NET / AMOUNT / PAYABLE / DUE) first; the largest
currency-formatted number only when no keyword line matched in the pass.
Dates: D/M/Y, Y/M/D and D Mon Y, kept only when calendar-valid and inside the receipt window.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal, InvalidOperation
from typing import Sequence

from core.models import (
    AmountCandidate,
    AmountProvenance,
    DateCandidate,
    OCRWord,
    PassResult,
)

logger = logging.getLogger(__name__)

# Keyword anchor immediately followed by a number ("TOTAL: $23.50", "Balance due 4.20" -> due).
# Anchors match inside fused words too ("SUBTOTAL 20.00", "NETAMOUNT 5.00").
KEYWORD_AMOUNT_PATTERN = re.compile(
    r"(total|amount|balance|net|payable|due)[\s:]*\$?\s*(\d[\d,]*(?:\.\d{1,2})?)",
    re.IGNORECASE,
)
LINE_STARTS_WITH_TOTAL = re.compile(r"^total\b", re.IGNORECASE)
BALANCE_OR_NET = re.compile(r"\b(?:balance|net)\b", re.IGNORECASE)

# Optional $, digits with optional thousands separators, exactly two decimals
CURRENCY_PATTERN = re.compile(r"\$?\s*(\d[\d,]*\.\d{2})\b")

PRIORITY_TOTAL = 3
PRIORITY_BALANCE_NET = 2
PRIORITY_OTHER_KEYWORD = 1
PRIORITY_FALLBACK = 0

# Confidence when no OCR word overlaps the matched text / when the engine gave no words
NO_OVERLAP_CONFIDENCE = 40.0
NO_WORDS_CONFIDENCE = 50.0

DATE_DMY = re.compile(r"\b(\d{1,2})[/\-.](\d{1,2})[/\-.](\d{2,4})\b")
DATE_YMD = re.compile(r"\b(\d{4})[/\-.](\d{1,2})[/\-.](\d{1,2})\b")
DATE_D_MON_Y = re.compile(
    r"\b(\d{1,2})[\s\-]+(Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec)[a-z]*[\s\-]+(\d{2,4})\b",
    re.IGNORECASE,
)
MONTH_ABBREVIATIONS = ("jan", "feb", "mar", "apr", "may", "jun", "jul", "aug", "sep", "oct", "nov", "dec")

EARLIEST_RECEIPT_DATE = date(2000, 1, 1)
FUTURE_TOLERANCE = timedelta(days=7)


@dataclass(frozen=True)
class PassCandidates:
    """All candidates proposed by one pass."""

    variant: str
    psm: int
    amounts: tuple[AmountCandidate, ...] = ()
    dates: tuple[DateCandidate, ...] = ()


def text_confidence(words: Sequence[OCRWord], text: str) -> float:
    """Mean confidence of the OCR words whose text occurs inside `text`."""
    if not words:
        return NO_WORDS_CONFIDENCE
    matching = [w.confidence for w in words if w.text and w.text in text]
    if not matching:
        return NO_OVERLAP_CONFIDENCE
    return sum(matching) / len(matching)


def parse_amount(raw: str) -> Decimal | None:
    """Strip thousands separators; None when not a number."""
    cleaned = raw.replace(",", "").strip()
    if not cleaned:
        return None
    try:
        value = Decimal(cleaned)
    except InvalidOperation:
        return None
    return value if value.is_finite() else None


def _starts_word(line: str, pos: int) -> bool:
    return pos == 0 or not line[pos - 1].isalnum()


def keyword_priority(anchor: str, line: str, standalone: bool = True) -> int:
    """3 for a standalone TOTAL anchor or a line starting with TOTAL; 2 for BALANCE/NET lines; else 1."""
    if (standalone and anchor.lower() == "total") or LINE_STARTS_WITH_TOTAL.match(line):
        return PRIORITY_TOTAL
    if BALANCE_OR_NET.search(line):
        return PRIORITY_BALANCE_NET
    return PRIORITY_OTHER_KEYWORD


def _lines(text: str) -> list[str]:
    return [line.strip() for line in text.splitlines()]


def extract_keyword_amounts(text: str, words: Sequence[OCRWord]) -> list[AmountCandidate]:
    """One candidate per keyword line (first anchor+number match on the line)."""
    candidates: list[AmountCandidate] = []
    for line in _lines(text):
        m = KEYWORD_AMOUNT_PATTERN.search(line)
        if not m:
            continue
        value = parse_amount(m.group(2))
        if value is None or value <= 0:
            continue
        candidates.append(
            AmountCandidate(
                value=value,
                confidence=text_confidence(words, line),
                priority=keyword_priority(m.group(1), line, standalone=_starts_word(line, m.start(1))),
                provenance=AmountProvenance.KEYWORD,
                line=line,
            )
        )
    return candidates


def extract_currency_amounts(text: str, words: Sequence[OCRWord]) -> list[AmountCandidate]:
    """Every currency-formatted number in the text, in reading order."""
    amounts: list[AmountCandidate] = []
    for line in _lines(text):
        for m in CURRENCY_PATTERN.finditer(line):
            value = parse_amount(m.group(1))
            if value is None or value <= 0:
                continue
            amounts.append(
                AmountCandidate(
                    value=value,
                    confidence=text_confidence(words, line),
                    priority=PRIORITY_FALLBACK,
                    provenance=AmountProvenance.CURRENCY_PATTERN,
                    line=line,
                )
            )
    return amounts


def extract_amounts(text: str, words: Sequence[OCRWord] = ()) -> list[AmountCandidate]:
    """Keyword candidates; else the single largest currency amount as a tier-0 fallback."""
    keyword = extract_keyword_amounts(text, words)
    if keyword:
        return keyword
    amounts = extract_currency_amounts(text, words)
    if not amounts:
        return []
    largest = max(amounts, key=lambda c: c.value)
    return [
        AmountCandidate(
            value=largest.value,
            confidence=largest.confidence,
            priority=PRIORITY_FALLBACK,
            provenance=AmountProvenance.FALLBACK_LARGEST,
            line=largest.line,
        )
    ]


def _expand_year(raw: str) -> int:
    return int("20" + raw) if len(raw) == 2 else int(raw)


def _month_from_name(name: str) -> int:
    return MONTH_ABBREVIATIONS.index(name[:3].lower()) + 1


def to_receipt_date(year: int, month: int, day: int, today: date | None = None) -> date | None:
    """Calendar-valid date inside [2000-01-01, today + 7 days], else None."""
    try:
        d = date(year, month, day)
    except ValueError:
        return None
    latest = (today or date.today()) + FUTURE_TOLERANCE
    if d < EARLIEST_RECEIPT_DATE or d > latest:
        return None
    return d


def extract_dates(
    text: str,
    words: Sequence[OCRWord] = (),
    today: date | None = None,
) -> list[DateCandidate]:
    """Apply the three date patterns independently; out-of-window or invalid dates never become candidates."""
    today = today or date.today()
    candidates: list[DateCandidate] = []
    matches: list[tuple[re.Match[str], int, int, int]] = []

    for m in DATE_DMY.finditer(text):
        matches.append((m, _expand_year(m.group(3)), int(m.group(2)), int(m.group(1))))
    for m in DATE_YMD.finditer(text):
        matches.append((m, int(m.group(1)), int(m.group(2)), int(m.group(3))))
    for m in DATE_D_MON_Y.finditer(text):
        matches.append((m, _expand_year(m.group(3)), _month_from_name(m.group(2)), int(m.group(1))))

    for m, year, month, day in matches:
        d = to_receipt_date(year, month, day, today=today)
        if d is None:
            logger.debug("    Rejected date %r", m.group(0))
            continue
        candidates.append(
            DateCandidate(
                iso_date=d.isoformat(),
                confidence=text_confidence(words, m.group(0)),
                raw=m.group(0),
            )
        )
    return candidates


def extract_candidates(result: PassResult, today: date | None = None) -> PassCandidates:
    """Amount and date candidates for one pass."""
    return PassCandidates(
        variant=result.variant,
        psm=result.psm,
        amounts=tuple(extract_amounts(result.text, result.words)),
        dates=tuple(extract_dates(result.text, result.words, today=today)),
    )
