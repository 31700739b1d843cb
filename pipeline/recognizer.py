"""
Receipt recognizer: single public method process(source) -> RecognitionResult.
Does not know which OCR engine is used; the engine is injected via constructor.
Flow: load image -> PassOrchestrator (transforms + OCR passes) -> candidates -> selection -> quality verdict.
"""

from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import replace
from datetime import date
from pathlib import Path

from core.exceptions import AllPassesFailedError, PreprocessingError
from core.interfaces import IOCREngine
from core.models import RecognitionMode, RecognitionResult
from core.schema import RecognitionResponse
from extraction.image_io import TempImageWriter, reader_for
from pipeline.orchestrator import PassOrchestrator
from pipeline.selection import select_best
from utils.config import AppConfig

logger = logging.getLogger(__name__)


def _source_label(source: Path | str | bytes) -> str:
    if isinstance(source, (bytes, bytearray)):
        return f"<{len(source)} bytes>"
    return Path(source).name


class ReceiptRecognizer:
    """
    Production recognizer: process(path or bytes) -> RecognitionResult.
    No global state; safe to share across requests (each call owns its buffers and temp files).
    """

    def __init__(
        self,
        engine: IOCREngine,
        config: AppConfig | None = None,
        *,
        mode: RecognitionMode | str | None = None,
        orchestrator: PassOrchestrator | None = None,
    ) -> None:
        self._config = config or AppConfig()
        self._engine = engine
        self._orchestrator = orchestrator or PassOrchestrator(
            engine,
            mode or self._config.mode,
            writer=TempImageWriter(self._config.temp_dir or None),
            max_workers=self._config.max_workers,
            timeout_sec=self._config.timeout_sec,
        )

    @property
    def mode(self) -> RecognitionMode:
        return self._orchestrator.mode

    def process(
        self,
        source: Path | str | bytes,
        *,
        cancel_event: threading.Event | None = None,
        today: date | None = None,
    ) -> RecognitionResult:
        """
        Run the full pipeline for one receipt image.
        Raises FileNotFoundError for a missing path and AllPassesFailedError when no pass
        succeeded, including an undecodable image. Low quality is never an error.
        """
        trace_id = str(uuid.uuid4())
        logger.info("=== Starting OCR for %s (trace_id=%s) ===", _source_label(source), trace_id)
        try:
            image = reader_for(source).read()
        except PreprocessingError as e:
            e.trace_id = e.trace_id or trace_id
            logger.error("OCR Error: cannot decode source, all variants skipped: %s (trace_id=%s)", e, trace_id)
            raise AllPassesFailedError(
                f"All OCR passes failed: every variant skipped, source could not be decoded ({e})",
                attempted=0,
                failures=[e],
                trace_id=trace_id,
            ) from e
        try:
            batch = self._orchestrator.run(image, trace_id=trace_id, cancel_event=cancel_event)
        except AllPassesFailedError as e:
            logger.error("OCR Error: %s (trace_id=%s)", e, trace_id)
            raise
        finally:
            image.close()

        result = select_best(batch.results, self._config.thresholds, today=today, trace_id=trace_id)
        result = replace(result, passes_attempted=batch.attempted, timed_out=batch.timed_out)
        if result.accepted:
            logger.info("OCR Success - Amount: $%s, Date: %s", result.amount, result.date)
        else:
            logger.info("Low confidence OCR result (%s)", result.verdict.value)
        return result

    def analyze(
        self,
        source: Path | str | bytes,
        *,
        cancel_event: threading.Event | None = None,
        today: date | None = None,
    ) -> RecognitionResponse:
        """process() shaped for the host API (success flag, warning, camelCase fields)."""
        return RecognitionResponse.from_result(self.process(source, cancel_event=cancel_event, today=today))
