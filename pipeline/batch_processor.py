"""
Batch processor: list of receipt images -> run recognizer per file, collect metrics.
Does not duplicate pipeline logic; uses ReceiptRecognizer.analyze().
"""

from __future__ import annotations

import logging
import time
from pathlib import Path

from core.exceptions import ReceiptRecognitionError
from core.models import BatchMetrics, Verdict
from core.schema import RecognitionResponse
from pipeline.recognizer import ReceiptRecognizer

logger = logging.getLogger(__name__)


def _update_metrics(metrics: BatchMetrics, response: RecognitionResponse) -> None:
    """Update counts from a single response."""
    metrics.total_processed += 1
    if response.verdict is Verdict.ACCEPT:
        metrics.accepted_count += 1
    elif response.verdict is Verdict.RETRY:
        metrics.retry_count += 1
    else:
        metrics.escalated_count += 1


class BatchProcessor:
    """Process several images sequentially. Each image is independent; one failure never stops the rest."""

    def __init__(self, recognizer: ReceiptRecognizer) -> None:
        self._recognizer = recognizer

    def process_batch(
        self,
        file_paths: list[str | Path],
        *,
        stop_on_first_error: bool = False,
    ) -> tuple[list[tuple[Path, RecognitionResponse | None]], BatchMetrics]:
        """
        Run recognizer.analyze() for each file. Returns ([(path, response or None)], metrics).
        On error: if stop_on_first_error, re-raise; else log and continue, increment failed_count.
        """
        results: list[tuple[Path, RecognitionResponse | None]] = []
        metrics = BatchMetrics()
        start = time.perf_counter()

        for item in file_paths:
            p = Path(item)
            if not p.exists():
                logger.warning("Skip missing file: %s", p)
                metrics.failed_count += 1
                metrics.failed_files.append(str(p))
                results.append((p, None))
                if stop_on_first_error:
                    raise FileNotFoundError(f"File not found: {p}")
                continue
            logger.info("Processing file=%s", p.name)
            try:
                response = self._recognizer.analyze(p)
            except ReceiptRecognitionError as e:
                metrics.failed_count += 1
                metrics.failed_files.append(str(p))
                results.append((p, None))
                logger.error("Recognition failed file=%s: %s", p.name, e)
                if stop_on_first_error:
                    raise
                continue
            results.append((p, response))
            _update_metrics(metrics, response)

        metrics.total_time_sec = time.perf_counter() - start
        return results, metrics
