"""
Pass orchestrator: {preprocessing variant} x {segmentation mode} -> list of PassResult.
Each variant is transformed once; the OCR engine then runs once per psm on that one artifact.
A failed transform skips that variant's passes; a failed OCR call skips only that pass.
Zero successful passes is the only fatal condition (AllPassesFailedError).
Supports a bounded worker pool (one task per variant), an overall timeout and cooperative
cancellation, both checked between passes.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

from PIL import Image

from core.exceptions import (
    AllPassesFailedError,
    PreprocessingError,
    ReceiptRecognitionError,
    RecognitionEngineError,
)
from core.interfaces import IImageWriter, IOCREngine
from core.models import MODE_PROFILES, ModeProfile, PassResult, RecognitionMode
from extraction.image_io import TempImageWriter
from extraction.preprocessing import preprocess

logger = logging.getLogger(__name__)


@dataclass
class PassBatch:
    """Outcome of one orchestrated batch of passes."""

    results: list[PassResult] = field(default_factory=list)
    planned: int = 0
    attempted: int = 0
    failures: list[ReceiptRecognitionError] = field(default_factory=list)
    timed_out: bool = False
    cancelled: bool = False


@dataclass
class _VariantOutcome:
    results: list[PassResult] = field(default_factory=list)
    attempted: int = 0
    failures: list[ReceiptRecognitionError] = field(default_factory=list)
    stopped: bool = False


class _StopSignal:
    """Between-pass stop check: caller cancellation or the overall deadline."""

    def __init__(
        self,
        clock: Callable[[], float],
        deadline: float | None,
        cancel_event: threading.Event | None,
    ) -> None:
        self._clock = clock
        self.deadline = deadline
        self._cancel = cancel_event
        self._expired = threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._cancel is not None and self._cancel.is_set()

    @property
    def timed_out(self) -> bool:
        return self._expired.is_set()

    def expire(self) -> None:
        self._expired.set()

    def remaining(self) -> float | None:
        return None if self.deadline is None else max(0.0, self.deadline - self._clock())

    def should_stop(self) -> bool:
        if self.cancelled or self._expired.is_set():
            return True
        if self.deadline is not None and self._clock() >= self.deadline:
            self._expired.set()
            return True
        return False


def plan_passes(profile: ModeProfile) -> list[tuple[str, int]]:
    """(variant, psm) pairs in table order, capped at the profile's pass ceiling."""
    plan = [(variant, psm) for variant in profile.variants for psm in profile.psms]
    if len(plan) > profile.max_passes:
        logger.warning("Pass plan of %s exceeds ceiling %s; truncating", len(plan), profile.max_passes)
        plan = plan[: profile.max_passes]
    return plan


class PassOrchestrator:
    """
    Runs every planned pass for one image. No state is shared between invocations;
    each call owns its working images and temporary artifacts.
    """

    def __init__(
        self,
        engine: IOCREngine,
        mode: RecognitionMode | str = RecognitionMode.MEDIUM,
        *,
        writer: IImageWriter | None = None,
        max_workers: int = 1,
        timeout_sec: float = 0.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._engine = engine
        self._mode = RecognitionMode(mode)
        self._profile = MODE_PROFILES[self._mode]
        self._writer = writer or TempImageWriter()
        self._max_workers = max(1, int(max_workers))
        self._timeout_sec = max(0.0, float(timeout_sec or 0.0))
        self._clock = clock

    @property
    def mode(self) -> RecognitionMode:
        return self._mode

    @property
    def profile(self) -> ModeProfile:
        return self._profile

    def run(
        self,
        image: Image.Image,
        *,
        trace_id: str = "",
        cancel_event: threading.Event | None = None,
    ) -> PassBatch:
        """Run all passes; raise AllPassesFailedError when none succeeded."""
        plan = plan_passes(self._profile)
        psms_by_variant: dict[str, list[int]] = {}
        for variant, psm in plan:
            psms_by_variant.setdefault(variant, []).append(psm)

        logger.info(
            "Running %s preprocessing variants x %s PSM modes = %s passes (mode=%s, trace_id=%s)",
            len(psms_by_variant), len(self._profile.psms), len(plan), self._mode.value, trace_id,
        )
        deadline = self._clock() + self._timeout_sec if self._timeout_sec > 0 else None
        signal = _StopSignal(self._clock, deadline, cancel_event)

        if self._max_workers > 1 and len(psms_by_variant) > 1:
            outcomes = self._run_parallel(image, psms_by_variant, signal, trace_id)
        else:
            outcomes = []
            for variant, psms in psms_by_variant.items():
                outcome = self._run_variant(image, variant, psms, signal, trace_id)
                outcomes.append(outcome)
                if outcome.stopped:
                    break

        batch = PassBatch(planned=len(plan))
        for outcome in outcomes:
            batch.results.extend(outcome.results)
            batch.attempted += outcome.attempted
            batch.failures.extend(outcome.failures)
        interrupted = any(o.stopped for o in outcomes) or len(outcomes) < len(psms_by_variant)
        batch.timed_out = interrupted and signal.timed_out
        batch.cancelled = interrupted and signal.cancelled
        if batch.timed_out:
            logger.warning("Batch timeout after %.1fs; keeping %s completed pass(es)", self._timeout_sec, len(batch.results))
        if batch.cancelled:
            logger.warning("Batch cancelled; keeping %s completed pass(es)", len(batch.results))

        if not batch.results:
            raise AllPassesFailedError(
                f"All OCR passes failed ({batch.attempted} attempted of {len(plan)} planned)",
                attempted=batch.attempted,
                failures=batch.failures,
                trace_id=trace_id,
            )
        logger.info("%s/%s passes succeeded (trace_id=%s)", len(batch.results), len(plan), trace_id)
        return batch

    def _run_variant(
        self,
        image: Image.Image,
        variant: str,
        psms: list[int],
        signal: _StopSignal,
        trace_id: str,
    ) -> _VariantOutcome:
        """Transform once, write one artifact, run each psm; the artifact is always deleted."""
        outcome = _VariantOutcome()
        if signal.should_stop():
            logger.warning("  Stopping before variant=%s (timeout or cancelled)", variant)
            outcome.stopped = True
            return outcome

        temp_path: Path | None = None
        try:
            try:
                processed = preprocess(image, variant)
                temp_path = self._writer.write(processed, variant)
            except PreprocessingError as e:
                e.trace_id = e.trace_id or trace_id
                logger.warning("  Preprocessing error for %s: %s", variant, e)
                outcome.failures.append(e)
                return outcome
            except (OSError, ValueError) as e:
                err = PreprocessingError(f"Could not write {variant} artifact: {e}", variant=variant, trace_id=trace_id)
                logger.warning("  Preprocessing error for %s: %s", variant, err)
                outcome.failures.append(err)
                return outcome

            for psm in psms:
                if signal.should_stop():
                    logger.warning("  Stopping before variant=%s, PSM=%s (timeout or cancelled)", variant, psm)
                    outcome.stopped = True
                    break
                result = self._run_pass(temp_path, variant, psm, outcome, trace_id)
                if result is not None:
                    outcome.results.append(result)
        finally:
            if temp_path is not None:
                try:
                    temp_path.unlink(missing_ok=True)
                except OSError as e:
                    logger.warning("  Could not delete temp file %s: %s", temp_path, e)
        return outcome

    def _run_pass(
        self,
        temp_path: Path,
        variant: str,
        psm: int,
        outcome: _VariantOutcome,
        trace_id: str,
    ) -> PassResult | None:
        logger.info("  Pass: variant=%s, PSM=%s", variant, psm)
        outcome.attempted += 1
        try:
            page = self._engine.recognize(temp_path, psm)
        except RecognitionEngineError as e:
            e.variant = e.variant or variant
            e.psm = psm
            e.trace_id = e.trace_id or trace_id
            logger.warning("    OCR error: %s", e)
            outcome.failures.append(e)
            return None
        except Exception as e:
            # Engine implementations are external; any failure only costs this pass
            err = RecognitionEngineError(f"OCR call failed: {e}", variant=variant, psm=psm, trace_id=trace_id)
            logger.warning("    OCR error: %s", err)
            outcome.failures.append(err)
            return None
        logger.info("    Confidence: %.1f%%", page.confidence)
        return PassResult(
            variant=variant,
            psm=psm,
            text=page.text,
            confidence=page.confidence,
            words=tuple(page.words),
        )

    def _run_parallel(
        self,
        image: Image.Image,
        psms_by_variant: dict[str, list[int]],
        signal: _StopSignal,
        trace_id: str,
    ) -> list[_VariantOutcome]:
        """One task per variant, each on its own copy of the source image. Results keep plan order."""
        variants = list(psms_by_variant)
        executor = ThreadPoolExecutor(max_workers=min(self._max_workers, len(variants)))
        try:
            futures = [
                executor.submit(
                    self._run_variant, image.copy(), variant, psms_by_variant[variant], signal, trace_id
                )
                for variant in variants
            ]
            _done, pending = wait(futures, timeout=signal.remaining())
            if pending:
                logger.warning("Batch timeout reached with %s variant task(s) unfinished; stopping", len(pending))
                signal.expire()
        finally:
            # Running tasks stop at their next pass boundary and still clean up their artifacts
            executor.shutdown(wait=True, cancel_futures=True)

        return [future.result() for future in futures if not future.cancelled()]
