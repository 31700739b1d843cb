"""
Unit tests for the pass orchestrator.
Tests: pass counts per mode, temp artifact lifecycle, partial failure, total failure,
cancellation, timeout, parallel variant workers.
"""
from __future__ import annotations

import threading
from pathlib import Path

import pytest
from PIL import Image

import pipeline.orchestrator as orchestrator_module
from core.exceptions import AllPassesFailedError, PreprocessingError, RecognitionEngineError
from core.models import MODE_PROFILES, ModeProfile, RecognitionMode
from extraction.image_io import TempImageWriter
from pipeline.orchestrator import PassOrchestrator, plan_passes
from conftest import FakeOCREngine, make_page


def _orchestrator(engine: FakeOCREngine, temp_dir: Path, mode: str = "medium", **kwargs) -> PassOrchestrator:
    return PassOrchestrator(engine, mode, writer=TempImageWriter(temp_dir), **kwargs)


@pytest.mark.parametrize("mode, expected", [("low", 2), ("medium", 6), ("high", 15)])
def test_pass_count_per_mode(receipt_image: Image.Image, temp_dir: Path, mode: str, expected: int) -> None:
    engine = FakeOCREngine()
    batch = _orchestrator(engine, temp_dir, mode).run(receipt_image)
    assert len(engine.calls) == expected
    assert len(batch.results) == expected
    assert batch.planned == batch.attempted == expected
    assert not batch.failures


def test_medium_mode_runs_variants_then_psms_in_table_order(receipt_image: Image.Image, temp_dir: Path) -> None:
    engine = FakeOCREngine()
    batch = _orchestrator(engine, temp_dir).run(receipt_image)
    expected = [
        ("default", 6), ("default", 4),
        ("high_contrast", 6), ("high_contrast", 4),
        ("threshold", 6), ("threshold", 4),
    ]
    assert engine.calls == expected
    assert [(r.variant, r.psm) for r in batch.results] == expected


def test_one_artifact_per_variant_deleted_after_its_passes(receipt_image: Image.Image, temp_dir: Path) -> None:
    engine = FakeOCREngine()
    _orchestrator(engine, temp_dir).run(receipt_image)
    assert all(engine.existed)
    # both psms of a variant read the same artifact
    assert engine.paths[0] == engine.paths[1]
    assert len(set(engine.paths)) == 3
    assert list(temp_dir.iterdir()) == []


def test_artifacts_deleted_even_when_every_pass_fails(receipt_image: Image.Image, temp_dir: Path) -> None:
    engine = FakeOCREngine(fail_all=True)
    with pytest.raises(AllPassesFailedError):
        _orchestrator(engine, temp_dir).run(receipt_image)
    assert list(temp_dir.iterdir()) == []


def test_single_pass_failure_only_skips_that_pass(receipt_image: Image.Image, temp_dir: Path) -> None:
    engine = FakeOCREngine(fail={("high_contrast", 4)})
    batch = _orchestrator(engine, temp_dir).run(receipt_image, trace_id="t-9")
    assert len(batch.results) == 5
    assert batch.attempted == 6
    [failure] = batch.failures
    assert isinstance(failure, RecognitionEngineError)
    assert (failure.variant, failure.psm, failure.trace_id) == ("high_contrast", 4, "t-9")


def test_all_passes_failing_raises(receipt_image: Image.Image, temp_dir: Path) -> None:
    engine = FakeOCREngine(fail_all=True)
    with pytest.raises(AllPassesFailedError) as exc:
        _orchestrator(engine, temp_dir).run(receipt_image, trace_id="t-1")
    assert exc.value.attempted == 6
    assert len(exc.value.failures) == 6
    assert exc.value.trace_id == "t-1"


def test_unexpected_engine_exception_counts_as_pass_failure(receipt_image: Image.Image, temp_dir: Path) -> None:
    def explode(variant: str, psm: int) -> None:
        if variant == "default":
            raise RuntimeError("engine crashed")

    engine = FakeOCREngine(on_call=explode)
    batch = _orchestrator(engine, temp_dir).run(receipt_image)
    assert len(batch.results) == 4
    assert all(isinstance(f, RecognitionEngineError) for f in batch.failures)
    assert {(f.variant, f.psm) for f in batch.failures} == {("default", 6), ("default", 4)}


def test_preprocessing_failure_skips_that_variant(
    receipt_image: Image.Image, temp_dir: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    real_preprocess = orchestrator_module.preprocess

    def flaky(image: Image.Image, variant: str) -> Image.Image:
        if variant == "threshold":
            raise PreprocessingError("transform failed", variant=variant)
        return real_preprocess(image, variant)

    monkeypatch.setattr(orchestrator_module, "preprocess", flaky)
    engine = FakeOCREngine()
    batch = _orchestrator(engine, temp_dir).run(receipt_image)
    assert len(batch.results) == 4
    assert batch.attempted == 4
    assert [type(f) for f in batch.failures] == [PreprocessingError]
    assert all(variant != "threshold" for variant, _ in engine.calls)


def test_cancellation_between_passes_keeps_completed_results(receipt_image: Image.Image, temp_dir: Path) -> None:
    cancel = threading.Event()
    engine = FakeOCREngine(on_call=lambda variant, psm: cancel.set())
    batch = _orchestrator(engine, temp_dir).run(receipt_image, cancel_event=cancel)
    assert len(batch.results) == 1
    assert batch.cancelled
    assert not batch.timed_out
    assert list(temp_dir.iterdir()) == []


def test_timeout_keeps_partial_results(receipt_image: Image.Image, temp_dir: Path) -> None:
    now = [0.0]

    def tick(variant: str, psm: int) -> None:
        now[0] += 1.0

    engine = FakeOCREngine(on_call=tick)
    orch = _orchestrator(engine, temp_dir, timeout_sec=2.5, clock=lambda: now[0])
    batch = orch.run(receipt_image)
    assert len(batch.results) == 3
    assert batch.timed_out
    assert not batch.cancelled
    assert list(temp_dir.iterdir()) == []


def test_cancel_before_any_pass_is_all_failed(receipt_image: Image.Image, temp_dir: Path) -> None:
    cancel = threading.Event()
    cancel.set()
    engine = FakeOCREngine()
    with pytest.raises(AllPassesFailedError) as exc:
        _orchestrator(engine, temp_dir).run(receipt_image, cancel_event=cancel)
    assert exc.value.attempted == 0
    assert engine.calls == []


def test_parallel_variants_keep_plan_order(receipt_image: Image.Image, temp_dir: Path) -> None:
    pages = {
        "default": make_page([("TOTAL $1.00", 90.0)]),
        "high_contrast": make_page([("TOTAL $2.00", 90.0)]),
        "threshold": make_page([("TOTAL $3.00", 90.0)]),
    }
    engine = FakeOCREngine(pages=pages)
    batch = _orchestrator(engine, temp_dir, max_workers=3).run(receipt_image)
    assert [(r.variant, r.psm) for r in batch.results] == [
        ("default", 6), ("default", 4),
        ("high_contrast", 6), ("high_contrast", 4),
        ("threshold", 6), ("threshold", 4),
    ]
    assert [r.text for r in batch.results][::2] == ["TOTAL $1.00", "TOTAL $2.00", "TOTAL $3.00"]
    assert sorted(engine.calls) == sorted((r.variant, r.psm) for r in batch.results)
    assert all(engine.existed)
    assert list(temp_dir.iterdir()) == []


def test_source_image_untouched_by_parallel_run(receipt_image: Image.Image, temp_dir: Path) -> None:
    before = receipt_image.tobytes()
    _orchestrator(FakeOCREngine(), temp_dir, "high", max_workers=4).run(receipt_image)
    assert receipt_image.tobytes() == before


def test_plan_is_truncated_to_the_pass_ceiling() -> None:
    profile = ModeProfile(variants=("default", "threshold"), psms=(6, 4, 3), max_passes=4)
    assert plan_passes(profile) == [("default", 6), ("default", 4), ("default", 3), ("threshold", 6)]


def test_mode_profiles_respect_their_ceilings() -> None:
    for mode in RecognitionMode:
        profile = MODE_PROFILES[mode]
        assert len(plan_passes(profile)) <= profile.max_passes


def test_temp_names_are_unique_per_call(temp_dir: Path) -> None:
    writer = TempImageWriter(temp_dir)
    names = {writer.path_for("default").name for _ in range(50)}
    assert len(names) == 50
    assert all(n.startswith("temp_default_") and n.endswith(".png") for n in names)
