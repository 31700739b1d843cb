"""Pipeline: pass orchestration, selection, single-image and batch recognition."""

from pipeline.orchestrator import PassOrchestrator, PassBatch, plan_passes
from pipeline.selection import select_amount, select_date, evaluate_quality, select_best
from pipeline.recognizer import ReceiptRecognizer
from pipeline.batch_processor import BatchProcessor

__all__ = [
    "PassOrchestrator",
    "PassBatch",
    "plan_passes",
    "select_amount",
    "select_date",
    "evaluate_quality",
    "select_best",
    "ReceiptRecognizer",
    "BatchProcessor",
]
