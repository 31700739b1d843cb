"""Custom exceptions for the receipt recognition pipeline. No generic Exception usage."""

from __future__ import annotations


class ReceiptRecognitionError(Exception):
    """Base exception for pipeline failures."""

    def __init__(self, message: str, trace_id: str | None = None) -> None:
        self.trace_id = trace_id or ""
        super().__init__(message)


class PreprocessingError(ReceiptRecognitionError):
    """One variant's image transform failed. Recoverable: that variant's passes are skipped."""

    def __init__(self, message: str, variant: str = "", trace_id: str | None = None) -> None:
        self.variant = variant
        super().__init__(message, trace_id=trace_id)


class RecognitionEngineError(ReceiptRecognitionError):
    """One (variant, psm) OCR call failed. Recoverable: only that pass is skipped."""

    def __init__(
        self,
        message: str,
        variant: str = "",
        psm: int | None = None,
        trace_id: str | None = None,
    ) -> None:
        self.variant = variant
        self.psm = psm
        super().__init__(message, trace_id=trace_id)


class AllPassesFailedError(ReceiptRecognitionError):
    """Zero passes succeeded; the upload cannot be analyzed and needs manual entry."""

    def __init__(
        self,
        message: str = "All OCR passes failed",
        attempted: int = 0,
        failures: list[ReceiptRecognitionError] | None = None,
        trace_id: str | None = None,
    ) -> None:
        self.attempted = attempted
        self.failures = list(failures or [])
        super().__init__(message, trace_id=trace_id)


class ConfigError(ReceiptRecognitionError):
    """Invalid or missing configuration."""

    pass
