"""Core layer: interfaces, models, exceptions."""

from core.interfaces import (
    IOCREngine,
    IImageReader,
    IImageWriter,
)
from core.models import (
    RecognitionMode,
    ModeProfile,
    MODE_PROFILES,
    AmountProvenance,
    Verdict,
    OCRWord,
    OCRPage,
    PassResult,
    AmountCandidate,
    DateCandidate,
    FieldConfidence,
    QualityReport,
    RecognitionResult,
    BatchMetrics,
)
from core.exceptions import (
    ReceiptRecognitionError,
    PreprocessingError,
    RecognitionEngineError,
    AllPassesFailedError,
    ConfigError,
)

__all__ = [
    "IOCREngine",
    "IImageReader",
    "IImageWriter",
    "RecognitionMode",
    "ModeProfile",
    "MODE_PROFILES",
    "AmountProvenance",
    "Verdict",
    "OCRWord",
    "OCRPage",
    "PassResult",
    "AmountCandidate",
    "DateCandidate",
    "FieldConfidence",
    "QualityReport",
    "RecognitionResult",
    "BatchMetrics",
    "ReceiptRecognitionError",
    "PreprocessingError",
    "RecognitionEngineError",
    "AllPassesFailedError",
    "ConfigError",
]
