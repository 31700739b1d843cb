"""
Thermal receipt recognition command-line entry point.

Usage:
  python main.py IMAGE [IMAGE ...] [--mode low|medium|high] [--config config.yaml]
                 [--workers N] [--timeout SEC] [--output results.json] [--log-level LEVEL]

- Each image runs the multi-pass pipeline (variants x segmentation modes) and yields
  amount, date, per-field confidence and an ACCEPT/RETRY/ESCALATE verdict.
- Output: JSON list of responses (stdout, or --output) plus batch metrics.
- Diagnostic log: every pass, preprocessing choice and selection decision is appended
  to diagnostic_log_path (config) unless --no-diagnostic-log is given.
- Exit code: 0 when every image produced a result, 1 when any failed, 2 on a configuration error.
"""
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

from core.exceptions import ConfigError
from core.models import RecognitionMode
from extraction.ocr import create_ocr_engine
from pipeline.batch_processor import BatchProcessor
from pipeline.recognizer import ReceiptRecognizer
from utils.config import load_config
from utils.logger import setup_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Recognize total amount and date on thermal receipt photos",
    )
    parser.add_argument("images", nargs="+", help="Receipt image file(s)")
    parser.add_argument(
        "--mode",
        "-m",
        default=None,
        choices=[m.value for m in RecognitionMode],
        help="Recognition mode: low (2 passes), medium (6), high (15). Default: config or medium",
    )
    parser.add_argument("--config", "-c", default=None, help="Path to config YAML (default: config.yaml if present)")
    parser.add_argument(
        "--workers",
        "-w",
        type=int,
        default=None,
        help="Parallel variant workers per image (default: 1 = sequential)",
    )
    parser.add_argument("--timeout", type=float, default=None, help="Overall timeout per image in seconds (0 = none)")
    parser.add_argument("--output", "-o", default=None, help="Write JSON results to this file instead of stdout")
    parser.add_argument(
        "--no-diagnostic-log",
        action="store_true",
        help="Do not append to the diagnostic log",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args.config)
        overrides: dict[str, Any] = {}
        if args.mode is not None:
            overrides["mode"] = args.mode
        if args.workers is not None:
            overrides["max_workers"] = args.workers
        if args.timeout is not None:
            overrides["timeout_sec"] = args.timeout
        if args.log_level:
            overrides["log_level"] = args.log_level
        if args.no_diagnostic_log:
            overrides["diagnostic_log_path"] = ""
        config = config.with_overrides(**overrides)
        engine = create_ocr_engine(config.ocr)
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    setup_logging(
        config.log_level,
        stream=sys.stderr,
        diagnostic_log_path=config.diagnostic_log_path or None,
    )
    log = logging.getLogger(__name__)
    log.info("Mode: %s, workers: %s, timeout: %ss", config.mode.value, config.max_workers, config.timeout_sec)

    recognizer = ReceiptRecognizer(engine, config)
    results, metrics = BatchProcessor(recognizer).process_batch(args.images)

    payload = {
        "results": [
            {"file": str(path), "data": response.to_wire() if response else None}
            for path, response in results
        ],
        "metrics": metrics.to_dict(),
    }
    text = json.dumps(payload, indent=2, ensure_ascii=False)
    if args.output:
        out = Path(args.output)
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(text + "\n", encoding="utf-8")
        log.info("Results written to %s", out)
    else:
        print(text)

    print(
        f"Batch complete. processed={metrics.total_processed} accepted={metrics.accepted_count} "
        f"retry={metrics.retry_count} escalated={metrics.escalated_count} failed={metrics.failed_count}",
        file=sys.stderr,
    )
    return 0 if metrics.failed_count == 0 else 1


if __name__ == "__main__":
    sys.exit(main())
