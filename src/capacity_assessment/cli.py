"""Command line entry-point for the capacity assessment interview."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import Optional

from .config import AppSettings
from .consultations_cli import run_consultations_cli
from .interview import run_interview
from .observability import initialize_tracing
from .prompts import PERSONAS


def _parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="capacity-assessment",
        description=(
            "Interview a stakeholder about departmental capacity and export "
            "the resulting assessment"
        ),
    )
    parser.add_argument(
        "--persona",
        choices=sorted(PERSONAS),
        help="Interviewing persona. Overrides MAF_PERSONA.",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        help="Directory for exported assessments. Overrides MAF_OUTPUT_DIR.",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        help=(
            "Seconds to wait for each reply (0 waits indefinitely). "
            "Overrides MAF_RESPONDER_TIMEOUT."
        ),
    )
    parser.add_argument(
        "--tracing",
        action="store_true",
        help="Enable OpenTelemetry tracing for model calls.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log debug output.",
    )
    return parser.parse_args(argv)


def run_cli(argv: Optional[list[str]] = None) -> None:
    """Entry-point invoked from ``python -m capacity_assessment``."""

    arg_list = list(argv) if argv is not None else sys.argv[1:]
    if arg_list and arg_list[0] == "consultations":
        logging.basicConfig(level=logging.WARNING)
        settings = AppSettings.load()
        run_consultations_cli(settings, arg_list[1:])
        return

    args = _parse_args(arg_list)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)
    settings = AppSettings.load()
    if args.persona:
        settings = replace(settings, persona_id=args.persona)
    if args.output_dir is not None:
        args.output_dir.mkdir(parents=True, exist_ok=True)
        settings = replace(settings, output_dir=args.output_dir)
    if args.timeout is not None:
        if args.timeout < 0:
            raise SystemExit("--timeout must be >= 0")
        settings = replace(settings, responder_timeout=args.timeout or None)
    if args.tracing:
        initialize_tracing()

    asyncio.run(run_interview(settings=settings))


if __name__ == "__main__":  # pragma: no cover - manual execution hook
    run_cli()
