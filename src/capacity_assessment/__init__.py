"""Conversational capacity assessment interview package."""

from __future__ import annotations

from typing import Optional

from .analysis import CapacityAnalysis, merge
from .export import ExportDocument, snapshot
from .insights import extract
from .sessions import (
    Session,
    StakeholderInfo,
    ValidationError,
    begin_session,
    submit_user_turn,
)

__all__ = [
    "CapacityAnalysis",
    "ExportDocument",
    "Session",
    "StakeholderInfo",
    "ValidationError",
    "begin_session",
    "extract",
    "merge",
    "run_cli",
    "snapshot",
    "submit_user_turn",
]


def run_cli(argv: Optional[list[str]] = None) -> None:
    """Proxy to :mod:`capacity_assessment.cli.run_cli` for convenience."""

    from .cli import run_cli as _run_cli_impl

    _run_cli_impl(argv)
