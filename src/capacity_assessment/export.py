"""Point-in-time export of an interview session."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from .analysis import CapacityAnalysis
from .sessions import Session, StakeholderInfo, Turn, format_timestamp, utc_now

CONSULTATION_TYPE = "capacity_assessment"
FILENAME_PREFIX = "capacity-assessment"

_UNSAFE_FILENAME_RE = re.compile(r'[\s/\\:*?"<>|]+')


@dataclass(frozen=True, slots=True)
class ExportDocument:
    """Self-contained snapshot of stakeholder, transcript and analysis."""

    stakeholder: StakeholderInfo
    conversation: Tuple[Turn, ...]
    capacity_analysis: CapacityAnalysis
    export_date: str
    consultation_type: str = CONSULTATION_TYPE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stakeholder": self.stakeholder.to_dict(),
            "consultation_type": self.consultation_type,
            "conversation": [turn.to_dict() for turn in self.conversation],
            "capacity_analysis": self.capacity_analysis.to_dict(),
            "export_date": self.export_date,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2, ensure_ascii=False)


def snapshot(session: Session, *, now: Optional[datetime] = None) -> ExportDocument:
    """Project ``session`` into an export document without touching it."""

    return ExportDocument(
        stakeholder=session.stakeholder,
        conversation=session.conversation,
        capacity_analysis=session.analysis,
        export_date=format_timestamp(now or utc_now()),
    )


def export_filename(document: ExportDocument, *, suffix: str = ".json") -> str:
    """Build ``capacity-assessment-<name>-<YYYY-MM-DD><suffix>``."""

    name = _UNSAFE_FILENAME_RE.sub("-", document.stakeholder.name).strip("-.")
    name = name or "stakeholder"
    export_day = document.export_date.split("T", 1)[0]
    return f"{FILENAME_PREFIX}-{name}-{export_day}{suffix}"


def write_export(document: ExportDocument, directory: Path) -> Path:
    """Write the document as pretty-printed JSON and return its path."""

    directory.mkdir(parents=True, exist_ok=True)
    destination = directory / export_filename(document)
    if destination.resolve().parent != directory.resolve():
        raise ValueError(f"Export path escapes {directory}: {destination}")
    destination.write_text(document.to_json(), encoding="utf-8")
    return destination
