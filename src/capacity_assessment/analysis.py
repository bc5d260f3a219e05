"""Capacity analysis aggregate and the append-only accumulator."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class Level(str, Enum):
    """Three-step rating shared by impact, potential and effort."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True, slots=True)
class CapacityGap:
    """A shortfall between current and required capacity."""

    area: str
    description: str
    impact: Level
    priority: int

    def __post_init__(self) -> None:
        if not 1 <= self.priority <= 10:
            raise ValueError(
                f"Gap priority must be between 1 and 10 (got {self.priority})"
            )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "area": self.area,
            "description": self.description,
            "impact": self.impact.value,
            "priority": self.priority,
        }


@dataclass(frozen=True, slots=True)
class CapacityOpportunity:
    """An improvement the department could pursue."""

    area: str
    description: str
    potential: Level
    effort: Level

    def to_dict(self) -> Dict[str, Any]:
        return {
            "area": self.area,
            "description": self.description,
            "potential": self.potential.value,
            "effort": self.effort.value,
        }


@dataclass(frozen=True, slots=True)
class CapacityRecommendation:
    """A concrete action with an expected timeframe."""

    title: str
    description: str
    timeframe: str
    impact: Level

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "description": self.description,
            "timeframe": self.timeframe,
            "impact": self.impact.value,
        }


@dataclass(frozen=True, slots=True)
class Findings:
    """Output of one extraction pass over a single exchange."""

    gaps: Tuple[CapacityGap, ...] = ()
    opportunities: Tuple[CapacityOpportunity, ...] = ()
    recommendations: Tuple[CapacityRecommendation, ...] = ()

    def is_empty(self) -> bool:
        return not (self.gaps or self.opportunities or self.recommendations)


@dataclass(frozen=True, slots=True)
class CapacityAnalysis:
    """Running assessment built up over the conversation.

    Entries are only ever appended. Repeated matches across turns produce
    repeated entries. ``current_capacity`` and ``optimal_capacity`` are
    carried for export compatibility and are never populated.
    """

    gaps: Tuple[CapacityGap, ...] = field(default_factory=tuple)
    opportunities: Tuple[CapacityOpportunity, ...] = field(
        default_factory=tuple
    )
    recommendations: Tuple[CapacityRecommendation, ...] = field(
        default_factory=tuple
    )
    current_capacity: Optional[Any] = None
    optimal_capacity: Optional[Any] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "currentCapacity": self.current_capacity,
            "optimalCapacity": self.optimal_capacity,
            "gaps": [gap.to_dict() for gap in self.gaps],
            "opportunities": [
                opportunity.to_dict() for opportunity in self.opportunities
            ],
            "recommendations": [
                recommendation.to_dict()
                for recommendation in self.recommendations
            ],
        }


def merge(analysis: CapacityAnalysis, findings: Findings) -> CapacityAnalysis:
    """Return a new analysis with ``findings`` appended in order."""

    if findings.is_empty():
        return analysis
    return replace(
        analysis,
        gaps=analysis.gaps + findings.gaps,
        opportunities=analysis.opportunities + findings.opportunities,
        recommendations=analysis.recommendations + findings.recommendations,
    )
