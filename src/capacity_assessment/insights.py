"""Rule-based extraction of capacity findings from a conversation exchange.

Each exchange (the stakeholder's message plus the assistant reply) is scanned
for fixed trigger terms. Every rule fires at most once per exchange, so one
call yields at most one gap, one opportunity and one recommendation with the
default rule set. Matching is plain substring search over case-folded text;
"processing" therefore triggers the ``process`` rule.

The state machine only depends on the :class:`InsightExtractor` protocol, so
a stricter matcher (word boundaries, other languages) can be swapped in
without touching session handling.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Protocol, Sequence, Tuple, Union

from .analysis import (
    CapacityGap,
    CapacityOpportunity,
    CapacityRecommendation,
    Findings,
    Level,
)

Finding = Union[CapacityGap, CapacityOpportunity, CapacityRecommendation]

EXCHANGE_SEPARATOR = " "


class InsightExtractor(Protocol):
    """Turns one user/assistant exchange into findings."""

    def extract(self, user_text: str, reply_text: str) -> Findings:
        ...


@dataclass(frozen=True, slots=True)
class KeywordRule:
    """Emit ``finding`` when any of ``triggers`` occurs in the exchange."""

    triggers: Tuple[str, ...]
    finding: Finding

    def matches(self, haystack: str) -> bool:
        return any(trigger.casefold() in haystack for trigger in self.triggers)


DEFAULT_RULES: Tuple[KeywordRule, ...] = (
    KeywordRule(
        triggers=("understaffed", "overloaded"),
        finding=CapacityGap(
            area="Staffing Levels",
            description=(
                "Current staffing levels appear insufficient for workload "
                "demands"
            ),
            impact=Level.HIGH,
            priority=9,
        ),
    ),
    KeywordRule(
        triggers=("training", "skills"),
        finding=CapacityOpportunity(
            area="Skills Development",
            description=(
                "Opportunity to enhance staff capabilities through targeted "
                "training"
            ),
            potential=Level.MEDIUM,
            effort=Level.LOW,
        ),
    ),
    KeywordRule(
        triggers=("process", "workflow"),
        finding=CapacityRecommendation(
            title="Process Optimization",
            description=(
                "Review and streamline current workflows for efficiency gains"
            ),
            timeframe="3-6 months",
            impact=Level.MEDIUM,
        ),
    ),
)


class KeywordInsightExtractor:
    """Substring matcher driven by an ordered rule list."""

    def __init__(self, rules: Sequence[KeywordRule] = DEFAULT_RULES) -> None:
        self._rules: Tuple[KeywordRule, ...] = tuple(rules)

    @property
    def rules(self) -> Tuple[KeywordRule, ...]:
        return self._rules

    def extract(self, user_text: str, reply_text: str) -> Findings:
        haystack = f"{user_text}{EXCHANGE_SEPARATOR}{reply_text}".casefold()
        gaps: List[CapacityGap] = []
        opportunities: List[CapacityOpportunity] = []
        recommendations: List[CapacityRecommendation] = []
        for rule in self._rules:
            if not rule.matches(haystack):
                continue
            finding = rule.finding
            if isinstance(finding, CapacityGap):
                gaps.append(finding)
            elif isinstance(finding, CapacityOpportunity):
                opportunities.append(finding)
            else:
                recommendations.append(finding)
        return Findings(
            gaps=tuple(gaps),
            opportunities=tuple(opportunities),
            recommendations=tuple(recommendations),
        )


DEFAULT_EXTRACTOR = KeywordInsightExtractor()


def extract(user_text: str, reply_text: str) -> Findings:
    """Run the default keyword rules over one exchange."""

    return DEFAULT_EXTRACTOR.extract(user_text, reply_text)
