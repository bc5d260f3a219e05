"""Markdown rendering of an exported capacity assessment."""

from __future__ import annotations

from typing import List

from .export import ExportDocument
from .sessions import Sender

EMPTY_GAPS = "Capacity gaps will be identified through our analysis."
EMPTY_OPPORTUNITIES = "Optimization opportunities will appear here."
EMPTY_RECOMMENDATIONS = "Recommendations will appear here."


def _cell(text: str) -> str:
    return text.replace("|", "/").replace("\n", " ").strip()


def render_report(document: ExportDocument, *, persona_name: str = "Morgan") -> str:
    """Render the assessment as Markdown headed by the stakeholder details."""

    stakeholder = document.stakeholder
    analysis = document.capacity_analysis
    lines: List[str] = [
        f"# Capacity Assessment: {stakeholder.department}",
        "",
        f"- Stakeholder: {stakeholder.name}",
        f"- Role: {stakeholder.role}",
    ]
    if stakeholder.email:
        lines.append(f"- Email: {stakeholder.email}")
    lines.extend([f"- Exported: {document.export_date}", "", "## Capacity Gaps", ""])

    if analysis.gaps:
        lines.append("| Area | Description | Impact | Priority |")
        lines.append("| --- | --- | --- | --- |")
        for gap in analysis.gaps:
            lines.append(
                f"| {_cell(gap.area)} | {_cell(gap.description)} | "
                f"{gap.impact.value} | {gap.priority}/10 |"
            )
    else:
        lines.append(EMPTY_GAPS)

    lines.extend(["", "## Opportunities", ""])
    if analysis.opportunities:
        lines.append("| Area | Description | Potential | Effort |")
        lines.append("| --- | --- | --- | --- |")
        for opportunity in analysis.opportunities:
            lines.append(
                f"| {_cell(opportunity.area)} | "
                f"{_cell(opportunity.description)} | "
                f"{opportunity.potential.value} | {opportunity.effort.value} |"
            )
    else:
        lines.append(EMPTY_OPPORTUNITIES)

    lines.extend(["", "## Recommendations", ""])
    if analysis.recommendations:
        for recommendation in analysis.recommendations:
            lines.append(
                f"- {recommendation.title}: {recommendation.description} "
                f"({recommendation.timeframe}, {recommendation.impact.value} impact)"
            )
    else:
        lines.append(EMPTY_RECOMMENDATIONS)

    lines.extend(["", "## Conversation", ""])
    for turn in document.conversation:
        speaker = stakeholder.name if turn.sender is Sender.USER else persona_name
        message = " ".join(turn.message.split())
        lines.append(f"- {speaker}: {message}")

    return "\n".join(lines).rstrip() + "\n"
