"""Interview orchestration around the immutable session state machine."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from .analysis import CapacityAnalysis
from .config import DEFAULT_PERSONA, AppSettings
from .consultation_store import ConsultationRepository
from .export import CONSULTATION_TYPE, ExportDocument, snapshot, write_export
from .insights import DEFAULT_EXTRACTOR, InsightExtractor
from .pdf_exporter import AssessmentPDFExporter, PDFExportError
from .prompts import DEPARTMENTS, resolve_persona
from .report import render_report
from .responder import PersonaResponder, Responder, ResponderError
from .sessions import (
    Session,
    SessionPhase,
    StakeholderInfo,
    Turn,
    ValidationError,
    abort_turn,
    begin_session,
    submit_user_turn,
    utc_now,
)

TERMINATION_TOKENS = {"done", "exit", "quit", "[end]"}
EXPORT_COMMAND = "/export"
ANALYSIS_COMMAND = "/analysis"

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class AssessmentArtifacts:
    """Files written for one export."""

    json_path: Path
    markdown_path: Path
    pdf_path: Path | None = None


class AssessmentInterview:
    """Holds the current session for one interview and runs its exchanges.

    The held session is replaced on every transition. While a reply is
    pending the held session has ``awaiting_reply`` set, so readers see the
    user turn and a second submission is rejected.
    """

    def __init__(
        self,
        responder: Responder,
        *,
        extractor: InsightExtractor = DEFAULT_EXTRACTOR,
        repository: Optional[ConsultationRepository] = None,
        output_dir: Optional[Path] = None,
        timeout: Optional[float] = None,
        persona_id: str = DEFAULT_PERSONA,
        pdf_exporter: Optional[AssessmentPDFExporter] = None,
    ) -> None:
        self._responder = responder
        self._extractor = extractor
        self._repository = repository
        self._output_dir = output_dir or Path("outputs")
        self._timeout = timeout
        self._persona_id = persona_id
        self._pdf_exporter = pdf_exporter
        self._session: Optional[Session] = None
        self._record_id: Optional[str] = None
        self._recorded_turns = 0

    @classmethod
    def create(cls, settings: AppSettings) -> "AssessmentInterview":
        return cls(
            PersonaResponder.from_settings(settings.model),
            repository=ConsultationRepository(
                archive_path=settings.consultation_log,
                redis_url=settings.redis_url,
            ),
            output_dir=settings.output_dir,
            timeout=settings.responder_timeout,
            persona_id=settings.persona_id,
            pdf_exporter=AssessmentPDFExporter(),
        )

    @property
    def session(self) -> Optional[Session]:
        return self._session

    @property
    def phase(self) -> SessionPhase:
        if self._session is None:
            return SessionPhase.INTAKE
        return self._session.phase

    @property
    def analysis(self) -> CapacityAnalysis:
        if self._session is None:
            return CapacityAnalysis()
        return self._session.analysis

    @property
    def record_id(self) -> Optional[str]:
        return self._record_id

    def begin(self, info: StakeholderInfo) -> Session:
        """Validate intake and open the conversation with the greeting."""

        if self._session is not None:
            raise RuntimeError("The interview has already started.")
        session = begin_session(info, persona_id=self._persona_id)
        self._session = session
        if self._repository is not None:
            try:
                stakeholder_id = self._repository.save_stakeholder(info)
                self._record_id = self._repository.save_consultation_session(
                    stakeholder_id=stakeholder_id,
                    consultation_type=CONSULTATION_TYPE,
                    started_at=session.conversation[0].timestamp,
                )
            except OSError:
                logger.exception("Unable to record the consultation start.")
        self._record_new_turns()
        return session

    async def handle_user_message(self, user_text: str) -> Optional[Turn]:
        """Run one exchange and return the assistant turn, if one was added."""

        if self._session is None:
            raise RuntimeError("Call begin() before sending messages.")
        current = self._session
        try:
            updated = await submit_user_turn(
                current,
                user_text,
                self._responder,
                extractor=self._extractor,
                timeout=self._timeout,
                on_suspend=self._publish,
            )
        except asyncio.CancelledError:
            if self._session is not None and self._session.awaiting_reply:
                self._session = abort_turn(self._session)
                self._record_new_turns()
            raise
        except ResponderError as exc:
            logger.warning("No reply for the latest message: %s", exc)
            if exc.session is not None:
                self._session = exc.session
            self._record_new_turns()
            return None
        if updated is current:
            return None
        self._session = updated
        self._record_new_turns()
        return updated.last_turn

    def snapshot(self) -> ExportDocument:
        if self._session is None:
            raise RuntimeError("Nothing to export before the interview starts.")
        return snapshot(self._session)

    def export(self, directory: Optional[Path] = None) -> AssessmentArtifacts:
        """Write the JSON export plus the Markdown (and PDF) report."""

        document = self.snapshot()
        target = directory or self._output_dir
        json_path = write_export(document, target)
        persona = resolve_persona(self._persona_id)
        markdown_path = json_path.with_suffix(".md")
        report = render_report(document, persona_name=persona.display_name)
        markdown_path.write_text(report, encoding="utf-8")

        pdf_path: Path | None = None
        if self._pdf_exporter is not None:
            try:
                pdf_path = self._pdf_exporter.export(
                    report,
                    json_path.with_suffix(".pdf"),
                )
            except PDFExportError:
                logger.exception("Unable to render assessment PDF.")
        return AssessmentArtifacts(
            json_path=json_path,
            markdown_path=markdown_path,
            pdf_path=pdf_path,
        )

    def finish(self) -> AssessmentArtifacts:
        """Record the consultation outcome, then export the assessment."""

        self._record_outcome()
        return self.export()

    def _record_outcome(self) -> None:
        if self._repository is None or self._record_id is None:
            return
        try:
            self._repository.save_priorities(self._record_id, self.analysis)
            self._repository.complete_consultation_session(
                self._record_id,
                analysis=self.analysis,
                completed_at=utc_now(),
            )
        except OSError:
            logger.exception("Unable to record the consultation outcome.")

    def _publish(self, session: Session) -> None:
        self._session = session
        self._record_new_turns()

    def _record_new_turns(self) -> None:
        if (
            self._repository is None
            or self._record_id is None
            or self._session is None
        ):
            return
        turns = self._session.conversation
        try:
            while self._recorded_turns < len(turns):
                self._repository.save_message(
                    session_id=self._record_id,
                    sequence=self._recorded_turns + 1,
                    turn=turns[self._recorded_turns],
                )
                self._recorded_turns += 1
        except OSError:
            logger.exception("Unable to record conversation messages.")


def format_analysis(analysis: CapacityAnalysis) -> str:
    """Plain-text rendering of the running analysis for the terminal."""

    lines: List[str] = ["Capacity Gaps:"]
    if analysis.gaps:
        lines.extend(
            f"  - {gap.area} ({gap.impact.value} impact, priority "
            f"{gap.priority}/10): {gap.description}"
            for gap in analysis.gaps
        )
    else:
        lines.append("  (none identified yet)")
    lines.append("Opportunities:")
    if analysis.opportunities:
        lines.extend(
            f"  - {item.area} ({item.potential.value} potential, "
            f"{item.effort.value} effort): {item.description}"
            for item in analysis.opportunities
        )
    else:
        lines.append("  (none identified yet)")
    lines.append("Recommendations:")
    if analysis.recommendations:
        lines.extend(
            f"  - {item.title} ({item.timeframe}, {item.impact.value} "
            f"impact): {item.description}"
            for item in analysis.recommendations
        )
    else:
        lines.append("  (none identified yet)")
    return "\n".join(lines)


def _prompt_intake() -> StakeholderInfo:
    print("Capacity Assessment")  # noqa: T201 - CLI output
    print("Departments: " + "; ".join(DEPARTMENTS))  # noqa: T201
    return StakeholderInfo(
        name=input("Full name *: "),  # noqa: PLW1514 - intentional CLI input
        role=input("Role/Position *: "),  # noqa: PLW1514
        department=input("Department *: "),  # noqa: PLW1514
        email=input("Email address: "),  # noqa: PLW1514
    )


def _print_artifacts(artifacts: AssessmentArtifacts) -> None:
    print("Assessment exported to:")  # noqa: T201
    print(f" - {artifacts.json_path}")  # noqa: T201
    print(f" - {artifacts.markdown_path}")  # noqa: T201
    if artifacts.pdf_path is not None:
        print(f" - {artifacts.pdf_path}")  # noqa: T201


async def run_interview(settings: AppSettings) -> Optional[ExportDocument]:
    """Conduct the assessment via the terminal and return the final export."""

    interview = AssessmentInterview.create(settings)
    persona = resolve_persona(settings.persona_id)
    while True:
        try:
            session = interview.begin(_prompt_intake())
        except ValidationError as exc:
            print(str(exc))  # noqa: T201
            print()  # noqa: T201
            continue
        break

    print()  # noqa: T201 - CLI UX newline
    print(f"{persona.display_name}: {session.conversation[0].message}")  # noqa: T201
    while True:
        answer = input("You: ")  # noqa: PLW1514 - intentional CLI input
        command = answer.strip().lower()
        if command in TERMINATION_TOKENS:
            break
        if command == ANALYSIS_COMMAND:
            print(format_analysis(interview.analysis))  # noqa: T201
            continue
        if command == EXPORT_COMMAND:
            _print_artifacts(interview.export())
            continue
        reply = await interview.handle_user_message(answer)
        if reply is None:
            continue
        print()  # noqa: T201
        print(f"{persona.display_name}: {reply.message}")  # noqa: T201

    artifacts = interview.finish()
    print()  # noqa: T201
    print(format_analysis(interview.analysis))  # noqa: T201
    _print_artifacts(artifacts)
    if interview.record_id:
        print(f"Consultation archived with id: {interview.record_id}")  # noqa: T201
    return interview.snapshot()
