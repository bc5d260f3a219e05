"""Session state machine for a capacity assessment interview.

A :class:`Session` is an immutable value. Every transition returns a new
session, so callers can hold on to earlier snapshots (for rendering or
export) without them changing underneath.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from .analysis import CapacityAnalysis, merge
from .config import DEFAULT_PERSONA
from .insights import DEFAULT_EXTRACTOR, InsightExtractor
from .prompts import resolve_persona
from .responder import Responder, ResponderError, ResponderResult

logger = logging.getLogger(__name__)

REQUIRED_FIELDS: Tuple[str, ...] = ("name", "role", "department")


class SessionPhase(str, Enum):
    """Interview phases; ``conversation`` is terminal."""

    INTAKE = "intake"
    CONVERSATION = "conversation"


class Sender(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(moment: datetime) -> str:
    """Render ``moment`` as sortable UTC ISO-8601 with millisecond precision."""

    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return (
        moment.astimezone(timezone.utc)
        .isoformat(timespec="milliseconds")
        .replace("+00:00", "Z")
    )


class ValidationError(ValueError):
    """Raised when intake details are incomplete."""

    def __init__(self, missing_fields: List[str]) -> None:
        self.missing_fields = list(missing_fields)
        super().__init__(
            "Please fill in all required fields: " + ", ".join(self.missing_fields)
        )


@dataclass(frozen=True, slots=True)
class StakeholderInfo:
    """Who is being interviewed."""

    name: str
    role: str
    department: str
    email: str = ""

    def missing_fields(self) -> List[str]:
        return [
            name for name in REQUIRED_FIELDS if not getattr(self, name).strip()
        ]

    def to_dict(self) -> Dict[str, str]:
        return {
            "name": self.name,
            "role": self.role,
            "department": self.department,
            "email": self.email,
        }


@dataclass(frozen=True, slots=True)
class Turn:
    """One message in the transcript."""

    sender: Sender
    message: str
    timestamp: datetime = field(default_factory=utc_now)
    insights: Any = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sender": self.sender.value,
            "message": self.message,
            "timestamp": format_timestamp(self.timestamp),
            "insights": self.insights,
        }


@dataclass(frozen=True, slots=True)
class Session:
    """Full live state of one interview."""

    stakeholder: StakeholderInfo
    conversation: Tuple[Turn, ...] = ()
    analysis: CapacityAnalysis = field(default_factory=CapacityAnalysis)
    phase: SessionPhase = SessionPhase.INTAKE
    awaiting_reply: bool = False
    persona_id: str = DEFAULT_PERSONA

    @property
    def last_turn(self) -> Optional[Turn]:
        return self.conversation[-1] if self.conversation else None

    def accepts(self, text: str) -> bool:
        """Whether ``text`` would be taken as the next user turn."""

        return (
            self.phase is SessionPhase.CONVERSATION
            and not self.awaiting_reply
            and bool(text.strip())
        )


def begin_session(
    info: StakeholderInfo,
    *,
    persona_id: str = DEFAULT_PERSONA,
    now: Optional[datetime] = None,
) -> Session:
    """Validate intake details and open the conversation with a greeting."""

    missing = info.missing_fields()
    if missing:
        raise ValidationError(missing)
    persona = resolve_persona(persona_id)
    greeting = Turn(
        sender=Sender.ASSISTANT,
        message=persona.render_greeting(
            name=info.name,
            department=info.department,
        ),
        timestamp=now or utc_now(),
    )
    logger.info(
        "Capacity assessment started for %s (%s)", info.name, info.department
    )
    return Session(
        stakeholder=info,
        conversation=(greeting,),
        phase=SessionPhase.CONVERSATION,
        persona_id=persona.id,
    )


def open_turn(
    session: Session,
    text: str,
    *,
    now: Optional[datetime] = None,
) -> Session:
    """Append the user's message and suspend awaiting the reply.

    Returns ``session`` unchanged when the text is blank or a reply is
    already pending.
    """

    if not session.accepts(text):
        logger.debug(
            "Ignoring submission (blank=%s, awaiting_reply=%s, phase=%s)",
            not text.strip(),
            session.awaiting_reply,
            session.phase.value,
        )
        return session
    turn = Turn(sender=Sender.USER, message=text, timestamp=now or utc_now())
    return replace(
        session,
        conversation=session.conversation + (turn,),
        awaiting_reply=True,
    )


def close_turn(
    session: Session,
    user_text: str,
    result: ResponderResult,
    *,
    extractor: InsightExtractor = DEFAULT_EXTRACTOR,
    now: Optional[datetime] = None,
) -> Session:
    """Record the reply and fold the exchange's findings into the analysis."""

    reply = Turn(
        sender=Sender.ASSISTANT,
        message=result.response,
        timestamp=now or utc_now(),
        insights=result.insights,
    )
    findings = extractor.extract(user_text, result.response)
    return replace(
        session,
        conversation=session.conversation + (reply,),
        analysis=merge(session.analysis, findings),
        awaiting_reply=False,
    )


def abort_turn(session: Session) -> Session:
    """Leave the suspended state after a failed reply, keeping the user turn."""

    return replace(session, awaiting_reply=False)


async def submit_user_turn(
    session: Session,
    text: str,
    responder: Responder,
    *,
    extractor: InsightExtractor = DEFAULT_EXTRACTOR,
    timeout: Optional[float] = None,
    on_suspend: Optional[Callable[[Session], None]] = None,
) -> Session:
    """Run one full exchange and return the resulting session.

    ``on_suspend`` receives the session while the reply is pending, so a
    holder can publish it for readers. Responder failures (including
    ``timeout`` expiry) raise :class:`ResponderError` whose ``session``
    attribute is the recovered state to continue from.
    """

    pending = open_turn(session, text)
    if pending is session:
        return session
    if on_suspend is not None:
        on_suspend(pending)
    try:
        call = responder.generate_response(
            text,
            session.stakeholder,
            session.persona_id,
        )
        if timeout is not None:
            result = await asyncio.wait_for(call, timeout=timeout)
        else:
            result = await call
    except asyncio.TimeoutError as exc:
        message = "Timed out waiting for a reply"
        if timeout is not None:
            message = f"No reply within {timeout:g} seconds"
        raise ResponderError(message, session=abort_turn(pending)) from exc
    except Exception as exc:  # noqa: BLE001 - surfaced as ResponderError
        raise ResponderError(
            str(exc) or type(exc).__name__,
            session=abort_turn(pending),
        ) from exc
    return close_turn(pending, text, result, extractor=extractor)
