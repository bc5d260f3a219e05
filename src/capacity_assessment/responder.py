"""Conversational reply generation for the interviewing persona."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Protocol, cast

from .maf_client import ChatMessage, MAFChatClient
from .prompts import resolve_persona

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .config import ModelSettings
    from .sessions import Session, StakeholderInfo

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ResponderResult:
    """Reply text plus whatever insight payload the responder attached."""

    response: str
    insights: Any = None


class ResponderError(RuntimeError):
    """Raised when a reply could not be obtained for a user turn.

    When raised out of :func:`capacity_assessment.sessions.submit_user_turn`
    the exception carries the recovered session: the user turn is kept, the
    awaiting-reply guard is cleared and the analysis is unchanged.
    """

    def __init__(self, message: str, *, session: Optional["Session"] = None) -> None:
        super().__init__(message)
        self.session = session


class Responder(Protocol):
    """Produces the assistant side of each exchange."""

    async def generate_response(
        self,
        user_text: str,
        stakeholder: "StakeholderInfo",
        persona_id: str,
    ) -> ResponderResult:
        ...


class PersonaResponder:
    """Model-backed responder speaking as one of the configured personas.

    Keeps its own chat history so follow-up questions stay in context. A
    user message whose reply failed stays in the history; the client merges
    it with the next one.
    """

    def __init__(self, chat_client: MAFChatClient) -> None:
        self._chat_client = chat_client
        self._history: List[ChatMessage] = []

    @classmethod
    def from_settings(cls, settings: "ModelSettings") -> "PersonaResponder":
        return cls(MAFChatClient(settings))

    @property
    def history(self) -> List[ChatMessage]:
        return list(self._history)

    async def generate_response(
        self,
        user_text: str,
        stakeholder: "StakeholderInfo",
        persona_id: str,
    ) -> ResponderResult:
        try:
            persona = resolve_persona(persona_id)
        except KeyError as exc:
            raise ResponderError(str(exc)) from exc
        system = ChatMessage(
            role="system",
            content=persona.render_system(
                name=stakeholder.name,
                role=stakeholder.role,
                department=stakeholder.department,
            ),
        )
        self._history.append(ChatMessage(role="user", content=user_text))
        try:
            reply = await self._chat_client.complete([system, *self._history])
        except Exception as exc:  # noqa: BLE001 - provider errors vary
            raise ResponderError(f"{persona.display_name} could not reply: {exc}") from exc
        result = self._parse_reply(reply.content)
        if not result.response:
            raise ResponderError(f"{persona.display_name} returned an empty reply")
        self._history.append(ChatMessage(role="assistant", content=result.response))
        return result

    @classmethod
    def _parse_reply(cls, raw: str) -> ResponderResult:
        payload = cls._extract_json_object(raw)
        if payload is None:
            logger.debug("Reply was not structured JSON; using raw text.")
            return ResponderResult(response=raw.strip(), insights=None)
        response = str(payload.get("response") or "").strip()
        insights_raw = payload.get("insights")
        insights: Optional[List[str]] = None
        if isinstance(insights_raw, list):
            insights = [
                str(item).strip()
                for item in cast(List[Any], insights_raw)
                if str(item).strip()
            ]
        return ResponderResult(response=response, insights=insights)

    @staticmethod
    def _extract_json_object(raw: str) -> Optional[Dict[str, Any]]:
        text = raw.strip()
        if not text:
            return None
        candidate = text
        if not candidate.startswith("{"):
            start = text.find("{")
            end = text.rfind("}")
            if start == -1 or end == -1 or end <= start:
                return None
            candidate = text[start:end + 1]
        try:
            payload = json.loads(candidate)
        except json.JSONDecodeError:
            return None
        if not isinstance(payload, dict):
            return None
        return cast(Dict[str, Any], payload)
