"""Persona prompt scaffolding for the capacity assessment interview."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Tuple

ASSESSMENT_AREAS: Tuple[str, ...] = (
    "Current staffing levels and workload distribution",
    "Skills gaps and development opportunities",
    "Process efficiency and workflow optimization",
    "Resource allocation and utilization",
)

DEPARTMENTS: Tuple[str, ...] = (
    "Health & Community Services",
    "Human Services",
    "Nursing & Midwifery",
    "Allied Health",
    "Mental Health",
    "Aged Care",
    "Disability Services",
    "Administration",
    "Other",
)

RESPONSE_FORMAT_INSTRUCTIONS = (
    "Respond ONLY with valid JSON matching the schema below. Do not wrap the "
    "JSON in markdown fences or include commentary.\n"
    "{\n"
    '  "response": string,\n'
    '  "insights": [string]\n'
    "}\n"
    "`response` is the conversational reply shown to the stakeholder. "
    "`insights` lists short observations about capacity you noticed in the "
    "latest message; use an empty list when there are none."
)


@dataclass(frozen=True, slots=True)
class PersonaProfile:
    """Voice and opening script for an interviewing persona."""

    id: str
    display_name: str
    title: str
    greeting: str
    system: str

    def render_greeting(self, *, name: str, department: str) -> str:
        return self.greeting.format(name=name, department=department)

    def render_system(
        self,
        *,
        name: str,
        role: str,
        department: str,
    ) -> str:
        areas = "\n".join(f"- {area}" for area in ASSESSMENT_AREAS)
        context = (
            f"You are speaking with {name}, {role} in {department}.\n"
            f"Cover these assessment areas over the conversation:\n{areas}"
        )
        return "\n\n".join(
            [self.system, context, RESPONSE_FORMAT_INSTRUCTIONS]
        )


MORGAN = PersonaProfile(
    id="morgan",
    display_name="Morgan",
    title="capacity analysis specialist",
    greeting=(
        "Hi {name}! I'm Morgan, your capacity analysis specialist. I'll help "
        "you assess your current capacity and identify optimization "
        "opportunities for {department}.\n\n"
        "Let's start by understanding your current situation. Can you tell "
        "me about your team size and the main functions your department "
        "handles?"
    ),
    system=(
        "You are Morgan, a capacity analysis specialist working with "
        "health, community and education services. Interview the "
        "stakeholder about their department's capacity one question at a "
        "time. Acknowledge what they said, reflect any staffing, skills or "
        "process issues back in plain language, and finish with a single "
        "probing follow-up question. Keep replies under 120 words and avoid "
        "jargon."
    ),
)

PERSONAS: Mapping[str, PersonaProfile] = {MORGAN.id: MORGAN}


def resolve_persona(persona_id: str) -> PersonaProfile:
    """Look up a persona by id, raising ``KeyError`` for unknown ids."""

    normalized = persona_id.strip().lower()
    try:
        return PERSONAS[normalized]
    except KeyError as exc:
        raise KeyError(f"Unknown persona: {persona_id}") from exc
