"""Shared fixtures and responder doubles for the test suite."""

from __future__ import annotations

import asyncio
from typing import List, Optional, Tuple

import pytest

from capacity_assessment.responder import ResponderResult
from capacity_assessment.sessions import StakeholderInfo


class StubResponder:
    """Replies with a fixed text and records every call."""

    def __init__(self, response: str = "Thanks, tell me more.", insights=None) -> None:
        self.response = response
        self.insights = insights
        self.calls: List[Tuple[str, StakeholderInfo, str]] = []

    async def generate_response(self, user_text, stakeholder, persona_id):
        self.calls.append((user_text, stakeholder, persona_id))
        return ResponderResult(response=self.response, insights=self.insights)


class FailingResponder:
    def __init__(self, error: Optional[Exception] = None) -> None:
        self.error = error or RuntimeError("service unavailable")
        self.calls = 0

    async def generate_response(self, user_text, stakeholder, persona_id):
        self.calls += 1
        raise self.error


class GatedResponder:
    """Holds every reply until ``release`` is set."""

    def __init__(self, response: str = "Noted.") -> None:
        self.response = response
        self.release = asyncio.Event()
        self.calls: List[str] = []

    async def generate_response(self, user_text, stakeholder, persona_id):
        self.calls.append(user_text)
        await self.release.wait()
        return ResponderResult(response=self.response)


class SlowResponder:
    def __init__(self, delay: float) -> None:
        self.delay = delay

    async def generate_response(self, user_text, stakeholder, persona_id):
        await asyncio.sleep(self.delay)
        return ResponderResult(response="Too late.")


@pytest.fixture
def alex() -> StakeholderInfo:
    return StakeholderInfo(name="Alex", role="Manager", department="Aged Care")
