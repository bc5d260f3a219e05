import asyncio
from dataclasses import replace

import pytest

from conftest import FailingResponder, SlowResponder, StubResponder
from capacity_assessment.responder import ResponderError, ResponderResult
from capacity_assessment.sessions import (
    Sender,
    SessionPhase,
    StakeholderInfo,
    ValidationError,
    abort_turn,
    begin_session,
    close_turn,
    open_turn,
    submit_user_turn,
)


def test_begin_session_seeds_greeting(alex):
    session = begin_session(alex)

    assert session.phase is SessionPhase.CONVERSATION
    assert len(session.conversation) == 1
    greeting = session.conversation[0]
    assert greeting.sender is Sender.ASSISTANT
    assert "Alex" in greeting.message
    assert "Aged Care" in greeting.message
    assert greeting.message.startswith(
        "Hi Alex! I'm Morgan, your capacity analysis specialist."
    )
    assert not session.awaiting_reply
    assert session.analysis.gaps == ()


def test_greeting_is_deterministic(alex):
    first = begin_session(alex).conversation[0].message
    second = begin_session(alex).conversation[0].message

    assert first == second


@pytest.mark.parametrize(
    "info, missing",
    [
        (StakeholderInfo(name="", role="Manager", department="Aged Care"), ["name"]),
        (StakeholderInfo(name="Alex", role="  ", department="Aged Care"), ["role"]),
        (StakeholderInfo(name="Alex", role="Manager", department=""), ["department"]),
        (StakeholderInfo(name="", role="", department=""), ["name", "role", "department"]),
    ],
)
def test_begin_session_rejects_missing_fields(info, missing):
    with pytest.raises(ValidationError) as excinfo:
        begin_session(info)

    assert excinfo.value.missing_fields == missing


def test_email_is_optional():
    session = begin_session(
        StakeholderInfo(name="Sam", role="Team Leader", department="Mental Health")
    )

    assert session.stakeholder.email == ""


@pytest.mark.parametrize("text", ["", "   ", "\n\t"])
def test_blank_submission_is_ignored(alex, text):
    session = begin_session(alex)
    responder = StubResponder()

    result = asyncio.run(submit_user_turn(session, text, responder))

    assert result is session
    assert responder.calls == []


def test_submission_while_awaiting_reply_is_rejected(alex):
    pending = open_turn(begin_session(alex), "First message")
    responder = StubResponder()

    result = asyncio.run(submit_user_turn(pending, "Second message", responder))

    assert result is pending
    assert responder.calls == []
    assert len(result.conversation) == 2


def test_successful_turn_appends_pair_and_updates_analysis(alex):
    session = begin_session(alex)
    responder = StubResponder("Understood, let's look at staffing.")

    result = asyncio.run(
        submit_user_turn(
            session, "We are understaffed and need more training", responder
        )
    )

    assert [turn.sender for turn in result.conversation] == [
        Sender.ASSISTANT,
        Sender.USER,
        Sender.ASSISTANT,
    ]
    assert result.conversation[1].message == (
        "We are understaffed and need more training"
    )
    assert result.conversation[2].message == "Understood, let's look at staffing."
    assert [gap.area for gap in result.analysis.gaps] == ["Staffing Levels"]
    assert [item.area for item in result.analysis.opportunities] == [
        "Skills Development"
    ]
    assert result.analysis.recommendations == ()
    assert not result.awaiting_reply
    assert responder.calls == [
        ("We are understaffed and need more training", alex, "morgan")
    ]
    # the original value is untouched
    assert len(session.conversation) == 1


def test_user_text_is_kept_verbatim(alex):
    session = begin_session(alex)

    result = asyncio.run(submit_user_turn(session, "  spaced out  ", StubResponder()))

    assert result.conversation[1].message == "  spaced out  "


def test_reply_insights_are_attached(alex):
    responder = StubResponder("Noted.", insights=["Weekend cover is thin"])

    result = asyncio.run(
        submit_user_turn(begin_session(alex), "Weekends are hard", responder)
    )

    assert result.conversation[-1].insights == ["Weekend cover is thin"]


def test_on_suspend_sees_pending_session(alex):
    seen = []

    asyncio.run(
        submit_user_turn(
            begin_session(alex),
            "Hello",
            StubResponder(),
            on_suspend=seen.append,
        )
    )

    assert len(seen) == 1
    assert seen[0].awaiting_reply
    assert seen[0].conversation[-1].sender is Sender.USER


def test_responder_failure_keeps_user_turn_only(alex):
    session = begin_session(alex)
    responder = FailingResponder()

    with pytest.raises(ResponderError) as excinfo:
        asyncio.run(submit_user_turn(session, "We are overloaded", responder))

    recovered = excinfo.value.session
    assert recovered is not None
    assert len(recovered.conversation) == 2
    assert recovered.conversation[-1].sender is Sender.USER
    assert not recovered.awaiting_reply
    assert recovered.analysis == session.analysis
    assert isinstance(excinfo.value.__cause__, RuntimeError)


def test_recovered_session_accepts_next_turn(alex):
    with pytest.raises(ResponderError) as excinfo:
        asyncio.run(submit_user_turn(begin_session(alex), "one", FailingResponder()))

    result = asyncio.run(
        submit_user_turn(excinfo.value.session, "two", StubResponder())
    )

    assert [turn.message for turn in result.conversation[1:]] == [
        "one",
        "two",
        "Thanks, tell me more.",
    ]


def test_timeout_surfaces_as_responder_error(alex):
    with pytest.raises(ResponderError) as excinfo:
        asyncio.run(
            submit_user_turn(
                begin_session(alex),
                "Anyone there?",
                SlowResponder(delay=5),
                timeout=0.01,
            )
        )

    recovered = excinfo.value.session
    assert recovered is not None
    assert not recovered.awaiting_reply
    assert recovered.conversation[-1].message == "Anyone there?"


def test_pure_transitions_compose(alex):
    pending = open_turn(begin_session(alex), "Our workflow is manual")
    assert pending.awaiting_reply

    closed = close_turn(pending, "Our workflow is manual", ResponderResult("Okay."))
    assert not closed.awaiting_reply
    assert len(closed.analysis.recommendations) == 1

    aborted = abort_turn(pending)
    assert not aborted.awaiting_reply
    assert aborted.conversation == pending.conversation


def test_intake_phase_session_rejects_turns(alex):
    session = replace(begin_session(alex), phase=SessionPhase.INTAKE)

    assert open_turn(session, "hello") is session
