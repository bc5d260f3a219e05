import asyncio
from types import SimpleNamespace

import pytest

from capacity_assessment import maf_client
from capacity_assessment.config import ModelSettings
from capacity_assessment.maf_client import ChatMessage, MAFChatClient, MAFIntegrationError
from capacity_assessment.responder import PersonaResponder, ResponderError


class FakeChatClient:
    def __init__(self, *replies):
        self.replies = list(replies)
        self.requests = []

    async def complete(self, messages):
        self.requests.append(list(messages))
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return ChatMessage(role="assistant", content=reply)


def test_structured_reply_is_parsed(alex):
    client = FakeChatClient(
        '{"response": "How many vacancies?", "insights": ["Vacancies", " "]}'
    )
    responder = PersonaResponder(client)

    result = asyncio.run(responder.generate_response("We're short", alex, "morgan"))

    assert result.response == "How many vacancies?"
    assert result.insights == ["Vacancies"]
    system, user = client.requests[0]
    assert system.role == "system"
    assert "You are Morgan" in system.content
    assert "Alex, Manager in Aged Care" in system.content
    assert user == ChatMessage(role="user", content="We're short")


def test_plain_reply_is_used_verbatim(alex):
    responder = PersonaResponder(FakeChatClient("  Tell me about rosters.  "))

    result = asyncio.run(responder.generate_response("Hi", alex, "morgan"))

    assert result.response == "Tell me about rosters."
    assert result.insights is None


def test_history_carries_previous_exchanges(alex):
    client = FakeChatClient("First reply", "Second reply")
    responder = PersonaResponder(client)

    asyncio.run(responder.generate_response("one", alex, "morgan"))
    asyncio.run(responder.generate_response("two", alex, "morgan"))

    assert [message.content for message in client.requests[1][1:]] == [
        "one",
        "First reply",
        "two",
    ]
    assert len(responder.history) == 4


def test_client_failure_becomes_responder_error(alex):
    responder = PersonaResponder(FakeChatClient(ConnectionError("offline")))

    with pytest.raises(ResponderError) as excinfo:
        asyncio.run(responder.generate_response("Hi", alex, "morgan"))

    assert "offline" in str(excinfo.value)
    assert isinstance(excinfo.value.__cause__, ConnectionError)


def test_empty_reply_is_an_error(alex):
    responder = PersonaResponder(FakeChatClient('{"response": "", "insights": []}'))

    with pytest.raises(ResponderError):
        asyncio.run(responder.generate_response("Hi", alex, "morgan"))


def test_unknown_persona_is_an_error(alex):
    responder = PersonaResponder(FakeChatClient("unused"))

    with pytest.raises(ResponderError):
        asyncio.run(responder.generate_response("Hi", alex, "riley"))


def test_consecutive_user_messages_are_merged():
    merged = MAFChatClient._merge_consecutive_roles(
        [
            ChatMessage(role="system", content="Be brief."),
            ChatMessage(role="user", content="one"),
            ChatMessage(role="user", content="two"),
            ChatMessage(role="assistant", content="ok"),
        ]
    )

    assert [(message.role, message.content) for message in merged] == [
        ("system", "Be brief."),
        ("user", "one\n\ntwo"),
        ("assistant", "ok"),
    ]


def _model_settings(provider):
    return ModelSettings(
        provider=provider,
        model="gpt-4o-mini",
        endpoint="https://example.invalid",
        api_key="test-key",
        api_version="2024-10-21",
    )


def test_unsupported_provider_is_rejected_before_import(monkeypatch):
    imported = []
    monkeypatch.setattr(maf_client, "import_module", imported.append)

    with pytest.raises(MAFIntegrationError, match="bogus"):
        MAFChatClient(_model_settings("bogus"))

    assert imported == []


@pytest.mark.parametrize(
    ("provider", "module_name", "expected"),
    [
        (
            "Azure_OpenAI",
            "agent_framework.azure",
            {
                "api_key": "test-key",
                "deployment_name": "gpt-4o-mini",
                "endpoint": "https://example.invalid",
                "api_version": "2024-10-21",
            },
        ),
        (
            "openai",
            "agent_framework.openai",
            {
                "api_key": "test-key",
                "model_id": "gpt-4o-mini",
                "base_url": "https://example.invalid",
            },
        ),
    ],
)
def test_provider_selects_framework_client(monkeypatch, provider, module_name, expected):
    created = {}

    def build(**kwargs):
        created.update(kwargs)
        return "client"

    def fake_import(name):
        created["module"] = name
        return SimpleNamespace(AzureOpenAIChatClient=build, OpenAIChatClient=build)

    monkeypatch.setattr(maf_client, "import_module", fake_import)

    client = MAFChatClient(_model_settings(provider))

    assert client._client == "client"
    assert created.pop("module") == module_name
    assert created == expected
