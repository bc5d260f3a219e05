"""Chat completion access through the Microsoft Agent Framework.

Only the responder talks to the language model; it does so through
:class:`MAFChatClient`, which picks the framework client matching the
configured provider at runtime.
"""

from __future__ import annotations

from dataclasses import dataclass
from importlib import import_module
from typing import Any, Callable, Dict, Iterable, List, Tuple

from .config import ModelSettings


@dataclass(slots=True)
class ChatMessage:
    """Role-tagged message exchanged with the model."""

    role: str
    content: str


class MAFIntegrationError(RuntimeError):
    """Raised when the MAF client cannot be initialized."""


def _azure_kwargs(settings: ModelSettings) -> Dict[str, Any]:
    return {
        "api_key": settings.api_key,
        "deployment_name": settings.model,
        "endpoint": settings.endpoint,
        "api_version": settings.api_version,
    }


def _openai_kwargs(settings: ModelSettings) -> Dict[str, Any]:
    return {
        "api_key": settings.api_key,
        "model_id": settings.model,
        "base_url": settings.endpoint,
    }


# provider alias -> (framework module, client class, constructor kwargs)
_PROVIDERS: Dict[str, Tuple[str, str, Callable[[ModelSettings], Dict[str, Any]]]] = {
    "azure-openai": ("agent_framework.azure", "AzureOpenAIChatClient", _azure_kwargs),
    "azure": ("agent_framework.azure", "AzureOpenAIChatClient", _azure_kwargs),
    "openai": ("agent_framework.openai", "OpenAIChatClient", _openai_kwargs),
}


def _to_framework_message(message: ChatMessage) -> Any:
    framework = import_module("agent_framework")
    try:
        role = framework.Role(message.role)
    except ValueError as exc:
        raise ValueError(f"Unsupported role for MAF chat message: {message.role}") from exc
    return framework.ChatMessage(role=role, text=message.content)


class MAFChatClient:
    """Dispatches chat completion calls to the configured provider."""

    def __init__(self, settings: ModelSettings) -> None:
        self._settings = settings
        self._client = self._create_client(settings)

    @staticmethod
    def _create_client(settings: ModelSettings) -> Any:
        provider = settings.provider.strip().lower().replace("_", "-")
        if provider not in _PROVIDERS:
            supported = ", ".join(sorted(_PROVIDERS))
            raise MAFIntegrationError(
                f"Unsupported MAF provider '{settings.provider}' "
                f"(expected one of: {supported})."
            )
        module_name, class_name, build_kwargs = _PROVIDERS[provider]
        try:
            module = import_module(module_name)
        except ModuleNotFoundError as exc:  # pragma: no cover - MAF runtime
            missing = exc.name or "a required dependency"
            raise MAFIntegrationError(
                f"Microsoft Agent Framework dependency '{missing}' is missing. "
                "Reinstall the project dependencies (e.g. `pip install -e .`)."
            ) from exc
        return getattr(module, class_name)(**build_kwargs(settings))

    @staticmethod
    def _merge_consecutive_roles(
        messages: Iterable[ChatMessage],
    ) -> List[ChatMessage]:
        """Combine adjacent messages that share the same role.

        Providers expect user and assistant roles to alternate; a failed
        exchange leaves two user messages back to back in the history.
        """

        merged: List[ChatMessage] = []
        for message in messages:
            if merged and merged[-1].role == message.role:
                previous = merged[-1]
                previous.content = f"{previous.content}\n\n{message.content}".strip()
                continue
            merged.append(ChatMessage(role=message.role, content=message.content))
        return merged

    async def complete(self, messages: Iterable[ChatMessage]) -> ChatMessage:
        """Run one chat completion and return the assistant message."""

        payload: List[Any] = [
            _to_framework_message(msg)
            for msg in self._merge_consecutive_roles(messages)
        ]
        response = await self._client.get_response(messages=payload)
        return ChatMessage(role="assistant", content=response.text or "")
