"""
Provider strategies - request building and response parsing per LLM backend

Each strategy turns the same semantic inputs (prior user/ai turns plus the new
prompt) into its provider's payload and reduces the provider's success
envelope to plain text. Adding a provider means adding a strategy and
registering it in PROVIDERS; the dispatcher does not change.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from loja.models.chat import Message, Role
from loja.models.provider import ProviderId, ProviderSettings
from loja.services.errors import ProviderConfigurationError

NO_RESPONSE = "[No response]"


@dataclass
class ProviderRequest:
    """Everything the transport needs for one POST"""

    url: str
    payload: dict[str, Any]
    headers: dict[str, str] = field(default_factory=dict)


def _text_or_fallback(value: Any) -> str:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return NO_RESPONSE


def _turns(history: list[Message], assistant_role: str) -> list[tuple[str, str]]:
    """Map prior user/ai entries to a provider's role vocabulary"""
    turns = []
    for message in history:
        if message.role == Role.USER:
            turns.append(("user", message.prompt or message.content))
        elif message.role == Role.AI:
            turns.append((assistant_role, message.content))
    return turns


class ProviderStrategy(ABC):
    """One LLM backend behind the uniform dispatch interface"""

    provider_id: ProviderId
    display_name: str
    requires_key: bool = True

    def check_credentials(self, settings: ProviderSettings) -> None:
        """Fail fast, naming the provider, when the API key is missing"""
        if self.requires_key and not settings.api_key:
            raise ProviderConfigurationError(
                f"No {self.display_name} API key set. Please add it in the extension settings."
            )

    @abstractmethod
    def build_request(
        self, settings: ProviderSettings, history: list[Message], prompt: str
    ) -> ProviderRequest:
        """Build the provider-specific request for ``prompt`` after ``history``"""

    @abstractmethod
    def parse_response(self, data: dict[str, Any]) -> str:
        """Reduce a success envelope to text, NO_RESPONSE when the field is absent"""


class OpenAIStrategy(ProviderStrategy):
    """OpenAI chat completions"""

    provider_id = ProviderId.GPT
    display_name = "OpenAI"
    default_url = "https://api.openai.com/v1/chat/completions"

    def build_request(self, settings, history, prompt):
        messages = [{"role": role, "content": content} for role, content in _turns(history, "assistant")]
        messages.append({"role": "user", "content": prompt})
        return ProviderRequest(
            url=settings.base_url or self.default_url,
            payload={
                "model": settings.model,
                "messages": messages,
                "temperature": settings.temperature,
                "stream": False,
            },
            headers={
                "Authorization": f"Bearer {settings.api_key}",
                "Content-Type": "application/json",
            },
        )

    def parse_response(self, data):
        choices = data.get("choices") if isinstance(data, dict) else None
        if not choices:
            return NO_RESPONSE
        choice = choices[0] or {}
        message = choice.get("message") or {}
        if "content" in message:
            return _text_or_fallback(message["content"])
        return _text_or_fallback(choice.get("text"))


class GrokStrategy(OpenAIStrategy):
    """xAI Grok, OpenAI-compatible wire format"""

    provider_id = ProviderId.GROK
    display_name = "Grok"
    default_url = "https://api.x.ai/v1/chat/completions"


class ClaudeStrategy(ProviderStrategy):
    """Anthropic messages API"""

    provider_id = ProviderId.CLAUDE
    display_name = "Claude"
    default_url = "https://api.anthropic.com/v1/messages"
    api_version = "2023-06-01"

    def build_request(self, settings, history, prompt):
        messages: list[dict[str, str]] = []
        for role, content in _turns(history, "assistant") + [("user", prompt)]:
            # The API requires alternating roles
            if messages and messages[-1]["role"] == role:
                messages[-1]["content"] += f"\n\n{content}"
            else:
                messages.append({"role": role, "content": content})
        if messages and messages[0]["role"] != "user":
            messages.pop(0)
        return ProviderRequest(
            url=settings.base_url or self.default_url,
            payload={
                "model": settings.model,
                "max_tokens": settings.max_tokens,
                "temperature": settings.temperature,
                "messages": messages,
            },
            headers={
                "Content-Type": "application/json",
                "x-api-key": settings.api_key,
                "anthropic-version": self.api_version,
            },
        )

    def parse_response(self, data):
        blocks = data.get("content") if isinstance(data, dict) else None
        if not blocks:
            return NO_RESPONSE
        for block in blocks:
            if isinstance(block, dict) and "text" in block:
                return _text_or_fallback(block["text"])
        return NO_RESPONSE


class GeminiStrategy(ProviderStrategy):
    """Google Gemini generateContent"""

    provider_id = ProviderId.GEMINI
    display_name = "Gemini"
    default_base = "https://generativelanguage.googleapis.com/v1beta/models"

    def build_request(self, settings, history, prompt):
        contents = [{"role": role, "parts": [{"text": content}]} for role, content in _turns(history, "model")]
        contents.append({"role": "user", "parts": [{"text": prompt}]})
        base = settings.base_url or self.default_base
        return ProviderRequest(
            url=f"{base}/{settings.model}:generateContent",
            payload={
                "contents": contents,
                "generationConfig": {
                    "temperature": settings.temperature,
                    "maxOutputTokens": settings.max_tokens,
                },
            },
            headers={
                "Content-Type": "application/json",
                "x-goog-api-key": settings.api_key,
            },
        )

    def parse_response(self, data):
        if not isinstance(data, dict) or not data.get("candidates"):
            return NO_RESPONSE
        candidate = data["candidates"][0] or {}
        parts = (candidate.get("content") or {}).get("parts") or []
        if parts and isinstance(parts[0], dict):
            return _text_or_fallback(parts[0].get("text"))
        return NO_RESPONSE


PROVIDERS: dict[ProviderId, ProviderStrategy] = {
    strategy.provider_id: strategy
    for strategy in (OpenAIStrategy(), ClaudeStrategy(), GrokStrategy(), GeminiStrategy())
}


def get_strategy(provider: str | ProviderId) -> ProviderStrategy:
    """Strategy for a configured provider identifier"""
    try:
        return PROVIDERS[ProviderId(provider)]
    except ValueError:
        raise ProviderConfigurationError(f"Unknown provider: {provider}")
