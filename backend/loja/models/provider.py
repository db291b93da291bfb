"""Provider identifiers and per-provider settings"""

from __future__ import annotations

from enum import Enum

from .base import CamelModel


class ProviderId(str, Enum):
    """Supported LLM backends"""

    GPT = "gpt"
    CLAUDE = "claude"
    GROK = "grok"
    GEMINI = "gemini"


class ProviderSettings(CamelModel):
    """One provider section of the config file"""

    api_key: str = ""
    model: str
    temperature: float = 0.7
    max_tokens: int = 1024
    base_url: str | None = None
    timeout_seconds: int = 60
