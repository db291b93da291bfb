"""
LLM Service - signed HTTP transport for the provider strategies
"""

from __future__ import annotations

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from typing import Any

import aiohttp

from loja.models.chat import Message
from loja.models.provider import ProviderId
from loja.services.config_manager import ConfigManager
from loja.services.errors import ProviderTransportError
from loja.services.providers import get_strategy

logger = logging.getLogger(__name__)


class LLMService:
    """Service for sending one prompt to the configured LLM provider"""

    def __init__(self, config_manager: ConfigManager):
        self.config_manager = config_manager

    @asynccontextmanager
    async def _request(
        self,
        url: str,
        payload: dict[str, Any],
        headers: dict[str, str] | None = None,
        timeout_seconds: int = 60,
        provider: str = "API",
    ):
        """Context manager for HTTP POST requests with automatic session cleanup"""
        timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.post(url, json=payload, headers=headers) as response:
                if response.status != 200:
                    error_text = await response.text()
                    logger.warning(f"[LLMService] {provider} API error ({response.status}): {error_text}")
                    raise ProviderTransportError(provider, error_text, response.status)
                yield response

    async def _request_json(
        self,
        url: str,
        payload: dict[str, Any],
        headers: dict[str, str] | None = None,
        timeout_seconds: int = 60,
        provider: str = "API",
    ) -> dict[str, Any]:
        """Make request and return JSON response"""
        async with self._request(url, payload, headers, timeout_seconds, provider) as response:
            return await response.json(content_type=None)

    async def generate_response(
        self,
        provider_id: str | ProviderId,
        prompt: str,
        history: list[Message],
    ) -> str:
        """Send ``prompt`` after ``history`` to one provider and return its text"""
        strategy = get_strategy(provider_id)
        settings = self.config_manager.provider_settings(strategy.provider_id)
        strategy.check_credentials(settings)

        request = strategy.build_request(settings, history, prompt)
        logger.info(f"[LLMService] Calling {strategy.display_name} with model: {settings.model}")

        try:
            data = await self._request_json(
                request.url,
                request.payload,
                request.headers,
                timeout_seconds=settings.timeout_seconds,
                provider=strategy.display_name,
            )
        except (aiohttp.ClientError, asyncio.TimeoutError, json.JSONDecodeError) as e:
            raise ProviderTransportError(strategy.display_name, f"{type(e).__name__}: {e}") from e

        response_text = strategy.parse_response(data)
        logger.info(
            f"[LLMService] Received response from {settings.model} (length: {len(response_text)} chars)"
        )
        return response_text
