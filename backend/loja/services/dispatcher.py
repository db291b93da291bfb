"""
Provider Dispatcher - single entry point between the controller and the LLMs
"""

from __future__ import annotations

import logging
import re

from loja.models.chat import Message
from loja.models.provider import ProviderId
from loja.services.config_manager import ConfigManager
from loja.services.editor_context import EditorContext
from loja.services.llm_service import LLMService
from loja.services.workspace_files import WorkspaceFiles

logger = logging.getLogger(__name__)

READ_PREFIX = "/read "
EDIT_PREFIX = "/edit "
EDIT_PATTERN = re.compile(r"^/edit\s+(\S+)\s+([\s\S]*)$")
EDIT_USAGE = "Usage: /edit <file> <new content>"


class ProviderDispatcher:
    """Route one prompt to a file command or to the active provider"""

    def __init__(
        self,
        config_manager: ConfigManager,
        llm_service: LLMService,
        files: WorkspaceFiles,
        context: EditorContext,
    ):
        self.config_manager = config_manager
        self.llm_service = llm_service
        self.files = files
        self.context = context

    async def dispatch(
        self,
        prompt: str,
        history: list[Message],
        include_context: bool = True,
        provider_id: str | ProviderId | None = None,
    ) -> str:
        """Return assistant text; raises ProviderError on configuration or transport failure"""
        if prompt.startswith(READ_PREFIX):
            return await self.files.read_for_chat(prompt[len(READ_PREFIX):].strip())
        if prompt.startswith(EDIT_PREFIX):
            match = EDIT_PATTERN.match(prompt)
            if not match:
                return EDIT_USAGE
            return await self.files.edit(match.group(1), match.group(2))

        enhanced = prompt
        if include_context:
            header = self.context.context_header()
            if header:
                enhanced = f"{header}\n\n**User Question:**\n{prompt}"

        # Read on every call so a provider switch applies to the next message
        provider = provider_id or self.config_manager.active_provider()
        logger.info(f"[Dispatcher] Dispatching to {provider} ({len(history)} prior turns)")
        return await self.llm_service.generate_response(provider, enhanced, history)
