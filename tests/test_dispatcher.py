"""Tests for file commands, context augmentation and provider routing."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock

import aiohttp
import pytest

from loja.models.editor import EditorState
from loja.models.provider import ProviderId
from loja.services.chat_controller import ChatController
from loja.services.config_manager import ConfigManager
from loja.services.dispatcher import EDIT_USAGE
from loja.services.errors import ProviderConfigurationError, ProviderTransportError
from loja.services.workspace_files import READ_SCOPE_NOTICE

from conftest import ScriptedHost, set_api_key


def sent_prompt(llm: AsyncMock) -> str:
    payload = llm.await_args.args[1]
    return payload["messages"][-1]["content"]


class TestFileCommands:
    @pytest.mark.asyncio
    async def test_read_inside_workspace(self, controller: ChatController, llm: AsyncMock) -> None:
        reply = await controller.dispatcher.dispatch("/read src/util.ts", [])

        assert reply == "```\nexport const old = true;\n\n```"
        llm.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_read_outside_workspace_is_refused(
        self, controller: ChatController, llm: AsyncMock, workspace: Path
    ) -> None:
        (workspace.parent / "secret.txt").write_text("TOPSECRET", encoding="utf-8")

        reply = await controller.dispatcher.dispatch("/read ../secret.txt", [])

        assert reply == READ_SCOPE_NOTICE
        llm.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_read_truncates_large_files(self, controller: ChatController, workspace: Path) -> None:
        (workspace / "big.txt").write_text("y" * 5000, encoding="utf-8")

        reply = await controller.dispatcher.dispatch("/read big.txt", [])

        assert reply.startswith("File is too large to display in chat (showing first 4000 chars):\n```\n")
        assert "y" * 4001 not in reply

    @pytest.mark.asyncio
    async def test_read_without_workspace(self, controller: ChatController, host: ScriptedHost) -> None:
        host.update_state(EditorState())
        assert await controller.dispatcher.dispatch("/read a.txt", []) == "No workspace folder open."

    @pytest.mark.asyncio
    async def test_edit_writes_file(self, controller: ChatController, llm: AsyncMock, workspace: Path) -> None:
        reply = await controller.dispatcher.dispatch("/edit src/new.ts export const x = 1;", [])

        assert reply == "File src/new.ts updated successfully."
        assert (workspace / "src" / "new.ts").read_text(encoding="utf-8") == "export const x = 1;"
        llm.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_edit_outside_workspace_is_refused(self, controller: ChatController, workspace: Path) -> None:
        reply = await controller.dispatcher.dispatch("/edit ../escape.txt boom", [])

        assert reply == "Error: Can only edit files within the workspace."
        assert not (workspace.parent / "escape.txt").exists()

    @pytest.mark.asyncio
    async def test_edit_without_content_shows_usage(self, controller: ChatController) -> None:
        assert await controller.dispatcher.dispatch("/edit onlypath", []) == EDIT_USAGE


class TestProviderCalls:
    @pytest.mark.asyncio
    async def test_context_header_is_prepended(self, controller: ChatController, llm: AsyncMock) -> None:
        reply = await controller.dispatcher.dispatch("what does add do?", [])

        assert reply == "Hello from the model"
        prompt = sent_prompt(llm)
        assert prompt.startswith(
            "**Current Context:**\n"
            "- Workspace: demo\n"
            "- Current file: `demo.ts`\n"
            "- File path: `src/demo.ts`\n"
            "- Language: typescript\n"
            "- Selected lines: 3-3\n"
        )
        assert prompt.endswith("\n\n**User Question:**\nwhat does add do?")

    @pytest.mark.asyncio
    async def test_no_header_without_context(self, controller: ChatController, llm: AsyncMock) -> None:
        await controller.dispatcher.dispatch("ping", [], include_context=False)
        assert sent_prompt(llm) == "ping"

    @pytest.mark.asyncio
    async def test_no_header_without_active_document(
        self, controller: ChatController, llm: AsyncMock, host: ScriptedHost, workspace: Path
    ) -> None:
        host.update_state(EditorState(workspace_root=str(workspace)))
        await controller.dispatcher.dispatch("ping", [])
        assert sent_prompt(llm) == "ping"

    @pytest.mark.asyncio
    async def test_missing_key(self, controller: ChatController, config_manager: ConfigManager, llm: AsyncMock) -> None:
        set_api_key(config_manager, "gpt", "")

        with pytest.raises(ProviderConfigurationError, match="No OpenAI API key set"):
            await controller.dispatcher.dispatch("hi", [])
        llm.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_provider_switch_applies_to_next_call(
        self, controller: ChatController, config_manager: ConfigManager, llm: AsyncMock
    ) -> None:
        set_api_key(config_manager, "claude", "sk-ant")
        config_manager.set_provider(ProviderId.CLAUDE)
        llm.return_value = {"content": [{"type": "text", "text": "claude says hi"}]}

        reply = await controller.dispatcher.dispatch("hi", [])

        assert reply == "claude says hi"
        assert llm.await_args.args[0] == "https://api.anthropic.com/v1/messages"

    @pytest.mark.asyncio
    async def test_network_failure_is_a_transport_error(self, controller: ChatController, llm: AsyncMock) -> None:
        llm.side_effect = aiohttp.ClientConnectionError("connection refused")

        with pytest.raises(ProviderTransportError) as exc:
            await controller.dispatcher.dispatch("hi", [])
        assert str(exc.value).startswith("OpenAI API error: ClientConnectionError")
