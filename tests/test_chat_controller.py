"""Tests for turn sequencing, undo and the controller's message handlers."""

from __future__ import annotations

import asyncio
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from loja.models.chat import ContextKind, EditTarget, Role
from loja.models.editor import EditorState
from loja.models.provider import ProviderId
from loja.models.messages import (
    AddCurrentFileContext,
    AddFileToContext,
    AddSelectionContext,
    ApplyInline,
    ClearHistory,
    ContextBubble,
    PreviewEdit,
    RequestFileSuggestions,
    RequestHistory,
    SendCurrentFile,
    SendSelection,
    SetProvider,
    ShowContextMenu,
    UserMessage,
)
from loja.services.broadcaster import SurfaceBroadcaster, SurfaceKind
from loja.services.chat_controller import ChatController
from loja.services.config_manager import ConfigManager
from loja.services.edit_applier import APPLY
from loja.services.errors import ProviderTransportError

from conftest import DEMO, FakeSurface, ScriptedHost, demo_document, openai_reply


def user(text: str, **kwargs) -> UserMessage:
    return UserMessage(type="userMessage", text=text, **kwargs)


def roles(controller: ChatController) -> list[Role]:
    return [m.role for m in controller.history.snapshot()]


@pytest.fixture
def panel(broadcaster: SurfaceBroadcaster) -> FakeSurface:
    surface = FakeSurface()
    broadcaster.attach(SurfaceKind.PANEL, surface)
    return surface


@pytest.fixture
def detached(broadcaster: SurfaceBroadcaster) -> FakeSurface:
    surface = FakeSurface()
    broadcaster.attach(SurfaceKind.DETACHED, surface)
    return surface


# =============================================================================
# User turns
# =============================================================================


class TestUserTurn:
    @pytest.mark.asyncio
    async def test_turn_publishes_user_loading_then_reply(
        self, controller: ChatController, llm: AsyncMock, panel: FakeSurface
    ) -> None:
        await controller.handle(user("fix [selection]"), SurfaceKind.PANEL)

        histories = [f["history"] for f in panel.of_type("history")]
        assert [[e["role"] for e in h] for h in histories] == [
            ["user"],
            ["user", "loading"],
            ["user", "ai"],
        ]
        assert histories[1][1]["content"] == "Thinking..."
        assert histories[0][0]["content"] == "fix **📝 demo.ts:3-3**"
        assert histories[2][1]["content"] == "Hello from the model"

    @pytest.mark.asyncio
    async def test_loading_never_coexists_with_reply(
        self, controller: ChatController, llm: AsyncMock, panel: FakeSurface
    ) -> None:
        await controller.handle(user("one"))
        await controller.handle(user("two"))

        for frame in panel.of_type("history"):
            entries = [e["role"] for e in frame["history"]]
            assert entries.count("loading") <= 1
            if "loading" in entries:
                assert entries[-1] == "loading"

    @pytest.mark.asyncio
    async def test_provider_receives_prior_turns_once(self, controller: ChatController, llm: AsyncMock) -> None:
        await controller.handle(user("first"))
        await controller.handle(user("second"))

        messages = llm.await_args.args[1]["messages"]
        assert [m["role"] for m in messages] == ["user", "assistant", "user"]
        assert messages[0]["content"] == "first"
        assert messages[-1]["content"].endswith("**User Question:**\nsecond")

    @pytest.mark.asyncio
    async def test_provider_error_becomes_one_error_entry(self, controller: ChatController, llm: AsyncMock) -> None:
        llm.side_effect = ProviderTransportError("OpenAI", '{"error": "rate limited"}', 429)

        await controller.handle(user("hi"))

        assert roles(controller) == [Role.USER, Role.ERROR]
        assert controller.history.last().content == 'Error: OpenAI API error: {"error": "rate limited"}'

    @pytest.mark.asyncio
    async def test_missing_key_becomes_error_entry(
        self, controller: ChatController, config_manager: ConfigManager, llm: AsyncMock
    ) -> None:
        config_manager.set_provider(ProviderId.GROK)

        await controller.handle(user("hi"))

        assert controller.history.last().content == (
            "Error: No Grok API key set. Please add it in the extension settings."
        )
        llm.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_turns_queue_behind_the_pending_one(self, controller: ChatController, llm: AsyncMock) -> None:
        gate = asyncio.Event()
        calls = []

        async def reply(url, payload, headers=None, **kwargs):
            calls.append(payload)
            if len(calls) == 1:
                await gate.wait()
            return openai_reply(f"answer {len(calls)}")

        llm.side_effect = reply
        first = controller.submit(user("first"))
        second = controller.submit(user("second"))
        await asyncio.sleep(0.05)

        assert roles(controller) == [Role.USER, Role.LOADING]

        gate.set()
        await asyncio.gather(first, second)

        assert roles(controller) == [Role.USER, Role.AI, Role.USER, Role.AI]
        assert [m.content for m in controller.history.conversation()][1::2] == ["answer 1", "answer 2"]

    @pytest.mark.asyncio
    async def test_reply_with_edit_proposal(self, controller: ChatController, llm: AsyncMock) -> None:
        llm.return_value = openai_reply("Replace content of src/util.ts with:\n```ts\nexport const x = 1;\n```")

        await controller.handle(user("rewrite util"))

        [proposal] = controller.history.last().proposals
        assert proposal.target == EditTarget.PATH
        assert proposal.path == "src/util.ts"

    @pytest.mark.asyncio
    async def test_read_command_goes_through_the_turn(self, controller: ChatController, llm: AsyncMock) -> None:
        await controller.handle(user("/read src/util.ts"))

        assert roles(controller) == [Role.USER, Role.AI]
        assert "export const old = true;" in controller.history.last().content
        llm.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_file_bubble_reaches_provider(self, controller: ChatController, llm: AsyncMock) -> None:
        bubble = ContextBubble(type=ContextKind.FILE, name="util.ts", path="src/util.ts")

        await controller.handle(user("explain", context_items=[bubble]))

        prompt = llm.await_args.args[1]["messages"][-1]["content"]
        assert "**📄 util.ts:**\n```\nexport const old = true;" in prompt
        assert controller.history.snapshot()[0].content == "explain"

    @pytest.mark.asyncio
    async def test_invalid_bubble_path_still_completes_the_turn(self, controller: ChatController, llm: AsyncMock) -> None:
        bubble = ContextBubble(type=ContextKind.FILE, name="bad", path="bad\x00name.ts")

        await controller.handle(user("hello", context_items=[bubble]))

        assert roles(controller) == [Role.USER, Role.AI]

    @pytest.mark.asyncio
    async def test_bubble_outside_workspace_never_reaches_provider(
        self, controller: ChatController, llm: AsyncMock, workspace: Path
    ) -> None:
        (workspace.parent / "secret.txt").write_text("TOP-SECRET", encoding="utf-8")
        bubble = ContextBubble(type=ContextKind.FILE, name="secret.txt", path="../secret.txt")

        await controller.handle(user("explain", context_items=[bubble]))

        prompt = llm.await_args.args[1]["messages"][-1]["content"]
        assert "TOP-SECRET" not in prompt

    @pytest.mark.asyncio
    async def test_follow_up_turn_keeps_earlier_context(
        self, controller: ChatController, llm: AsyncMock, panel: FakeSurface
    ) -> None:
        await controller.handle(user("fix [selection]"))
        await controller.handle(user("now add a test for it"))

        messages = llm.await_args.args[1]["messages"]
        assert messages[0]["role"] == "user"
        assert "```\nfunction add(x, y) { return x + y; }\n```" in messages[0]["content"]
        assert messages[0]["content"].endswith("**Question:**\nfix [selection]")

        first_entry = panel.of_type("history")[-1]["history"][0]
        assert first_entry == {"role": "user", "content": "fix **📝 demo.ts:3-3**"}


# =============================================================================
# Edits and undo
# =============================================================================


class TestEditsAndUndo:
    @pytest.mark.asyncio
    async def test_undo_with_nothing_pending_is_a_no_op(
        self, controller: ChatController, llm: AsyncMock, panel: FakeSurface
    ) -> None:
        await controller.handle(user("  UNDO "))

        assert len(controller.history) == 0
        assert panel.frames == []
        llm.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_apply_inline_then_undo_once(self, controller: ChatController, workspace: Path) -> None:
        demo = workspace / "src" / "demo.ts"
        await controller.handle(ApplyInline(type="applyInline", target=None, code_block="// replaced\n"))

        assert demo.read_text(encoding="utf-8") == "// replaced\n"
        assert controller.history.last().role == Role.SYSTEM

        await controller.handle(user("undo"))
        assert demo.read_text(encoding="utf-8") == DEMO
        assert controller.history.last().content == "Undo applied."

        await controller.handle(user("undo"))
        assert len(controller.history) == 2

    @pytest.mark.asyncio
    async def test_only_the_latest_edit_is_undone(self, controller: ChatController, workspace: Path) -> None:
        await controller.handle(ApplyInline(type="applyInline", target=None, code_block="first\n"))
        await controller.handle(ApplyInline(type="applyInline", target=None, code_block="second\n"))

        await controller.handle(user("undo"))

        assert (workspace / "src" / "demo.ts").read_text(encoding="utf-8") == "first\n"

    @pytest.mark.asyncio
    async def test_preview_apply_records_pending_edit(
        self, controller: ChatController, host: ScriptedHost, workspace: Path
    ) -> None:
        host.answers = [APPLY]
        await controller.handle(PreviewEdit(type="previewEdit", file_path="src/util.ts", new_content="new\n"))

        assert controller.history.last().content == "File src/util.ts updated successfully."

        await controller.handle(user("undo"))
        assert (workspace / "src" / "util.ts").read_text(encoding="utf-8") == "export const old = true;\n"

    @pytest.mark.asyncio
    async def test_undo_removes_a_file_the_preview_created(
        self, controller: ChatController, host: ScriptedHost, workspace: Path
    ) -> None:
        host.answers = [APPLY]
        await controller.handle(PreviewEdit(type="previewEdit", file_path="src/fresh.ts", new_content="new\n"))
        assert (workspace / "src" / "fresh.ts").exists()

        await controller.handle(user("undo"))

        assert not (workspace / "src" / "fresh.ts").exists()
        assert controller.history.last().content == "Undo applied."

    @pytest.mark.asyncio
    async def test_cancelled_preview_adds_nothing(self, controller: ChatController, host: ScriptedHost) -> None:
        await controller.handle(PreviewEdit(type="previewEdit", file_path="src/util.ts", new_content="new\n"))
        assert len(controller.history) == 0


# =============================================================================
# Other handlers
# =============================================================================


class TestHandlers:
    @pytest.mark.asyncio
    async def test_add_context_replies_to_origin_only(
        self, controller: ChatController, panel: FakeSurface, detached: FakeSurface
    ) -> None:
        await controller.handle(AddSelectionContext(type="addSelectionContext"), SurfaceKind.DETACHED)

        [frame] = detached.of_type("addContext")
        assert frame["contextType"] == "selection"
        assert frame["name"] == "demo.ts:3-3"
        assert frame["icon"] == "📝"
        assert panel.of_type("addContext") == []

    @pytest.mark.asyncio
    async def test_add_file_to_context(self, controller: ChatController, panel: FakeSurface) -> None:
        await controller.handle(AddFileToContext(type="addFileToContext", file_path="src/util.ts"), SurfaceKind.PANEL)

        [frame] = panel.of_type("addContext")
        assert frame["contextType"] == "file"
        assert frame["fullName"] == "src/util.ts"

    @pytest.mark.asyncio
    async def test_add_file_outside_workspace_sends_nothing(
        self, controller: ChatController, panel: FakeSurface, workspace: Path
    ) -> None:
        (workspace.parent / "secret.txt").write_text("TOP-SECRET", encoding="utf-8")

        await controller.handle(AddFileToContext(type="addFileToContext", file_path="../secret.txt"), SurfaceKind.PANEL)

        assert panel.of_type("addContext") == []

    @pytest.mark.asyncio
    async def test_context_menu_choice(
        self, controller: ChatController, host: ScriptedHost, panel: FakeSurface
    ) -> None:
        host.answers = ["Current file"]

        await controller.handle(ShowContextMenu(type="showContextMenu"), SurfaceKind.PANEL)

        [frame] = panel.of_type("addContext")
        assert frame["name"] == "demo.ts"
        assert frame["content"] == DEMO

    @pytest.mark.asyncio
    async def test_file_suggestions_skip_node_modules(self, controller: ChatController, panel: FakeSurface) -> None:
        await controller.handle(RequestFileSuggestions(type="requestFileSuggestions", query="demo", cursor_pos=7))

        [frame] = panel.of_type("showFileSuggestions")
        assert frame["cursorPos"] == 7
        assert [f["relativePath"] for f in frame["files"]] == ["src/demo.ts"]

    @pytest.mark.asyncio
    async def test_send_current_file(self, controller: ChatController) -> None:
        await controller.handle(SendCurrentFile(type="sendCurrentFile"))

        entry = controller.history.last()
        assert entry.role == Role.USER
        assert entry.content.startswith("**File Context:**\n- File: `demo.ts`")
        assert entry.content.endswith(f"```typescript\n{DEMO}\n```")

    @pytest.mark.asyncio
    async def test_send_selection_without_document(
        self, controller: ChatController, host: ScriptedHost, workspace: Path
    ) -> None:
        host.update_state(EditorState(workspace_root=str(workspace)))

        await controller.handle(SendSelection(type="sendSelection"))

        assert controller.history.last().role == Role.SYSTEM
        assert controller.history.last().content == "No file is currently open."

    @pytest.mark.asyncio
    async def test_request_history_goes_to_origin(
        self, controller: ChatController, panel: FakeSurface, detached: FakeSurface
    ) -> None:
        await controller.handle(RequestHistory(type="requestHistory"), SurfaceKind.PANEL)

        assert panel.of_type("history") == [{"type": "history", "history": []}]
        assert detached.frames == []

    @pytest.mark.asyncio
    async def test_clear_history(self, controller: ChatController, llm: AsyncMock) -> None:
        await controller.handle(user("hi"))
        await controller.handle(ClearHistory(type="clearHistory"))
        assert len(controller.history) == 0

    @pytest.mark.asyncio
    async def test_set_provider_persists(self, controller: ChatController, config_manager: ConfigManager) -> None:
        await controller.handle(SetProvider(type="setProvider", provider="gemini"))
        assert config_manager.active_provider() == "gemini"

    @pytest.mark.asyncio
    async def test_welcome_on_attach(self, controller: ChatController, broadcaster: SurfaceBroadcaster) -> None:
        surface = FakeSurface()
        await controller.attach_surface(SurfaceKind.DETACHED, surface)

        assert [f["type"] for f in surface.frames] == ["history", "notification"]


# =============================================================================
# Add selection to chat
# =============================================================================


class TestAddSelectionToChat:
    @pytest.mark.asyncio
    async def test_prefers_panel(
        self, controller: ChatController, panel: FakeSurface, detached: FakeSurface
    ) -> None:
        assert await controller.add_selection_to_chat() is True

        [frame] = panel.of_type("insertLabel")
        assert frame["label"] == "demo.ts:3-3"
        assert frame["contextItem"]["content"] == "function add(x, y) { return x + y; }"
        assert detached.frames == []

    @pytest.mark.asyncio
    async def test_falls_back_to_detached(self, controller: ChatController, detached: FakeSurface) -> None:
        assert await controller.add_selection_to_chat() is True
        assert len(detached.of_type("insertLabel")) == 1

    @pytest.mark.asyncio
    async def test_no_selection_shows_info(
        self, controller: ChatController, host: ScriptedHost, panel: FakeSurface, workspace: Path
    ) -> None:
        host.update_state(EditorState(workspace_root=str(workspace), active_document=demo_document(workspace, selected=False)))

        assert await controller.add_selection_to_chat() is False
        assert panel.of_type("notification") == [{"type": "notification", "message": "No text selected"}]

    @pytest.mark.asyncio
    async def test_no_surface_open(self, controller: ChatController) -> None:
        assert await controller.add_selection_to_chat() is False
