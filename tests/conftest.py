"""Pytest fixtures for the Loja backend tests."""

from __future__ import annotations

from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock

import pytest

from loja.models.editor import ActiveDocument, EditorState, Position, TextRange
from loja.services.broadcaster import SurfaceBroadcaster
from loja.services.chat_controller import ChatController
from loja.services.config_manager import ConfigManager
from loja.services.editor_host import WorkspaceEditorHost

DEMO = "const a = 1;\nconst b = 2;\nfunction add(x, y) { return x + y; }\nexport { add };\n"
DEMO_LINE_3 = "function add(x, y) { return x + y; }"


class FakeSurface:
    """Records every frame sent to it."""

    def __init__(self) -> None:
        self.frames: list[dict[str, Any]] = []

    async def send_json(self, data: Any) -> None:
        self.frames.append(data)

    def of_type(self, kind: str) -> list[dict[str, Any]]:
        return [f for f in self.frames if f.get("type") == kind]


class ScriptedHost(WorkspaceEditorHost):
    """Workspace host whose choice prompts are answered from a script."""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.answers: list[str | None] = []
        self.asked: list[tuple[str, list[str]]] = []

    async def choose(self, title: str, options: list[str]) -> str | None:
        self.asked.append((title, options))
        return self.answers.pop(0) if self.answers else None


def openai_reply(text: str) -> dict[str, Any]:
    return {"choices": [{"message": {"role": "assistant", "content": text}}]}


def set_api_key(config_manager: ConfigManager, provider: str, key: str) -> None:
    section = dict(config_manager.get_config()[provider])
    section["apiKey"] = key
    config_manager.save_config({provider: section})


def demo_document(workspace: Path, selected: bool = True) -> ActiveDocument:
    selection = None
    if selected:
        selection = TextRange(start=Position(line=2), end=Position(line=2, character=len(DEMO_LINE_3)))
    return ActiveDocument(
        path=str(workspace / "src" / "demo.ts"),
        content=DEMO,
        language_id="typescript",
        selection=selection,
    )


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def config_manager(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> ConfigManager:
    """Fresh ConfigManager singleton backed by a temporary directory."""
    monkeypatch.setenv("LOJA_CONFIG_DIR", str(tmp_path / "config"))
    monkeypatch.delenv("LOJA_WORKSPACE", raising=False)
    monkeypatch.setattr(ConfigManager, "_instance", None)
    return ConfigManager.get_instance()


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """A small project on disk."""
    root = tmp_path / "demo"
    (root / "src").mkdir(parents=True)
    (root / "src" / "demo.ts").write_text(DEMO, encoding="utf-8")
    (root / "src" / "util.ts").write_text("export const old = true;\n", encoding="utf-8")
    (root / "package.json").write_text('{"name": "demo"}\n', encoding="utf-8")
    (root / "node_modules" / "lib").mkdir(parents=True)
    (root / "node_modules" / "lib" / "demo.js").write_text("ignored\n", encoding="utf-8")
    return root.resolve()


@pytest.fixture
def broadcaster() -> SurfaceBroadcaster:
    b = SurfaceBroadcaster()
    b.READY_DELAY = 0.01
    return b


@pytest.fixture
def host(config_manager: ConfigManager, broadcaster: SurfaceBroadcaster, workspace: Path) -> ScriptedHost:
    h = ScriptedHost(config_manager, broadcaster)
    h.update_state(
        EditorState(
            workspace_root=str(workspace),
            workspace_name="demo",
            active_document=demo_document(workspace),
        )
    )
    return h


@pytest.fixture
def llm(monkeypatch: pytest.MonkeyPatch, controller: ChatController) -> AsyncMock:
    """Replaces the provider HTTP call; returns the mock."""
    mock = AsyncMock(return_value=openai_reply("Hello from the model"))
    monkeypatch.setattr(controller.llm_service, "_request_json", mock)
    return mock


@pytest.fixture
def controller(
    config_manager: ConfigManager, host: ScriptedHost, broadcaster: SurfaceBroadcaster
) -> ChatController:
    set_api_key(config_manager, "gpt", "sk-test-key")
    return ChatController(config_manager, host, broadcaster, host.prompts)
