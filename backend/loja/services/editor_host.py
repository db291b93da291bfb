"""
Editor Host - the controller's view of the IDE

The IDE plugin pushes its editor state (workspace root, active document,
selection) to the backend; file reads and writes go to the workspace on disk.
Interactive choices and diff views are forwarded to the chat surfaces.
"""

from __future__ import annotations

import asyncio
import fnmatch
import logging
import os
import uuid
from abc import ABC, abstractmethod
from pathlib import Path

from loja.models.editor import ActiveDocument, EditorState, FileSuggestion, TextRange, splice
from loja.models.messages import Notification, Prompt, ShowDiff
from loja.services.broadcaster import SurfaceBroadcaster
from loja.services.config_manager import ConfigManager
from loja.services.diff_generator import DiffGenerator

logger = logging.getLogger(__name__)

EXCLUDED_DIRS = frozenset({"node_modules", ".git"})


def same_path(a: str | Path, b: str | Path) -> bool:
    return Path(a).resolve() == Path(b).resolve()


class EditorHost(ABC):
    """Editor capabilities the controller relies on"""

    @abstractmethod
    def workspace_root(self) -> Path | None:
        """First workspace root, if a folder is open"""

    def workspace_name(self) -> str | None:
        root = self.workspace_root()
        return root.name if root else None

    @abstractmethod
    def active_document(self) -> ActiveDocument | None:
        """Focused document with its current selection"""

    def relative_path(self, path: str | Path) -> str:
        root = self.workspace_root()
        if root is None:
            return str(path)
        try:
            return Path(path).resolve().relative_to(root).as_posix()
        except ValueError:
            return str(path)

    @abstractmethod
    async def read_file(self, path: Path) -> str: ...

    @abstractmethod
    async def write_file(self, path: Path, content: str) -> None: ...

    @abstractmethod
    async def delete_file(self, path: Path) -> None: ...

    @abstractmethod
    async def replace_range(self, path: str, target: TextRange | None, text: str) -> TextRange:
        """Replace ``target`` (whole document when None); returns the new text's range"""

    @abstractmethod
    async def find_files(self, query: str, limit: int) -> list[FileSuggestion]: ...

    @abstractmethod
    async def show_diff(self, path: str, current: str, proposed: str) -> None: ...

    @abstractmethod
    async def choose(self, title: str, options: list[str]) -> str | None:
        """Ask the user to pick one option; None when dismissed"""

    @abstractmethod
    async def show_info(self, message: str) -> None: ...


class PromptBroker:
    """Round-trips a choice through the surfaces (prompt / promptResponse)"""

    def __init__(self, broadcaster: SurfaceBroadcaster, timeout: float = 300.0):
        self.broadcaster = broadcaster
        self.timeout = timeout
        self._pending: dict[str, asyncio.Future] = {}

    async def ask(self, title: str, options: list[str]) -> str | None:
        if not self.broadcaster.live_kinds:
            logger.info(f"[PromptBroker] No surface to ask: {title}")
            return None

        prompt_id = uuid.uuid4().hex
        future = asyncio.get_running_loop().create_future()
        self._pending[prompt_id] = future
        try:
            await self.broadcaster.broadcast(Prompt(prompt_id=prompt_id, title=title, options=options))
            return await asyncio.wait_for(future, timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.info(f"[PromptBroker] Prompt {prompt_id} timed out")
            return None
        finally:
            self._pending.pop(prompt_id, None)

    def resolve(self, prompt_id: str, choice: str | None) -> bool:
        """Deliver a surface's answer; False for unknown or already answered prompts"""
        future = self._pending.get(prompt_id)
        if future is None or future.done():
            return False
        future.set_result(choice)
        return True


class WorkspaceEditorHost(EditorHost):
    """Editor host backed by plugin-pushed state and the workspace filesystem"""

    def __init__(
        self,
        config_manager: ConfigManager,
        broadcaster: SurfaceBroadcaster,
        prompts: PromptBroker | None = None,
    ):
        self.config_manager = config_manager
        self.broadcaster = broadcaster
        self.prompts = prompts or PromptBroker(broadcaster)
        self.diff_generator = DiffGenerator()
        self._state = EditorState()

    # ========== State ==========

    def update_state(self, state: EditorState) -> None:
        self._state = state
        doc = state.active_document
        logger.debug(f"[EditorHost] State updated (active: {doc.path if doc else None})")

    @property
    def state(self) -> EditorState:
        return self._state

    def workspace_root(self) -> Path | None:
        root = self._state.workspace_root or self.config_manager.workspace_root()
        return Path(root).resolve() if root else None

    def workspace_name(self) -> str | None:
        return self._state.workspace_name or super().workspace_name()

    def active_document(self) -> ActiveDocument | None:
        return self._state.active_document

    def _is_active(self, path: str | Path) -> bool:
        doc = self._state.active_document
        return doc is not None and same_path(doc.path, path)

    # ========== File I/O ==========

    async def read_file(self, path: Path) -> str:
        return await asyncio.to_thread(Path(path).read_text, encoding="utf-8")

    def _write(self, path: Path, content: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")

    async def write_file(self, path: Path, content: str) -> None:
        path = Path(path)
        await asyncio.to_thread(self._write, path, content)
        if self._is_active(path):
            doc = self._state.active_document
            self._state.active_document = doc.model_copy(update={"content": content, "selection": None})

    async def delete_file(self, path: Path) -> None:
        path = Path(path)
        await asyncio.to_thread(path.unlink)
        if self._is_active(path):
            self._state.active_document = None

    async def replace_range(self, path: str, target: TextRange | None, text: str) -> TextRange:
        active = self._is_active(path)
        current = self._state.active_document.content if active else await self.read_file(Path(path))

        new_content, new_range = splice(current, target, text)
        await asyncio.to_thread(self._write, Path(path), new_content)

        if active:
            doc = self._state.active_document
            self._state.active_document = doc.model_copy(
                update={"content": new_content, "selection": new_range if target is not None else None}
            )
        return new_range

    def _walk(self, root: Path, query: str, limit: int) -> list[FileSuggestion]:
        pattern = f"*{query.lower()}*" if query else "*"
        found: list[FileSuggestion] = []
        for dirpath, dirnames, filenames in os.walk(root):
            dirnames[:] = sorted(d for d in dirnames if d not in EXCLUDED_DIRS)
            for filename in sorted(filenames):
                full = Path(dirpath) / filename
                relative = full.relative_to(root).as_posix()
                if not fnmatch.fnmatch(relative.lower(), pattern):
                    continue
                found.append(FileSuggestion(name=filename, path=str(full), relative_path=relative))
                if len(found) >= limit:
                    return found
        return found

    async def find_files(self, query: str, limit: int) -> list[FileSuggestion]:
        root = self.workspace_root()
        if root is None:
            return []
        return await asyncio.to_thread(self._walk, root, query, limit)

    # ========== Interaction ==========

    async def show_diff(self, path: str, current: str, proposed: str) -> None:
        diff = self.diff_generator.generate_diff(current, proposed, path)
        await self.broadcaster.broadcast(ShowDiff(file_path=path, diff=diff))

    async def choose(self, title: str, options: list[str]) -> str | None:
        return await self.prompts.ask(title, options)

    async def show_info(self, message: str) -> None:
        await self.broadcaster.broadcast(Notification(message=message))
