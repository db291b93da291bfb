"""
Editor Context - turns editor state into context items and chat-ready text
"""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path

from loja.models.chat import ContextItem, ContextKind
from loja.models.messages import SelectionCapture
from loja.services.editor_host import EXCLUDED_DIRS, EditorHost
from loja.services.errors import LojaError
from loja.services.workspace_files import WorkspaceFiles

logger = logging.getLogger(__name__)

SELECTION_ICON = "📝"
FILE_ICON = "📄"
WORKSPACE_ICON = "📁"

FILE_CONTEXT_LIMIT = 2000  # characters kept from an @-mentioned file
PROJECT_FILES = ("package.json", "tsconfig.json", "pyproject.toml", "README.md", ".gitignore")
STRUCTURE_SUFFIXES = (".ts", ".js", ".json", ".md", ".py")


def _sample_structure(root: Path, limit: int) -> list[str]:
    found: list[str] = []
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if d not in EXCLUDED_DIRS)
        for filename in sorted(filenames):
            if filename.endswith(STRUCTURE_SUFFIXES):
                found.append("./" + (Path(dirpath) / filename).relative_to(root).as_posix())
                if len(found) >= limit:
                    return found
    return found


class EditorContext:
    """Reads the editor host and shapes what it finds for the chat"""

    def __init__(self, host: EditorHost, files: WorkspaceFiles | None = None):
        self.host = host
        self.files = files or WorkspaceFiles(host)

    # ========== Context items ==========

    def current_selection(self) -> ContextItem | None:
        doc = self.host.active_document()
        if doc is None or not doc.has_selection:
            return None
        lines = doc.selection.line_label
        return ContextItem(
            icon=SELECTION_ICON,
            name=f"{doc.file_name}:{lines}",
            full_name=f"Selection from {doc.file_name} (lines {lines})",
            content=doc.selected_text,
            source_kind=ContextKind.SELECTION,
        )

    def current_file(self) -> ContextItem | None:
        doc = self.host.active_document()
        if doc is None:
            return None
        return ContextItem(
            icon=FILE_ICON,
            name=doc.file_name,
            full_name=self.host.relative_path(doc.path),
            path=doc.path,
            content=doc.content,
            source_kind=ContextKind.FILE,
        )

    async def workspace_info(self, sample_size: int = 10) -> ContextItem | None:
        root = self.host.workspace_root()
        if root is None:
            return None
        name = self.host.workspace_name() or root.name
        try:
            structure, project_files = await self._survey(root, sample_size)
        except OSError as e:
            logger.warning(f"[EditorContext] Cannot survey workspace {root}: {e}")
            return None

        content = "\n".join(
            [
                f"**Workspace: {name}**",
                f"Path: {root}",
                f"Project files: {', '.join(project_files)}",
                "",
                "**Structure:**",
                "\n".join(structure),
            ]
        )
        return ContextItem(
            icon=WORKSPACE_ICON,
            name=name,
            full_name=f"Workspace: {name}",
            content=content,
            source_kind=ContextKind.WORKSPACE,
        )

    async def file_context(self, path: str) -> ContextItem | None:
        """Fresh read of an @-mentioned workspace file; None when it cannot be read"""
        try:
            target = self.files.resolve(path)
            content = await self.host.read_file(target)
        except (LojaError, OSError, ValueError) as e:
            # UnicodeDecodeError and embedded NUL bytes are both ValueErrors
            logger.warning(f"[EditorContext] Error adding file to context: {e}")
            return None

        if len(content) > FILE_CONTEXT_LIMIT:
            content = content[:FILE_CONTEXT_LIMIT] + "\n... (truncated)"
        relative = target.relative_to(self.host.workspace_root()).as_posix()
        return ContextItem(
            icon=FILE_ICON,
            name=target.name,
            full_name=relative,
            path=relative,
            content=content,
            source_kind=ContextKind.FILE,
        )

    def selection_capture(self) -> SelectionCapture | None:
        """Selection snapshot for an inline reference label"""
        doc = self.host.active_document()
        if doc is None or not doc.has_selection:
            return None
        capture = SelectionCapture(
            file_name=doc.file_name,
            start_line=doc.selection.start.line + 1,
            end_line=doc.selection.end.line + 1,
            content=doc.selected_text,
            icon=SELECTION_ICON,
        )
        capture.name = capture.label
        return capture

    async def _survey(self, root: Path, sample_size: int) -> tuple[list[str], list[str]]:
        structure = await asyncio.to_thread(_sample_structure, root, sample_size)
        project_files = [name for name in PROJECT_FILES if (root / name).exists()]
        return structure, project_files

    # ========== Prompt text ==========

    def context_header(self) -> str | None:
        """The "Current Context" block prepended to every provider call"""
        doc = self.host.active_document()
        if doc is None:
            return None
        lines = [
            "**Current Context:**",
            f"- Workspace: {self.host.workspace_name() or 'Unknown'}",
            f"- Current file: `{doc.file_name}`",
            f"- File path: `{self.host.relative_path(doc.path)}`",
            f"- Language: {doc.language_id}",
        ]
        if doc.has_selection:
            lines.append(f"- Selected lines: {doc.selection.line_label}")
        return "\n".join(lines) + "\n"

    def file_message(self) -> str | None:
        doc = self.host.active_document()
        if doc is None:
            return None
        info = "\n".join(
            [
                "**File Context:**",
                f"- File: `{doc.file_name}`",
                f"- Path: `{self.host.relative_path(doc.path)}`",
                f"- Language: {doc.language_id}",
                f"- Lines: {doc.line_count}",
                f"- Workspace: {self.host.workspace_name() or 'Unknown'}",
                "",
                "**File Content:**",
            ]
        )
        return f"{info}\n\n```{doc.language_id}\n{doc.content}\n```"

    def selection_message(self) -> str | None:
        doc = self.host.active_document()
        if doc is None or not doc.has_selection:
            return None
        start, end = doc.selection.start, doc.selection.end
        info = "\n".join(
            [
                "**Selection Context:**",
                f"- File: `{doc.file_name}`",
                f"- Path: `{self.host.relative_path(doc.path)}`",
                f"- Language: {doc.language_id}",
                f"- Lines: {doc.selection.line_label}",
                f"- Characters: {start.character}-{end.character}",
                f"- Workspace: {self.host.workspace_name() or 'Unknown'}",
                "",
                "**Selected Content:**",
            ]
        )
        return f"{info}\n\n```{doc.language_id}\n{doc.selected_text}\n```"

    async def workspace_message(self, sample_size: int = 20) -> str | None:
        root = self.host.workspace_root()
        if root is None:
            return None
        structure, project_files = await self._survey(root, sample_size)
        return "\n".join(
            [
                "**Workspace Information:**",
                f"- Name: {self.host.workspace_name() or root.name}",
                f"- Path: `{root}`",
                f"- Project files found: {', '.join(project_files)}",
                "",
                "**Directory Structure (sample):**",
                "```",
                "\n".join(structure),
                "```",
            ]
        )
