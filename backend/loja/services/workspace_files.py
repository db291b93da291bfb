"""
Workspace Files - path-scoped reads and writes for /read, /edit and apply
"""

from __future__ import annotations

import logging
from pathlib import Path

from loja.services.editor_host import EditorHost
from loja.services.errors import NoWorkspaceError, ScopingError

logger = logging.getLogger(__name__)

READ_LIMIT = 4000  # characters shown by /read
READ_SCOPE_NOTICE = "Error: Can only read files within the workspace."
EDIT_SCOPE_NOTICE = "Error: Can only edit files within the workspace."


def fenced(content: str, language: str = "") -> str:
    return f"```{language}\n{content}\n```"


class WorkspaceFiles:
    """Every path is resolved against the first workspace root and must stay inside it"""

    def __init__(self, host: EditorHost):
        self.host = host

    def resolve(self, path: str) -> Path:
        """Absolute path for ``path``; raises ScopingError when it escapes the root"""
        root = self.host.workspace_root()
        if root is None:
            raise NoWorkspaceError("No workspace folder open.")
        candidate = (root / path).resolve()
        if candidate != root and root not in candidate.parents:
            raise ScopingError(path)
        return candidate

    async def read_for_chat(self, path: str) -> str:
        """``/read`` result as chat text; failures become text notices"""
        try:
            target = self.resolve(path)
        except NoWorkspaceError as e:
            return str(e)
        except ScopingError:
            logger.warning(f"[WorkspaceFiles] Refused read outside workspace: {path}")
            return READ_SCOPE_NOTICE

        try:
            content = await self.host.read_file(target)
        except (OSError, UnicodeDecodeError) as e:
            return f"Error reading file: {e}"

        if len(content) > READ_LIMIT:
            return (
                f"File is too large to display in chat (showing first {READ_LIMIT} chars):\n"
                + fenced(content[:READ_LIMIT])
            )
        return fenced(content)

    async def write(self, path: str, content: str) -> Path:
        """Scoped write; raises NoWorkspaceError, ScopingError or OSError"""
        target = self.resolve(path)
        await self.host.write_file(target, content)
        logger.info(f"[WorkspaceFiles] Wrote {target} ({len(content)} chars)")
        return target

    async def edit(self, path: str, content: str) -> str:
        """``/edit`` result as a status line"""
        try:
            await self.write(path, content)
        except NoWorkspaceError as e:
            return str(e)
        except ScopingError:
            logger.warning(f"[WorkspaceFiles] Refused write outside workspace: {path}")
            return EDIT_SCOPE_NOTICE
        except OSError as e:
            return f"Error editing file: {e}"
        return f"File {path} updated successfully."

    async def read_existing(self, target: Path) -> str:
        """Current content of a resolved path, empty when it does not exist yet"""
        try:
            return await self.host.read_file(target)
        except FileNotFoundError:
            return ""
