"""
Edit Applier - applies assistant code to the editor, reversibly

Inline apply replaces the active selection (or the whole active document);
preview-and-apply targets any workspace file and runs a small state machine:

    Proposed --Show Diff--> Proposed (repeatable)
    Proposed --Apply------> Applied
    Proposed --Cancel-----> Cancelled

Both successful paths return a PendingEdit that undoes exactly that edit.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from loja.models.chat import EditTarget, PendingEdit
from loja.services.editor_host import EditorHost
from loja.services.errors import NoWorkspaceError, ScopingError
from loja.services.workspace_files import EDIT_SCOPE_NOTICE, WorkspaceFiles

logger = logging.getLogger(__name__)

SHOW_DIFF = "Show Diff"
APPLY = "Apply"
CANCEL = "Cancel"
PREVIEW_CHOICES = [SHOW_DIFF, APPLY, CANCEL]

NO_OPEN_FILE = "No file is currently open."
UNDO_APPLIED = "Undo applied."


class PreviewState(str, Enum):
    PROPOSED = "proposed"
    APPLIED = "applied"
    CANCELLED = "cancelled"


@dataclass
class EditOutcome:
    """Notice for the history plus the edit to remember, if one was made"""

    notice: str
    pending: PendingEdit | None = None


def wants_selection(target: str | None) -> bool:
    return (target or "").strip().lower() == EditTarget.SELECTION.value


class EditApplier:
    """Write assistant code into the workspace and undo it once"""

    def __init__(self, host: EditorHost, files: WorkspaceFiles):
        self.host = host
        self.files = files

    async def apply_inline(self, target: str | None, code: str) -> EditOutcome:
        """Replace the selection (when targeted and non-empty) or the whole active document"""
        doc = self.host.active_document()
        if doc is None:
            return EditOutcome(NO_OPEN_FILE)

        try:
            self.files.resolve(doc.path)
        except NoWorkspaceError as e:
            return EditOutcome(str(e))
        except ScopingError:
            logger.warning(f"[EditApplier] Refused inline edit outside workspace: {doc.path}")
            return EditOutcome(EDIT_SCOPE_NOTICE)

        use_selection = wants_selection(target) and doc.has_selection
        previous = doc.selected_text if use_selection else doc.content
        try:
            new_range = await self.host.replace_range(doc.path, doc.selection if use_selection else None, code)
        except OSError as e:
            return EditOutcome(f"Error editing file: {e}")

        scope = "selection" if use_selection else "entire file"
        logger.info(f"[EditApplier] Applied {len(code)} chars to {scope} of {doc.path}")
        return EditOutcome(
            f'Applied suggestion to {scope}. Send "undo" to revert.',
            PendingEdit(
                path=doc.path,
                range=new_range if use_selection else None,
                previous_content=previous,
            ),
        )

    async def preview(self, path: str, new_content: str) -> EditOutcome | None:
        """Ask Show Diff / Apply / Cancel until the user applies or dismisses"""
        try:
            target = self.files.resolve(path)
        except NoWorkspaceError as e:
            return EditOutcome(str(e))
        except ScopingError:
            logger.warning(f"[EditApplier] Refused preview outside workspace: {path}")
            return EditOutcome(EDIT_SCOPE_NOTICE)

        state = PreviewState.PROPOSED
        while state == PreviewState.PROPOSED:
            choice = await self.host.choose(f"Preview and apply edit to {path}?", PREVIEW_CHOICES)
            if choice == SHOW_DIFF:
                current = await self.files.read_existing(target)
                await self.host.show_diff(path, current, new_content)
            elif choice == APPLY:
                state = PreviewState.APPLIED
            else:
                state = PreviewState.CANCELLED

        if state == PreviewState.CANCELLED:
            logger.info(f"[EditApplier] Preview of {path} cancelled")
            return None

        created = not target.exists()
        previous = await self.files.read_existing(target)
        try:
            await self.files.write(path, new_content)
        except OSError as e:
            return EditOutcome(f"Error editing file: {e}")
        return EditOutcome(
            f"File {path} updated successfully.",
            PendingEdit(path=str(target), range=None, previous_content=previous, created=created),
        )

    async def undo(self, pending: PendingEdit) -> str:
        """Put the recorded previous content back over the applied range"""
        try:
            if pending.created:
                await self.host.delete_file(Path(pending.path))
            else:
                await self.host.replace_range(pending.path, pending.range, pending.previous_content)
        except OSError as e:
            logger.error(f"[EditApplier] Undo of {pending.path} failed: {e}")
            return f"Undo failed: {e}"
        logger.info(f"[EditApplier] Reverted edit on {pending.path}")
        return UNDO_APPLIED
