"""
Reference Resolver - folds every kind of context reference into one prompt

Four origins feed one list of context items: inline bracket markers
(``[selection]``, ``[file]``, ``[workspace]``), context bubbles, @-mentioned
files (file bubbles carrying a path) and inline reference labels captured at
selection-to-chat time. Markers and labels are swapped for short bold labels
in the display copy; the provider-facing prompt lists the full content once
in a ``Context:`` section and repeats the user's unmodified question.

Resolution never fails the turn: a missing selection becomes an informational
notice in place of the marker, a missing file or workspace leaves the marker
as typed, and files that cannot be read or lie outside the workspace are
dropped.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Sequence

from loja.models.chat import ContextItem, ContextKind
from loja.models.messages import ContextBubble, InlineReference
from loja.services.editor_context import FILE_ICON, SELECTION_ICON, WORKSPACE_ICON, EditorContext

logger = logging.getLogger(__name__)

SELECTION_MARKER = "[selection]"
FILE_MARKER = "[file]"
WORKSPACE_MARKER = "[workspace]"

NO_SELECTION_NOTICE = (
    "**No selection found** - Please select some text first, or use the "
    '"Add Selection to Chat" command from the right-click menu.'
)

DEFAULT_ICONS = {
    ContextKind.SELECTION: SELECTION_ICON,
    ContextKind.FILE: FILE_ICON,
    ContextKind.WORKSPACE: WORKSPACE_ICON,
}


@dataclass
class ResolvedPrompt:
    """Result of resolving one user message"""

    display_text: str  # what the history shows
    prompt_text: str  # what the provider receives
    items: list[ContextItem] = field(default_factory=list)


def build_prompt(items: list[ContextItem], question: str) -> str:
    blocks = "\n\n".join(f"**{item.icon} {item.name}:**\n```\n{item.content}\n```" for item in items)
    return f"**Context:**\n{blocks}\n\n**Question:**\n{question}"


class ReferenceResolver:
    """Resolve markers, bubbles and inline references for one message"""

    def __init__(self, context: EditorContext):
        self.context = context

    async def resolve(
        self,
        raw_text: str,
        context_items: Sequence[ContextBubble] = (),
        inline_references: Sequence[InlineReference] = (),
    ) -> ResolvedPrompt:
        display = raw_text
        items: list[ContextItem] = []

        if SELECTION_MARKER in display:
            selection = self.context.current_selection()
            if selection:
                items.append(selection)
                display = display.replace(SELECTION_MARKER, selection.label, 1)
            else:
                display = display.replace(SELECTION_MARKER, NO_SELECTION_NOTICE, 1)

        if FILE_MARKER in display:
            current = self.context.current_file()
            if current:
                items.append(current)
                display = display.replace(FILE_MARKER, current.label, 1)

        if WORKSPACE_MARKER in display:
            workspace = await self.context.workspace_info()
            if workspace:
                items.append(workspace)
                display = display.replace(WORKSPACE_MARKER, workspace.label, 1)

        for bubble in context_items:
            item = await self._resolve_bubble(bubble)
            if item:
                items.append(item)

        for reference in inline_references:
            data = reference.data
            item = ContextItem(
                icon=data.icon or SELECTION_ICON,
                name=data.label,
                content=data.content,
                source_kind=ContextKind.SELECTION,
            )
            items.append(item)
            display = display.replace(reference.reference, item.label, 1)

        prompt = build_prompt(items, raw_text) if items else display
        logger.debug(f"[ReferenceResolver] Resolved {len(items)} context item(s)")
        return ResolvedPrompt(display_text=display, prompt_text=prompt, items=items)

    async def _resolve_bubble(self, bubble: ContextBubble) -> ContextItem | None:
        if bubble.type == ContextKind.FILE:
            path = bubble.path or bubble.full_name
            if path:
                # Files are re-read at send time
                return await self.context.file_context(path)
            if not bubble.content:
                return None
        return ContextItem(
            icon=bubble.icon or DEFAULT_ICONS[bubble.type],
            name=bubble.name,
            full_name=bubble.full_name,
            content=bubble.content,
            source_kind=bubble.type,
        )
