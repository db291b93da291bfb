"""Editor state models pushed by the IDE plugin"""

from __future__ import annotations

import re

from .base import CamelModel


def base_name(path: str) -> str:
    """File name of a path written with either separator"""
    return re.split(r"[\\/]", path)[-1] or "unknown"


class Position(CamelModel):
    """Zero-based line/character position"""

    line: int
    character: int = 0


class TextRange(CamelModel):
    """Span between two positions"""

    start: Position
    end: Position

    @property
    def is_empty(self) -> bool:
        return self.start == self.end

    @property
    def line_label(self) -> str:
        """1-based inclusive line span, e.g. ``3-5``"""
        return f"{self.start.line + 1}-{self.end.line + 1}"


def _line_starts(content: str) -> list[int]:
    return [0] + [i + 1 for i, ch in enumerate(content) if ch == "\n"]


def offset_at(content: str, position: Position) -> int:
    """Convert a position to a string offset, clamped to the content"""
    starts = _line_starts(content)
    if position.line < 0:
        return 0
    if position.line >= len(starts):
        return len(content)
    line_end = starts[position.line + 1] - 1 if position.line + 1 < len(starts) else len(content)
    return min(starts[position.line] + max(position.character, 0), line_end)


def position_at(content: str, offset: int) -> Position:
    """Convert a string offset to a position"""
    offset = max(0, min(offset, len(content)))
    head = content[:offset]
    line = head.count("\n")
    return Position(line=line, character=offset - (head.rfind("\n") + 1))


def full_range(content: str) -> TextRange:
    return TextRange(start=Position(line=0, character=0), end=position_at(content, len(content)))


def splice(content: str, target: TextRange | None, text: str) -> tuple[str, TextRange]:
    """Replace ``target`` (whole content when None) with ``text``.

    Returns the new content and the range the inserted text now occupies.
    """
    if target is None:
        return text, full_range(text)
    start = offset_at(content, target.start)
    end = max(start, offset_at(content, target.end))
    new_content = content[:start] + text + content[end:]
    return new_content, TextRange(
        start=position_at(new_content, start),
        end=position_at(new_content, start + len(text)),
    )


class ActiveDocument(CamelModel):
    """The document focused in the IDE"""

    path: str
    content: str
    language_id: str = "plaintext"
    selection: TextRange | None = None

    @property
    def file_name(self) -> str:
        return base_name(self.path)

    @property
    def line_count(self) -> int:
        return len(_line_starts(self.content))

    @property
    def has_selection(self) -> bool:
        return self.selection is not None and not self.selection.is_empty

    def text_in(self, target: TextRange) -> str:
        start = offset_at(self.content, target.start)
        end = offset_at(self.content, target.end)
        return self.content[start:end]

    @property
    def selected_text(self) -> str:
        if not self.has_selection:
            return ""
        return self.text_in(self.selection)


class EditorState(CamelModel):
    """Snapshot of the IDE state, pushed on focus/selection changes"""

    workspace_root: str | None = None
    workspace_name: str | None = None
    active_document: ActiveDocument | None = None


class FileSuggestion(CamelModel):
    """A workspace file offered for an @-mention"""

    name: str
    path: str
    relative_path: str


class DiffHunk(CamelModel):
    """A single change hunk between current and proposed content"""

    start_line: int  # 1-indexed
    end_line: int
    original_content: str
    new_content: str
    change_type: str  # "add", "modify", "delete"


class DiffResult(CamelModel):
    """Side-by-side comparison of current vs. proposed file content"""

    file_path: str
    hunks: list[DiffHunk]
    unified_diff: str
    preview_content: str
