"""
Diff Generator - current vs. proposed content for the preview-and-apply flow
"""

from __future__ import annotations

from difflib import SequenceMatcher, unified_diff

from loja.models.editor import DiffHunk, DiffResult


def _terminated_lines(content: str) -> list[str]:
    lines = content.splitlines(keepends=True)
    # Without a trailing newline the last line would fuse with the diff marker
    if lines and not lines[-1].endswith("\n"):
        lines[-1] += "\n"
    return lines


class DiffGenerator:
    """Build a side-by-side comparison payload for a proposed edit"""

    def generate_diff(self, current: str, proposed: str, file_path: str) -> DiffResult:
        current_lines = _terminated_lines(current)
        proposed_lines = _terminated_lines(proposed)

        unified = unified_diff(
            current_lines,
            proposed_lines,
            fromfile=f"{file_path} (Current)",
            tofile=f"{file_path} (Proposed)",
        )

        return DiffResult(
            file_path=file_path,
            hunks=self._hunks(current_lines, proposed_lines),
            unified_diff="".join(unified),
            preview_content=proposed,
        )

    def _hunks(self, current: list[str], proposed: list[str]) -> list[DiffHunk]:
        matcher = SequenceMatcher(None, current, proposed)
        kinds = {"insert": "add", "delete": "delete", "replace": "modify"}
        return [
            DiffHunk(
                start_line=i1 + 1,
                end_line=i2,
                original_content="".join(current[i1:i2]),
                new_content="".join(proposed[j1:j2]),
                change_type=kinds[tag],
            )
            for tag, i1, i2, j1, j2 in matcher.get_opcodes()
            if tag != "equal"
        ]
