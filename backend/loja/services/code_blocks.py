"""
Code block extraction and edit proposals from assistant replies

Two conventions are understood. The structured one is a fenced block tagged
``loja-edit`` whose body is JSON::

    ```loja-edit
    {"version": 1, "target": "path", "path": "src/app.py", "content": "..."}
    ```

``target`` is ``selection``, ``file`` (whole active document) or ``path``
(which requires ``path``). Untagged replies fall back to plain-text parsing of
the first fenced block: ``Replace content of <path> with:`` before the fence
yields a path proposal, and the words "selection" / "current file" yield an
inline proposal.
"""

from __future__ import annotations

import json
import logging
import re

from pydantic import ValidationError

from loja.models.chat import CodeBlock, EditProposal, EditTarget

logger = logging.getLogger(__name__)

FENCE = "```"
PROPOSAL_TAG = "loja-edit"
PROPOSAL_VERSION = 1
REPLACE_MARKER = "Replace content of "

_INFO_STRING = re.compile(r"[\w+#.\-]*")
_PROPOSAL_BLOCK = re.compile(r"```" + re.escape(PROPOSAL_TAG) + r"[ \t]*\n([\s\S]*?)```")


def extract_first_code_block(text: str) -> CodeBlock | None:
    """First pair of triple-backtick fences, or None"""
    start = text.find(FENCE)
    if start == -1:
        return None
    end = text.find(FENCE, start + len(FENCE))
    if end == -1:
        return None

    inner = text[start + len(FENCE):end]
    language = ""
    newline = inner.find("\n")
    if newline != -1 and _INFO_STRING.fullmatch(inner[:newline].strip()):
        language = inner[:newline].strip()
        inner = inner[newline + 1:]
    if inner.endswith("\n"):
        inner = inner[:-1]
    return CodeBlock(before=text[:start], language=language, code=inner)


def _structured_proposals(text: str) -> list[EditProposal] | None:
    match = _PROPOSAL_BLOCK.search(text)
    if not match:
        return None
    try:
        proposal = EditProposal.model_validate(json.loads(match.group(1)))
    except (json.JSONDecodeError, ValidationError) as e:
        logger.warning(f"[CodeBlocks] Ignoring malformed {PROPOSAL_TAG} block: {e}")
        return None
    if proposal.version != PROPOSAL_VERSION:
        logger.warning(f"[CodeBlocks] Unsupported {PROPOSAL_TAG} version: {proposal.version}")
        return None
    if proposal.target == EditTarget.PATH and not proposal.path:
        logger.warning(f"[CodeBlocks] {PROPOSAL_TAG} block targets a path but names none")
        return None
    return [proposal]


def _replace_target_path(before: str) -> str | None:
    index = before.find(REPLACE_MARKER)
    if index == -1:
        return None
    after = before[index + len(REPLACE_MARKER):]
    with_index = after.find(" with:")
    if with_index != -1:
        path = after[:with_index].strip()
    else:
        tokens = after.split()
        path = tokens[0] if tokens else ""
    return path.strip("`'\"") or None


def find_edit_proposals(text: str) -> list[EditProposal]:
    """Apply affordances for one assistant reply; empty when it offers none"""
    structured = _structured_proposals(text)
    if structured is not None:
        return structured

    block = extract_first_code_block(text)
    if block is None or not block.code:
        return []

    proposals = []
    path = _replace_target_path(block.before)
    if path:
        proposals.append(EditProposal(target=EditTarget.PATH, path=path, content=block.code))

    lowered = block.before.lower()
    if "selection" in lowered:
        proposals.append(EditProposal(target=EditTarget.SELECTION, content=block.code))
    elif "current file" in lowered:
        proposals.append(EditProposal(target=EditTarget.FILE, content=block.code))
    return proposals
