"""Chat data models: history entries, context items, edit proposals"""

from __future__ import annotations

from enum import Enum

from pydantic import Field

from .base import CamelModel
from .editor import TextRange


class Role(str, Enum):
    """Kinds of history entries"""

    USER = "user"
    AI = "ai"
    ERROR = "error"
    LOADING = "loading"
    SYSTEM = "system"


TERMINAL_ROLES = frozenset({Role.AI, Role.ERROR})


class EditTarget(str, Enum):
    """Where a proposed code block should land"""

    SELECTION = "selection"
    FILE = "file"  # whole active document
    PATH = "path"  # arbitrary workspace file, via preview and apply


class EditProposal(CamelModel):
    """Apply affordance attached to an assistant message"""

    version: int = 1
    target: EditTarget
    path: str | None = None
    content: str


class Message(CamelModel):
    """A single history entry"""

    role: Role
    content: str
    proposals: list[EditProposal] | None = None  # apply affordances on ai replies
    prompt: str | None = Field(default=None, exclude=True)  # provider-facing text of a user turn


class ContextKind(str, Enum):
    """Origin kinds of a resolved context item"""

    SELECTION = "selection"
    FILE = "file"
    WORKSPACE = "workspace"


class ContextItem(CamelModel):
    """Resolved context unit folded into one outgoing prompt"""

    icon: str
    name: str
    content: str
    source_kind: ContextKind
    full_name: str | None = None
    path: str | None = None

    @property
    def label(self) -> str:
        return f"**{self.icon} {self.name}**"


class CodeBlock(CamelModel):
    """First fenced block found in an assistant reply"""

    before: str  # text preceding the opening fence
    language: str = ""
    code: str


class PendingEdit(CamelModel):
    """Enough state to reverse exactly one applied edit"""

    path: str
    range: TextRange | None = None  # None: whole document
    previous_content: str
    created: bool = False  # the edit created the file; undo deletes it
