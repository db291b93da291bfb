"""Models module - Pydantic data models"""

from .chat import CodeBlock, ContextItem, ContextKind, EditProposal, EditTarget, Message, PendingEdit, Role
from .editor import ActiveDocument, DiffHunk, DiffResult, EditorState, FileSuggestion, Position, TextRange
from .messages import ContextBubble, InlineReference, SelectionCapture, parse_inbound
from .provider import ProviderId, ProviderSettings

__all__ = [
    # Chat models
    "CodeBlock",
    "ContextItem",
    "ContextKind",
    "EditProposal",
    "EditTarget",
    "Message",
    "PendingEdit",
    "Role",
    # Editor models
    "ActiveDocument",
    "DiffHunk",
    "DiffResult",
    "EditorState",
    "FileSuggestion",
    "Position",
    "TextRange",
    # Surface messages
    "ContextBubble",
    "InlineReference",
    "SelectionCapture",
    "parse_inbound",
    # Providers
    "ProviderId",
    "ProviderSettings",
]
