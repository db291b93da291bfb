"""Tagged JSON messages exchanged with the chat surfaces"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import Field, TypeAdapter

from .base import CamelModel
from .chat import ContextKind, Message
from .editor import DiffResult, FileSuggestion
from .provider import ProviderId


class SelectionCapture(CamelModel):
    """Selection content captured when it was sent to the chat"""

    type: Literal["selection"] = "selection"
    name: str | None = None
    file_name: str
    start_line: int
    end_line: int
    content: str
    icon: str = "📝"

    @property
    def label(self) -> str:
        return f"{self.file_name}:{self.start_line}-{self.end_line}"


class InlineReference(CamelModel):
    """Label typed into the input that carries hidden captured content"""

    reference: str
    data: SelectionCapture


class ContextBubble(CamelModel):
    """Context attached above the input box"""

    type: ContextKind
    name: str
    full_name: str | None = None
    path: str | None = None
    content: str = ""
    icon: str | None = None


# ---------- Inbound (surface -> controller) ----------


class SetProvider(CamelModel):
    type: Literal["setProvider"]
    provider: ProviderId


class UserMessage(CamelModel):
    type: Literal["userMessage"]
    text: str
    context_items: list[ContextBubble] = []
    inline_references: list[InlineReference] = []


class ChatRequest(CamelModel):
    """REST counterpart of a userMessage frame"""

    text: str
    context_items: list[ContextBubble] = []
    inline_references: list[InlineReference] = []


class PreviewEdit(CamelModel):
    type: Literal["previewEdit"]
    file_path: str
    new_content: str


class SendCurrentFile(CamelModel):
    type: Literal["sendCurrentFile"]


class SendSelection(CamelModel):
    type: Literal["sendSelection"]


class SendWorkspaceInfo(CamelModel):
    type: Literal["sendWorkspaceInfo"]


class AddCurrentFileContext(CamelModel):
    type: Literal["addCurrentFileContext"]


class AddSelectionContext(CamelModel):
    type: Literal["addSelectionContext"]


class AddWorkspaceContext(CamelModel):
    type: Literal["addWorkspaceContext"]


class ShowContextMenu(CamelModel):
    type: Literal["showContextMenu"]


class RequestHistory(CamelModel):
    type: Literal["requestHistory"]


class ClearHistory(CamelModel):
    type: Literal["clearHistory"]


class RequestFileSuggestions(CamelModel):
    type: Literal["requestFileSuggestions"]
    query: str = ""
    cursor_pos: int = 0


class AddFileToContext(CamelModel):
    type: Literal["addFileToContext"]
    file_path: str


class ApplyInline(CamelModel):
    type: Literal["applyInline"]
    target: str | None = None  # "selection", "current file" or null
    code_block: str


class PromptResponse(CamelModel):
    type: Literal["promptResponse"]
    prompt_id: str
    choice: str | None = None


class WebviewReady(CamelModel):
    type: Literal["webviewReady"]


InboundMessage = Annotated[
    Union[
        SetProvider,
        UserMessage,
        PreviewEdit,
        SendCurrentFile,
        SendSelection,
        SendWorkspaceInfo,
        AddCurrentFileContext,
        AddSelectionContext,
        AddWorkspaceContext,
        ShowContextMenu,
        RequestHistory,
        ClearHistory,
        RequestFileSuggestions,
        AddFileToContext,
        ApplyInline,
        PromptResponse,
        WebviewReady,
    ],
    Field(discriminator="type"),
]

_inbound_adapter: TypeAdapter[InboundMessage] = TypeAdapter(InboundMessage)


def parse_inbound(data: Any) -> InboundMessage:
    """Validate one inbound frame; raises pydantic.ValidationError"""
    return _inbound_adapter.validate_python(data)


# ---------- Outbound (controller -> surface) ----------


class HistoryEvent(CamelModel):
    type: Literal["history"] = "history"
    history: list[Message]


class ShowFileSuggestions(CamelModel):
    type: Literal["showFileSuggestions"] = "showFileSuggestions"
    files: list[FileSuggestion]
    cursor_pos: int


class InsertLabel(CamelModel):
    type: Literal["insertLabel"] = "insertLabel"
    label: str
    context_item: SelectionCapture


class AddContext(CamelModel):
    type: Literal["addContext"] = "addContext"
    context_type: ContextKind
    name: str
    full_name: str
    content: str
    icon: str


class ShowDiff(CamelModel):
    type: Literal["showDiff"] = "showDiff"
    file_path: str
    diff: DiffResult


class Prompt(CamelModel):
    type: Literal["prompt"] = "prompt"
    prompt_id: str
    title: str
    options: list[str]


class Notification(CamelModel):
    type: Literal["notification"] = "notification"
    message: str


OutboundMessage = Union[
    HistoryEvent,
    ShowFileSuggestions,
    InsertLabel,
    AddContext,
    ShowDiff,
    Prompt,
    Notification,
]
