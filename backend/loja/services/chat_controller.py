"""
Chat Controller - one conversation shared by the panel and the detached surface

Every inbound surface message lands in ``handle``. User turns are serialized:
a second message sent while a reply is pending waits for the first to settle.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from loja.models.chat import ContextItem, Message, PendingEdit, Role
from loja.models.messages import (
    AddContext,
    AddCurrentFileContext,
    AddFileToContext,
    AddSelectionContext,
    AddWorkspaceContext,
    ApplyInline,
    ClearHistory,
    HistoryEvent,
    InboundMessage,
    InsertLabel,
    Notification,
    PreviewEdit,
    PromptResponse,
    RequestFileSuggestions,
    RequestHistory,
    SendCurrentFile,
    SendSelection,
    SendWorkspaceInfo,
    SetProvider,
    ShowContextMenu,
    ShowFileSuggestions,
    UserMessage,
    WebviewReady,
)
from loja.services.broadcaster import Surface, SurfaceBroadcaster, SurfaceKind
from loja.services.code_blocks import find_edit_proposals
from loja.services.config_manager import ConfigManager
from loja.services.dispatcher import ProviderDispatcher
from loja.services.edit_applier import NO_OPEN_FILE, EditApplier, EditOutcome
from loja.services.editor_context import EditorContext
from loja.services.editor_host import EditorHost, PromptBroker
from loja.services.errors import ProviderError
from loja.services.history_store import HistoryStore
from loja.services.llm_service import LLMService
from loja.services.reference_resolver import ReferenceResolver
from loja.services.workspace_files import WorkspaceFiles

logger = logging.getLogger(__name__)

UNDO_COMMAND = "undo"
LOADING_TEXT = "Thinking..."
WELCOME_TEXT = (
    "👋 Welcome to Loja! Ask any AI directly. "
    "Type @ to add files, or right-click code to add a selection."
)
NO_SELECTION = "No text selected"
NO_TEXT_SELECTED = "No text is selected."
NO_WORKSPACE = "No workspace folder open."

SUGGESTION_LIMIT = 20  # with a query
BROWSE_LIMIT = 50  # empty query

CONTEXT_MENU_TITLE = "Add context"
CONTEXT_MENU = ["Current file", "Selection", "Workspace"]

Handler = Callable[[InboundMessage, "SurfaceKind | None"], Awaitable[None]]


class ChatController:
    """Owns history, the pending edit and the provider selection for one window"""

    def __init__(
        self,
        config_manager: ConfigManager,
        host: EditorHost,
        broadcaster: SurfaceBroadcaster,
        prompts: PromptBroker | None = None,
        llm_service: LLMService | None = None,
    ):
        self.config_manager = config_manager
        self.host = host
        self.broadcaster = broadcaster
        self.prompts = prompts

        self.files = WorkspaceFiles(host)
        self.context = EditorContext(host, self.files)
        self.llm_service = llm_service or LLMService(config_manager)
        self.dispatcher = ProviderDispatcher(config_manager, self.llm_service, self.files, self.context)
        self.resolver = ReferenceResolver(self.context)
        self.applier = EditApplier(host, self.files)

        self.history = HistoryStore()
        self._turn_lock = asyncio.Lock()
        self._pending_edit: PendingEdit | None = None
        self._tasks: set[asyncio.Task] = set()

        self._handlers: dict[type, Handler] = {
            SetProvider: self._set_provider,
            UserMessage: self._user_message,
            PreviewEdit: self._preview_edit,
            SendCurrentFile: self._send_current_file,
            SendSelection: self._send_selection,
            SendWorkspaceInfo: self._send_workspace_info,
            AddCurrentFileContext: self._add_current_file_context,
            AddSelectionContext: self._add_selection_context,
            AddWorkspaceContext: self._add_workspace_context,
            ShowContextMenu: self._show_context_menu,
            RequestHistory: self._request_history,
            ClearHistory: self._clear_history,
            RequestFileSuggestions: self._request_file_suggestions,
            AddFileToContext: self._add_file_to_context,
            ApplyInline: self._apply_inline,
            PromptResponse: self._prompt_response,
            WebviewReady: self._webview_ready,
        }

    # ========== Surfaces ==========

    async def attach_surface(self, kind: SurfaceKind, surface: Surface) -> None:
        """Register a surface and bring it up to date"""
        self.broadcaster.attach(kind, surface)
        await self.broadcaster.send(kind, HistoryEvent(history=self.history.snapshot()))
        if self.config_manager.welcome_enabled():
            await self.broadcaster.send(kind, Notification(message=WELCOME_TEXT))

    def detach_surface(self, kind: SurfaceKind, surface: Surface) -> None:
        self.broadcaster.detach(kind, surface)

    async def publish(self) -> None:
        await self.broadcaster.broadcast(HistoryEvent(history=self.history.snapshot()))

    async def _post(self, message: Message) -> None:
        self.history.append(message)
        await self.publish()

    # ========== Dispatch ==========

    def submit(self, message: InboundMessage, origin: SurfaceKind | None = None) -> asyncio.Task:
        """Handle a message in the background so the receive loop stays free"""
        task = asyncio.create_task(self.handle(message, origin))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def handle(self, message: InboundMessage, origin: SurfaceKind | None = None) -> None:
        handler = self._handlers.get(type(message))
        if handler is None:
            logger.warning(f"[ChatController] No handler for {type(message).__name__}")
            return
        try:
            await handler(message, origin)
        except Exception:
            logger.exception(f"[ChatController] Handling {message.type} failed")

    async def drain(self) -> None:
        """Wait for every background handler (shutdown and tests)"""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ========== User turns ==========

    async def _user_message(self, message: UserMessage, origin: SurfaceKind | None) -> None:
        if message.text.strip().lower() == UNDO_COMMAND:
            await self.undo()
            return
        await self.run_turn(message.text, message.context_items, message.inline_references)

    async def run_turn(self, text: str, context_items=(), inline_references=()) -> Message:
        """One full user turn; returns the terminal entry it settled with"""
        async with self._turn_lock:
            resolved = await self.resolver.resolve(text, context_items, inline_references)
            prior = self.history.conversation()

            await self._post(Message(role=Role.USER, content=resolved.display_text, prompt=resolved.prompt_text))
            await self._post(Message(role=Role.LOADING, content=LOADING_TEXT))

            try:
                reply = await self.dispatcher.dispatch(resolved.prompt_text, prior)
                entry = Message(role=Role.AI, content=reply, proposals=find_edit_proposals(reply) or None)
            except ProviderError as e:
                logger.warning(f"[ChatController] Provider call failed: {e}")
                entry = Message(role=Role.ERROR, content=f"Error: {e}")
            except asyncio.CancelledError:
                self.history.remove_where(lambda m: m.role == Role.LOADING)
                raise
            except Exception as e:
                logger.exception("[ChatController] Unexpected failure while dispatching")
                entry = Message(role=Role.ERROR, content=f"Error: {e}")

            self.history.settle(entry)
            await self.publish()
            return entry

    # ========== Edits ==========

    async def _remember(self, outcome: EditOutcome | None) -> None:
        if outcome is None:
            return
        if outcome.pending is not None:
            self._pending_edit = outcome.pending
        await self._post(Message(role=Role.SYSTEM, content=outcome.notice))

    async def undo(self) -> bool:
        """Revert the most recent applied edit once; False when there is nothing to undo"""
        pending = self._pending_edit
        if pending is None:
            logger.info("[ChatController] Nothing to undo")
            return False
        self._pending_edit = None
        notice = await self.applier.undo(pending)
        await self._post(Message(role=Role.SYSTEM, content=notice))
        return True

    async def _apply_inline(self, message: ApplyInline, origin: SurfaceKind | None) -> None:
        await self._remember(await self.applier.apply_inline(message.target, message.code_block))

    async def _preview_edit(self, message: PreviewEdit, origin: SurfaceKind | None) -> None:
        await self._remember(await self.applier.preview(message.file_path, message.new_content))

    # ========== Sending editor state ==========

    async def _send_current_file(self, message: SendCurrentFile, origin: SurfaceKind | None) -> None:
        text = self.context.file_message()
        await self._post(Message(role=Role.USER, content=text) if text else Message(role=Role.SYSTEM, content=NO_OPEN_FILE))

    async def _send_selection(self, message: SendSelection, origin: SurfaceKind | None) -> None:
        if self.host.active_document() is None:
            await self._post(Message(role=Role.SYSTEM, content=NO_OPEN_FILE))
            return
        text = self.context.selection_message()
        await self._post(Message(role=Role.USER, content=text) if text else Message(role=Role.SYSTEM, content=NO_TEXT_SELECTED))

    async def _send_workspace_info(self, message: SendWorkspaceInfo, origin: SurfaceKind | None) -> None:
        try:
            text = await self.context.workspace_message()
        except OSError as e:
            await self._post(Message(role=Role.SYSTEM, content=f"Could not read workspace structure: {e}"))
            return
        await self._post(Message(role=Role.USER, content=text) if text else Message(role=Role.SYSTEM, content=NO_WORKSPACE))

    # ========== Context bubbles ==========

    async def _reply_context(self, origin: SurfaceKind | None, item: ContextItem | None) -> None:
        if item is None:
            return
        event = AddContext(
            context_type=item.source_kind,
            name=item.name,
            full_name=item.full_name or item.name,
            content=item.content,
            icon=item.icon,
        )
        if origin is None:
            await self.broadcaster.broadcast(event)
        else:
            await self.broadcaster.send(origin, event)

    async def _add_current_file_context(self, message, origin: SurfaceKind | None) -> None:
        await self._reply_context(origin, self.context.current_file())

    async def _add_selection_context(self, message, origin: SurfaceKind | None) -> None:
        await self._reply_context(origin, self.context.current_selection())

    async def _add_workspace_context(self, message, origin: SurfaceKind | None) -> None:
        await self._reply_context(origin, await self.context.workspace_info(sample_size=20))

    async def _add_file_to_context(self, message: AddFileToContext, origin: SurfaceKind | None) -> None:
        await self._reply_context(origin, await self.context.file_context(message.file_path))

    async def _show_context_menu(self, message: ShowContextMenu, origin: SurfaceKind | None) -> None:
        choice = await self.host.choose(CONTEXT_MENU_TITLE, CONTEXT_MENU)
        if choice == "Current file":
            await self._add_current_file_context(message, origin)
        elif choice == "Selection":
            await self._add_selection_context(message, origin)
        elif choice == "Workspace":
            await self._add_workspace_context(message, origin)

    async def _request_file_suggestions(self, message: RequestFileSuggestions, origin: SurfaceKind | None) -> None:
        limit = SUGGESTION_LIMIT if message.query else BROWSE_LIMIT
        files = await self.host.find_files(message.query, limit)
        await self.broadcaster.broadcast(ShowFileSuggestions(files=files, cursor_pos=message.cursor_pos))

    # ========== Housekeeping ==========

    async def _set_provider(self, message: SetProvider, origin: SurfaceKind | None) -> None:
        self.config_manager.set_provider(message.provider)

    async def _request_history(self, message: RequestHistory, origin: SurfaceKind | None) -> None:
        event = HistoryEvent(history=self.history.snapshot())
        if origin is None:
            await self.broadcaster.broadcast(event)
        else:
            await self.broadcaster.send(origin, event)

    async def _clear_history(self, message: ClearHistory, origin: SurfaceKind | None) -> None:
        async with self._turn_lock:
            self.history.clear()
        await self.publish()

    async def _prompt_response(self, message: PromptResponse, origin: SurfaceKind | None) -> None:
        if self.prompts is None or not self.prompts.resolve(message.prompt_id, message.choice):
            logger.info(f"[ChatController] Ignoring answer to unknown prompt {message.prompt_id}")

    async def _webview_ready(self, message: WebviewReady, origin: SurfaceKind | None) -> None:
        logger.debug(f"[ChatController] {origin.value if origin else 'unknown'} surface ready")

    # ========== Editor commands ==========

    async def add_selection_to_chat(self) -> bool:
        """Hand the current selection to a chat surface as an inline reference label"""
        capture = self.context.selection_capture()
        if capture is None:
            await self.host.show_info(NO_SELECTION)
            return False
        kind = await self.broadcaster.first_live([SurfaceKind.PANEL, SurfaceKind.DETACHED])
        if kind is None:
            logger.warning("[ChatController] No chat surface open for the selection")
            return False
        return await self.broadcaster.send(kind, InsertLabel(label=capture.label, context_item=capture))
