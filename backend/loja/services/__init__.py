"""Services module - Business logic layer"""

from .broadcaster import SurfaceBroadcaster, SurfaceKind
from .chat_controller import ChatController
from .config_manager import ConfigManager
from .diff_generator import DiffGenerator
from .editor_host import EditorHost, PromptBroker, WorkspaceEditorHost
from .history_store import HistoryStore
from .llm_service import LLMService

__all__ = [
    "ChatController",
    "ConfigManager",
    "DiffGenerator",
    "EditorHost",
    "HistoryStore",
    "LLMService",
    "PromptBroker",
    "SurfaceBroadcaster",
    "SurfaceKind",
    "WorkspaceEditorHost",
]
