"""Error taxonomy for the chat backend"""

from __future__ import annotations


class LojaError(Exception):
    """Base class for backend errors"""


class ProviderError(LojaError):
    """Any failure of a provider call; becomes one error history entry"""


class ProviderConfigurationError(ProviderError):
    """Missing API key or unknown provider"""


class ProviderTransportError(ProviderError):
    """Non-success result from a provider endpoint"""

    def __init__(self, provider: str, body: str, status: int | None = None):
        super().__init__(f"{provider} API error: {body}")
        self.provider = provider
        self.body = body
        self.status = status


class ScopingError(LojaError):
    """A path resolved outside the workspace root"""

    def __init__(self, path: str):
        super().__init__(f"Path escapes the workspace root: {path}")
        self.path = path


class NoWorkspaceError(LojaError):
    """No workspace folder is open"""


class HistoryError(LojaError):
    """A mutation would break the loading-placeholder invariant"""
