"""
History Store - ordered log of chat messages shared by every surface
"""

from __future__ import annotations

import logging
from typing import Callable

from loja.models.chat import TERMINAL_ROLES, Message, Role
from loja.services.errors import HistoryError

logger = logging.getLogger(__name__)


class HistoryStore:
    """Append-only-with-filtering message log.

    At most one ``loading`` placeholder is live at a time, and a terminal
    entry (``ai``/``error``) can only be added once the placeholder is gone,
    which ``settle`` does in a single mutation.
    """

    def __init__(self) -> None:
        self._messages: list[Message] = []

    def __len__(self) -> int:
        return len(self._messages)

    @property
    def has_loading(self) -> bool:
        return any(m.role == Role.LOADING for m in self._messages)

    def append(self, message: Message) -> None:
        if message.role == Role.LOADING and self.has_loading:
            raise HistoryError("A loading placeholder is already live")
        if message.role in TERMINAL_ROLES and self.has_loading:
            raise HistoryError("Settle the loading placeholder before appending a reply")
        self._messages.append(message)

    def remove_where(self, predicate: Callable[[Message], bool]) -> int:
        """Drop every matching entry; returns how many were removed"""
        kept = [m for m in self._messages if not predicate(m)]
        removed = len(self._messages) - len(kept)
        self._messages = kept
        return removed

    def settle(self, message: Message) -> None:
        """Replace the loading placeholder(s) with one terminal entry"""
        if message.role not in TERMINAL_ROLES:
            raise HistoryError(f"Cannot settle a turn with role {message.role.value}")
        removed = self.remove_where(lambda m: m.role == Role.LOADING)
        if not removed:
            logger.warning("[HistoryStore] Settling a turn with no loading placeholder")
        self._messages.append(message)

    def snapshot(self) -> list[Message]:
        return [m.model_copy() for m in self._messages]

    def conversation(self) -> list[Message]:
        """Prior user/ai turns, the only roles a provider sees"""
        return [m for m in self._messages if m.role in (Role.USER, Role.AI)]

    def last(self) -> Message | None:
        return self._messages[-1] if self._messages else None

    def clear(self) -> None:
        self._messages = []
