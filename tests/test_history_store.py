"""Tests for the shared history log and its loading-placeholder discipline."""

from __future__ import annotations

import pytest

from loja.models.chat import Message, Role
from loja.services.errors import HistoryError
from loja.services.history_store import HistoryStore


def msg(role: Role, content: str = "x") -> Message:
    return Message(role=role, content=content)


class TestHistoryStore:
    def test_append_keeps_order(self) -> None:
        store = HistoryStore()
        store.append(msg(Role.USER, "one"))
        store.append(msg(Role.SYSTEM, "two"))
        assert [m.content for m in store.snapshot()] == ["one", "two"]
        assert len(store) == 2

    def test_second_loading_is_refused(self) -> None:
        store = HistoryStore()
        store.append(msg(Role.LOADING))
        with pytest.raises(HistoryError):
            store.append(msg(Role.LOADING))

    def test_terminal_entry_refused_while_loading(self) -> None:
        store = HistoryStore()
        store.append(msg(Role.USER))
        store.append(msg(Role.LOADING))
        with pytest.raises(HistoryError):
            store.append(msg(Role.AI))

    def test_settle_replaces_loading_in_one_step(self) -> None:
        store = HistoryStore()
        store.append(msg(Role.USER, "q"))
        store.append(msg(Role.LOADING, "Thinking..."))
        store.settle(msg(Role.AI, "a"))

        roles = [m.role for m in store.snapshot()]
        assert roles == [Role.USER, Role.AI]
        assert not store.has_loading

    def test_settle_requires_terminal_role(self) -> None:
        store = HistoryStore()
        with pytest.raises(HistoryError):
            store.settle(msg(Role.SYSTEM))

    def test_settle_without_loading_still_appends(self) -> None:
        store = HistoryStore()
        store.settle(msg(Role.ERROR, "Error: boom"))
        assert store.last().content == "Error: boom"

    def test_remove_where_counts(self) -> None:
        store = HistoryStore()
        for role in (Role.USER, Role.SYSTEM, Role.USER):
            store.append(msg(role))
        assert store.remove_where(lambda m: m.role == Role.USER) == 2
        assert [m.role for m in store.snapshot()] == [Role.SYSTEM]

    def test_snapshot_is_a_copy(self) -> None:
        store = HistoryStore()
        store.append(msg(Role.USER, "original"))
        snap = store.snapshot()
        snap[0].content = "changed"
        assert store.last().content == "original"

    def test_conversation_only_user_and_ai(self) -> None:
        store = HistoryStore()
        store.append(msg(Role.USER))
        store.append(msg(Role.SYSTEM))
        store.settle(msg(Role.ERROR))
        store.append(msg(Role.USER))
        store.settle(msg(Role.AI))
        assert [m.role for m in store.conversation()] == [Role.USER, Role.USER, Role.AI]

    def test_clear(self) -> None:
        store = HistoryStore()
        store.append(msg(Role.USER))
        store.clear()
        assert len(store) == 0
        assert store.last() is None
