"""Shared fixtures: an in-memory store and a scripted model client."""

from __future__ import annotations

import pytest

from calmmind.controller import ConversationController
from calmmind.storage import EntryStore, MemoryStorage


class StubModelClient:
    """Records every call; replies from a queue or raises a queued exception."""

    def __init__(self, replies=None) -> None:
        self.replies = list(replies or [])
        self.calls = []
        self.invalidations = 0

    def send(self, message, history, mood_changed, mood):
        self.calls.append(
            {"message": message, "history": list(history), "mood_changed": mood_changed, "mood": mood}
        )
        reply = self.replies.pop(0) if self.replies else "I hear you."
        if isinstance(reply, BaseException):
            raise reply
        return reply

    def invalidate_session(self) -> None:
        self.invalidations += 1


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def store(storage):
    return EntryStore(storage)


@pytest.fixture
def client():
    return StubModelClient()


@pytest.fixture
def controller(store, client):
    return ConversationController(store, client)
