import json
from datetime import datetime, timezone

import pytest

from calmmind.constants import (
    CURRENT_ENTRY_SENTINEL,
    INITIAL_MESSAGE,
    NOT_CONFIGURED_MESSAGE,
    QUOTA_EXCEEDED_MESSAGE,
    TIMEOUT_MESSAGE,
)
from calmmind.controller import (
    ConfigurationError,
    ControllerState,
    ConversationBusyError,
    ConversationController,
    ModelReply,
)
from calmmind.llm_client import ModelClientError, ModelFailure
from calmmind.models import Message
from calmmind.mood import MoodState
from calmmind.storage import ENTRIES_KEY

from .conftest import StubModelClient


class TestSendMessage:
    def test_end_to_end_new_entry_and_send(self, controller, store, client):
        entry = controller.new_entry()
        # Age the stored entry so the update is visible at millisecond precision
        stored = store.get(entry.id)
        stored.updated_at = datetime(2020, 1, 1, tzinfo=timezone.utc)
        store.save(stored)

        reply = controller.send_message("I feel anxious")

        saved = store.get(entry.id)
        assert reply.text == "I hear you."
        assert [m.sender for m in saved.messages] == ["bot", "user", "bot"]
        assert saved.messages[0].text == INITIAL_MESSAGE
        assert saved.messages[1].text == "I feel anxious"
        assert saved.title == "I feel anxious"
        assert saved.updated_at > datetime(2020, 1, 1, tzinfo=timezone.utc)
        assert controller.state is ControllerState.IDLE

    def test_history_excludes_the_new_message(self, controller, client):
        controller.new_entry()
        controller.send_message("first")
        controller.send_message("second")

        second_call = client.calls[1]
        assert second_call["message"] == "second"
        assert [m.text for m in second_call["history"]] == [INITIAL_MESSAGE, "first", "I hear you."]

    def test_history_is_bounded_to_recent_window(self, controller, client):
        controller.new_entry()
        for i in range(4):
            controller.send_message(f"message {i}")
        assert len(client.calls[-1]["history"]) == 5

    def test_send_without_current_entry_creates_one(self, controller, store):
        controller.send_message("hello")
        assert controller.current_entry_id is not None
        assert store.get_current_id() == controller.current_entry_id
        saved = store.get(controller.current_entry_id)
        assert [m.text for m in saved.messages][1:] == ["hello", "I hear you."]

    def test_malformed_neighbour_does_not_split_conversation(self, controller, storage, store):
        entry = controller.new_entry()
        controller.send_message("first")
        records = json.loads(storage.get_item(ENTRIES_KEY))
        records.append({"id": "entry_bad"})
        storage.set_item(ENTRIES_KEY, json.dumps(records))

        for text in ("second", "third", "fourth"):
            controller.send_message(text)

        assert controller.current_entry_id == entry.id
        assert [e.id for e in store.list_all()] == [entry.id]
        assert len(store.get(entry.id).messages) == 9

    def test_stale_pointer_creates_new_entry(self, controller, store):
        entry = controller.new_entry()
        store.delete(entry.id)
        controller.send_message("still here")
        assert controller.current_entry_id != entry.id
        assert store.get(controller.current_entry_id) is not None

    def test_mood_state_is_passed_to_client(self, controller, client):
        controller.new_entry()
        controller.record_mood(9)
        controller.send_message("good day")
        call = client.calls[0]
        assert call["mood"] == MoodState(current=9, previous=5)
        assert call["mood_changed"] is True

    def test_success_clears_mood_changed_flag(self, controller, client):
        controller.new_entry()
        controller.record_mood(2)
        controller.send_message("one")
        controller.send_message("two")
        assert client.calls[1]["mood_changed"] is False
        assert controller.mood_changed is False

    def test_persists_current_mood_score(self, controller, store):
        entry = controller.new_entry()
        controller.record_mood(7)
        controller.send_message("hello")
        assert store.get(entry.id).mood_score == 7

    def test_empty_text_is_rejected(self, controller):
        controller.new_entry()
        with pytest.raises(ValueError):
            controller.send_message("   ")
        assert len(controller.messages) == 1


class TestModelFailures:
    def test_classified_failure_becomes_fixed_bot_message(self, store):
        client = StubModelClient([ModelClientError(ModelFailure.QUOTA, "429 quota")])
        controller = ConversationController(store, client)
        entry = controller.new_entry()

        reply = controller.send_message("hello")

        assert reply.sender == "bot"
        assert reply.text == QUOTA_EXCEEDED_MESSAGE
        assert controller.state is ControllerState.IDLE
        assert controller.last_failure is ModelFailure.QUOTA
        assert len(store.get(entry.id).messages) == 3

    def test_unknown_failure_includes_raw_text(self, store):
        client = StubModelClient([ModelClientError(ModelFailure.UNKNOWN, "something odd")])
        controller = ConversationController(store, client)
        controller.new_entry()
        assert "something odd" in controller.send_message("hello").text

    def test_unexpected_exception_is_recovered(self, store):
        client = StubModelClient([RuntimeError("request timed out")])
        controller = ConversationController(store, client)
        controller.new_entry()
        assert controller.send_message("hello").text == TIMEOUT_MESSAGE

    def test_failure_keeps_mood_flag_and_allows_retry(self, store):
        client = StubModelClient([ModelClientError(ModelFailure.NETWORK, "offline"), "Welcome back."])
        controller = ConversationController(store, client)
        controller.new_entry()
        controller.record_mood(9)

        controller.send_message("hello")
        assert controller.mood_changed is True

        reply = controller.send_message("hello again")
        assert reply.text == "Welcome back."
        assert client.calls[1]["mood_changed"] is True
        assert controller.last_failure is None


class TestConfigurationAndConcurrency:
    def test_unconfigured_send_is_blocked(self, store):
        controller = ConversationController(store, None)
        controller.new_entry()
        with pytest.raises(ConfigurationError) as exc_info:
            controller.send_message("hello")
        assert str(exc_info.value) == NOT_CONFIGURED_MESSAGE
        assert len(controller.messages) == 1
        assert controller.state is ControllerState.IDLE

    def test_unconfigured_controller_still_tracks_entries_and_mood(self, store):
        controller = ConversationController(store, None)
        entry = controller.new_entry()
        controller.record_mood(3)
        assert store.get(entry.id).mood_score == 3
        assert controller.stats().total == 1

    def test_second_send_while_awaiting_is_rejected(self, controller):
        controller.new_entry()
        pending = controller.begin_send("first")
        assert controller.state is ControllerState.AWAITING_MODEL_RESPONSE
        with pytest.raises(ConversationBusyError):
            controller.begin_send("second")

        controller.complete_send(controller.request_reply(pending))
        assert controller.state is ControllerState.IDLE
        assert [m.text for m in controller.messages][1:] == ["first", "I hear you."]

    def test_mood_can_be_recorded_while_awaiting(self, controller, store):
        entry = controller.new_entry()
        controller.begin_send("first")
        controller.record_mood(2)
        controller.complete_send(ModelReply(text="ok"))
        assert store.get(entry.id).mood_score == 2

    def test_complete_without_pending_send_fails(self, controller):
        with pytest.raises(RuntimeError):
            controller.complete_send(ModelReply(text="orphan"))


class TestMood:
    def test_significant_change_invalidates_session(self, controller, client):
        controller.new_entry()
        before = client.invalidations
        change = controller.record_mood(8)
        assert change.changed
        assert change.direction == "up"
        assert client.invalidations == before + 1

    def test_small_change_keeps_session(self, controller, client):
        controller.new_entry()
        before = client.invalidations
        assert not controller.record_mood(6).changed
        assert client.invalidations == before
        assert controller.mood_changed is False

    def test_mood_saved_on_current_entry(self, controller, store):
        entry = controller.new_entry()
        controller.record_mood(4)
        assert store.get(entry.id).mood_score == 4


class TestEntryLifecycle:
    def test_new_entry_is_seeded_with_greeting(self, controller, store, client):
        entry = controller.new_entry()
        assert controller.current_entry_id == entry.id
        assert store.get_current_id() == entry.id
        assert [m.text for m in controller.messages] == [INITIAL_MESSAGE]
        assert store.get(entry.id).messages[0].text == INITIAL_MESSAGE
        assert client.invalidations == 1

    def test_new_entry_persists_started_conversation(self, controller, store):
        first = controller.new_entry()
        controller.send_message("hello")
        controller.new_entry()
        assert len(store.get(first.id).messages) == 3
        assert len(store.list_all()) == 2

    def test_switch_entry_loads_messages_and_mood(self, controller, store):
        first = controller.new_entry()
        controller.record_mood(2)
        controller.send_message("rough day")
        second = controller.new_entry()
        controller.record_mood(9)

        loaded = controller.switch_entry(first.id)

        assert loaded.id == first.id
        assert controller.current_entry_id == first.id
        assert [m.text for m in controller.messages][1] == "rough day"
        assert controller.mood_state == MoodState(current=2, previous=2)
        assert controller.mood_changed is False
        assert store.get(second.id).mood_score == 9

    def test_switch_to_sentinel_is_noop(self, controller, client):
        entry = controller.new_entry()
        before = client.invalidations
        assert controller.switch_entry(CURRENT_ENTRY_SENTINEL) is None
        assert controller.current_entry_id == entry.id
        assert client.invalidations == before

    def test_switch_to_missing_entry_keeps_current(self, controller):
        entry = controller.new_entry()
        assert controller.switch_entry("entry_missing") is None
        assert controller.current_entry_id == entry.id

    def test_delete_current_entry_creates_replacement(self, controller, store):
        entry = controller.new_entry()
        controller.send_message("hello")

        controller.delete_entry(entry.id)

        ids = [e.id for e in store.list_all()]
        assert entry.id not in ids
        assert controller.current_entry_id is not None
        assert controller.current_entry_id != entry.id
        assert controller.current_entry_id in ids
        assert [m.text for m in controller.messages] == [INITIAL_MESSAGE]

    def test_delete_other_entry_keeps_current(self, controller, store):
        first = controller.new_entry()
        second = controller.new_entry()
        controller.delete_entry(first.id)
        assert controller.current_entry_id == second.id
        assert store.get(first.id) is None

    def test_start_restores_persisted_entry(self, store, client):
        first = ConversationController(store, client)
        entry = first.new_entry()
        first.record_mood(8)
        first.send_message("remember me")

        second = ConversationController(store, StubModelClient())
        restored = second.start()

        assert restored.id == entry.id
        assert [m.text for m in second.messages][1] == "remember me"
        assert second.mood_state.current == 8

    def test_start_without_pointer_creates_entry(self, controller, store):
        entry = controller.start()
        assert store.get_current_id() == entry.id

    def test_start_with_dangling_pointer_creates_entry(self, controller, store):
        store.set_current_id("entry_gone")
        entry = controller.start()
        assert entry.id != "entry_gone"
        assert controller.current_entry_id == entry.id

    def test_stats(self, controller):
        controller.new_entry()
        controller.record_mood(2)
        controller.new_entry()
        controller.record_mood(8)
        stats = controller.stats()
        assert stats.total == 2
        assert stats.average_mood == 5

    def test_export_current(self, controller, tmp_path):
        controller.new_entry()
        controller.send_message("export this")
        path = controller.export_current(tmp_path)
        assert path is not None
        assert path.exists()
        assert path.name.startswith("export_this_")


def test_greeting_only_entry_is_not_rewritten_on_switch(store, client):
    controller = ConversationController(store, client)
    entry = controller.new_entry()
    stored = store.get(entry.id)
    stored.updated_at = datetime(2020, 1, 1, tzinfo=timezone.utc)
    store.save(stored)
    other = store.create_entry()
    other.messages = [Message.bot("older")]
    store.save(other)

    controller.switch_entry(other.id)

    assert store.get(entry.id).updated_at == datetime(2020, 1, 1, tzinfo=timezone.utc)
