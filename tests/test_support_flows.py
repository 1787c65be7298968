import pytest

from calmmind.support_flows import CBT_STEPS, GROUNDING_EXERCISES, CBTFlow, GroundingDeck


class TestCBTFlow:
    def test_walks_forward_and_stops_at_last(self):
        flow = CBTFlow()
        for _ in range(10):
            flow.next()
        assert flow.current == CBT_STEPS[-1]
        assert flow.is_last

    def test_back_stops_at_first(self):
        flow = CBTFlow()
        flow.next()
        flow.back()
        flow.back()
        assert flow.is_first
        assert flow.index == 0

    def test_restart(self):
        flow = CBTFlow()
        flow.next()
        flow.next()
        assert flow.restart() == CBT_STEPS[0]

    def test_chat_prompt(self):
        flow = CBTFlow()
        assert flow.chat_prompt() == (
            "I want to work on Name the Situation. What happened or what are you worried might happen?"
        )

    def test_empty_flow_is_rejected(self):
        with pytest.raises(ValueError):
            CBTFlow(())


class TestGroundingDeck:
    def test_cycles_back_to_start(self):
        deck = GroundingDeck()
        seen = [deck.current] + [deck.next() for _ in range(len(GROUNDING_EXERCISES))]
        assert seen[0] == seen[-1]
        assert seen[:-1] == list(GROUNDING_EXERCISES)
