from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class CBTStep:
    id: int
    title: str
    question: str
    description: str


CBT_STEPS: tuple[CBTStep, ...] = (
    CBTStep(
        1,
        "Name the Situation",
        "What happened or what are you worried might happen?",
        "Step 1: Describe the event objectively.",
    ),
    CBTStep(
        2,
        "Identify Feelings",
        "What emotions are you feeling right now, and how intense are they (0-100%)?",
        "Step 2: Label your emotions.",
    ),
    CBTStep(
        3,
        "Identify Thoughts",
        "What specific thoughts are going through your mind?",
        "Step 3: Catch the automatic thoughts.",
    ),
    CBTStep(
        4,
        "Challenge Thoughts",
        "Is there evidence that contradicts this thought? Is there another way to look at it?",
        "Step 4: Examine the evidence.",
    ),
    CBTStep(
        5,
        "Reframe",
        "What is a more balanced or helpful thought?",
        "Step 5: Create a new perspective.",
    ),
)

GROUNDING_EXERCISES: tuple[str, ...] = (
    "**5-4-3-2-1 Technique**: Identify 5 things you see, 4 you can touch, 3 you hear, "
    "2 you smell, and 1 you taste.",
    "**Box Breathing**: Inhale for 4 seconds, hold for 4 seconds, exhale for 4 seconds, "
    "hold for 4 seconds. Repeat 4 times.",
    "**Ice Cube Method**: Hold an ice cube in your hand and focus solely on the sensation: "
    "the cold, the melting, how it feels against your skin.",
    "**Feet on Floor**: Press your feet firmly into the ground, wiggle your toes, and feel "
    "the solid support beneath you.",
    "**54321 Body Scan**: Name 5 body parts you can feel, 4 textures around you, 3 sounds, "
    "2 smells, 1 taste.",
)


class CBTFlow:
    """Walks the five CBT steps; the panel sends the current step into the chat."""

    def __init__(self, steps: tuple[CBTStep, ...] = CBT_STEPS) -> None:
        if not steps:
            raise ValueError("CBT flow needs at least one step")
        self._steps = steps
        self._index = 0

    @property
    def index(self) -> int:
        return self._index

    @property
    def steps(self) -> tuple[CBTStep, ...]:
        return self._steps

    @property
    def current(self) -> CBTStep:
        return self._steps[self._index]

    @property
    def is_first(self) -> bool:
        return self._index == 0

    @property
    def is_last(self) -> bool:
        return self._index == len(self._steps) - 1

    def next(self) -> CBTStep:
        if not self.is_last:
            self._index += 1
        return self.current

    def back(self) -> CBTStep:
        if not self.is_first:
            self._index -= 1
        return self.current

    def restart(self) -> CBTStep:
        self._index = 0
        return self.current

    def chat_prompt(self) -> str:
        step = self.current
        return f"I want to work on {step.title}. {step.question}"


class GroundingDeck:
    def __init__(self, exercises: tuple[str, ...] = GROUNDING_EXERCISES) -> None:
        if not exercises:
            raise ValueError("Grounding deck needs at least one exercise")
        self._exercises = exercises
        self._index = 0

    @property
    def current(self) -> str:
        return self._exercises[self._index]

    def next(self) -> str:
        self._index = (self._index + 1) % len(self._exercises)
        return self.current
