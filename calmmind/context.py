"""
Prompt assembly for the hosted model.

Everything here is pure: the same messages and mood state always produce the
same text, which keeps the prompt easy to test.
"""

from __future__ import annotations

from typing import Sequence

from .models import ELLIPSIS, Message
from .mood import MoodState, significant_change

DEFAULT_CONTEXT_LENGTH = 5
SNIPPET_TEXT_LIMIT = 150

MOOD_DESCRIPTIONS = {
    "low": "low - struggling, needs gentle support and validation",
    "medium": "medium - managing, could use encouragement and coping strategies",
    "high": "high - doing well, maintain positive momentum and build resilience",
}

MOOD_DIRECTIVES = {
    "low": """The user is in a **low mood state** - they're struggling and need gentle, compassionate support:
- Use extra gentle, validating language
- Keep suggestions simple and non-overwhelming
- Focus on immediate comfort and safety
- Avoid complex problem-solving or multiple action items
- Emphasize that their feelings are valid and they're not alone
- Consider suggesting grounding techniques or simple self-soothing activities
- Check in about their safety if needed""",
    "medium": """The user is in a **medium mood state** - they're managing but could use support:
- Balance validation with gentle encouragement
- Offer practical, actionable coping strategies
- Help them identify patterns and practice skills
- Introduce cognitive reframing when appropriate
- Build on their existing resilience
- Provide structured support like CBT exercises if relevant""",
    "high": """The user is in a **high mood state** - they're doing well:
- Celebrate their progress and positive state
- Help them identify what's working
- Discuss maintenance strategies for sustaining wellbeing
- Build long-term resilience and preventive skills
- Explore growth opportunities
- Validate that good days are important to honor""",
}

CLOSING_GUIDELINES = """## Important Guidelines:
- **Notice and acknowledge** when the user adjusts their mood slider - this is valuable information about how they're feeling
- Reference conversation history naturally to show continuity
- If the user's words contradict their mood score, gently explore this discrepancy
- Always maintain the safe, non-judgmental space
- Format responses with markdown for better readability"""


def mood_label(score: int) -> str:
    if score <= 3:
        return "low"
    if score <= 7:
        return "medium"
    return "high"


def mood_description(score: int) -> str:
    return MOOD_DESCRIPTIONS[mood_label(score)]


def recent_window(messages: Sequence[Message], n: int = DEFAULT_CONTEXT_LENGTH) -> list[Message]:
    if n <= 0:
        return []
    return list(messages[-n:])


def build_instruction_preamble(base_instruction: str, current_score: int, previous_score: int) -> str:
    label = mood_label(current_score)
    lines = [
        base_instruction,
        "",
        "## Current Session Context:",
        f"- **User's Current Mood**: {label} ({current_score}/10)",
        f"- **Mood Description**: {mood_description(current_score)}",
    ]
    if significant_change(current_score, previous_score):
        direction = "improved" if current_score > previous_score else "declined"
        change = abs(current_score - previous_score)
        lines.append(
            f"- **Mood Change Detected**: The user's mood has {direction} by {change} points "
            f"(from {previous_score}/10 to {current_score}/10). "
            "Acknowledge this change naturally in your response if relevant."
        )
    lines.extend(
        [
            "",
            f"## How to Respond Based on Current Mood ({current_score}/10):",
            "",
            MOOD_DIRECTIVES[label],
            "",
            CLOSING_GUIDELINES,
        ]
    )
    return "\n".join(lines)


def mood_change_note(mood: MoodState) -> str:
    if not mood.changed:
        return ""
    increased = mood.current > mood.previous
    indicator = "📈" if increased else "📉"
    direction = "increased" if increased else "decreased"
    return (
        f"{indicator} [User just adjusted their mood slider from {mood.previous}/10 "
        f"to {mood.current}/10 - mood {direction}]"
    )


def _truncate_snippet(text: str) -> str:
    # str slicing is by code point, so a character is never split
    if len(text) <= SNIPPET_TEXT_LIMIT:
        return text
    return text[:SNIPPET_TEXT_LIMIT] + ELLIPSIS


def format_history_snippet(messages: Sequence[Message], n: int = DEFAULT_CONTEXT_LENGTH) -> str:
    lines = []
    for message in recent_window(messages, n):
        role = "User" if message.sender == "user" else "Assistant"
        lines.append(f"{role}: {_truncate_snippet(message.text)}")
    return "\n".join(lines)


def build_prompt(
    base_instruction: str,
    message: str,
    history: Sequence[Message],
    mood: MoodState,
    mood_changed: bool = False,
    context_length: int = DEFAULT_CONTEXT_LENGTH,
) -> str:
    sections = [build_instruction_preamble(base_instruction, mood.current, mood.previous)]
    if mood_changed:
        note = mood_change_note(mood)
        if note:
            sections.append(note)
    snippet = format_history_snippet(history, context_length)
    if snippet:
        sections.append(f"Recent conversation:\n{snippet}")
    sections.append(f"User's message: {message}")
    return "\n\n".join(sections)
