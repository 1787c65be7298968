from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Literal

DEFAULT_ENTRY_TITLE = "New Entry"
TITLE_MAX_LENGTH = 40
PREVIEW_MAX_LENGTH = 50
ELLIPSIS = "..."

Sender = Literal["user", "bot"]


def utc_now() -> datetime:
    # Millisecond precision so values survive the ISO round trip unchanged
    now = datetime.now(tz=timezone.utc)
    return now.replace(microsecond=(now.microsecond // 1000) * 1000)


def format_timestamp(value: datetime) -> str:
    return value.isoformat(timespec="milliseconds")


def parse_timestamp(value: str) -> datetime:
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def new_entry_id() -> str:
    millis = int(time.time() * 1000)
    return f"entry_{millis}_{uuid.uuid4().hex[:9]}"


def truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - len(ELLIPSIS)] + ELLIPSIS


@dataclass(frozen=True)
class Message:
    text: str
    sender: Sender
    timestamp: datetime = field(default_factory=utc_now)
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @classmethod
    def user(cls, text: str) -> "Message":
        return cls(text=text, sender="user")

    @classmethod
    def bot(cls, text: str) -> "Message":
        return cls(text=text, sender="bot")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "text": self.text,
            "sender": self.sender,
            "timestamp": format_timestamp(self.timestamp),
        }

    @classmethod
    def from_dict(cls, payload: dict) -> "Message":
        sender = payload["sender"]
        if sender not in ("user", "bot"):
            raise ValueError(f"Unknown sender: {sender!r}")
        return cls(
            id=str(payload["id"]),
            text=str(payload["text"]),
            sender=sender,
            timestamp=parse_timestamp(payload["timestamp"]),
        )


@dataclass
class MoodEntry:
    score: int
    timestamp: datetime = field(default_factory=utc_now)


@dataclass
class Entry:
    id: str = field(default_factory=new_entry_id)
    title: str = DEFAULT_ENTRY_TITLE
    messages: list[Message] = field(default_factory=list)
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)
    mood_score: int | None = None

    def replace_messages(self, messages: list[Message]) -> None:
        self.messages = list(messages)
        self.updated_at = utc_now()
        # Title always follows the first user message
        self.title = derive_title(self.messages)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "messages": [message.to_dict() for message in self.messages],
            "createdAt": format_timestamp(self.created_at),
            "updatedAt": format_timestamp(self.updated_at),
            "moodScore": self.mood_score,
        }

    @classmethod
    def from_dict(cls, payload: dict) -> "Entry":
        messages = [Message.from_dict(m) for m in payload.get("messages", [])]
        mood_score = payload.get("moodScore")
        if mood_score is not None:
            mood_score = int(mood_score)
        return cls(
            id=str(payload["id"]),
            title=payload.get("title") or DEFAULT_ENTRY_TITLE,
            messages=messages,
            created_at=parse_timestamp(payload["createdAt"]),
            updated_at=parse_timestamp(payload["updatedAt"]),
            mood_score=mood_score,
        )


def derive_title(messages: list[Message]) -> str:
    for message in messages:
        if message.sender == "user":
            return truncate(message.text, TITLE_MAX_LENGTH)
    return DEFAULT_ENTRY_TITLE


def entry_preview(entry: Entry) -> str:
    if not entry.messages:
        return "No messages yet"
    return truncate(entry.messages[-1].text, PREVIEW_MAX_LENGTH)


def relative_time(value: datetime, now: datetime | None = None) -> str:
    now = now or datetime.now(tz=timezone.utc)
    seconds = (now - value).total_seconds()
    hours = int(seconds // 3600)
    days = int(seconds // 86400)
    if hours < 1:
        return "Just now"
    if hours < 24:
        return f"{hours}h ago"
    if days == 1:
        return "Yesterday"
    if days < 7:
        return f"{days}d ago"
    return value.astimezone().strftime("%Y-%m-%d")
