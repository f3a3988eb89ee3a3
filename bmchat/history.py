"""
Chat history for interactive sessions.

Keeps a fixed window of the most recent messages; older ones are dropped.
"""
import uuid
from collections import deque
from dataclasses import dataclass, field
from typing import Dict, Iterator, List

from bmchat.constants import DEFAULT_HISTORY_SIZE
from bmchat.scoring import now_millis

WELCOME_MESSAGE = (
    "Hi! Ask me about your bookmarks in plain language, for example "
    "\"find my bookmarks about React\" or \"recently saved documentation\"."
)


@dataclass
class ChatMessage:
    role: str  # "user" or "assistant"
    content: str
    timestamp: int = field(default_factory=now_millis)
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "role": self.role,
            "content": self.content,
            "timestamp": self.timestamp,
        }


class ChatHistory:
    """Fixed-size window of chat messages."""

    def __init__(self, max_size: int = DEFAULT_HISTORY_SIZE, welcome: bool = True):
        if max_size <= 0:
            raise ValueError("History size must be positive")
        self.max_size = max_size
        self._messages = deque(maxlen=max_size)
        if welcome:
            self.add("assistant", WELCOME_MESSAGE)

    def add(self, role: str, content: str) -> ChatMessage:
        message = ChatMessage(role=role, content=content)
        self._messages.append(message)
        return message

    def add_user(self, content: str) -> ChatMessage:
        return self.add("user", content)

    def add_assistant(self, content: str) -> ChatMessage:
        return self.add("assistant", content)

    def messages(self) -> List[ChatMessage]:
        return list(self._messages)

    def clear(self):
        self._messages.clear()

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[ChatMessage]:
        return iter(list(self._messages))
