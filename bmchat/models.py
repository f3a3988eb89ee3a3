"""
Data models for bmchat.

Bookmarks are plain frozen dataclasses supplied by a bookmark source; the
search and chat code reorders and filters them but never mutates one.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from bmchat.constants import THINKING_END, THINKING_START


@dataclass(frozen=True)
class BookmarkRecord:
    """A single saved bookmark."""

    id: str
    title: str
    url: str
    date_added: int  # epoch milliseconds
    description: Optional[str] = None
    folder: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BookmarkRecord":
        """
        Build a record from its JSON form.

        Accepts both ``dateAdded`` and ``date_added`` keys.
        """
        date_added = data.get("dateAdded", data.get("date_added", 0))
        return cls(
            id=str(data["id"]),
            title=data.get("title") or "",
            url=data.get("url") or "",
            date_added=int(date_added or 0),
            description=data.get("description") or None,
            folder=data.get("folder") or None,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the JSON form read by ``from_dict``."""
        data = {
            "id": self.id,
            "title": self.title,
            "url": self.url,
            "dateAdded": self.date_added,
        }
        if self.description:
            data["description"] = self.description
        if self.folder:
            data["folder"] = self.folder
        return data


@dataclass
class ScoredBookmark:
    """A bookmark paired with its relevance score for one search call."""

    bookmark: BookmarkRecord
    score: int


class Channel(Enum):
    """Sub-stream a chunk of model output belongs to."""
    ANSWER = "answer"
    REASONING = "reasoning"


class ProcessorState(Enum):
    """State of the streaming response processor."""
    NORMAL = "normal"
    THINKING = "thinking"


@dataclass(frozen=True)
class StreamChunk:
    """One ordered piece of streamed model output."""

    text: str
    channel: Channel = Channel.ANSWER
    boundary: bool = False

    @classmethod
    def answer(cls, text: str) -> "StreamChunk":
        return cls(text, Channel.ANSWER)

    @classmethod
    def reasoning(cls, text: str) -> "StreamChunk":
        return cls(text, Channel.REASONING)

    @classmethod
    def thinking_start(cls) -> "StreamChunk":
        return cls(THINKING_START, Channel.REASONING, boundary=True)

    @classmethod
    def thinking_end(cls) -> "StreamChunk":
        return cls(THINKING_END, Channel.REASONING, boundary=True)

    @property
    def is_answer(self) -> bool:
        return self.channel is Channel.ANSWER
