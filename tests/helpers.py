"""
Shared test data builders for the bmchat test suite.
"""
import json

from bmchat.constants import MS_PER_DAY
from bmchat.models import BookmarkRecord

# Fixed reference time: 2024-06-01T00:00:00Z
NOW_MS = 1717200000000


def days_ago(days: float) -> int:
    """Epoch ms ``days`` before NOW_MS."""
    return int(NOW_MS - days * MS_PER_DAY)


def make_bookmark(id, title, url, age_days=100, description=None, folder=None) -> BookmarkRecord:
    return BookmarkRecord(
        id=str(id),
        title=title,
        url=url,
        date_added=days_ago(age_days),
        description=description,
        folder=folder,
    )


def sse_line(reasoning=None, content=None) -> bytes:
    """One ``data:`` event carrying a chat-completion delta."""
    delta = {}
    if reasoning is not None:
        delta["reasoning_content"] = reasoning
    if content is not None:
        delta["content"] = content
    payload = {"choices": [{"delta": delta}]}
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n".encode("utf-8")
