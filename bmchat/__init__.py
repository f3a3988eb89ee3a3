"""
bmchat - chat with your bookmarks

Ranks bookmarks against natural-language queries locally, and forwards
questions plus a budgeted slice of bookmark context to an OpenAI-compatible
chat-completion endpoint, streaming the reply back.

Example Usage:
    >>> from bmchat import ChatClient, load_bookmarks, load_config, local_search
    >>> bookmarks = load_bookmarks("bookmarks.json")
    >>> local_search(bookmarks, "react")
    >>> client = ChatClient(load_config())
    >>> for chunk in client.stream_chat("what do I have on react?", bookmarks):
    ...     print(chunk.text, end="")
"""

__version__ = "0.1.0"
__author__ = "bmchat Contributors"

# Models
from bmchat.models import BookmarkRecord, Channel, ProcessorState, ScoredBookmark, StreamChunk

# Configuration
from bmchat.config import BmchatConfig, load_config

# Search and context
from bmchat.scoring import DEFAULT_RECENCY, TIERED_RECENCY, RecencyWeights, score_bookmark
from bmchat.search import local_search, rank_bookmarks
from bmchat.context import select_context

# Streaming and remote chat
from bmchat.stream import StreamProcessor, iter_stream_chunks
from bmchat.llm import ChatClient, RemoteRequestError, collect_answer

# Bookmark sources
from bmchat.bookmarks import load_bookmarks

__all__ = [
    # Models
    "BookmarkRecord",
    "Channel",
    "ProcessorState",
    "ScoredBookmark",
    "StreamChunk",
    # Config
    "BmchatConfig",
    "load_config",
    # Search and context
    "DEFAULT_RECENCY",
    "TIERED_RECENCY",
    "RecencyWeights",
    "score_bookmark",
    "local_search",
    "rank_bookmarks",
    "select_context",
    # Streaming and remote chat
    "StreamProcessor",
    "iter_stream_chunks",
    "ChatClient",
    "RemoteRequestError",
    "collect_answer",
    # Bookmark sources
    "load_bookmarks",
]
