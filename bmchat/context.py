"""
Prompt context selection.

Decides which bookmarks to embed in a remote chat prompt without exceeding
an estimated token budget. Most of the slots go to the newest bookmarks, the
rest to the best local-search matches for the query.
"""
import logging
from typing import List, Optional, Sequence

from bmchat.constants import (
    CONTEXT_TOKEN_SHARE,
    DEFAULT_TOKENS_PER_BOOKMARK,
    RECENT_CONTEXT_SHARE,
)
from bmchat.models import BookmarkRecord
from bmchat.scoring import RecencyWeights
from bmchat.search import local_search

logger = logging.getLogger(__name__)


def context_capacity(max_tokens: int,
                     tokens_per_bookmark: int = DEFAULT_TOKENS_PER_BOOKMARK) -> int:
    """Number of bookmarks that fit in the prompt's share of ``max_tokens``."""
    if tokens_per_bookmark <= 0:
        return 0
    budget = int(max_tokens * CONTEXT_TOKEN_SHARE)
    return max(budget // tokens_per_bookmark, 0)


def select_context(bookmarks: Sequence[BookmarkRecord],
                   query: str,
                   max_tokens: int,
                   tokens_per_bookmark: int = DEFAULT_TOKENS_PER_BOOKMARK,
                   now_ms: Optional[int] = None,
                   recency: Optional[RecencyWeights] = None) -> List[BookmarkRecord]:
    """
    Choose the bookmarks to inject into a remote prompt.

    Args:
        bookmarks: All bookmarks
        query: The user's query, used for the relevance share
        max_tokens: Token ceiling of the request
        tokens_per_bookmark: Estimated prompt cost of one bookmark
        now_ms: Reference time for relevance scoring
        recency: Recency bonus table for relevance scoring

    Returns:
        Recent bookmarks followed by relevant ones, never more than the
        budget allows. Everything, in original order, when it all fits.
    """
    max_count = context_capacity(max_tokens, tokens_per_bookmark)
    if max_count <= 0:
        return []

    if len(bookmarks) <= max_count:
        return list(bookmarks)

    by_date = sorted(bookmarks, key=lambda b: b.date_added, reverse=True)
    recent = by_date[:int(max_count * RECENT_CONTEXT_SHARE)]
    recent_ids = {b.id for b in recent}

    remaining = max_count - len(recent)
    relevant = [
        b for b in local_search(bookmarks, query, now_ms=now_ms, recency=recency)
        if b.id not in recent_ids
    ][:remaining]

    logger.debug(
        f"Context: {len(recent)} recent + {len(relevant)} relevant "
        f"of {len(bookmarks)} bookmarks (capacity {max_count})"
    )
    return recent + relevant


def format_context(bookmarks: Sequence[BookmarkRecord]) -> str:
    """Render bookmarks as markdown list lines for a prompt."""
    return "\n".join(f"- {b.title} ({b.url})" for b in bookmarks)
