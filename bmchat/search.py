"""
Local bookmark search.

Ranks bookmarks with the relevance scorer. Used directly for offline search
and as the fallback whenever the remote endpoint is unavailable.
"""
from collections import Counter
from typing import List, Optional, Sequence
from urllib.parse import urlparse

from bmchat.constants import DEFAULT_SEARCH_LIMIT
from bmchat.models import BookmarkRecord, ScoredBookmark
from bmchat.scoring import RecencyWeights, now_millis, score_bookmark, tokenize_query

STARTER_SUGGESTIONS = [
    "Recently saved bookmarks",
    "Technical documentation",
    "Learning resources",
    "Work related",
    "Developer tools",
    "Design resources",
]


def rank_bookmarks(bookmarks: Sequence[BookmarkRecord],
                   query: str,
                   now_ms: Optional[int] = None,
                   recency: Optional[RecencyWeights] = None) -> List[ScoredBookmark]:
    """
    Score every bookmark and return the matches, best first.

    The sort is stable, so equal scores keep their input order. Bookmark
    sources hand over newest-first lists, which makes ties favor newer
    bookmarks.
    """
    if now_ms is None:
        now_ms = now_millis()
    full_query = query.lower()
    terms = tokenize_query(query)

    scored = [
        ScoredBookmark(bookmark, score_bookmark(bookmark, terms, full_query, now_ms, recency))
        for bookmark in bookmarks
    ]
    matches = [item for item in scored if item.score > 0]
    return sorted(matches, key=lambda item: item.score, reverse=True)


def local_search(bookmarks: Sequence[BookmarkRecord],
                 query: str,
                 limit: int = DEFAULT_SEARCH_LIMIT,
                 now_ms: Optional[int] = None,
                 recency: Optional[RecencyWeights] = None) -> List[BookmarkRecord]:
    """
    Search bookmarks locally.

    Args:
        bookmarks: Bookmarks, newest first
        query: Free-text query; blank means "most recent"
        limit: Maximum number of results
        now_ms: Reference time for the recency bonus
        recency: Recency bonus table

    Returns:
        Up to ``limit`` bookmarks ordered by relevance
    """
    if not query or not query.strip():
        return list(bookmarks[:limit])

    ranked = rank_bookmarks(bookmarks, query, now_ms=now_ms, recency=recency)
    return [item.bookmark for item in ranked[:limit]]


def search_suggestions(bookmarks: Sequence[BookmarkRecord], limit: int = 6) -> List[str]:
    """Starter prompts, then the most bookmarked domains."""
    domains = Counter()
    for bookmark in bookmarks:
        host = urlparse(bookmark.url).hostname
        if host:
            domains[host[4:] if host.startswith("www.") else host] += 1

    suggestions = list(STARTER_SUGGESTIONS)
    suggestions.extend(domain for domain, _ in domains.most_common(limit))
    return suggestions
