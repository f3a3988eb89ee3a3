"""
Relevance scoring for bookmarks.

A deterministic weighted rule set: full-query substring matches, per-term
matches, a title-prefix bonus, and a small recency bonus for bookmarks that
matched at all.
"""
import time
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from bmchat.constants import (
    FULL_QUERY_DESCRIPTION_WEIGHT,
    FULL_QUERY_TITLE_WEIGHT,
    FULL_QUERY_URL_WEIGHT,
    MS_PER_DAY,
    TERM_DESCRIPTION_WEIGHT,
    TERM_TITLE_PREFIX_WEIGHT,
    TERM_TITLE_WEIGHT,
    TERM_URL_WEIGHT,
)
from bmchat.models import BookmarkRecord


@dataclass(frozen=True)
class RecencyWeights:
    """
    Recency bonus table.

    Args:
        tiers: (max_age_days, bonus) pairs, youngest first
        cumulative: If True every tier the age falls under adds its bonus;
            otherwise only the first matching tier counts
    """

    tiers: Tuple[Tuple[float, int], ...]
    cumulative: bool = True

    def bonus(self, age_days: float) -> int:
        total = 0
        for max_age, weight in self.tiers:
            if age_days < max_age:
                total += weight
                if not self.cumulative:
                    break
        return total


# +5 under a week, +2 under a month; the two stack
DEFAULT_RECENCY = RecencyWeights(tiers=((7, 5), (30, 2)), cumulative=True)

# +10 under a week, else +5 under a month, else +2 under three months
TIERED_RECENCY = RecencyWeights(tiers=((7, 10), (30, 5), (90, 2)), cumulative=False)

RECENCY_PROFILES: Dict[str, RecencyWeights] = {
    "default": DEFAULT_RECENCY,
    "tiered": TIERED_RECENCY,
}


def get_recency_weights(name: str) -> RecencyWeights:
    """Look up a recency profile by name."""
    try:
        return RECENCY_PROFILES[name]
    except KeyError:
        raise ValueError(
            f"Unknown recency profile: {name} "
            f"(expected one of {', '.join(sorted(RECENCY_PROFILES))})"
        )


def now_millis() -> int:
    return int(time.time() * 1000)


def tokenize_query(query: str) -> List[str]:
    """Lower-case a query and split it into non-empty whitespace terms."""
    return query.lower().split()


def days_since(date_added: int, now_ms: Optional[int] = None) -> float:
    """Age of a bookmark in (fractional) days."""
    if now_ms is None:
        now_ms = now_millis()
    return (now_ms - date_added) / MS_PER_DAY


def score_bookmark(bookmark: BookmarkRecord,
                   terms: List[str],
                   full_query: str,
                   now_ms: Optional[int] = None,
                   recency: Optional[RecencyWeights] = None) -> int:
    """
    Score a bookmark against a query.

    Args:
        bookmark: Bookmark to score
        terms: Lower-cased query terms (see ``tokenize_query``)
        full_query: The whole lower-cased query
        now_ms: Reference time in epoch milliseconds (defaults to now)
        recency: Recency bonus table (defaults to ``DEFAULT_RECENCY``)

    Returns:
        Non-negative integer score; 0 when nothing matched
    """
    title = bookmark.title.lower()
    url = bookmark.url.lower()
    description = (bookmark.description or "").lower()

    score = 0

    if full_query:
        if full_query in title:
            score += FULL_QUERY_TITLE_WEIGHT
        if full_query in description:
            score += FULL_QUERY_DESCRIPTION_WEIGHT
        if full_query in url:
            score += FULL_QUERY_URL_WEIGHT

    for term in terms:
        if not term:
            continue
        if term in title:
            score += TERM_TITLE_WEIGHT
        if term in description:
            score += TERM_DESCRIPTION_WEIGHT
        if term in url:
            score += TERM_URL_WEIGHT
        if title.startswith(term):
            score += TERM_TITLE_PREFIX_WEIGHT

    # Recency only breaks ties between real matches
    if score == 0:
        return 0

    weights = recency or DEFAULT_RECENCY
    score += weights.bonus(days_since(bookmark.date_added, now_ms))
    return score
