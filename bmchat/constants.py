"""
Constants for bmchat.

These constants are used by various modules for sensible defaults.
Many are also available via the config system.
"""

# Relevance weights
FULL_QUERY_TITLE_WEIGHT = 100
FULL_QUERY_DESCRIPTION_WEIGHT = 80
FULL_QUERY_URL_WEIGHT = 60
TERM_TITLE_WEIGHT = 50
TERM_DESCRIPTION_WEIGHT = 30
TERM_URL_WEIGHT = 20
TERM_TITLE_PREFIX_WEIGHT = 20

# Limits
DEFAULT_SEARCH_LIMIT = 10
REMOTE_SEARCH_BOOKMARK_LIMIT = 50
DEFAULT_HISTORY_SIZE = 100
RECENT_WINDOW_DAYS = 7

# Context budget
CONTEXT_TOKEN_SHARE = 0.6
RECENT_CONTEXT_SHARE = 0.7
DEFAULT_TOKENS_PER_BOOKMARK = 50

# Time
MS_PER_DAY = 1000 * 60 * 60 * 24

# Reasoning segment markers
THINKING_START = "<thinking-start>"
THINKING_END = "<thinking-end>"

# Server-sent events
SSE_DATA_PREFIX = "data: "
SSE_DONE = "[DONE]"
