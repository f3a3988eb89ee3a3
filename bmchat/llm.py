"""
Chat-completion client for bmchat.

Works with any OpenAI-compatible ``/chat/completions`` endpoint. Provides
two modes:

- ``stream_chat``: answer a question about the bookmarks, streaming the
  reply as StreamChunks (reasoning and answer channels)
- ``search_bookmarks``: ask the model for a ranked list of bookmark ids

Neither mode raises on remote failure: chat degrades to a single
explanatory answer chunk and search falls back to local ranking.
"""
import json
import logging
from contextlib import closing
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence

import requests

from bmchat.config import BmchatConfig
from bmchat.constants import REMOTE_SEARCH_BOOKMARK_LIMIT, THINKING_START
from bmchat.context import format_context, select_context
from bmchat.models import BookmarkRecord, StreamChunk
from bmchat.search import local_search
from bmchat.stream import iter_response_chunks

logger = logging.getLogger(__name__)

NOT_CONFIGURED_MESSAGE = (
    "Sorry, no AI API key is configured, so I can't chat about your bookmarks. "
    "Set one with `bmchat config set api_key <key>` or the BMCHAT_API_KEY "
    "environment variable."
)

CHAT_SYSTEM_PROMPT = """You are a helpful bookmark assistant. The user has {total} bookmarks in total; here are {shown} of them that may be relevant:

{context}

Answer the user's question using these bookmarks. When the user asks about a specific site or topic, recommend matching bookmarks as markdown links. If the bookmark they need is not in the list above, suggest trying a more specific keyword search. Reply in markdown and keep the answer concise and helpful."""

SEARCH_PROMPT = """You are a helpful bookmark assistant. The user has these bookmarks:

{listing}

User query: "{query}"

Work out what the user is looking for and find the most relevant bookmarks. Return a JSON array of the relevant bookmark IDs, most relevant first.

Example format:
["bookmark_id_1", "bookmark_id_2", "bookmark_id_3"]

Return only the JSON array, with no other explanation."""


class RemoteRequestError(Exception):
    """Raised when the chat-completion endpoint can't be reached or rejects a request."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def build_chat_messages(query: str,
                        bookmarks: Sequence[BookmarkRecord],
                        config: BmchatConfig,
                        now_ms: Optional[int] = None) -> List[Dict[str, str]]:
    """Build the system and user messages for a chat request."""
    selected = select_context(
        bookmarks,
        query,
        config.max_tokens,
        config.tokens_per_bookmark,
        now_ms=now_ms,
        recency=config.recency_weights(),
    )
    system_prompt = CHAT_SYSTEM_PROMPT.format(
        total=len(bookmarks),
        shown=len(selected),
        context=format_context(selected),
    )
    return [
        {"role": "system", "content": system_prompt},
        {"role": "user", "content": query},
    ]


def build_search_prompt(query: str, bookmarks: Sequence[BookmarkRecord]) -> str:
    """Build the prompt asking the model for a JSON array of bookmark ids."""
    entries = []
    for i, b in enumerate(bookmarks[:REMOTE_SEARCH_BOOKMARK_LIMIT], start=1):
        entries.append(
            f"{i}. ID: {b.id}\n"
            f"   Title: {b.title}\n"
            f"   URL: {b.url}\n"
            f"   Description: {b.description or ''}"
        )
    return SEARCH_PROMPT.format(listing="\n\n".join(entries), query=query)


def _strip_code_fence(text: str) -> str:
    text = text.strip()
    if text.startswith("```"):
        # Drop the opening fence line (``` or ```json) and the closing fence
        text = text.split("\n", 1)[1] if "\n" in text else ""
        if text.rstrip().endswith("```"):
            text = text.rstrip()[:-3]
    return text.strip()


def parse_search_response(response_data: Any,
                          bookmarks: Sequence[BookmarkRecord]) -> Optional[List[BookmarkRecord]]:
    """
    Map a non-streaming completion back to bookmarks.

    Args:
        response_data: Decoded JSON body of the completion
        bookmarks: Bookmarks the ids refer to

    Returns:
        Bookmarks in the order the model returned their ids, unknown ids
        skipped; None if the response has no usable JSON array
    """
    try:
        content = response_data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        return None

    if not isinstance(content, str) or not content.strip():
        return None

    try:
        ids = json.loads(_strip_code_fence(content))
    except ValueError:
        return None

    if not isinstance(ids, list):
        return None

    by_id = {b.id: b for b in bookmarks}
    results = []
    for bookmark_id in ids:
        if isinstance(bookmark_id, (str, int)) and not isinstance(bookmark_id, bool):
            bookmark = by_id.get(str(bookmark_id))
            if bookmark is not None:
                results.append(bookmark)
    return results


def collect_answer(chunks: Iterable[StreamChunk]) -> str:
    """Concatenate the answer-channel text of a chunk sequence."""
    return "".join(chunk.text for chunk in chunks if chunk.is_answer)


class ChatClient:
    """
    Client for an OpenAI-compatible chat-completion endpoint.
    """

    def __init__(self, config: BmchatConfig, session: Optional[requests.Session] = None):
        """
        Initialize the client.

        Args:
            config: Endpoint and search settings
            session: Optional pre-built session (e.g. for connection reuse)
        """
        self.config = config
        self.session = session or requests.Session()
        self.session.headers["Content-Type"] = "application/json"
        if config.has_credentials():
            self.session.headers["Authorization"] = f"Bearer {config.api_key.strip()}"

    @property
    def endpoint(self) -> str:
        return f"{self.config.base_url.rstrip('/')}/chat/completions"

    def _post(self, messages: List[Dict[str, str]], stream: bool) -> requests.Response:
        """
        Send a chat-completion request.

        Raises:
            RemoteRequestError: On transport failure or a non-2xx response
        """
        data = {
            "model": self.config.resolved_model,
            "messages": messages,
            "max_tokens": self.config.max_tokens,
            "temperature": self.config.temperature,
            "stream": stream,
        }

        try:
            response = self.session.post(
                self.endpoint,
                json=data,
                timeout=self.config.timeout,
                stream=stream,
            )
        except requests.RequestException as e:
            raise RemoteRequestError(f"Error calling chat endpoint: {e}")

        if not response.ok:
            try:
                detail = response.text[:200]
            except requests.RequestException:
                detail = ""
            finally:
                response.close()
            raise RemoteRequestError(
                f"API request failed: {response.status_code} {response.reason} {detail}".rstrip(),
                status_code=response.status_code,
            )

        return response

    def stream_chat(self,
                    query: str,
                    bookmarks: Sequence[BookmarkRecord],
                    now_ms: Optional[int] = None) -> Iterator[StreamChunk]:
        """
        Answer a question about the bookmarks, streaming the reply.

        Args:
            query: The user's question
            bookmarks: All bookmarks, newest first
            now_ms: Reference time for context selection

        Yields:
            StreamChunks in arrival order. Without an API key, with invalid
            settings, or when the remote call fails, a single explanatory
            answer chunk.
        """
        if not self.config.has_credentials():
            yield StreamChunk.answer(NOT_CONFIGURED_MESSAGE)
            return

        try:
            messages = build_chat_messages(query, bookmarks, self.config, now_ms=now_ms)
        except ValueError as e:
            logger.error(f"Invalid chat settings: {e}")
            yield StreamChunk.answer(f"Sorry, your bmchat settings are invalid: {e}")
            return

        in_reasoning = False

        try:
            response = self._post(messages, stream=True)
            with closing(iter_response_chunks(response)) as chunks:
                for chunk in chunks:
                    if chunk.boundary:
                        in_reasoning = chunk.text == THINKING_START
                    yield chunk
        except (RemoteRequestError, requests.RequestException) as e:
            logger.error(f"Streaming chat failed: {e}")
            if in_reasoning:
                yield StreamChunk.thinking_end()
            yield StreamChunk.answer(f"Sorry, the AI service is unavailable right now: {e}")

    def search_bookmarks(self,
                         query: str,
                         bookmarks: Sequence[BookmarkRecord],
                         now_ms: Optional[int] = None,
                         limit: Optional[int] = None) -> List[BookmarkRecord]:
        """
        Find the bookmarks most relevant to a query.

        Uses the remote model when an API key is configured, otherwise (and
        on any failure) the local relevance ranking.

        Args:
            limit: Maximum results. Remote results are returned in full when
                not given; local results default to ``config.search_limit``.
        """
        local_limit = limit or self.config.search_limit
        recency = self.config.recency_weights()

        if not self.config.has_credentials():
            return local_search(bookmarks, query, limit=local_limit, now_ms=now_ms, recency=recency)

        messages = [{"role": "user", "content": build_search_prompt(query, bookmarks)}]
        try:
            response = self._post(messages, stream=False)
            response_data = response.json()
        except (RemoteRequestError, requests.RequestException, ValueError) as e:
            logger.warning(f"AI search failed, using local search: {e}")
            return local_search(bookmarks, query, limit=local_limit, now_ms=now_ms, recency=recency)

        results = parse_search_response(response_data, bookmarks)
        if results is None:
            logger.warning("Could not parse AI search response, using local search")
            return local_search(bookmarks, query, limit=local_limit, now_ms=now_ms, recency=recency)

        if limit:
            return results[:limit]
        return results
