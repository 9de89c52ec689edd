from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Protocol

import httpx

from ticketsync.tickets.permalink import Permalink

logger = logging.getLogger(__name__)

_REPLIES_PAGE_SIZE = 200
_MAX_PAGES = 10


@dataclass(frozen=True, slots=True)
class FetchResult:
    """Message text, or the reason it could not be read."""

    text: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and bool(self.text and self.text.strip())


class MessageFetcher(Protocol):
    async def fetch_message(self, permalink: Permalink) -> FetchResult:
        if permalink.thread_timestamp:
            # Replies always lead with the thread parent, so page until the reply shows up.
            endpoint = "conversations.replies"
            params: dict[str, Any] = {
                "channel": permalink.channel_id,
                "ts": permalink.thread_timestamp,
                "oldest": permalink.message_timestamp,
                "inclusive": "true",
                "limit": _REPLIES_PAGE_SIZE,
            }
        else:
            endpoint = "conversations.history"
            params = {
                "channel": permalink.channel_id,
                "latest": permalink.message_timestamp,
                "inclusive": "true",
                "limit": 1,
            }

        for _ in range(_MAX_PAGES):
            payload, error = await self._call("GET", endpoint, params=params)
            if error is not None:
                return FetchResult(error=error)

            for message in payload.get("messages") or []:
                if isinstance(message, Mapping) and message.get("ts") == permalink.message_timestamp:
                    text = message.get("text")
                    if isinstance(text, str) and text.strip():
                        return FetchResult(text=text)
                    return FetchResult(error="message_has_no_text")

            metadata = payload.get("response_metadata") or {}
            cursor = metadata.get("next_cursor") if isinstance(metadata, Mapping) else None
            if endpoint != "conversations.replies" or not cursor:
                break
            params = {**params, "cursor": cursor}
        return FetchResult(error="message_not_found")

    async def post_message(self, channel: str, text: str) -> bool:
        _, error = await self._call("POST", "chat.postMessage", json={"channel": channel, "text": text})
        if error is not None:
            logger.error("Failed to post message to %s: %s", channel, error)
            return False
        return True
