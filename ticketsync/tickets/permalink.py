"""Extract Slack channel and message identifiers from message permalinks."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any
from urllib.parse import parse_qs, urlparse

from .models import decode_reference

# Channel ids start with C (public), G (private/group) or D (direct message).
_CHANNEL_RE = re.compile(r"/archives/(?P<channel>[CGD][A-Z0-9]+)(?:/|$)")
_TIMESTAMP_RE = re.compile(r"/p(?P<digits>\d{16})(?!\d)")
_THREAD_TS_RE = re.compile(r"^\d{10}\.\d{6}$")


@dataclass(frozen=True, slots=True)
class Permalink:
    """Identifiers decoded from a message permalink."""

    channel_id: str
    message_timestamp: str
    thread_timestamp: str | None = None


def decode_timestamp(digits: str) -> str:
    """Convert the 16 digits of a permalink into ``seconds.micros`` form."""

    return f"{digits[:10]}.{digits[10:]}"


def parse_permalink(reference: Any) -> Permalink | None:
    """Return the identifiers carried by ``reference`` or ``None`` if it is not a permalink."""

    if not isinstance(reference, str):
        return None
    url = decode_reference(reference)
    if not url:
        return None

    channel_match = _CHANNEL_RE.search(url)
    if channel_match is None:
        return None
    timestamp_match = _TIMESTAMP_RE.search(url, channel_match.end("channel"))
    if timestamp_match is None:
        return None

    thread_ts: str | None = None
    try:
        query = parse_qs(urlparse(url).query)
    except ValueError:
        query = {}
    candidates = query.get("thread_ts") or []
    if candidates and _THREAD_TS_RE.match(candidates[0]):
        thread_ts = candidates[0]

    return Permalink(
        channel_id=channel_match.group("channel"),
        message_timestamp=decode_timestamp(timestamp_match.group("digits")),
        thread_timestamp=thread_ts,
    )
