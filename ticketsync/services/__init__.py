"""Adapters for the external services the pipeline talks to."""

from .slack import FetchResult, MessageFetcher, Notifier, SlackClient

__all__ = ["FetchResult", "MessageFetcher", "Notifier", "SlackClient"]
