"""Relay fetcher for probing and proxying captured media."""

from .fetcher import RelayBody, RelayFetcher, RelayError, looks_playable

__all__ = ["RelayBody", "RelayFetcher", "RelayError", "looks_playable"]
