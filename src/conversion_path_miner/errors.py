"""Exceptions raised by the path miner."""
from __future__ import annotations


class PathMinerError(Exception):
    """Base class for path miner failures."""


class UpstreamUnavailable(PathMinerError):
    """An event or window source could not be read.

    Fatal for the run: nothing is published and the previous batch stays
    visible to readers.
    """

    def __init__(self, source: str, reason: str) -> None:
        super().__init__(f"{source} source unavailable: {reason}")
        self.source = source
        self.reason = reason
