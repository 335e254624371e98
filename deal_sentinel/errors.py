"""
Exception types raised by DealSentinel.

Nothing here is fatal to the process.  `ValidationError` is raised back to
whoever asked for the action; `UpstreamError` is either surfaced as a
"search failed" message or recorded against a tracked game during a refresh.
"""
from __future__ import annotations


class DealSentinelError(Exception):
    """Base class for all DealSentinel errors."""


class ValidationError(DealSentinelError, ValueError):
    """Bad user input: blank query, missing or non-positive target price."""


class UpstreamError(DealSentinelError):
    """The deals API could not be reached or returned something unusable."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status
