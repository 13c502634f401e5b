"""
vigil.errors — Failure taxonomy for the anti-cheat engine
==========================================================

"Not enough history" is never an exception: analyzers return neutral results
with an explanatory reason.  Only these conditions surface as failures.
"""

from __future__ import annotations


class AntiCheatError(Exception):
    """Base exception for anti-cheat failures."""


class InvalidInput(AntiCheatError, ValueError):
    """Malformed identifier or out-of-range argument, rejected before any work."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(f"{field}: {message}")
        self.field = field
        self.message = message


class UpstreamUnavailable(AntiCheatError):
    """A collaborator store failed to answer."""

    def __init__(self, source: str, message: str | None = None) -> None:
        super().__init__(message or f"{source} is unavailable")
        self.source = source


class NotFound(AntiCheatError):
    """A referenced record does not exist."""
