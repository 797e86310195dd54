"""Failure types raised while playing an AI turn.

The first three are masked from the player by the random fallback move; PreconditionViolation
signals a caller bug (wrong turn, finished game, turn already in flight).
"""
from __future__ import annotations


class LLMChessError(Exception):
    """Base class for all errors raised by llmchess_web."""


class TransportError(LLMChessError):
    """Network failure or non-success status from the move endpoint."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class StreamReadError(LLMChessError):
    """The streamed response body could not be read or decoded."""


class AmbiguousOrIllegalMove(LLMChessError):
    """The model reply did not resolve to exactly one legal move."""

    def __init__(self, raw: str, reason: str):
        super().__init__(f"{reason}: {raw!r}")
        self.raw = raw
        self.reason = reason


class PreconditionViolation(LLMChessError):
    """A command was issued in a state that does not allow it."""
