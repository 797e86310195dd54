"""
Move interpretation for raw LLM replies.

Turns the text streamed back by the model into exactly one legal move for a FEN:
1) strip a single known boilerplate prefix ("Move:", "AI Move:", "Black plays:");
2) pull out the first UCI-looking token (e7e5, a2a1q);
3) accept it if it is legal (pawns reaching the last rank default to a queen);
4) otherwise try SAN matchers in priority order: exact, case-insensitive, symbols stripped.

Ambiguity at any SAN step is a failure rather than a guess.
"""
from __future__ import annotations

import logging
import re
from functools import lru_cache
from typing import Callable, NamedTuple, Optional, TypedDict

import chess

from .errors import AmbiguousOrIllegalMove

log = logging.getLogger("move_interpreter")

PREFIX_RE = re.compile(r"^(?:AI Move|Black plays|Move):\s*", re.I)
UCI_SEARCH_RE = re.compile(r"\b([a-h][1-8][a-h][1-8][qrbnQRBN]?)\b")
UCI_RE = re.compile(r"^[a-h][1-8][a-h][1-8][qrbn]?$")
_NON_ALNUM_RE = re.compile(r"[^a-z0-9]", re.I)


class LegalMove(NamedTuple):
    uci: str
    san: str


class ParsedMove(TypedDict):
    uci: str
    san: str
    rule: str


Matcher = Callable[[str, tuple[LegalMove, ...]], list[LegalMove]]


@lru_cache(maxsize=4096)
def legal_moves_for(fen: str) -> tuple[LegalMove, ...]:
    """Cache and return (uci, san) pairs for every legal move in the FEN."""
    board = chess.Board(fen=fen)
    return tuple(LegalMove(m.uci(), board.san(m)) for m in board.legal_moves)


def legal_uci_moves(fen: str) -> list[str]:
    """Return the legal UCI moves for the FEN, sorted."""
    return sorted(lm.uci for lm in legal_moves_for(fen))


def strip_prefix(text: str) -> str:
    """Remove one leading boilerplate prefix, if present."""
    return PREFIX_RE.sub("", text.strip(), count=1).strip()


def extract_coordinate(text: str) -> str:
    """Return the first UCI-looking token lowercased, or the text itself when none is found."""
    m = UCI_SEARCH_RE.search(text)
    if m:
        return m.group(1).lower()
    return text


def with_default_promotion(token: str, board: chess.Board) -> str:
    """Append a queen promotion when a pawn reaches the last rank without one."""
    if len(token) != 4:
        return token
    from_sq = chess.parse_square(token[:2])
    to_sq = chess.parse_square(token[2:4])
    piece = board.piece_at(from_sq)
    if piece and piece.piece_type == chess.PAWN and chess.square_rank(to_sq) in (0, 7):
        return token + "q"
    return token


def match_coordinate(token: str, fen: str) -> Optional[LegalMove]:
    """Resolve a coordinate token against the FEN; None if it is not a legal move."""
    if not UCI_RE.fullmatch(token):
        return None
    board = chess.Board(fen=fen)
    candidate = with_default_promotion(token, board)
    for lm in legal_moves_for(fen):
        if lm.uci == candidate:
            return lm
    return None


# ------------------------- SAN matchers -------------------------
def _san_exact(token: str, legal: tuple[LegalMove, ...]) -> list[LegalMove]:
    return [lm for lm in legal if lm.san == token]


def _san_casefold(token: str, legal: tuple[LegalMove, ...]) -> list[LegalMove]:
    wanted = token.lower()
    return [lm for lm in legal if lm.san.lower() == wanted]


def _alnum(text: str) -> str:
    return _NON_ALNUM_RE.sub("", text).lower()


def _san_alnum(token: str, legal: tuple[LegalMove, ...]) -> list[LegalMove]:
    wanted = _alnum(token)
    if not wanted:
        return []
    return [lm for lm in legal if _alnum(lm.san) == wanted]


SAN_MATCHERS: list[tuple[str, Matcher]] = [
    ("san_exact", _san_exact),
    ("san_casefold", _san_casefold),
    ("san_alnum", _san_alnum),
]


def match_san(token: str, fen: str, raw: str | None = None) -> tuple[LegalMove, str] | None:
    """Run SAN matchers in order; first single hit wins, multiple hits raise."""
    legal = legal_moves_for(fen)
    for rule, matcher in SAN_MATCHERS:
        hits = matcher(token, legal)
        if len(hits) == 1:
            return hits[0], rule
        if len(hits) > 1:
            log.debug("%s matched %d moves for %r: %s", rule, len(hits), token, [h.san for h in hits])
            raise AmbiguousOrIllegalMove(raw if raw is not None else token, "ambiguous_move")
    return None


def interpret_move(raw_text: str, fen: str) -> ParsedMove:
    """Map a raw model reply to one legal move for the FEN.

    Raises AmbiguousOrIllegalMove (reason: empty_reply, ambiguous_move, illegal_move).
    """
    raw = raw_text or ""
    text = strip_prefix(raw)
    if not text:
        raise AmbiguousOrIllegalMove(raw, "empty_reply")

    token = extract_coordinate(text)
    hit = match_coordinate(token, fen)
    if hit:
        return {"uci": hit.uci, "san": hit.san, "rule": "uci"}

    found = match_san(token, fen, raw=raw)
    if found:
        lm, rule = found
        return {"uci": lm.uci, "san": lm.san, "rule": rule}

    raise AmbiguousOrIllegalMove(raw, "illegal_move")


__all__ = [
    "LegalMove",
    "ParsedMove",
    "SAN_MATCHERS",
    "interpret_move",
    "legal_moves_for",
    "legal_uci_moves",
    "match_coordinate",
    "match_san",
    "strip_prefix",
    "with_default_promotion",
]
