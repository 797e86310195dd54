"""
Game orchestrator: owns the position and drives human and AI turns.

- Human (White) moves come in through submit_human_move / submit_human_text.
- request_ai_move runs one AI (Black) turn: ModelTurnRequest → move endpoint → interpreter →
  apply, or a uniformly random legal move when anything along the way fails.
- At most one AI turn is outstanding. Each turn carries a TurnTicket (generation + FEN); a reply
  that arrives after reset_game or any other position change is discarded.
- Listeners registered with subscribe() receive a snapshot dict after every state change.
"""
from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Protocol

import chess

from . import referee
from .config import SETTINGS
from .errors import AmbiguousOrIllegalMove, PreconditionViolation, StreamReadError, TransportError
from .move_client import ModelTurnRequest, MoveEndpointClient
from .move_interpreter import ParsedMove, interpret_move, legal_uci_moves, with_default_promotion
from .random_mover import RandomMover

WELCOME_STATUS = "Your turn! You play as White."
THINKING_STATUS = "AI is thinking..."

FALLBACK_ERRORS = (TransportError, StreamReadError, AmbiguousOrIllegalMove)


class TurnPhase(str, Enum):
    IDLE = "idle"
    AWAITING_MODEL = "awaiting_model"
    INTERPRETING = "interpreting"
    FALLBACK_RANDOM = "fallback_random"
    APPLIED = "applied"


class MoveSource(Protocol):
    async def fetch_move_text(self, request: ModelTurnRequest) -> str: ...


@dataclass(frozen=True)
class TurnTicket:
    generation: int
    position: str


@dataclass
class TurnOutcome:
    uci: str
    san: str
    fallback_used: bool
    position: str
    status: str
    raw: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "uci": self.uci,
            "san": self.san,
            "fallback_used": self.fallback_used,
            "position": self.position,
            "status": self.status,
            "raw": self.raw,
            "error": self.error,
        }


Listener = Callable[[dict], None]


class Orchestrator:
    def __init__(self, model: Optional[str] = None, move_source: Optional[MoveSource] = None,
                 fallback: Optional[RandomMover] = None):
        self.log = logging.getLogger("Orchestrator")
        self.model = model or SETTINGS.default_model
        self.move_source = move_source or MoveEndpointClient()
        self.fallback = fallback or RandomMover()
        self._lock = threading.RLock()
        self._listeners: list[Listener] = []
        self._pending: Optional[TurnTicket] = None
        self.board = chess.Board()
        self.generation = 0
        self.phase = TurnPhase.IDLE
        self.status = WELCOME_STATUS
        self.last_outcome: Optional[TurnOutcome] = None
        self.last_error: Optional[str] = None

    # ---------------- Read side -----------------
    @property
    def position(self) -> str:
        return self.board.fen()

    @property
    def ai_thinking(self) -> bool:
        return self._pending is not None

    def is_game_over(self) -> bool:
        return referee.is_game_over(self.board)

    def legal_targets(self, square: str) -> list[str]:
        """Legal destination squares for a White piece on `square` (empty outside White's turn)."""
        with self._lock:
            if self.ai_thinking or self.board.turn != chess.WHITE or self.is_game_over():
                return []
            return referee.legal_targets(self.board, square)

    def snapshot(self) -> dict:
        with self._lock:
            board = self.board
            over = referee.is_game_over(board)
            return {
                "position": board.fen(),
                "status": self.status,
                "ai_thinking": self.ai_thinking,
                "phase": self.phase.value,
                "turn": referee.side_to_move(board),
                "game_over": over,
                "result": referee.result(board) if over else "*",
                "termination_reason": referee.termination_reason(board) if over else None,
                "history": referee.san_history(board),
                "last_ai_raw": self.last_outcome.raw if self.last_outcome else None,
                "last_error": self.last_error,
                "model": self.model,
                "generation": self.generation,
            }

    def pgn(self) -> str:
        with self._lock:
            return referee.pgn(self.board, white="Human", black=self.model)

    # ---------------- Notifications -----------------
    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self) -> None:
        snap = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snap)
            except Exception:
                self.log.exception("State listener %r failed", listener)

    # ---------------- Commands -----------------
    def reset_game(self) -> None:
        """Start a fresh game; any AI turn still in flight becomes stale."""
        with self._lock:
            self.generation += 1
            self.board = chess.Board()
            self._pending = None
            self.phase = TurnPhase.IDLE
            self.status = WELCOME_STATUS
            self.last_outcome = None
            self.last_error = None
        self.log.info("New game (generation %d)", self.generation)
        self._notify()

    def submit_human_move(self, from_square: str, to_square: str, promotion: Optional[str] = None) -> Optional[str]:
        """Apply White's move; returns SAN, or None if the move is not legal here."""
        with self._lock:
            self._check_human_turn()
            token = f"{from_square}{to_square}{promotion or ''}".strip().lower()
            try:
                move = chess.Move.from_uci(with_default_promotion(token, self.board))
            except ValueError:
                return None
            if move not in self.board.legal_moves:
                return None
            self.board, san = referee.apply_move(self.board, move)
            self.phase = TurnPhase.IDLE
            self.status = referee.status_text(self.board) or f"You played: {san}"
        self.log.debug("Human played %s (%s)", san, move.uci())
        self._notify()
        return san

    def submit_human_text(self, raw: str) -> Optional[str]:
        """Apply White's move given as UCI or SAN text."""
        raw = (raw or "").strip()
        if not raw:
            return None
        with self._lock:
            self._check_human_turn()
            move = None
            try:
                move = chess.Move.from_uci(with_default_promotion(raw.lower(), self.board))
            except ValueError:
                move = None
            if move is None or move not in self.board.legal_moves:
                try:
                    move = self.board.parse_san(raw)
                except ValueError:
                    move = None
        if move is None:
            return None
        promo = chess.piece_symbol(move.promotion) if move.promotion else None
        return self.submit_human_move(chess.square_name(move.from_square), chess.square_name(move.to_square), promo)

    def _check_human_turn(self) -> None:
        if self.ai_thinking:
            raise PreconditionViolation("AI turn in progress")
        if self.is_game_over():
            raise PreconditionViolation("game is already over")
        if self.board.turn != chess.WHITE:
            raise PreconditionViolation("not White's turn")

    # ---------------- AI turn -----------------
    async def request_ai_move(self) -> Optional[TurnOutcome]:
        """Play Black's move. Returns the outcome, or None when skipped or stale."""
        try:
            ticket, request = self._begin_ai_turn()
        except PreconditionViolation as exc:
            self.log.error("AI turn skipped: %s", exc)
            return None
        self._notify()
        try:
            raw, parsed, error = await self._ask_model(ticket, request)
            return self._complete_ai_turn(ticket, raw, parsed, error)
        finally:
            self._release(ticket)

    def run_ai_turn(self) -> Optional[TurnOutcome]:
        """Blocking wrapper around request_ai_move for synchronous callers."""
        return asyncio.run(self.request_ai_move())

    def _begin_ai_turn(self) -> tuple[TurnTicket, ModelTurnRequest]:
        with self._lock:
            if self._pending is not None:
                raise PreconditionViolation("an AI turn is already outstanding")
            if self.is_game_over():
                raise PreconditionViolation("game is already over")
            if self.board.turn != chess.BLACK:
                raise PreconditionViolation("AI called when it's not Black's turn")
            fen = self.board.fen()
            ticket = TurnTicket(self.generation, fen)
            self._pending = ticket
            self.phase = TurnPhase.AWAITING_MODEL
            self.status = THINKING_STATUS
            request = ModelTurnRequest(position=fen, legal_moves=tuple(legal_uci_moves(fen)), model=self.model)
        self.log.info("Requesting AI move: fen=%s legal_moves=%d model=%s", fen, len(request.legal_moves), self.model)
        return ticket, request

    async def _ask_model(self, ticket: TurnTicket, request: ModelTurnRequest) -> tuple[Optional[str], Optional[ParsedMove], Optional[Exception]]:
        raw: Optional[str] = None
        try:
            raw = await self.move_source.fetch_move_text(request)
            self.log.debug("AI response: %r", raw)
            if self._advance(ticket, TurnPhase.INTERPRETING):
                self._notify()
            return raw, interpret_move(raw, ticket.position), None
        except FALLBACK_ERRORS as exc:
            return raw, None, exc

    def _complete_ai_turn(self, ticket: TurnTicket, raw: Optional[str], parsed: Optional[ParsedMove],
                          error: Optional[Exception]) -> Optional[TurnOutcome]:
        with self._lock:
            if not self._is_current(ticket):
                self.log.info("Discarding AI reply for stale position (generation %d, now %d)",
                              ticket.generation, self.generation)
                return None
            if error is None and parsed is not None:
                move = chess.Move.from_uci(parsed["uci"])
            else:
                self.log.warning("Error making AI move: %s; playing a random legal move", error)
                self.phase = TurnPhase.FALLBACK_RANDOM
                move = self.fallback.choose(self.board)
                if move is None:
                    # unreachable while the game-over precondition holds
                    raise PreconditionViolation("no legal moves for fallback")
            self.board, san = referee.apply_move(self.board, move)
            self._pending = None
            fallback_used = error is not None
            self.phase = TurnPhase.APPLIED
            played = f"AI made random move: {san} (due to error)" if fallback_used else f"AI played: {san}"
            self.status = referee.status_text(self.board) or played
            self.last_error = str(error) if error else None
            outcome = TurnOutcome(
                uci=move.uci(),
                san=san,
                fallback_used=fallback_used,
                position=self.board.fen(),
                status=self.status,
                raw=raw,
                error=self.last_error,
            )
            self.last_outcome = outcome
        self.log.info("AI played %s (fallback=%s)", san, fallback_used)
        self._notify()
        return outcome

    def _is_current(self, ticket: TurnTicket) -> bool:
        return (self._pending is ticket
                and self.generation == ticket.generation
                and self.board.fen() == ticket.position)

    def _advance(self, ticket: TurnTicket, phase: TurnPhase) -> bool:
        with self._lock:
            if not self._is_current(ticket):
                return False
            self.phase = phase
            return True

    def _release(self, ticket: TurnTicket) -> None:
        with self._lock:
            if self._pending is ticket:
                self._pending = None
