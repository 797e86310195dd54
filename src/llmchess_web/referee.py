"""
Referee: thin adapter over python-chess, the rules oracle.

- Applies validated moves copy-on-move (the caller's board is never mutated).
- Derives status text, termination reason and result for a board.
- Lists legal destination squares for move-input highlighting.
- Exports the game as PGN.
"""
from __future__ import annotations

import datetime
from typing import Optional

import chess
import chess.pgn


def apply_move(board: chess.Board, move: chess.Move) -> tuple[chess.Board, str]:
    """Return (new_board, san) with move pushed on a copy; ValueError if it is illegal here."""
    if move not in board.legal_moves:
        raise ValueError(f"illegal move {move.uci()} for {board.fen()}")
    san = board.san(move)
    nxt = board.copy()
    nxt.push(move)
    return nxt, san


def apply_uci(board: chess.Board, uci: str) -> tuple[chess.Board, str]:
    return apply_move(board, chess.Move.from_uci(uci))


def side_to_move(board: chess.Board) -> str:
    return "white" if board.turn == chess.WHITE else "black"


def legal_targets(board: chess.Board, square: str) -> list[str]:
    """Destination squares of the side to move's legal moves from `square`."""
    try:
        origin = chess.parse_square(square)
    except ValueError:
        return []
    piece = board.piece_at(origin)
    if piece is None or piece.color != board.turn:
        return []
    targets = {chess.square_name(m.to_square) for m in board.legal_moves if m.from_square == origin}
    return sorted(targets)


def termination_reason(board: chess.Board) -> Optional[str]:
    """Derive a readable termination reason from a finished board."""
    if board.is_checkmate():
        return "checkmate"
    if board.is_stalemate():
        return "stalemate"
    if board.is_insufficient_material():
        return "insufficient_material"
    if board.is_seventyfive_moves():
        return "seventyfive_move_rule"
    if board.is_fivefold_repetition():
        return "fivefold_repetition"
    if board.is_fifty_moves():
        return "fifty_move_rule"
    if board.is_repetition():
        return "threefold_repetition"
    return None


def is_game_over(board: chess.Board) -> bool:
    # Draws that would only become claimable after the next move do not end the game.
    return termination_reason(board) is not None


def result(board: chess.Board) -> str:
    if board.is_checkmate():
        return "0-1" if board.turn == chess.WHITE else "1-0"
    return "1/2-1/2" if is_game_over(board) else "*"


def status_text(board: chess.Board) -> str:
    """Terminal or check message for the board, empty string when play simply continues."""
    if board.is_checkmate():
        return "Black wins by checkmate!" if board.turn == chess.WHITE else "White wins by checkmate!"
    reason = termination_reason(board)
    if reason == "stalemate":
        return "Game drawn by stalemate!"
    if reason == "insufficient_material":
        return "Game drawn by insufficient material!"
    if reason in ("threefold_repetition", "fivefold_repetition"):
        return "Game drawn by threefold repetition!"
    if reason is not None:
        return "Game drawn!"
    if board.is_check():
        return "White is in check!" if board.turn == chess.WHITE else "Black is in check!"
    return ""


def san_history(board: chess.Board) -> list[str]:
    replay = board.root()
    sans: list[str] = []
    for mv in board.move_stack:
        sans.append(replay.san(mv))
        replay.push(mv)
    return sans


def pgn(board: chess.Board, white: str = "Human", black: str = "?", event: str = "LLM Chess Web",
        date: Optional[str] = None) -> str:
    game = chess.pgn.Game.from_board(board)
    game.headers["Event"] = event
    game.headers["Date"] = date or datetime.date.today().strftime("%Y.%m.%d")
    game.headers["White"] = white
    game.headers["Black"] = black
    game.headers["Result"] = result(board) if is_game_over(board) else "*"
    exporter = chess.pgn.StringExporter(headers=True, variations=False, comments=False)
    return game.accept(exporter)
