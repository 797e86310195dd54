"""
RandomMover: picks a uniformly random legal move.

- Fallback for AI turns when the model reply cannot be used (transport failure, unreadable
  stream, illegal or ambiguous move); keeps the game moving.
- Accepts an injected random.Random so tests can pin the choice.
"""
from __future__ import annotations
import random
from typing import Optional

import chess


class RandomMover:
    """Picks a uniformly random legal move from the board."""
    name: str = "Random"

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    def choose(self, board: chess.Board) -> Optional[chess.Move]:
        legal = list(board.legal_moves)
        return self.rng.choice(legal) if legal else None
