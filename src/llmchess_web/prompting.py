"""
Prompt builders and config for the move endpoint.

The model plays Black and is handed the FEN plus the list of legal UCI moves; it must answer
with one of them and nothing else.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Sequence

DEFAULT_SYSTEM = "Choose only from the provided legal moves."
DEFAULT_TEMPLATE = """You are a chess grandmaster playing as Black. The user is playing as White.
It is Black's turn to move.
Current board (FEN): {FEN}
Legal moves for Black (UCI): {LEGAL_MOVES}
You must respond with one of the provided UCI move strings, and nothing else. Do NOT use algebraic notation like e5, Nxe5, exf6, etc. For example, if the move is pawn from e7 to e5, respond with 'e7e5'. If the move is knight from g8 to f6, respond with 'g8f6'. Do not include any explanation, prefix, or extra text. Only output the move string itself."""


@dataclass
class PromptConfig:
    """Configuration for shaping move prompts using a custom template."""

    system_instructions: str = DEFAULT_SYSTEM
    template: str = DEFAULT_TEMPLATE


def render_custom_prompt(template: str, values: Dict[str, str]) -> str:
    """Replace known placeholders in the template. Unknown tokens are left intact."""
    rendered = template or ""
    for key, val in values.items():
        rendered = rendered.replace(f"{{{key}}}", val)
    return rendered


def build_move_messages(fen: str, legal_moves: Sequence[str], prompt_cfg: PromptConfig | None = None) -> List[Dict[str, str]]:
    """Construct chat messages asking for Black's move in the given position."""
    cfg = prompt_cfg or PromptConfig()
    values = {
        "FEN": fen,
        "LEGAL_MOVES": ", ".join(legal_moves) or "(none)",
    }
    return [
        {"role": "system", "content": cfg.system_instructions},
        {"role": "user", "content": render_custom_prompt(cfg.template, values)},
    ]
