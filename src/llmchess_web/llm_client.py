from __future__ import annotations
"""
LLM client facade behind the /api/move endpoint.

Model identifiers use a "provider:model" form (e.g. "openai:gpt-4"). The provider prefix picks
an OpenAI-compatible client from a small registry; the rest is passed through as the model
name. Replies are streamed back as plain text deltas.
"""
from functools import lru_cache
from typing import Dict, Iterator, List, Optional, Sequence
import logging

from openai import OpenAI

from .config import SETTINGS
from .prompting import PromptConfig, build_move_messages

log = logging.getLogger("llm_client")


def _provider_settings() -> Dict[str, Dict[str, str]]:
    return {
        "openai": {"api_key": SETTINGS.llm_api_key, "base_url": SETTINGS.api_base},
        "gateway": {"api_key": SETTINGS.gateway_api_key, "base_url": SETTINGS.gateway_base},
    }


PROVIDERS = tuple(_provider_settings())


def resolve_model(model: Optional[str]) -> tuple[str, str]:
    """Split "provider:model" into its parts; bare names use the default provider."""
    model = (model or SETTINGS.default_model or "").strip()
    if not model:
        raise ValueError("Model is required; set LLMCHESS_DEFAULT_MODEL or pass 'model'.")
    provider, sep, name = model.partition(":")
    if not sep:
        provider, name = SETTINGS.default_provider, model
    provider = provider.lower()
    if provider not in PROVIDERS:
        raise ValueError(f"Unknown provider '{provider}' in model '{model}'")
    if not name:
        raise ValueError(f"Missing model name in '{model}'")
    return provider, name


@lru_cache(maxsize=None)
def get_client(provider: str) -> OpenAI:
    opts = _provider_settings()[provider]
    return OpenAI(api_key=opts["api_key"] or None, base_url=opts["base_url"] or None)


# ------------------------- Chat wrappers -------------------------
def stream_conversation(messages: List[Dict[str, str]], model: Optional[str] = None) -> Iterator[str]:
    """Stream the assistant reply to a chat conversation, yielding text deltas."""
    provider, name = resolve_model(model)
    client = get_client(provider)
    stream = client.chat.completions.create(
        model=name,
        messages=messages,
        stream=True,
        timeout=SETTINGS.responses_timeout_s,
    )
    for chunk in stream:
        if not chunk.choices:
            continue
        delta = getattr(chunk.choices[0], "delta", None)
        content = getattr(delta, "content", None)
        if isinstance(content, str) and content:
            yield content


def stream_move_text(fen: str, legal_moves: Sequence[str], model: Optional[str] = None,
                     prompt_cfg: PromptConfig | None = None) -> Iterator[str]:
    """Ask the model for Black's move in `fen` and stream its raw reply."""
    messages = build_move_messages(fen, legal_moves, prompt_cfg)
    log.debug("Requesting move from %s for %s (%d legal moves)", model, fen, len(legal_moves))
    return stream_conversation(messages, model=model)
