"""
Configuration and environment loading for LLM Chess Web.

- Loads settings.yml (YAML) from repo root if present; falls back to environment variables.
- Exposes SETTINGS with keys used across the project (API keys, provider registry, endpoints, timeouts).
"""
from dataclasses import dataclass
import logging
import os
from typing import Any, Callable

import yaml
from dotenv import load_dotenv

load_dotenv()

log = logging.getLogger("config")


def _repo_root() -> str:
    # this file: src/llmchess_web/config.py → repo root is two levels up
    return os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))


def _load_yaml(path: str) -> dict:
    if not os.path.isfile(path):
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError):
        log.exception("Failed to read %s; using environment only", path)
        return {}
    return data if isinstance(data, dict) else {}


_cfg = _load_yaml(os.path.join(_repo_root(), "settings.yml"))


def _get(name: str, default: Any, cast: Callable[[Any], Any] | None = None) -> Any:
    if name in _cfg:
        val = _cfg[name]
        return cast(val) if cast else val
    env = os.environ.get(name)
    if env is not None:
        return cast(env) if cast else env
    return default


@dataclass(frozen=True)
class Settings:
    # Provider auth / endpoints (OpenAI-compatible wire format)
    llm_api_key: str
    api_base: str
    gateway_api_key: str
    gateway_base: str

    # Model selection
    default_model: str
    default_provider: str

    # Move endpoint consumed by the orchestrator
    move_endpoint_url: str
    responses_timeout_s: float

    # Server
    human_game_ttl_s: int
    host: str
    port: int


SETTINGS = Settings(
    llm_api_key=_get("LLMCHESS_LLM_API_KEY", _get("OPENAI_API_KEY", "")),
    api_base=_get("LLMCHESS_LLM_BASE_URL", "https://api.openai.com/v1"),
    gateway_api_key=_get("LLMCHESS_GATEWAY_API_KEY", _get("AI_GATEWAY_API_KEY", "")),
    gateway_base=_get("LLMCHESS_GATEWAY_BASE_URL", "https://ai-gateway.vercel.sh/v1"),
    default_model=_get("LLMCHESS_DEFAULT_MODEL", "openai:gpt-4"),
    default_provider=_get("LLMCHESS_DEFAULT_PROVIDER", "openai"),
    # Empty means "the /api/move route of the locally served app".
    move_endpoint_url=_get("LLMCHESS_MOVE_ENDPOINT", ""),
    responses_timeout_s=float(_get("LLMCHESS_RESPONSES_TIMEOUT_S", 60.0, cast=float)),
    human_game_ttl_s=int(_get("LLMCHESS_HUMAN_GAME_TTL_S", 3600, cast=int)),
    host=_get("LLMCHESS_HOST", "0.0.0.0"),
    port=int(_get("LLMCHESS_PORT", 8000, cast=int)),
)
