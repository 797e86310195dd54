"""
Outbound transport used by the orchestrator to fetch the model's move.

POSTs a ModelTurnRequest to the move endpoint and concatenates the streamed plain-text body in
arrival order. Connection problems and non-2xx responses raise TransportError; failures while
reading or decoding the body raise StreamReadError. No retries: the caller falls back instead.
"""
from __future__ import annotations

import codecs
import logging
from dataclasses import dataclass, field
from typing import Optional

import httpx

from .config import SETTINGS
from .errors import StreamReadError, TransportError

log = logging.getLogger("move_client")


@dataclass(frozen=True)
class ModelTurnRequest:
    position: str
    legal_moves: tuple[str, ...] = field(default_factory=tuple)
    model: str = ""

    def to_payload(self) -> dict:
        return {"position": self.position, "legalMoves": list(self.legal_moves), "model": self.model}


def local_move_endpoint(host: str, port: int) -> str:
    """URL of the move route on a locally bound server; wildcard hosts map to loopback."""
    if host in ("", "0.0.0.0", "::"):
        host = "127.0.0.1"
    elif ":" in host:
        host = f"[{host}]"
    return f"http://{host}:{port}/api/move"


class MoveEndpointClient:
    """Streams the raw move text for one AI turn from an HTTP endpoint."""

    def __init__(self, url: Optional[str] = None, timeout_s: Optional[float] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.url = url or SETTINGS.move_endpoint_url or local_move_endpoint(SETTINGS.host, SETTINGS.port)
        self.timeout_s = timeout_s if timeout_s is not None else SETTINGS.responses_timeout_s
        self._transport = transport

    async def fetch_move_text(self, request: ModelTurnRequest) -> str:
        async with httpx.AsyncClient(timeout=self.timeout_s, transport=self._transport) as client:
            try:
                async with client.stream("POST", self.url, json=request.to_payload()) as rsp:
                    if not rsp.is_success:
                        raise TransportError(f"API request failed: {rsp.status_code}", status_code=rsp.status_code)
                    return await self._read_text(rsp)
            except httpx.HTTPError as exc:
                raise TransportError(f"API request failed: {exc}") from exc

    @staticmethod
    async def _read_text(rsp: httpx.Response) -> str:
        decoder = codecs.getincrementaldecoder("utf-8")()
        parts: list[str] = []
        try:
            async for chunk in rsp.aiter_bytes():
                parts.append(decoder.decode(chunk))
            parts.append(decoder.decode(b"", final=True))
        except (httpx.HTTPError, UnicodeDecodeError) as exc:
            raise StreamReadError(f"Failed to read response stream: {exc}") from exc
        text = "".join(parts)
        log.debug("Move endpoint replied %r", text)
        return text.strip()
