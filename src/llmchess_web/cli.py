"""
Command line entry point.

  llmchess-web serve [--host H] [--port P] [--endpoint URL]
  llmchess-web play  [--model M] [--endpoint URL]

`play` runs a terminal game: you are White, the model (via the move endpoint) is Black.
"""
import argparse
import logging
from typing import Callable, Optional

from .config import SETTINGS
from .errors import PreconditionViolation
from .move_client import MoveEndpointClient, local_move_endpoint
from .orchestrator import Orchestrator


def _parse_log_level(name: str | None) -> int:
    name = (name or "INFO").upper()
    return getattr(logging, name, logging.INFO)


def play_terminal(orch: Orchestrator, read: Callable[[str], str] = input, write: Callable[[str], None] = print) -> str:
    """Play until the game ends; returns the final PGN."""
    log = logging.getLogger("play")
    write(orch.status)
    while not orch.is_game_over():
        write("")
        write(str(orch.board))
        raw = read("Enter your move in SAN or UCI (e.g., e4 or e2e4): ").strip()
        if not raw:
            continue
        if raw.lower() in ("quit", "exit"):
            break
        try:
            san = orch.submit_human_text(raw)
        except PreconditionViolation as exc:
            log.error("Move rejected: %s", exc)
            break
        if san is None:
            write("Illegal move. Please try again with a legal move.")
            continue
        write(orch.status)
        if orch.is_game_over():
            break
        outcome = orch.run_ai_turn()
        if outcome and outcome.error:
            write(f"Error: {outcome.error}")
        write(orch.status)
    write("")
    write(str(orch.board))
    pgn = orch.pgn()
    write(pgn)
    return pgn


def main(argv: Optional[list[str]] = None) -> int:
    ap = argparse.ArgumentParser(prog="llmchess-web", description="Play chess against a language model.")
    ap.add_argument("--log-level", default=None, help="Python logging level (e.g., INFO, DEBUG)")
    sub = ap.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP API (move endpoint + game sessions)")
    serve.add_argument("--host", default=SETTINGS.host)
    serve.add_argument("--port", type=int, default=SETTINGS.port)
    serve.add_argument("--debug", action="store_true")
    serve.add_argument("--endpoint", default=None,
                       help="Move endpoint for AI turns (default: this server's /api/move)")

    play = sub.add_parser("play", help="Play a game in the terminal")
    play.add_argument("--model", default=SETTINGS.default_model, help="Model identifier, e.g. openai:gpt-4")
    play.add_argument("--endpoint", default=None, help="Move endpoint URL (default: local server)")
    play.add_argument("--timeout", type=float, default=SETTINGS.responses_timeout_s, help="Request timeout in seconds")

    args = ap.parse_args(argv)
    logging.basicConfig(level=_parse_log_level(args.log_level), format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    if args.command == "serve":
        from . import server
        server.configure_move_endpoint(
            args.endpoint or SETTINGS.move_endpoint_url or local_move_endpoint(args.host, args.port))
        server.app.run(host=args.host, port=args.port, debug=args.debug, threaded=True)
        return 0

    orch = Orchestrator(model=args.model, move_source=MoveEndpointClient(url=args.endpoint, timeout_s=args.timeout))
    play_terminal(orch)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
