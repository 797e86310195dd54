"""
Flask API for playing against an LLM in the browser.

Endpoints:
- POST /api/move                       -> stream the model's raw move text for {position, legalMoves, model}
- POST /api/games                      -> start a human (White) vs AI (Black) game
- GET  /api/games/<id>                 -> current game snapshot
- POST /api/games/<id>/move            -> submit a human move and receive the AI reply
- POST /api/games/<id>/reset           -> start over in the same session
- GET  /api/games/<id>/targets?square= -> legal destination squares for move highlighting

Games live in memory only; idle sessions are dropped after LLMCHESS_HUMAN_GAME_TTL_S.
"""
from __future__ import annotations

import logging
import threading
import time
import uuid
from typing import Dict, Optional

from flask import Flask, Response, jsonify, request, stream_with_context
from openai import OpenAIError

from . import llm_client
from .config import SETTINGS
from .errors import PreconditionViolation
from .move_client import MoveEndpointClient
from .orchestrator import Orchestrator

log = logging.getLogger("server")

app = Flask(__name__)
games_lock = threading.Lock()
GAMES: Dict[str, dict] = {}

# Move endpoint the session orchestrators post to; None falls back to the configured default.
MOVE_ENDPOINT_URL: Optional[str] = None


def configure_move_endpoint(url: Optional[str]) -> None:
    global MOVE_ENDPOINT_URL
    MOVE_ENDPOINT_URL = url
    log.info("AI turns will use move endpoint %s", url)


def _cleanup_stale_games(max_age_s: Optional[int] = None):
    max_age_s = SETTINGS.human_game_ttl_s if max_age_s is None else max_age_s
    now = time.time()
    with games_lock:
        expired = [gid for gid, sess in GAMES.items() if now - sess.get("updated_at", now) > max_age_s]
        for gid in expired:
            GAMES.pop(gid, None)
    if expired:
        log.info("Dropped %d idle game(s)", len(expired))


def _new_orchestrator(model: str) -> Orchestrator:
    # Overridden in tests to inject a fake move source.
    return Orchestrator(model=model, move_source=MoveEndpointClient(url=MOVE_ENDPOINT_URL))


def _get_session(game_id: str) -> Optional[dict]:
    with games_lock:
        session = GAMES.get(game_id)
        if session:
            session["updated_at"] = time.time()
    return session


def _serialize(session: dict, **extra) -> dict:
    data = {"game_id": session["id"], **session["orchestrator"].snapshot()}
    data.update(extra)
    return data


# ---------------- Model endpoint -----------------
@app.route("/api/move", methods=["POST"])
def move_endpoint():
    data = request.get_json(force=True, silent=True) or {}
    fen = data.get("position") or data.get("fen")
    if not fen:
        return jsonify({"error": "position is required"}), 400
    legal_moves = [str(m) for m in (data.get("legalMoves") or [])]
    model = data.get("model") or SETTINGS.default_model
    try:
        llm_client.resolve_model(model)
    except ValueError as exc:
        return jsonify({"error": "bad_model", "message": str(exc)}), 400

    def generate():
        try:
            for delta in llm_client.stream_move_text(fen, legal_moves, model=model):
                yield delta
        except OpenAIError:
            log.exception("Model stream failed for %s", model)

    return Response(stream_with_context(generate()), mimetype="text/plain")


# ---------------- Human games -----------------
@app.route("/api/games", methods=["POST"])
def create_game():
    _cleanup_stale_games()
    data = request.get_json(force=True, silent=True) or {}
    model = data.get("model") or SETTINGS.default_model
    game_id = f"human_{int(time.time())}_{uuid.uuid4().hex[:6]}"
    session = {
        "id": game_id,
        "orchestrator": _new_orchestrator(model),
        "created_at": time.time(),
        "updated_at": time.time(),
        "lock": threading.Lock(),
    }
    with games_lock:
        GAMES[game_id] = session
    log.info("Started game %s against %s", game_id, model)
    return jsonify(_serialize(session))


@app.route("/api/games/<game_id>", methods=["GET"])
def game_state(game_id: str):
    session = _get_session(game_id)
    if not session:
        return jsonify({"error": "not found"}), 404
    return jsonify(_serialize(session))


@app.route("/api/games/<game_id>/move", methods=["POST"])
def human_game_move(game_id: str):
    _cleanup_stale_games()
    session = _get_session(game_id)
    if not session:
        return jsonify({"error": "not found"}), 404
    data = request.get_json(force=True, silent=True) or {}
    orch: Orchestrator = session["orchestrator"]

    with session["lock"]:
        try:
            if data.get("from") and data.get("to"):
                san = orch.submit_human_move(data["from"], data["to"], data.get("promotion"))
            elif data.get("move"):
                san = orch.submit_human_text(str(data["move"]))
            else:
                return jsonify({"error": "from/to or move is required"}), 400
        except PreconditionViolation as exc:
            return jsonify({"error": "not_your_turn", "message": str(exc)}), 409
        if san is None:
            return jsonify({"error": "illegal_move"}), 400

        ai_move = None
        if not orch.is_game_over():
            outcome = orch.run_ai_turn()
            ai_move = outcome.to_dict() if outcome else None
        return jsonify(_serialize(session, human_move=san, ai_move=ai_move))


@app.route("/api/games/<game_id>/reset", methods=["POST"])
def reset_game(game_id: str):
    session = _get_session(game_id)
    if not session:
        return jsonify({"error": "not found"}), 404
    # No session lock: an AI turn still in flight targets the old generation and is discarded.
    session["orchestrator"].reset_game()
    return jsonify(_serialize(session))


@app.route("/api/games/<game_id>/targets", methods=["GET"])
def legal_targets(game_id: str):
    session = _get_session(game_id)
    if not session:
        return jsonify({"error": "not found"}), 404
    square = (request.args.get("square") or "").strip().lower()
    return jsonify({"square": square, "targets": session["orchestrator"].legal_targets(square)})


@app.after_request
def add_cors_headers(response):
    response.headers["Access-Control-Allow-Origin"] = request.headers.get("Origin", "*")
    response.headers["Access-Control-Allow-Credentials"] = "true"
    response.headers["Access-Control-Allow-Headers"] = "Content-Type, Authorization"
    response.headers["Access-Control-Allow-Methods"] = "GET, POST, OPTIONS"
    # Prevent caching so the UI always sees the freshest position
    response.headers["Cache-Control"] = "no-store, max-age=0"
    return response


@app.route("/api/<path:path>", methods=["OPTIONS"])
def cors_preflight(path: str):
    return app.make_response(("", 204))


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    app.run(host=SETTINGS.host, port=SETTINGS.port, debug=True)
