import random
import unittest
from unittest.mock import patch

from llmchess_web import server
from llmchess_web.errors import TransportError
from llmchess_web.orchestrator import WELCOME_STATUS, Orchestrator
from llmchess_web.random_mover import RandomMover


class CannedMoveSource:
    def __init__(self, reply: str = "g8f6", error: Exception | None = None):
        self.reply = reply
        self.error = error

    async def fetch_move_text(self, request):
        if self.error is not None:
            raise self.error
        return self.reply


class ServerTestCase(unittest.TestCase):
    source = CannedMoveSource()

    def setUp(self):
        server.GAMES.clear()
        self.client = server.app.test_client()
        patcher = patch.object(
            server,
            "_new_orchestrator",
            lambda model: Orchestrator(model=model, move_source=self.source, fallback=RandomMover(random.Random(1))),
        )
        patcher.start()
        self.addCleanup(patcher.stop)
        self.addCleanup(server.GAMES.clear)

    def new_game(self) -> str:
        rsp = self.client.post("/api/games", json={"model": "openai:gpt-4"})
        self.assertEqual(rsp.status_code, 200)
        return rsp.get_json()["game_id"]


class GameEndpointTests(ServerTestCase):
    def test_create_game(self):
        rsp = self.client.post("/api/games", json={})
        data = rsp.get_json()
        self.assertEqual(rsp.status_code, 200)
        self.assertTrue(data["game_id"].startswith("human_"))
        self.assertEqual(data["status"], WELCOME_STATUS)
        self.assertEqual(data["turn"], "white")
        self.assertEqual(data["history"], [])

    def test_human_move_gets_ai_reply(self):
        game_id = self.new_game()
        rsp = self.client.post(f"/api/games/{game_id}/move", json={"from": "e2", "to": "e4"})
        data = rsp.get_json()
        self.assertEqual(rsp.status_code, 200)
        self.assertEqual(data["human_move"], "e4")
        self.assertEqual(data["ai_move"]["san"], "Nf6")
        self.assertFalse(data["ai_move"]["fallback_used"])
        self.assertEqual(data["history"], ["e4", "Nf6"])
        self.assertEqual(data["turn"], "white")
        self.assertEqual(data["status"], "AI played: Nf6")

    def test_text_move(self):
        game_id = self.new_game()
        rsp = self.client.post(f"/api/games/{game_id}/move", json={"move": "Nc3"})
        self.assertEqual(rsp.status_code, 200)
        self.assertEqual(rsp.get_json()["history"], ["Nc3", "Nf6"])

    def test_illegal_move(self):
        game_id = self.new_game()
        rsp = self.client.post(f"/api/games/{game_id}/move", json={"move": "e5"})
        self.assertEqual(rsp.status_code, 400)
        self.assertEqual(rsp.get_json()["error"], "illegal_move")

    def test_missing_move(self):
        game_id = self.new_game()
        rsp = self.client.post(f"/api/games/{game_id}/move", json={})
        self.assertEqual(rsp.status_code, 400)

    def test_unknown_game(self):
        self.assertEqual(self.client.get("/api/games/nope").status_code, 404)
        self.assertEqual(self.client.post("/api/games/nope/move", json={"move": "e4"}).status_code, 404)
        self.assertEqual(self.client.post("/api/games/nope/reset").status_code, 404)

    def test_legal_targets(self):
        game_id = self.new_game()
        rsp = self.client.get(f"/api/games/{game_id}/targets?square=G1")
        self.assertEqual(rsp.get_json(), {"square": "g1", "targets": ["f3", "h3"]})

    def test_reset(self):
        game_id = self.new_game()
        self.client.post(f"/api/games/{game_id}/move", json={"from": "e2", "to": "e4"})
        rsp = self.client.post(f"/api/games/{game_id}/reset")
        data = rsp.get_json()
        self.assertEqual(data["history"], [])
        self.assertEqual(data["generation"], 1)
        self.assertEqual(self.client.get(f"/api/games/{game_id}").get_json()["status"], WELCOME_STATUS)

    def test_idle_games_are_dropped(self):
        game_id = self.new_game()
        server.GAMES[game_id]["updated_at"] -= 10_000
        server._cleanup_stale_games(max_age_s=60)
        self.assertNotIn(game_id, server.GAMES)

    def test_lookup_keeps_game_alive(self):
        game_id = self.new_game()
        server.GAMES[game_id]["updated_at"] -= 10_000
        self.client.get(f"/api/games/{game_id}")
        server._cleanup_stale_games(max_age_s=60)
        self.assertIn(game_id, server.GAMES)

    def test_cors_headers(self):
        rsp = self.client.get("/api/games/nope", headers={"Origin": "http://localhost:3000"})
        self.assertEqual(rsp.headers["Access-Control-Allow-Origin"], "http://localhost:3000")
        self.assertEqual(rsp.headers["Cache-Control"], "no-store, max-age=0")
        self.assertEqual(self.client.open("/api/anything/else", method="OPTIONS").status_code, 204)


class FailingModelTests(ServerTestCase):
    source = CannedMoveSource(error=TransportError("API request failed: 500", status_code=500))

    def test_endpoint_failure_still_produces_a_move(self):
        game_id = self.new_game()
        data = self.client.post(f"/api/games/{game_id}/move", json={"from": "e2", "to": "e4"}).get_json()
        self.assertTrue(data["ai_move"]["fallback_used"])
        self.assertEqual(len(data["history"]), 2)
        self.assertIn("500", data["last_error"])
        self.assertTrue(data["status"].startswith("AI made random move"))


class MoveEndpointTests(unittest.TestCase):
    def setUp(self):
        self.client = server.app.test_client()

    def test_streams_model_text(self):
        with patch.object(server.llm_client, "stream_move_text", return_value=iter(["e7", "e5"])) as fake:
            rsp = self.client.post("/api/move", json={
                "position": "rnbqkbnr/pppppppp/8/8/4P3/8/PPPP1PPP/RNBQKBNR b KQkq - 0 1",
                "legalMoves": ["e7e5", "g8f6"],
                "model": "openai:gpt-4",
            })
            self.assertEqual(rsp.status_code, 200)
            self.assertEqual(rsp.get_data(as_text=True), "e7e5")
        self.assertTrue(rsp.mimetype.startswith("text/plain"))
        args, kwargs = fake.call_args
        self.assertEqual(args[1], ["e7e5", "g8f6"])
        self.assertEqual(kwargs["model"], "openai:gpt-4")

    def test_fen_alias(self):
        with patch.object(server.llm_client, "stream_move_text", return_value=iter(["g8f6"])):
            rsp = self.client.post("/api/move", json={"fen": "8/8/8/8/8/8/8/K6k b - - 0 1", "legalMoves": []})
            self.assertEqual(rsp.get_data(as_text=True), "g8f6")

    def test_missing_position(self):
        rsp = self.client.post("/api/move", json={"legalMoves": []})
        self.assertEqual(rsp.status_code, 400)

    def test_unknown_provider(self):
        rsp = self.client.post("/api/move", json={"position": "8/8/8/8/8/8/8/K6k b - - 0 1", "model": "nope:model"})
        self.assertEqual(rsp.status_code, 400)
        self.assertEqual(rsp.get_json()["error"], "bad_model")


if __name__ == "__main__":
    unittest.main()
