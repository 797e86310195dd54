import unittest
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

from llmchess_web import llm_client
from llmchess_web.config import SETTINGS
from llmchess_web.prompting import DEFAULT_SYSTEM, PromptConfig, build_move_messages, render_custom_prompt

FEN = "rnbqkbnr/pppppppp/8/8/4P3/8/PPPP1PPP/RNBQKBNR b KQkq - 0 1"


def chunk(text):
    return SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=text))])


class PromptingTests(unittest.TestCase):
    def test_default_messages(self):
        messages = build_move_messages(FEN, ["e7e5", "g8f6"])
        self.assertEqual(messages[0], {"role": "system", "content": DEFAULT_SYSTEM})
        user = messages[1]["content"]
        self.assertIn(f"Current board (FEN): {FEN}", user)
        self.assertIn("Legal moves for Black (UCI): e7e5, g8f6", user)
        self.assertIn("playing as Black", user)

    def test_custom_template_keeps_unknown_placeholders(self):
        cfg = PromptConfig(system_instructions="sys", template="{FEN} | {LEGAL_MOVES} | {OTHER}")
        messages = build_move_messages(FEN, [], cfg)
        self.assertEqual(messages[1]["content"], f"{FEN} | (none) | {{OTHER}}")
        self.assertEqual(render_custom_prompt("", {"FEN": FEN}), "")


class ResolveModelTests(unittest.TestCase):
    def test_provider_prefix(self):
        self.assertEqual(llm_client.resolve_model("openai:gpt-4"), ("openai", "gpt-4"))
        self.assertEqual(llm_client.resolve_model("gateway:anthropic/claude-sonnet"), ("gateway", "anthropic/claude-sonnet"))

    def test_bare_model_uses_default_provider(self):
        self.assertEqual(llm_client.resolve_model("gpt-4o-mini"), (SETTINGS.default_provider.lower(), "gpt-4o-mini"))

    def test_bad_identifiers(self):
        with self.assertRaises(ValueError):
            llm_client.resolve_model("anthropic:claude-4")
        with self.assertRaises(ValueError):
            llm_client.resolve_model("openai:")


class StreamTests(unittest.TestCase):
    def test_stream_yields_text_deltas(self):
        fake = MagicMock()
        fake.chat.completions.create.return_value = iter([
            chunk("e7"),
            chunk(None),
            SimpleNamespace(choices=[]),
            chunk("e5"),
        ])
        with patch.object(llm_client, "get_client", return_value=fake) as get_client:
            text = "".join(llm_client.stream_move_text(FEN, ["e7e5"], model="openai:gpt-4"))

        self.assertEqual(text, "e7e5")
        get_client.assert_called_once_with("openai")
        kwargs = fake.chat.completions.create.call_args.kwargs
        self.assertEqual(kwargs["model"], "gpt-4")
        self.assertTrue(kwargs["stream"])
        self.assertEqual(kwargs["messages"][1]["role"], "user")


if __name__ == "__main__":
    unittest.main()
