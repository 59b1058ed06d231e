import unittest

from llmcord.config.models import ALPACA_TEMPLATE
from llmcord.discord.outputter import DISCORD_MESSAGE_LIMIT, MESSAGE_CHUNK_SIZE, split_message, truncate
from llmcord.llm.prompts import Prompts, render_prompt


class TestPrompts(unittest.TestCase):
    def test_render_prompt(self):
        self.assertEqual(render_prompt("{{PROMPT}}", "The sky is"), "The sky is")
        rendered = render_prompt(ALPACA_TEMPLATE, "What is 2+2?")
        self.assertIn("### Instruction:\n\nWhat is 2+2?\n\n### Response:", rendered)
        self.assertNotEqual(rendered, "What is 2+2?")

    def test_markdown_with_template(self):
        prompts = Prompts(user="The sky is", template="{{PROMPT}}")
        self.assertEqual(prompts.make_markdown_message(" blue."), "**The sky is** blue.")
        self.assertEqual(prompts.placeholder(), "~~The sky is~~")

    def test_markdown_bold_hugs_text(self):
        prompts = Prompts(user="What is 2+2?", template=ALPACA_TEMPLATE)
        message = prompts.make_markdown_message("4")
        self.assertTrue(message.startswith("**Below is an instruction"))
        self.assertTrue(message.endswith("### Response:**\n\n4"))

    def test_markdown_without_template(self):
        prompts = Prompts(user="What is 2+2?", template=ALPACA_TEMPLATE, show_prompt_template=False)
        self.assertEqual(prompts.make_markdown_message("4"), "**What is 2+2?**\n4")
        self.assertEqual(prompts.placeholder(), "~~What is 2+2?~~")

        raw = Prompts(user="The sky is", template="{{PROMPT}}", show_prompt_template=False)
        self.assertEqual(raw.make_markdown_message(" blue."), "**The sky is** blue.")


class TestSplitMessage(unittest.TestCase):
    def test_short_message_is_one_chunk(self):
        self.assertEqual(split_message("hello world"), ["hello world"])

    def test_empty_message(self):
        self.assertEqual(split_message(""), [])
        self.assertEqual(split_message("   "), [])

    def test_long_message_splits_on_words(self):
        words = ["word"] * 1000
        chunks = split_message(" ".join(words))

        self.assertGreater(len(chunks), 1)
        self.assertEqual(" ".join(chunks).split(), words)
        for chunk in chunks:
            self.assertLessEqual(len(chunk), MESSAGE_CHUNK_SIZE + len(" word"))

    def test_giant_word_is_cut_to_discord_limit(self):
        chunks = split_message("x" * 5000)
        self.assertEqual([len(c) for c in chunks], [2000, 2000, 1000])
        self.assertTrue(all(len(c) <= DISCORD_MESSAGE_LIMIT for c in chunks))

    def test_truncate(self):
        self.assertEqual(truncate("abc", 5), "abc")
        self.assertEqual(truncate("abcdef", 5), "abcd…")


if __name__ == "__main__":
    unittest.main()
