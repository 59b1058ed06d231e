from __future__ import annotations

from dataclasses import dataclass

from llmcord.config.validator import PROMPT_PLACEHOLDER


def render_prompt(template: str, user_prompt: str) -> str:
    return template.replace(PROMPT_PLACEHOLDER, user_prompt)


def _bold(text: str) -> str:
    # Discord only renders bold when the closing ** hugs a non-space character.
    stripped = text.rstrip()
    if not stripped:
        return text
    return f"**{stripped}**{text[len(stripped):]}"


@dataclass(frozen=True)
class Prompts:
    """The user's prompt, the command template, and the rendered result."""

    user: str
    template: str
    show_prompt_template: bool = True

    @property
    def processed(self) -> str:
        return render_prompt(self.template, self.user)

    @property
    def display(self) -> str:
        return self.processed if self.show_prompt_template else self.user

    def placeholder(self) -> str:
        """Struck-through prompt shown while the generation is pending."""
        return f"~~{self.display.strip()}~~"

    def make_markdown_message(self, completion: str) -> str:
        """
        Bold the prompt (or just the user's part of it) followed by the completion.
        """
        if self.show_prompt_template:
            return _bold(self.processed) + completion

        _, _, suffix = self.template.partition(PROMPT_PLACEHOLDER)
        newline = "\n" if suffix.endswith("\n") else ""
        return _bold(self.user) + newline + completion
