"""
Command dispatch: classify an incoming command, build its prompt, queue the
generation and post the result back to Discord.

Every event follows the same path:
    classify -> submit to the generation queue -> post placeholder
    -> await model output -> edit/reply with the result
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

import discord

from llmcord.config.models import Command, Configuration
from llmcord.llm.errors import InferenceError, format_user_friendly_error, parse_error_message
from llmcord.llm.prompts import Prompts
from llmcord.llm.sampling import SamplingParams
from llmcord.llm.worker import GenerationQueue
from .outputter import NO_MENTIONS, Outputter, truncate


NO_PROMPT_ERROR = "Error: no prompt specified."

# Leading command token, then the prompt verbatim after the separating whitespace.
_COMMAND_RE = re.compile(r"(\S+)(?:\s+(.*))?\Z", re.DOTALL)

SendFunc = Callable[[str], Awaitable[discord.Message]]


@dataclass(frozen=True)
class CommandInvocation:
    name: str
    prompt: str
    seed: Optional[int] = None


def _drop_request(future: "asyncio.Future[str]") -> None:
    # Nobody is left to read the result. A queued request is skipped by the
    # worker; one that already finished has its exception retrieved.
    if not future.cancel() and not future.cancelled():
        future.exception()


class CommandDispatcher:
    def __init__(self, config: Configuration, queue: GenerationQueue):
        self.config = config
        self.queue = queue

    @property
    def commands(self) -> dict[str, Command]:
        return self.config.enabled_commands

    def classify(self, content: str) -> Optional[CommandInvocation]:
        """
        Match the leading token of a chat message against the enabled commands.

        Returns None for anything that is not a command, which gets no reply.
        """
        match = _COMMAND_RE.match(content.lstrip())
        if not match or match.group(1) not in self.commands:
            return None
        return CommandInvocation(name=match.group(1), prompt=match.group(2) or "")

    def build_prompts(self, invocation: CommandInvocation) -> Prompts:
        command = self.commands[invocation.name]
        user_prompt = invocation.prompt
        if self.config.inference.replace_newlines:
            user_prompt = user_prompt.replace("\\n", "\n")
        return Prompts(
            user=user_prompt,
            template=command.prompt,
            show_prompt_template=self.config.inference.show_prompt_template,
        )

    async def dispatch(self, invocation: CommandInvocation, send: SendFunc, user_id: Optional[int] = None) -> None:
        """
        Run one command end to end, replying through `send`.

        The generation is queued before the first await so commands are served
        in the order they arrived. Inference failures become a chat notice.
        """
        if invocation.name not in self.commands:
            return

        prompts = self.build_prompts(invocation)
        if not prompts.user.strip():
            await send(NO_PROMPT_ERROR)
            return

        params = SamplingParams.from_inference(self.config.inference, seed=invocation.seed)
        future = self.queue.submit(prompts.processed, params)
        logging.info(
            f"Command (uid:{user_id}, cmd:{invocation.name}, len:{len(prompts.user)}, "
            f"seed:{invocation.seed}, queued:{self.queue.pending})"
        )

        try:
            message = await send(truncate(prompts.placeholder()))
        except discord.HTTPException:
            _drop_request(future)
            raise
        outputter = Outputter(message, prompts)

        try:
            completion = await future
        except InferenceError as e:
            logging.warning(f"Command '{invocation.name}' failed: {parse_error_message(e)}")
            await outputter.error(format_user_friendly_error(e))
            return

        await outputter.finish(completion)


def reply_sender(message: discord.Message) -> SendFunc:
    """Send function that replies to a chat message."""

    async def send(content: str) -> discord.Message:
        return await message.reply(content, mention_author=False, allowed_mentions=NO_MENTIONS)

    return send


def interaction_sender(interaction: discord.Interaction) -> SendFunc:
    """Send function that answers a slash command and returns the response message."""

    async def send(content: str) -> discord.Message:
        await interaction.response.send_message(content, allowed_mentions=NO_MENTIONS)
        return await interaction.original_response()

    return send
