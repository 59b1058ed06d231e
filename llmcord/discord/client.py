from __future__ import annotations

import logging
from typing import Optional

import discord
from discord import app_commands
from discord.ext import commands

from llmcord.config.models import Command, Configuration
from llmcord.llm.worker import Generator, GenerationQueue
from .dispatcher import CommandDispatcher, CommandInvocation, interaction_sender, reply_sender
from .errors import GatewayError, handle_app_command_error


INVITE_PERMISSIONS = 412317191168


def invite_url(client_id: str) -> str:
    return (
        f"https://discord.com/oauth2/authorize?client_id={client_id}"
        f"&permissions={INVITE_PERMISSIONS}&scope=bot%20applications.commands"
    )


def strip_mention(content: str, user: Optional[discord.abc.User]) -> str:
    content = content.lstrip()
    if user is None:
        return content
    for mention in (f"<@{user.id}>", f"<@!{user.id}>"):
        if content.startswith(mention):
            return content[len(mention):].lstrip()
    return content


class LlmcordBot(commands.Bot):
    """
    Discord client that routes chat messages and slash commands to the
    command dispatcher. The model session is owned by the generation queue.
    """

    def __init__(self, config: Configuration, session: Generator):
        intents = discord.Intents.default()
        intents.message_content = True
        intents.dm_messages = True
        super().__init__(intents=intents, command_prefix=None, help_command=None)

        self.config = config
        self.queue = GenerationQueue(
            session,
            max_tokens=config.inference.max_tokens,
            timeout=config.inference.response_timeout_seconds,
        )
        self.dispatcher = CommandDispatcher(config, self.queue)
        self._synced = False
        self.fatal_error: Optional[GatewayError] = None
        self.tree.error(self.on_app_command_error)

    def make_app_command(self, name: str, command: Command) -> app_commands.Command:
        async def callback(
            interaction: discord.Interaction,
            prompt: str,
            seed: Optional[app_commands.Range[int, 0]] = None,
        ) -> None:
            invocation = CommandInvocation(name=name, prompt=prompt, seed=seed)
            await self.dispatcher.dispatch(invocation, interaction_sender(interaction), user_id=interaction.user.id)

        app_commands.describe(prompt="The prompt.", seed="The seed to use for sampling.")(callback)
        return app_commands.Command(name=name, description=command.description, callback=callback)

    async def setup_hook(self) -> None:
        for name, command in self.config.enabled_commands.items():
            self.tree.add_command(self.make_app_command(name, command))
        self.queue.start()

    async def on_ready(self) -> None:
        logging.info(f"{self.user} is connected")
        if client_id := self.config.authentication.client_id:
            logging.info(f"\n\nBOT INVITE URL:\n{invite_url(client_id)}\n")
        if not self._synced:
            try:
                synced = await self.tree.sync()
            except (discord.HTTPException, app_commands.AppCommandError) as e:
                logging.error(f"Failed to register slash commands: {e}")
                self.fatal_error = GatewayError(f"Could not register slash commands: {e}")
                await self.close()
                return
            self._synced = True
            logging.info(f"Synced {len(synced)} slash commands: {', '.join(c.name for c in synced)}")
        logging.info(f"{self.user} is good to go!")

    async def on_message(self, message: discord.Message) -> None:
        if message.author.bot:
            return

        invocation = self.dispatcher.classify(strip_mention(message.content, self.user))
        if invocation is None:
            return

        await self.dispatcher.dispatch(invocation, reply_sender(message), user_id=message.author.id)

    async def on_app_command_error(self, interaction: discord.Interaction, error: app_commands.AppCommandError) -> None:
        await handle_app_command_error(interaction, error)

    async def close(self) -> None:
        await self.queue.close()
        await super().close()
