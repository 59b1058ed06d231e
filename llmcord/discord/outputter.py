from __future__ import annotations

import logging

import discord

from llmcord.llm.prompts import Prompts


DISCORD_MESSAGE_LIMIT = 2000
MESSAGE_CHUNK_SIZE = 1500
NO_RESPONSE = "(No response)"

NO_MENTIONS = discord.AllowedMentions.none()


def truncate(text: str, limit: int = DISCORD_MESSAGE_LIMIT) -> str:
    return text if len(text) <= limit else text[: limit - 1] + "…"


def split_message(text: str, chunk_size: int = MESSAGE_CHUNK_SIZE) -> list[str]:
    """
    Split text on spaces into chunks of roughly chunk_size characters.

    A chunk keeps growing until it passes chunk_size, so it may overshoot by one
    word; anything that would still exceed Discord's hard limit is cut.
    """
    chunks: list[str] = []
    for word in text.split(" "):
        if chunks and len(chunks[-1]) <= chunk_size:
            chunks[-1] += " " + word
        else:
            chunks.append(word)

    out = []
    for chunk in chunks:
        out.extend(chunk[i:i + DISCORD_MESSAGE_LIMIT] for i in range(0, len(chunk), DISCORD_MESSAGE_LIMIT))
    return [c for c in out if c.strip()]


class Outputter:
    """
    Owns the reply messages for one command.

    The first message is the placeholder posted when the command was queued;
    the result replaces it and spills into replies when too long.
    """

    def __init__(self, message: discord.Message, prompts: Prompts):
        self.messages: list[discord.Message] = [message]
        self.prompts = prompts

    async def finish(self, completion: str) -> None:
        chunks = split_message(self.prompts.make_markdown_message(completion)) or [NO_RESPONSE]

        await self.messages[0].edit(content=chunks[0], allowed_mentions=NO_MENTIONS)
        for chunk in chunks[1:]:
            msg = await self.messages[-1].reply(chunk, mention_author=False, allowed_mentions=NO_MENTIONS)
            self.messages.append(msg)

        logging.info(f"Replied with {len(completion)} generated characters in {len(self.messages)} message(s)")

    async def error(self, notice: str) -> None:
        await self.messages[-1].reply(truncate(notice), mention_author=False, allowed_mentions=NO_MENTIONS)
