"""
Entrypoint: load config, load the model, connect to Discord.

Run with `python -m llmcord.main` or the `llmcord` console script.
"""

import asyncio
import logging
import os
import sys

import discord
from dotenv import load_dotenv

from llmcord.config.loader import get_config
from llmcord.config.models import Configuration
from llmcord.config.validator import ConfigError
from llmcord.discord.client import LlmcordBot
from llmcord.discord.errors import GatewayError, gateway_error_from
from llmcord.llm.errors import ModelLoadError
from llmcord.llm.session import ModelSession


def setup_logging() -> None:
    level = logging.DEBUG if os.environ.get("DEBUG") else logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s: %(message)s")
    logging.getLogger("discord.gateway").setLevel(logging.WARNING)


async def run_bot(config: Configuration, session: ModelSession) -> None:
    bot = LlmcordBot(config, session)
    try:
        async with bot:
            await bot.start(config.authentication.discord_token)
    except (discord.DiscordException, OSError) as e:
        raise gateway_error_from(e) from e
    if bot.fatal_error is not None:
        raise bot.fatal_error


def main() -> None:
    setup_logging()
    load_dotenv()

    try:
        config = get_config()
    except ConfigError as e:
        logging.error(f"Configuration error: {e}")
        sys.exit(1)

    logging.info(
        f"🚀 Bot starting | model: {config.model.path} | commands: {list(config.enabled_commands)}"
    )

    try:
        session = ModelSession.load(config.model, config.inference)
    except ModelLoadError as e:
        logging.error(f"Model load error: {e}")
        sys.exit(1)

    try:
        asyncio.run(run_bot(config, session))
    except GatewayError as e:
        logging.error(f"Gateway error: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        pass
    finally:
        session.close()


if __name__ == "__main__":
    main()
