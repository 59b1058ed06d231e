"""
Top-level package for the llmcord Discord bot.

This package hosts:
- config loading and validation (config.toml)
- the local model session and its serialized generation queue
- Discord client, command dispatch and reply output
"""

__version__ = "0.1.0"
