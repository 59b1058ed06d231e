from __future__ import annotations

import logging
import os
from typing import Any

import tomlkit
from tomlkit.exceptions import TOMLKitError

from .models import DEFAULT_COMMANDS, Configuration, Inference
from .validator import validate_config, ConfigError


DEFAULT_CONFIG_FILE = "config.toml"
CONFIG_ENV_VAR = "CONFIG_PATH"
TOKEN_ENV_VAR = "DISCORD_TOKEN"

DEFAULT_MODEL_PATH = "models/llama-2-7b-chat.Q2_K.gguf"
DEFAULT_CONTEXT_TOKEN_LENGTH = 2048


def get_config_path() -> str:
    """
    Resolve the config path, preferring an explicit environment override.
    """
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return env_path
    return DEFAULT_CONFIG_FILE


def default_config_document() -> tomlkit.TOMLDocument:
    """
    Commented starter config, written when no config file exists yet.
    """
    doc = tomlkit.document()
    doc.add(tomlkit.comment("llmcord configuration"))
    doc.add(tomlkit.nl())

    auth = tomlkit.table()
    auth.add(tomlkit.comment(f"Bot token; the {TOKEN_ENV_VAR} environment variable overrides it."))
    auth.add("discord_token", "")
    auth.add(tomlkit.comment("Application id, used for the invite link."))
    auth.add("client_id", "")
    doc.add("authentication", auth)

    model = tomlkit.table()
    model.add("path", DEFAULT_MODEL_PATH)
    model.add("context_token_length", DEFAULT_CONTEXT_TOKEN_LENGTH)
    model.add("architecture", "llama")
    model.add("prefer_mmap", True)
    model.add(tomlkit.comment("Offloads layers to the GPU; llama-cpp-python must be built with GPU support."))
    model.add("use_gpu", True)
    doc.add("model", model)

    defaults = Inference()
    inference = tomlkit.table()
    inference.add("thread_count", defaults.thread_count)
    inference.add(tomlkit.comment("Larger batches evaluate the prompt faster but use more memory."))
    inference.add("batch_size", defaults.batch_size)
    inference.add(tomlkit.comment("0 generates until end of text or a full context window."))
    inference.add("max_tokens", defaults.max_tokens)
    inference.add("temperature", defaults.temperature)
    inference.add("top_k", defaults.top_k)
    inference.add("top_p", defaults.top_p)
    inference.add("repeat_penalty", defaults.repeat_penalty)
    inference.add("stop", tomlkit.array())
    inference.add(tomlkit.comment("Replace a typed '\\n' with a newline."))
    inference.add("replace_newlines", defaults.replace_newlines)
    inference.add(tomlkit.comment("Show the whole templated prompt, or only what the user typed."))
    inference.add("show_prompt_template", defaults.show_prompt_template)
    inference.add(tomlkit.comment("0 waits for the model as long as it takes."))
    inference.add("response_timeout_seconds", defaults.response_timeout_seconds)
    doc.add("inference", inference)

    commands = tomlkit.table()
    for name, command in DEFAULT_COMMANDS.items():
        entry = tomlkit.table()
        entry.add("enabled", command.enabled)
        entry.add("description", command.description)
        entry.add("prompt", tomlkit.string(command.prompt, multiline="\n" in command.prompt))
        commands.add(name, entry)
    doc.add("commands", commands)

    return doc


def write_default_config(path: str) -> None:
    with open(path, "w", encoding="utf-8") as f:
        f.write(tomlkit.dumps(default_config_document()))


def _load_raw_config(path: str | None = None) -> dict[str, Any]:
    cfg_path = path or get_config_path()
    try:
        with open(cfg_path, encoding="utf-8") as f:
            data = tomlkit.parse(f.read()).unwrap()
    except FileNotFoundError:
        try:
            write_default_config(cfg_path)
        except OSError as e:
            logging.warning("Could not write a default config to %s: %s", cfg_path, e)
            raise ConfigError(f"Config file not found: {cfg_path}") from None
        logging.error("Config file not found: %s (a default one was written)", cfg_path)
        raise ConfigError(
            f"Config file not found: {cfg_path}. A default config was written there; "
            "fill in [authentication] and [model] and restart."
        ) from None
    except TOMLKitError as e:
        logging.error("TOML parsing error in %s: %s", cfg_path, e)
        raise ConfigError(f"TOML parsing error in {cfg_path}: {e}") from e
    except (OSError, UnicodeDecodeError) as e:
        logging.error("Could not read config file %s: %s", cfg_path, e)
        raise ConfigError(f"Could not read config file {cfg_path}: {e}") from e

    return data


def _apply_env_overrides(cfg: dict[str, Any]) -> None:
    token = os.environ.get(TOKEN_ENV_VAR)
    if not token:
        return
    auth = cfg.setdefault("authentication", {})
    if isinstance(auth, dict):
        auth["discord_token"] = token


def get_config(path: str | None = None) -> Configuration:
    """
    Public helper for loading configuration.

    - Respects CONFIG_PATH if set.
    - DISCORD_TOKEN overrides [authentication].discord_token.
    - Performs comprehensive TOML validation.
    - Raises ConfigError if the file is missing, malformed or incomplete.
    - Returns the immutable Configuration built in llmcord.config.models.
    """
    cfg_path = path or get_config_path()
    cfg = _load_raw_config(cfg_path)
    _apply_env_overrides(cfg)
    validate_config(cfg, cfg_path)
    return Configuration.from_dict(cfg)
