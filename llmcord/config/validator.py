"""
TOML configuration validator for config.toml.

Validates structure, required fields, and common misconfigurations.
"""

from __future__ import annotations

import logging
import re
from typing import Any


logger = logging.getLogger(__name__)

PROMPT_PLACEHOLDER = "{{PROMPT}}"

ARCHITECTURES = (
    "bloom",
    "gpt2",
    "gptj",
    "gptneox",
    "llama",
    "mpt",
    "falcon",
    "qwen2",
    "gemma",
    "phi3",
)

COMMAND_NAME_RE = re.compile(r"^[a-z0-9_-]{1,32}$")
MAX_DESCRIPTION_LENGTH = 100

_KNOWN_SECTIONS = ("model", "authentication", "inference", "commands")
_MODEL_KEYS = ("path", "context_token_length", "architecture", "prefer_mmap", "use_gpu", "gpu_layers")
_AUTH_KEYS = ("discord_token", "client_id")
_INFERENCE_KEYS = (
    "thread_count",
    "batch_size",
    "max_tokens",
    "temperature",
    "top_k",
    "top_p",
    "repeat_penalty",
    "stop",
    "replace_newlines",
    "show_prompt_template",
    "response_timeout_seconds",
)


class ConfigError(Exception):
    """Raised when the configuration is missing, malformed or incomplete."""
    pass


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _check_table(cfg: dict[str, Any], name: str, errors: list[str], required: bool) -> dict[str, Any] | None:
    if name not in cfg:
        if required:
            errors.append(f"Missing required section: [{name}]")
        return None
    table = cfg[name]
    if not isinstance(table, dict):
        errors.append(f"[{name}] must be a table, got {type(table).__name__}")
        return None
    return table


def _warn_unknown(table: dict[str, Any], section: str, known: tuple[str, ...], warnings: list[str]) -> None:
    for key in table:
        if key not in known:
            warnings.append(f"Unknown key '{key}' in [{section}] is ignored")


def _validate_model(model: dict[str, Any], errors: list[str], warnings: list[str]) -> None:
    path = model.get("path")
    if "path" not in model:
        errors.append("[model] missing required 'path'")
    elif not isinstance(path, str) or not path.strip():
        errors.append(f"[model] 'path' must be a non-empty string, got {path!r}")

    ctx = model.get("context_token_length")
    if "context_token_length" not in model:
        errors.append("[model] missing required 'context_token_length'")
    elif not _is_int(ctx) or ctx <= 0:
        errors.append(f"[model] 'context_token_length' must be a positive integer, got {ctx!r}")

    arch = model.get("architecture")
    if "architecture" not in model:
        errors.append("[model] missing required 'architecture'")
    elif not isinstance(arch, str) or arch.lower() not in ARCHITECTURES:
        errors.append(
            f"[model] unknown 'architecture' {arch!r}. "
            f"Valid architectures: {', '.join(ARCHITECTURES)}"
        )

    for flag in ("prefer_mmap", "use_gpu"):
        if flag not in model:
            errors.append(f"[model] missing required '{flag}'")
        elif not isinstance(model[flag], bool):
            errors.append(f"[model] '{flag}' must be boolean, got {type(model[flag]).__name__}")

    if "gpu_layers" in model:
        layers = model["gpu_layers"]
        if not _is_int(layers) or layers < 0:
            errors.append(f"[model] 'gpu_layers' must be a non-negative integer, got {layers!r}")
        elif model.get("use_gpu") is False:
            warnings.append("[model] 'gpu_layers' is set but 'use_gpu' is false; no layers will be offloaded")

    _warn_unknown(model, "model", _MODEL_KEYS, warnings)


def _validate_authentication(auth: dict[str, Any], errors: list[str], warnings: list[str]) -> None:
    token = auth.get("discord_token")
    if "discord_token" not in auth:
        errors.append("[authentication] missing required 'discord_token' (or set DISCORD_TOKEN)")
    elif not isinstance(token, str) or not token.strip():
        errors.append("[authentication] 'discord_token' must be a non-empty string")

    client_id = auth.get("client_id")
    if "client_id" not in auth:
        errors.append("[authentication] missing required 'client_id'")
    elif not (isinstance(client_id, str) and client_id.strip()) and not _is_int(client_id):
        errors.append(f"[authentication] 'client_id' must be a string, got {type(client_id).__name__}")

    _warn_unknown(auth, "authentication", _AUTH_KEYS, warnings)


def _validate_inference(inference: dict[str, Any], errors: list[str], warnings: list[str]) -> None:
    for key in ("thread_count", "batch_size"):
        if key in inference and (not _is_int(inference[key]) or inference[key] <= 0):
            errors.append(f"[inference] '{key}' must be a positive integer, got {inference[key]!r}")

    for key in ("max_tokens", "top_k"):
        if key in inference and (not _is_int(inference[key]) or inference[key] < 0):
            errors.append(f"[inference] '{key}' must be a non-negative integer, got {inference[key]!r}")

    for key in ("temperature", "repeat_penalty", "response_timeout_seconds"):
        if key in inference and (not _is_number(inference[key]) or inference[key] < 0):
            errors.append(f"[inference] '{key}' must be a non-negative number, got {inference[key]!r}")

    if "top_p" in inference:
        top_p = inference["top_p"]
        if not _is_number(top_p) or not 0 <= top_p <= 1:
            errors.append(f"[inference] 'top_p' must be a number between 0 and 1, got {top_p!r}")

    if "stop" in inference:
        stop = inference["stop"]
        if not isinstance(stop, list) or not all(isinstance(s, str) for s in stop):
            errors.append("[inference] 'stop' must be a list of strings")

    for flag in ("replace_newlines", "show_prompt_template"):
        if flag in inference and not isinstance(inference[flag], bool):
            errors.append(f"[inference] '{flag}' must be boolean, got {type(inference[flag]).__name__}")

    _warn_unknown(inference, "inference", _INFERENCE_KEYS, warnings)


def _validate_commands(commands: dict[str, Any], errors: list[str], warnings: list[str]) -> None:
    if not commands:
        errors.append("[commands] is empty (define at least one command or remove the section)")
        return

    for name, command in commands.items():
        if not COMMAND_NAME_RE.match(name):
            errors.append(
                f"Command name '{name}' must be 1-32 lowercase letters, digits, '-' or '_'"
            )
        if not isinstance(command, dict):
            errors.append(f"[commands.{name}] must be a table, got {type(command).__name__}")
            continue

        prompt = command.get("prompt")
        if "prompt" not in command:
            errors.append(f"[commands.{name}] missing required 'prompt'")
        elif not isinstance(prompt, str):
            errors.append(f"[commands.{name}] 'prompt' must be a string, got {type(prompt).__name__}")
        elif PROMPT_PLACEHOLDER not in prompt:
            warnings.append(
                f"[commands.{name}] prompt has no {PROMPT_PLACEHOLDER} placeholder; user input will be ignored"
            )

        if "enabled" in command and not isinstance(command["enabled"], bool):
            errors.append(f"[commands.{name}] 'enabled' must be boolean")

        if "description" in command:
            description = command["description"]
            if not isinstance(description, str) or not description.strip():
                errors.append(f"[commands.{name}] 'description' must be a non-empty string")
            elif len(description) > MAX_DESCRIPTION_LENGTH:
                errors.append(
                    f"[commands.{name}] 'description' is {len(description)} characters "
                    f"(max {MAX_DESCRIPTION_LENGTH})"
                )

    if not any(isinstance(c, dict) and c.get("enabled", True) for c in commands.values()):
        warnings.append("Every command is disabled; the bot will not answer anything")


def validate_config(cfg: dict[str, Any], config_path: str = "config.toml") -> None:
    """
    Comprehensive validation of config.toml structure and content.

    Raises ConfigError if validation fails.
    Logs detailed error messages before raising.

    Args:
        cfg: The parsed config dictionary
        config_path: Path to config file (for error messages)

    Raises:
        ConfigError: If validation fails
    """
    errors: list[str] = []
    warnings: list[str] = []

    # ── Check root structure ────────────────────────────────────────────────
    if not isinstance(cfg, dict):
        errors.append(f"Config root must be a table, got {type(cfg).__name__}")
        cfg = {}

    for key in cfg:
        if key not in _KNOWN_SECTIONS:
            warnings.append(f"Unknown top-level key '{key}' is ignored")

    # ── Validate [model] ────────────────────────────────────────────────────
    model = _check_table(cfg, "model", errors, required=True)
    if model is not None:
        _validate_model(model, errors, warnings)

    # ── Validate [authentication] ───────────────────────────────────────────
    auth = _check_table(cfg, "authentication", errors, required=True)
    if auth is not None:
        _validate_authentication(auth, errors, warnings)

    # ── Validate [inference] ────────────────────────────────────────────────
    inference = _check_table(cfg, "inference", errors, required=False)
    if inference is not None:
        _validate_inference(inference, errors, warnings)

    # ── Validate [commands.*] ───────────────────────────────────────────────
    commands = _check_table(cfg, "commands", errors, required=False)
    if commands is not None:
        _validate_commands(commands, errors, warnings)

    # ── Log warnings ────────────────────────────────────────────────────────
    for warning in warnings:
        logger.warning("Config warning: %s", warning)

    # ── Log errors and raise if any ─────────────────────────────────────────
    if errors:
        logger.error("=" * 70)
        logger.error("CONFIG VALIDATION FAILED (%s)", config_path)
        logger.error("=" * 70)
        for i, error in enumerate(errors, 1):
            logger.error("[%d] %s", i, error)
        logger.error("=" * 70)
        logger.error("Please fix the errors above and restart the bot.")
        logger.error("=" * 70)
        raise ConfigError(f"Config validation failed with {len(errors)} error(s): {errors[0]}")
