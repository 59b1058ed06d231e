from __future__ import annotations

from dataclasses import dataclass, field, fields
from types import MappingProxyType
from typing import Any, Mapping, Optional

from .validator import PROMPT_PLACEHOLDER


ALPACA_TEMPLATE = (
    "Below is an instruction that describes a task. "
    "Write a response that appropriately completes the request.\n"
    "\n"
    "### Instruction:\n"
    "\n"
    f"{PROMPT_PLACEHOLDER}\n"
    "\n"
    "### Response:\n"
    "\n"
)


def _known_keys(cls: type, table: dict[str, Any]) -> dict[str, Any]:
    names = {f.name for f in fields(cls)}
    return {k: v for k, v in table.items() if k in names}


@dataclass(frozen=True)
class Authentication:
    discord_token: str
    client_id: str


@dataclass(frozen=True)
class Model:
    path: str
    context_token_length: int
    architecture: str
    prefer_mmap: bool
    use_gpu: bool
    # Layers to offload when use_gpu is on; None offloads all of them.
    gpu_layers: Optional[int] = None

    @property
    def n_gpu_layers(self) -> int:
        if not self.use_gpu:
            return 0
        return -1 if self.gpu_layers is None else self.gpu_layers


@dataclass(frozen=True)
class Inference:
    thread_count: int = 8
    batch_size: int = 8
    # 0 generates until end of text or the context window is full.
    max_tokens: int = 512
    temperature: float = 0.8
    top_k: int = 40
    top_p: float = 0.95
    repeat_penalty: float = 1.3
    stop: tuple[str, ...] = ()
    replace_newlines: bool = True
    show_prompt_template: bool = True
    response_timeout_seconds: float = 0


@dataclass(frozen=True)
class Command:
    prompt: str
    description: str = ""
    enabled: bool = True


DEFAULT_COMMANDS: Mapping[str, Command] = MappingProxyType(
    {
        "hallucinate": Command(
            prompt=PROMPT_PLACEHOLDER,
            description="Hallucinates some text.",
        ),
        "alpaca": Command(
            prompt=ALPACA_TEMPLATE,
            description="Responds to the provided instruction.",
        ),
    }
)


@dataclass(frozen=True)
class Configuration:
    """Validated, read-only view of config.toml."""

    model: Model
    authentication: Authentication
    inference: Inference = field(default_factory=Inference)
    commands: Mapping[str, Command] = field(default_factory=lambda: DEFAULT_COMMANDS)

    @property
    def enabled_commands(self) -> dict[str, Command]:
        return {name: cmd for name, cmd in self.commands.items() if cmd.enabled}

    @classmethod
    def from_dict(cls, cfg: dict[str, Any]) -> "Configuration":
        """
        Build a Configuration from an already validated config dict.
        """
        model = _known_keys(Model, cfg["model"])
        model["architecture"] = model["architecture"].lower()

        auth = cfg["authentication"]
        authentication = Authentication(
            discord_token=auth["discord_token"],
            client_id=str(auth["client_id"]),
        )

        inference = _known_keys(Inference, cfg.get("inference") or {})
        if "stop" in inference:
            inference["stop"] = tuple(inference["stop"])

        commands: Mapping[str, Command] = DEFAULT_COMMANDS
        if "commands" in cfg:
            commands = MappingProxyType(
                {
                    name: Command(
                        prompt=c["prompt"],
                        description=c.get("description") or f"Runs the {name} prompt.",
                        enabled=c.get("enabled", True),
                    )
                    for name, c in cfg["commands"].items()
                }
            )

        return cls(
            model=Model(**model),
            authentication=authentication,
            inference=Inference(**inference),
            commands=commands,
        )
