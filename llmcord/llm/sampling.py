from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from llmcord.config.models import Inference


@dataclass(frozen=True)
class SamplingParams:
    temperature: float = 0.8
    top_k: int = 40
    top_p: float = 0.95
    repeat_penalty: float = 1.3
    # None lets the engine pick a random seed.
    seed: Optional[int] = None
    stop: tuple[str, ...] = ()

    @classmethod
    def from_inference(cls, inference: Inference, seed: Optional[int] = None) -> "SamplingParams":
        return cls(
            temperature=inference.temperature,
            top_k=inference.top_k,
            top_p=inference.top_p,
            repeat_penalty=inference.repeat_penalty,
            seed=seed,
            stop=inference.stop,
        )
