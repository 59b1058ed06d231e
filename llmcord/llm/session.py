"""
llmcord/llm/session.py

The single in-process model session. Weights are loaded once at startup through
llama-cpp-python and kept for the lifetime of the process; every generation goes
through ModelSession.generate, which blocks until the completion is done.
"""

from __future__ import annotations

import logging
import os
import threading
from typing import Any

from llama_cpp import Llama

from llmcord.config.models import Inference, Model
from .errors import InferenceError, ModelLoadError
from .sampling import SamplingParams


ARCHITECTURE_METADATA_KEY = "general.architecture"


class ModelSession:
    def __init__(self, llm: Any, architecture: str):
        self._llm = llm
        self.architecture = architecture
        self._lock = threading.Lock()

    @classmethod
    def load(cls, model: Model, inference: Inference) -> "ModelSession":
        """
        Load the configured model file, honoring mmap and GPU preferences.

        Raises ModelLoadError when the file is absent, cannot be loaded, or
        declares a different architecture than the config.
        """
        if not os.path.isfile(model.path):
            raise ModelLoadError(f"Model file not found: {model.path}")

        logging.info(
            f"Loading model {model.path} | arch: {model.architecture} | ctx: {model.context_token_length} "
            f"| mmap: {model.prefer_mmap} | gpu layers: {model.n_gpu_layers}"
        )
        try:
            llm = Llama(
                model_path=model.path,
                n_ctx=model.context_token_length,
                n_threads=inference.thread_count,
                n_batch=inference.batch_size,
                n_gpu_layers=model.n_gpu_layers,
                use_mmap=model.prefer_mmap,
                verbose=False,
            )
        except Exception as e:
            raise ModelLoadError(f"Failed to load model from {model.path}: {e}") from e

        metadata = getattr(llm, "metadata", None) or {}
        file_arch = metadata.get(ARCHITECTURE_METADATA_KEY)
        if file_arch is None:
            logging.warning(
                "Model %s declares no %s; trusting configured architecture '%s'",
                model.path, ARCHITECTURE_METADATA_KEY, model.architecture,
            )
        elif file_arch.lower() != model.architecture:
            close = getattr(llm, "close", None)
            if callable(close):
                close()
            raise ModelLoadError(
                f"Model {model.path} is a '{file_arch}' model, but the config declares '{model.architecture}'"
            )

        logging.info("Model loaded successfully.")
        return cls(llm, model.architecture)

    def generate(self, prompt: str, max_tokens: int, params: SamplingParams) -> str:
        """
        Run inference until end of text, a stop sequence, or max_tokens.

        Blocks the calling thread. max_tokens <= 0 means no cap beyond the
        context window. Raises InferenceError on any engine failure.
        """
        with self._lock:
            try:
                output = self._llm(
                    prompt,
                    max_tokens=max_tokens if max_tokens > 0 else None,
                    temperature=params.temperature,
                    top_k=params.top_k,
                    top_p=params.top_p,
                    repeat_penalty=params.repeat_penalty,
                    seed=params.seed,
                    stop=list(params.stop) or None,
                    echo=False,
                )
            except MemoryError as e:
                raise InferenceError("out of memory") from e
            except Exception as e:
                raise InferenceError(str(e) or type(e).__name__) from e

        try:
            return output["choices"][0]["text"]
        except (KeyError, IndexError, TypeError) as e:
            raise InferenceError(f"Malformed completion from the model: {e}") from e

    def close(self) -> None:
        close = getattr(self._llm, "close", None)
        if callable(close):
            close()
