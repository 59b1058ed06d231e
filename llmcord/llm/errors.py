from __future__ import annotations


class LLMError(Exception):
    """Base error for local model failures."""


class ModelLoadError(LLMError):
    """The model file is missing, unreadable, or not the configured architecture."""


class InferenceError(LLMError):
    """A single generation failed; the session stays usable."""


class GenerationTimeoutError(InferenceError):
    pass


def parse_error_message(error: Exception) -> str:
    """
    Map raw exceptions into short, one-line messages for logs.
    """
    s, t = str(error), type(error).__name__
    if isinstance(error, GenerationTimeoutError):
        return f"⏱️ Timeout: {s}"
    if "exceed context window" in s:
        return f"❌ Context Overflow: {s}"
    if isinstance(error, MemoryError) or "out of memory" in s.lower():
        return "❌ Out of Memory: the model could not allocate memory for this generation."
    return f"❌ {t}: {s.split(chr(10))[0][:100]}"


def format_user_friendly_error(error: Exception) -> str:
    """
    Short, safe error message suitable for end users.
    """
    s = str(error)
    if isinstance(error, GenerationTimeoutError):
        return "Error: the generation took too long and was abandoned."
    if "exceed context window" in s:
        return "Error: the prompt is too long for the model's context window."
    if isinstance(error, MemoryError) or "out of memory" in s.lower():
        return "Error: the model ran out of memory. Try a shorter prompt."
    if isinstance(error, InferenceError) and s:
        return f"Error: {s.split(chr(10))[0][:200]}"
    return "Error: the model failed to generate a response."
