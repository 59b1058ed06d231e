"""
llmcord/llm/worker.py

Serializes every generation onto the single model session.

Requests are appended to an asyncio.Queue as they arrive and one worker task
drains it, handing each prompt to a single-thread executor so the blocking
llama.cpp call never runs on the event loop and never overlaps another one.
"""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Optional, Protocol

from .errors import GenerationTimeoutError, InferenceError, parse_error_message
from .sampling import SamplingParams


def _idle() -> None:
    pass


def _fail(future: "asyncio.Future[str]", error: BaseException) -> None:
    # Drop the traceback: it references the worker's suspended frame.
    if not future.done():
        future.set_exception(error.with_traceback(None))


class Generator(Protocol):
    def generate(self, prompt: str, max_tokens: int, params: SamplingParams) -> str: ...


@dataclass
class Request:
    prompt: str
    params: SamplingParams
    future: "asyncio.Future[str]"


class GenerationQueue:
    def __init__(self, session: Generator, max_tokens: int, timeout: Optional[float] = None):
        self._session = session
        self._max_tokens = max_tokens
        self._timeout = timeout or None
        self._queue: asyncio.Queue[Request] = asyncio.Queue()
        self._executor: Optional[ThreadPoolExecutor] = None
        self._worker: Optional[asyncio.Task] = None
        self._abandoned = False

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def start(self) -> None:
        if self.running:
            return
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="llmcord-model")
        self._worker = asyncio.get_running_loop().create_task(self._run(), name="llmcord-generation-queue")
        logging.info("Generation queue started")

    def submit(self, prompt: str, params: SamplingParams) -> "asyncio.Future[str]":
        """
        Enqueue a prompt and return a future for its completion.

        Does not await, so the order of submit() calls is the order of service.
        """
        future: asyncio.Future[str] = asyncio.get_running_loop().create_future()
        self._queue.put_nowait(Request(prompt, params, future))
        logging.debug("Queued generation (%d pending)", self._queue.qsize())
        return future

    async def _generate(self, request: Request) -> str:
        loop = asyncio.get_running_loop()
        if self._abandoned:
            # A timed-out generation still holds the model; its time does not
            # count against this request.
            await loop.run_in_executor(self._executor, _idle)
            self._abandoned = False

        call = loop.run_in_executor(
            self._executor, self._session.generate, request.prompt, self._max_tokens, request.params
        )
        if self._timeout is None:
            return await call
        try:
            return await asyncio.wait_for(call, timeout=self._timeout)
        except asyncio.TimeoutError:
            self._abandoned = True
            raise GenerationTimeoutError(f"generation exceeded {self._timeout:g}s") from None

    async def _run(self) -> None:
        while True:
            request = await self._queue.get()
            try:
                if request.future.cancelled():
                    continue
                try:
                    text = await self._generate(request)
                except asyncio.CancelledError:
                    request.future.cancel()
                    raise
                except InferenceError as e:
                    logging.warning(f"Generation failed: {parse_error_message(e)}")
                    _fail(request.future, e)
                except Exception as e:
                    logging.exception("Unexpected error during generation")
                    _fail(request.future, InferenceError(str(e) or type(e).__name__))
                else:
                    if not request.future.done():
                        request.future.set_result(text)
            finally:
                self._queue.task_done()

    async def close(self) -> None:
        if self._worker is not None:
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
            self._worker = None

        while not self._queue.empty():
            request = self._queue.get_nowait()
            if not request.future.done():
                request.future.cancel()
            self._queue.task_done()

        if self._executor is not None:
            self._executor.shutdown(wait=False, cancel_futures=True)
            self._executor = None
        logging.info("Generation queue stopped")
