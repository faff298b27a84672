"""
Model session lifecycle.

A ModelSession owns one loaded detection model. It replaces a process-wide
lazily created model handle: whoever needs a model holds a session object,
so several feeds can each own one (or share one explicitly).

States:
    UNLOADED -> LOADING -> READY
                        -> FAILED (terminal for this instance)

Loading and inference run on a dedicated single-worker thread so the event
loop keeps serving ticks and video while the backend works.
"""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from typing import Callable, Optional

import numpy as np

from .backend import InferenceBackend, InferenceError, ModelLoadError


class SessionState(str, Enum):
    UNLOADED = "unloaded"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


class ModelSession:
    """
    Lazily loads a backend and runs inference on it.

    Example:
        session = ModelSession(lambda: OnnxRuntimeBackend(cfg), name="yolov8n")
        await session.load()
        raw = await session.infer(tensor)
    """

    def __init__(self, backend_factory: Callable[[], InferenceBackend], name: str = "model"):
        """
        Args:
            backend_factory: Zero-argument callable that builds the backend.
                Called at most once, off the event loop. It should raise
                ModelLoadError for missing/corrupt/unsupported models.
            name: Label used in logs and thread names.
        """
        self.name = name
        self._backend_factory = backend_factory
        self._backend: Optional[InferenceBackend] = None
        self._state = SessionState.UNLOADED
        self._error: Optional[ModelLoadError] = None
        self._load_task: Optional[asyncio.Task] = None
        self._closed = False
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"model-{name}")

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state is SessionState.READY

    @property
    def error(self) -> Optional[str]:
        """Reason of a failed load, if any."""
        return str(self._error) if self._error is not None else None

    async def load(self) -> SessionState:
        """
        Load the model once.

        A call while READY returns immediately. A call while LOADING waits
        for the load already in flight. A FAILED session re-raises its
        original error and never retries; create a new session for that.

        Raises:
            ModelLoadError: If the model cannot be loaded.
        """
        if self._state is SessionState.READY:
            return self._state
        if self._state is SessionState.FAILED:
            raise ModelLoadError(self.error)
        if self._closed:
            raise ModelLoadError(f"Model session '{self.name}' is closed")

        if self._load_task is None:
            self._state = SessionState.LOADING
            logging.info(f"Loading model session '{self.name}'")
            self._load_task = asyncio.get_running_loop().create_task(self._load())

        # Shielded so a cancelled waiter does not abort a load others wait on.
        return await asyncio.shield(self._load_task)

    async def _load(self) -> SessionState:
        loop = asyncio.get_running_loop()
        try:
            backend = await loop.run_in_executor(self._executor, self._backend_factory)
        except asyncio.CancelledError:
            # cancel() may already have reset state and a new load may own it
            if self._load_task is asyncio.current_task():
                self._state = SessionState.UNLOADED
                self._load_task = None
            raise
        except ModelLoadError as e:
            self._fail(e)
            raise
        except Exception as e:
            err = ModelLoadError(f"{type(e).__name__}: {e}")
            self._fail(err)
            raise err from e

        self._backend = backend
        self._state = SessionState.READY
        self._load_task = None
        logging.info(f"Model session '{self.name}' ready")
        return self._state

    def _fail(self, error: ModelLoadError) -> None:
        self._error = error
        self._state = SessionState.FAILED
        self._load_task = None
        logging.error(f"Model session '{self.name}' failed to load: {error}")

    def cancel(self) -> None:
        """
        Abort an in-progress load and return to UNLOADED.

        The backend factory cannot be interrupted mid-call; its result is
        discarded when it finishes.
        """
        task = self._load_task
        if task is not None and not task.done():
            task.cancel()
            self._load_task = None
            self._state = SessionState.UNLOADED
            logging.info(f"Model session '{self.name}' load cancelled")

    async def infer(self, tensor: np.ndarray) -> np.ndarray:
        """
        Run the model on one tensor.

        Raises:
            InferenceError: If the session is not READY or the backend raised.
        """
        backend = self._backend
        if self._state is not SessionState.READY or backend is None:
            raise InferenceError(
                f"Model session '{self.name}' is not ready (state={self._state.value})"
            )

        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(self._executor, backend.run, tensor)
        except Exception as e:
            raise InferenceError(f"Inference failed on '{self.name}': {e}") from e

    def close(self) -> None:
        """Release the backend and worker thread. Safe to call multiple times."""
        if self._closed:
            return
        self._closed = True
        self.cancel()
        self._backend = None
        if self._state is SessionState.READY:
            self._state = SessionState.UNLOADED
        self._executor.shutdown(wait=False)
        logging.info(f"Model session '{self.name}' closed")
