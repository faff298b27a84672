"""
Tests for ModelSession load/infer lifecycle.
"""

import asyncio
import threading

import numpy as np
import pytest

from inference.backend import InferenceError, ModelLoadError
from inference.session import ModelSession, SessionState


class MockBackend:
    """Backend returning a fixed array, or raising if told to."""

    def __init__(self, output=None, error=None):
        self.output = output if output is not None else np.zeros((6, 3), dtype=np.float32)
        self.error = error
        self.calls = 0

    def run(self, tensor):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.output


class CountingFactory:
    def __init__(self, backend=None, error=None, delay=None):
        self.backend = backend or MockBackend()
        self.error = error
        self.delay = delay
        self.calls = 0
        self._lock = threading.Lock()

    def __call__(self):
        with self._lock:
            self.calls += 1
        if self.delay is not None:
            self.delay.wait(timeout=5)
        if self.error is not None:
            raise self.error
        return self.backend


class TestLoad:
    """load() runs the factory at most once per session."""

    def test_load_makes_session_ready(self):
        factory = CountingFactory()
        session = ModelSession(factory, name="test")

        async def scenario():
            return await session.load()

        try:
            assert asyncio.run(scenario()) is SessionState.READY
            assert session.is_ready
            assert session.error is None
        finally:
            session.close()

    def test_load_is_idempotent(self):
        factory = CountingFactory()
        session = ModelSession(factory)

        async def scenario():
            await session.load()
            await session.load()

        try:
            asyncio.run(scenario())
            assert factory.calls == 1
        finally:
            session.close()

    def test_concurrent_loads_share_one_attempt(self):
        gate = threading.Event()
        factory = CountingFactory(delay=gate)
        session = ModelSession(factory)

        async def scenario():
            waiters = [asyncio.ensure_future(session.load()) for _ in range(3)]
            await asyncio.sleep(0)
            assert session.state is SessionState.LOADING
            gate.set()
            return await asyncio.gather(*waiters)

        try:
            results = asyncio.run(scenario())
            assert results == [SessionState.READY] * 3
            assert factory.calls == 1
        finally:
            session.close()

    def test_load_error_is_terminal(self):
        factory = CountingFactory(error=ModelLoadError("model file not found"))
        session = ModelSession(factory)

        async def scenario():
            with pytest.raises(ModelLoadError, match="not found"):
                await session.load()
            with pytest.raises(ModelLoadError, match="not found"):
                await session.load()

        try:
            asyncio.run(scenario())
            assert session.state is SessionState.FAILED
            assert "not found" in session.error
            assert factory.calls == 1
        finally:
            session.close()

    def test_unexpected_factory_error_is_wrapped(self):
        factory = CountingFactory(error=RuntimeError("unsupported opset"))
        session = ModelSession(factory)

        async def scenario():
            with pytest.raises(ModelLoadError, match="RuntimeError: unsupported opset"):
                await session.load()

        try:
            asyncio.run(scenario())
            assert session.state is SessionState.FAILED
        finally:
            session.close()

    def test_cancel_returns_to_unloaded(self):
        gate = threading.Event()
        factory = CountingFactory(delay=gate)
        session = ModelSession(factory)

        async def scenario():
            waiter = asyncio.ensure_future(session.load())
            await asyncio.sleep(0)
            assert session.state is SessionState.LOADING
            session.cancel()
            assert session.state is SessionState.UNLOADED
            with pytest.raises(asyncio.CancelledError):
                await waiter

        try:
            asyncio.run(scenario())
        finally:
            gate.set()
            session.close()

    def test_load_after_close_fails(self):
        session = ModelSession(CountingFactory())
        session.close()

        with pytest.raises(ModelLoadError, match="closed"):
            asyncio.run(session.load())


class TestInfer:
    """infer() only works on a READY session."""

    def test_infer_before_load_raises(self):
        session = ModelSession(CountingFactory())
        tensor = np.zeros((1, 3, 8, 8), dtype=np.float32)

        try:
            with pytest.raises(InferenceError, match="not ready"):
                asyncio.run(session.infer(tensor))
        finally:
            session.close()

    def test_infer_returns_backend_output(self):
        output = np.arange(18, dtype=np.float32).reshape(6, 3)
        backend = MockBackend(output=output)
        session = ModelSession(CountingFactory(backend=backend))
        tensor = np.zeros((1, 3, 8, 8), dtype=np.float32)

        async def scenario():
            await session.load()
            return await session.infer(tensor)

        try:
            result = asyncio.run(scenario())
            np.testing.assert_array_equal(result, output)
            assert backend.calls == 1
        finally:
            session.close()

    def test_backend_error_becomes_inference_error(self):
        backend = MockBackend(error=RuntimeError("CUDA out of memory"))
        session = ModelSession(CountingFactory(backend=backend))
        tensor = np.zeros((1, 3, 8, 8), dtype=np.float32)

        async def scenario():
            await session.load()
            with pytest.raises(InferenceError, match="CUDA out of memory"):
                await session.infer(tensor)

        try:
            asyncio.run(scenario())
            # Inference errors do not unload the model
            assert session.is_ready
        finally:
            session.close()


class TestClose:
    def test_close_is_idempotent(self):
        session = ModelSession(CountingFactory())

        async def scenario():
            await session.load()

        asyncio.run(scenario())
        session.close()
        session.close()

        assert session.state is SessionState.UNLOADED
        assert not session.is_ready
