"""
Wire feeds, renderers, schedulers and model sessions from configuration.

Model sharing policy (`detector.session_policy`):
- "per_feed" (default): every feed owns its own ModelSession. Feeds are
  isolated; memory grows with the number of feeds.
- "shared": all feeds use one ModelSession. Each scheduler still keeps at
  most one inference in flight, and the session's single worker thread runs
  calls from different feeds one after another.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional, Sequence

from detection.labels import load_class_table
from inference.backend import InferenceBackend
from inference.onnx_backend import OnnxModelConfig, OnnxRuntimeBackend
from inference.session import ModelSession, SessionState
from models.config import Config, DetectorConfig, FeedConfig
from observation.opencv_source import create_source_from_feed
from pipeline.engine import EngineConfig, FeedEngine
from pipeline.renderer import FrameOverlayRenderer
from pipeline.scheduler import DetectionScheduler
from web.state import FrameStore
from .context import FeedRuntime, RuntimeContext

SESSION_POLICIES = ("per_feed", "shared")


def make_backend_factory(detector_cfg: DetectorConfig) -> Callable[[], InferenceBackend]:
    """Return a zero-argument callable that loads the configured ONNX model."""
    onnx_cfg = OnnxModelConfig(
        model_path=detector_cfg.model_path,
        providers=tuple(detector_cfg.providers),
    )

    def factory() -> InferenceBackend:
        return OnnxRuntimeBackend(onnx_cfg)

    return factory


class SharedSessionPool:
    """
    Hands every feed the same ModelSession.

    A failed session is replaced on the next request, which is what a feed's
    reset_session() + activate() asks for.
    """

    def __init__(self, backend_factory: Callable[[], InferenceBackend], name: str = "shared"):
        self._backend_factory = backend_factory
        self._name = name
        self._session: Optional[ModelSession] = None

    def get(self) -> ModelSession:
        if self._session is not None and self._session.state is SessionState.FAILED:
            self._session.close()
            self._session = None
        if self._session is None:
            self._session = ModelSession(self._backend_factory, name=self._name)
        return self._session

    def close(self) -> None:
        if self._session is not None:
            self._session.close()
            self._session = None


def build_feed(
    feed_cfg: FeedConfig,
    detector_cfg: DetectorConfig,
    session_factory: Callable[[], ModelSession],
    class_table: Sequence[str],
    owns_session: bool = True,
    display: bool = False,
    frame_store: Any = None,
) -> FeedRuntime:
    """Create source, renderer, scheduler and engine for one feed."""
    source = create_source_from_feed(feed_cfg)
    renderer = FrameOverlayRenderer()
    scheduler = DetectionScheduler(
        source,
        renderer,
        session_factory,
        detector_cfg,
        class_table=class_table,
        owns_session=owns_session,
        name=feed_cfg.id,
    )
    engine = FeedEngine(
        source,
        scheduler,
        renderer,
        EngineConfig(fps=feed_cfg.fps, display=display),
        frame_store=frame_store,
    )
    return FeedRuntime(
        config=feed_cfg,
        source=source,
        renderer=renderer,
        scheduler=scheduler,
        engine=engine,
    )


def build_runtime(
    config: Config,
    display: bool = False,
    backend_factory: Optional[Callable[[], InferenceBackend]] = None,
) -> RuntimeContext:
    """
    Build the runtime for every configured feed.

    Args:
        config: Typed application config.
        display: Show each feed in a local OpenCV window.
        backend_factory: Overrides the ONNX backend (tests, other runtimes).
    """
    detector_cfg = config.detector
    if detector_cfg.session_policy not in SESSION_POLICIES:
        raise ValueError(f"detector.session_policy must be one of {SESSION_POLICIES}")

    class_table = load_class_table(detector_cfg.labels)
    backend_factory = backend_factory or make_backend_factory(detector_cfg)
    frame_store = FrameStore()
    ctx = RuntimeContext(config=config, frame_store=frame_store)

    if detector_cfg.session_policy == "shared":
        ctx.session_pool = SharedSessionPool(backend_factory)

    for feed_cfg in config.feeds:
        if feed_cfg.id in ctx.feeds:
            raise ValueError(f"Duplicate feed id: {feed_cfg.id}")

        if ctx.session_pool is not None:
            session_factory = ctx.session_pool.get
        else:
            def session_factory(name: str = feed_cfg.id) -> ModelSession:
                return ModelSession(backend_factory, name=name)

        ctx.feeds[feed_cfg.id] = build_feed(
            feed_cfg,
            detector_cfg,
            session_factory,
            class_table,
            owns_session=ctx.session_pool is None,
            display=display,
            frame_store=frame_store,
        )

    logging.info(
        f"Runtime built: feeds={ctx.feed_ids()}, session_policy={detector_cfg.session_policy}, "
        f"classes={len(class_table)}"
    )
    return ctx
