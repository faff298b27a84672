"""
Detection scheduler: the per-feed sampling loop.

States:
    IDLE --activate()--> LOADING --model ready--> ACTIVE --deactivate()--> IDLE
                                 --load failed--> IDLE (status "failed")

While ACTIVE the scheduler re-arms itself on every display tick. A tick runs
the pipeline only when:

1. at least `min_interval` has passed since the last executed pass,
2. no inference is in flight, and
3. the frame source has a frame to sample.

Otherwise it does nothing and waits for the next tick. Everything except the
model call runs inline on the event loop; the model call is the only
suspension point, so results land in the order passes started and at most one
pass is ever outstanding.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Callable, Optional, Sequence, Tuple

import cv2
import numpy as np

from detection import (
    COCO_CLASSES,
    CoordinateMapper,
    FramePreprocessor,
    OutputDecoder,
    OutputShapeError,
    Suppressor,
)
from inference.backend import InferenceError, ModelLoadError
from inference.session import ModelSession, SessionState
from models.config import DetectorConfig
from models.detection import DetectionSet
from models.status import DetectorState, DetectorStatus
from observation.base import FrameNotReadyError, FrameSource
from .clock import AsyncioFrameTimer, Clock, FrameTimer, MonotonicClock, TimerHandle
from .renderer import OverlayRenderer


class SchedulerState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    ACTIVE = "active"


class DetectionScheduler:
    """
    Drives preprocess -> infer -> decode -> suppress -> map -> render for
    one frame source.

    Example:
        scheduler = DetectionScheduler(source, renderer, session_factory, DetectorConfig())
        await scheduler.activate()
        ...
        scheduler.deactivate()
    """

    def __init__(
        self,
        source: FrameSource,
        renderer: OverlayRenderer,
        session_factory: Callable[[], ModelSession],
        config: DetectorConfig,
        class_table: Sequence[str] = COCO_CLASSES,
        clock: Optional[Clock] = None,
        timer: Optional[FrameTimer] = None,
        owns_session: bool = True,
        name: str = "detector",
    ):
        """
        Args:
            source: Feed to sample.
            renderer: Receives every completed DetectionSet.
            session_factory: Builds the model session on first activation.
            config: Sizes, thresholds and rate limit.
            class_table: Labels, one per class row of the model output.
            clock: Time source for the rate limit.
            timer: Display tick source.
            owns_session: Close the session on reset/shutdown. False when the
                session is shared with other schedulers.
            name: Label for logs, usually the feed id.
        """
        self.name = name
        self._source = source
        self._renderer = renderer
        self._session_factory = session_factory
        self._owns_session = owns_session
        self._clock = clock or MonotonicClock()
        self._timer = timer or AsyncioFrameTimer(config.refresh_hz)

        self.preprocessor = FramePreprocessor(config.input_size, config.channel_order)
        self.decoder = OutputDecoder(class_table, config.conf_threshold)
        self.suppressor = Suppressor(config.iou_threshold)
        self.mapper = CoordinateMapper(config.input_size)
        self._min_interval = config.min_interval
        self._max_failures = max(1, config.max_consecutive_failures)

        self._session: Optional[ModelSession] = None
        self._state = SchedulerState.IDLE
        self._generation = 0
        self._handle: Optional[TimerHandle] = None
        self._in_flight = False
        self._pass_task: Optional[asyncio.Task] = None
        self._last_pass_at: Optional[float] = None
        self._sequence = 0
        self._detections = DetectionSet.empty()

        self._last_error: Optional[str] = None
        self._fault: Optional[str] = None
        self._inference_error_shown = False
        self._passes = 0
        self._inference_failures = 0
        self._consecutive_failures = 0
        self._last_pass_ts: Optional[float] = None

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def session(self) -> Optional[ModelSession]:
        return self._session

    @property
    def detections(self) -> DetectionSet:
        """The DetectionSet last handed to the renderer (empty when idle)."""
        return self._detections

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    @property
    def status(self) -> DetectorState:
        if self._state is SchedulerState.ACTIVE:
            status = DetectorStatus.ACTIVE
        elif self._state is SchedulerState.LOADING:
            status = DetectorStatus.LOADING
        elif self._fault is not None or (
            self._session is not None and self._session.state is SessionState.FAILED
        ):
            status = DetectorStatus.FAILED
        else:
            status = DetectorStatus.UNLOADED

        return DetectorState(
            status=status,
            model_ready=self._session is not None and self._session.is_ready,
            last_error=self._last_error,
            passes=self._passes,
            inference_failures=self._inference_failures,
            consecutive_failures=self._consecutive_failures,
            last_pass_ts=self._last_pass_ts,
            detection_count=len(self._detections),
        )

    # Activation

    async def activate(self) -> DetectorState:
        """
        Turn detection on, loading the model on first use.

        Never raises for load failures: they leave the scheduler IDLE with
        status "failed" and the reason in `last_error`. A failed session is
        not retried until reset_session() is called.
        """
        if self._state is not SchedulerState.IDLE:
            return self.status
        if self._fault is not None:
            logging.warning(f"[{self.name}] Detector is faulted, reset it before activating: {self._fault}")
            return self.status

        if self._session is None:
            self._session = self._session_factory()
        session = self._session

        if session.state is SessionState.FAILED:
            self._last_error = f"Failed to load detection model: {session.error}"
            return self.status

        if not session.is_ready:
            self._state = SchedulerState.LOADING
            generation = self._generation
            try:
                await session.load()
            except ModelLoadError as e:
                if self._generation != generation:
                    logging.info(f"[{self.name}] Model load failed after the detector was turned off: {e}")
                    return self.status
                if self._state is SchedulerState.LOADING:
                    self._state = SchedulerState.IDLE
                self._last_error = f"Failed to load detection model: {e}"
                logging.error(f"[{self.name}] {self._last_error}")
                return self.status
            except asyncio.CancelledError:
                # A reset or shutdown cancels the load it superseded; only a
                # cancellation of this activation itself propagates.
                if self._generation != generation or session is not self._session:
                    logging.info(f"[{self.name}] Model load cancelled by reset or shutdown")
                    return self.status
                if self._state is SchedulerState.LOADING:
                    self._state = SchedulerState.IDLE
                raise

            if self._state is not SchedulerState.LOADING or self._generation != generation:
                logging.info(f"[{self.name}] Detector turned off while the model was loading")
                return self.status

        self._start()
        return self.status

    def _start(self) -> None:
        self._state = SchedulerState.ACTIVE
        self._last_error = None
        self._inference_error_shown = False
        self._consecutive_failures = 0
        self._last_pass_at = None
        logging.info(
            f"[{self.name}] Detection active (min interval {self._min_interval * 1000:.0f}ms)"
        )
        self._schedule_next()

    def deactivate(self) -> None:
        """
        Turn detection off from any state.

        Cancels the pending tick, makes any in-flight result stale and clears
        what the renderer shows.
        """
        previous = self._state
        self._generation += 1
        self._state = SchedulerState.IDLE
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        self._detections = DetectionSet.empty()
        self._renderer.clear()
        if previous is not SchedulerState.IDLE:
            logging.info(f"[{self.name}] Detection deactivated (was {previous.value})")

    def reset_session(self) -> None:
        """
        Drop the current model session so the next activate() builds a new
        one. This is the only way to retry after a failed load.
        """
        self.deactivate()
        session, self._session = self._session, None
        if session is not None and self._owns_session:
            session.close()
        self._fault = None
        self._last_error = None
        self._consecutive_failures = 0
        logging.info(f"[{self.name}] Model session reset")

    def shutdown(self) -> None:
        """Stop the loop and release an owned session."""
        self.deactivate()
        if self._session is not None and self._owns_session:
            self._session.close()

    # Loop

    def _schedule_next(self) -> None:
        if self._state is SchedulerState.ACTIVE and self._handle is None:
            self._handle = self._timer.schedule(self.tick)

    def tick(self) -> Optional[asyncio.Task]:
        """
        One display tick. Starts a pipeline pass if one is due and always
        re-arms the timer while ACTIVE.

        Returns:
            The task completing the started pass, or None if this tick
            did no pipeline work.
        """
        self._handle = None
        if self._state is not SchedulerState.ACTIVE:
            return None
        try:
            return self._maybe_start_pass()
        finally:
            self._schedule_next()

    def _maybe_start_pass(self) -> Optional[asyncio.Task]:
        now = self._clock.now()
        if self._last_pass_at is not None and now - self._last_pass_at < self._min_interval:
            return None
        if self._in_flight:
            return None
        if not self._source.is_ready():
            return None

        try:
            frame = self._source.snapshot()
        except FrameNotReadyError:
            return None
        display_size = self._source.display_size
        try:
            tensor = self.preprocessor.preprocess(frame)
        except (ValueError, cv2.error) as e:
            logging.warning(f"[{self.name}] Skipping unusable frame: {e}")
            return None

        self._last_pass_at = now
        self._in_flight = True
        self._pass_task = asyncio.get_running_loop().create_task(
            self._complete_pass(tensor, display_size, self._generation)
        )
        return self._pass_task

    async def _complete_pass(self, tensor: np.ndarray, display_size: Tuple[int, int], generation: int) -> None:
        session = self._session
        try:
            if session is None:
                raise InferenceError("No model session")
            raw = await session.infer(tensor)
        except InferenceError as e:
            if generation == self._generation:
                self._record_failure(e)
            return
        finally:
            self._in_flight = False

        if generation != self._generation or self._state is not SchedulerState.ACTIVE:
            logging.debug(f"[{self.name}] Discarding inference result from a deactivated pass")
            return

        try:
            candidates = self.decoder.decode(raw)
            kept = self.suppressor.suppress(candidates)
            mapped = self.mapper.to_display(kept, display_size)
            self._publish(mapped, display_size)
        except OutputShapeError as e:
            self._enter_fault(str(e))
        except Exception as e:
            logging.exception(f"[{self.name}] Detection pass failed after inference")
            self._record_failure(e)

    def _publish(self, detections, display_size: Tuple[int, int]) -> None:
        self._sequence += 1
        self._passes += 1
        detection_set = DetectionSet.from_list(detections, self._sequence, canvas_size=tuple(display_size))
        self._detections = detection_set
        self._last_pass_ts = detection_set.timestamp
        if self._consecutive_failures:
            logging.info(f"[{self.name}] Inference recovered after {self._consecutive_failures} failures")
            self._consecutive_failures = 0
        if self._inference_error_shown:
            self._last_error = None
            self._inference_error_shown = False
        self._renderer.render(detection_set)

    def _record_failure(self, error: Exception) -> None:
        self._inference_failures += 1
        self._consecutive_failures += 1
        if self._consecutive_failures < self._max_failures:
            logging.warning(
                f"[{self.name}] Inference failed, skipping pass "
                f"({self._consecutive_failures}/{self._max_failures}): {error}"
            )
            return
        if self._consecutive_failures == self._max_failures:
            logging.error(f"[{self.name}] Inference failing repeatedly: {error}")
        self._last_error = f"Detection is failing: {error}"
        self._inference_error_shown = True

    def _enter_fault(self, reason: str) -> None:
        logging.error(f"[{self.name}] Model output does not match the detector configuration: {reason}")
        self.deactivate()
        self._fault = reason
        self._last_error = f"Model output error: {reason}"
