"""
Tests for the feed playback engine.
"""

import asyncio
import time

import numpy as np

from models.detection import Detection, DetectionSet
from models.frame import FrameData
from pipeline.engine import EngineConfig, FeedEngine
from pipeline.renderer import FrameOverlayRenderer
from pipeline.scheduler import DetectionScheduler
from models.config import DetectorConfig
from web.state import FrameStore
from fakes import FakeFrameSource, FakeSession, ManualTimer, FakeClock


class FiniteSource(FakeFrameSource):
    """Plays a fixed number of frames, then reports end of video."""

    def __init__(self, count, **kwargs):
        super().__init__(ready=False, **kwargs)
        self.remaining = count

    def read(self):
        if self.remaining <= 0:
            return None
        self.remaining -= 1
        return super().read()


def build_engine(source, frame_store=None, **engine_kwargs):
    renderer = FrameOverlayRenderer()
    scheduler = DetectionScheduler(
        source,
        renderer,
        lambda: FakeSession(),
        DetectorConfig(),
        clock=FakeClock(),
        timer=ManualTimer(),
        name=source.source_id,
    )
    engine = FeedEngine(source, scheduler, renderer, EngineConfig(**engine_kwargs), frame_store=frame_store)
    return engine, renderer, scheduler


def frame_data(h=90, w=160):
    return FrameData.from_numpy(np.zeros((h, w, 3), dtype=np.uint8), time.time(), 1, "alpha")


class TestShowFrame:
    """show_frame() presents, resizes, draws and publishes."""

    def test_frame_becomes_current_on_source(self):
        source = FakeFrameSource(display_size=(320, 180), ready=False)
        source.open()
        engine, _, _ = build_engine(source)
        data = frame_data()

        engine.show_frame(data)

        assert source.current is data
        assert source.is_ready()
        assert engine.stats.frame_count == 1

    def test_published_frame_has_display_size(self):
        source = FakeFrameSource(display_size=(320, 180), ready=False)
        source.open()
        store = FrameStore()
        engine, _, _ = build_engine(source, frame_store=store)

        engine.show_frame(frame_data(h=90, w=160))

        published = store.get_frame("alpha")
        assert published.shape == (180, 320, 3)
        assert store.last_frame_ts("alpha") is not None

    def test_overlay_drawn_on_published_frame(self):
        source = FakeFrameSource(display_size=(320, 180), ready=False)
        source.open()
        store = FrameStore()
        engine, renderer, _ = build_engine(source, frame_store=store)
        renderer.render(DetectionSet.from_list(
            [Detection.from_xyxy(40, 40, 200, 150, score=0.9, class_id=0, label="person")],
            sequence=1,
            canvas_size=(320, 180),
        ))
        data = frame_data()

        annotated = engine.show_frame(data)

        assert annotated.any()
        assert not data.frame.any()
        assert store.get_jpeg("alpha") is not None

    def test_callbacks_receive_annotated_frame(self):
        source = FakeFrameSource(display_size=(320, 180), ready=False)
        source.open()
        engine, _, _ = build_engine(source)
        seen = []
        engine.add_callback(lambda data, frame: seen.append(frame.shape))

        engine.show_frame(frame_data())

        assert seen == [(180, 320, 3)]

    def test_failing_callback_does_not_break_playback(self):
        source = FakeFrameSource(display_size=(320, 180), ready=False)
        source.open()
        engine, _, _ = build_engine(source)

        def broken(data, frame):
            raise RuntimeError("boom")

        engine.add_callback(broken)

        assert engine.show_frame(frame_data()).shape == (180, 320, 3)


class TestRun:
    """run() plays until the source is exhausted, then cleans up."""

    def test_plays_all_frames_then_cleans_up(self):
        source = FiniteSource(3, display_size=(160, 90))
        store = FrameStore()
        engine, _, scheduler = build_engine(source, frame_store=store, max_consecutive_failures=1, fps=1000)

        asyncio.run(engine.run())

        assert engine.stats.frame_count == 3
        assert source.open_calls == 1
        assert source.closed is True
        assert store.get_frame("alpha") is None
        assert engine.is_running is False
        assert len(scheduler.detections) == 0

    def test_stop_ends_loop(self):
        source = FakeFrameSource(display_size=(160, 90), ready=False)
        engine, _, _ = build_engine(source, fps=1000)
        engine.add_callback(lambda data, frame: engine.stop())

        asyncio.run(engine.run())

        assert engine.stats.frame_count == 1
        assert source.closed is True
