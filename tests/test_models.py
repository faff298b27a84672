"""
Tests for data models.
"""

import numpy as np
import pytest

from models.config import Config, DetectorConfig, FeedConfig, WebConfig
from models.detection import BoundingBox, Detection, DetectionSet
from models.frame import FrameData
from models.status import DetectorState, DetectorStatus


class TestBoundingBox:
    def test_properties(self):
        bbox = BoundingBox(x1=10, y1=20, x2=110, y2=70)

        assert bbox.width == 100
        assert bbox.height == 50
        assert bbox.area == 5000
        assert bbox.center == (60, 45)

    def test_from_center(self):
        bbox = BoundingBox.from_center(10, 10, 4, 4)

        assert bbox.as_tuple() == (8, 8, 12, 12)

    def test_inverted_box_rejected(self):
        with pytest.raises(ValueError):
            BoundingBox(x1=10, y1=0, x2=5, y2=10)

    def test_degenerate_box_allowed(self):
        bbox = BoundingBox(5, 5, 5, 5)
        assert bbox.area == 0

    def test_scaled(self):
        bbox = BoundingBox(10, 10, 20, 20).scaled(2.0, 0.5)

        assert bbox.as_tuple() == (20, 5, 40, 10)

    def test_as_int_tuple_rounds(self):
        assert BoundingBox(1.4, 1.6, 9.5, 10.49).as_int_tuple() == (1, 2, 10, 10)

    def test_from_tuple(self):
        assert BoundingBox.from_tuple([1, 2, 3, 4]).as_tuple() == (1.0, 2.0, 3.0, 4.0)


class TestDetection:
    def test_from_xyxy_default_label(self):
        det = Detection.from_xyxy(0, 0, 10, 10, score=0.5, class_id=3)

        assert det.label == "3"
        assert det.x2 == 10

    def test_with_box_keeps_class_and_score(self):
        det = Detection.from_xyxy(0, 0, 10, 10, score=0.5, class_id=3, label="motorcycle")

        moved = det.with_box(BoundingBox(1, 1, 2, 2))

        assert moved.box.as_tuple() == (1, 1, 2, 2)
        assert (moved.score, moved.class_id, moved.label) == (0.5, 3, "motorcycle")
        assert det.box.as_tuple() == (0, 0, 10, 10)

    def test_to_dict(self):
        det = Detection.from_xyxy(1, 2, 3, 4, score=0.9, class_id=7, label="truck")

        assert det.to_dict() == {"box": [1, 2, 3, 4], "score": 0.9, "class_id": 7, "label": "truck"}


class TestDetectionSet:
    def test_empty(self):
        empty = DetectionSet.empty()

        assert len(empty) == 0
        assert not empty
        assert empty.sequence == 0
        assert empty.detections == ()

    def test_from_list_is_immutable_snapshot(self):
        dets = [Detection.from_xyxy(0, 0, 1, 1, score=0.5, class_id=0)]

        detection_set = DetectionSet.from_list(dets, sequence=4, canvas_size=(640, 360))
        dets.append(Detection.from_xyxy(0, 0, 2, 2, score=0.6, class_id=0))

        assert len(detection_set) == 1
        assert detection_set.sequence == 4
        assert detection_set.canvas_size == (640, 360)
        assert isinstance(detection_set.detections, tuple)


class TestFrameData:
    def test_from_numpy(self):
        frame = np.zeros((720, 1280, 3), dtype=np.uint8)

        data = FrameData.from_numpy(frame, timestamp=1.0, frame_index=3, source="alpha")

        assert data.size == (1280, 720)
        assert data.frame_index == 3
        assert data.source == "alpha"


class TestDetectorState:
    def test_to_dict(self):
        state = DetectorState(
            status=DetectorStatus.FAILED,
            model_ready=False,
            last_error="Failed to load detection model: missing",
            passes=3,
        )

        data = state.to_dict()

        assert data["status"] == "failed"
        assert data["model_ready"] is False
        assert data["passes"] == 3
        assert data["last_error"].startswith("Failed to load")

    def test_is_active(self):
        assert DetectorState(status=DetectorStatus.ACTIVE, model_ready=True).is_active
        assert not DetectorState(status=DetectorStatus.LOADING, model_ready=False).is_active


class TestConfigModels:
    def test_detector_defaults(self):
        cfg = DetectorConfig.from_dict({})

        assert cfg.input_size == 640
        assert cfg.conf_threshold == 0.25
        assert cfg.iou_threshold == 0.45
        assert cfg.min_interval == pytest.approx(0.1)
        assert cfg.providers == ["CPUExecutionProvider"]
        assert cfg.session_policy == "per_feed"

    def test_feed_locator_prefers_source(self):
        feed = FeedConfig(id="alpha", source="rtmp://10.0.0.1/live", playback_id="abc")

        assert feed.locator == "rtmp://10.0.0.1/live"

    def test_feed_locator_from_playback_id(self):
        feed = FeedConfig.from_dict({"id": "alpha", "playback_id": "abc123"})

        assert feed.locator == "https://stream.mux.com/abc123.m3u8"
        assert feed.name == "alpha"

    def test_feed_locator_device_index(self):
        assert FeedConfig(id="usb", source=0).locator == 0

    def test_feed_without_locator(self):
        with pytest.raises(ValueError):
            _ = FeedConfig(id="alpha").locator

    def test_display_tuple(self):
        assert FeedConfig(id="a", display_size=[1280, 720]).display_tuple == (1280, 720)
        assert FeedConfig(id="a").display_tuple is None

    def test_config_round_trip(self, valid_config):
        cfg = Config.from_dict(valid_config)

        again = Config.from_dict(cfg.to_dict())

        assert again == cfg
        assert [f.id for f in cfg.feeds] == ["alpha", "bravo"]
        assert cfg.get_feed("bravo").source == "rtmp://10.0.0.2/live/bravo"
        assert cfg.get_feed("charlie") is None

    def test_web_defaults(self):
        web = WebConfig.from_dict({})

        assert web.enabled is True
        assert web.port == 8000
