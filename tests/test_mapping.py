"""
Tests for model-space to display-space coordinate mapping.
"""

import pytest

from detection.mapping import CoordinateMapper
from models.detection import Detection


class TestCoordinateMapper:
    def test_scale_ratios_use_display_size(self):
        mapper = CoordinateMapper(640)

        assert mapper.scale_ratios((1280, 720)) == (2.0, 1.125)

    def test_to_display_scales_axes_independently(self):
        mapper = CoordinateMapper(640)
        d = Detection.from_xyxy(64, 64, 320, 640, score=0.8, class_id=2, label="car")

        (mapped,) = mapper.to_display([d], (1280, 360))

        assert mapped.box.as_tuple() == pytest.approx((128.0, 36.0, 640.0, 360.0))
        assert mapped.score == 0.8
        assert mapped.class_id == 2
        assert mapped.label == "car"

    def test_input_detections_not_modified(self):
        mapper = CoordinateMapper(640)
        d = Detection.from_xyxy(10, 10, 20, 20, score=0.5, class_id=0)

        mapper.to_display([d], (1920, 1080))

        assert d.box.as_tuple() == (10, 10, 20, 20)

    def test_round_trip(self):
        mapper = CoordinateMapper(640)
        d = Detection.from_xyxy(12.5, 40, 300, 512, score=0.5, class_id=0)

        back = mapper.to_model(mapper.to_display([d], (1917, 1033)), (1917, 1033))

        assert back[0].box.as_tuple() == pytest.approx(d.box.as_tuple())

    def test_full_input_maps_to_full_canvas(self):
        mapper = CoordinateMapper(640)
        d = Detection.from_xyxy(0, 0, 640, 640, score=0.5, class_id=0)

        (mapped,) = mapper.to_display([d], (854, 480))

        assert mapped.box.as_tuple() == pytest.approx((0, 0, 854, 480))

    @pytest.mark.parametrize("size", [(0, 720), (1280, 0), (-1, 10)])
    def test_invalid_display_size(self, size):
        with pytest.raises(ValueError):
            CoordinateMapper(640).scale_ratios(size)

    def test_invalid_input_size(self):
        with pytest.raises(ValueError):
            CoordinateMapper(0)
