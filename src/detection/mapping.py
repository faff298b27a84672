"""
Map boxes between model-input space and display space.

Overlays are drawn on a canvas the size of the *displayed* video, so the
ratios use the display size rather than the intrinsic video size. The
preprocessor resizes without letterboxing, so x and y scale independently.
"""

from __future__ import annotations

from typing import List, Sequence, Tuple

from models.detection import Detection


class CoordinateMapper:
    def __init__(self, input_size: int = 640) -> None:
        if input_size <= 0:
            raise ValueError(f"input_size must be positive, got {input_size}")
        self.input_size = input_size

    def scale_ratios(self, display_size: Tuple[float, float]) -> Tuple[float, float]:
        """Return (display_w / S, display_h / S)."""
        width, height = display_size
        if width <= 0 or height <= 0:
            raise ValueError(f"Display size must be positive, got {display_size}")
        return (width / self.input_size, height / self.input_size)

    def to_display(self, detections: Sequence[Detection], display_size: Tuple[float, float]) -> List[Detection]:
        """Rescale model-input boxes to the display canvas."""
        sx, sy = self.scale_ratios(display_size)
        return [d.with_box(d.box.scaled(sx, sy)) for d in detections]

    def to_model(self, detections: Sequence[Detection], display_size: Tuple[float, float]) -> List[Detection]:
        """Inverse of to_display."""
        sx, sy = self.scale_ratios(display_size)
        return [d.with_box(d.box.scaled(1.0 / sx, 1.0 / sy)) for d in detections]
