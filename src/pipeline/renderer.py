"""
Overlay rendering.

The scheduler only knows the OverlayRenderer contract: `render()` swaps in a
whole DetectionSet and `clear()` drops it. FrameOverlayRenderer keeps the
current set and draws it onto display-sized frames with OpenCV.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Dict, Tuple

import cv2
import numpy as np

from models.detection import DetectionSet

Color = Tuple[int, int, int]


class OverlayRenderer(ABC):
    """Consumer of detection results."""

    @abstractmethod
    def render(self, detection_set: DetectionSet) -> None:
        """Replace everything drawn with this set."""

    @abstractmethod
    def clear(self) -> None:
        """Remove everything drawn."""


def class_color(class_id: int) -> Color:
    """
    Stable BGR colour per class: hue (class_id * 41) % 360, 70% saturation,
    50% lightness.
    """
    hue = (class_id * 41) % 360
    hls = np.uint8([[[hue // 2, 128, 178]]])  # OpenCV hue range is 0-179
    b, g, r = cv2.cvtColor(hls, cv2.COLOR_HLS2BGR)[0, 0]
    return (int(b), int(g), int(r))


class FrameOverlayRenderer(OverlayRenderer):
    """
    Holds the latest DetectionSet and draws it on request.

    `render()`/`clear()` are reference swaps, so calling them every tick
    costs nothing and a frame is always drawn with one complete set.
    """

    def __init__(self, thickness: int = 2, font_scale: float = 0.5) -> None:
        self.thickness = thickness
        self.font_scale = font_scale
        self._current = DetectionSet.empty()
        self._colors: Dict[int, Color] = {}

    @property
    def current(self) -> DetectionSet:
        return self._current

    def render(self, detection_set: DetectionSet) -> None:
        self._current = detection_set

    def clear(self) -> None:
        self._current = DetectionSet.empty()

    def _color(self, class_id: int) -> Color:
        color = self._colors.get(class_id)
        if color is None:
            color = class_color(class_id)
            self._colors[class_id] = color
        return color

    def draw(self, frame: np.ndarray) -> np.ndarray:
        """
        Draw the current set on a copy of a display-sized frame.

        Boxes are in display pixels. If the frame differs from the canvas the
        set was produced for (viewer resized mid-pass), boxes are rescaled to
        the frame.
        """
        out = frame.copy()
        detection_set = self._current
        if not detection_set:
            return out

        frame_h, frame_w = out.shape[:2]
        sx = sy = 1.0
        if detection_set.canvas_size and detection_set.canvas_size != (frame_w, frame_h):
            canvas_w, canvas_h = detection_set.canvas_size
            if canvas_w > 0 and canvas_h > 0:
                sx, sy = frame_w / canvas_w, frame_h / canvas_h

        font = cv2.FONT_HERSHEY_SIMPLEX
        for det in detection_set:
            x1, y1, x2, y2 = det.box.scaled(sx, sy).as_int_tuple()
            color = self._color(det.class_id)
            cv2.rectangle(out, (x1, y1), (x2, y2), color, self.thickness)

            label = f"{det.label} ({det.score * 100:.1f}%)"
            (tw, th), _ = cv2.getTextSize(label, font, self.font_scale, 1)
            # Keep the label inside the frame when the box touches the top edge
            top = y1 - th - 8 if y1 - th - 8 >= 0 else y1
            cv2.rectangle(out, (x1, top), (x1 + tw + 8, top + th + 8), color, -1)
            cv2.putText(out, label, (x1 + 4, top + th + 4), font, self.font_scale, (255, 255, 255), 1)

        return out
