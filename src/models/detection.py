"""
Detection models for object detection results.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field, replace
from typing import Iterator, List, Optional, Sequence, Tuple


@dataclass(frozen=True)
class BoundingBox:
    """
    An axis-aligned box in corner form.

    The coordinate space (model input or display pixels) is decided by
    whoever produced the box.

    Attributes:
        x1: Left edge x coordinate.
        y1: Top edge y coordinate.
        x2: Right edge x coordinate.
        y2: Bottom edge y coordinate.
    """
    x1: float
    y1: float
    x2: float
    y2: float

    def __post_init__(self) -> None:
        if self.x1 > self.x2 or self.y1 > self.y2:
            raise ValueError(
                f"Invalid box ({self.x1}, {self.y1}, {self.x2}, {self.y2}): "
                "expected x1 <= x2 and y1 <= y2"
            )

    @property
    def width(self) -> float:
        return self.x2 - self.x1

    @property
    def height(self) -> float:
        return self.y2 - self.y1

    @property
    def center(self) -> Tuple[float, float]:
        return ((self.x1 + self.x2) / 2, (self.y1 + self.y2) / 2)

    @property
    def area(self) -> float:
        return self.width * self.height

    def as_tuple(self) -> Tuple[float, float, float, float]:
        """Return as (x1, y1, x2, y2) tuple."""
        return (self.x1, self.y1, self.x2, self.y2)

    def as_int_tuple(self) -> Tuple[int, int, int, int]:
        """Return as integer (x1, y1, x2, y2) tuple."""
        return (int(round(self.x1)), int(round(self.y1)), int(round(self.x2)), int(round(self.y2)))

    def scaled(self, sx: float, sy: float) -> "BoundingBox":
        """Return a copy with x coordinates multiplied by sx and y by sy."""
        return BoundingBox(
            x1=self.x1 * sx,
            y1=self.y1 * sy,
            x2=self.x2 * sx,
            y2=self.y2 * sy,
        )

    @classmethod
    def from_tuple(cls, t: Sequence[float]) -> "BoundingBox":
        """Create from (x1, y1, x2, y2) tuple."""
        return cls(x1=float(t[0]), y1=float(t[1]), x2=float(t[2]), y2=float(t[3]))

    @classmethod
    def from_center(cls, cx: float, cy: float, w: float, h: float) -> "BoundingBox":
        """Create from center form (cx, cy, width, height)."""
        return cls(x1=cx - w / 2, y1=cy - h / 2, x2=cx + w / 2, y2=cy + h / 2)


@dataclass(frozen=True)
class Detection:
    """
    A single scored, classified box.

    Attributes:
        box: Bounding box, in model-input or display space depending on the stage.
        score: Confidence of the winning class (0-1).
        class_id: Index into the class table.
        label: Resolved class name.
    """
    box: BoundingBox
    score: float
    class_id: int
    label: str

    @property
    def x1(self) -> float:
        return self.box.x1

    @property
    def y1(self) -> float:
        return self.box.y1

    @property
    def x2(self) -> float:
        return self.box.x2

    @property
    def y2(self) -> float:
        return self.box.y2

    def with_box(self, box: BoundingBox) -> "Detection":
        """Return a copy of this detection with a different box."""
        return replace(self, box=box)

    @classmethod
    def from_xyxy(
        cls,
        x1: float,
        y1: float,
        x2: float,
        y2: float,
        score: float,
        class_id: int,
        label: str = "",
    ) -> "Detection":
        """Create Detection from x1, y1, x2, y2 coordinates."""
        return cls(
            box=BoundingBox(x1=x1, y1=y1, x2=x2, y2=y2),
            score=score,
            class_id=class_id,
            label=label or str(class_id),
        )

    def to_dict(self) -> dict:
        return {
            "box": list(self.box.as_tuple()),
            "score": self.score,
            "class_id": self.class_id,
            "label": self.label,
        }


@dataclass(frozen=True)
class DetectionSet:
    """
    The detections produced by one completed pipeline pass.

    A set is never mutated; the renderer swaps the whole set on delivery.

    Attributes:
        detections: Detections in score-descending order.
        sequence: Pass number that produced this set (0 for the empty set).
        canvas_size: (width, height) of the space the boxes are expressed in.
        timestamp: Unix timestamp when the set was produced.
    """
    detections: Tuple[Detection, ...] = ()
    sequence: int = 0
    canvas_size: Optional[Tuple[int, int]] = None
    timestamp: float = field(default_factory=time.time)

    def __len__(self) -> int:
        return len(self.detections)

    def __iter__(self) -> Iterator[Detection]:
        return iter(self.detections)

    def __bool__(self) -> bool:
        return bool(self.detections)

    @classmethod
    def empty(cls) -> "DetectionSet":
        return cls()

    @classmethod
    def from_list(
        cls,
        detections: List[Detection],
        sequence: int,
        canvas_size: Optional[Tuple[int, int]] = None,
    ) -> "DetectionSet":
        return cls(detections=tuple(detections), sequence=sequence, canvas_size=canvas_size)
