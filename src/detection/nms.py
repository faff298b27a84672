"""
Class-aware greedy Non-Maximum Suppression.
"""

from __future__ import annotations

from typing import List, Sequence

from models.detection import BoundingBox, Detection


def iou(a: BoundingBox, b: BoundingBox) -> float:
    """
    Intersection over union of two axis-aligned boxes.

    Intersection sides are clamped at zero, so disjoint boxes give exactly
    0.0. A zero-area union also gives 0.0.
    """
    inter_w = max(0.0, min(a.x2, b.x2) - max(a.x1, b.x1))
    inter_h = max(0.0, min(a.y2, b.y2) - max(a.y1, b.y1))
    inter = inter_w * inter_h
    union = a.area + b.area - inter
    return inter / union if union > 0 else 0.0


def non_max_suppression(detections: Sequence[Detection], iou_threshold: float) -> List[Detection]:
    """
    Keep the best box of every overlapping same-class cluster.

    Detections are ordered by score descending (stable, so equal scores keep
    their input order). Each surviving detection is accepted and then
    suppresses later detections of the same class whose IoU with it is
    strictly greater than iou_threshold. Different classes never suppress
    each other.

    Returns:
        Accepted detections in score-descending order.
    """
    if not detections:
        return []

    ordered = sorted(detections, key=lambda d: d.score, reverse=True)
    active = [True] * len(ordered)
    selected: List[Detection] = []

    for i, current in enumerate(ordered):
        if not active[i]:
            continue
        selected.append(current)
        for j in range(i + 1, len(ordered)):
            if not active[j] or ordered[j].class_id != current.class_id:
                continue
            if iou(current.box, ordered[j].box) > iou_threshold:
                active[j] = False

    return selected


class Suppressor:
    """NMS stage with a fixed IoU threshold."""

    def __init__(self, iou_threshold: float = 0.45) -> None:
        if not 0.0 <= iou_threshold <= 1.0:
            raise ValueError(f"iou_threshold must be within [0, 1], got {iou_threshold}")
        self.iou_threshold = iou_threshold

    def suppress(self, detections: Sequence[Detection]) -> List[Detection]:
        return non_max_suppression(detections, self.iou_threshold)
