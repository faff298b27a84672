"""
Decode raw YOLOv8-style output into scored, classified boxes.

Output layout, one column per candidate:

    row 0..3   cx, cy, w, h   (model-input pixels)
    row 4..    one score per class

Boxes stay in model-input space; mapping to the display happens later.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from models.detection import BoundingBox, Detection

NUM_BOX_ATTRIBUTES = 4


class OutputShapeError(ValueError):
    """Raw output does not match the layout the decoder was configured for."""


class OutputDecoder:
    """
    Turn a (4 + C, N) output array into a list of Detection.

    Per candidate: argmax over class scores (ties go to the lowest class
    index), drop when below the confidence threshold, convert center form
    to corner form. Output keeps candidate order.
    """

    def __init__(self, class_table: Sequence[str], conf_threshold: float = 0.25) -> None:
        if not class_table:
            raise ValueError("class_table must not be empty")
        self.class_table: Tuple[str, ...] = tuple(class_table)
        self.conf_threshold = conf_threshold
        # Index buffers reused across passes, keyed by candidate count.
        self._buffers: Dict[int, Tuple[np.ndarray, np.ndarray]] = {}

    @property
    def num_classes(self) -> int:
        return len(self.class_table)

    def _validate(self, raw: np.ndarray) -> np.ndarray:
        raw = np.asarray(raw)
        if raw.ndim == 3:
            if raw.shape[0] != 1:
                raise OutputShapeError(f"Expected batch size 1, got output shape {raw.shape}")
            raw = raw[0]
        if raw.ndim != 2:
            raise OutputShapeError(f"Expected a 2-D (attributes, candidates) output, got shape {raw.shape}")

        expected = NUM_BOX_ATTRIBUTES + self.num_classes
        if raw.shape[0] != expected:
            raise OutputShapeError(
                f"Output has {raw.shape[0]} attributes per candidate, expected {expected} "
                f"(4 box values + {self.num_classes} classes); check the class table matches the model"
            )
        return raw

    def _index_buffers(self, num_candidates: int) -> Tuple[np.ndarray, np.ndarray]:
        buffers = self._buffers.get(num_candidates)
        if buffers is None:
            buffers = (
                np.empty(num_candidates, dtype=np.intp),
                np.arange(num_candidates, dtype=np.intp),
            )
            self._buffers = {num_candidates: buffers}
        return buffers

    def decode(self, raw: np.ndarray, conf_threshold: Optional[float] = None) -> List[Detection]:
        """
        Args:
            raw: Model output shaped (4 + C, N) or (1, 4 + C, N).
            conf_threshold: Overrides the configured threshold for this call.

        Raises:
            OutputShapeError: If the output shape does not match the class table.
        """
        threshold = self.conf_threshold if conf_threshold is None else conf_threshold
        raw = self._validate(raw)
        num_candidates = raw.shape[1]
        if num_candidates == 0:
            return []

        scores = raw[NUM_BOX_ATTRIBUTES:]
        nan_scores = np.isnan(scores)
        if nan_scores.any():
            # NaN never wins a class; argmax would otherwise pick it
            scores = np.where(nan_scores, -np.inf, scores)
        class_ids, columns = self._index_buffers(num_candidates)
        np.argmax(scores, axis=0, out=class_ids)
        best = scores[class_ids, columns]

        keep = np.flatnonzero(best >= threshold)
        if keep.size == 0:
            return []

        geometry = raw[:NUM_BOX_ATTRIBUTES, keep]
        detections: List[Detection] = []
        dropped = 0
        for k, i in enumerate(keep):
            cx, cy, w, h = (float(v) for v in geometry[:, k])
            if not (np.isfinite(cx) and np.isfinite(cy) and np.isfinite(w) and np.isfinite(h)) or w < 0 or h < 0:
                dropped += 1
                continue
            class_id = int(class_ids[i])
            detections.append(
                Detection(
                    box=BoundingBox.from_center(cx, cy, w, h),
                    score=float(best[i]),
                    class_id=class_id,
                    label=self.class_table[class_id],
                )
            )

        if dropped:
            logging.debug(f"Decoder dropped {dropped} candidates with invalid geometry")
        return detections
