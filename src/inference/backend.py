"""
Inference backend interface.

Backends take a preprocessed (1, 3, S, S) float32 tensor and return the
model's raw output array untouched. Decoding happens in `detection`.
"""

from __future__ import annotations

from typing import Protocol

import numpy as np


class DetectorError(Exception):
    """Base class for detection pipeline errors."""


class ModelLoadError(DetectorError):
    """The model resource is missing, corrupt or needs an unavailable backend."""


class InferenceError(DetectorError):
    """A single model call failed, or the model was called before it was ready."""


class InferenceBackend(Protocol):
    def run(self, tensor: np.ndarray) -> np.ndarray:
        ...
