"""
Inference layer: model sessions and backends.
"""

from .backend import DetectorError, InferenceBackend, InferenceError, ModelLoadError
from .session import ModelSession, SessionState

__all__ = [
    "DetectorError",
    "InferenceBackend",
    "InferenceError",
    "ModelLoadError",
    "ModelSession",
    "SessionState",
]
